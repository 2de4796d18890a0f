"""Per-address host records and the blocking registry."""
