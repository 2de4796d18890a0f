"""Log line parsing and per-connection session reconstruction."""
