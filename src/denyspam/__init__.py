"""DenySpam — behavior-based intrusion prevention for mail servers."""

__version__ = "1.0.0"
