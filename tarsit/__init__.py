"""tarsit - business directory and booking API."""

__version__ = "0.1.0"
