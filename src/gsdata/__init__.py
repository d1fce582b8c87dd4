"""Command-line access to Google services, with bucket synchronization."""

__version__ = "0.7.0"
