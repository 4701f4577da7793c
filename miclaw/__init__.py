"""Agent tools and a webhook receiver."""

__version__ = "0.1.0"