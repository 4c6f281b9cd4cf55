"""Repository path filtering and secret detection."""

__version__ = "0.1.0"
