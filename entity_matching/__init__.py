"""Entity matching: hybrid similarity search and mutual-match detection."""

__version__ = "0.1.0"
