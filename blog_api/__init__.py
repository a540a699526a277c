"""Blog API: posts with session-based authentication."""

__version__ = "1.0.0"
