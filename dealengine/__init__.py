"""Deal Engine: cross-border wholesale deal evaluation."""

__version__ = "1.0.0"
