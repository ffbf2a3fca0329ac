"""Patient vitals risk pipeline."""

__version__ = "0.1.0"
