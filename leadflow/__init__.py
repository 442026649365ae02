"""LeadFlow - lead assignment and acceptance backend."""

__version__ = "1.0.0"
