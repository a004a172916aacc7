"""LearnHub learning progress API."""

__version__ = "0.1.0"
