"""Api module."""
