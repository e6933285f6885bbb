"""Factory Admin: browse and edit a factory asset hierarchy."""

__version__ = "0.3.0"
