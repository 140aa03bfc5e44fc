"""Task-progress broadcasting engine for multi-agent conversations."""

__version__ = "0.1.0"
