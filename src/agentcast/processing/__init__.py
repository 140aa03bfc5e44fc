"""Task processing and progress projection."""
