"""Plant collection module."""
