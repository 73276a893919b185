"""Pack GitHub repositories for LLMs and turn scans into recommendations."""

__version__ = "0.1.0"
