"""AIssist: chat completions written into, and read back from, plain notes."""

__all__ = ["__version__"]

__version__ = "0.3.0"
