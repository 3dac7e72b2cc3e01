"""Position-transition planning for leveraged multiply strategies."""

__version__ = "0.1.0"
