"""Type- and addressing-mode specialization engine for vectorized VM operations."""

__version__ = "1.0.0"
