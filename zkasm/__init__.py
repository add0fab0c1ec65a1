"""Analysis and compilation of zero-knowledge machine assembly into PIL."""

__version__ = "0.1.0"