"""Semantic verse search over a hashed bag-of-words corpus."""

__version__ = "1.0.0"
