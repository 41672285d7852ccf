"""Retrieval-augmented assistant answering questions from a documentation tree."""

__version__ = "0.1.0"
