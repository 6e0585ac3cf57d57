"""Noteweave: hybrid retrieval and related-note discovery for personal notes."""

__version__ = "0.1.0"
