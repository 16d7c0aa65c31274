"""libcontext — local library documentation index with hybrid retrieval."""

__version__ = "0.1.0"
