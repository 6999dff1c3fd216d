"""News chatbot: retrieval-augmented answers over ingested news articles."""

__version__ = "1.0.0"
