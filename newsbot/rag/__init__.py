"""RAG (Retrieval-Augmented Generation) pipeline components.

This package contains modules for:
- Sentence-aware chunking with overlap
- Embedding generation with a deterministic fallback
- FAISS vector storage
- Relevance gating
- Ingestion and query orchestration
"""
