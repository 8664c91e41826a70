"""RAG (Retrieval-Augmented Generation) pipeline components.

This package contains modules for:
- Plain-text extraction from uploaded files
- Character-based document chunking
- FAISS vector storage
- Semantic retrieval
- Context-augmented answer generation
"""
