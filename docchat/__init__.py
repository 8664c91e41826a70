"""docchat: document question answering over a FAISS index."""

__version__ = "0.1.0"
