"""Error taxonomy for the RAG pipeline.

Only ``IndexNotFoundError`` is recoverable: ingestion creates a fresh index
and queries answer from an empty context. Everything else propagates to the
caller.
"""


class RagError(Exception):
    """Base class for all pipeline errors."""


class InvalidConfigurationError(RagError):
    """Bad chunking parameters or missing credentials."""


class DimensionMismatchError(InvalidConfigurationError):
    """A vector does not match the dimension of the index it targets."""

    def __init__(self, expected: int, actual: int):
        super().__init__(
            f"Embedding dimension mismatch: expected {expected}, got {actual}"
        )
        self.expected = expected
        self.actual = actual


class EmbeddingServiceError(RagError):
    """The embedding service failed or returned an unusable response."""


class GenerationServiceError(RagError):
    """The generation model call failed."""


class IndexNotFoundError(RagError):
    """No persisted index exists at the given location."""


class IndexCorruptError(RagError):
    """The persisted index exists but cannot be read back."""


class UnsupportedFileTypeError(RagError):
    """No text extractor is registered for the file extension."""


class DocumentParseError(RagError):
    """A document of a supported type could not be decoded or parsed."""
