"""
Error taxonomy for the knowledge assistant.

InvalidPolicyError is the caller's fault and is raised eagerly.
EmbeddingError and StoreError describe a failed collaborator call and
are recoverable wherever a second retrieval path can stand in.
RetrievalUnavailableError is only raised once no usable path is left.
"""

from typing import Optional


class OpsMindError(Exception):
    """Base class for all errors raised by this package."""


class InvalidPolicyError(OpsMindError, ValueError):
    """Chunking parameters that would never advance or make no sense."""


class EmbeddingError(OpsMindError):
    """The embedding model could not produce a vector for the input."""


class StoreError(OpsMindError):
    """A document store index or query operation failed."""


class RetrievalUnavailableError(OpsMindError):
    """Both the vector and the keyword search paths failed.

    Attributes:
        vector_error: Exception raised by the vector path.
        keyword_error: Exception raised by the keyword path.
    """

    def __init__(
        self,
        message: str,
        vector_error: Optional[BaseException] = None,
        keyword_error: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.vector_error = vector_error
        self.keyword_error = keyword_error
