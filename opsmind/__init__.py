"""OpsMind - retrieval-augmented chat over your documents."""

from .config import AppConfig
from .exceptions import (
    EmbeddingError,
    InvalidPolicyError,
    OpsMindError,
    RetrievalUnavailableError,
    StoreError,
)

__version__ = "0.1.0"

__all__ = [
    "AppConfig",
    "OpsMindError",
    "InvalidPolicyError",
    "EmbeddingError",
    "StoreError",
    "RetrievalUnavailableError",
]
