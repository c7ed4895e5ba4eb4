from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

import numpy as np
from sentence_transformers import SentenceTransformer

from ...exceptions import EmbeddingError
from ...utils.logger import get_logger

logger = get_logger(__name__)


class EmbeddingClient(ABC):
    """Maps text to a fixed-dimension vector."""

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Dimension of every vector this client returns."""
        pass

    @abstractmethod
    def embed(self, text: str) -> List[float]:
        """
        Embed a single text.

        Raises:
            EmbeddingError: On any model or transport failure.
        """
        pass

    def embed_many(self, texts: Sequence[str]) -> List[List[float]]:
        """Embed several texts. Fails as a whole if any text fails."""
        return [self.embed(text) for text in texts]


class EmbeddingService(EmbeddingClient):
    """Embedding client backed by a local sentence-transformers model."""

    DEFAULT_MODEL = "all-MiniLM-L6-v2"

    def __init__(self, model_name: Optional[str] = None, batch_size: int = 32):
        """
        Initialize the embedding service.

        Args:
            model_name: Name of the sentence-transformers model to use.
                       Defaults to 'all-MiniLM-L6-v2' (384 dimensions, fast).
            batch_size: Batch size for bulk encoding.
        """
        self.model_name = model_name or self.DEFAULT_MODEL
        self.batch_size = batch_size
        self._model: Optional[SentenceTransformer] = None

    @property
    def model(self) -> SentenceTransformer:
        """Lazy load the model on first use."""
        if self._model is None:
            try:
                self._model = SentenceTransformer(self.model_name)
            except Exception as exc:
                raise EmbeddingError(
                    f"Failed to load embedding model {self.model_name}: {exc}"
                ) from exc
            logger.info("Loaded embedding model: %s", self.model_name)
        return self._model

    @property
    def dimension(self) -> int:
        return self.model.get_sentence_embedding_dimension()

    def embed(self, text: str) -> List[float]:
        """
        Generate a mean-pooled, L2-normalized embedding for one text.

        Args:
            text: Text to embed

        Returns:
            List of floats of length ``dimension``.
        """
        if not isinstance(text, str):
            raise EmbeddingError(f"Cannot embed {type(text).__name__}, expected str")
        try:
            vector = self.model.encode(
                text, convert_to_numpy=True, normalize_embeddings=True
            )
        except EmbeddingError:
            raise
        except Exception as exc:
            raise EmbeddingError(f"Embedding failed: {exc}") from exc

        logger.debug(
            "Generated embedding with %d dimensions for text length %d",
            len(vector), len(text),
        )
        return self._to_list(vector)

    def embed_many(self, texts: Sequence[str]) -> List[List[float]]:
        """
        Generate embeddings for multiple texts in batches.

        Args:
            texts: Texts to embed

        Returns:
            One vector per input text, in input order.
        """
        if not texts:
            return []
        try:
            vectors = self.model.encode(
                list(texts),
                convert_to_numpy=True,
                normalize_embeddings=True,
                batch_size=self.batch_size,
                show_progress_bar=False,
            )
        except EmbeddingError:
            raise
        except Exception as exc:
            raise EmbeddingError(f"Batch embedding failed: {exc}") from exc
        return [self._to_list(v) for v in vectors]

    @staticmethod
    def _to_list(vector: np.ndarray) -> List[float]:
        return [float(x) for x in np.asarray(vector, dtype=np.float32).ravel()]
