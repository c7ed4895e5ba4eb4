from .embedding_service import EmbeddingClient, EmbeddingService

__all__ = ['EmbeddingClient', 'EmbeddingService']
