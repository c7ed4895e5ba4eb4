from .document_store import DocumentStore, IndexInfo, ScoredChunk
from .faiss_store import FAISSDocumentStore
from .keyword_scoring import keyword_score

__all__ = ['DocumentStore', 'FAISSDocumentStore', 'IndexInfo', 'ScoredChunk', 'keyword_score']
