"""Integration tests for the full ingestion and retrieval pipeline."""

import pytest

pytest.importorskip("faiss")
pytest.importorskip("sentence_transformers")

from opsmind.ingestion import ChunkingPolicy, EmbeddingService, FAISSDocumentStore  # noqa: E402
from opsmind.knowledge_base import KnowledgeBase  # noqa: E402
from opsmind.rag import ContextAssembler  # noqa: E402

HANDBOOK_PAGES = [
    (1, "Employees receive 25 days of annual leave per calendar year. "
        "Leave requests must be submitted to your manager two weeks in advance."),
    (2, "Travel expenses are reimbursed within 30 days when receipts are attached. "
        "Hotel costs are capped at 150 euros per night."),
    (3, "Passwords must be rotated every 90 days and may not be reused."),
]


class TestIngestionPipeline:
    """Integration tests with the real embedding model and FAISS index."""

    @pytest.fixture(scope="class")
    def embedder(self):
        return EmbeddingService()

    @pytest.fixture
    def kb(self, embedder, temp_index_dir):
        kb = KnowledgeBase(
            embedder=embedder,
            store=FAISSDocumentStore(embedding_dim=384),
            policy=ChunkingPolicy(chunk_size=200, overlap=40),
            index_path=str(temp_index_dir / "handbook"),
        )
        kb.ingest_text("", file_name="handbook.pdf", doc_id="handbook", pages=HANDBOOK_PAGES)
        return kb

    def test_full_pipeline(self, kb):
        assert kb.size > 1
        assert kb.count_chunks({"has_embedding": True}) == kb.size

        results = kb.search("How many vacation days do I get?", limit=3)
        assert results
        assert any(1 in r.page_references for r in results)
        assert results[0].relevance_score >= results[-1].relevance_score

    def test_context_cites_pages(self, kb):
        results = kb.search("hotel cost limit", limit=2)
        context = ContextAssembler().assemble(results, "hotel cost limit")
        assert context.has_context
        assert "handbook.pdf, Page" in context.user_prompt

    def test_persisted_index_reloads(self, kb, embedder):
        reloaded = KnowledgeBase(
            embedder=embedder,
            store=FAISSDocumentStore(embedding_dim=384),
            index_path=str(kb.index_path),
        )
        assert reloaded.size == kb.size
        assert 3 in reloaded.search("password rotation", limit=1)[0].page_references
