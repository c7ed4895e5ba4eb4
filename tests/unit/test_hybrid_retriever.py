"""Unit tests for hybrid retrieval: merging, flooring, ordering and partial failure."""

import threading

import pytest

from opsmind.exceptions import RetrievalUnavailableError, StoreError
from opsmind.ingestion.storage.document_store import ScoredChunk
from opsmind.retrieval import HybridRetriever, MatchSource, SearchResult

from conftest import InMemoryStore, fill_leave_policy, make_chunk


# ─── Fixtures ──────────────────────────────────────────────────────

def add_leave_chunks(store: InMemoryStore) -> InMemoryStore:
    """Add a second document whose chunks match "leave policy" by keyword.

    doc_2_chunk_0 scores 0.5 by keyword and 0.2 by vector. doc_2_chunk_1
    is found by keyword only, at 0.25.
    """
    store.upsert_chunk(make_chunk(
        "doc_2_chunk_0", "Parental leave policy applies from day one.",
        doc_id="doc_2", created_offset=5, embedding=[1.0] * 10,
    ))
    store.upsert_chunk(make_chunk(
        "doc_2_chunk_1", "Sick leave requires a note.",
        doc_id="doc_2", sequence_index=1, created_offset=5, embedding=[1.0] * 10,
    ))
    store.vector_scores["doc_2_chunk_0"] = 0.2
    return store


@pytest.fixture
def keyword_store(leave_policy_store) -> InMemoryStore:
    return add_leave_chunks(leave_policy_store)


@pytest.fixture
def retriever(embedder, leave_policy_store) -> HybridRetriever:
    return HybridRetriever(embedder, leave_policy_store)


@pytest.fixture
def hybrid(embedder, keyword_store) -> HybridRetriever:
    return HybridRetriever(embedder, keyword_store)


def _scored(chunk_id: str, score: float, **kwargs) -> ScoredChunk:
    return ScoredChunk(chunk=make_chunk(chunk_id, **kwargs), score=score)


def _summary(results):
    return [(r.chunk_id, r.relevance_score, r.match_source) for r in results]


class OrderedStore(InMemoryStore):
    """Store whose keyword path finishes before or after its vector path."""

    def __init__(self, keyword_first: bool):
        super().__init__()
        self.keyword_first = keyword_first
        self.completed = []
        self._vector_done = threading.Event()
        self._keyword_done = threading.Event()

    def vector_search(self, vector, k, doc_id=None):
        if self.keyword_first:
            self._keyword_done.wait(timeout=2)
        try:
            return super().vector_search(vector, k, doc_id)
        finally:
            self.completed.append("vector")
            self._vector_done.set()

    def keyword_search(self, text, k, doc_id=None):
        if not self.keyword_first:
            self._vector_done.wait(timeout=2)
        try:
            return super().keyword_search(text, k, doc_id)
        finally:
            self.completed.append("keyword")
            self._keyword_done.set()


# ─── Search Tests ──────────────────────────────────────────────────

class TestHybridSearch:
    """End-to-end behaviour of HybridRetriever.search."""

    def test_leave_policy_scenario(self, retriever, leave_policy_store):
        """Scores 0.5, 0.01 and 0.3 with a 0.02 floor leave two results."""
        assert leave_policy_store.keyword_search("leave policy", 10) == []

        results = retriever.search("leave policy", limit=10, min_score=0.02)

        assert [r.chunk_id for r in results] == ["doc_1_chunk_0", "doc_1_chunk_2"]
        assert [r.relevance_score for r in results] == [0.5, 0.3]
        assert [r.rank for r in results] == [1, 2]
        assert all(r.match_source == MatchSource.VECTOR for r in results)

    def test_both_paths_contribute(self, hybrid):
        results = hybrid.search("leave policy")
        assert _summary(results) == [
            ("doc_1_chunk_0", 0.5, MatchSource.VECTOR),
            ("doc_2_chunk_0", 0.5, MatchSource.MERGED),
            ("doc_1_chunk_2", 0.3, MatchSource.VECTOR),
            ("doc_2_chunk_1", 0.25, MatchSource.KEYWORD),
        ]

    def test_chunk_found_by_both_paths_keeps_higher_score(self, hybrid):
        merged = {r.chunk_id: r for r in hybrid.search("leave policy")}["doc_2_chunk_0"]
        # keyword score 0.5 beats the vector score 0.2
        assert merged.relevance_score == 0.5
        assert merged.match_source == MatchSource.MERGED

    def test_equal_scores_order_by_document_age(self, hybrid):
        results = hybrid.search("leave policy", limit=2)
        assert [r.chunk_id for r in results] == ["doc_1_chunk_0", "doc_2_chunk_0"]

    def test_limit_truncates(self, hybrid):
        results = hybrid.search("leave policy", limit=1)
        assert len(results) == 1
        assert results[0].chunk_id == "doc_1_chunk_0"

    def test_over_fetch_factor_sizes_candidate_requests(self, embedder, leave_policy_store):
        retriever = HybridRetriever(embedder, leave_policy_store, over_fetch_factor=4)
        retriever.search("leave", limit=5)
        assert leave_policy_store.vector_calls[0][1] == 20
        assert leave_policy_store.keyword_calls[0][1] == 20

    def test_doc_id_is_passed_to_both_paths(self, retriever, leave_policy_store):
        retriever.search("leave", doc_id="doc_1")
        assert leave_policy_store.vector_calls[0][2] == "doc_1"
        assert leave_policy_store.keyword_calls[0][2] == "doc_1"

    def test_doc_id_restricts_keyword_hits(self, hybrid):
        results = hybrid.search("leave policy", doc_id="doc_1")
        assert {r.chunk.doc_id for r in results} == {"doc_1"}

    def test_query_is_stripped(self, retriever, leave_policy_store):
        retriever.search("  leave  ")
        assert leave_policy_store.keyword_calls[0][0] == "leave"

    def test_all_results_meet_floor(self, hybrid):
        results = hybrid.search("leave policy", min_score=0.4)
        assert [r.relevance_score for r in results] == [0.5, 0.5]

    def test_empty_store_returns_empty_list(self, embedder, store):
        assert HybridRetriever(embedder, store).search("anything") == []

    def test_repeated_searches_are_identical(self, hybrid):
        first = _summary(hybrid.search("leave policy"))
        second = _summary(hybrid.search("leave policy"))
        assert first == second


class TestCompletionOrder:
    """Results do not depend on which search path finishes first."""

    def _search(self, embedder, keyword_first: bool):
        store = add_leave_chunks(fill_leave_policy(OrderedStore(keyword_first)))
        results = HybridRetriever(embedder, store, max_workers=2).search("leave policy")
        return store.completed, _summary(results)

    def test_keyword_first_and_vector_first_agree(self, embedder):
        keyword_order, keyword_first = self._search(embedder, keyword_first=True)
        vector_order, vector_first = self._search(embedder, keyword_first=False)

        assert keyword_order == ["keyword", "vector"]
        assert vector_order == ["vector", "keyword"]
        assert keyword_first == vector_first
        assert [r[0] for r in keyword_first] == [
            "doc_1_chunk_0", "doc_2_chunk_0", "doc_1_chunk_2", "doc_2_chunk_1",
        ]


class TestValidation:
    """Invalid input is rejected before any path runs."""

    @pytest.mark.parametrize("query", ["", "   ", None])
    def test_blank_query(self, retriever, query):
        with pytest.raises(ValueError, match="non-empty"):
            retriever.search(query)

    @pytest.mark.parametrize("limit", [0, -1, 101])
    def test_limit_out_of_range(self, retriever, limit):
        with pytest.raises(ValueError, match="Limit"):
            retriever.search("leave", limit=limit)

    @pytest.mark.parametrize("min_score", [-0.1, 1.1])
    def test_min_score_out_of_range(self, retriever, min_score):
        with pytest.raises(ValueError, match="Minimum score"):
            retriever.search("leave", min_score=min_score)

    def test_validation_happens_before_searching(self, retriever, leave_policy_store):
        with pytest.raises(ValueError):
            retriever.search("leave", limit=0)
        assert leave_policy_store.vector_calls == []
        assert leave_policy_store.keyword_calls == []

    def test_boundaries_accepted(self, retriever):
        retriever.search("leave", limit=100, min_score=0.0)
        retriever.search("leave", limit=1, min_score=1.0)

    def test_invalid_constructor_arguments(self, embedder, store):
        with pytest.raises(ValueError):
            HybridRetriever(embedder, store, over_fetch_factor=0)
        with pytest.raises(ValueError):
            HybridRetriever(embedder, store, max_workers=0)


class TestPartialFailure:
    """Either path may fail alone without failing the query."""

    def test_vector_store_failure_falls_back_to_keyword(self, hybrid, keyword_store):
        keyword_store.fail_vector = True
        assert _summary(hybrid.search("leave policy")) == [
            ("doc_2_chunk_0", 0.5, MatchSource.KEYWORD),
            ("doc_2_chunk_1", 0.25, MatchSource.KEYWORD),
        ]

    def test_embedding_failure_falls_back_to_keyword(self, embedder, hybrid):
        embedder.broken = True
        results = hybrid.search("leave policy")
        assert [r.match_source for r in results] == [MatchSource.KEYWORD, MatchSource.KEYWORD]

    def test_keyword_failure_falls_back_to_vector(self, hybrid, keyword_store):
        keyword_store.fail_keyword = True
        results = hybrid.search("leave policy")
        assert [r.relevance_score for r in results] == [0.5, 0.3, 0.2]
        assert all(r.match_source == MatchSource.VECTOR for r in results)

    def test_both_paths_failing_raises(self, embedder, retriever, leave_policy_store):
        embedder.broken = True
        leave_policy_store.fail_keyword = True
        with pytest.raises(RetrievalUnavailableError) as exc_info:
            retriever.search("leave policy")
        assert exc_info.value.vector_error is not None
        assert isinstance(exc_info.value.keyword_error, StoreError)

    def test_no_results_is_not_an_error(self, retriever, leave_policy_store):
        leave_policy_store.fail_vector = True
        assert retriever.search("quarterly revenue") == []


class TestMerge:
    """Tests for HybridRetriever.merge."""

    def test_higher_score_wins_for_shared_chunk(self):
        merged = HybridRetriever.merge([_scored("a", 0.4)], [_scored("a", 0.9)])
        assert len(merged) == 1
        assert merged[0].relevance_score == 0.9
        assert merged[0].match_source == MatchSource.MERGED

    def test_disjoint_hits_keep_their_source(self):
        merged = HybridRetriever.merge([_scored("a", 0.4)], [_scored("b", 0.2)])
        sources = {r.chunk_id: r.match_source for r in merged}
        assert sources == {"a": MatchSource.VECTOR, "b": MatchSource.KEYWORD}

    def test_no_duplicate_chunk_ids(self):
        merged = HybridRetriever.merge(
            [_scored("a", 0.4), _scored("b", 0.3)],
            [_scored("b", 0.1), _scored("c", 0.2), _scored("a", 0.5)],
        )
        ids = [r.chunk_id for r in merged]
        assert sorted(ids) == ["a", "b", "c"]

    def test_empty_inputs(self):
        assert HybridRetriever.merge([], []) == []


class TestRank:
    """Tests for flooring, ordering and truncation."""

    def _result(self, chunk_id, score, **kwargs) -> SearchResult:
        return SearchResult(
            chunk=make_chunk(chunk_id, **kwargs),
            relevance_score=score,
            match_source=MatchSource.VECTOR,
        )

    def test_sorted_by_descending_score(self):
        ranked = HybridRetriever.rank(
            [self._result("a", 0.2), self._result("b", 0.9), self._result("c", 0.5)],
            min_score=0.0, limit=10,
        )
        assert [r.chunk_id for r in ranked] == ["b", "c", "a"]

    def test_floor_is_inclusive(self):
        ranked = HybridRetriever.rank([self._result("a", 0.02)], min_score=0.02, limit=10)
        assert len(ranked) == 1

    def test_ties_break_by_document_order_then_position(self):
        results = [
            self._result("later_doc", 0.5, doc_id="d2", created_offset=10),
            self._result("second", 0.5, doc_id="d1", sequence_index=1),
            self._result("first", 0.5, doc_id="d1", sequence_index=0),
        ]
        ranked = HybridRetriever.rank(results, min_score=0.0, limit=10)
        assert [r.chunk_id for r in ranked] == ["first", "second", "later_doc"]

    def test_ranks_are_one_based_and_contiguous(self):
        ranked = HybridRetriever.rank(
            [self._result(str(i), i / 10) for i in range(5)], min_score=0.0, limit=3
        )
        assert [r.rank for r in ranked] == [1, 2, 3]
