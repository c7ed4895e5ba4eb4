"""Unit tests for the chat pipeline with a scripted LLM provider."""

from typing import Iterator, List, Optional

import pytest

from opsmind.rag import ChatPipeline, ContextAssembler, LLMProvider, Message
from opsmind.retrieval import HybridRetriever


class ScriptedLLM(LLMProvider):
    """Streams a fixed answer word by word and records every prompt."""

    def __init__(self, answer: str = "You get 25 days of annual leave."):
        self.answer = answer
        self.prompts: List[str] = []
        self.systems: List[Optional[str]] = []

    def stream(self, prompt, system=None, history=None) -> Iterator[str]:
        self.prompts.append(prompt)
        self.systems.append(system)
        words = self.answer.split(" ")
        for i, word in enumerate(words):
            yield word if i == len(words) - 1 else word + " "

    def is_available(self) -> bool:
        return True


@pytest.fixture
def llm() -> ScriptedLLM:
    return ScriptedLLM()


@pytest.fixture
def pipeline(embedder, leave_policy_store, llm) -> ChatPipeline:
    retriever = HybridRetriever(embedder, leave_policy_store)
    return ChatPipeline(retriever, ContextAssembler(), llm)


class TestChatPipeline:
    """Tests for ChatPipeline.ask."""

    def test_answer_streams_in_fragments(self, pipeline):
        response = pipeline.ask("leave policy")
        fragments = list(response.answer_stream)
        assert len(fragments) > 1
        assert "".join(fragments) == "You get 25 days of annual leave."

    def test_response_carries_sources(self, pipeline):
        response = pipeline.ask("leave policy")
        assert response.has_context
        assert [r.chunk_id for r in response.sources] == ["doc_1_chunk_0", "doc_1_chunk_2"]

    def test_llm_receives_context_and_system_prompt(self, pipeline, llm):
        pipeline.ask("leave policy").collect()
        assert "Employees receive 25 days of annual vacation" in llm.prompts[0]
        assert llm.systems[0]

    def test_history_recorded_after_stream_drained(self, pipeline):
        response = pipeline.ask("leave policy")
        assert pipeline.conversation_length == 0
        response.collect()
        assert pipeline.conversation_length == 2

    def test_follow_up_includes_history(self, pipeline, llm):
        pipeline.ask("leave policy").collect()
        pipeline.ask("Can I carry leave over?").collect()
        assert "User: leave policy" in llm.prompts[1]

    def test_include_history_false(self, pipeline, llm):
        pipeline.ask("leave policy").collect()
        pipeline.ask("Can I carry leave over?", include_history=False).collect()
        assert "Conversation so far" not in llm.prompts[1]

    def test_clear_history(self, pipeline):
        pipeline.ask("leave policy").collect()
        pipeline.clear_history()
        assert pipeline.conversation_length == 0

    def test_no_relevant_chunks_uses_fallback(self, pipeline, llm, leave_policy_store):
        leave_policy_store.vector_scores = {}
        response = pipeline.ask("quarterly revenue")
        assert not response.has_context
        assert "couldn't find" in response.collect()
        assert llm.prompts == []

    def test_retrieval_unavailable_uses_fallback(self, pipeline, embedder, leave_policy_store, llm):
        embedder.broken = True
        leave_policy_store.fail_keyword = True
        response = pipeline.ask("leave policy")
        assert not response.has_context
        assert "couldn't find" in response.collect()
        assert llm.prompts == []

    def test_generate_joins_stream(self, llm):
        assert llm.generate("hi") == "You get 25 days of annual leave."


class TestMessage:

    def test_fields(self):
        message = Message(role="user", content="hello")
        assert message.role == "user"
        assert message.content == "hello"


class TestCitations:
    """Citation data exposed on ChatResponse."""

    def test_citation_metadata_follows_sources(self, pipeline):
        response = pipeline.ask("leave policy")
        citations = response.citations
        assert [c.chunk_id for c in citations] == ["doc_1_chunk_0", "doc_1_chunk_2"]
        assert citations[0].citation == "[handbook.pdf]"
        assert citations[0].confidence == 0.5

    def test_cited_sources_available_once_drained(self, embedder, leave_policy_store):
        llm = ScriptedLLM("You get 25 days [Source: handbook.pdf, Page 3].")
        pipeline = ChatPipeline(HybridRetriever(embedder, leave_policy_store), ContextAssembler(), llm)
        response = pipeline.ask("leave policy")
        assert response.answer is None
        assert response.cited == []

        text = response.collect()
        assert response.answer == text
        assert [(c.source, c.pages) for c in response.cited] == [("handbook.pdf", [3])]

    def test_fallback_answer_has_no_citations(self, pipeline, leave_policy_store):
        leave_policy_store.vector_scores = {}
        response = pipeline.ask("quarterly revenue")
        response.collect()
        assert response.citations == []
        assert response.cited == []
