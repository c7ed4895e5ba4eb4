"""
Context assembly for grounded answer generation.

Turns the retriever's ranked chunks, the user's question and recent
conversation history into the system and user prompts sent to the LLM.
Chunks are used in exactly the order the retriever ranked them; this
stage only applies the character budget.
"""

import math
from dataclasses import dataclass, field
from typing import List, Optional

from ..retrieval.hybrid_retriever import SearchResult
from ..utils.logger import get_logger
from .llm import Message

logger = get_logger(__name__)


_DEFAULT_SYSTEM_PROMPT = """You are OpsMind, a document assistant that answers questions using only the provided document excerpts.

Rules:
1. Use only information from the provided excerpts. Never invent information.
2. Cite sources after factual statements using [Source: file name, Page X].
3. Start with a direct answer. Use bullet points for complex information.
4. If the excerpts do not contain the answer, say: "Based on available documents, I cannot find specific information about [topic]." """

_FALLBACK_RESPONSE = """I couldn't find specific information about your question in the available documents.

You could try:
1. Rephrasing your question with different keywords
2. Searching for a related term
3. Checking that the relevant documents have been uploaded"""

# Below this many remaining characters a partial chunk is not worth including
_MIN_PARTIAL_CHARS = 100


def estimate_tokens(text: Optional[str]) -> int:
    """Rough token estimate: one token per four characters."""
    return math.ceil(len(text or "") / 4)


def trim_history(
    messages: List[Message], max_messages: int, max_tokens: int
) -> List[Message]:
    """Keep the most recent messages that fit both limits, oldest first."""
    if max_messages <= 0 or max_tokens <= 0:
        return []
    recent = messages[-max_messages:]
    kept: List[Message] = []
    total = 0
    for message in reversed(recent):
        tokens = estimate_tokens(message.content)
        if total + tokens > max_tokens:
            break
        kept.insert(0, message)
        total += tokens
    return kept


@dataclass
class AssembledContext:
    """Prompts and metadata for one generation request.

    Attributes:
        has_context: True iff retrieval returned at least one chunk.
        system_prompt: Instructions for the model.
        user_prompt: Question, context and history. The bare question
            when there is no context.
        fallback_response: Canned answer used when there is no context.
        sources: Results whose text made it into the prompt, in order.
    """
    has_context: bool
    system_prompt: str
    user_prompt: str
    fallback_response: Optional[str] = None
    sources: List[SearchResult] = field(default_factory=list)

    @property
    def chunk_count(self) -> int:
        return len(self.sources)

    @property
    def source_files(self) -> List[str]:
        return list(dict.fromkeys(r.chunk.file_name for r in self.sources))

    @property
    def pages(self) -> List[int]:
        return sorted({page for r in self.sources for page in r.page_references})


class ContextAssembler:
    """Builds prompts from ranked chunks within a character budget.

    Attributes:
        system_prompt: System prompt sent with every request.
        max_context_chars: Character budget for the chunk context.
        max_history_messages: Most recent messages carried over.
        max_history_tokens: Estimated token budget for carried messages.
    """

    def __init__(
        self,
        system_prompt: Optional[str] = None,
        max_context_chars: int = 8000,
        max_history_messages: int = 3,
        max_history_tokens: int = 4000,
    ):
        if max_context_chars < 2 * _MIN_PARTIAL_CHARS:
            raise ValueError(
                f"max_context_chars must be at least {2 * _MIN_PARTIAL_CHARS}, "
                f"got {max_context_chars}"
            )
        self.system_prompt = system_prompt or _DEFAULT_SYSTEM_PROMPT
        self.max_context_chars = max_context_chars
        self.max_history_messages = max_history_messages
        self.max_history_tokens = max_history_tokens

    def assemble(
        self,
        ranked_chunks: List[SearchResult],
        query: str,
        history: Optional[List[Message]] = None,
    ) -> AssembledContext:
        """Build the prompts for answering ``query``.

        Args:
            ranked_chunks: Retrieval results in ranked order.
            query: The user's question.
            history: Earlier conversation messages, oldest first.

        Returns:
            AssembledContext; ``has_context`` is False when there are no chunks.
        """
        if not ranked_chunks:
            return AssembledContext(
                has_context=False,
                system_prompt=self.system_prompt,
                user_prompt=query,
                fallback_response=_FALLBACK_RESPONSE,
            )

        context, used = self._format_context(ranked_chunks)
        carried = trim_history(
            history or [], self.max_history_messages, self.max_history_tokens
        )
        logger.debug(
            "Assembled context: %d/%d chunks, %d chars, %d history messages",
            len(used), len(ranked_chunks), len(context), len(carried),
        )

        return AssembledContext(
            has_context=True,
            system_prompt=self.system_prompt,
            user_prompt=self._build_prompt(query, context, carried),
            sources=used,
        )

    def _format_context(self, results: List[SearchResult]):
        """Format chunks in order until the character budget runs out."""
        parts = []
        used = []
        total_chars = 0

        for i, r in enumerate(results, 1):
            chunk_text = (
                f"--- DOCUMENT {i}: {r.chunk.get_citation()} "
                f"(relevance: {r.relevance_score:.3f}) ---\n"
                f"{r.chunk.content.strip()}\n"
            )

            if total_chars + len(chunk_text) > self.max_context_chars:
                remaining = self.max_context_chars - total_chars
                if remaining > _MIN_PARTIAL_CHARS:
                    parts.append(chunk_text[:remaining] + "\n[truncated]")
                    used.append(r)
                break

            parts.append(chunk_text)
            used.append(r)
            total_chars += len(chunk_text)

        return "\n".join(parts), used

    @staticmethod
    def _build_prompt(question: str, context: str, history: List[Message]) -> str:
        prompt = f"Context from the knowledge base:\n\n{context}\n\n---\n\n"
        if history:
            lines = "\n".join(
                f"{'User' if m.role == 'user' else 'Assistant'}: {m.content}"
                for m in history
            )
            prompt += f"Conversation so far:\n{lines}\n\n---\n\n"
        prompt += f"Question: {question}\n\nPlease answer based on the context above."
        return prompt
