"""
Retrieval-Augmented Generation pipeline.

Combines hybrid retrieval with an LLM to answer questions grounded in
the knowledge base. The pipeline:

1. Retrieves ranked chunks with the HybridRetriever.
2. Assembles them into prompts with the ContextAssembler.
3. Streams the answer from the LLM provider.
4. Records the turn in conversation history once the stream is drained,
   and keeps the full answer on the response for citation extraction.

If retrieval is unavailable the question is answered with the
no-context fallback instead of an error.
"""

from dataclasses import dataclass
from typing import Iterator, List, Optional

from ..exceptions import RetrievalUnavailableError
from ..retrieval.hybrid_retriever import HybridRetriever, SearchResult
from ..utils.logger import get_logger
from .citations import Citation, CitationMetadata, citation_metadata, extract_citations
from .context import AssembledContext, ContextAssembler
from .llm import LLMProvider, Message

logger = get_logger(__name__)


@dataclass
class ChatResponse:
    """Response from the chat pipeline.

    Attributes:
        query: The original question.
        answer_stream: Answer text fragments; can be consumed once.
        context: Prompts and sources used for generation.
        answer: Full answer text, set once the stream is drained.
    """
    query: str
    answer_stream: Iterator[str]
    context: AssembledContext
    answer: Optional[str] = None

    @property
    def sources(self) -> List[SearchResult]:
        return self.context.sources

    @property
    def has_context(self) -> bool:
        return self.context.has_context

    @property
    def citations(self) -> List[CitationMetadata]:
        """Citation metadata for the chunks the answer was grounded on."""
        return citation_metadata(self.context.sources)

    @property
    def cited(self) -> List[Citation]:
        """Source markers written into the answer; empty until it is drained."""
        return extract_citations(self.answer)

    def collect(self) -> str:
        """Drain the answer stream and return the full text."""
        text = "".join(self.answer_stream)
        return self.answer if self.answer is not None else text


class ChatPipeline:
    """Retrieval-Augmented Generation pipeline.

    Usage:
        kb = KnowledgeBase(EmbeddingService(), FAISSDocumentStore(384))
        chat = ChatPipeline(kb.retriever, ContextAssembler(), ClaudeProvider())
        response = chat.ask("How many days of annual leave do I get?")
        for fragment in response.answer_stream:
            print(fragment, end="")
    """

    def __init__(
        self,
        retriever: HybridRetriever,
        assembler: ContextAssembler,
        llm_provider: LLMProvider,
        limit: int = 10,
        min_score: float = 0.02,
    ):
        self.retriever = retriever
        self.assembler = assembler
        self.llm = llm_provider
        self.limit = limit
        self.min_score = min_score
        self._history: List[Message] = []

    def ask(
        self,
        question: str,
        include_history: bool = True,
        doc_id: Optional[str] = None,
    ) -> ChatResponse:
        """Answer a question using retrieval-augmented generation.

        Args:
            question: The user's question.
            include_history: Whether to include conversation history.
            doc_id: Restrict retrieval to one document.

        Returns:
            ChatResponse whose answer streams lazily.
        """
        try:
            results = self.retriever.search(
                question, limit=self.limit, min_score=self.min_score, doc_id=doc_id
            )
        except RetrievalUnavailableError as e:
            logger.error("Retrieval unavailable, answering without context: %s", e)
            results = []

        history = list(self._history) if include_history else None
        context = self.assembler.assemble(results, question, history)

        if context.has_context:
            fragments = self.llm.stream(context.user_prompt, system=context.system_prompt)
        else:
            logger.info("No relevant chunks for query: '%s'", question[:50])
            fragments = iter([context.fallback_response])

        response = ChatResponse(query=question, answer_stream=iter(()), context=context)
        response.answer_stream = self._record_turn(response, fragments)
        return response

    def _record_turn(self, response: ChatResponse, fragments: Iterator[str]) -> Iterator[str]:
        """Pass fragments through, then add the finished turn to history."""
        parts = []
        for fragment in fragments:
            parts.append(fragment)
            yield fragment
        answer = "".join(parts)
        response.answer = answer
        self._history.append(Message(role="user", content=response.query))
        self._history.append(Message(role="assistant", content=answer))
        logger.info("Generated answer: %d chars", len(answer))

    def clear_history(self) -> None:
        """Clear conversation history for a fresh start."""
        self._history.clear()
        logger.debug("Conversation history cleared.")

    @property
    def conversation_length(self) -> int:
        """Number of messages in conversation history."""
        return len(self._history)
