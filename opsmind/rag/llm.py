"""
LLM provider abstraction layer.

Defines a common interface for language model providers and implements
the Claude API provider via Anthropic's SDK. Answers are produced as a
stream of text fragments: a lazy, finite iterator that can be consumed
only once.
"""

import os
from dotenv import load_dotenv
load_dotenv()
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterator, List, Optional

from ..utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class Message:
    """A single message in a conversation.

    Attributes:
        role: Either 'user' or 'assistant'.
        content: The message text.
    """
    role: str
    content: str


class LLMProvider(ABC):
    """Abstract base class for LLM providers.

    Implementations must provide stream(), which yields the answer
    as text fragments while it is being generated.
    """

    @abstractmethod
    def stream(
        self,
        prompt: str,
        system: Optional[str] = None,
        history: Optional[List[Message]] = None,
    ) -> Iterator[str]:
        """Stream a response from the LLM.

        Args:
            prompt: The user's current message.
            system: Optional system prompt.
            history: Previous conversation messages.

        Returns:
            Iterator over generated text fragments.
        """
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the provider is configured and ready."""
        pass

    def generate(
        self,
        prompt: str,
        system: Optional[str] = None,
        history: Optional[List[Message]] = None,
    ) -> str:
        """Generate a complete response by draining the stream."""
        return "".join(self.stream(prompt, system=system, history=history))


class ClaudeProvider(LLMProvider):
    """Anthropic Claude API provider.

    Uses the Anthropic Python SDK's streaming Messages API.
    Requires the ANTHROPIC_API_KEY environment variable to be set.

    Attributes:
        model: Claude model identifier (default: claude-sonnet-4-20250514).
        api_key: Anthropic API key (from env or parameter).
    """

    DEFAULT_MODEL = "claude-sonnet-4-20250514"

    def __init__(
        self,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        max_tokens: int = 1024,
        temperature: float = 0.3,
    ):
        self.model = model or self.DEFAULT_MODEL
        self.api_key = api_key or os.environ.get("ANTHROPIC_API_KEY")
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._client = None

    @property
    def client(self):
        """Lazy-initialise the Anthropic client."""
        if self._client is None:
            import anthropic
            self._client = anthropic.Anthropic(api_key=self.api_key)
            logger.info("Initialised Claude provider: %s", self.model)
        return self._client

    def is_available(self) -> bool:
        """Check if the API key is configured."""
        return self.api_key is not None

    def stream(
        self,
        prompt: str,
        system: Optional[str] = None,
        history: Optional[List[Message]] = None,
    ) -> Iterator[str]:
        """Stream a response from the Claude API.

        Nothing is sent until the returned iterator is first advanced.
        """
        if not self.is_available():
            raise ValueError(
                "ANTHROPIC_API_KEY not set. Export it or pass api_key."
            )

        messages = [{"role": m.role, "content": m.content} for m in history or []]
        messages.append({"role": "user", "content": prompt})

        kwargs = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "messages": messages,
        }
        if system:
            kwargs["system"] = system

        return self._stream_text(kwargs)

    def _stream_text(self, kwargs: dict) -> Iterator[str]:
        logger.debug(
            "Claude API stream: %d messages, max_tokens=%d",
            len(kwargs["messages"]), kwargs["max_tokens"],
        )
        with self.client.messages.stream(**kwargs) as stream:
            yield from stream.text_stream
