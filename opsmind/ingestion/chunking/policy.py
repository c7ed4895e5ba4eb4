from dataclasses import dataclass

from ...exceptions import InvalidPolicyError


@dataclass(frozen=True)
class ChunkingPolicy:
    """Window size and overlap for fixed-size chunking.

    Attributes:
        chunk_size: Maximum characters per chunk.
        overlap: Characters shared between consecutive chunks.
    """
    chunk_size: int = 800
    overlap: int = 100

    def __post_init__(self):
        if not isinstance(self.chunk_size, int) or self.chunk_size <= 0:
            raise InvalidPolicyError(
                f"chunk_size must be a positive integer, got {self.chunk_size!r}"
            )
        if not isinstance(self.overlap, int) or self.overlap < 0:
            raise InvalidPolicyError(
                f"overlap must be a non-negative integer, got {self.overlap!r}"
            )
        if self.overlap >= self.chunk_size:
            raise InvalidPolicyError(
                f"overlap ({self.overlap}) must be less than chunk_size ({self.chunk_size})"
            )

    @property
    def stride(self) -> int:
        """Distance between the starts of consecutive windows."""
        return self.chunk_size - self.overlap
