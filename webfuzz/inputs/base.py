"""Abstract base for all input providers."""

from abc import ABC, abstractmethod
from typing import Optional

from webfuzz.inputs.encoders import build_chain

DEFAULT_KEYWORD = "FUZZ"
TEMPLATE_MARKER = "§"


class InputProvider(ABC):
    """Every provider must implement cardinality() and value_at().

    ``value_at`` must not disturb any iteration state: the generator calls it
    out of order from many threads, and interactive replay calls it while a
    job is running.
    """

    name: str = "unnamed"

    def __init__(self, keyword: str = DEFAULT_KEYWORD, template: str = "",
                 encoders: str = ""):
        self.keyword = keyword
        self.template = template      # non-empty only in sniper mode
        self.encoders = encoders
        self._encode = build_chain(encoders)

    # ── public API ──────────────────────────────────────────────

    @abstractmethod
    def cardinality(self) -> Optional[int]:
        """Number of values, or None when unknown (streaming sources)."""
        ...

    @abstractmethod
    def value_at(self, index: int) -> bytes:
        """Raw value at *index*. Raises IndexError past the end."""
        ...

    def encode(self, value: bytes) -> bytes:
        return self._encode(value)

    def drain(self) -> None:
        """Read a streaming source to its end so cardinality() is known."""

    def close(self) -> None:
        """Release external resources. No-op for static sources."""

    # ── shared helpers ──────────────────────────────────────────

    @property
    def placeholder(self) -> str:
        return self.template or self.keyword

    def __repr__(self):
        return (f"{type(self).__name__}(keyword={self.keyword!r}, "
                f"template={self.template!r}, encoders={self.encoders!r})")
