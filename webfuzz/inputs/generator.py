"""
Input combination generator.

Turns the providers of a job into an addressable sequence of position
tuples. Every tuple is derived from its integer index alone, so addressing is
pure: it can be called out of order, concurrently, or for a one-off replay
without touching the scheduler's cursor.
"""

from typing import Iterator, List, Optional

from webfuzz.core.errors import ConfigurationError
from webfuzz.core.models import PositionTuple
from webfuzz.inputs.base import InputProvider

MODES = ("clusterbomb", "pitchfork", "sniper")


class Generator:
    def __init__(self, mode: str, providers: List[InputProvider],
                 markers: int = 0):
        if mode not in MODES:
            raise ConfigurationError(f"Input mode {mode} not recognized")
        self.mode = mode
        self.providers = list(providers)
        self.markers = markers
        if mode == "sniper":
            # marker positions are laid out by cardinality, which must be
            # fixed before the first index is addressed
            for p in self.providers:
                if p.cardinality() is None:
                    p.drain()
                if p.cardinality() is None:
                    raise ConfigurationError(
                        f"sniper mode needs an input source of known size ({p.name})")

    @classmethod
    def from_spec(cls, spec, markers: int = 0) -> "Generator":
        return cls(spec.input_mode, spec.providers, markers=markers)

    # ---------- sizes ----------

    def total(self) -> Optional[int]:
        """Number of positions, or None when it cannot be known upfront."""
        sizes = [p.cardinality() for p in self.providers]
        if not sizes:
            return 0
        if self.mode == "clusterbomb":
            if any(s is None for s in sizes):
                return None
            n = 1
            for s in sizes:
                n *= s
            return n
        if self.mode == "pitchfork":
            known = [s for s in sizes if s is not None]
            return min(known) if known else None
        # sniper
        if sizes[0] is None:
            return None
        return self.markers * sizes[0]

    # ---------- addressing ----------

    def tuple_at(self, index: int) -> Optional[PositionTuple]:
        """The tuple at *index*, or None once input is exhausted."""
        if index < 0 or not self.providers:
            return None
        try:
            if self.mode == "clusterbomb":
                return self._clusterbomb(index)
            if self.mode == "pitchfork":
                return self._pitchfork(index)
            return self._sniper(index)
        except IndexError:
            return None

    def _clusterbomb(self, index: int) -> PositionTuple:
        # mixed radix, last provider is the least significant digit
        values = {}
        rest = index
        for p in reversed(self.providers[1:]):
            size = p.cardinality()
            if not size:
                raise IndexError(index)
            rest, digit = divmod(rest, size)
            values[p.keyword] = p.value_at(digit)
        first = self.providers[0]
        values[first.keyword] = first.value_at(rest)
        ordered = {p.keyword: values[p.keyword] for p in self.providers}
        return PositionTuple(index=index, values=ordered)

    def _pitchfork(self, index: int) -> PositionTuple:
        total = self.total()
        if total is not None and index >= total:
            raise IndexError(index)
        return PositionTuple(index=index, values={
            p.keyword: p.value_at(index) for p in self.providers})

    def _sniper(self, index: int) -> PositionTuple:
        p = self.providers[0]
        size = p.cardinality()
        if not size:
            raise IndexError(index)
        marker, offset = divmod(index, size)
        if marker >= self.markers:
            raise IndexError(index)
        return PositionTuple(index=index, values={p.keyword: p.value_at(offset)},
                             marker=marker)

    def positions(self, start: int = 0) -> Iterator[PositionTuple]:
        index = start
        while True:
            pos = self.tuple_at(index)
            if pos is None:
                return
            yield pos
            index += 1
