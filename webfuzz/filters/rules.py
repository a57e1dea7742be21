"""The fixed rule vocabulary used by matchers and filters.

Value syntax:
    status, size, words, lines   "200,204,300-399" ("all" for status)
    time                         ">150" or "<150" (milliseconds)
    regex                        Python regular expression, searched in the
                                 response header block and body
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Tuple

from webfuzz.core.errors import DecisionError
from webfuzz.core.models import Response


class RuleKind(str, Enum):
    STATUS = "status"
    SIZE = "size"
    WORDS = "words"
    LINES = "lines"
    TIME = "time"
    REGEX = "regex"


_NUMERIC = {
    RuleKind.STATUS: lambda r: r.status,
    RuleKind.SIZE: lambda r: r.content_length,
    RuleKind.WORDS: lambda r: r.words,
    RuleKind.LINES: lambda r: r.lines,
}


def parse_ranges(value: str) -> List[Tuple[int, int]]:
    """'200,300-399' -> [(200, 200), (300, 399)]."""
    out = []
    for part in value.split(","):
        part = part.strip()
        if not part:
            continue
        lo, sep, hi = part.partition("-")
        try:
            a = int(lo)
            b = int(hi) if sep else a
        except ValueError:
            raise DecisionError(f"Invalid range value {part!r}") from None
        if b < a:
            raise DecisionError(f"Invalid range {part!r}: upper bound below lower")
        out.append((a, b))
    if not out:
        raise DecisionError(f"Empty value {value!r}")
    return out


@dataclass(frozen=True)
class Rule:
    kind: RuleKind
    value: str
    _compiled: Any = field(default=None, compare=False, repr=False)

    @classmethod
    def parse(cls, kind, value) -> "Rule":
        try:
            kind = RuleKind(kind)
        except ValueError:
            raise DecisionError(
                f"Unknown rule type {kind!r}, valid: "
                f"{', '.join(k.value for k in RuleKind)}") from None
        value = str(value).strip()
        if kind == RuleKind.REGEX:
            try:
                compiled = re.compile(value)
            except re.error as exc:
                raise DecisionError(f"Invalid regex {value!r}: {exc}") from None
        elif kind == RuleKind.TIME:
            compiled = _parse_time(value)
        elif kind == RuleKind.STATUS and value.lower() == "all":
            compiled = "all"
        else:
            compiled = parse_ranges(value)
        return cls(kind, value, compiled)

    def matches(self, resp: Response) -> bool:
        if self.kind == RuleKind.REGEX:
            haystack = resp.header_block() + "\n\n" + resp.text
            return self._compiled.search(haystack) is not None
        if self.kind == RuleKind.TIME:
            op, limit = self._compiled
            ms = resp.duration * 1000
            return ms > limit if op == ">" else ms < limit
        if self._compiled == "all":
            return True
        n = _NUMERIC[self.kind](resp)
        return any(a <= n <= b for a, b in self._compiled)

    def __str__(self):
        return f"{self.kind.value}:{self.value}"


def _parse_time(value: str) -> Tuple[str, float]:
    if len(value) < 2 or value[0] not in "<>":
        raise DecisionError(
            f"Invalid time value {value!r}, expected '>N' or '<N' (milliseconds)")
    try:
        return value[0], float(value[1:])
    except ValueError:
        raise DecisionError(f"Invalid time value {value!r}") from None
