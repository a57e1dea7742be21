"""Shared data models for the fuzzing engine."""

from dataclasses import dataclass, field
from typing import Dict, Optional
from urllib.parse import urlsplit


@dataclass(frozen=True)
class PositionTuple:
    """One unit of work: the provider values for a single index."""
    index: int
    values: Dict[str, bytes]       # keyword -> raw (unencoded) value
    marker: Optional[int] = None   # active marker occurrence (sniper only)


@dataclass
class Request:
    """A materialized request, ready for an executor."""
    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    index: int = -1
    inputs: Dict[str, bytes] = field(default_factory=dict)

    @property
    def host(self) -> str:
        return urlsplit(self.url).netloc


@dataclass
class Response:
    """Executor output plus the counters the rules work on."""
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    duration: float = 0.0          # seconds
    request: Optional[Request] = None
    url: str = ""

    @property
    def index(self) -> int:
        return self.request.index if self.request else -1

    @property
    def content_length(self) -> int:
        return len(self.body)

    @property
    def words(self) -> int:
        return len(self.body.split())

    @property
    def lines(self) -> int:
        if not self.body:
            return 0
        return len(self.body.split(b"\n"))

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def header_block(self) -> str:
        return "\n".join(f"{k}: {v}" for k, v in self.headers.items())


@dataclass
class Result:
    """An accepted response, as handed to the reporting sinks."""
    index: int
    inputs: Dict[str, bytes]
    status: int
    content_length: int
    words: int
    lines: int
    duration: float
    url: str
    redirect_location: str = ""
    host: str = ""
    job_id: int = 0
    depth: int = 0

    def __str__(self):
        values = ", ".join(f"{k}={v.decode('utf-8', 'replace')}"
                           for k, v in self.inputs.items())
        return (f"[{self.index}] {values} [Status: {self.status}, "
                f"Size: {self.content_length}, Words: {self.words}, "
                f"Lines: {self.lines}, Duration: {int(self.duration * 1000)}ms]")

    @classmethod
    def from_response(cls, resp: Response, job_id: int = 0, depth: int = 0) -> "Result":
        req = resp.request
        return cls(
            index=resp.index,
            inputs=dict(req.inputs) if req else {},
            status=resp.status,
            content_length=resp.content_length,
            words=resp.words,
            lines=resp.lines,
            duration=resp.duration,
            url=resp.url or (req.url if req else ""),
            redirect_location=_header(resp.headers, "Location"),
            host=req.host if req else "",
            job_id=job_id,
            depth=depth,
        )


@dataclass
class BaselineData:
    """Signature of one calibration probe response."""
    status_code: int = 0
    body_length: int = 0
    words: int = 0
    lines: int = 0
    elapsed: float = 0.0

    @classmethod
    def from_response(cls, resp: Response) -> "BaselineData":
        return cls(resp.status, resp.content_length, resp.words,
                   resp.lines, resp.duration)


@dataclass
class Counters:
    """Live job counters. Mutated only under the owning job's lock."""
    sent: int = 0
    errored: int = 0
    filtered: int = 0
    matched: int = 0
    consecutive_errors: int = 0
    consecutive_403: int = 0

    def snapshot(self) -> "Counters":
        return Counters(self.sent, self.errored, self.filtered, self.matched,
                        self.consecutive_errors, self.consecutive_403)


@dataclass
class Progress:
    """Point-in-time view of a running job for interactive surfaces."""
    job_id: int
    state: str
    position: int
    total: Optional[int]
    counters: Counters
    elapsed: float
    url: str = ""
    depth: int = 0

    @property
    def rate(self) -> float:
        if self.elapsed <= 0:
            return 0.0
        return self.counters.sent / self.elapsed


def _header(headers: Dict[str, str], name: str) -> str:
    for k, v in headers.items():
        if k.lower() == name.lower():
            return v
    return ""
