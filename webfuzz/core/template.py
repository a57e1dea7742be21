"""Request materializer: binds a position tuple into a concrete Request."""

from typing import Dict, Iterable, List, Tuple
from urllib.parse import urlsplit

from webfuzz.core.models import PositionTuple, Request
from webfuzz.inputs.base import TEMPLATE_MARKER

_STOP_HDRS = {"content-length"}
_TOKEN_CHARS = set("!#$%&'*+-.^_`|~0123456789"
                   "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ")


def canonical_header_key(key: str) -> str:
    """'content-type' -> 'Content-Type'. Keys with non-token chars are kept."""
    key = key.strip()
    if not key or any(c not in _TOKEN_CHARS for c in key):
        return key
    return "-".join(p[:1].upper() + p[1:].lower() for p in key.split("-"))


# ---------- FUZZ helpers ----------

def composed_fields(method: str, url: str, headers: Dict[str, str],
                    body: bytes) -> List[str]:
    """Template parts in the order marker occurrences are numbered."""
    out = [method, url]
    for k, v in headers.items():
        out.append(k)
        out.append(v)
    out.append(body.decode("utf-8", errors="surrogateescape"))
    return out


def keyword_present(keyword: str, fields: Iterable[str]) -> bool:
    return any(keyword in f for f in fields)


def marker_count(marker: str, fields: Iterable[str]) -> int:
    return sum(f.count(marker) for f in fields)


def _apply_keywords(s: str, values: List[Tuple[str, str]]) -> str:
    for kw, val in values:
        if kw in s:
            s = s.replace(kw, val)
    return s


def _apply_marker(s: str, marker: str, value: str, active: int,
                  seen: int) -> Tuple[str, int]:
    """Replace occurrence *active* (global numbering) and blank the rest."""
    parts = s.split(marker)
    if len(parts) == 1:
        return s, seen
    out = [parts[0]]
    for p in parts[1:]:
        out.append(value if seen == active else "")
        out.append(p)
        seen += 1
    return "".join(out), seen


def _to_str(v: bytes) -> str:
    return v.decode("utf-8", errors="surrogateescape")


def _to_bytes(v: str) -> bytes:
    return v.encode("utf-8", errors="surrogateescape")


class Materializer:
    """
    Holds the request template of a job and the providers bound to it.

    Keyword mode replaces every occurrence of each keyword in method, URL,
    header names, header values and body. Marker mode numbers marker
    occurrences across those same fields (in that order) and only fills the
    active one.
    """

    def __init__(self, method: str, url: str, headers: Dict[str, str],
                 body, providers, marker: str = ""):
        self.method = method
        self.url = url
        self.body = body.encode() if isinstance(body, str) else (body or b"")
        self.providers = list(providers)
        self.marker = marker
        self.headers = self._prepare_headers(headers)

    @classmethod
    def from_spec(cls, spec) -> "Materializer":
        marker = TEMPLATE_MARKER if spec.input_mode == "sniper" else ""
        return cls(spec.method, spec.url, spec.headers, spec.data,
                   spec.providers, marker=marker)

    def _prepare_headers(self, headers: Dict[str, str]) -> Dict[str, str]:
        placeholders = [p.placeholder for p in self.providers]
        if self.marker:
            placeholders.append(self.marker)
        out: Dict[str, str] = {}
        for k, v in headers.items():
            if k.lower() in _STOP_HDRS:
                continue
            if any(ph in k for ph in placeholders):
                out[k.strip()] = v.strip()
            else:
                out[canonical_header_key(k)] = v.strip()
        return out

    @property
    def fields(self) -> List[str]:
        return composed_fields(self.method, self.url, self.headers, self.body)

    def materialize(self, pos: PositionTuple) -> Request:
        if self.marker:
            return self._materialize_marker(pos)
        return self._materialize_keywords(pos)

    def _encoded(self, pos: PositionTuple) -> List[Tuple[str, str]]:
        out = []
        for p in self.providers:
            if p.keyword in pos.values:
                out.append((p.keyword, _to_str(p.encode(pos.values[p.keyword]))))
        return out

    def _materialize_keywords(self, pos: PositionTuple) -> Request:
        values = self._encoded(pos)
        headers = {_apply_keywords(k, values): _apply_keywords(v, values)
                   for k, v in self.headers.items()}
        body = _apply_keywords(_to_str(self.body), values)
        return Request(
            method=_apply_keywords(self.method, values),
            url=_apply_keywords(self.url, values),
            headers=headers,
            body=_to_bytes(body),
            index=pos.index,
            inputs=dict(pos.values),
        )

    def _materialize_marker(self, pos: PositionTuple) -> Request:
        values = self._encoded(pos)
        value = values[0][1] if values else ""
        active = pos.marker if pos.marker is not None else -1
        seen = 0

        method, seen = _apply_marker(self.method, self.marker, value, active, seen)
        url, seen = _apply_marker(self.url, self.marker, value, active, seen)
        headers: Dict[str, str] = {}
        for k, v in self.headers.items():
            k2, seen = _apply_marker(k, self.marker, value, active, seen)
            v2, seen = _apply_marker(v, self.marker, value, active, seen)
            headers[k2] = v2
        body, seen = _apply_marker(_to_str(self.body), self.marker, value,
                                   active, seen)
        return Request(method=method, url=url, headers=headers,
                       body=_to_bytes(body), index=pos.index,
                       inputs=dict(pos.values))

    def substitute_all(self, value: bytes, index: int = -1) -> Request:
        """Fill every placeholder with *value*. Used for calibration probes."""
        vals = {p.keyword: value for p in self.providers}
        return self.materialize(PositionTuple(index=index, values=vals,
                                              marker=0 if self.marker else None))


def dump(req: Request) -> str:
    """Raw HTTP/1.1 rendering of a request, for logs and replay output."""
    parts = urlsplit(req.url)
    target = parts.path or "/"
    if parts.query:
        target += "?" + parts.query
    lines = [f"{req.method} {target} HTTP/1.1"]
    if not any(k.lower() == "host" for k in req.headers):
        lines.append(f"Host: {parts.netloc}")
    lines += [f"{k}: {v}" for k, v in req.headers.items()]
    return "\n".join(lines) + "\n\n" + req.body.decode("utf-8", "replace")
