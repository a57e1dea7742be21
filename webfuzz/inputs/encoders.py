"""Named value transforms applied to provider values before substitution.

Encoders are chained with spaces: ``"urlencode b64encode"`` url-encodes
first, then base64-encodes the result.
"""

import base64
import hashlib
import html
from typing import Callable, Dict, List
from urllib.parse import quote

from webfuzz.core.errors import ConfigurationError

Encoder = Callable[[bytes], bytes]


def _urlencode(v: bytes) -> bytes:
    return quote(v, safe="").encode()


def _doubleurlencode(v: bytes) -> bytes:
    return _urlencode(_urlencode(v))


def _b64decode(v: bytes) -> bytes:
    try:
        return base64.b64decode(v)
    except ValueError:
        return v


def _hexdecode(v: bytes) -> bytes:
    try:
        return bytes.fromhex(v.decode())
    except ValueError:
        return v


def _htmlencode(v: bytes) -> bytes:
    return html.escape(v.decode("utf-8", "replace"), quote=True).encode()


def _digest(name: str) -> Encoder:
    return lambda v: hashlib.new(name, v).hexdigest().encode()


ENCODERS: Dict[str, Encoder] = {
    "urlencode": _urlencode,
    "doubleurlencode": _doubleurlencode,
    "b64encode": base64.b64encode,
    "b64decode": _b64decode,
    "htmlencode": _htmlencode,
    "hexencode": lambda v: v.hex().encode(),
    "hexdecode": _hexdecode,
    "md5": _digest("md5"),
    "sha1": _digest("sha1"),
    "sha256": _digest("sha256"),
}


def identity(v: bytes) -> bytes:
    return v


def build_chain(spec: str) -> Encoder:
    """Turn ``"name1 name2"`` into a single callable. Empty spec = identity."""
    names = spec.split() if spec else []
    if not names:
        return identity
    unknown = [n for n in names if n not in ENCODERS]
    if unknown:
        raise ConfigurationError(
            f"Unknown encoder(s): {', '.join(unknown)}. "
            f"Available: {', '.join(sorted(ENCODERS))}")
    funcs: List[Encoder] = [ENCODERS[n] for n in names]

    def chain(v: bytes) -> bytes:
        for f in funcs:
            v = f(v)
        return v
    return chain
