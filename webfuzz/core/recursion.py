"""Recursion controller: turns qualifying results into child job specs."""

from dataclasses import replace
from typing import Iterable, Optional
from urllib.parse import urljoin, urlsplit

from webfuzz.core.models import Response
from webfuzz.inputs.base import DEFAULT_KEYWORD

REDIRECTS = {301, 302, 303, 307, 308}


def child_url(url: str, segment: str, placeholder: str) -> str:
    """'http://h/a/FUZZ' + 'admin' -> 'http://h/a/admin/FUZZ'.

    Whatever precedes the placeholder in the last segment is kept, so
    '/pre-FUZZ' + 'x' gives '/pre-x/FUZZ'.
    """
    base = url[:-len(placeholder)] if url.endswith(placeholder) else url + "/"
    return f"{base}{segment.strip('/')}/{placeholder}"


class RecursionController:
    """
    Strategies:
      default  redirects to the same URL plus a trailing slash, and success
               responses served from a URL ending in '/'
      greedy   every accepted response
    Excluded status codes never qualify. max_depth 0 means unbounded.
    """

    def __init__(self, strategy: str = "default", max_depth: int = 0,
                 exclude_status: Iterable[int] = (), logger=None):
        self.strategy = strategy
        self.max_depth = max_depth
        self.exclude_status = set(exclude_status)
        self.logger = logger

    @classmethod
    def from_spec(cls, spec, logger=None) -> "RecursionController":
        return cls(spec.recursion_strategy, spec.recursion_depth,
                   spec.recursion_exclude_status, logger=logger)

    def depth_allowed(self, depth: int) -> bool:
        return not self.max_depth or depth < self.max_depth

    def should_recurse(self, resp: Response, depth: int) -> bool:
        if not self.depth_allowed(depth):
            return False
        if resp.status in self.exclude_status:
            return False
        if self.strategy == "greedy":
            return True
        return self._is_directory(resp)

    @staticmethod
    def _is_directory(resp: Response) -> bool:
        req = resp.request
        if req is None:
            return False
        if resp.status in REDIRECTS:
            location = next((v for k, v in resp.headers.items()
                             if k.lower() == "location"), "")
            if not location:
                return False
            target = urljoin(req.url, location)
            return urlsplit(target).path == urlsplit(req.url).path + "/"
        if 200 <= resp.status < 300:
            return urlsplit(resp.url or req.url).path.endswith("/")
        return False

    def segment(self, resp: Response, keyword: str) -> Optional[str]:
        req = resp.request
        if req is None or keyword not in req.inputs:
            return None
        value = req.inputs[keyword].decode("utf-8", errors="replace").strip("/")
        return value or None

    def child_spec(self, parent, resp: Response):
        """Child spec for *resp*, or None when it cannot be built."""
        if not self.should_recurse(resp, parent.depth):
            return None
        seg = self.segment(resp, DEFAULT_KEYWORD)
        if seg is None:
            if self.logger:
                self.logger.debug(f"No recursion for index {resp.index}: empty path segment")
            return None
        url = child_url(parent.url, seg, parent.placeholder)
        return replace(parent, url=url, depth=parent.depth + 1)
