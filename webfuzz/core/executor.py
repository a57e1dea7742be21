"""Executors: the seam between the engine and the wire."""

import time
from abc import ABC, abstractmethod
from typing import Optional

import httpx

from webfuzz.core.errors import ExecutorError
from webfuzz.core.models import Request, Response


class Executor(ABC):
    """send() returns a Response for any completed exchange (any status
    code) and raises ExecutorError when no response was obtained."""

    @abstractmethod
    def send(self, request: Request) -> Response:
        ...

    def close(self) -> None:
        pass


class HttpxExecutor(Executor):
    def __init__(self, proxy: Optional[str] = None, timeout: float = 10,
                 follow_redirects: bool = False, verify: bool = False,
                 http2: bool = False, retries: int = 0, ignore_body: bool = False,
                 transport: Optional[httpx.BaseTransport] = None, logger=None):
        self.logger = logger
        self.ignore_body = ignore_body
        if transport is None:
            transport = httpx.HTTPTransport(verify=verify, proxy=proxy,
                                            http2=http2, retries=retries)
        self.client = httpx.Client(transport=transport,
                                   follow_redirects=follow_redirects,
                                   timeout=timeout)

    def send(self, request: Request) -> Response:
        start = time.perf_counter()
        try:
            resp = self.client.request(method=request.method, url=request.url,
                                       headers=request.headers,
                                       content=request.body or None)
        except httpx.HTTPError as exc:
            if self.logger:
                self.logger.debug(f"{request.method} {request.url} failed: {exc}")
            raise ExecutorError(f"{type(exc).__name__}: {exc}", request) from exc
        except (httpx.InvalidURL, ValueError) as exc:
            # malformed URL after substitution
            raise ExecutorError(str(exc), request) from exc
        duration = time.perf_counter() - start
        return Response(
            status=resp.status_code,
            headers=dict(resp.headers),
            body=b"" if self.ignore_body else resp.content,
            duration=duration,
            request=request,
            url=str(resp.url),
        )

    def close(self) -> None:
        self.client.close()
