"""Pytest configuration and shared fakes for webfuzz."""
import threading
import time
from urllib.parse import urlsplit

import pytest

from webfuzz.core.errors import ExecutorError
from webfuzz.core.executor import Executor
from webfuzz.core.models import Response


NOT_FOUND = b"<html><body>Not Found</body></html>"


class FakeExecutor(Executor):
    """
    In-memory executor. Routes on URL path:
        routes = {"/admin": (200, b"welcome", {})}
    Anything else answers 404 with a constant body. Paths listed in *fail*
    raise ExecutorError; fail_all makes every call fail.
    """

    def __init__(self, routes=None, fail=(), fail_all=False, latency=0.0):
        self.routes = dict(routes or {})
        self.fail = set(fail)
        self.fail_all = fail_all
        self.latency = latency
        self.calls = []
        self._lock = threading.Lock()

    def send(self, request):
        with self._lock:
            self.calls.append(request)
        if self.latency:
            time.sleep(self.latency)
        path = urlsplit(request.url).path
        if self.fail_all or path in self.fail:
            raise ExecutorError("connection refused", request)
        status, body, headers = self.routes.get(path, (404, NOT_FOUND, {}))
        return Response(status=status, headers=dict(headers), body=body,
                        duration=0.001, request=request, url=request.url)

    @property
    def paths(self):
        with self._lock:
            return [urlsplit(r.url).path for r in self.calls]


@pytest.fixture
def executor():
    return FakeExecutor()
