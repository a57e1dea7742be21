import httpx
import pytest

from webfuzz.core.errors import ExecutorError
from webfuzz.core.executor import HttpxExecutor
from webfuzz.core.models import Request


def handler(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/down":
        raise httpx.ConnectError("connection refused", request=request)
    if request.url.path == "/old":
        return httpx.Response(301, headers={"Location": "/new/"})
    return httpx.Response(200, headers={"X-Method": request.method},
                          content=b"echo:" + request.content)


def make(**kw):
    return HttpxExecutor(transport=httpx.MockTransport(handler), **kw)


def test_send_maps_response():
    ex = make()
    req = Request("POST", "http://t/api", headers={"X-Test": "1"}, body=b"a=1")
    resp = ex.send(req)
    assert resp.status == 200
    assert resp.body == b"echo:a=1"
    assert resp.headers["x-method"] == "POST"
    assert resp.request is req
    assert resp.url == "http://t/api"
    assert resp.duration >= 0
    ex.close()


def test_redirects_not_followed_by_default():
    resp = make().send(Request("GET", "http://t/old"))
    assert resp.status == 301
    assert resp.headers["location"] == "/new/"


def test_ignore_body():
    assert make(ignore_body=True).send(Request("GET", "http://t/x")).body == b""


def test_transport_failure_raises_executor_error():
    req = Request("GET", "http://t/down")
    with pytest.raises(ExecutorError) as exc:
        make().send(req)
    assert exc.value.request is req
    assert "ConnectError" in str(exc.value)
