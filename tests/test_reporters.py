import threading

from webfuzz.core.models import Request, Response, Result
from webfuzz.reporters.console import BufferedSink, ConsoleSink, Log, MemorySink, Sink


def result(i=0, status=200, location=""):
    req = Request("GET", f"http://t/w{i}", index=i, inputs={"FUZZ": f"w{i}".encode()})
    headers = {"Location": location} if location else {}
    return Result.from_response(Response(status=status, body=b"a b\nc", headers=headers,
                                         duration=0.0125, request=req, url=req.url))


def test_result_from_response():
    r = result(3, status=301, location="/w3/")
    assert (r.index, r.status, r.content_length, r.words, r.lines) == (3, 301, 5, 3, 2)
    assert r.redirect_location == "/w3/"
    assert r.host == "t"
    assert str(r) == "[3] FUZZ=w3 [Status: 301, Size: 5, Words: 3, Lines: 2, Duration: 12ms]"


def test_buffered_sink_forwards_everything_in_order():
    inner = MemorySink()
    sink = BufferedSink(inner)
    for i in range(100):
        sink.report(result(i), {"job_id": 1})
    sink.job_done({"job_id": 1, "reason": "exhausted"})
    sink.close()
    assert [r.index for r in inner.results] == list(range(100))
    assert inner.jobs == [{"job_id": 1, "reason": "exhausted"}]
    assert sink.dropped == 0


def test_buffered_sink_drops_when_consumer_stalls():
    gate = threading.Event()

    class Slow(Sink):
        def __init__(self):
            self.seen = []

        def report(self, res, meta):
            gate.wait()
            self.seen.append(res.index)

    inner = Slow()
    sink = BufferedSink(inner, maxsize=2, put_timeout=0.05)
    for i in range(6):
        sink.report(result(i), {})
    assert sink.dropped >= 1
    gate.set()
    sink.close()
    assert len(inner.seen) + sink.dropped == 6


def test_buffered_sink_survives_failing_inner_sink():
    class Broken(Sink):
        def report(self, res, meta):
            raise RuntimeError("disk full")

    messages = []

    class Recorder(Log):
        def _print(self, line):
            messages.append(line)

    sink = BufferedSink(Broken(), logger=Recorder())
    sink.report(result(), {})
    sink.close()
    assert any("disk full" in m for m in messages)


def test_console_sink_prints_findings(capsys):
    ConsoleSink(Log(verbose=2)).report(result(7, location="/x"), {})
    out = capsys.readouterr().out
    assert "Status: 200" in out
    assert "w7" in out
    assert "-> /x" in out
    assert "http://t/w7" in out


def test_buffered_sink_counts_drops_from_many_threads():
    gate = threading.Event()

    class Stalled(Sink):
        def __init__(self):
            self.seen = 0

        def report(self, res, meta):
            gate.wait()
            self.seen += 1

    inner = Stalled()
    sink = BufferedSink(inner, maxsize=1, put_timeout=0.01)

    def flood():
        for i in range(20):
            sink.report(result(i), {})

    threads = [threading.Thread(target=flood) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    gate.set()
    sink.close()
    assert inner.seen + sink.dropped == 160
