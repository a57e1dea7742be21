from webfuzz.core.models import PositionTuple
from webfuzz.core.template import Materializer, canonical_header_key, dump
from webfuzz.inputs.generator import Generator
from webfuzz.inputs.wordlist import Wordlist


def test_canonical_header_key():
    assert canonical_header_key("content-type") == "Content-Type"
    assert canonical_header_key("X-FORWARDED-FOR") == "X-Forwarded-For"
    assert canonical_header_key("weird header") == "weird header"


def test_keyword_substitution_everywhere():
    p = Wordlist(["admin"], keyword="FUZZ")
    m = Materializer("GET", "http://t/FUZZ?q=FUZZ", {"x-user": "FUZZ"},
                     b"name=FUZZ", [p])
    req = m.materialize(PositionTuple(index=0, values={"FUZZ": b"admin"}))
    assert req.url == "http://t/admin?q=admin"
    assert req.headers == {"X-User": "admin"}
    assert req.body == b"name=admin"
    assert req.index == 0
    assert req.inputs == {"FUZZ": b"admin"}


def test_keyword_in_header_name_is_not_canonicalized():
    p = Wordlist(["abc"], keyword="HFUZZ")
    m = Materializer("GET", "http://t/", {"x-HFUZZ-id": "1", "accept": "*/*"},
                     b"", [p])
    req = m.materialize(PositionTuple(index=0, values={"HFUZZ": b"abc"}))
    assert req.headers == {"x-abc-id": "1", "Accept": "*/*"}


def test_content_length_header_dropped():
    m = Materializer("POST", "http://t/FUZZ", {"Content-Length": "12"}, b"",
                     [Wordlist(["a"])])
    assert m.headers == {}


def test_encoder_applied_before_substitution():
    p = Wordlist(["a b/c"], keyword="FUZZ", encoders="urlencode")
    m = Materializer("GET", "http://t/FUZZ", {}, b"", [p])
    req = m.materialize(PositionTuple(index=0, values={"FUZZ": b"a b/c"}))
    assert req.url == "http://t/a%20b%2Fc"
    # the raw value is what gets reported
    assert req.inputs["FUZZ"] == b"a b/c"


def test_encoder_chain():
    p = Wordlist(["<a>"], encoders="htmlencode b64encode")
    assert p.encode(b"<a>") == b"Jmx0O2EmZ3Q7"


def test_marker_mode_fills_active_occurrence_only():
    p = Wordlist(list("wxyz"), template="§")
    m = Materializer("GET", "http://t/§/§", {}, b"", [p], marker="§")
    gen = Generator("sniper", [p], markers=2)
    req = m.materialize(gen.tuple_at(5))
    assert req.url == "http://t//x"
    req = m.materialize(gen.tuple_at(2))
    assert req.url == "http://t/y/"


def test_marker_numbering_spans_headers_and_body():
    p = Wordlist(["v"], template="§")
    m = Materializer("POST", "http://t/§", {"X-A": "§"}, b"k=\xc2\xa7", [p], marker="§")
    got = [m.materialize(PositionTuple(index=i, values={"FUZZ": b"v"}, marker=i))
           for i in range(3)]
    assert (got[0].url, got[0].headers["X-A"], got[0].body) == ("http://t/v", "", b"k=")
    assert (got[1].url, got[1].headers["X-A"], got[1].body) == ("http://t/", "v", b"k=")
    assert (got[2].url, got[2].headers["X-A"], got[2].body) == ("http://t/", "", b"k=v")


def test_materialized_request_recovers_its_index():
    a = Wordlist(["alpha", "beta", "gamma"], keyword="W1")
    b = Wordlist(["one", "two"], keyword="W2")
    gen = Generator("clusterbomb", [a, b])
    m = Materializer("GET", "http://t/W1/W2", {}, b"", [a, b])
    by_url = {m.materialize(p).url: p.index for p in gen.positions()}
    for i in range(gen.total()):
        req = m.materialize(gen.tuple_at(i))
        assert by_url[req.url] == i
        segs = req.url.split("/")[-2:]
        assert (a.value_at(i // 2), b.value_at(i % 2)) == tuple(s.encode() for s in segs)


def test_substitute_all_fills_every_keyword():
    m = Materializer("GET", "http://t/W1/W2", {}, b"",
                     [Wordlist(["x"], keyword="W1"), Wordlist(["y"], keyword="W2")])
    assert m.substitute_all(b"probe").url == "http://t/probe/probe"


def test_dump_renders_raw_request():
    m = Materializer("POST", "http://t/FUZZ?a=1", {"X-Test": "1"}, b"d=FUZZ",
                     [Wordlist(["z"])])
    raw = dump(m.materialize(PositionTuple(index=0, values={"FUZZ": b"z"})))
    assert raw.splitlines()[0] == "POST /z?a=1 HTTP/1.1"
    assert "Host: t" in raw
    assert raw.endswith("\n\nd=z")
