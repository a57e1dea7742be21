import pytest

from webfuzz.core.errors import DecisionError
from webfuzz.core.models import Response
from webfuzz.filters.pipeline import Pipeline
from webfuzz.filters.rules import Rule, RuleKind, parse_ranges


def resp(status=200, body=b"hello world\nsecond line", duration=0.05, headers=None):
    return Response(status=status, body=body, duration=duration,
                    headers=headers or {"Server": "nginx"})


def test_parse_ranges():
    assert parse_ranges("200,300-399") == [(200, 200), (300, 399)]
    with pytest.raises(DecisionError):
        parse_ranges("300-200")
    with pytest.raises(DecisionError):
        parse_ranges("x")


@pytest.mark.parametrize("kind,value,expected", [
    ("status", "200-299", True),
    ("status", "404", False),
    ("status", "all", True),
    ("size", "23", True),
    ("words", "4", True),
    ("lines", "2", True),
    ("lines", "1", False),
    ("time", ">10", True),
    ("time", "<10", False),
    ("regex", "second", True),
    ("regex", "Server: nginx", True),
    ("regex", "^missing$", False),
])
def test_rule_vocabulary(kind, value, expected):
    assert Rule.parse(kind, value).matches(resp()) is expected


@pytest.mark.parametrize("kind,value", [
    ("regex", "(unclosed"), ("time", "100"), ("size", ""), ("colour", "red"),
])
def test_malformed_rules(kind, value):
    with pytest.raises(DecisionError):
        Rule.parse(kind, value)


def test_rule_kind_is_closed_enum():
    assert {k.value for k in RuleKind} == {"status", "size", "words", "lines",
                                          "time", "regex"}


def test_no_matchers_accepts_any_completed_response():
    p = Pipeline()
    assert p.decide(resp(status=500))
    assert p.decide(resp(status=404))


def test_matcher_and_mode_needs_all():
    rules = [Rule.parse("status", "200"), Rule.parse("words", "99")]
    assert not Pipeline(rules, matcher_mode="and").decide(resp())
    assert Pipeline(rules, matcher_mode="or").decide(resp())


def test_filter_and_or_modes():
    filters = [Rule.parse("status", "200"), Rule.parse("size", "1")]
    assert Pipeline(filters=filters, filter_mode="and").decide(resp())
    assert not Pipeline(filters=filters, filter_mode="or").decide(resp())


def test_filter_veto_beats_matcher():
    p = Pipeline([Rule.parse("status", "200")], [Rule.parse("regex", "hello")])
    assert p.is_match(resp())
    assert not p.decide(resp())


def test_calibration_rules_veto_with_or_regardless_of_filter_mode():
    # user filters in "and" mode would not veto on their own
    p = Pipeline(filters=[Rule.parse("status", "500"), Rule.parse("size", "23")],
                 filter_mode="and")
    calibration = [Rule.parse("size", "1"), Rule.parse("words", "4")]
    assert p.decide(resp())
    assert not p.decide(resp(), calibration)
    assert p.decide(resp(), [Rule.parse("size", "1")])
