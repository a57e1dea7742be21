"""Matcher/filter decision pipeline."""

from typing import Iterable, List, Optional, Sequence, Tuple

from webfuzz.core.errors import DecisionError, Multierror
from webfuzz.core.models import Response
from webfuzz.filters.rules import Rule

MODES = ("and", "or")

RuleSpec = Tuple[str, str]   # (kind, value), e.g. ("status", "200-299")


def _combine(rules: Sequence[Rule], mode: str, resp: Response) -> bool:
    if mode == "and":
        return all(r.matches(resp) for r in rules)
    return any(r.matches(resp) for r in rules)


def compile_rules(specs: Iterable[RuleSpec], errs: Multierror) -> List[Rule]:
    out = []
    for kind, value in specs:
        try:
            out.append(Rule.parse(kind, value))
        except DecisionError as exc:
            errs.add(exc)
    return out


class Pipeline:
    """
    A response is reported iff it satisfies the matcher set and does not
    satisfy the filter set. With no matchers every completed response
    matches; with no filters nothing is vetoed.

    Calibration-derived rules are passed to decide() separately: any one of
    them vetoes the response, whatever the configured filter mode is.
    """

    def __init__(self, matchers: Sequence[Rule] = (), filters: Sequence[Rule] = (),
                 matcher_mode: str = "or", filter_mode: str = "or"):
        self.matchers = list(matchers)
        self.filters = list(filters)
        self.matcher_mode = matcher_mode
        self.filter_mode = filter_mode

    @classmethod
    def from_spec(cls, spec) -> "Pipeline":
        errs = Multierror()
        for name, mode in (("matcher", spec.matcher_mode), ("filter", spec.filter_mode)):
            if mode not in MODES:
                errs.add(DecisionError(
                    f"Unrecognized {name} mode: {mode}, valid values are: and, or"))
        matchers = compile_rules(spec.matchers, errs)
        filters = compile_rules(spec.filters, errs)
        errs.raise_if_any()
        return cls(matchers, filters, spec.matcher_mode, spec.filter_mode)

    def is_match(self, resp: Response) -> bool:
        if not self.matchers:
            return True
        return _combine(self.matchers, self.matcher_mode, resp)

    def is_filtered(self, resp: Response) -> bool:
        if not self.filters:
            return False
        return _combine(self.filters, self.filter_mode, resp)

    def decide(self, resp: Response,
               calibration: Optional[Sequence[Rule]] = None) -> bool:
        if not self.is_match(resp):
            return False
        if self.is_filtered(resp):
            return False
        if calibration and any(r.matches(resp) for r in calibration):
            return False
        return True
