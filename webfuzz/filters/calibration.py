"""Auto-calibration.

Probes the target with values that should not exist and turns the
signature of those "not found" responses into filter rules. Calibration for
a key (a host, or the whole job) happens once: the first worker to see the
key runs the probes, any other worker arriving meanwhile waits for it.
"""

import random
import string
import threading
from typing import Callable, Dict, List, Optional

from webfuzz.core.errors import ConfigurationError, ExecutorError
from webfuzz.core.models import BaselineData, Request
from webfuzz.filters.rules import Rule, RuleKind


def rand(n: int = 16) -> str:
    """Random alphanumeric canary string."""
    abc = string.ascii_letters + string.digits
    return "".join(random.choice(abc) for _ in range(n))


def _basic() -> List[str]:
    return [rand(), rand() + "/", ".htaccess" + rand(), "admin" + rand()]


def _advanced() -> List[str]:
    return _basic() + [rand(48), rand() + "/" + rand(), "." + rand(), rand() + ".php"]


STRATEGIES: Dict[str, Callable[[], List[str]]] = {
    "basic": _basic,
    "advanced": _advanced,
}

CUSTOM = "custom"


def validate_strategies(names: List[str], strings: List[str]) -> List[str]:
    errors = []
    for n in names:
        if n not in STRATEGIES and n != CUSTOM:
            errors.append(f"Unknown calibration strategy {n!r}")
        if n == CUSTOM and not strings:
            errors.append("Calibration strategy 'custom' needs calibration strings")
    return errors


def derive_rules(baselines: List[BaselineData]) -> List[Rule]:
    """Size if all probes agree on it, else words, else lines, else nothing."""
    if not baselines:
        return []
    for kind, attr in ((RuleKind.SIZE, "body_length"),
                       (RuleKind.WORDS, "words"),
                       (RuleKind.LINES, "lines")):
        seen = {getattr(b, attr) for b in baselines}
        if len(seen) == 1:
            return [Rule.parse(kind, str(seen.pop()))]
    return []


class Calibrator:
    """
    Owns the calibration baselines of one job.

    Usage:
        cal = Calibrator(send, probe, ["basic"], per_host=True)
        rules = cal.rules_for("example.com")
    """

    def __init__(self, send: Callable[[Request], object],
                 probe: Callable[[bytes], Request],
                 strategies: Optional[List[str]] = None,
                 strings: Optional[List[str]] = None,
                 per_host: bool = False, logger=None):
        self.send = send
        self.probe = probe
        self.strategies = list(strategies or ["basic"])
        self.strings = list(strings or [])
        if self.strings and CUSTOM not in self.strategies:
            self.strategies.append(CUSTOM)
        errors = validate_strategies(self.strategies, self.strings)
        if errors:
            raise ConfigurationError("; ".join(errors))
        self.per_host = per_host
        self.logger = logger
        self.probes_sent = 0

        self._lock = threading.Lock()
        self._gates: Dict[str, threading.Event] = {}
        self._rules: Dict[str, List[Rule]] = {}

    def key(self, host: str) -> str:
        return host if self.per_host else ""

    def rules_for(self, host: str) -> List[Rule]:
        key = self.key(host)
        with self._lock:
            gate = self._gates.get(key)
            owner = gate is None
            if owner:
                gate = self._gates[key] = threading.Event()
        if not owner:
            gate.wait()
            return self._rules.get(key, [])

        rules: List[Rule] = []
        try:
            rules = self._calibrate(host)
        finally:
            with self._lock:
                self._rules[key] = rules
            gate.set()
        return rules

    def baselines(self) -> Dict[str, List[Rule]]:
        with self._lock:
            return {k: list(v) for k, v in self._rules.items()}

    def _values(self, strategy: str) -> List[str]:
        if strategy == CUSTOM:
            return list(self.strings)
        return STRATEGIES[strategy]()

    def _calibrate(self, host: str) -> List[Rule]:
        rules: List[Rule] = []
        for strategy in self.strategies:
            baselines = []
            for value in self._values(strategy):
                req = self.probe(value.encode())
                with self._lock:
                    self.probes_sent += 1
                try:
                    resp = self.send(req)
                except ExecutorError as exc:
                    if self.logger:
                        self.logger.warn(f"Calibration probe failed: {req.url} ({exc})")
                    continue
                baselines.append(BaselineData.from_response(resp))
            derived = derive_rules(baselines)
            for r in derived:
                if r not in rules:
                    rules.append(r)
            if self.logger:
                where = host or "job"
                self.logger.debug(
                    f"Calibration [{strategy}] on {where}: "
                    f"{', '.join(map(str, derived)) or 'no stable signature'}")
        if self.logger and rules:
            self.logger.info(
                f"Auto-calibration filters for {host or 'job'}: "
                f"{', '.join(map(str, rules))}")
        return rules
