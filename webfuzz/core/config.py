"""Job specification and its validation."""

import random
from dataclasses import dataclass, field, replace
from typing import Dict, List, Tuple

from webfuzz.core.errors import ConfigurationError, Multierror
from webfuzz.core.template import composed_fields, keyword_present, marker_count
from webfuzz.filters.calibration import validate_strategies
from webfuzz.filters.pipeline import Pipeline
from webfuzz.inputs.base import DEFAULT_KEYWORD, TEMPLATE_MARKER, InputProvider
from webfuzz.inputs.command import Command
from webfuzz.inputs.generator import MODES
from webfuzz.inputs.wordlist import Wordlist

RECURSION_STRATEGIES = ("default", "greedy")


@dataclass(frozen=True)
class Delay:
    """Fixed (min only) or uniform [min, max] delay, in seconds."""
    min: float = 0.0
    max: float = 0.0

    @classmethod
    def parse(cls, value: str) -> "Delay":
        """'0.1' or '0.1-0.8'."""
        if not value:
            return cls()
        parts = value.split("-")
        msg = ("Delay needs to be either a single float: \"0.1\" or a range "
               "of floats, delimited by dash: \"0.1-0.8\"")
        if len(parts) > 2:
            raise ConfigurationError(msg)
        try:
            lo = float(parts[0])
            hi = float(parts[1]) if len(parts) == 2 else lo
        except ValueError:
            raise ConfigurationError(msg) from None
        return cls(lo, hi)

    @property
    def has_delay(self) -> bool:
        return self.max > 0 or self.min > 0

    @property
    def is_range(self) -> bool:
        return self.max != self.min

    def sample(self) -> float:
        if self.is_range:
            return random.uniform(self.min, self.max)
        return self.min


@dataclass(frozen=True)
class JobSpec:
    url: str
    providers: List[InputProvider]
    method: str = "GET"
    headers: Dict[str, str] = field(default_factory=dict)
    data: bytes = b""
    input_mode: str = "clusterbomb"

    threads: int = 40
    delay: Delay = Delay()
    rate: float = 0
    max_time: float = 0
    max_time_job: float = 0

    stop_on_all: bool = False
    stop_on_errors: bool = False
    error_threshold: int = 5
    stop_on_403: bool = False
    forbidden_threshold: int = 10

    matchers: List[Tuple[str, str]] = field(default_factory=list)
    filters: List[Tuple[str, str]] = field(default_factory=list)
    matcher_mode: str = "or"
    filter_mode: str = "or"

    auto_calibration: bool = False
    calibration_per_host: bool = False
    calibration_strategies: List[str] = field(default_factory=lambda: ["basic"])
    calibration_strings: List[str] = field(default_factory=list)

    recursion: bool = False
    recursion_depth: int = 0
    recursion_strategy: str = "default"
    recursion_exclude_status: List[int] = field(default_factory=list)
    depth: int = 0

    @property
    def calibrating(self) -> bool:
        return (self.auto_calibration or self.calibration_per_host
                or bool(self.calibration_strings))

    @property
    def sniper(self) -> bool:
        return self.input_mode == "sniper"

    @property
    def placeholder(self) -> str:
        return TEMPLATE_MARKER if self.sniper else DEFAULT_KEYWORD

    def fields(self) -> List[str]:
        data = self.data.encode() if isinstance(self.data, str) else self.data
        return composed_fields(self.method, self.url, self.headers, data)

    def markers(self) -> int:
        return marker_count(TEMPLATE_MARKER, self.fields()) if self.sniper else 0

    def validate(self, logger=None) -> "JobSpec":
        """Return the normalized spec, or raise every problem at once.

        Providers whose keyword is missing from the template are dropped with
        a warning; a missing sniper marker is an error.
        """
        errs = Multierror()

        if not self.url:
            errs.add(ConfigurationError("A target URL is required"))
        if self.input_mode not in MODES:
            errs.add(ConfigurationError(
                f"Input mode {self.input_mode} not recognized, "
                f"valid values are: {', '.join(MODES)}"))
        if not self.providers:
            errs.add(ConfigurationError("At least one wordlist or input command is required"))
        if self.threads < 1:
            errs.add(ConfigurationError("Thread count must be at least 1"))
        if self.delay.min < 0 or self.delay.max < self.delay.min:
            errs.add(ConfigurationError(
                "Delay range min and max values need to be non-negative, min <= max"))
        if self.error_threshold < 1 or self.forbidden_threshold < 1:
            errs.add(ConfigurationError("Stop thresholds must be at least 1"))

        if self.sniper:
            self._check_sniper(errs)
        else:
            keywords = [p.keyword for p in self.providers]
            for kw in sorted(set(keywords)):
                if keywords.count(kw) > 1:
                    errs.add(ConfigurationError(
                        f"Keyword {kw} is bound by more than one input provider"))
        if self.input_mode == "clusterbomb":
            for p in self.providers[1:]:
                if p.cardinality() is None:
                    errs.add(ConfigurationError(
                        f"Input provider for {p.keyword} has no known size; only "
                        f"the first provider may be unbounded in clusterbomb mode"))

        try:
            Pipeline.from_spec(self)
        except Multierror as exc:
            errs.add(exc)
        if self.calibrating:
            for msg in validate_strategies(self.calibration_strategies,
                                           self.calibration_strings):
                errs.add(ConfigurationError(msg))

        if self.recursion:
            if not self.url.endswith(self.placeholder):
                errs.add(ConfigurationError(
                    f"When using recursion the URL must end with {self.placeholder}."))
            if self.recursion_strategy not in RECURSION_STRATEGIES:
                errs.add(ConfigurationError(
                    f"Unknown recursion strategy {self.recursion_strategy}"))

        providers = self._present_providers(errs, logger)
        if self.providers and not providers and not errs:
            errs.add(ConfigurationError("No input provider keyword found in the request template"))

        errs.raise_if_any()
        return replace(self, providers=providers)

    def _check_sniper(self, errs: Multierror) -> None:
        wordlists = [p for p in self.providers if isinstance(p, Wordlist)]
        commands = [p for p in self.providers if isinstance(p, Command)]
        if len(wordlists) > 1:
            errs.add(ConfigurationError("sniper mode only supports one wordlist"))
        if len(commands) > 1:
            errs.add(ConfigurationError("sniper mode only supports one input command"))
        if len(self.providers) > 1 and len(wordlists) <= 1 and len(commands) <= 1:
            errs.add(ConfigurationError(
                "sniper mode supports a single input provider at a time"))
        for p in self.providers:
            if p.keyword != DEFAULT_KEYWORD:
                errs.add(ConfigurationError(
                    f"sniper mode does not support {p.name} keywords ({p.keyword})"))
        if keyword_present(DEFAULT_KEYWORD, self.fields()):
            errs.add(ConfigurationError(
                f"{DEFAULT_KEYWORD} keyword defined, but we are using sniper mode."))

    def _present_providers(self, errs: Multierror, logger) -> List[InputProvider]:
        fields = self.fields()
        kept = []
        for p in self.providers:
            if self.sniper or p.template:
                if not marker_count(p.template or TEMPLATE_MARKER, fields):
                    errs.add(ConfigurationError(
                        f"Template {p.template or TEMPLATE_MARKER} defined, but not "
                        f"found in headers, method, URL or POST data."))
                else:
                    kept.append(p)
            elif keyword_present(p.keyword, fields):
                kept.append(p)
            elif logger:
                logger.warn(f"Keyword {p.keyword} defined, but not found in "
                            f"headers, method, URL or POST data.")
        return kept
