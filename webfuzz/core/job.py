"""
Job runtime: the worker pool that drives one job specification.

Workers share a single cursor. Claiming an index is serialized, so an index
is never dispatched twice and exhaustion is observed once; everything after
the claim (delay, rate limiting, the request itself, the decision) runs
concurrently and may complete out of order.
"""

import itertools
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait, FIRST_COMPLETED
from enum import Enum
from typing import Callable, Dict, Optional

from webfuzz.core.errors import ExecutorError, StopReason
from webfuzz.core.executor import Executor
from webfuzz.core.models import Counters, PositionTuple, Progress, Response, Result
from webfuzz.core.ratelimit import RateLimiter
from webfuzz.core.template import Materializer, dump
from webfuzz.filters.calibration import Calibrator
from webfuzz.filters.pipeline import Pipeline
from webfuzz.inputs.generator import Generator

_POLL = 0.1
_ids = itertools.count(1)


class JobState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    STOPPED = "stopped"
    CANCELLED = "cancelled"


_FINAL_STATE = {
    StopReason.EXHAUSTED: JobState.COMPLETED,
    StopReason.ERRORS: JobState.STOPPED,
    StopReason.FORBIDDEN: JobState.STOPPED,
    StopReason.ALL: JobState.STOPPED,
    StopReason.MAX_TIME: JobState.CANCELLED,
    StopReason.MAX_TIME_JOB: JobState.CANCELLED,
    StopReason.CANCELLED: JobState.CANCELLED,
}


class Job:
    """
    Runs one JobSpec to completion.

    Usage:
        job = Job(spec.validate(), HttpxExecutor(), sinks=[MemorySink()])
        job.run()
        job.state, job.reason, job.counters
    """

    def __init__(self, spec, executor: Executor, sinks=None,
                 replay_executor: Optional[Executor] = None,
                 cancel: Optional[threading.Event] = None,
                 run_deadline: Optional[float] = None,
                 on_result: Optional[Callable[["Job", Response], None]] = None,
                 logger=None):
        self.id = next(_ids)
        self.spec = spec
        self.executor = executor
        self.replay_executor = replay_executor
        self.sinks = list(sinks or [])
        self.cancel_event = cancel or threading.Event()
        self.run_deadline = run_deadline
        self.on_result = on_result
        self.logger = logger

        self.materializer = Materializer.from_spec(spec)
        self.generator = Generator.from_spec(spec, markers=spec.markers())
        self.pipeline = Pipeline.from_spec(spec)
        self.limiter = RateLimiter(spec.rate)
        self.calibrator: Optional[Calibrator] = None
        if spec.calibrating:
            self.calibrator = Calibrator(
                send=executor.send,
                probe=self.materializer.substitute_all,
                strategies=spec.calibration_strategies,
                strings=spec.calibration_strings,
                per_host=spec.calibration_per_host,
                logger=logger)

        self.state = JobState.IDLE
        self.reason: Optional[StopReason] = None
        self.aborted = False          # stop_on_all fired: the whole run ends
        self.counters = Counters()
        self.started_at = 0.0
        self.finished_at = 0.0

        self._lock = threading.Lock()
        self._cursor_lock = threading.Lock()
        self._cursor = 0
        self._exhausted = False
        self._stop = threading.Event()
        self._resume = threading.Event()
        self._resume.set()

    # ---------- control surface ----------

    def pause(self) -> None:
        self._resume.clear()
        if self.logger:
            self.logger.info(f"Job {self.id} paused at position {self.position}")

    def resume(self) -> None:
        self._resume.set()
        if self.logger:
            self.logger.info(f"Job {self.id} resumed")

    @property
    def paused(self) -> bool:
        return not self._resume.is_set()

    def cancel(self) -> None:
        self._halt(StopReason.CANCELLED)

    @property
    def position(self) -> int:
        with self._cursor_lock:
            return self._cursor

    def total(self) -> Optional[int]:
        return self.generator.total()

    def progress(self) -> Progress:
        with self._lock:
            counters = self.counters.snapshot()
        end = self.finished_at or time.monotonic()
        elapsed = end - self.started_at if self.started_at else 0.0
        return Progress(job_id=self.id, state=self.state.value,
                        position=self.position, total=self.total(),
                        counters=counters, elapsed=elapsed,
                        url=self.spec.url, depth=self.spec.depth)

    def request_at(self, index: int):
        """Materialized request for *index*, without touching the cursor."""
        pos = self.generator.tuple_at(index)
        if pos is None:
            return None
        return self.materializer.materialize(pos)

    def replay(self, index: int) -> Optional[Response]:
        """Send the request for *index* once more, outside of the job flow."""
        req = self.request_at(index)
        if req is None:
            return None
        if self.logger:
            self.logger.debug(f"Replaying position {index}:\n{dump(req)}")
        return (self.replay_executor or self.executor).send(req)

    def meta(self) -> Dict:
        with self._lock:
            c = self.counters.snapshot()
        return {
            "job_id": self.id,
            "url": self.spec.url,
            "depth": self.spec.depth,
            "state": self.state.value,
            "reason": self.reason.value if self.reason else None,
            "position": self.position,
            "total": self.total(),
            "sent": c.sent,
            "errored": c.errored,
            "filtered": c.filtered,
            "matched": c.matched,
        }

    # ---------- run loop ----------

    def run(self) -> "Job":
        self.state = JobState.RUNNING
        self.started_at = time.monotonic()
        deadline, deadline_reason = self._deadline()
        if self.logger:
            total = self.total()
            self.logger.info(
                f"Job {self.id} started: {self.spec.method} {self.spec.url} "
                f"[{self.spec.input_mode}, {total if total is not None else '?'} "
                f"positions, {self.spec.threads} threads]")

        error = None
        with ThreadPoolExecutor(max_workers=self.spec.threads,
                                thread_name_prefix=f"webfuzz-job{self.id}") as pool:
            pending = {pool.submit(self._worker) for _ in range(self.spec.threads)}
            while pending:
                done, pending = wait(pending, timeout=_POLL,
                                     return_when=FIRST_COMPLETED)
                for f in done:
                    if f.exception() is not None and error is None:
                        error = f.exception()
                        self._halt(StopReason.CANCELLED)
                if self.cancel_event.is_set():
                    self._halt(StopReason.CANCELLED)
                if deadline is not None and time.monotonic() >= deadline:
                    self._halt(deadline_reason)

        self.finished_at = time.monotonic()
        if error is not None:
            self.state = JobState.CANCELLED
            raise error
        if self.reason is None:
            self.reason = (StopReason.CANCELLED if self.cancel_event.is_set()
                           else StopReason.EXHAUSTED)
        self.state = _FINAL_STATE[self.reason]
        self._finish()
        return self

    def _deadline(self):
        candidates = []
        if self.spec.max_time_job:
            candidates.append((self.started_at + self.spec.max_time_job,
                               StopReason.MAX_TIME_JOB))
        if self.run_deadline is not None:
            candidates.append((self.run_deadline, StopReason.MAX_TIME))
        if not candidates:
            return None, None
        return min(candidates, key=lambda c: c[0])

    def _finish(self) -> None:
        meta = self.meta()
        for s in self.sinks:
            s.job_done(meta)
        if self.logger:
            self.logger.debug(f"Job {self.id} done: {meta}")

    def _halted(self) -> bool:
        return self._stop.is_set()

    def _halt(self, reason: StopReason) -> None:
        with self._lock:
            if self.reason is not None:
                return
            self.reason = reason
        self._stop.set()
        self._resume.set()
        if reason == StopReason.MAX_TIME:
            self.cancel_event.set()
        if (self.spec.stop_on_all
                and reason in (StopReason.ERRORS, StopReason.FORBIDDEN)):
            self.aborted = True
            self.cancel_event.set()
        if self.logger and reason != StopReason.EXHAUSTED:
            self.logger.warn(f"Job {self.id} stopping: {reason.value}")

    def _claim(self) -> Optional[PositionTuple]:
        with self._cursor_lock:
            if self._exhausted:
                return None
            pos = self.generator.tuple_at(self._cursor)
            if pos is None:
                self._exhausted = True
                return None
            self._cursor += 1
            return pos

    def _wait_unpaused(self) -> bool:
        while not self._resume.wait(_POLL):
            if self._halted():
                return False
        return not self._halted()

    # ---------- workers ----------

    def _worker(self) -> None:
        while not self._halted():
            if not self._wait_unpaused():
                return
            pos = self._claim()
            if pos is None:
                return
            req = self.materializer.materialize(pos)
            if self.spec.delay.has_delay and self._stop.wait(self.spec.delay.sample()):
                return
            if not self.limiter.acquire(self._stop):
                return
            calibration = self.calibrator.rules_for(req.host) if self.calibrator else None
            if self.logger:
                self.logger.debug(f"-> [{pos.index}] {req.method} {req.url}")
            try:
                resp = self.executor.send(req)
            except ExecutorError as exc:
                self._record_error(exc)
                continue
            self._handle(resp, calibration)

    def _record_error(self, exc: ExecutorError) -> None:
        with self._lock:
            self.counters.sent += 1
            self.counters.errored += 1
            self.counters.consecutive_errors += 1
            tripped = (self._stop_on_errors
                       and self.counters.consecutive_errors >= self.spec.error_threshold)
        if self.logger:
            self.logger.debug(f"Request error: {exc}")
        if tripped:
            self._halt(StopReason.ERRORS)

    @property
    def _stop_on_errors(self) -> bool:
        return self.spec.stop_on_errors or self.spec.stop_on_all

    @property
    def _stop_on_403(self) -> bool:
        return self.spec.stop_on_403 or self.spec.stop_on_all

    def _handle(self, resp: Response, calibration) -> None:
        accepted = self.pipeline.decide(resp, calibration)
        with self._lock:
            c = self.counters
            c.sent += 1
            c.consecutive_errors = 0
            c.consecutive_403 = c.consecutive_403 + 1 if resp.status == 403 else 0
            if accepted:
                c.matched += 1
            else:
                c.filtered += 1
            tripped = (self._stop_on_403
                       and c.consecutive_403 >= self.spec.forbidden_threshold)
        if tripped:
            self._halt(StopReason.FORBIDDEN)
        if not accepted:
            return

        result = Result.from_response(resp, job_id=self.id, depth=self.spec.depth)
        meta = {"job_id": self.id, "url": self.spec.url, "depth": self.spec.depth}
        for s in self.sinks:
            s.report(result, meta)
        if self.replay_executor is not None:
            self._replay(resp)
        if self.on_result is not None:
            self.on_result(self, resp)

    def _replay(self, resp: Response) -> None:
        try:
            self.replay_executor.send(resp.request)
        except ExecutorError as exc:
            if self.logger:
                self.logger.debug(f"Replay of position {resp.index} failed: {exc}")
