from collections import deque
from typing import Deque, List, Optional
import threading
import time

from webfuzz.core.config import JobSpec
from webfuzz.core.errors import StopReason
from webfuzz.core.executor import Executor
from webfuzz.core.job import Job
from webfuzz.core.models import Response
from webfuzz.core.recursion import RecursionController


class Engine:
    """
    Runs a root job and every child job recursion produces.

    Child specs are queued and run one after another by the same loop, so
    arbitrarily deep recursion never grows the call stack. All jobs share the
    run's cancellation event; each has its own counters and time budget.
    """

    def __init__(self, spec: JobSpec, executor: Executor, sinks=None,
                 replay_executor: Optional[Executor] = None, logger=None):
        self.name = "webfuzz"
        self.version = "1.0.0"
        self.logger = logger
        self.spec = spec.validate(logger=logger)
        self.executor = executor
        self.replay_executor = replay_executor
        self.sinks = list(sinks or [])
        self.recursion = (RecursionController.from_spec(self.spec, logger=logger)
                          if self.spec.recursion else None)

        self.cancel_event = threading.Event()
        self.jobs: List[Job] = []
        self.current: Optional[Job] = None
        self.abort_reason: Optional[StopReason] = None
        self._queue: Deque[JobSpec] = deque()
        self._lock = threading.Lock()

    # ---------- control surface ----------

    def cancel(self) -> None:
        self.cancel_event.set()

    def pause(self) -> None:
        if self.current:
            self.current.pause()

    def resume(self) -> None:
        if self.current:
            self.current.resume()

    def replay(self, index: int) -> Optional[Response]:
        job = self.current or (self.jobs[-1] if self.jobs else None)
        if job is None:
            job = self._make_job(self.spec, None)
        return job.replay(index)

    def queued(self) -> List[str]:
        with self._lock:
            return [s.url for s in self._queue]

    def skip_current(self) -> None:
        """Cancel only the running job; the queue carries on."""
        if self.current:
            self.current.cancel()

    # ---------- run loop ----------

    def run(self) -> List[Job]:
        deadline = time.monotonic() + self.spec.max_time if self.spec.max_time else None
        with self._lock:
            self._queue.append(self.spec)

        try:
            while not self.cancel_event.is_set():
                with self._lock:
                    if not self._queue:
                        break
                    spec = self._queue.popleft()
                job = self._make_job(spec, deadline)
                self.current = job
                try:
                    job.run()
                finally:
                    self.jobs.append(job)
                    self.current = None
                if job.aborted:
                    self.abort_reason = StopReason.ALL
                    break
                if job.reason == StopReason.MAX_TIME:
                    self.abort_reason = StopReason.MAX_TIME
                    break
        finally:
            with self._lock:
                dropped = len(self._queue)
                self._queue.clear()
            self.close()

        if self.cancel_event.is_set() and self.abort_reason is None:
            self.abort_reason = StopReason.CANCELLED
        if self.logger:
            if dropped:
                self.logger.warn(f"Run aborted, {dropped} queued job(s) discarded")
            self.logger.ok(f"Done: {len(self.jobs)} job(s), "
                           f"{sum(j.counters.matched for j in self.jobs)} result(s)")
        return self.jobs

    def close(self) -> None:
        """Release the input providers, stopping any input command process."""
        for p in self.spec.providers:
            p.close()

    def _make_job(self, spec: JobSpec, deadline: Optional[float]) -> Job:
        return Job(spec, self.executor, sinks=self.sinks,
                   replay_executor=self.replay_executor,
                   cancel=self.cancel_event, run_deadline=deadline,
                   on_result=self._on_result, logger=self.logger)

    def _on_result(self, job: Job, resp: Response) -> None:
        if self.recursion is None:
            return
        child = self.recursion.child_spec(job.spec, resp)
        if child is None:
            return
        with self._lock:
            self._queue.append(child)
        if self.logger:
            self.logger.info(f"Adding a new job to the queue: {child.url}")
