from colorama import init as colorama_init, Fore, Style
from datetime import datetime
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple
import queue
import threading

from webfuzz.core.models import Result

colorama_init(autoreset=True)

_STATUS_COLORS = {2: Fore.GREEN, 3: Fore.BLUE, 4: Fore.YELLOW, 5: Fore.RED}


class Log:
    def __init__(self, verbose: int = 1):
        self.verbose = verbose
        self.PAY = Fore.MAGENTA
        self._lock = threading.Lock()

    def _time(self):
        return datetime.now().strftime("[%H:%M:%S]")

    def _fmt(self, level: str, color: str):
        return f"{self._time()} {color}[{level}]{Style.RESET_ALL}"

    def _print(self, line: str):
        with self._lock:
            print(line)

    def info(self, msg: str):
        if self.verbose >= 1:
            self._print(f"{self._fmt('INFO', Fore.CYAN)} {msg}")

    def warn(self, msg: str):
        if self.verbose >= 0:
            self._print(f"{self._fmt('WARNING', Fore.YELLOW)} {msg}")

    def ok(self, msg: str):
        self._print(f"{self._fmt('SUCCESS', Fore.GREEN)} {msg}")

    def fail(self, msg: str):
        self._print(f"{self._fmt('FAIL', Fore.RED)} {msg}")

    def debug(self, msg: str):
        if self.verbose >= 2:
            self._print(f"{self._fmt('DEBUG', Fore.MAGENTA)} {msg}")

    def finding(self, res: Result):
        col = _STATUS_COLORS.get(res.status // 100, Fore.WHITE)
        values = " ".join(f"{k}={Fore.MAGENTA}{v.decode('utf-8', 'replace')}{Style.RESET_ALL}"
                          for k, v in res.inputs.items())
        extra = f" -> {res.redirect_location}" if res.redirect_location else ""
        self._print(f"{values} {col}[Status: {res.status}]{Style.RESET_ALL} "
                    f"{Style.DIM}[Size: {res.content_length}, Words: {res.words}, "
                    f"Lines: {res.lines}, Duration: {int(res.duration * 1000)}ms]"
                    f"{Style.RESET_ALL}{extra}")
        if self.verbose >= 2:
            self._print(f"      {Style.DIM}| URL | {res.url}{Style.RESET_ALL}")


# ---------- reporting sinks ----------

class Sink(ABC):
    """Receives accepted results. Must not block the scheduler for long."""

    @abstractmethod
    def report(self, result: Result, meta: Dict) -> None:
        ...

    def job_done(self, meta: Dict) -> None:
        """Called once per job with its final counters and stop reason."""

    def close(self) -> None:
        pass


class ConsoleSink(Sink):
    def __init__(self, logger: Log):
        self.logger = logger

    def report(self, result: Result, meta: Dict) -> None:
        self.logger.finding(result)

    def job_done(self, meta: Dict) -> None:
        self.logger.info(
            f"Job {meta.get('job_id')} {meta.get('url')} finished "
            f"({meta.get('reason')}): sent={meta.get('sent')} "
            f"matched={meta.get('matched')} filtered={meta.get('filtered')} "
            f"errors={meta.get('errored')}")


class MemorySink(Sink):
    """Keeps everything in lists; used by library callers and tests."""

    def __init__(self):
        self.results: List[Result] = []
        self.jobs: List[Dict] = []
        self._lock = threading.Lock()

    def report(self, result: Result, meta: Dict) -> None:
        with self._lock:
            self.results.append(result)

    def job_done(self, meta: Dict) -> None:
        with self._lock:
            self.jobs.append(dict(meta))


class BufferedSink(Sink):
    """
    Puts results on a bounded queue drained by a background thread.

    report() waits at most *put_timeout* seconds for room; after that the
    result is dropped and counted in ``dropped``.
    """

    def __init__(self, inner: Sink, maxsize: int = 1000, put_timeout: float = 1.0,
                 logger: Optional[Log] = None):
        self.inner = inner
        self.put_timeout = put_timeout
        self.logger = logger
        self.dropped = 0
        self._dropped_lock = threading.Lock()
        self._queue: "queue.Queue[Optional[Tuple[str, object, Dict]]]" = queue.Queue(maxsize)
        self._thread = threading.Thread(target=self._drain, name="webfuzz-sink",
                                        daemon=True)
        self._thread.start()

    def report(self, result: Result, meta: Dict) -> None:
        self._put(("result", result, meta))

    def job_done(self, meta: Dict) -> None:
        self._put(("job", None, meta))

    def _put(self, item) -> None:
        try:
            self._queue.put(item, timeout=self.put_timeout)
        except queue.Full:
            with self._dropped_lock:
                self.dropped += 1
            if self.logger:
                self.logger.warn("Reporting queue full, dropping result")

    def _drain(self):
        while True:
            item = self._queue.get()
            if item is None:
                return
            kind, result, meta = item
            try:
                if kind == "result":
                    self.inner.report(result, meta)
                else:
                    self.inner.job_done(meta)
            except Exception as exc:
                if self.logger:
                    self.logger.fail(f"Reporting sink error: {exc}")

    def close(self) -> None:
        self._queue.put(None)
        self._thread.join()
        self.inner.close()
