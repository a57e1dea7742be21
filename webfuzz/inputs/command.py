"""Process-backed input provider.

The command is started once, lazily, and its stdout is consumed line by
line as positions are requested. Emitted lines are cached by index so a
position can be addressed again (replay, calibration) without restarting the
process. The sequence is finite only if the process terminates; sniper
mode reads it to the end before the job starts, unless a count is given.
"""

import shlex
import subprocess
import threading
from typing import List, Optional

from webfuzz.inputs.base import DEFAULT_KEYWORD, InputProvider


class Command(InputProvider):
    name = "command"

    def __init__(self, command: str, keyword: str = DEFAULT_KEYWORD,
                 template: str = "", encoders: str = "",
                 count: Optional[int] = None, shell: str = ""):
        super().__init__(keyword=keyword, template=template, encoders=encoders)
        self.command = command
        self.count = count
        self.shell = shell
        self._lines: List[bytes] = []
        self._proc: Optional[subprocess.Popen] = None
        self._done = False
        self._lock = threading.Lock()

    def cardinality(self) -> Optional[int]:
        if self.count is not None:
            return self.count
        if self._done:
            return len(self._lines)
        return None

    def value_at(self, index: int) -> bytes:
        if index < 0 or (self.count is not None and index >= self.count):
            raise IndexError(index)
        with self._lock:
            while index >= len(self._lines):
                if not self._pull():
                    raise IndexError(index)
            return self._lines[index]

    def drain(self) -> None:
        if self.count is not None:
            return
        with self._lock:
            while self._pull():
                pass

    def close(self) -> None:
        with self._lock:
            if self._proc and self._proc.poll() is None:
                self._proc.kill()
                self._proc.wait()
            self._done = True

    # ---------- process handling ----------

    def _argv(self):
        if self.shell:
            return [self.shell, "-c", self.command]
        return shlex.split(self.command)

    def _pull(self) -> bool:
        """Read one more line from the process. False once it is exhausted."""
        if self._done:
            return False
        if self._proc is None:
            self._proc = subprocess.Popen(self._argv(), stdout=subprocess.PIPE,
                                          stdin=subprocess.DEVNULL)
        line = self._proc.stdout.readline()
        if not line:
            self._proc.stdout.close()
            self._proc.wait()
            self._done = True
            return False
        self._lines.append(line.rstrip(b"\r\n"))
        return True
