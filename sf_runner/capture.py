"""Process-wide output capture used to ship per-instance stdout."""

from __future__ import annotations

import io
import sys
import threading
from typing import TextIO


class _Tee(io.TextIOBase):
    """Write-through stream that also appends to the capture buffer."""

    def __init__(self, target: TextIO, buffer: "CaptureBuffer") -> None:
        self._target = target
        self._buffer = buffer

    def write(self, data: str) -> int:
        self._buffer.append(data)
        self._target.write(data)
        return len(data)

    def flush(self) -> None:
        self._target.flush()

    def writable(self) -> bool:
        return True

    def isatty(self) -> bool:
        return bool(getattr(self._target, "isatty", lambda: False)())

    @property
    def encoding(self) -> str:  # type: ignore[override]
        return getattr(self._target, "encoding", "utf-8")


class CaptureBuffer:
    """Accumulate everything written to stdout/stderr since the last reset."""

    def __init__(self) -> None:
        self._chunks: list[str] = []
        self._lock = threading.Lock()
        self._saved: tuple[TextIO, TextIO] | None = None
        # One flag per active `with` block: did that block do the install.
        self._entered: list[bool] = []

    @property
    def installed(self) -> bool:
        return self._saved is not None

    def install(self) -> None:
        """Route sys.stdout and sys.stderr through the buffer."""
        if self._saved is not None:
            return
        self._saved = (sys.stdout, sys.stderr)
        sys.stdout = _Tee(sys.stdout, self)  # type: ignore[assignment]
        sys.stderr = _Tee(sys.stderr, self)  # type: ignore[assignment]

    def uninstall(self) -> None:
        if self._saved is None:
            return
        sys.stdout, sys.stderr = self._saved
        self._saved = None

    def append(self, data: str) -> None:
        with self._lock:
            self._chunks.append(data)

    def snapshot(self) -> str:
        with self._lock:
            return "".join(self._chunks)

    def reset(self) -> None:
        with self._lock:
            self._chunks.clear()

    def snapshot_and_reset(self) -> str:
        """Return buffered output and clear it in one step."""
        with self._lock:
            output = "".join(self._chunks)
            self._chunks.clear()
            return output

    def __enter__(self) -> "CaptureBuffer":
        self._entered.append(not self.installed)
        self.install()
        return self

    def __exit__(self, *exc_info: object) -> None:
        if self._entered.pop():
            self.uninstall()


_default_buffer = CaptureBuffer()


def get_capture_buffer() -> CaptureBuffer:
    """Return the process-wide capture buffer."""
    return _default_buffer
