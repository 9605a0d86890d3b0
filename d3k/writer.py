"""UnifiedLogWriter: single consumer thread that owns the active log file handle.

Producers (stdout/stderr readers, browser-event ingestion) call ``log()``,
which stamps the line and enqueues it. Only the writer thread touches the
file, one ``write`` call per line, so lines from different producers never
interleave.
"""

import os
import queue
import logging
import threading
from datetime import datetime, timezone
from threading import Thread
from typing import Callable

from d3k.models import LogEntry

logger = logging.getLogger(__name__)

_STOP = object()


def format_timestamp(now: datetime | None = None, fmt: str = "utc") -> str:
    """utc -> 2025-01-01T00:00:00.000Z, local -> 00:00:00.000"""
    now = now or datetime.now(timezone.utc)
    ms = f"{now.microsecond // 1000:03d}"
    if fmt == "local":
        return now.astimezone().strftime("%H:%M:%S.") + ms
    return now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.") + ms + "Z"


def format_line(timestamp: str, source: str, message: str) -> str:
    return f"[{timestamp}] [{source}] {message}\n"


class UnifiedLogWriter(Thread):
    def __init__(
        self,
        path: str,
        timestamp_format: str = "utc",
        store=None,
        max_size_bytes: int = 0,
        time_func: Callable[[], datetime] | None = None,
    ):
        super().__init__(daemon=True, name="d3k-writer")
        self._path = os.path.abspath(path)
        self._timestamp_format = timestamp_format
        self._store = store
        self._max_size = max_size_bytes
        self._time_func = time_func or (lambda: datetime.now(timezone.utc))
        self._queue: queue.Queue = queue.Queue()
        # Shared with the store so a rotation never lands between a write and its inode check
        self._lock = store.lock if store is not None else threading.RLock()
        self._file = None
        self._subscribers: list[Callable[[str], None]] = []
        self._lines_written = 0
        # cleared after a failed size rotation, set again once the active file changes
        self._size_rotation = True
        os.makedirs(os.path.dirname(self._path), exist_ok=True)

    @property
    def path(self) -> str:
        return self._path

    @property
    def lines_written(self) -> int:
        return self._lines_written

    def subscribe(self, callback: Callable[[str], None]):
        """Register ``callback(line)``, called after each line hits the file."""
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Callable[[str], None]):
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def log(self, source: str, message: str):
        """Stamp and enqueue one line. Safe to call from any thread."""
        ts = format_timestamp(self._time_func(), self._timestamp_format)
        self._queue.put(format_line(ts, source, message))

    def log_entry(self, entry: LogEntry, source: str = "SERVER"):
        self.log(source, entry.formatted)

    def log_raw(self, line: str):
        """Enqueue an already formatted line (browser extension entries)."""
        self._queue.put(line.rstrip("\n") + "\n")

    def _open(self):
        self._file = open(self._path, "a", encoding="utf-8")

    def _close(self):
        if self._file and not self._file.closed:
            self._file.close()
        self._file = None

    def _ensure_current(self):
        """Reopen if the path now points at a different file (rotated or deleted)."""
        if self._file is None:
            self._open()
            return
        try:
            on_disk = os.stat(self._path).st_ino
        except FileNotFoundError:
            on_disk = None
        if on_disk != os.fstat(self._file.fileno()).st_ino:
            logger.debug("Active log changed under writer, reopening %s", self._path)
            self._close()
            self._open()
            self._size_rotation = True

    def _write(self, line: str):
        with self._lock:
            self._ensure_current()
            self._file.write(line)
            self._file.flush()
            self._lines_written += 1
            if (
                self._max_size
                and self._size_rotation
                and self._store is not None
                and self._file.tell() >= self._max_size
            ):
                self._rotate_for_size()

        for callback in list(self._subscribers):
            try:
                callback(line)
            except Exception as e:
                logger.warning("Log subscriber failed: %s", e)

    def _rotate_for_size(self):
        self._close()
        try:
            result = self._store.rotate()
            logger.info("Log reached %d bytes, archived to %s", self._max_size, result.archived_path)
        except Exception as e:
            self._size_rotation = False
            logger.error("Size-based rotation failed, leaving it to the scheduled check: %s", e)
        self._open()

    def run(self):
        while True:
            try:
                line = self._queue.get(timeout=0.5)
            except queue.Empty:
                continue
            if line is _STOP:
                self._queue.task_done()
                break
            try:
                self._write(line)
            except OSError as e:
                logger.error("Failed to write log line to %s: %s", self._path, e)
            finally:
                self._queue.task_done()
        with self._lock:
            self._close()

    def flush(self):
        """Block until everything enqueued so far has been written."""
        self._queue.join()

    def stop(self, timeout: float | None = 5.0):
        """Drain the queue, close the file and join the thread."""
        self._queue.put(_STOP)
        if self.is_alive():
            self.join(timeout)
