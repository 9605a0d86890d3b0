"""LogTailer: live tail of the active log that survives rotation and truncation.

Frames are plain dicts, the JSON payloads of the stream endpoint:
``{"lines": [...]}`` first, then ``{"newLines": [...]}`` per delta,
``{"rotated": True, "lines": [...]}`` / ``{"truncated": True, "lines": [...]}``
when the file is replaced or shrinks, and ``{"error": "..."}`` on a failed
read. ``None`` is a heartbeat.

A watchdog observer on the file's directory wakes the loop early; the poll
interval is the upper bound between checks.
"""

import os
import time
import logging
import threading
from typing import Generator

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from d3k.exceptions import LogFileNotFoundError

logger = logging.getLogger(__name__)


def _split(data: bytes) -> list[str]:
    text = data.decode("utf-8", errors="replace")
    return [line for line in text.split("\n") if line.strip()]


def _complete_length(data: bytes) -> int:
    """Length of ``data`` up to and including its last newline."""
    return data.rfind(b"\n") + 1


class _WakeHandler(FileSystemEventHandler):
    def __init__(self, path: str, wake: threading.Event):
        super().__init__()
        self._path = path
        self._wake = wake

    def on_any_event(self, event):
        if event.is_directory:
            return
        paths = {os.path.abspath(event.src_path)}
        dest = getattr(event, "dest_path", "")
        if dest:
            paths.add(os.path.abspath(dest))
        if self._path in paths:
            self._wake.set()


class LogTailer:
    def __init__(
        self,
        path: str,
        poll_interval: float = 1.0,
        heartbeat_interval: float = 15.0,
        watch: bool = True,
    ):
        self._path = os.path.abspath(path)
        self._poll_interval = poll_interval
        self._heartbeat_interval = heartbeat_interval
        self._watch = watch
        self._offset = 0
        self._inode: int | None = None
        self._wake = threading.Event()
        self._closed = False
        self._observer = None

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def closed(self) -> bool:
        return self._closed

    def _read_from(self, start: int) -> bytes:
        with open(self._path, "rb") as f:
            f.seek(start)
            return f.read()

    def initial(self) -> dict:
        """Read the current content and remember where it ends."""
        try:
            st = os.stat(self._path)
        except FileNotFoundError as e:
            raise LogFileNotFoundError(self._path) from e
        data = self._read_from(0)
        self._inode = st.st_ino
        self._offset = _complete_length(data)
        return {"lines": _split(data[:self._offset])}

    def _reset(self, inode: int, reason: str) -> dict:
        data = self._read_from(0)
        self._inode = inode
        self._offset = _complete_length(data)
        logger.info("Log %s (%s), re-sending full content", reason, self._path)
        return {reason: True, "lines": _split(data[:self._offset])}

    def poll(self) -> list[dict]:
        """Check the file once. Returns zero or more frames."""
        try:
            st = os.stat(self._path)
        except FileNotFoundError:
            # between rename and re-create during rotation
            logger.debug("Log file missing on poll: %s", self._path)
            return []
        except OSError as e:
            logger.warning("Failed to stat %s: %s", self._path, e)
            return [{"error": "Failed to read log updates"}]

        try:
            if self._inode is not None and st.st_ino != self._inode:
                return [self._reset(st.st_ino, "rotated")]
            if st.st_size < self._offset:
                return [self._reset(st.st_ino, "truncated")]
            if st.st_size == self._offset:
                return []

            data = self._read_from(self._offset)
            complete = _complete_length(data)
            if complete == 0:
                # partial line, wait for its newline
                return []
            self._offset += complete
            lines = _split(data[:complete])
            return [{"newLines": lines}] if lines else []
        except OSError as e:
            logger.warning("Failed to read %s: %s", self._path, e)
            return [{"error": "Failed to read log updates"}]

    def _start_observer(self):
        observer = Observer()
        observer.schedule(_WakeHandler(self._path, self._wake), os.path.dirname(self._path), recursive=False)
        observer.daemon = True
        observer.start()
        self._observer = observer

    def stream(self) -> Generator[dict | None, None, None]:
        """Initial frame, then deltas until close() or the consumer stops iterating."""
        first = self.initial()
        if self._watch:
            self._start_observer()
        try:
            yield first
            last_sent = time.monotonic()
            while not self._closed:
                self._wake.wait(self._poll_interval)
                self._wake.clear()
                if self._closed:
                    break
                frames = self.poll()
                for frame in frames:
                    yield frame
                now = time.monotonic()
                if frames:
                    last_sent = now
                elif now - last_sent >= self._heartbeat_interval:
                    yield None
                    last_sent = now
        finally:
            self.close()

    def close(self):
        """Stop the observer. Safe to call more than once."""
        self._closed = True
        self._wake.set()
        observer, self._observer = self._observer, None
        if observer is not None:
            observer.stop()
            observer.join(timeout=2)
            logger.debug("Released watcher for %s", self._path)
