"""DevServerRunner: spawn the dev server and feed its output to the unified log.

stdout and stderr each get a reader thread so the child never blocks on a
full pipe. Reads are chunked; a trailing partial line is held back until its
newline arrives (or the stream closes).
"""

import codecs
import os
import logging
import subprocess
from threading import Thread
from typing import Callable

from d3k.models import LogEntry
from d3k.output_processor import OutputProcessor
from d3k.writer import UnifiedLogWriter

logger = logging.getLogger(__name__)

CHUNK_SIZE = 65536


class DevServerRunner:
    def __init__(
        self,
        command: list[str],
        writer: UnifiedLogWriter,
        processor: OutputProcessor,
        cwd: str | None = None,
        env: dict | None = None,
        on_critical: Callable[[LogEntry], None] | None = None,
    ):
        self._command = command
        self._writer = writer
        self._processor = processor
        self._cwd = cwd
        self._env = env
        self._on_critical = on_critical
        self._proc: subprocess.Popen | None = None
        self._readers: list[Thread] = []
        self._critical_count = 0

    @property
    def pid(self) -> int | None:
        return self._proc.pid if self._proc else None

    @property
    def critical_count(self) -> int:
        return self._critical_count

    def start(self) -> int:
        logger.info("Starting dev server: %s", " ".join(self._command))
        self._proc = subprocess.Popen(
            self._command,
            cwd=self._cwd,
            env=self._env,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
        for stream, is_error in ((self._proc.stdout, False), (self._proc.stderr, True)):
            reader = Thread(
                target=self._read_stream,
                args=(stream, is_error),
                daemon=True,
                name=f"d3k-{'stderr' if is_error else 'stdout'}",
            )
            reader.start()
            self._readers.append(reader)
        return self._proc.pid

    def handle_output(self, text: str, is_error: bool):
        for entry in self._processor.process(text, is_error_stream=is_error):
            self._writer.log_entry(entry, source="SERVER")
            if entry.is_critical:
                self._critical_count += 1
                logger.error("Critical error from dev server: %s", entry.raw_message)
                if self._on_critical:
                    self._on_critical(entry)

    def _read_stream(self, stream, is_error: bool):
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        pending = ""
        fd = stream.fileno()
        while True:
            try:
                chunk = os.read(fd, CHUNK_SIZE)
            except OSError as e:
                logger.warning("Lost dev server %s: %s", "stderr" if is_error else "stdout", e)
                break
            if not chunk:
                break
            data = pending + decoder.decode(chunk)
            cut = data.rfind("\n") + 1
            pending = data[cut:]
            if cut:
                self.handle_output(data[:cut], is_error)
        pending += decoder.decode(b"", final=True)
        if pending.strip():
            self.handle_output(pending, is_error)
        stream.close()

    def poll(self) -> int | None:
        return self._proc.poll() if self._proc else None

    def wait(self, timeout: float | None = None) -> int:
        code = self._proc.wait(timeout)
        for reader in self._readers:
            reader.join(timeout=5)
        logger.info("Dev server exited with code %d", code)
        return code

    def stop(self, timeout: float = 10.0) -> int | None:
        """SIGTERM, then SIGKILL after ``timeout``."""
        if self._proc is None:
            return None
        if self._proc.poll() is None:
            self._proc.terminate()
            try:
                self._proc.wait(timeout)
            except subprocess.TimeoutExpired:
                logger.warning("Dev server did not exit after %.0fs, killing it", timeout)
                self._proc.kill()
        return self.wait()
