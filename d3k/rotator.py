"""Log store: the active file, its stable pointer, rotation and archive retention."""

import os
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone, timedelta
from typing import Callable

from d3k.exceptions import LogRotationError
from d3k.log_filename import (
    archive_filename,
    extract_project_name_from_log_filename,
    extract_timestamp_from_log_filename,
    filename_timestamp,
    log_filename_matches_project,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RotationResult:
    archived_path: str
    current_path: str
    timestamp: str

    def to_dict(self) -> dict:
        return {
            "success": True,
            "archivedLogPath": self.archived_path,
            "currentLogPath": self.current_path,
            "timestamp": self.timestamp,
        }


def update_pointer(pointer_path: str, target: str):
    """Point the stable symlink at ``target``: build a temp link, then os.replace over the old one."""
    if os.path.abspath(pointer_path) == os.path.abspath(target):
        return
    tmp_link = f"{pointer_path}.{os.getpid()}.tmp"
    try:
        os.unlink(tmp_link)
    except FileNotFoundError:
        pass
    os.symlink(target, tmp_link)
    os.replace(tmp_link, pointer_path)


class LogStore:
    """Owns one active log file. Rotation is serialized on ``lock``.

    Steps run in a fixed order: verify, rename, create, repoint. The new file
    exists before the pointer moves, so the pointer never dangles.
    """

    def __init__(
        self,
        active_path: str,
        pointer_path: str | None = None,
        time_func: Callable[[], datetime] | None = None,
    ):
        self._active = os.path.realpath(active_path)
        self._pointer = pointer_path
        self._time_func = time_func or (lambda: datetime.now(timezone.utc))
        self.lock = threading.RLock()
        self._started = self._time_func()

    @property
    def active_path(self) -> str:
        return self._active

    @property
    def pointer_path(self) -> str | None:
        return self._pointer

    @property
    def log_dir(self) -> str:
        return os.path.dirname(self._active)

    @property
    def project_name(self) -> str:
        return extract_project_name_from_log_filename(os.path.basename(self._active)) or "unknown"

    def ensure_active(self):
        """Create the active file (and its directory) if missing, then repoint."""
        with self.lock:
            os.makedirs(self.log_dir, exist_ok=True)
            if not os.path.exists(self._active):
                open(self._active, "a", encoding="utf-8").close()
                self._started = self._time_func()
            if self._pointer:
                update_pointer(self._pointer, self._active)

    def rotate(self) -> RotationResult:
        with self.lock:
            if not os.path.isfile(self._active):
                raise LogRotationError("verify", f"current log not found: {self._active}")

            now = self._time_func()
            archived = os.path.join(self.log_dir, archive_filename(self.project_name, now))
            # Two rotations in the same millisecond would collide
            if os.path.exists(archived):
                raise LogRotationError("rename", f"archive already exists: {archived}")

            try:
                os.rename(self._active, archived)
            except OSError as e:
                raise LogRotationError("rename", str(e)) from e

            try:
                with open(self._active, "x", encoding="utf-8"):
                    pass
            except FileExistsError:
                # A writer outside our lock recreated it first; it is still a fresh file
                logger.debug("Active log recreated concurrently: %s", self._active)
            except OSError as e:
                raise LogRotationError("create", str(e)) from e

            if self._pointer:
                try:
                    update_pointer(self._pointer, self._active)
                except OSError as e:
                    raise LogRotationError("repoint", str(e)) from e

            self._started = now
            logger.info("Rotated %s -> %s", os.path.basename(self._active), os.path.basename(archived))
            return RotationResult(archived, self._active, filename_timestamp(now))

    def needs_rotation(self, max_size_bytes: int = 0, max_age_seconds: int = 0) -> bool:
        """True when the active file is over either threshold. Empty files never rotate."""
        try:
            size = os.path.getsize(self._active)
        except OSError:
            return False
        if size == 0:
            return False
        if max_size_bytes and size >= max_size_bytes:
            return True
        if max_age_seconds:
            elapsed = (self._time_func() - self._started).total_seconds()
            return elapsed >= max_age_seconds
        return False

    def rotate_if_needed(self, max_size_bytes: int = 0, max_age_seconds: int = 0) -> RotationResult | None:
        with self.lock:
            if not self.needs_rotation(max_size_bytes, max_age_seconds):
                return None
            return self.rotate()


def get_archived_files(log_dir: str, project_name: str) -> list[str]:
    """Archived (timestamped) files of a project, oldest first."""
    archived = []
    for name in os.listdir(log_dir):
        if extract_timestamp_from_log_filename(name) is None:
            continue
        if extract_project_name_from_log_filename(name) == project_name:
            archived.append(name)
    # ISO timestamps sort lexicographically
    archived.sort(key=lambda n: extract_timestamp_from_log_filename(n))
    return archived


def list_project_logs(log_dir: str, project_name: str) -> list[str]:
    """Archived .log files in ``log_dir`` whose project part contains ``project_name``."""
    try:
        names = os.listdir(log_dir)
    except OSError as e:
        logger.warning("Could not read log directory %s: %s", log_dir, e)
        return []
    return [n for n in names if n.endswith(".log") and log_filename_matches_project(n, project_name)]


def _archive_time(filename: str) -> datetime | None:
    ts = extract_timestamp_from_log_filename(filename)
    if ts is None:
        return None
    try:
        return datetime.strptime(ts, "%Y-%m-%dT%H:%M:%S.%fZ").replace(tzinfo=timezone.utc)
    except ValueError:
        return None


def enforce_retention(
    log_dir: str,
    project_name: str,
    keep: int,
    max_age_days: int,
    time_func: Callable[[], datetime] | None = None,
) -> list[str]:
    """Delete archives older than ``max_age_days``, then the oldest beyond ``keep``.

    The active file is never touched. Returns deleted filenames.
    """
    now = (time_func or (lambda: datetime.now(timezone.utc)))()
    deleted = []

    archived = get_archived_files(log_dir, project_name)

    survivors = []
    if max_age_days > 0:
        cutoff = now - timedelta(days=max_age_days)
        for name in archived:
            ts = _archive_time(name)
            if ts is not None and ts < cutoff:
                os.remove(os.path.join(log_dir, name))
                deleted.append(name)
            else:
                survivors.append(name)
    else:
        survivors = list(archived)

    while keep >= 0 and len(survivors) > keep:
        name = survivors.pop(0)
        os.remove(os.path.join(log_dir, name))
        deleted.append(name)

    if deleted:
        logger.info("Removed %d archived log(s) for %s", len(deleted), project_name)
    return deleted
