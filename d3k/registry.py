"""Session registry: one session.json per project directory under the d3k home."""

import json
import os
import logging
from datetime import datetime, timezone
from typing import Callable

import psutil

from d3k.exceptions import SessionLookupError
from d3k.models import Session

logger = logging.getLogger(__name__)

SESSION_FILENAME = "session.json"


def _now_iso() -> str:
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def _start_key(session: Session) -> datetime:
    try:
        return datetime.fromisoformat(session.start_time.replace("Z", "+00:00"))
    except ValueError:
        return datetime.min.replace(tzinfo=timezone.utc)


class SessionRegistry:
    """Sessions are never deleted here; dead ones are filtered on read."""

    def __init__(self, home_dir: str, pid_exists: Callable[[int], bool] = psutil.pid_exists):
        self._home = home_dir
        self._pid_exists = pid_exists

    @property
    def home_dir(self) -> str:
        return self._home

    def session_dir(self, project_name: str) -> str:
        return os.path.join(self._home, project_name)

    def register(
        self,
        project_name: str,
        log_file_path: str,
        pid: int | None = None,
        cdp_url: str | None = None,
        start_time: str | None = None,
    ) -> Session:
        """Write the descriptor atomically: tmp file, then os.replace."""
        session_dir = self.session_dir(project_name)
        os.makedirs(session_dir, exist_ok=True)
        path = os.path.join(session_dir, SESSION_FILENAME)
        session = Session(
            project_name=project_name,
            start_time=start_time or _now_iso(),
            log_file_path=os.path.abspath(log_file_path),
            pid=pid if pid is not None else os.getpid(),
            cdp_url=cdp_url,
            session_file=path,
        )
        tmp_path = path + ".tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(session.to_dict(), f, indent=2)
        os.replace(tmp_path, path)
        logger.info("Registered session %s (pid %d)", project_name, session.pid)
        return session

    def list_sessions(self) -> list[Session]:
        """Every readable descriptor, live or not."""
        if not os.path.isdir(self._home):
            return []
        sessions = []
        for name in sorted(os.listdir(self._home)):
            path = os.path.join(self._home, name, SESSION_FILENAME)
            if not os.path.isfile(path):
                continue
            try:
                with open(path, "r", encoding="utf-8") as f:
                    sessions.append(Session.from_dict(json.load(f), session_file=path))
            except (json.JSONDecodeError, OSError, KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping unreadable session file %s: %s", path, e)
        return sessions

    def is_alive(self, session: Session) -> bool:
        if session.pid <= 0:
            return False
        try:
            return bool(self._pid_exists(session.pid))
        except (OSError, ValueError):
            return False

    def list_active(self) -> list[Session]:
        """Live sessions, newest start time first."""
        active = [s for s in self.list_sessions() if self.is_alive(s)]
        active.sort(key=_start_key, reverse=True)
        return active

    def _most_recent_log(self) -> str | None:
        if not os.path.isdir(self._home):
            return None
        best, best_mtime = None, -1.0
        for name in os.listdir(self._home):
            session_dir = os.path.join(self._home, name)
            if not os.path.isdir(session_dir):
                continue
            for candidate in os.listdir(session_dir):
                if candidate != "d3k.log" and not candidate.endswith("-d3k.log"):
                    continue
                path = os.path.join(session_dir, candidate)
                try:
                    mtime = os.path.getmtime(path)
                except OSError:
                    continue
                if mtime > best_mtime:
                    best, best_mtime = path, mtime
        return best

    def resolve_log_path(self, env_path: str | None = None) -> str:
        """Newest live session, then ``env_path``, then the newest active log on disk."""
        active = self.list_active()
        if active:
            return active[0].log_file_path
        if env_path:
            return env_path
        found = self._most_recent_log()
        if found:
            return found
        raise SessionLookupError()
