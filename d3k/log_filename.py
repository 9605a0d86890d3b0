"""Log filename conventions.

Archived files:  <project>-<ISO 8601 with ':' and '.' replaced by '-'>.log
                 e.g. tailwindui-studio-2025-10-27T17-57-15-014Z.log
Active file:     <project>-d3k.log
"""

import re
from datetime import datetime, timezone

ACTIVE_SUFFIX = "-d3k.log"

# The timestamp always starts with YYYY-MM-DD, which anchors the split.
_ARCHIVE_RE = re.compile(r"^(.+?)-(\d{4}-\d{2}-\d{2}T[\d-]+Z)\.log$")
_ACTIVE_RE = re.compile(r"^(.+)-d3k\.log$")
_TS_RE = re.compile(r"T(\d{2})-(\d{2})-(\d{2})-(\d{3})Z$")


def extract_project_name_from_log_filename(filename: str) -> str | None:
    """Return the project part of a log filename, or None if it isn't one of ours."""
    m = _ARCHIVE_RE.match(filename)
    if m:
        return m.group(1)
    m = _ACTIVE_RE.match(filename)
    if m:
        return m.group(1)
    return None


def log_filename_matches_project(filename: str, project_name: str) -> bool:
    """Substring match on the project part of an archive ("studio" matches "tailwindui-studio").

    Names without a timestamp suffix, the active file included, never match.
    """
    m = _ARCHIVE_RE.match(filename)
    if not m:
        return False
    return project_name in m.group(1)


def extract_timestamp_from_log_filename(filename: str) -> str | None:
    """2025-10-27T17-57-15-014Z -> 2025-10-27T17:57:15.014Z. None for active files."""
    m = _ARCHIVE_RE.match(filename)
    if not m:
        return None
    return _TS_RE.sub(r"T\1:\2:\3.\4Z", m.group(2))


def filename_timestamp(now: datetime | None = None) -> str:
    """ISO 8601 UTC with millisecond precision, ':' and '.' replaced by '-'."""
    now = now or datetime.now(timezone.utc)
    iso = now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"
    return iso.replace(":", "-").replace(".", "-")


def archive_filename(project_name: str, now: datetime | None = None) -> str:
    return f"{project_name}-{filename_timestamp(now)}.log"


def active_filename(project_name: str) -> str:
    return f"{project_name}{ACTIVE_SUFFIX}"
