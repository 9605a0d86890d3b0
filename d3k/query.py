"""Head / tail / list reads over the log store."""

import os
from datetime import datetime, timezone

from d3k.exceptions import LogFileNotFoundError
from d3k.log_filename import extract_project_name_from_log_filename, extract_timestamp_from_log_filename
from d3k.models import LogFileInfo
from d3k.rotator import get_archived_files

DEFAULT_LINES = 50


def read_lines(path: str) -> list[str]:
    """Whole file as non-blank lines. Raises LogFileNotFoundError if it is missing."""
    if not os.path.isfile(path):
        raise LogFileNotFoundError(path)
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        content = f.read()
    return [line for line in content.split("\n") if line.strip()]


def head(path: str, n: int = DEFAULT_LINES) -> tuple[list[str], int]:
    """First ``n`` non-blank lines and the total line count."""
    lines = read_lines(path)
    return lines[:max(n, 0)], len(lines)


def tail(path: str, n: int = DEFAULT_LINES) -> tuple[list[str], int]:
    """Last ``n`` non-blank lines and the total line count."""
    lines = read_lines(path)
    if n <= 0:
        return [], len(lines)
    return lines[-n:], len(lines)


def list_logs(current_path: str) -> dict:
    """Archives of the current project plus the current file, newest mtime first.

    ``current_path`` may be the stable pointer; it is resolved to the file it
    names. Archives match on the exact project name.
    """
    if not os.path.exists(current_path):
        raise LogFileNotFoundError(current_path, "Current log file not found")

    current_path = os.path.realpath(current_path)
    log_dir = os.path.dirname(current_path)
    current_name = os.path.basename(current_path)
    project_name = extract_project_name_from_log_filename(current_name) or "unknown"

    names = get_archived_files(log_dir, project_name)
    if current_name not in names:
        names.append(current_name)

    files = []
    for name in names:
        path = os.path.join(log_dir, name)
        try:
            st = os.stat(path)
        except FileNotFoundError:
            # archived and cleaned up between listdir and stat
            continue
        files.append(
            LogFileInfo(
                name=name,
                path=path,
                timestamp=extract_timestamp_from_log_filename(name) or "",
                size=st.st_size,
                mtime=datetime.fromtimestamp(st.st_mtime, timezone.utc).isoformat(),
                is_current=name == current_name,
            )
        )
    files.sort(key=lambda f: f.mtime, reverse=True)

    return {
        "files": [f.to_dict() for f in files],
        "currentFile": current_path,
        "projectName": project_name,
    }
