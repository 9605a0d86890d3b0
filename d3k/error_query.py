"""Recent-errors and recent-logs queries over unified log lines."""

import re

from d3k.error_detectors import ErrorDetector

ERROR_PATTERNS = [
    re.compile(r"\[.*ERROR.*\]", re.IGNORECASE),
    re.compile(r"\[.*FAIL.*\]", re.IGNORECASE),
    re.compile(r"Exception", re.IGNORECASE),
    re.compile(r"CRITICAL", re.IGNORECASE),
    re.compile(r"FATAL", re.IGNORECASE),
    re.compile(r"Uncaught", re.IGNORECASE),
    re.compile(r"TypeError", re.IGNORECASE),
    re.compile(r"ReferenceError", re.IGNORECASE),
    re.compile(r"SyntaxError", re.IGNORECASE),
    re.compile(r"RUNTIME\.ERROR"),
    re.compile(r"hydration.*mismatch", re.IGNORECASE),
    re.compile(r"Failed to compile", re.IGNORECASE),
    re.compile(r"Build failed", re.IGNORECASE),
    re.compile(r"\b500\b.*Internal Server Error", re.IGNORECASE),
    re.compile(r"\b503\b.*Service Unavailable", re.IGNORECASE),
    re.compile(r"ECONNREFUSED", re.IGNORECASE),
    re.compile(r"ENOTFOUND", re.IGNORECASE),
    re.compile(r"timeout", re.IGNORECASE),
]

# Framework noise that looks like an error
IGNORE_PATTERNS = [
    re.compile(r"link rel=preload.*must have.*valid.*as", re.IGNORECASE),
    re.compile(r"next\/font", re.IGNORECASE),
    re.compile(r"automatically generated", re.IGNORECASE),
    re.compile(r"Download the React DevTools", re.IGNORECASE),
    re.compile(r"\[HMR\]", re.IGNORECASE),
]

INTERACTION_TAGS = ("[INTERACTION]", "[NAVIGATION]", "[PAGE]", "[CLICK]", "[INPUT]", "[SUBMIT]", "[SCROLL]")

INTERACTION_LOOKBACK = 30
MAX_INTERACTIONS = 5

LOG_TYPES = ("all", "browser", "server", "network")

_SERVER_ERROR_MARKER = "[SERVER] ERROR: "


def is_error(line: str, detector: ErrorDetector | None = None) -> bool:
    if any(p.search(line) for p in IGNORE_PATTERNS):
        return False
    if any(p.search(line) for p in ERROR_PATTERNS):
        return True
    # stderr lines the framework detector calls critical, e.g. EADDRINUSE
    if detector is not None and _SERVER_ERROR_MARKER in line:
        message = line.split(_SERVER_ERROR_MARKER, 1)[1]
        return detector.is_critical(message)
    return False


def is_interaction(line: str) -> bool:
    return any(tag in line for tag in INTERACTION_TAGS)


def find_interactions_before(index: int, lines: list[str], max_count: int = MAX_INTERACTIONS) -> list[str]:
    """Up to ``max_count`` interaction lines within the 30 lines before ``lines[index]``, oldest first."""
    found = []
    i = index - 1
    stop = max(0, index - INTERACTION_LOOKBACK)
    while i >= stop and len(found) < max_count:
        if is_interaction(lines[i]):
            found.insert(0, lines[i])
        i -= 1
    return found


def find_errors(
    lines: list[str],
    count: int = 10,
    show_all: bool = False,
    context: bool = False,
    detector: ErrorDetector | None = None,
) -> dict:
    """``{total, showing, errors}``; with ``context`` each error is ``{error, interactions}``."""
    indexed = [(i, line) for i, line in enumerate(lines) if is_error(line, detector)]
    selected = indexed if show_all else (indexed[-count:] if count > 0 else [])

    if context:
        errors = [
            {"error": line, "interactions": find_interactions_before(i, lines)}
            for i, line in selected
        ]
    else:
        errors = [line for _, line in selected]

    return {"total": len(indexed), "showing": len(selected), "errors": errors}


def matches_type(line: str, log_type: str) -> bool:
    if log_type == "browser":
        return "[BROWSER]" in line or "[browser]" in line or "[CONSOLE" in line
    if log_type == "server":
        return "[SERVER]" in line or "[server]" in line
    if log_type == "network":
        return "[NETWORK]" in line or "[network]" in line
    return True


def recent_logs(lines: list[str], count: int = 50, log_type: str = "all") -> dict:
    """``{total, showing, type, logs}`` for the last ``count`` lines of one type."""
    filtered = [line for line in lines if matches_type(line, log_type)]
    shown = filtered[-count:] if count > 0 else []
    return {"total": len(filtered), "showing": len(shown), "type": log_type, "logs": shown}
