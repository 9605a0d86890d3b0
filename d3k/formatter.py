"""CLI renderers for error and log lines (plain or ANSI-coloured)."""

import re

COLORS = {
    "SERVER": "\033[35m",   # magenta
    "BROWSER": "\033[33m",  # yellow
    "NETWORK": "\033[36m",  # cyan
    "BUILD": "\033[31m",    # red
    "D3K": "\033[34m",      # blue
    "LOG": "\033[90m",      # gray
}
RED = "\033[31m"
YELLOW = "\033[33m"
CYAN = "\033[36m"
GREEN = "\033[32m"
GRAY = "\033[90m"
DIM = "\033[2m"
RESET = "\033[0m"

MAX_MESSAGE_LENGTH = 200

_TIME_RE = re.compile(r"\[(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z|\d{2}:\d{2}:\d{2}\.\d{3})\]")
_TIME_PREFIX_RE = re.compile(r"\[(?:\d{4}-\d{2}-\d{2}T)?\d{2}:\d{2}:\d{2}\.\d{3}Z?\]\s*")
_SOURCE_TAG_RE = re.compile(r"\[(SERVER|BROWSER|NETWORK|D3K)\]\s*", re.IGNORECASE)


def paint(text: str, color: str, enabled: bool = True) -> str:
    if not enabled or not color:
        return text
    return f"{color}{text}{RESET}"


def truncate(message: str, limit: int = MAX_MESSAGE_LENGTH) -> str:
    if len(message) <= limit:
        return message
    return message[:limit - 3] + "..."


def _time_of(line: str) -> str:
    m = _TIME_RE.search(line)
    return m.group(1) if m else ""


def error_category(line: str) -> str:
    if "[SERVER]" in line or "[server]" in line:
        return "SERVER"
    if "[BROWSER]" in line or "[browser]" in line:
        return "BROWSER"
    if "[NETWORK]" in line or "[network]" in line:
        return "NETWORK"
    if "Failed to compile" in line or "Build failed" in line:
        return "BUILD"
    return "LOG"


def format_error(line: str, color: bool = True) -> str:
    """'<time> <CATEGORY> <message>' with timestamp and source tag removed."""
    category = error_category(line)
    message = _TIME_PREFIX_RE.sub("", line, count=1)
    message = truncate(_SOURCE_TAG_RE.sub("", message).strip())
    return " ".join([
        paint(_time_of(line), GRAY, color),
        paint(category, COLORS[category], color),
        paint(message, RED, color),
    ])


def format_interaction(line: str, color: bool = True) -> str:
    message = _TIME_PREFIX_RE.sub("", line, count=1).strip()
    return f"  {paint(_time_of(line), GRAY, color)} {paint('→', CYAN, color)} {paint(message, DIM, color)}"


def format_log_line(line: str, color: bool = True) -> str:
    """Colour the first source tag, then the whole line by severity."""
    if not color:
        return line
    formatted = line
    for tag in ("SERVER", "BROWSER", "NETWORK", "D3K"):
        pattern = re.compile(rf"\[{tag}\]", re.IGNORECASE if tag != "D3K" else 0)
        if pattern.search(line):
            formatted = pattern.sub(paint(f"[{tag}]", COLORS[tag]), formatted, count=1)
            break
    if re.search(r"ERROR|FAIL|Exception", line, re.IGNORECASE):
        return paint(formatted, RED)
    if re.search(r"WARN", line, re.IGNORECASE):
        return paint(formatted, YELLOW)
    return formatted
