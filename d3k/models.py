"""Records passed between the parser, detectors, writer, store and registry."""

import re
from dataclasses import dataclass, asdict, field
from typing import Any

from d3k.browser_events import clean_console_formatting


@dataclass(frozen=True)
class ParsedLogLine:
    formatted: str                      # display form, e.g. "[WEB] Started GET /"
    message: str                        # bare message, never carries the manager prefix
    process_name: str | None = None     # e.g. "web", "js"
    metadata: dict[str, Any] | None = None


@dataclass(frozen=True)
class LogEntry:
    """One processed line of server output.

    ``is_critical`` and ``raw_message`` stay None unless the detector flagged
    the line, so "not evaluated" and "evaluated, not critical" are distinct.
    """

    formatted: str
    is_critical: bool | None = None
    raw_message: str | None = None


def entry_to_dict(entry: LogEntry) -> dict[str, Any]:
    """Convert a LogEntry to a camelCase dict, dropping unset fields."""
    data = {
        "formatted": entry.formatted,
        "isCritical": entry.is_critical,
        "rawMessage": entry.raw_message,
    }
    return {k: v for k, v in data.items() if v is not None}


@dataclass
class Session:
    project_name: str
    start_time: str          # ISO 8601
    log_file_path: str
    pid: int
    cdp_url: str | None = None
    session_file: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = {
            "projectName": self.project_name,
            "startTime": self.start_time,
            "logFilePath": self.log_file_path,
            "pid": self.pid,
        }
        if self.cdp_url:
            data["cdpUrl"] = self.cdp_url
        return data

    @classmethod
    def from_dict(cls, d: dict, session_file: str | None = None) -> "Session":
        return cls(
            project_name=d["projectName"],
            start_time=d["startTime"],
            log_file_path=d["logFilePath"],
            pid=int(d["pid"]),
            cdp_url=d.get("cdpUrl"),
            session_file=session_file,
        )


@dataclass(frozen=True)
class LogFileInfo:
    name: str
    path: str
    timestamp: str
    size: int
    mtime: str               # ISO 8601
    is_current: bool

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["isCurrent"] = d.pop("is_current")
        return d


@dataclass
class UnifiedLogLine:
    timestamp: str
    source: str
    message: str
    original: str
    tab_identifier: str | None = None
    screenshot: str | None = None
    extra_lines: list[str] = field(default_factory=list)


_UNIFIED_RE = re.compile(
    r"^\[(?P<ts>\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z|\d{2}:\d{2}:\d{2}\.\d{3})\] "
    r"\[(?P<first>[^\]]+)\] "
)
_TAB_RE = re.compile(r"^TAB-\d+\.\d+$")
_SOURCE_RE = re.compile(r"^\[([^\]]+)\] ")
_SCREENSHOT_RE = re.compile(r"\[SCREENSHOT\] (.+)")
_EXTENSION_MARKER = " [CHROME_EXTENSION]"


def parse_unified_lines(content: str) -> list[UnifiedLogLine]:
    """Split unified log text into entries.

    Lines without a leading ``[timestamp] [SOURCE]`` are continuation lines
    (stack traces, multi-line build errors) and join the previous entry.
    Extension lines of the form ``[ts] [TAB-x.y] [SOURCE] msg`` keep the tab id.
    """
    entries: list[UnifiedLogLine] = []
    current: UnifiedLogLine | None = None

    for line in content.split("\n"):
        if not line.strip():
            continue
        m = _UNIFIED_RE.match(line)
        if not m:
            if current is not None:
                current.message += "\n" + line
                current.original += "\n" + line
                current.extra_lines.append(line)
            continue

        if current is not None:
            entries.append(current)

        source = m.group("first")
        message = line[m.end():]
        tab_identifier = None
        if _TAB_RE.match(source):
            tab_identifier = source
            sm = _SOURCE_RE.match(message)
            if sm:
                source = sm.group(1)
                message = message[sm.end():]

        # the extension tags its lines; keep the tag in ``original`` only
        message = message.replace(_EXTENSION_MARKER, "").rstrip()
        shot = _SCREENSHOT_RE.search(message)
        current = UnifiedLogLine(
            timestamp=m.group("ts"),
            source=source,
            message=clean_console_formatting(message),
            original=line,
            tab_identifier=tab_identifier,
            screenshot=shot.group(1).strip() if shot else None,
        )

    if current is not None:
        entries.append(current)
    return entries
