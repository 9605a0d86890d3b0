"""Log format parsers: turn raw stdout/stderr chunks into ParsedLogLine records.

A parser is called once per OS-level read, so a chunk may hold zero, one or
many lines. Blank lines are dropped, order is preserved, and malformed input
comes back as a plain line instead of raising.
"""

import re

from d3k.models import ParsedLogLine


class LogFormatParser:
    """Interface: ``parse(text) -> list[ParsedLogLine]``."""

    def parse(self, text: str) -> list[ParsedLogLine]:
        raise NotImplementedError


def _split_lines(text: str) -> list[str]:
    if not text or not text.strip():
        return []
    lines = []
    for line in text.strip().split("\n"):
        line = line.rstrip("\r")
        if line.strip():
            lines.append(line)
    return lines


class StandardLogParser(LogFormatParser):
    """Every non-blank line is one record, unchanged."""

    def parse(self, text: str) -> list[ParsedLogLine]:
        return [ParsedLogLine(formatted=line, message=line) for line in _split_lines(text)]


# foreman / honcho / overmind: "web.1  | Started GET /", optionally "12:00:01 web.1 | ..."
_PIPE_PREFIX_RE = re.compile(
    r"^(?:(?P<time>\d{2}:\d{2}:\d{2})\s+)?(?P<name>[A-Za-z][\w.\-]*)\s*\| ?(?P<msg>.*)$"
)
# concurrently: "[js] compiled successfully", and this parser's own "[JS] ..."
# output, so formatted lines parse back to the same message.
_BRACKET_PREFIX_RE = re.compile(r"^\[(?P<name>[A-Za-z0-9][A-Za-z0-9_.\-]*)\] (?P<msg>.*)$")
# Bracketed severities are part of the message, never a process name
_LEVEL_TAGS = frozenset(("LOG", "TRACE", "DEBUG", "INFO", "NOTICE", "WARN", "WARNING", "ERROR", "CRITICAL", "FATAL"))


class ProcessManagerLogParser(LogFormatParser):
    """Strips process-manager prefixes so detectors see the bare message."""

    def parse(self, text: str) -> list[ParsedLogLine]:
        return [self._parse_line(line) for line in _split_lines(text)]

    def _parse_line(self, line: str) -> ParsedLogLine:
        m = _PIPE_PREFIX_RE.match(line)
        if m:
            metadata = {"manager": "procfile"}
            if m.group("time"):
                metadata["time"] = m.group("time")
            return self._build(line, m.group("name"), m.group("msg"), metadata)

        m = _BRACKET_PREFIX_RE.match(line)
        if m and m.group("name").upper() not in _LEVEL_TAGS:
            return self._build(line, m.group("name"), m.group("msg"), {"manager": "concurrently"})

        return ParsedLogLine(formatted=line, message=line)

    @staticmethod
    def _build(line: str, name: str, message: str, metadata: dict) -> ParsedLogLine:
        message = message.strip()
        if not message:
            # prefix with nothing behind it, keep the line as-is
            return ParsedLogLine(formatted=line, message=line)
        # "web.1" -> "web"
        process = name.split(".", 1)[0].lower()
        return ParsedLogLine(
            formatted=f"[{process.upper()}] {message}",
            message=message,
            process_name=process,
            metadata=metadata,
        )


def get_log_parser(framework: str | None) -> LogFormatParser:
    """Rails apps run under foreman via bin/dev; everything else logs plainly."""
    if framework == "rails":
        return ProcessManagerLogParser()
    return StandardLogParser()
