"""Browser events: schema validation and rendering to (SOURCE, message) pairs."""

import re

import jsonschema

from d3k.exceptions import InvalidEventError

EVENT_SOURCES = {
    "console": "BROWSER",
    "network": "NETWORK",
    "error": "ERROR",
    "dom": "DOM",
    "cdp": "CDP",
    "screenshot": "SCREENSHOT",
    "interaction": "INTERACTION",
    "navigation": "NAVIGATION",
}

EVENT_SCHEMA = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["type", "message"],
    "properties": {
        "type": {"enum": sorted(EVENT_SOURCES)},
        "message": {"type": "string", "minLength": 1},
        "level": {"type": "string"},
        "url": {"type": "string"},
        "method": {"type": "string"},
        "status": {"type": "integer", "minimum": 100, "maximum": 599},
    },
}

_validator = jsonschema.Draft202012Validator(EVENT_SCHEMA)

_CONSOLE_LOG_RE = re.compile(r"^\[CONSOLE LOG\] (.+)$", re.DOTALL)
# CSS left behind by "%c" directives, up to the next JSON payload or end of line
_CSS_RE = re.compile(r"\s+color:\s*[^{}\n]*?(?=\s*[{\[]|$)")


def validate_event(event) -> list[str]:
    """Return schema error messages; empty means valid."""
    return [e.message for e in _validator.iter_errors(event)]


def strip_console_css(text: str) -> str:
    """'%c[App]%c ready color: red' -> '[App] ready'"""
    if "%c" not in text:
        return text
    cleaned = text.replace("%c", "")
    cleaned = _CSS_RE.sub("", cleaned)
    return re.sub(r"\s+", " ", cleaned).strip()


def clean_console_formatting(message: str) -> str:
    """Strip %c directives from a ``[CONSOLE LOG] ...`` message; others pass through."""
    m = _CONSOLE_LOG_RE.match(message)
    if not m or "%c" not in m.group(1):
        return message
    return f"[CONSOLE LOG] {strip_console_css(m.group(1))}"


def render_event(event: dict) -> tuple[str, str]:
    """Validate and render. Raises InvalidEventError."""
    errors = validate_event(event)
    if errors:
        raise InvalidEventError(errors)

    source = EVENT_SOURCES[event["type"]]
    message = event["message"]

    if event["type"] == "console":
        level = (event.get("level") or "log").upper()
        return source, f"[CONSOLE {level}] {strip_console_css(message)}"

    if event["type"] == "network":
        parts = [event.get("method"), str(event["status"]) if "status" in event else None, event.get("url")]
        prefix = " ".join(p for p in parts if p)
        return source, f"{prefix} {message}" if prefix else message

    if event["type"] == "navigation" and event.get("url"):
        return source, f"{event['url']} {message}"

    return source, message
