"""Output processor: pairs a log format parser with an error detector."""

from d3k.error_detectors import ErrorDetector, get_error_detector
from d3k.log_parsers import LogFormatParser, get_log_parser
from d3k.models import LogEntry

ERROR_MARKER = "ERROR: "


class OutputProcessor:
    """Single entry point for raw dev-server output.

    stderr lines get the ``ERROR: `` marker whatever their severity; only
    stderr lines are run through the detector.
    """

    def __init__(self, log_format_parser: LogFormatParser, error_detector: ErrorDetector):
        self._parser = log_format_parser
        self._detector = error_detector

    @property
    def log_format_parser(self) -> LogFormatParser:
        return self._parser

    @property
    def error_detector(self) -> ErrorDetector:
        return self._detector

    def process(self, text: str, is_error_stream: bool = False) -> list[LogEntry]:
        entries = []
        for line in self._parser.parse(text):
            formatted = f"{ERROR_MARKER}{line.formatted}" if is_error_stream else line.formatted
            if is_error_stream and self._detector.is_critical(line.message):
                entries.append(LogEntry(formatted=formatted, is_critical=True, raw_message=line.message))
            else:
                entries.append(LogEntry(formatted=formatted))
        return entries


def build_output_processor(framework: str | None) -> OutputProcessor:
    return OutputProcessor(get_log_parser(framework), get_error_detector(framework))
