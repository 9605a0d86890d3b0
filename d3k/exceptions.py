"""Error types surfaced by the log pipeline."""


class D3kError(Exception):
    """Base class for errors reported to CLI and HTTP callers."""


class LogFileNotFoundError(D3kError, FileNotFoundError):
    def __init__(self, path: str, message: str = "Log file not found"):
        super().__init__(f"{message}: {path}")
        self.path = path
        self.message = message


class LogRotationError(D3kError):
    """A rotation step failed. ``step`` is one of verify, rename, create, repoint."""

    def __init__(self, step: str, message: str):
        super().__init__(f"rotation failed at {step}: {message}")
        self.step = step
        self.message = message


class SessionLookupError(D3kError):
    """No live session, no LOG_FILE_PATH override and no log file on disk."""

    def __init__(self, message: str = "No d3k log file found"):
        super().__init__(message)
        self.message = message


class InvalidEventError(D3kError):
    def __init__(self, errors: list[str]):
        super().__init__("; ".join(errors) or "invalid event")
        self.errors = errors
