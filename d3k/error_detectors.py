"""Error detectors: decide whether a single server message is a critical failure.

A detector is anything with ``is_critical(message) -> bool``. Framework
detectors wrap a base detector instance rather than subclassing it:
exclusions are checked first, then the wrapped detector, then the
framework's own critical patterns. Detectors are pure and never raise.
"""

import re


class ErrorDetector:
    """Interface: ``is_critical(message) -> bool``."""

    def is_critical(self, message: str) -> bool:
        raise NotImplementedError


# Noise checks run before anything else, so "warning: Cannot find module"
# is never critical even though it contains a critical substring.
_NOISE_PATTERNS = [
    re.compile(r"warning", re.IGNORECASE),
    re.compile(r"WARN"),
    re.compile(r"deprecated", re.IGNORECASE),
]

_BASE_CRITICAL_PATTERNS = [
    # Connection and port errors
    re.compile(r"EADDRINUSE"),
    re.compile(r"EACCES"),
    re.compile(r"ENOENT"),
    re.compile(r"ECONNREFUSED"),
    # System-level errors
    re.compile(r"out of memory", re.IGNORECASE),
    re.compile(r"segmentation fault", re.IGNORECASE),
    re.compile(r"stack overflow", re.IGNORECASE),
    # Fatal errors and kill signals
    re.compile(r"FATAL"),
    re.compile(r"PANIC"),
    re.compile(r"SIGKILL"),
    re.compile(r"SIGTERM"),
    # Missing modules/packages, unless "warning" appears earlier on the line
    re.compile(r"^(?!.*warning).*Cannot find module", re.IGNORECASE),
    re.compile(r"^(?!.*warning).*Module not found", re.IGNORECASE),
    re.compile(r"^(?!.*warning).*Package not found", re.IGNORECASE),
    # Syntax and parse errors, same guard
    re.compile(r"^(?!.*warning).*SyntaxError", re.IGNORECASE),
    re.compile(r"^(?!.*warning).*Parse error", re.IGNORECASE),
    re.compile(r"^(?!.*warning).*Unexpected token", re.IGNORECASE),
]


class BaseErrorDetector(ErrorDetector):
    """Framework-agnostic patterns: OS/resource errors, fatal signals, missing modules, syntax errors."""

    def __init__(self, critical_patterns=None, noise_patterns=None):
        self._critical = list(critical_patterns or _BASE_CRITICAL_PATTERNS)
        self._noise = list(noise_patterns or _NOISE_PATTERNS)

    def is_noise(self, message: str) -> bool:
        return any(p.search(message) for p in self._noise)

    def is_critical(self, message: str) -> bool:
        if not message or not message.strip():
            return False
        if self.is_noise(message):
            return False
        return any(p.search(message) for p in self._critical)


class FrameworkErrorDetector(ErrorDetector):
    """Wraps another detector with framework exclusions and extra critical patterns.

    Order is fixed: exclusions, then the wrapped detector, then own patterns.
    An excluded message is never critical, whatever the other two say.
    """

    def __init__(self, base: ErrorDetector, exclusion_patterns=(), critical_patterns=()):
        self._base = base
        self._exclusions = list(exclusion_patterns)
        self._critical = list(critical_patterns)

    @property
    def base(self) -> ErrorDetector:
        return self._base

    def is_excluded(self, message: str) -> bool:
        return any(p.search(message) for p in self._exclusions)

    def is_critical(self, message: str) -> bool:
        if not message or not message.strip():
            return False
        if self.is_excluded(message):
            return False
        if self._base.is_critical(message):
            return True
        # base noise also silences framework patterns ("warning: Failed to compile ...")
        is_noise = getattr(self._base, "is_noise", None)
        if is_noise is not None and is_noise(message):
            return False
        return any(p.search(message) for p in self._critical)


NEXTJS_EXCLUSION_PATTERNS = [
    # FATAL during static params generation, either order
    re.compile(r"FATAL.*generateStaticParams|generateStaticParams.*FATAL"),
    # missing .next build artifacts, not a missing dependency
    re.compile(r"Cannot find module.*\.next|Module not found.*\.next"),
]

NEXTJS_CRITICAL_PATTERNS = [
    # Build/compilation failures that stop the dev server
    re.compile(r"Failed to compile"),
    re.compile(r"webpack.*compilation.*failed", re.IGNORECASE),
    re.compile(r"Build optimization failed"),
    # Dependency resolution
    re.compile(r"Module not found.*Can't resolve"),
    re.compile(r"Cannot resolve dependency"),
    # Configuration errors that prevent startup
    re.compile(r"Invalid configuration"),
    re.compile(r"Configuration error"),
    # Build directory issues
    re.compile(r"Error: ENOENT.*\.next"),
    re.compile(r"Failed to read.*\.next"),
    # Memory exhaustion during build
    re.compile(r"JavaScript heap out of memory"),
    re.compile(r"Process out of memory"),
    # Build-time prerender failures
    re.compile(r"Error occurred prerendering page.*build", re.IGNORECASE),
    re.compile(r"getStaticPaths.*error.*build", re.IGNORECASE),
    re.compile(r"getStaticProps.*error.*build", re.IGNORECASE),
    # TypeScript / ESLint / syntax
    re.compile(r"SyntaxError.*Unexpected token"),
    re.compile(r"TSError.*TypeScript error"),
    re.compile(r"ESLint.*Parsing error"),
]


class NextJsErrorDetector(FrameworkErrorDetector):
    def __init__(self, base: ErrorDetector | None = None):
        super().__init__(
            base or BaseErrorDetector(),
            exclusion_patterns=NEXTJS_EXCLUSION_PATTERNS,
            critical_patterns=NEXTJS_CRITICAL_PATTERNS,
        )


def get_error_detector(framework: str | None) -> ErrorDetector:
    if framework == "nextjs":
        return NextJsErrorDetector()
    return BaseErrorDetector()
