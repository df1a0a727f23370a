"""Error reporting for failures that are handled without propagating."""

import logging
from dataclasses import dataclass
from typing import Protocol

_logger = logging.getLogger(__name__)


class ErrorReporter(Protocol):
    """Receives failures that a service absorbed instead of raising."""

    def report(self, message: str, exc: Exception) -> None:
        """Record a handled failure."""


@dataclass
class LoggingErrorReporter(ErrorReporter):
    """Reports handled failures to the application log."""

    def report(self, message: str, exc: Exception) -> None:
        """Log the failure with its traceback."""
        _logger.warning("%s: %s", message, exc, exc_info=exc)
