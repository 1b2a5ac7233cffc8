"""
Diagnostics collected while reading a controller description.

Parsing does not stop at the first problem: every error and warning is
recorded with its location so a single run reports all of them.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

logger = logging.getLogger(__name__)


@dataclass
class Diagnostic:
    """Configuration problem with context."""

    severity: str  # 'error' or 'warning'
    message: str
    location: str  # e.g. 'clock:clk_ctrl:target:clk_cpu'
    suggestion: str = ""

    def __str__(self) -> str:
        text = f"{self.location}: {self.message}" if self.location else self.message
        if self.suggestion:
            text += f" ({self.suggestion})"
        return text


class DiagnosticLog:
    """Error and warning collector mirrored to a logger."""

    def __init__(self, log: Optional[logging.Logger] = None):
        self.errors: List[Diagnostic] = []
        self.warnings: List[Diagnostic] = []
        self._logger = log or logger

    def error(self, message: str, location: str = "", suggestion: str = "") -> Diagnostic:
        diagnostic = Diagnostic("error", message, location, suggestion)
        self.errors.append(diagnostic)
        self._logger.error(f"{diagnostic}")
        return diagnostic

    def warning(self, message: str, location: str = "", suggestion: str = "") -> Diagnostic:
        diagnostic = Diagnostic("warning", message, location, suggestion)
        self.warnings.append(diagnostic)
        self._logger.warning(f"{diagnostic}")
        return diagnostic

    def clear(self) -> None:
        self.errors.clear()
        self.warnings.clear()

    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0

    def messages(self, severity: Optional[str] = None) -> List[str]:
        """Formatted diagnostics, optionally limited to one severity."""
        items = self.errors + self.warnings
        return [str(d) for d in items if severity is None or d.severity == severity]
