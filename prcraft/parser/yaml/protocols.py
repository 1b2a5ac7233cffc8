"""Typing protocols for parser mixins."""

from typing import Protocol

from prcraft.model import DiagnosticLog


class ParserHostContext(Protocol):
    """Attributes required by parser mixins from the main parser class."""

    diagnostics: DiagnosticLog
