"""
Netlist items produced by the controller compilers.

Compilers yield these records one at a time; the netlist template
renders each record into text as it arrives, so no module-level tree is
ever built. Every record names its template macro through ``kind``.
"""

from dataclasses import dataclass, field
from typing import ClassVar, Optional, Tuple

INPUT = "input"
OUTPUT = "output"


@dataclass(frozen=True)
class Port:
    """Module port with its documentation comment."""

    direction: str
    name: str
    comment: str
    width: int = 1

    @property
    def declaration(self) -> str:
        direction = "input " if self.direction == INPUT else "output"
        if self.width > 1:
            return f"    {direction} wire [{self.width - 1}:0] {self.name}"
        return f"    {direction} wire {self.name}"


@dataclass(frozen=True)
class Comment:
    """Single line ``/* ... */`` comment."""

    kind: ClassVar[str] = "comment"
    text: str


@dataclass(frozen=True)
class BlockComment:
    """Multi-line comment heading a link chain."""

    kind: ClassVar[str] = "block_comment"
    text: str


@dataclass(frozen=True)
class Wire:
    """Net declaration, optionally with a continuous assignment."""

    kind: ClassVar[str] = "wire"
    name: str
    expr: Optional[str] = None
    note: str = ""


@dataclass(frozen=True)
class Assign:
    kind: ClassVar[str] = "assign"
    lhs: str
    rhs: str


@dataclass(frozen=True)
class Instance:
    """Named-port instantiation of a primitive cell.

    A connection whose signal is ``None`` renders as an open port ``()``.
    """

    kind: ClassVar[str] = "instance"
    cell: str
    name: str
    params: Tuple[Tuple[str, str], ...] = ()
    connections: Tuple[Tuple[str, Optional[str]], ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Blank:
    kind: ClassVar[str] = "blank"


@dataclass(frozen=True)
class Verbatim:
    """Pre-rendered block of text."""

    kind: ClassVar[str] = "verbatim"
    text: str
