"""
Port synthesis bookkeeping for one compilation.

Ports are collected by walking signal categories in a fixed order. Two
precedence rules keep the list free of duplicates:

* output-wins: names of target outputs are known before the walk starts,
  and an input carrying such a name is never declared;
* first-wins: once a name is declared, later categories skip it.

Divider value/valid/ready/count names are additionally exclusive across
all dividers of a controller; reusing one is a fatal collision.
"""

import logging
from typing import Iterable, List, Set

from prcraft.model.netlist import INPUT, OUTPUT, Port

from .errors import NameCollisionError

logger = logging.getLogger(__name__)


class CompilationContext:
    """Port list under construction plus the sets guarding it."""

    def __init__(self, outputs: Iterable[str] = ()):
        self.ports: List[Port] = []
        self.added: Set[str] = set()
        self.outputs: Set[str] = set(outputs)
        self.divider_signals: Set[str] = set()

    def add_input(self, name: str, comment: str, width: int = 1) -> bool:
        """Declare an input unless the name is taken or owned by an output."""
        if not name or name in self.added:
            return False
        if name in self.outputs:
            logger.debug("Input %s suppressed by target output of the same name", name)
            return False
        return self._declare(Port(INPUT, name, comment, width))

    def add_output(self, name: str, comment: str, width: int = 1) -> bool:
        if not name or name in self.added:
            return False
        return self._declare(Port(OUTPUT, name, comment, width))

    def claim_divider_signal(self, role: str, name: str) -> None:
        """Reserve a divider control name, raising on reuse."""
        if name in self.divider_signals:
            raise NameCollisionError(f"Duplicate divider {role} signal name: {name}")
        self.divider_signals.add(name)

    def port_names(self) -> List[str]:
        return [port.name for port in self.ports]

    def _declare(self, port: Port) -> bool:
        self.ports.append(port)
        self.added.add(port.name)
        return True
