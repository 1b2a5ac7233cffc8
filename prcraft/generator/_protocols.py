"""Typing protocols for generator mixins."""

from __future__ import annotations
from typing import Protocol

from jinja2 import Environment


class GeneratorHost(Protocol):
    """Protocol for the host class that generator mixins expect."""

    env: Environment


class TextSink(Protocol):
    """Destination of netlist text fragments, e.g. an open file."""

    def write(self, text: str) -> int:
        ...
