"""
Parsers for controller declarations and generated netlists.
"""

from .yaml import (
    ClockConfigParser,
    ConfigurationError,
    ParseError,
    PrcYamlParser,
    ResetConfigParser,
)

__all__ = [
    "ClockConfigParser",
    "ResetConfigParser",
    "PrcYamlParser",
    "ParseError",
    "ConfigurationError",
]
