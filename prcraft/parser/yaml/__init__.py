"""
YAML parsers for clock and reset controller declarations.
"""

from .clock_parser import ClockConfigParser, parse_clock_config
from .errors import ConfigurationError, ParseError
from .prc_yaml_parser import NodeMap, PrcYamlParser
from .reset_parser import ResetConfigParser, parse_reset_config

__all__ = [
    "ClockConfigParser",
    "ResetConfigParser",
    "PrcYamlParser",
    "NodeMap",
    "ParseError",
    "ConfigurationError",
    "parse_clock_config",
    "parse_reset_config",
]
