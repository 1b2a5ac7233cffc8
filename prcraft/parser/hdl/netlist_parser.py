"""
Netlist inspector using pyparsing to read back generated Verilog.

Only the subset written by the controller generators and the primitive
cell templates is understood: ANSI module headers (with an optional
parameter block) and named-port instantiations in module bodies.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Union

from pyparsing import (
    CaselessKeyword,
    DelimitedList,
    Group,
    MatchFirst,
    ParseBaseException,
)
from pyparsing import Optional as Opt
from pyparsing import (
    ParserElement,
    SkipTo,
    Suppress,
    Word,
    alphanums,
    alphas,
    cpp_style_comment,
    nested_expr,
    one_of,
)

logger = logging.getLogger(__name__)

ParserElement.enable_packrat()

VERILOG_KEYWORDS = (
    "module endmodule input output inout wire reg logic assign always begin end "
    "if else for generate endgenerate genvar parameter localparam initial case endcase"
).split()


@dataclass
class ParsedPort:
    """Port read from a module header."""

    direction: str
    name: str
    width: Optional[int] = 1  # None when the range is not numeric


@dataclass
class ParsedInstance:
    """Named-port instantiation inside a module body."""

    cell: str
    name: str
    params: Dict[str, str] = field(default_factory=dict)
    connections: Dict[str, str] = field(default_factory=dict)


@dataclass
class ParsedModule:
    name: str
    ports: List[ParsedPort] = field(default_factory=list)
    instances: List[ParsedInstance] = field(default_factory=list)

    def port_names(self) -> List[str]:
        return [port.name for port in self.ports]

    def find_port(self, name: str) -> Optional[ParsedPort]:
        for port in self.ports:
            if port.name == name:
                return port
        return None

    def instances_of(self, cell: str) -> List[ParsedInstance]:
        return [inst for inst in self.instances if inst.cell == cell]


class VerilogNetlistParser:
    """Parser for generated controller netlists and primitive cell files."""

    def __init__(self):
        """Initialize the grammar."""
        keyword = MatchFirst([CaselessKeyword(k) for k in VERILOG_KEYWORDS])
        self.identifier = ~keyword + Word(alphas + "_", alphanums + "_$")

        # Port declarations; a declaration without direction continues the previous one
        self.direction = one_of("input output inout", caseless=True)
        self.data_type = one_of("wire reg logic", caseless=True)
        self.vector_range = Suppress("[") + SkipTo("]").set_results_name("range") + Suppress("]")
        self.port_decl = Group(
            Opt(self.direction).set_results_name("direction")
            + Opt(self.data_type)
            + Opt(self.vector_range)
            + self.identifier.set_results_name("name")
        )

        self.param_block = Suppress("#") + nested_expr("(", ")")
        self.module_header = (
            CaselessKeyword("module").suppress()
            + self.identifier.set_results_name("module_name")
            + Opt(self.param_block).suppress()
            + Suppress("(")
            + Group(Opt(DelimitedList(self.port_decl))).set_results_name("ports")
            + Suppress(")")
            + Suppress(";")
        )
        self.module_decl = (
            self.module_header
            + SkipTo(CaselessKeyword("endmodule")).set_results_name("body")
            + CaselessKeyword("endmodule").suppress()
        )

        # Named connections: .port(signal); the signal may be empty (open port)
        self.named_conn = Group(
            Suppress(".")
            + Word(alphas + "_", alphanums + "_$")
            + Suppress("(")
            + SkipTo(")")
            + Suppress(")")
        )
        self.instance = (
            self.identifier.set_results_name("cell")
            + Opt(
                Suppress("#")
                + Suppress("(")
                + Group(Opt(DelimitedList(self.named_conn))).set_results_name("params")
                + Suppress(")")
            )
            + self.identifier.set_results_name("name")
            + Suppress("(")
            + Group(Opt(DelimitedList(self.named_conn))).set_results_name("connections")
            + Suppress(")")
            + Suppress(";")
        )

        self.module_name = CaselessKeyword("module").suppress() + self.identifier

        # Scanning restarts at every offset, so comments are removed up front
        self.comment = cpp_style_comment.suppress()

    def parse_file(self, file_path: Union[str, Path]) -> List[ParsedModule]:
        """
        Parse a Verilog file.

        Args:
            file_path: Path to the Verilog file

        Returns:
            Modules in file order
        """
        with open(file_path, "r", encoding="utf-8") as f:
            return self.parse_text(f.read())

    def parse_text(self, verilog_text: str) -> List[ParsedModule]:
        """
        Parse Verilog text.

        Args:
            verilog_text: Verilog code to parse

        Returns:
            Modules in text order; unreadable modules are skipped
        """
        modules = []
        try:
            for tokens, _, _ in self.module_decl.scan_string(self.strip_comments(verilog_text)):
                modules.append(self._create_module(tokens))
        except ParseBaseException as e:
            logger.warning(f"Error parsing Verilog netlist: {e}")
        if not modules and "module" in verilog_text:
            logger.warning("No module declaration could be parsed")
        return modules

    def module_names(self, verilog_text: str) -> List[str]:
        """Names of every ``module`` declared in the text, headers only."""
        text = self.strip_comments(verilog_text)
        return [tokens[0] for tokens, _, _ in self.module_name.scan_string(text)]

    def strip_comments(self, verilog_text: str) -> str:
        return self.comment.transform_string(verilog_text)

    def _create_module(self, tokens) -> ParsedModule:
        module = ParsedModule(name=tokens["module_name"])
        direction = "input"
        for decl in tokens.get("ports", []):
            if "direction" in decl:
                direction = decl["direction"].lower()
            width = self._width(decl["range"]) if "range" in decl else 1
            module.ports.append(ParsedPort(direction, decl["name"], width))

        for inst, _, _ in self.instance.scan_string(tokens["body"]):
            module.instances.append(
                ParsedInstance(
                    cell=inst["cell"],
                    name=inst["name"],
                    params=self._named(inst.get("params", [])),
                    connections=self._named(inst.get("connections", [])),
                )
            )
        logger.debug(
            "Parsed module %s: %d ports, %d instances",
            module.name,
            len(module.ports),
            len(module.instances),
        )
        return module

    @staticmethod
    def _named(groups) -> Dict[str, str]:
        """``.name(value)`` groups as a dict; an empty value may yield no token."""
        named = {}
        for group in groups:
            items = list(group)
            named[items[0]] = items[1].strip() if len(items) > 1 else ""
        return named

    @staticmethod
    def _width(range_text: str) -> Optional[int]:
        """Width of ``msb:lsb``, or None if either bound is not a number."""
        msb, _, lsb = range_text.partition(":")
        try:
            return abs(int(msb) - int(lsb)) + 1
        except ValueError:
            return None
