"""
Parser for ``clock:`` controller declarations.

Turns the generic node tree of a clock declaration into a
``ClockControllerConfig``. Problems are collected in ``diagnostics``;
parsing continues after an error so every problem is reported, and the
declaration is rejected (``None``) when any error was recorded.
"""

import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from prcraft.model import (
    ClockControllerConfig,
    ClockInput,
    ClockLink,
    ClockTarget,
    DiagnosticLog,
    DividerBlock,
    IcgBlock,
    InverterBlock,
    MuxBlock,
    MuxKind,
    StaGuide,
)

from .errors import ConfigurationError
from .node_reader import NodeReaderMixin

logger = logging.getLogger(__name__)

_PARSE_ERRORS = (KeyError, TypeError, ValueError, ValidationError)


class ClockConfigParser(NodeReaderMixin):
    """Reads a clock controller declaration."""

    def __init__(self, diagnostics: Optional[DiagnosticLog] = None):
        self.diagnostics = diagnostics or DiagnosticLog(logger)

    def parse(self, node: Any) -> Optional[ClockControllerConfig]:
        """
        Parse a clock declaration.

        Args:
            node: Mapping found under the ``clock:`` key

        Returns:
            The controller configuration, or None when it was rejected
        """
        self.diagnostics.clear()
        if not isinstance(node, dict):
            self.diagnostics.error("Clock declaration must be a map", "clock")
            return None

        name = self._text(node, "name")
        if not name:
            self.diagnostics.error("Missing required field: name", "clock")
        location = f"clock:{name or '?'}"

        test_enable = self._text(node, "test_enable")
        inputs = self._parse_inputs(node.get("input"), location)
        targets = self._parse_targets(node.get("target"), location, test_enable)

        if not inputs:
            self.diagnostics.error("No clock inputs declared", location)
        if not targets:
            self.diagnostics.error("No clock targets declared", location)

        self._check_link_sources(inputs, targets, location)

        if self.diagnostics.has_errors:
            return None

        try:
            config = ClockControllerConfig(
                name=name,
                test_enable=test_enable,
                ref_clock=self._text(node, "ref_clock"),
                inputs=inputs,
                targets=targets,
            )
        except ValidationError as e:
            self.diagnostics.error(f"Invalid clock controller: {self._describe(e)}", location)
            return None

        logger.debug(
            "Parsed clock controller %s: %d inputs, %d targets",
            config.name,
            len(config.inputs),
            len(config.targets),
        )
        return config

    def _parse_inputs(self, data: Any, location: str) -> List[ClockInput]:
        inputs = []
        for name, body in self._entries(data, "clock input", location):
            body = body if isinstance(body, dict) else {}
            try:
                inputs.append(
                    ClockInput(
                        name=name,
                        freq=self._text(body, "freq"),
                        duty=self._text(body, "duty"),
                    )
                )
            except _PARSE_ERRORS as e:
                self.diagnostics.error(
                    f"Error parsing clock input: {self._describe(e)}",
                    f"{location}:input:{name}",
                )
        return inputs

    def _parse_targets(
        self, data: Any, location: str, test_enable: str
    ) -> List[ClockTarget]:
        targets = []
        for name, body in self._entries(data, "target", location):
            target_location = f"{location}:target:{name}"
            try:
                target = self._parse_target(name, body, target_location, test_enable)
            except _PARSE_ERRORS as e:
                self.diagnostics.error(
                    f"Error parsing target: {self._describe(e)}", target_location
                )
                continue
            if target is not None:
                targets.append(target)
        return targets

    def _parse_target(
        self, name: str, body: Any, location: str, test_enable: str
    ) -> Optional[ClockTarget]:
        if body is None:
            body = {}
        if not isinstance(body, dict):
            raise TypeError("target definition must be a map")

        links = self._parse_links(body.get("link"), location, test_enable)
        if not links:
            self.diagnostics.error(
                "Clock target has no source link",
                location,
                suggestion="add a 'link' map naming at least one source",
            )

        fields: Dict[str, Any] = {
            "name": name,
            "freq": self._text(body, "freq"),
            "icg": self._parse_icg(body.get("icg"), test_enable, location),
            "div": self._parse_divider(body.get("div"), test_enable, location),
            "inv": self._parse_inverter(body, location, link=False),
            "links": links,
        }

        if len(links) >= 2:
            select = self._text(body, "select")
            if not select:
                self.diagnostics.error(
                    f"Target with {len(links)} links requires a 'select' signal",
                    location,
                )
            reset = self._text(body, "reset")
            fields.update(
                select=select,
                reset=reset,
                test_clock=self._text(body, "test_clock"),
                test_enable=test_enable,
                mux=self._parse_mux(body.get("mux"), reset, location),
            )

        return ClockTarget(**fields)

    def _parse_links(self, data: Any, location: str, test_enable: str) -> List[ClockLink]:
        links = []
        for source, body in self._entries(data, "link source", location):
            link_location = f"{location}:link:{source}"
            body = body if isinstance(body, dict) else {}
            try:
                links.append(
                    ClockLink(
                        source=source,
                        icg=self._parse_icg(body.get("icg"), test_enable, link_location),
                        div=self._parse_divider(body.get("div"), test_enable, link_location),
                        inv=self._parse_inverter(body, link_location, link=True),
                    )
                )
            except _PARSE_ERRORS as e:
                self.diagnostics.error(
                    f"Error parsing link: {self._describe(e)}", link_location
                )
        return links

    def _parse_mux(self, data: Any, reset: str, location: str) -> MuxBlock:
        """Multiplexer kind follows the reset signal: glitch-free iff present."""
        kind = MuxKind.GF_MUX if reset else MuxKind.STD_MUX
        data = data if isinstance(data, dict) else {}

        declared = self._text(data, "type")
        if declared:
            try:
                declared_kind = MuxKind.from_string(declared)
            except ValueError as e:
                self.diagnostics.error(str(e), location)
            else:
                if declared_kind is not kind:
                    self.diagnostics.warning(
                        f"Multiplexer type '{declared}' ignored, "
                        f"{kind.value} is implied by the reset signal",
                        location,
                    )

        return MuxBlock(
            kind=kind, sta_guide=self._parse_sta_guide(data.get("sta_guide"), location)
        )

    def _parse_icg(self, data: Any, test_enable: str, location: str) -> IcgBlock:
        if not isinstance(data, dict):
            return IcgBlock()
        return IcgBlock(
            configured=True,
            enable=self._text(data, "enable"),
            polarity=self._text(data, "polarity", "high"),
            test_enable=test_enable,
            reset=self._text(data, "reset"),
            clock_on_reset=self._flag(data, "clock_on_reset"),
            sta_guide=self._parse_sta_guide(data.get("sta_guide"), location),
        )

    def _parse_divider(self, data: Any, test_enable: str, location: str) -> DividerBlock:
        """
        Parse a divider block.

        Static dividers derive their width from the default ratio unless
        ``width`` overrides it. Dynamic dividers (non-empty ``value``) must
        declare a positive width; a missing one is reported here and
        becomes a fatal shape error when the netlist is emitted.
        """
        if not isinstance(data, dict):
            return DividerBlock()

        default_value = self._integer(data, "default", 1)
        value = self._text(data, "value")

        if value:
            width = self._integer(data, "width", 0)
            if width <= 0:
                self.diagnostics.warning(
                    "Dynamic divider requires explicit width specification",
                    location,
                    suggestion="add a positive 'width'",
                )
            elif default_value > (1 << width) - 1:
                self.diagnostics.warning(
                    f"Default value {default_value} exceeds maximum value "
                    f"{(1 << width) - 1} for width {width} bits",
                    location,
                )
        else:
            width = self._integer(
                data, "width", DividerBlock.static_width(max(default_value, 0))
            )

        return DividerBlock(
            configured=True,
            default_value=default_value,
            width=width,
            clock_on_reset=self._flag(data, "clock_on_reset"),
            test_enable=test_enable,
            reset=self._text(data, "reset"),
            enable=self._text(data, "enable"),
            value=value,
            valid=self._text(data, "valid"),
            ready=self._text(data, "ready"),
            count=self._text(data, "count"),
            sta_guide=self._parse_sta_guide(data.get("sta_guide"), location),
        )

    def _parse_inverter(self, body: Dict[str, Any], location: str, link: bool) -> InverterBlock:
        """An ``inv`` key enables the inverter; ``inv: true`` is the legacy form."""
        if "inv" not in body:
            return InverterBlock()
        data = body["inv"]
        if isinstance(data, bool):
            if not data:
                return InverterBlock()
            self.diagnostics.warning(
                "Boolean 'inv' form is deprecated", location, suggestion="use 'inv: {}'"
            )
            return InverterBlock(configured=True, legacy=link)
        if data is None:
            return InverterBlock(configured=True)
        if not isinstance(data, dict):
            raise TypeError("'inv' must be a map or a boolean")
        return InverterBlock(
            configured=True,
            sta_guide=self._parse_sta_guide(data.get("sta_guide"), location),
        )

    def _parse_sta_guide(self, data: Any, location: str) -> StaGuide:
        if not isinstance(data, dict):
            return StaGuide()
        guide = StaGuide(
            cell=self._text(data, "cell"),
            in_port=self._text(data, "in"),
            out_port=self._text(data, "out"),
            instance=self._text(data, "instance"),
        )
        if guide.configured and not (guide.in_port and guide.out_port):
            self.diagnostics.error(
                f"STA guide cell '{guide.cell}' requires 'in' and 'out' port names",
                location,
            )
        return guide

    def _check_link_sources(
        self, inputs: List[ClockInput], targets: List[ClockTarget], location: str
    ) -> None:
        """Warn about links reading a clock that is neither an input nor a target."""
        known = {clock.name for clock in inputs} | {target.name for target in targets}
        for target in targets:
            for link in target.links:
                if link.source not in known:
                    self.diagnostics.warning(
                        f"Link source '{link.source}' is neither a clock input nor a target",
                        f"{location}:target:{target.name}",
                    )


def parse_clock_config(node: Any) -> ClockControllerConfig:
    """Parse a clock declaration, raising ``ConfigurationError`` on rejection."""
    parser = ClockConfigParser()
    config = parser.parse(node)
    if config is None:
        raise ConfigurationError("Clock configuration rejected", parser.diagnostics.errors)
    return config
