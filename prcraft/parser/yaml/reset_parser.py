"""
Parser for ``reset:`` controller declarations.

Turns the generic node tree of a reset declaration into a
``ResetControllerConfig``, collecting diagnostics the same way the clock
parser does.
"""

import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from prcraft.model import (
    DiagnosticLog,
    ReasonRecorder,
    ResetControllerConfig,
    ResetLink,
    ResetSource,
    ResetStage,
    ResetStageKind,
    ResetTarget,
)

from .errors import ConfigurationError
from .node_reader import NodeReaderMixin

logger = logging.getLogger(__name__)

_PARSE_ERRORS = (KeyError, TypeError, ValueError, ValidationError)


class ResetConfigParser(NodeReaderMixin):
    """Reads a reset controller declaration."""

    def __init__(self, diagnostics: Optional[DiagnosticLog] = None):
        self.diagnostics = diagnostics or DiagnosticLog(logger)

    def parse(self, node: Any) -> Optional[ResetControllerConfig]:
        """
        Parse a reset declaration.

        Args:
            node: Mapping found under the ``reset:`` key

        Returns:
            The controller configuration, or None when it was rejected
        """
        self.diagnostics.clear()
        if not isinstance(node, dict):
            self.diagnostics.error("Reset declaration must be a map", "reset")
            return None

        name = self._text(node, "name")
        if not name:
            self.diagnostics.error(
                "Missing required field: name",
                "reset",
                suggestion="reset: { name: my_reset_ctrl, ... }",
            )
        location = f"reset:{name or '?'}"

        test_enable = self._text(node, "test_enable")
        sources = self._parse_sources(node.get("source"), location)
        targets = self._parse_targets(node.get("target"), location, test_enable)
        if not targets:
            self.diagnostics.error("No reset targets declared", location)

        reason = self._parse_reason(node.get("reason"), sources, location)
        self._check_link_sources(sources, targets, location)

        if self.diagnostics.has_errors:
            return None

        try:
            config = ResetControllerConfig(
                name=name,
                test_enable=test_enable,
                sources=sources,
                targets=targets,
                reason=reason,
            )
        except ValidationError as e:
            self.diagnostics.error(f"Invalid reset controller: {self._describe(e)}", location)
            return None

        logger.debug(
            "Parsed reset controller %s: %d sources, %d targets, reason %s",
            config.name,
            len(config.sources),
            len(config.targets),
            "enabled" if config.reason.enabled else "disabled",
        )
        return config

    def _parse_sources(self, data: Any, location: str) -> List[ResetSource]:
        sources = []
        for name, body in self._entries(data, "reset source", location):
            source_location = f"{location}:source:{name}"
            active = self._text(body, "active") if isinstance(body, dict) else ""
            if not active:
                self.diagnostics.error(
                    "Reset source requires an explicit active level",
                    source_location,
                    suggestion=f"source: {{ {name}: {{active: low}} }}",
                )
                continue
            try:
                sources.append(ResetSource(name=name, active=active))
            except _PARSE_ERRORS as e:
                self.diagnostics.error(
                    f"Error parsing reset source: {self._describe(e)}", source_location
                )
        return sources

    def _parse_targets(
        self, data: Any, location: str, test_enable: str
    ) -> List[ResetTarget]:
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
    ) -> Optional[ResetTarget]:
        if body is None:
            body = {}
        if not isinstance(body, dict):
            raise TypeError("target definition must be a map")

        active = self._text(body, "active")
        if not active:
            self.diagnostics.error(
                "Reset target requires an explicit active level", location
            )

        stage = self._parse_stage(body, test_enable, location)

        links = []
        for source, link_body in self._entries(body.get("link"), "link source", location):
            link_location = f"{location}:link:{source}"
            link_body = link_body if isinstance(link_body, dict) else {}
            try:
                links.append(
                    ResetLink(
                        source=source,
                        stage=self._parse_stage(link_body, test_enable, link_location),
                    )
                )
            except _PARSE_ERRORS as e:
                self.diagnostics.error(
                    f"Error parsing link: {self._describe(e)}", link_location
                )

        if not active:
            return None
        return ResetTarget(name=name, active=active, links=links, stage=stage)

    def _parse_stage(
        self, body: Dict[str, Any], test_enable: str, location: str
    ) -> Optional[ResetStage]:
        """
        Parse the ``async`` / ``sync`` / ``count`` block of a target or link.

        Only one stage is allowed per path; extra ones are reported and the
        first in ``async``, ``sync``, ``count`` order is used.
        """
        declared = [kind for kind in ResetStageKind if body.get(kind.value) is not None]
        if not declared:
            return None
        kind = declared[0]
        if len(declared) > 1:
            ignored = ", ".join(k.value for k in declared[1:])
            self.diagnostics.warning(
                f"Only one reset stage allowed, using '{kind.value}' and ignoring {ignored}",
                location,
            )

        data = body[kind.value]
        if not isinstance(data, dict):
            raise TypeError(f"'{kind.value}' must be a map")

        clock = self._text(data, "clock")
        if not clock:
            self.diagnostics.error(
                f"'clock' field is required for {kind.value} component", location
            )
            return None

        return ResetStage(
            kind=kind,
            clock=clock,
            size=self._integer(data, kind.size_key, kind.default_size),
            test_enable=test_enable,
        )

    def _parse_reason(
        self, data: Any, sources: List[ResetSource], location: str
    ) -> ReasonRecorder:
        """
        Parse the reset-reason recorder.

        The valid output is read from ``valid`` and falls back to the older
        ``valid_signal`` spelling.
        """
        if data is None:
            return ReasonRecorder()
        reason_location = f"{location}:reason"
        if not isinstance(data, dict):
            self.diagnostics.error("'reason' must be a map", reason_location)
            return ReasonRecorder()

        source_names = [source.name for source in sources]
        root_reset = self._text(data, "root_reset")
        if not root_reset:
            self.diagnostics.error(
                "'root_reset' field is required in reason configuration",
                reason_location,
                suggestion="reason: { root_reset: por_rst_n, ... }",
            )
        elif root_reset not in source_names:
            available = ", ".join(source_names) or "none"
            self.diagnostics.error(
                f"Root reset '{root_reset}' is not a declared source",
                reason_location,
                suggestion=f"available sources: {available}",
            )

        valid = self._text(data, "valid")
        if not valid:
            valid = self._text(data, "valid_signal", "reason_valid")

        return ReasonRecorder(
            enabled=True,
            clock=self._text(data, "clock", "clk_32k"),
            output=self._text(data, "output", "reason"),
            valid=valid,
            clear=self._text(data, "clear", "reason_clear"),
            root_reset=root_reset,
            source_order=[name for name in source_names if name != root_reset],
        )

    def _check_link_sources(
        self, sources: List[ResetSource], targets: List[ResetTarget], location: str
    ) -> None:
        declared = {source.name for source in sources}
        outputs = {target.name for target in targets}
        for target in targets:
            for link in target.links:
                if link.source not in declared and link.source not in outputs:
                    self.diagnostics.warning(
                        f"Link source '{link.source}' is not declared, assuming low-active",
                        f"{location}:target:{target.name}",
                    )


def parse_reset_config(node: Any) -> ResetControllerConfig:
    """Parse a reset declaration, raising ``ConfigurationError`` on rejection."""
    parser = ResetConfigParser()
    config = parser.parse(node)
    if config is None:
        raise ConfigurationError("Reset configuration rejected", parser.diagnostics.errors)
    return config
