"""
Reset controller compiler.

Every target is built as::

    (links -> AND)? -> async | sync | count ? -> active-level conversion -> target

Internally resets are low-active: a link without a stage carries the
polarity-normalized source, several links are combined with ``&`` and a
high-active target is inverted once at the output.
"""

import logging
from typing import Any, Iterator, List, NamedTuple, Optional

from prcraft.model import ResetControllerConfig, ResetStage, ResetTarget
from prcraft.model.netlist import Assign, Blank, Comment, Instance, Port, Verbatim, Wire
from prcraft.parser.yaml import ResetConfigParser

from .base_generator import ControllerGenerator
from .cell_library import RESET_CELL_LIBRARY
from .context import CompilationContext
from .typst.reset_schematic import ResetSchematicMixin

logger = logging.getLogger(__name__)


def link_wire_name(target: ResetTarget, index: int) -> str:
    return f"{target.clean_name}_link{index}_n"


def stage_instance_name(
    target: ResetTarget, stage: ResetStage, index: Optional[int] = None
) -> str:
    """``i_<target>_link<i>_<kind>``, or ``i_<target>_target_<kind>`` for the target stage."""
    where = "target" if index is None else f"link{index}"
    return f"i_{target.clean_name}_{where}_{stage.kind.value}"


class _ReasonEvent(NamedTuple):
    wire: str
    expr: str
    note: str


class ResetControllerGenerator(ResetSchematicMixin, ControllerGenerator):
    """Compiles ``reset:`` declarations."""

    section = "reset"
    cell_library = RESET_CELL_LIBRARY

    def parse(self, node: Any) -> Optional[ResetControllerConfig]:
        return ResetConfigParser(self.diagnostics).parse(node)

    # ------------------------------------------------------------------
    # Ports
    # ------------------------------------------------------------------

    def ports(self, config: ResetControllerConfig) -> List[Port]:
        ctx = CompilationContext(outputs=(target.name for target in config.targets))
        reason = config.reason

        for clock in self._clocks(config):
            ctx.add_input(clock, "/**< Clock inputs */")

        for target in config.targets:
            for link in target.links:
                ctx.add_input(link.source, "/**< Reset sources */")
        if reason.enabled:
            ctx.add_input(reason.root_reset, "/**< Reset sources */")
            for name in reason.source_order:
                ctx.add_input(name, "/**< Reset sources */")

        ctx.add_input(config.test_enable, "/**< Test enable signal */")
        if reason.enabled:
            ctx.add_input(reason.clear, "/**< Reset reason clear */")

        for target in config.targets:
            ctx.add_output(target.name, "/**< Reset targets */")

        if reason.enabled:
            ctx.add_output(reason.output, "/**< Reset reason outputs */", reason.vector_width)
            ctx.add_output(reason.valid, "/**< Reset reason outputs */")

        return ctx.ports

    @staticmethod
    def _clocks(config: ResetControllerConfig) -> List[str]:
        """Stage clocks in first-use order, then the recorder clock."""
        clocks: List[str] = []
        for target in config.targets:
            stages = [link.stage for link in target.links] + [target.stage]
            for stage in stages:
                if stage is not None and stage.clock not in clocks:
                    clocks.append(stage.clock)
        if config.reason.enabled and config.reason.clock not in clocks:
            clocks.append(config.reason.clock)
        return clocks

    # ------------------------------------------------------------------
    # Body
    # ------------------------------------------------------------------

    def chain(self, config: ResetControllerConfig) -> Iterator[Any]:
        yield Comment("Wire declarations")
        for target in config.targets:
            for index in range(len(target.links)):
                yield Wire(link_wire_name(target, index))
            if target.stage is not None:
                yield Wire(f"{target.name}_internal")
        yield Blank()

        yield Comment("Reset logic instances")
        for target in config.targets:
            yield Comment(f"Target: {target.name}")
            for index, link in enumerate(target.links):
                wire = link_wire_name(target, index)
                source = self._normalized_source(config, link.source)
                if link.stage is not None:
                    name = stage_instance_name(target, link.stage, index)
                    yield self._stage_instance(link.stage, name, source, wire)
                else:
                    yield Assign(wire, source)
            yield Blank()

        if config.reason.enabled:
            yield from self._reason_recorder(config)

        yield Comment("Target output assignments")
        for target in config.targets:
            yield from self._target_output(target)
        yield Blank()

    @staticmethod
    def _normalized_source(config: ResetControllerConfig, source: str) -> str:
        return f"~{source}" if config.is_high_active_source(source) else source

    @staticmethod
    def _stage_instance(stage: ResetStage, name: str, rst_in: str, rst_out: str) -> Instance:
        return Instance(
            stage.cell,
            name,
            params=((stage.kind.size_parameter, str(stage.size)),),
            connections=(
                ("clk", stage.clock),
                ("rst_in_n", rst_in),
                ("test_enable", stage.test_enable or "1'b0"),
                ("rst_out_n", rst_out),
            ),
        )

    def _target_output(self, target: ResetTarget) -> Iterator[Any]:
        if not target.links:
            if target.stage is None:
                yield Assign(target.name, "1'b0" if target.active.is_high else "1'b1")
                return
            combined = "1'b1"
        elif len(target.links) == 1:
            combined = link_wire_name(target, 0)
        else:
            combined = f"{target.name}_combined"
            wires = [link_wire_name(target, i) for i in range(len(target.links))]
            yield Wire(combined, " & ".join(wires))

        signal = combined
        if target.stage is not None:
            signal = f"{target.name}_internal"
            yield self._stage_instance(
                target.stage, stage_instance_name(target, target.stage), combined, signal
            )
        yield Assign(target.name, f"~{signal}" if target.active.is_high else signal)

    def _reason_recorder(self, config: ResetControllerConfig) -> Iterator[Any]:
        reason = config.reason
        if not reason.source_order:
            logger.debug("Reset reason of %s records no source, outputs tied", config.name)
            yield Comment("Reset reason: no recorded sources")
            yield Assign(reason.valid, "1'b1")
            yield Assign(reason.output, "1'b0")
            yield Blank()
            return

        events = []
        for name in reason.source_order:
            wire = f"{name}_event_n"
            if config.is_high_active_source(name):
                events.append(_ReasonEvent(wire, f"~{name}", "  /* HIGH-active -> LOW-active */"))
            else:
                events.append(_ReasonEvent(wire, name, "   /* Already LOW-active */"))

        template = self.env.get_template("reset_reason.v.j2")
        yield Verbatim(template.render(events=events, reason=reason, width=reason.vector_width))
