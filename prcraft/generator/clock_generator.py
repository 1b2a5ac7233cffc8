"""
Clock controller compiler.

Every target is built as a left-to-right chain::

    (links -> combining MUX)? -> ICG? -> DIV? -> INV? -> target

Each link runs its own ``source -> ICG? -> DIV? -> INV? -> link wire``
sub-chain first. Stage outputs keep a canonical wire name; an STA guide
moves the stage onto ``<name>_pre_sta`` and bridges the two.
"""

import logging
from typing import Any, Iterator, List, NamedTuple, Optional

from prcraft.model import (
    ClockControllerConfig,
    ClockLink,
    ClockTarget,
    DividerBlock,
    IcgBlock,
    InverterBlock,
    MuxKind,
)
from prcraft.model.netlist import Assign, Blank, BlockComment, Comment, Instance, Port, Wire
from prcraft.parser.yaml import ClockConfigParser

from .base_generator import ControllerGenerator
from .cell_library import CLOCK_CELL_LIBRARY
from .context import CompilationContext
from .errors import ShapeError
from .sta_guide import StaGuideMixin
from .typst.clock_schematic import ClockSchematicMixin

logger = logging.getLogger(__name__)


def _bit(value: bool) -> str:
    return "1'b1" if value else "1'b0"


def link_wire_name(target: str, source: str) -> str:
    return f"clk_{target}_from_{source}"


def link_instance_name(target: str, source: str, index: int) -> str:
    return f"u_{target}_{source}" if index == 0 else f"u_{target}_{source}_{index}"


class _DividerSite(NamedTuple):
    """A divider together with the names used to report on it."""

    owner: str  # port comments
    subject: str  # error messages
    reset_comment: str
    block: DividerBlock


class ClockControllerGenerator(StaGuideMixin, ClockSchematicMixin, ControllerGenerator):
    """Compiles ``clock:`` declarations."""

    section = "clock"
    cell_library = CLOCK_CELL_LIBRARY

    def parse(self, node: Any) -> Optional[ClockControllerConfig]:
        return ClockConfigParser(self.diagnostics).parse(node)

    @staticmethod
    def _divider_sites(config: ClockControllerConfig) -> List[_DividerSite]:
        """Configured dividers, all target-level ones before the link-level ones."""
        sites = []
        for target in config.targets:
            if target.div.configured:
                sites.append(
                    _DividerSite(
                        target.name,
                        f"target '{target.name}'",
                        f"Division reset for {target.name}",
                        target.div,
                    )
                )
        for target in config.targets:
            for link in target.links:
                if link.div.configured:
                    name = f"{target.name}_from_{link.source}"
                    sites.append(
                        _DividerSite(
                            f"link {name}",
                            f"link '{link_wire_name(target.name, link.source)}'",
                            f"Link division reset for {name}",
                            link.div,
                        )
                    )
        return sites

    def check(self, config: ClockControllerConfig) -> None:
        for site in self._divider_sites(config):
            if site.block.width <= 0:
                raise ShapeError(
                    f"Clock divider for {site.subject} requires explicit width specification"
                )

    # ------------------------------------------------------------------
    # Ports
    # ------------------------------------------------------------------

    def ports(self, config: ClockControllerConfig) -> List[Port]:
        ctx = CompilationContext(outputs=(target.name for target in config.targets))
        sites = self._divider_sites(config)

        for clock in config.inputs:
            suffix = f" ({clock.freq})" if clock.freq else ""
            ctx.add_input(clock.name, f"/**< Clock input: {clock.name}{suffix} */")

        for target in config.targets:
            suffix = f" ({target.freq})" if target.freq else ""
            ctx.add_output(target.name, f"/**< Clock target: {target.name}{suffix} */")

        for site in sites:
            div, owner = site.block, site.owner
            if div.value:
                ctx.claim_divider_signal("value", div.value)
                ctx.add_input(div.value, f"/**< Dynamic division value for {owner} */", div.width)
            if div.valid:
                ctx.claim_divider_signal("valid", div.valid)
                ctx.add_input(div.valid, f"/**< Division valid signal for {owner} */")
            if div.ready:
                ctx.claim_divider_signal("ready", div.ready)
                ctx.add_output(div.ready, f"/**< Division ready signal for {owner} */")
            if div.count:
                ctx.claim_divider_signal("count", div.count)
                ctx.add_output(div.count, f"/**< Cycle counter for {owner} */", div.width)
            if div.enable:
                ctx.add_input(div.enable, f"/**< Division enable for {owner} */")

        ctx.add_input(config.test_enable, "/**< Test enable signal */")

        for owner, icg in self._icg_sites(config):
            ctx.add_input(icg.enable, f"/**< ICG enable for {owner} */")
            ctx.add_input(icg.reset, f"/**< ICG reset for {owner} */")

        for target in config.targets:
            if not target.is_multi_link:
                continue
            ctx.add_input(
                target.select, f"/**< MUX select for {target.name} */", target.select_width
            )
            ctx.add_input(target.reset, f"/**< MUX reset for {target.name} */")
            ctx.add_input(target.test_clock, f"/**< MUX test clock for {target.name} */")

        for site in sites:
            ctx.add_input(site.block.reset, f"/**< {site.reset_comment} */")

        return ctx.ports

    @staticmethod
    def _icg_sites(config: ClockControllerConfig):
        for target in config.targets:
            if target.icg.configured:
                yield target.name, target.icg
        for target in config.targets:
            for link in target.links:
                if link.icg.configured:
                    yield f"link {target.name}_from_{link.source}", link.icg

    # ------------------------------------------------------------------
    # Body
    # ------------------------------------------------------------------

    def chain(self, config: ClockControllerConfig) -> Iterator[Any]:
        yield Comment("Wire declarations for clock connections")
        for target in config.targets:
            for link in target.links:
                yield Wire(link_wire_name(target.name, link.source))
        yield Blank()

        yield Comment("Clock logic instances")
        for target in config.targets:
            for index, link in enumerate(target.links):
                yield from self._link_chain(target, link, index)
        yield Blank()

        yield Comment("Clock output assignments")
        for target in config.targets:
            yield from self._target_chain(target)
        yield Blank()

    def _link_chain(self, target: ClockTarget, link: ClockLink, index: int) -> Iterator[Any]:
        wire = link_wire_name(target.name, link.source)
        inst = link_instance_name(target.name, link.source, index)

        notes = ""
        if link.icg.configured:
            notes += " (icg)"
        if link.div.configured:
            notes += f" (div/{link.div.default_value})"
        if link.inv.configured:
            notes += " (inv)"
        yield BlockComment(f"Link processing: {link.source} -> {target.name}{notes}")

        if not link.has_stages:
            yield Assign(wire, link.source)
        else:
            current = link.source
            if link.icg.configured:
                current = yield from self._icg_stage(
                    link.icg, current, f"{wire}_preicg", f"{inst}_icg", f"{inst}_icg_sta"
                )
            if link.div.configured:
                current = yield from self._divider_stage(
                    link.div, current, f"{wire}_prediv", f"{inst}_div", f"{inst}_div_sta"
                )
            if link.inv.emits_cell:
                current = yield from self._inverter_stage(
                    link.inv, current, f"{inst}_inv_wire", f"{inst}_inv", f"{inst}_inv_sta"
                )
            yield Assign(wire, current)
        yield Blank()

    def _target_chain(self, target: ClockTarget) -> Iterator[Any]:
        name = target.name
        prefix = f"u_{name}_target"

        if target.is_multi_link:
            current = yield from self._mux_stage(target)
        else:
            link = target.links[0]
            current = link_wire_name(name, link.source)
            if link.inv.legacy:
                inverted = f"{name}_legacy_inv"
                yield Wire(inverted)
                yield Assign(inverted, f"~{current}")
                current = inverted

        if target.icg.configured:
            current = yield from self._icg_stage(
                target.icg, current, f"{name}_icg_out", f"{prefix}_icg", f"u_{name}_icg_sta"
            )
        if target.div.configured:
            current = yield from self._divider_stage(
                target.div, current, f"{name}_div_out", f"{prefix}_div", f"u_{name}_div_sta"
            )
        if target.inv.configured:
            current = yield from self._inverter_stage(
                target.inv, current, f"{name}_inv_out", f"{prefix}_inv", f"u_{name}_inv_sta"
            )
        yield Assign(name, current)

    # ------------------------------------------------------------------
    # Stages; each returns the canonical output wire
    # ------------------------------------------------------------------

    def _mux_stage(self, target: ClockTarget):
        base = f"{target.name}_mux_out"
        out = self._sta_output_name(base, target.mux.sta_guide)
        yield Wire(out)

        inputs = []
        for link in target.links:
            wire = link_wire_name(target.name, link.source)
            if link.inv.legacy:
                yield Wire(f"{wire}_inv")
                yield Assign(f"{wire}_inv", f"~{wire}")
                wire = f"{wire}_inv"
            inputs.append(wire)
        clk_in = "{" + ", ".join(reversed(inputs)) + "}"

        if target.mux.kind is MuxKind.GF_MUX:
            yield Instance(
                "qsoc_clk_mux_gf",
                f"u_{target.name}_mux",
                params=(
                    ("NUM_INPUTS", str(len(inputs))),
                    ("NUM_SYNC_STAGES", "2"),
                    ("CLOCK_DURING_RESET", "1'b1"),
                ),
                connections=(
                    ("clk_in", clk_in),
                    ("test_clk", target.test_clock or "1'b0"),
                    ("test_en", target.test_enable or "1'b0"),
                    ("async_rst_n", target.reset or "1'b1"),
                    ("async_sel", target.select),
                    ("clk_out", out),
                ),
            )
        else:
            yield Instance(
                "qsoc_clk_mux_raw",
                f"u_{target.name}_mux",
                params=(("NUM_INPUTS", str(len(inputs))),),
                connections=(("clk_in", clk_in), ("clk_sel", target.select), ("clk_out", out)),
            )
        yield Blank()
        yield from self._sta_splice(target.mux.sta_guide, base, f"u_{target.name}_mux_sta")
        return base

    def _icg_stage(self, icg: IcgBlock, clk: str, base: str, inst: str, sta_default: str):
        out = self._sta_output_name(base, icg.sta_guide)
        yield Wire(out)
        yield Instance(
            "qsoc_tc_clk_gate",
            inst,
            params=(
                ("CLOCK_DURING_RESET", _bit(icg.clock_on_reset)),
                ("POLARITY", icg.polarity.verilog_bit),
            ),
            connections=(
                ("clk", clk),
                ("en", icg.enable or "1'b1"),
                ("test_en", icg.test_enable or "1'b0"),
                ("rst_n", icg.reset or "1'b1"),
                ("clk_out", out),
            ),
        )
        yield from self._sta_splice(icg.sta_guide, base, sta_default)
        return base

    def _divider_stage(self, div: DividerBlock, clk: str, base: str, inst: str, sta_default: str):
        if div.width <= 0:
            raise ShapeError(f"Clock divider '{inst}' requires explicit width specification")
        out = self._sta_output_name(base, div.sta_guide)
        yield Wire(out)

        params = (
            ("WIDTH", str(div.width)),
            ("DEFAULT_VAL", str(div.default_value)),
            ("CLOCK_DURING_RESET", _bit(div.clock_on_reset)),
        )
        common = (
            ("clk", clk),
            ("rst_n", div.reset or "1'b1"),
            ("en", div.enable or "1'b1"),
            ("test_en", div.test_enable or "1'b0"),
            ("div", div.value or f"{div.width}'d{div.default_value}"),
        )
        if div.uses_auto_handshake:
            yield Instance(
                "qsoc_clk_div_auto",
                inst,
                params=params,
                connections=common + (("clk_out", out), ("count", div.count or None)),
            )
        else:
            yield Instance(
                "qsoc_clk_div",
                inst,
                params=params,
                connections=common
                + (
                    ("div_valid", div.valid if div.is_dynamic else "1'b0"),
                    ("div_ready", div.ready or None),
                    ("clk_out", out),
                    ("count", div.count or None),
                ),
            )
        yield from self._sta_splice(div.sta_guide, base, sta_default)
        return base

    def _inverter_stage(self, inv: InverterBlock, clk: str, base: str, inst: str, sta_default: str):
        out = self._sta_output_name(base, inv.sta_guide)
        yield Wire(out)
        yield Instance("qsoc_tc_clk_inv", inst, connections=(("clk_in", clk), ("clk_out", out)))
        yield from self._sta_splice(inv.sta_guide, base, sta_default)
        return base
