"""Typst schematic of a clock controller."""

from __future__ import annotations
from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from .._protocols import GeneratorHost

from prcraft.model import ClockControllerConfig, ClockLink, ClockTarget

from .common import (
    LEGEND_SPACING,
    LEGEND_Y,
    TypstCanvas,
    escape_id,
    render_header,
    render_source_table,
)

# (attribute, block label, fill), in chain order
STAGES = (
    ("icg", "ICG", "util.colors.pink"),
    ("div", "÷N", "util.colors.yellow"),
    ("inv", "INV", "util.colors.purple"),
)

PORT_SPACING = 1.5
LINK_BLOCK_W = 1.0
LINK_BLOCK_H = 0.9
LINK_STEP = 1.3
TARGET_BLOCK_W = 1.2
TARGET_BLOCK_H = 1.2
TARGET_STEP = 2.5
TARGET_MARGIN = 2.5


def mux_height(target: ClockTarget) -> float:
    return max(2.0, PORT_SPACING * len(target.links))


def _link_has_stages(link: ClockLink) -> bool:
    return link.icg.configured or link.div.configured or link.inv.configured


def _divider_label(div) -> str:
    if div.width > 0:
        return f"text(size: 7pt)[N∈\\[0,{div.max_value}\\]]"
    return f"text(size: 7pt)[N={div.default_value}]"


def draw_legend(canvas: TypstCanvas) -> None:
    canvas.line("// === Legend ===")
    canvas.line(
        f"element.multiplexer(x: 0.00, y: {LEGEND_Y:.2f}, w: 0.8, h: 1.2, "
        'id: "legend_mux", fill: util.colors.orange, entries: 2)'
    )
    canvas.content(0.4, LEGEND_Y - 0.8, "[MUX/TEST_MUX]")
    canvas.legend_block(LEGEND_SPACING, "legend_icg", "ICG", "util.colors.pink", "ICG")
    canvas.legend_block(LEGEND_SPACING * 2, "legend_div", "÷N", "util.colors.yellow", "DIVIDER")
    canvas.legend_block(LEGEND_SPACING * 3, "legend_inv", "INV", "util.colors.purple", "INVERTER")
    sta_x = LEGEND_SPACING * 4
    canvas.triangle(sta_x, LEGEND_Y + 0.3, 0.3)
    canvas.content(sta_x + 0.15, LEGEND_Y - 0.8, "[STA marker]")
    canvas.raw("\n")


def _draw_link(
    canvas: TypstCanvas, tid: str, index: int, link: ClockLink, x: float, y: float
) -> Optional[str]:
    """Draw the stages of one link; returns the last output port, if any."""
    prev = None
    for key, label, fill in STAGES:
        block = getattr(link, key)
        if not block.configured:
            continue
        bid = escape_id(f"{tid}_L{index}_{key.upper()}")
        canvas.block(x, y, LINK_BLOCK_W, LINK_BLOCK_H, bid, label, fill)
        if block.sta_guide.configured:
            canvas.sta_marker(x, y, LINK_BLOCK_W, LINK_BLOCK_H, 0.25, 0.2)
        top = y + LINK_BLOCK_H
        if key == "icg" and block.enable:
            canvas.content(x + 0.5, top + 0.2, f"text(size: 7pt)[{block.enable}]")
        if key == "div":
            canvas.content(x + 0.5, top + 0.5, _divider_label(block))
        if prev is None:
            canvas.stub(f"{bid}-port-in", "west", link.source)
        else:
            canvas.wire(f"w_{tid}_l{index}_to_{key}", prev, f"{bid}-port-in")
        prev = f"{bid}-port-out"
        x += LINK_STEP
    return prev


def draw_clock_target(
    canvas: TypstCanvas, target: ClockTarget, x: float, y: float, test_enable: str
) -> None:
    """
    Draw one target row with the MUX bottom at ``y``.

    Link stages sit left of the MUX, each row centred on its MUX input;
    target stages follow on the MUX centre line.
    """
    tid = escape_id(target.name)
    canvas.line(f"// ---- {target.title} ----")

    count = len(target.links)
    any_link_stage = any(_link_has_stages(link) for link in target.links)
    mux_x = x + 4.0 if any_link_stage else x
    current_x = mux_x + (2.0 if target.has_stages else 3.5)
    height = mux_height(target)
    center_y = y + height / 2

    # circuiteria spreads MUX inputs top to bottom
    mux_inputs: List[Optional[str]] = []
    for i, link in enumerate(target.links):
        port_y = y + height * (1.0 - (i + 0.5) / count)
        mux_inputs.append(_draw_link(canvas, tid, i, link, x, port_y - LINK_BLOCK_H / 2))

    if count > 1 or (target.select and count > 0):
        mux_id = escape_id(f"{tid}_MUX")
        canvas.multiplexer(mux_x, y, height, mux_id, max(2, count))
        if target.select:
            canvas.content(mux_x + 0.5, y + height + 0.3, f"text(size: 8pt)[{target.select}]")
        if target.mux.sta_guide.configured:
            canvas.sta_marker(mux_x, y, 1.0, height, 0.35, 0.25)
        for i, link in enumerate(target.links):
            port = f"{mux_id}-port-in{i}"
            if mux_inputs[i] is None:
                canvas.stub(port, "west", link.source)
            else:
                canvas.wire(f"w_{tid}_l{i}_to_mux", mux_inputs[i], port)
        prev = f"{mux_id}-port-out"
    elif count == 1 and mux_inputs[0] is not None:
        prev = mux_inputs[0]
    else:
        label = target.links[0].source if count else "NC"
        prev = canvas.source_marker(escape_id(f"{tid}_SRC"), mux_x, center_y, label)

    block_y = center_y - TARGET_BLOCK_H / 2
    for key, label, fill in STAGES:
        block = getattr(target, key)
        if not block.configured:
            continue
        bid = escape_id(f"{tid}_{key.upper()}")
        canvas.block(current_x, block_y, TARGET_BLOCK_W, TARGET_BLOCK_H, bid, label, fill)
        if block.sta_guide.configured:
            canvas.sta_marker(current_x, block_y, TARGET_BLOCK_W, TARGET_BLOCK_H, 0.35, 0.25)
        top = block_y + TARGET_BLOCK_H
        if key == "icg" and block.enable:
            canvas.content(current_x + 0.6, top + 0.2, f"text(size: 7pt)[{block.enable}]")
        if key == "div":
            canvas.content(current_x + 0.6, top + 0.5, _divider_label(block))
        canvas.wire(f"w_{tid}_to_{key}", prev, f"{bid}-port-in")
        prev = f"{bid}-port-out"
        current_x += TARGET_STEP

    out_y = center_y
    if target.test_clock:
        tm_id = escape_id(f"{tid}_TM")
        tm_height = 2.0
        # input 0 of a two-entry MUX sits at 3/4 of its height
        tm_y = center_y - 3.0 * tm_height / 4.0
        out_y = tm_y + tm_height / 2.0
        canvas.multiplexer(current_x, tm_y, tm_height, tm_id, 2)
        canvas.stub(f"{tm_id}.north", "north", test_enable or "test_en")
        canvas.stub(f"{tm_id}-port-in1", "west", target.test_clock)
        canvas.wire(f"w_{tid}_to_tm", prev, f"{tm_id}-port-in0")
        prev = f"{tm_id}-port-out"
        current_x += TARGET_STEP

    canvas.output_arrow(prev, current_x + 2.5, out_y, target.name)


class ClockSchematicMixin:
    """Mixin writing the Typst schematic of a clock controller."""

    def schematic_text(self: GeneratorHost, config: ClockControllerConfig) -> str:
        canvas = TypstCanvas()
        canvas.raw(render_header(self.env, "Clock tree"))
        draw_legend(canvas)

        cells = [(clock.name, clock.freq or "-") for clock in config.inputs]
        table, bottom_y = render_source_table(self.env, "Clock Sources", "Freq", cells)
        canvas.raw(table)

        # rows stack downwards; each MUX top sits at the cursor
        cursor = bottom_y - 3.0
        for target in config.targets:
            target_y = cursor - mux_height(target)
            draw_clock_target(canvas, target, 0.0, target_y, config.test_enable)
            cursor = target_y - TARGET_MARGIN

        canvas.raw("})\n")
        return canvas.text()
