"""
Typst schematic of a reset controller.

Each target row is an AND gate whose input ports line up with the link
rows on its left. A link row with a stage block is taller than a plain
stub because the clock and size labels hang below the block, so the
rows are packed with one accumulated pass over per-row slot heights.
"""

from __future__ import annotations
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence, Tuple

if TYPE_CHECKING:
    from .._protocols import GeneratorHost

from prcraft.model import ResetControllerConfig, ResetStage, ResetStageKind, ResetTarget

from .common import LEGEND_SPACING, TypstCanvas, escape_id, fmt, render_header, render_source_table

STAGE_FILLS: Dict[ResetStageKind, str] = {
    ResetStageKind.ASYNC: "util.colors.blue",
    ResetStageKind.SYNC: "util.colors.yellow",
    ResetStageKind.COUNT: "util.colors.orange",
}

BLOCK_H = 1.0
BLOCK_W = 1.5
BLOCK_TOP_PAD = 0.3
TEXT_HANG = 1.2
STUB_H = 0.5
COMPOUND_GAP = 1.5
STUB_GAP = 0.8
TARGET_BLOCK_H = 1.2
AND_W = 1.2
MIN_HEIGHT = 1.5
TARGET_MARGIN = 2.0


def row_layout(has_stage: Sequence[bool]) -> Tuple[List[float], float]:
    """
    Slot heights of the link rows and the resulting gate height.

    Returns:
        Per-link slot heights (top to bottom) and the total height
    """
    slots = []
    for i, staged in enumerate(has_stage):
        gap = COMPOUND_GAP if staged else STUB_GAP
        hang = TEXT_HANG if i > 0 and has_stage[i - 1] else 0.0
        body = BLOCK_TOP_PAD + BLOCK_H if staged else STUB_H
        slots.append(gap + hang + body)
    height = sum(slots)
    if has_stage:
        last = has_stage[-1]
        height += (TEXT_HANG if last else 0.0) + (COMPOUND_GAP if last else STUB_GAP)
    return slots, max(MIN_HEIGHT, height)


def port_positions(has_stage: Sequence[bool], top: float) -> List[float]:
    """Centre y of each link row, walking down from ``top``."""
    positions = []
    cursor = top
    for i, staged in enumerate(has_stage):
        cursor -= COMPOUND_GAP if staged else STUB_GAP
        if i > 0 and has_stage[i - 1]:
            cursor -= TEXT_HANG
        if staged:
            cursor -= BLOCK_TOP_PAD
            positions.append(cursor - BLOCK_H / 2)
            cursor -= BLOCK_H
        else:
            positions.append(cursor - STUB_H / 2)
            cursor -= STUB_H
    return positions


def target_height(target: ResetTarget) -> float:
    return row_layout([link.stage is not None for link in target.links])[1]


def draw_legend(canvas: TypstCanvas) -> None:
    canvas.line("// === Legend ===")
    canvas.legend_block(0.0, "legend_and", "AND", "util.colors.green", "AND")
    for slot, kind in enumerate(ResetStageKind, start=1):
        name = kind.value.upper()
        canvas.legend_block(
            LEGEND_SPACING * slot, f"legend_{kind.value}", name, STAGE_FILLS[kind], name
        )
    canvas.raw("\n")


def _draw_stage(
    canvas: TypstCanvas,
    stage: ResetStage,
    element_id: str,
    x: float,
    y: float,
    h: float,
    label_size: int,
    label_offsets: Tuple[float, float],
) -> None:
    kind = stage.kind.value.upper()
    canvas.block(x, y, BLOCK_W, h, element_id, kind, STAGE_FILLS[stage.kind])
    for offset, label in zip(label_offsets, (stage.clock, stage.annotation)):
        canvas.content(x + BLOCK_W / 2, y - offset, f"text(size: {label_size}pt)[{label}]")


def draw_reset_target(
    canvas: TypstCanvas,
    config: ResetControllerConfig,
    target: ResetTarget,
    x: float,
    center_y: float,
) -> None:
    """Draw one target row centred on ``center_y``."""
    tid = escape_id(target.name)
    canvas.line(f"// ---- {target.name} ----")
    if not target.links:
        return

    has_stage = [link.stage is not None for link in target.links]
    any_link_stage = any(has_stage)
    _, height = row_layout(has_stage)
    bottom_y = center_y - height / 2
    ports_y = port_positions(has_stage, center_y + height / 2)

    and_x = x + 2.5 if any_link_stage else x
    stage_x = and_x + 2.0
    out_x = stage_x + 2.5 if target.stage is not None else and_x + 2.5

    and_inputs: List[Optional[str]] = []
    for i, link in enumerate(target.links):
        if link.stage is None:
            and_inputs.append(None)
            continue
        element_id = escape_id(f"{tid}_L{i}_{link.stage.kind.value.upper()}")
        block_y = ports_y[i] - BLOCK_H / 2
        _draw_stage(canvas, link.stage, element_id, x, block_y, BLOCK_H, 5, (0.25, 0.55))
        canvas.stub(f"{element_id}-port-in", "west", link.source)
        and_inputs.append(f"{element_id}-port-out")

    if len(target.links) == 1 and not any_link_stage and target.stage is None:
        source = target.links[0].source
        prev = canvas.source_marker(escape_id(f"{tid}_SRC"), and_x, center_y, source)
    else:
        and_id = escape_id(f"{tid}_AND")
        west = ", ".join(
            f'(id: "in{i}", pos: {fmt((port_y - bottom_y) / height)})'
            for i, port_y in enumerate(ports_y)
        )
        canvas.block(
            and_x,
            bottom_y,
            AND_W,
            height,
            and_id,
            "AND",
            "util.colors.green",
            ports=f'(west: ({west},), east: ((id: "out"),))',
        )
        bubble_x = and_x - 0.15
        for i, link in enumerate(target.links):
            port = f"{and_id}-port-in{i}"
            inverted = config.is_high_active_source(link.source)
            if inverted:
                canvas.line(
                    f"draw.circle(({fmt(bubble_x)}, {fmt(ports_y[i])}), radius: 0.1, "
                    "stroke: black, fill: white)"
                )
            if and_inputs[i] is None:
                canvas.stub(port, "west", link.source)
            elif inverted:
                end = f"({fmt(bubble_x - 0.1)}, {fmt(ports_y[i])})"
                canvas.line(f'draw.line("{and_inputs[i]}", {end})')
            else:
                canvas.wire(f"w_{tid}_l{i}_to_and", and_inputs[i], port)
        prev = f"{and_id}-port-out"

    if target.stage is not None:
        element_id = escape_id(f"{tid}_{target.stage.kind.value.upper()}")
        block_y = center_y - TARGET_BLOCK_H / 2
        _draw_stage(
            canvas, target.stage, element_id, stage_x, block_y, TARGET_BLOCK_H, 6, (0.3, 0.7)
        )
        canvas.wire(f"w_{tid}_and_to_comp", prev, f"{element_id}-port-in")
        prev = f"{element_id}-port-out"

    canvas.output_arrow(prev, out_x + 0.3, center_y, target.name)


class ResetSchematicMixin:
    """Mixin writing the Typst schematic of a reset controller."""

    def schematic_text(self: GeneratorHost, config: ResetControllerConfig) -> str:
        canvas = TypstCanvas()
        canvas.raw(render_header(self.env, "Reset tree"))
        draw_legend(canvas)

        cells = []
        for source in config.sources:
            color = "red" if source.active.is_high else "blue"
            level = "H" if source.active.is_high else "L"
            cells.append((f"#text(fill: {color})[{source.name}]", f"#text(fill: {color})[{level}]"))
        table, bottom_y = render_source_table(self.env, "Reset Sources", "Active", cells)
        canvas.raw(table)

        cursor = bottom_y - 3.0
        for target in config.targets:
            height = target_height(target)
            center_y = cursor - height / 2
            draw_reset_target(canvas, config, target, 0.0, center_y)
            cursor = center_y - height / 2 - TARGET_MARGIN

        canvas.raw("})\n")
        return canvas.text()
