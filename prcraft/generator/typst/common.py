"""
Drawing primitives shared by the clock and reset schematics.

Schematics target the circuiteria and cetz Typst packages. Coordinates
are in centimetres, y grows upwards and every number is written with two
decimals so the output is stable across runs.
"""

import re
from typing import List, Optional, Sequence, Tuple

from jinja2 import Environment

DEFAULT_PORTS = '(west: ((id: "in"),), east: ((id: "out"),))'
LEGEND_PORTS = '(west: ((id: "i"),), east: ((id: "o"),))'

LEGEND_Y = -1.5
LEGEND_BLOCK_W = 1.6
LEGEND_SPACING = 4.0


def fmt(value: float) -> str:
    return f"{value:.2f}"


def escape_id(name: str) -> str:
    """Element id safe for Typst: runs of other characters become ``_``."""
    return re.sub(r"[^A-Za-z0-9_-]+", "_", name)


def render_header(env: Environment, title: str) -> str:
    return env.get_template("schematic_header.typ.j2").render(title=title)


def render_source_table(
    env: Environment,
    heading: str,
    value_heading: str,
    cells: Sequence[Tuple[str, str]],
) -> Tuple[str, float]:
    """
    Two-column source table inserted between circuit blocks.

    Args:
        cells: ``(name, value)`` pairs, already formatted as Typst markup

    Returns:
        Table text and the y coordinate below which targets may start
    """
    if not cells:
        return "", -5.0
    rows = []
    for i in range(0, len(cells), 2):
        pair = list(cells[i : i + 2])
        if len(pair) == 1:
            pair.append(("", ""))
        rows.append(", ".join(f"[{text}]" for cell in pair for text in cell))
    text = env.get_template("source_table.typ.j2").render(
        heading=heading, value_heading=value_heading, rows=rows
    )
    return text, -3.0 - len(rows) * 0.8


class TypstCanvas:
    """Accumulates the body of a ``#circuit({...})`` block."""

    def __init__(self):
        self._parts: List[str] = []

    def raw(self, text: str) -> None:
        self._parts.append(text)

    def line(self, text: str) -> None:
        self._parts.append(f"  {text}\n")

    def text(self) -> str:
        return "".join(self._parts)

    def legend_block(self, x: float, element_id: str, name: str, fill: str, label: str) -> None:
        self.line(
            f"element.block(x: {fmt(x)}, y: {fmt(LEGEND_Y + 0.3)}, w: {fmt(LEGEND_BLOCK_W)}, "
            f'h: 0.8, id: "{element_id}", name: "{name}", fill: {fill}, ports: {LEGEND_PORTS})'
        )
        self.content(x + LEGEND_BLOCK_W / 2, LEGEND_Y - 0.8, f"[{label}]")

    def block(
        self,
        x: float,
        y: float,
        w: float,
        h: float,
        element_id: str,
        name: str,
        fill: str,
        ports: str = DEFAULT_PORTS,
    ) -> None:
        self.raw(
            "  element.block(\n"
            f"    x: {fmt(x)}, y: {fmt(y)}, w: {fmt(w)}, h: {fmt(h)},\n"
            f'    id: "{element_id}", name: "{name}", fill: {fill},\n'
            f"    ports: {ports}\n"
            "  )\n"
        )

    def multiplexer(
        self, x: float, y: float, h: float, element_id: str, entries: int, w: float = 1.0
    ) -> None:
        self.raw(
            "  element.multiplexer(\n"
            f"    x: {fmt(x)}, y: {fmt(y)}, w: {fmt(w)}, h: {fmt(h)},\n"
            f'    id: "{element_id}", fill: util.colors.orange, entries: {entries}\n'
            "  )\n"
        )

    def content(self, x: float, y: float, body: str, anchor: Optional[str] = None) -> None:
        where = f', anchor: "{anchor}"' if anchor else ""
        self.line(f"draw.content(({fmt(x)}, {fmt(y)}){where}, {body})")

    def stub(self, port: str, side: str, name: str) -> None:
        self.line(f'wire.stub("{port}", "{side}", name: "{name}")')

    def wire(self, wire_id: str, start: str, end: str) -> None:
        self.raw(f'  wire.wire("{wire_id}", (\n    "{start}", "{end}"\n  ))\n')

    def triangle(self, x: float, y: float, size: float) -> None:
        """Small blue STA-guide marker with its base at ``(x, y)``."""
        self.line(
            f"draw.line(({fmt(x)}, {fmt(y)}), ({fmt(x + size)}, {fmt(y)}), "
            f"({fmt(x + size / 2)}, {fmt(y + size)}), close: true, "
            "fill: util.colors.blue, stroke: none)"
        )

    def sta_marker(self, x: float, y: float, w: float, h: float, inset: float, size: float) -> None:
        """STA-guide marker inside the upper-right corner of a block."""
        self.triangle(x + w - inset, y + h - inset, size)

    def source_marker(self, element_id: str, x: float, y: float, label: str) -> str:
        """
        Solid input triangle standing in for a combining element.

        Returns:
            Port id of the invisible anchor at the triangle tip
        """
        tip = x + 0.38
        self.line(
            f"draw.line(({fmt(x)}, {fmt(y + 0.16)}), ({fmt(tip)}, {fmt(y)}), "
            f"({fmt(x)}, {fmt(y - 0.16)}), close: true, fill: black, stroke: none)"
        )
        self.content(x - 0.1, y, f"text(size: 8pt)[{label}]", anchor="east")
        self.line(
            f"element.block(x: {fmt(tip - 0.01)}, y: {fmt(y - 0.005)}, w: 0.01, h: 0.01, "
            f'id: "{element_id}", name: "", stroke: none, fill: none, '
            'ports: (east: ((id: "out"),)))'
        )
        return f"{element_id}-port-out"

    def output_arrow(self, port: str, x: float, y: float, label: str) -> None:
        self.line(f'draw.line("{port}", ({fmt(x)}, {fmt(y)}), mark: (end: ">", fill: black))')
        self.line(f'draw.content(({fmt(x + 0.3)}, {fmt(y)}), anchor: "west", [{label}])')
        self.raw("\n")
