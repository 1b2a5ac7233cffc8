"""
Primitive cell library emission.

The generated controllers instantiate a fixed set of primitive cells.
Their template implementations live as Verilog resources next to this
module and are collected into ``clock_cell.v`` / ``reset_cell.v`` in the
project output directory.

File policy:
- missing file (or forced): header, timescale, then every cell in order;
- existing file: append only the cells whose ``module <name>`` is absent;
- complete file: left untouched.
"""

import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import List, Optional, Tuple, Union

from jinja2 import Environment

from prcraft.project import VerilogFormatter

logger = logging.getLogger(__name__)

CELL_DIR = Path(__file__).parent / "cells"

CLOCK_CELLS: Tuple[str, ...] = (
    "qsoc_tc_clk_buf",
    "qsoc_tc_clk_gate",
    "qsoc_tc_clk_gate_pos",
    "qsoc_tc_clk_gate_neg",
    "qsoc_tc_clk_inv",
    "qsoc_tc_clk_or2",
    "qsoc_tc_clk_mux2",
    "qsoc_tc_clk_xor2",
    "qsoc_clk_div",
    "qsoc_clk_div_auto",
    "qsoc_clk_or_tree",
    "qsoc_clk_mux_gf",
    "qsoc_clk_mux_raw",
)

RESET_CELLS: Tuple[str, ...] = (
    "qsoc_rst_sync",
    "qsoc_rst_pipe",
    "qsoc_rst_count",
)


@dataclass(frozen=True)
class CellLibrary:
    """Named, ordered set of primitive cells of one domain."""

    domain: str
    cells: Tuple[str, ...]

    @property
    def file_name(self) -> str:
        return f"{self.domain}_cell.v"

    def cell_text(self, name: str) -> str:
        if name not in self.cells:
            raise KeyError(f"Unknown {self.domain} cell: {name}")
        return _read_cell(self.domain, name)


CLOCK_CELL_LIBRARY = CellLibrary("clock", CLOCK_CELLS)
RESET_CELL_LIBRARY = CellLibrary("reset", RESET_CELLS)


@lru_cache(maxsize=None)
def _read_cell(domain: str, name: str) -> str:
    return (CELL_DIR / domain / f"{name}.v").read_text(encoding="utf-8")


def has_cell(text: str, name: str) -> bool:
    """True when ``text`` declares ``module <name>``."""
    return re.search(rf"\bmodule\s+{re.escape(name)}\b", text) is not None


class CellLibraryEmitter:
    """Creates or completes the primitive cell file of one library."""

    def __init__(
        self,
        library: CellLibrary,
        env: Environment,
        formatter: Optional[VerilogFormatter] = None,
        force_overwrite: bool = False,
    ):
        self.library = library
        self.env = env
        self.formatter = formatter
        self.force_overwrite = force_overwrite

    def header(self) -> str:
        template = self.env.get_template("cell_library_header.v.j2")
        return template.render(file_name=self.library.file_name, domain=self.library.domain)

    def render(self) -> str:
        """Full library text: header followed by every cell."""
        parts = [self.header()]
        for name in self.library.cells:
            parts.append(self.library.cell_text(name) + "\n")
        return "".join(parts)

    def missing_cells(self, text: str) -> List[str]:
        return [name for name in self.library.cells if not has_cell(text, name)]

    def ensure(self, output_dir: Union[str, Path]) -> bool:
        """
        Make sure the library file holds every required cell.

        Args:
            output_dir: Directory receiving the cell file

        Returns:
            False if the file could not be read or written, True otherwise
        """
        path = Path(output_dir) / self.library.file_name
        try:
            if self.force_overwrite or not path.exists():
                path.parent.mkdir(parents=True, exist_ok=True)
                path.write_text(self.render(), encoding="utf-8")
                logger.info(f"Created {path} with {len(self.library.cells)} cells")
            else:
                missing = self.missing_cells(path.read_text(encoding="utf-8"))
                if not missing:
                    logger.info(f"{path} already contains all {self.library.domain} cells")
                    return True
                with open(path, "a", encoding="utf-8") as f:
                    f.write("\n")
                    for name in missing:
                        f.write(self.library.cell_text(name) + "\n")
                logger.info(
                    f"Appended {len(missing)} missing cells to {path}: {', '.join(missing)}"
                )
        except OSError as e:
            logger.warning(f"Cannot write primitive cell file {path}: {e}")
            return False

        if self.formatter is not None:
            self.formatter.format_verilog_file(path)
        return True
