"""
STA-guide splicing shared by the clock stages.

A stage with a guide drives ``<base>_pre_sta`` and the guide cell drives
``<base>``, so the next stage always reads ``<base>``.
"""

from typing import Iterator, Union

from prcraft.model import StaGuide
from prcraft.model.netlist import Instance, Wire

StaItem = Union[Wire, Instance]


class StaGuideMixin:
    """Mixin emitting STA-guide pass-through instances."""

    @staticmethod
    def _sta_output_name(base: str, guide: StaGuide) -> str:
        """Wire a stage drives directly."""
        return f"{base}_pre_sta" if guide.configured else base

    def _sta_splice(self, guide: StaGuide, base: str, default_instance: str) -> Iterator[StaItem]:
        if not guide.configured:
            return
        yield Wire(base)
        yield Instance(
            guide.cell,
            guide.instance_name(default_instance),
            connections=((guide.in_port, f"{base}_pre_sta"), (guide.out_port, base)),
        )
