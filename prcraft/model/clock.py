"""
Clock controller models.

A clock controller routes declared inputs to targets. Each target owns a
list of links (one per upstream source, each with an optional
ICG/divider/inverter sub-chain), an optional combining multiplexer and
an optional target-level ICG/divider/inverter chain.
"""

import math
from typing import List, Optional

from pydantic import Field, field_validator

from prcraft.utils import clog2

from .base import DividerMode, IcgPolarity, MuxKind, NamedModel, PrcBaseModel


class StaGuide(PrcBaseModel):
    """User cell spliced after a stage output for timing constraints."""

    cell: str = Field(default="", description="Library cell name")
    in_port: str = Field(default="", alias="in", description="Cell input port")
    out_port: str = Field(default="", alias="out", description="Cell output port")
    instance: str = Field(default="", description="Instance name override")

    @property
    def configured(self) -> bool:
        return bool(self.cell)

    def instance_name(self, default: str) -> str:
        return self.instance or default


class IcgBlock(PrcBaseModel):
    """Integrated clock gate."""

    configured: bool = False
    enable: str = ""
    polarity: IcgPolarity = IcgPolarity.HIGH
    test_enable: str = ""
    reset: str = ""
    clock_on_reset: bool = False
    sta_guide: StaGuide = Field(default_factory=StaGuide)

    @field_validator("polarity", mode="before")
    @classmethod
    def normalize_polarity(cls, v):
        return IcgPolarity.from_string(v)


class DividerBlock(PrcBaseModel):
    """Clock divider, static unless a value signal is named."""

    configured: bool = False
    default_value: int = Field(default=1, alias="default", ge=0)
    width: int = 0
    clock_on_reset: bool = False
    test_enable: str = ""
    reset: str = ""
    enable: str = ""
    value: str = ""
    valid: str = ""
    ready: str = ""
    count: str = ""
    sta_guide: StaGuide = Field(default_factory=StaGuide)

    @property
    def mode(self) -> DividerMode:
        return DividerMode.DYNAMIC if self.value else DividerMode.STATIC

    @property
    def is_dynamic(self) -> bool:
        return self.mode is DividerMode.DYNAMIC

    @property
    def max_value(self) -> int:
        """Largest ratio representable in ``width`` bits."""
        return (1 << self.width) - 1 if self.width > 0 else 0

    @property
    def uses_auto_handshake(self) -> bool:
        """Dynamic divider without an explicit valid strobe."""
        return self.is_dynamic and not self.valid

    @staticmethod
    def static_width(default_value: int) -> int:
        """Bits needed to hold ``default_value``, at least one."""
        return math.ceil(math.log2(max(default_value + 1, 2)))


class InverterBlock(PrcBaseModel):
    """Clock inverter.

    The legacy boolean form (``inv: true``) on a link is realised as a
    plain ``~`` assignment where the link enters the target instead of
    an inverter cell inside the link chain.
    """

    configured: bool = False
    legacy: bool = False
    sta_guide: StaGuide = Field(default_factory=StaGuide)

    @property
    def emits_cell(self) -> bool:
        return self.configured and not self.legacy


class MuxBlock(PrcBaseModel):
    """Combining multiplexer of a multi-link target."""

    kind: MuxKind = MuxKind.STD_MUX
    sta_guide: StaGuide = Field(default_factory=StaGuide)


class ClockInput(NamedModel):
    """Clock entering the controller."""

    freq: str = ""
    duty: str = ""


class ClockLink(PrcBaseModel):
    """Connection from a source clock into a target."""

    source: str
    icg: IcgBlock = Field(default_factory=IcgBlock)
    div: DividerBlock = Field(default_factory=DividerBlock)
    inv: InverterBlock = Field(default_factory=InverterBlock)

    @property
    def has_stages(self) -> bool:
        return self.icg.configured or self.div.configured or self.inv.emits_cell


class ClockTarget(NamedModel):
    """Clock leaving the controller."""

    freq: str = ""
    icg: IcgBlock = Field(default_factory=IcgBlock)
    div: DividerBlock = Field(default_factory=DividerBlock)
    inv: InverterBlock = Field(default_factory=InverterBlock)
    links: List[ClockLink] = Field(default_factory=list)
    select: str = ""
    reset: str = ""
    test_clock: str = ""
    test_enable: str = ""
    mux: MuxBlock = Field(default_factory=MuxBlock)

    @property
    def has_stages(self) -> bool:
        return self.icg.configured or self.div.configured or self.inv.configured

    @property
    def is_multi_link(self) -> bool:
        return len(self.links) >= 2

    @property
    def select_width(self) -> int:
        """Select bus width for the combining multiplexer."""
        return clog2(len(self.links))

    @property
    def title(self) -> str:
        return f"{self.name} ({self.freq})" if self.freq else self.name


class ClockControllerConfig(NamedModel):
    """Complete clock controller description."""

    test_enable: str = ""
    ref_clock: str = ""
    inputs: List[ClockInput] = Field(default_factory=list)
    targets: List[ClockTarget] = Field(default_factory=list)

    @property
    def module_name(self) -> str:
        return self.name

    def input_names(self) -> List[str]:
        return [clock.name for clock in self.inputs]

    def find_input(self, name: str) -> Optional[ClockInput]:
        for clock in self.inputs:
            if clock.name == name:
                return clock
        return None
