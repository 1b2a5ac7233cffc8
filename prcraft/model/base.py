"""
Base models and enumerations for controller descriptions.

Every configuration object is a frozen pydantic model: the parser builds
them once and the compilers only read them. Closed sets of tags are
``str, Enum`` classes so the YAML strings survive only at the parse and
emit boundaries.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, ValidationInfo, field_validator


class PrcBaseModel(BaseModel):
    """Base model with shared configuration for all controller models.

    Models are immutable and hashable; field population works by alias
    or by Python name.
    """

    model_config = {
        "frozen": True,
        "populate_by_name": True,
        "extra": "forbid",
    }


class _TagEnum(str, Enum):
    """Enum parsed case-insensitively from its YAML spelling."""

    @classmethod
    def from_string(cls, value: Any) -> "_TagEnum":
        if isinstance(value, cls):
            return value
        text = str(value).strip()
        for member in cls:
            if member.value.lower() == text.lower():
                return member
        choices = ", ".join(m.value for m in cls)
        raise ValueError(f"Invalid {cls.__name__} '{value}', expected one of: {choices}")


class ActiveLevel(_TagEnum):
    """Assertion level of a reset signal."""

    HIGH = "high"
    LOW = "low"

    @property
    def is_high(self) -> bool:
        return self is ActiveLevel.HIGH


class IcgPolarity(_TagEnum):
    """Enable polarity of an integrated clock gate."""

    HIGH = "high"
    LOW = "low"

    @property
    def verilog_bit(self) -> str:
        return "1'b1" if self is IcgPolarity.HIGH else "1'b0"


class MuxKind(_TagEnum):
    """Clock multiplexer flavor."""

    STD_MUX = "STD_MUX"
    GF_MUX = "GF_MUX"


class DividerMode(_TagEnum):
    """Static dividers use a constant ratio, dynamic ones read a value port."""

    STATIC = "static"
    DYNAMIC = "dynamic"


class ResetStageKind(_TagEnum):
    """Reset processing primitives, in precedence order."""

    ASYNC = "async"
    SYNC = "sync"
    COUNT = "count"

    @property
    def cell(self) -> str:
        return _RESET_STAGE_CELLS[self]

    @property
    def size_parameter(self) -> str:
        """Verilog parameter carrying the stage size."""
        return "CYCLE" if self is ResetStageKind.COUNT else "STAGE"

    @property
    def size_key(self) -> str:
        """YAML key carrying the stage size."""
        return "cycle" if self is ResetStageKind.COUNT else "stage"

    @property
    def default_size(self) -> int:
        return _RESET_STAGE_DEFAULTS[self]


_RESET_STAGE_CELLS = {
    ResetStageKind.ASYNC: "qsoc_rst_sync",
    ResetStageKind.SYNC: "qsoc_rst_pipe",
    ResetStageKind.COUNT: "qsoc_rst_count",
}

_RESET_STAGE_DEFAULTS = {
    ResetStageKind.ASYNC: 3,
    ResetStageKind.SYNC: 4,
    ResetStageKind.COUNT: 16,
}


class NamedModel(PrcBaseModel):
    """Model identified by a non-empty signal name."""

    name: str = Field(..., description="Signal or controller name")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str, info: ValidationInfo) -> str:
        """Strip whitespace and reject empty names."""
        v = v.strip()
        if not v:
            raise ValueError(f"{info.field_name} cannot be empty")
        return v
