"""
Reset controller models.

Internally every reset travels low-active: high-active sources are
inverted where they enter a link and high-active targets are inverted
once more at the output.
"""

from typing import List, Optional

from pydantic import Field, field_validator

from .base import ActiveLevel, NamedModel, PrcBaseModel, ResetStageKind


class ResetStage(PrcBaseModel):
    """Synchronizer, pipeline or release counter on a reset path."""

    kind: ResetStageKind
    clock: str = Field(..., min_length=1)
    size: int = Field(..., gt=0, description="Stage count, or cycle count for counters")
    test_enable: str = ""

    @property
    def cell(self) -> str:
        return self.kind.cell

    @property
    def annotation(self) -> str:
        """Short ``stage:n`` / ``cycle:n`` label."""
        return f"{self.kind.size_key}:{self.size}"


class ResetSource(NamedModel):
    """Reset entering the controller."""

    active: ActiveLevel

    @field_validator("active", mode="before")
    @classmethod
    def normalize_active(cls, v):
        return ActiveLevel.from_string(v)


class ResetLink(PrcBaseModel):
    """Connection from a reset source into a target."""

    source: str
    stage: Optional[ResetStage] = None


class ResetTarget(NamedModel):
    """Reset leaving the controller."""

    active: ActiveLevel
    links: List[ResetLink] = Field(default_factory=list)
    stage: Optional[ResetStage] = None

    @field_validator("active", mode="before")
    @classmethod
    def normalize_active(cls, v):
        return ActiveLevel.from_string(v)

    @property
    def clean_name(self) -> str:
        """Target name without a trailing ``_n``, used for derived names."""
        return self.name[:-2] if self.name.endswith("_n") else self.name


class ReasonRecorder(PrcBaseModel):
    """Sticky record of which reset source fired last."""

    enabled: bool = False
    clock: str = "clk_32k"
    output: str = "reason"
    valid: str = "reason_valid"
    clear: str = "reason_clear"
    root_reset: str = ""
    source_order: List[str] = Field(default_factory=list)

    @property
    def vector_width(self) -> int:
        return max(1, len(self.source_order))


class ResetControllerConfig(NamedModel):
    """Complete reset controller description."""

    test_enable: str = ""
    sources: List[ResetSource] = Field(default_factory=list)
    targets: List[ResetTarget] = Field(default_factory=list)
    reason: ReasonRecorder = Field(default_factory=ReasonRecorder)

    @property
    def module_name(self) -> str:
        return self.name

    def find_source(self, name: str) -> Optional[ResetSource]:
        for source in self.sources:
            if source.name == name:
                return source
        return None

    def is_high_active_source(self, name: str) -> bool:
        """Undeclared sources count as low-active."""
        source = self.find_source(name)
        return source is not None and source.active.is_high
