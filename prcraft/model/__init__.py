"""
Pydantic models describing clock and reset controllers.

The parser produces these objects; the generators consume them.
"""

from .base import (
    ActiveLevel,
    DividerMode,
    IcgPolarity,
    MuxKind,
    NamedModel,
    PrcBaseModel,
    ResetStageKind,
)
from .clock import (
    ClockControllerConfig,
    ClockInput,
    ClockLink,
    ClockTarget,
    DividerBlock,
    IcgBlock,
    InverterBlock,
    MuxBlock,
    StaGuide,
)
from .diagnostics import Diagnostic, DiagnosticLog
from .reset import (
    ReasonRecorder,
    ResetControllerConfig,
    ResetLink,
    ResetSource,
    ResetStage,
    ResetTarget,
)

__all__ = [
    # Base
    "PrcBaseModel",
    "NamedModel",
    "ActiveLevel",
    "DividerMode",
    "IcgPolarity",
    "MuxKind",
    "ResetStageKind",
    # Clock
    "ClockControllerConfig",
    "ClockInput",
    "ClockLink",
    "ClockTarget",
    "DividerBlock",
    "IcgBlock",
    "InverterBlock",
    "MuxBlock",
    "StaGuide",
    # Reset
    "ReasonRecorder",
    "ResetControllerConfig",
    "ResetLink",
    "ResetSource",
    "ResetStage",
    "ResetTarget",
    # Diagnostics
    "Diagnostic",
    "DiagnosticLog",
]
