"""
API schemas (Pydantic models) for request/response validation.
"""

from typing import Optional

from pydantic import BaseModel, Field

from trajsim.models.modes import CalculationMode
from trajsim.models.trajectory import Signal


# ============================================================================
# Metadata Schemas
# ============================================================================

class SignalInfoResponse(BaseModel):
    """Display metadata and editable range of a signal or metric."""
    name: str
    label: str
    unit: str
    color: str
    min_value: float
    max_value: float


class ModeResponse(BaseModel):
    """One entry of the mode table."""
    mode: str
    label: str
    description: str
    color_hint: str
    driving_signals: list[str]
    derived_signals: list[str]


# ============================================================================
# Trajectory Schemas
# ============================================================================

class SignalsResponse(BaseModel):
    """The six motion signals (null where a value is not finite)."""
    px: list[Optional[float]]
    py: list[Optional[float]]
    oz: list[Optional[float]]
    vx: list[Optional[float]]
    vy: list[Optional[float]]
    wz: list[Optional[float]]


class MetricsResponse(BaseModel):
    """Derived metrics on the same grid as the signals."""
    ax: list[Optional[float]]
    ay: list[Optional[float]]
    cz: list[Optional[float]]
    l1: list[Optional[float]]


class StateResponse(BaseModel):
    """Complete session state after the last committed operation."""
    revision: int
    time_steps: int
    dt: float
    mode: str
    owned_signals: list[str]
    signals: SignalsResponse
    metrics: MetricsResponse
    has_ground_truth: bool


class PathPointSchema(BaseModel):
    """Pose on the 2D path."""
    x: Optional[float]
    y: Optional[float]
    theta: Optional[float]


class PathResponse(BaseModel):
    """Current and ground-truth paths for plotting."""
    current: list[PathPointSchema]
    ground_truth: Optional[list[PathPointSchema]] = None
    bounding_box: tuple[float, float, float, float]  # (min_x, min_y, max_x, max_y)


# ============================================================================
# Request Schemas
# ============================================================================

class SampleUpdateSchema(BaseModel):
    """New value for one sample."""
    index: int
    value: float = Field(allow_inf_nan=False)


class EditRequest(BaseModel):
    """
    Edit of a driving signal.

    With `interpolate`, consecutive updates are joined by linearly
    interpolated samples, as a mouse drag across skipped samples would be.
    """
    signal: Signal
    updates: list[SampleUpdateSchema] = Field(min_length=1)
    interpolate: bool = False


class SetModeRequest(BaseModel):
    """Request to change the calculation mode."""
    mode: CalculationMode


# ============================================================================
# Error Schemas
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    detail: str
    code: Optional[str] = None
