"""
Response builders shared by the FastAPI routes and the Flask app.

Depends on pydantic only, so the Flask app can run without FastAPI.
"""

import math
from typing import Optional

import numpy as np

from trajsim.api.schemas import (
    EditRequest,
    MetricsResponse,
    ModeResponse,
    PathPointSchema,
    PathResponse,
    SignalInfoResponse,
    SignalsResponse,
    StateResponse,
)
from trajsim.models.modes import MODES, CalculationMode
from trajsim.models.trajectory import (
    METRIC_INFO,
    METRICS,
    SIGNAL_INFO,
    SIGNALS,
    DerivedMetrics,
    MotionState,
    PathPoint,
    SignalInfo,
    trajectory_bounds,
)
from trajsim.services.session import SessionSnapshot, TrajectorySession
from trajsim.utils.editing import SampleUpdate, fill_stroke


def _finite_or_none(value: float) -> Optional[float]:
    """Convert NaN/inf to None for JSON serialization."""
    value = float(value)
    if not math.isfinite(value):
        return None
    return value


def _clean_array(arr: np.ndarray) -> list[Optional[float]]:
    """Convert numpy array to list, replacing non-finite values with None."""
    return [_finite_or_none(x) for x in arr]


def _build_info(name: str, info: SignalInfo) -> SignalInfoResponse:
    return SignalInfoResponse(
        name=name,
        label=info.label,
        unit=info.unit,
        color=info.color,
        min_value=info.min_value,
        max_value=info.max_value,
    )


def build_signal_info_list() -> list[SignalInfoResponse]:
    """Display metadata for every signal, then every metric."""
    return [_build_info(s.value, SIGNAL_INFO[s]) for s in SIGNALS] + [
        _build_info(m.value, METRIC_INFO[m]) for m in METRICS
    ]


def build_mode_response(mode: CalculationMode) -> ModeResponse:
    config = MODES[mode]
    return ModeResponse(
        mode=mode.value,
        label=config.label,
        description=config.description,
        color_hint=config.color_hint,
        driving_signals=[s.value for s in config.driving_signals],
        derived_signals=[s.value for s in config.derived_signals],
    )


def build_mode_list() -> list[ModeResponse]:
    return [build_mode_response(mode) for mode in CalculationMode]


def build_signals_response(state: MotionState) -> SignalsResponse:
    return SignalsResponse(**{s.value: _clean_array(state.signal(s)) for s in SIGNALS})


def build_metrics_response(metrics: DerivedMetrics) -> MetricsResponse:
    return MetricsResponse(**{m.value: _clean_array(metrics.metric(m)) for m in METRICS})


def build_state_response(session: TrajectorySession, snapshot: Optional[SessionSnapshot] = None) -> StateResponse:
    """Build the full state response from a session snapshot."""
    if snapshot is None:
        snapshot = session.snapshot()
    return StateResponse(
        revision=snapshot.revision,
        time_steps=session.time_steps,
        dt=session.dt,
        mode=snapshot.mode.value,
        owned_signals=[s.value for s in MODES[snapshot.mode].driving_signals],
        signals=build_signals_response(snapshot.state),
        metrics=build_metrics_response(snapshot.metrics),
        has_ground_truth=snapshot.has_ground_truth,
    )


def _build_path(points: list[PathPoint]) -> list[PathPointSchema]:
    return [
        PathPointSchema(
            x=_finite_or_none(p.x),
            y=_finite_or_none(p.y),
            theta=_finite_or_none(p.theta),
        )
        for p in points
    ]


def build_path_response(session: TrajectorySession) -> PathResponse:
    """Current path, ground-truth path and the box spanning both."""
    snapshot = session.snapshot()
    ground_truth = snapshot.ground_truth
    return PathResponse(
        current=_build_path(snapshot.state.path_points()),
        ground_truth=_build_path(ground_truth.path_points()) if ground_truth is not None else None,
        bounding_box=trajectory_bounds([snapshot.state, ground_truth]),
    )


def build_updates(session: TrajectorySession, request: EditRequest) -> list[SampleUpdate]:
    """
    Turn an edit request into sample updates for the session.

    Indices are clamped to the session grid and values to the signal's
    range, as a drag on the chart would be. With `interpolate`, skipped
    samples between consecutive updates are filled in.
    """
    info = SIGNAL_INFO[request.signal]
    last_index = session.time_steps - 1
    updates = [
        SampleUpdate(index=max(0, min(last_index, u.index)), value=info.clamp(u.value))
        for u in request.updates
    ]
    if request.interpolate:
        updates = fill_stroke(updates, info)
    return updates
