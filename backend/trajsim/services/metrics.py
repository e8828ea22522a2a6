"""
Metrics engine.

Acceleration, curvature and tracking error computed from a complete motion
state and an optional ground truth.
"""

from typing import Optional

import numpy as np

from trajsim.config import DT, TIME_STEPS
from trajsim.models.trajectory import DerivedMetrics, MotionState
from trajsim.utils.kinematics import backward_difference


CURVATURE_MIN_SPEED = 0.1  # m/s, curvature is zero at or below this speed


def compute_metrics(
    state: Optional[MotionState],
    ground_truth: Optional[MotionState] = None,
    dt: float = DT,
    default_length: int = TIME_STEPS,
) -> DerivedMetrics:
    """
    Compute derived metrics for a complete motion state.

    Args:
        state: Complete motion state
        ground_truth: Reference state for the tracking error (optional)
        dt: Sample period in seconds
        default_length: Length of the all-zero result for incomplete input

    Returns:
        DerivedMetrics with ax, ay, cz, l1
    """
    if state is None or not state.is_consistent():
        return DerivedMetrics.zeros(default_length)

    ax = backward_difference(state.vx, dt)
    ay = backward_difference(state.vy, dt)
    cz = _curvature(state)
    l1 = tracking_error(state, ground_truth)

    return DerivedMetrics(ax=ax, ay=ay, cz=cz, l1=l1)


def tracking_error(
    state: MotionState,
    ground_truth: Optional[MotionState],
) -> np.ndarray:
    """
    Euclidean distance between current and ground-truth positions.

    Samples the ground truth does not cover (or all samples, without a
    ground truth) are zero.
    """
    n = len(state)
    l1 = np.zeros(n, dtype=np.float64)
    if ground_truth is None:
        return l1

    m = min(n, len(ground_truth.px), len(ground_truth.py))
    if m == 0:
        return l1

    dx = np.asarray(state.px[:m], dtype=np.float64) - ground_truth.px[:m]
    dy = np.asarray(state.py[:m], dtype=np.float64) - ground_truth.py[:m]
    l1[:m] = np.sqrt(dx**2 + dy**2)
    return l1


def _curvature(state: MotionState) -> np.ndarray:
    vx = np.asarray(state.vx, dtype=np.float64)
    vy = np.asarray(state.vy, dtype=np.float64)
    wz = np.asarray(state.wz, dtype=np.float64)

    speed = np.sqrt(vx**2 + vy**2)
    moving = speed > CURVATURE_MIN_SPEED

    cz = np.zeros(len(speed), dtype=np.float64)
    np.divide(wz, speed, out=cz, where=moving)
    return cz
