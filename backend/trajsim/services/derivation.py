"""
Derivation engine.

Rebuilds a complete motion state from the two driving signals of a
calculation mode. Pure functions: inputs are never mutated and every call
returns fresh arrays of the same length as the input.
"""

from __future__ import annotations

import math
from typing import Callable

import numpy as np
from numpy.typing import NDArray

from trajsim.config import DT
from trajsim.models.modes import CalculationMode
from trajsim.models.trajectory import MotionState
from trajsim.utils.kinematics import (
    finite_difference,
    heading_from_velocity,
    wrap_angle,
    yaw_rate_from_heading,
)


def derive(mode: CalculationMode, state: MotionState, dt: float = DT) -> MotionState:
    """
    Reconstruct the complete motion state for `mode`.

    Only the driving signals of the mode need meaningful values. The first
    sample of the other signals seeds the integration constants (initial
    position / heading); everything else is overwritten.
    """
    return _DERIVATIONS[mode](state, dt)


def derive_from_position(state: MotionState, dt: float = DT) -> MotionState:
    """px, py -> differentiate for velocity, heading from the path tangent."""
    px = _as_float(state.px)
    py = _as_float(state.py)

    vx = finite_difference(px, dt)
    vy = finite_difference(py, dt)
    oz = heading_from_velocity(vx, vy)
    wz = yaw_rate_from_heading(oz, dt)

    return MotionState(px=px, py=py, oz=oz, vx=vx, vy=vy, wz=wz)


def derive_from_velocity(state: MotionState, dt: float = DT) -> MotionState:
    """vx, vy -> integrate for position, heading from the velocity direction."""
    vx = _as_float(state.vx)
    vy = _as_float(state.vy)
    n = len(vx)

    px = np.zeros(n, dtype=np.float64)
    py = np.zeros(n, dtype=np.float64)

    x = _seed(state.px)
    y = _seed(state.py)
    for i in range(n):
        px[i] = x
        py[i] = y
        x += vx[i] * dt
        y += vy[i] * dt

    oz = heading_from_velocity(vx, vy)
    wz = yaw_rate_from_heading(oz, dt)

    return MotionState(px=px, py=py, oz=oz, vx=vx, vy=vy, wz=wz)


def derive_from_integral(state: MotionState, dt: float = DT) -> MotionState:
    """
    vx, wz -> integrate heading and position.

    No-slip: the velocity points along the heading, so vy = vx * tan(oz).
    The tangent is left unclamped; headings near +-pi/2 give huge vy.
    """
    vx = _as_float(state.vx)
    wz = _as_float(state.wz)
    n = len(vx)

    px = np.zeros(n, dtype=np.float64)
    py = np.zeros(n, dtype=np.float64)
    oz = np.zeros(n, dtype=np.float64)
    vy = np.zeros(n, dtype=np.float64)

    x = _seed(state.px)
    y = _seed(state.py)
    theta = wrap_angle(_seed(state.oz))
    for i in range(n):
        px[i] = x
        py[i] = y
        oz[i] = theta

        vy[i] = vx[i] * math.tan(theta)

        x += vx[i] * dt
        y += vy[i] * dt

        theta = wrap_angle(theta + wz[i] * dt)

    return MotionState(px=px, py=py, oz=oz, vx=vx, vy=vy, wz=wz)


def derive_from_differential(state: MotionState, dt: float = DT) -> MotionState:
    """
    px, oz -> differentiate px, integrate py along the heading.

    Same no-slip assumption (and tan singularity) as the integral mode.
    """
    px = _as_float(state.px)
    oz = _as_float(state.oz)
    n = len(px)

    vx = finite_difference(px, dt)
    vy = vx * np.tan(oz)
    wz = yaw_rate_from_heading(oz, dt)

    py = np.zeros(n, dtype=np.float64)
    y = _seed(state.py)
    for i in range(n):
        py[i] = y
        y += vy[i] * dt

    return MotionState(px=px, py=py, oz=oz, vx=vx, vy=vy, wz=wz)


_DERIVATIONS: dict[CalculationMode, Callable[[MotionState, float], MotionState]] = {
    CalculationMode.POSITION: derive_from_position,
    CalculationMode.VELOCITY: derive_from_velocity,
    CalculationMode.INTEGRAL: derive_from_integral,
    CalculationMode.DIFFERENTIAL: derive_from_differential,
}


def _as_float(arr: NDArray) -> NDArray[np.float64]:
    return np.array(arr, dtype=np.float64, copy=True)


def _seed(arr: NDArray) -> float:
    """First sample as an integration constant; 0 when absent or not finite."""
    if arr is None or len(arr) == 0:
        return 0.0
    value = float(arr[0])
    if not math.isfinite(value):
        return 0.0
    return value
