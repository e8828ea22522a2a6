"""
Kinematic helper functions.

Finite differences, heading from velocity and angle wrapping on a uniform
time grid. All angles are in radians; wrapped angles lie in (-pi, pi].
"""

import math
from typing import Union

import numpy as np
from numpy.typing import ArrayLike, NDArray


STATIONARY_SPEED = 0.01  # m/s, below this the heading is held


def wrap_angle(angle: Union[float, ArrayLike]) -> Union[float, NDArray[np.float64]]:
    """
    Wrap an angle (or array of angles) into (-pi, pi].

    Values already in range are returned untouched so repeated wrapping
    never drifts.

    Args:
        angle: Angle(s) in radians

    Returns:
        Wrapped angle(s); a float for scalar input
    """
    arr = np.asarray(angle, dtype=np.float64)
    wrapped = np.pi - np.mod(np.pi - arr, 2.0 * np.pi)
    in_range = (arr > -np.pi) & (arr <= np.pi)
    result = np.where(in_range, arr, wrapped)
    if result.ndim == 0:
        return float(result)
    return result


def finite_difference(values: NDArray[np.float64], dt: float) -> NDArray[np.float64]:
    """
    Rate of change per sample.

    Forward difference (x[i+1] - x[i]) / dt everywhere except the last
    sample, which uses the backward difference. A single sample has no
    neighbour and gives zero.
    """
    values = np.asarray(values, dtype=np.float64)
    rate = np.zeros(len(values), dtype=np.float64)
    if len(values) < 2:
        return rate

    rate[:-1] = (values[1:] - values[:-1]) / dt
    rate[-1] = (values[-1] - values[-2]) / dt
    return rate


def heading_from_velocity(
    vx: NDArray[np.float64],
    vy: NDArray[np.float64],
) -> NDArray[np.float64]:
    """
    Heading of the velocity vector, atan2(vy, vx), wrapped into (-pi, pi].

    While the speed is at or below STATIONARY_SPEED the previous heading is
    carried forward (0 for the first sample).
    """
    n = len(vx)
    heading = np.zeros(n, dtype=np.float64)
    for i in range(n):
        speed = math.hypot(vx[i], vy[i])
        if speed > STATIONARY_SPEED:
            # atan2(-0.0, x < 0) is exactly -pi
            heading[i] = wrap_angle(math.atan2(vy[i], vx[i]))
        elif i > 0:
            heading[i] = heading[i - 1]
    return heading


def yaw_rate_from_heading(heading: NDArray[np.float64], dt: float) -> NDArray[np.float64]:
    """
    Backward difference of heading with the step wrapped into (-pi, pi].

    The first sample has no predecessor and gets zero.
    """
    heading = np.asarray(heading, dtype=np.float64)
    yaw_rate = np.zeros(len(heading), dtype=np.float64)
    if len(heading) < 2:
        return yaw_rate

    yaw_rate[1:] = wrap_angle(np.diff(heading)) / dt
    return yaw_rate


def backward_difference(values: NDArray[np.float64], dt: float) -> NDArray[np.float64]:
    """(x[i] - x[i-1]) / dt, zero at the first sample."""
    values = np.asarray(values, dtype=np.float64)
    rate = np.zeros(len(values), dtype=np.float64)
    if len(values) > 1:
        rate[1:] = np.diff(values) / dt
    return rate
