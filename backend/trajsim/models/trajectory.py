"""
Trajectory data model.

A motion state is a fixed record of six equally long signals sampled on a
uniform time grid:
- px, py: position (meters)
- oz: orientation / yaw angle (radians, normalized to (-pi, pi])
- vx, vy: velocity (m/s)
- wz: yaw rate (rad/s)

Derived metrics (acceleration, curvature, tracking error) use the same grid.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterable, Mapping, Optional

import numpy as np
from numpy.typing import ArrayLike, NDArray


class Signal(Enum):
    """One of the six motion signals."""

    PX = "px"
    PY = "py"
    OZ = "oz"
    VX = "vx"
    VY = "vy"
    WZ = "wz"


class Metric(Enum):
    """One of the four derived metric signals."""

    AX = "ax"
    AY = "ay"
    CZ = "cz"
    L1 = "l1"


SIGNALS: tuple[Signal, ...] = tuple(Signal)
METRICS: tuple[Metric, ...] = tuple(Metric)


@dataclass(frozen=True)
class SignalInfo:
    """Presentation metadata and editable range for a signal."""

    label: str
    unit: str
    color: str
    min_value: float
    max_value: float

    def clamp(self, value: float) -> float:
        return max(self.min_value, min(self.max_value, float(value)))


SIGNAL_INFO: dict[Signal, SignalInfo] = {
    Signal.PX: SignalInfo("Px", "m", "#FF6B6B", 0.0, 50.0),
    Signal.PY: SignalInfo("Py", "m", "#4ECDC4", -50.0, 50.0),
    Signal.OZ: SignalInfo("Oz", "rad", "#FFA07A", -math.pi, math.pi),
    Signal.VX: SignalInfo("Vx", "m/s", "#45B7D1", 0.0, 20.0),
    Signal.VY: SignalInfo("Vy", "m/s", "#98D8C8", -20.0, 20.0),
    Signal.WZ: SignalInfo("Wz", "rad/s", "#B19CD9", -1.0, 1.0),
}

METRIC_INFO: dict[Metric, SignalInfo] = {
    Metric.AX: SignalInfo("Ax", "m/s²", "#3b82f6", -10.0, 10.0),
    Metric.AY: SignalInfo("Ay", "m/s²", "#10b981", -10.0, 10.0),
    Metric.CZ: SignalInfo("Cz", "1/m", "#f59e0b", -0.2, 0.2),
    Metric.L1: SignalInfo("L1", "m", "#ec4899", 0.0, 10.0),
}


def fit_length(values: ArrayLike, length: int) -> NDArray[np.float64]:
    """
    Truncate or zero-pad values to exactly `length` samples.

    Always returns a new float64 array.
    """
    arr = np.asarray(values, dtype=np.float64).ravel()
    out = np.zeros(length, dtype=np.float64)
    n = min(len(arr), length)
    out[:n] = arr[:n]
    return out


class SignalBuffer:
    """
    Fixed-length storage for one signal.

    The length is set at creation and never changes. Point writes clamp the
    index into range; bulk writes are fitted to the buffer length.
    """

    def __init__(self, length: int, values: Optional[ArrayLike] = None):
        self._values = np.zeros(length, dtype=np.float64)
        if values is not None:
            self._values[:] = fit_length(values, length)

    def __len__(self) -> int:
        return len(self._values)

    def clamp_index(self, index: int) -> int:
        return max(0, min(len(self._values) - 1, int(index)))

    def set(self, index: int, value: float) -> int:
        """Write one sample; returns the index actually written."""
        idx = self.clamp_index(index)
        self._values[idx] = value
        return idx

    def replace(self, values: ArrayLike) -> None:
        self._values[:] = fit_length(values, len(self._values))

    def snapshot(self) -> NDArray[np.float64]:
        return self._values.copy()


@dataclass(frozen=True)
class PathPoint:
    """Single pose on the 2D path."""

    x: float
    y: float
    theta: float


@dataclass
class MotionState:
    """Complete motion state: six signals on a shared time grid."""

    px: NDArray[np.float64]
    py: NDArray[np.float64]
    oz: NDArray[np.float64]
    vx: NDArray[np.float64]
    vy: NDArray[np.float64]
    wz: NDArray[np.float64]

    @classmethod
    def zeros(cls, length: int) -> "MotionState":
        return cls(**{s.value: np.zeros(length, dtype=np.float64) for s in SIGNALS})

    @classmethod
    def from_signals(cls, signals: Mapping[Signal, ArrayLike], length: int) -> "MotionState":
        """Build a state of `length` samples; missing signals are zero."""
        arrays = {}
        for signal in SIGNALS:
            values = signals.get(signal)
            arrays[signal.value] = (
                fit_length(values, length) if values is not None else np.zeros(length, dtype=np.float64)
            )
        return cls(**arrays)

    def __len__(self) -> int:
        return len(self.px)

    def signal(self, signal: Signal) -> NDArray[np.float64]:
        return getattr(self, signal.value)

    def with_signals(self, signals: Mapping[Signal, NDArray[np.float64]]) -> "MotionState":
        """Return a copy with the given signals replaced."""
        return replace(self, **{s.value: np.array(v, dtype=np.float64) for s, v in signals.items()})

    def copy(self) -> "MotionState":
        return MotionState(**{s.value: np.array(self.signal(s), dtype=np.float64) for s in SIGNALS})

    def is_consistent(self) -> bool:
        """All six signals present with matching length."""
        arrays = [self.signal(s) for s in SIGNALS]
        if any(a is None for a in arrays):
            return False
        return len({len(a) for a in arrays}) == 1

    def path_points(self) -> list[PathPoint]:
        return [
            PathPoint(x=float(x), y=float(y), theta=float(theta))
            for x, y, theta in zip(self.px, self.py, self.oz)
        ]


def trajectory_bounds(states: Iterable[Optional[MotionState]]) -> tuple[float, float, float, float]:
    """
    Bounding box spanning every finite position of the given states.

    Returns (0, 0, 0, 0) when there is nothing to bound.
    """
    xs, ys = [], []
    for state in states:
        if state is None or len(state) == 0:
            continue
        valid = np.isfinite(state.px) & np.isfinite(state.py)
        xs.append(state.px[valid])
        ys.append(state.py[valid])

    if not xs:
        return (0.0, 0.0, 0.0, 0.0)
    x = np.concatenate(xs)
    y = np.concatenate(ys)
    if len(x) == 0:
        return (0.0, 0.0, 0.0, 0.0)
    return (float(np.min(x)), float(np.min(y)), float(np.max(x)), float(np.max(y)))


@dataclass
class DerivedMetrics:
    """Metrics computed from a complete motion state."""

    ax: NDArray[np.float64]  # m/s², backward difference of vx
    ay: NDArray[np.float64]  # m/s², backward difference of vy
    cz: NDArray[np.float64]  # 1/m, path curvature
    l1: NDArray[np.float64]  # m, distance to ground truth

    @classmethod
    def zeros(cls, length: int) -> "DerivedMetrics":
        return cls(**{m.value: np.zeros(length, dtype=np.float64) for m in METRICS})

    def __len__(self) -> int:
        return len(self.ax)

    def metric(self, metric: Metric) -> NDArray[np.float64]:
        return getattr(self, metric.value)
