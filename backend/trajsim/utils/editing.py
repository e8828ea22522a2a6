"""
Edit helpers for signals drawn by the user.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from trajsim.models.trajectory import SignalInfo


@dataclass(frozen=True)
class SampleUpdate:
    """New value for one sample of a signal."""

    index: int
    value: float


def interpolate_stroke(
    start_index: int,
    end_index: int,
    start_value: float,
    end_value: float,
    info: Optional[SignalInfo] = None,
) -> list[SampleUpdate]:
    """
    Fill the samples strictly between two drag positions.

    Values are linearly interpolated between the endpoints and clamped into
    the signal's range when `info` is given. Adjacent or equal indices need
    no filling and give an empty list.
    """
    if abs(end_index - start_index) <= 1:
        return []

    updates = []
    lo, hi = sorted((start_index, end_index))
    for i in range(lo + 1, hi):
        t = (i - start_index) / (end_index - start_index)
        value = start_value + (end_value - start_value) * t
        if info is not None:
            value = info.clamp(value)
        updates.append(SampleUpdate(index=i, value=value))
    return updates


def fill_stroke(
    updates: Iterable[SampleUpdate],
    info: Optional[SignalInfo] = None,
) -> list[SampleUpdate]:
    """
    Expand a sequence of drag positions into a continuous stroke.

    Each consecutive pair of positions is joined by `interpolate_stroke`, so
    a fast drag that skips samples still leaves no gaps.
    """
    result: list[SampleUpdate] = []
    last: Optional[SampleUpdate] = None
    for update in updates:
        result.append(update)
        if last is not None:
            result.extend(interpolate_stroke(last.index, update.index, last.value, update.value, info))
        last = update
    return result
