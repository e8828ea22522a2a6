"""
Calculation modes.

Each mode names the two signals the user edits directly; the derivation
engine rebuilds the other four from them.
"""

from dataclasses import dataclass
from enum import Enum

from trajsim.models.trajectory import SIGNALS, Signal


class CalculationMode(Enum):
    """How the complete motion state is reconstructed."""

    POSITION = "position"          # px, py -> differentiate
    VELOCITY = "velocity"          # vx, vy -> integrate
    INTEGRAL = "integral"          # vx, wz -> integrate, no-slip
    DIFFERENTIAL = "differential"  # px, oz -> differentiate, no-slip


@dataclass(frozen=True)
class ModeConfig:
    """Static description of a calculation mode."""

    driving_signals: tuple[Signal, Signal]
    label: str
    description: str
    color_hint: str

    @property
    def derived_signals(self) -> tuple[Signal, ...]:
        return tuple(s for s in SIGNALS if s not in self.driving_signals)

    def owns(self, signal: Signal) -> bool:
        return signal in self.driving_signals


MODES: dict[CalculationMode, ModeConfig] = {
    CalculationMode.POSITION: ModeConfig(
        driving_signals=(Signal.PX, Signal.PY),
        label="Position",
        description="Velocity by differentiating position; heading from the path tangent",
        color_hint="#3b82f6",
    ),
    CalculationMode.VELOCITY: ModeConfig(
        driving_signals=(Signal.VX, Signal.VY),
        label="Velocity",
        description="Position by integrating velocity; heading from the velocity direction",
        color_hint="#10b981",
    ),
    CalculationMode.INTEGRAL: ModeConfig(
        driving_signals=(Signal.VX, Signal.WZ),
        label="Integral",
        description="Position and heading by integrating forward velocity and yaw rate",
        color_hint="#f59e0b",
    ),
    CalculationMode.DIFFERENTIAL: ModeConfig(
        driving_signals=(Signal.PX, Signal.OZ),
        label="Differential",
        description="Velocity by differentiating position and heading",
        color_hint="#8b5cf6",
    ),
}


def get_mode_config(mode: CalculationMode) -> ModeConfig:
    return MODES[mode]
