"""
Runtime configuration.

Values are read from the environment once at import time so the launcher
can hand them over before the app modules load.
"""

import os
from dataclasses import dataclass


TIME_STEPS_ENV = "TRAJSIM_TIME_STEPS"
DT_ENV = "TRAJSIM_DT"
DEFAULT_MODE_ENV = "TRAJSIM_DEFAULT_MODE"
DOCUMENT_ENV = "TRAJSIM_DOCUMENT"

TIME_STEPS = int(os.getenv(TIME_STEPS_ENV, "33"))  # samples per signal
DT = float(os.getenv(DT_ENV, "0.1"))  # seconds between samples
DEFAULT_MODE = os.getenv(DEFAULT_MODE_ENV, "position")


@dataclass(frozen=True)
class SimulationConfig:
    """Sampling grid shared by every signal in a session."""

    time_steps: int = TIME_STEPS
    dt: float = DT

    def __post_init__(self):
        if self.time_steps < 1:
            raise ValueError(f"time_steps must be positive, got {self.time_steps}")
        if self.dt <= 0:
            raise ValueError(f"dt must be positive, got {self.dt}")
