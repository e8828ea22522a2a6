"""
Default trajectory generator.

Produces the deterministic S-curve used for a fresh or reset session, and
can write it out as an importable document.
"""

import math
import sys
from pathlib import Path

import numpy as np

from trajsim.config import DT, TIME_STEPS
from trajsim.models.trajectory import MotionState


def s_curve_yaw_rate(t: float) -> float:
    """Yaw rate profile over normalized progress t in [0, 1)."""
    if t < 0.3:
        return 0.3 * math.sin(t * math.pi / 0.3)
    if t < 0.7:
        return -0.3 * math.sin((t - 0.3) * math.pi / 0.4)
    return 0.0


def s_curve_speed(t: float) -> float:
    """Forward speed profile (m/s) over normalized progress t."""
    return 10 + 3 * math.sin(t * math.pi * 2)


def generate_s_curve(time_steps: int = TIME_STEPS, dt: float = DT) -> MotionState:
    """
    Generate the default S-curve trajectory.

    Left turn for the first 30% of the run, right turn until 70%, then
    straight. Each step advances the heading first, then the velocity and
    position, so px[0] is already one step away from the origin.
    """
    px = np.zeros(time_steps)
    py = np.zeros(time_steps)
    oz = np.zeros(time_steps)
    vx = np.zeros(time_steps)
    vy = np.zeros(time_steps)
    wz = np.zeros(time_steps)

    x = 0.0
    y = 0.0
    theta = 0.0

    for i in range(time_steps):
        t = i / time_steps

        wz[i] = s_curve_yaw_rate(t)
        speed = s_curve_speed(t)

        theta += wz[i] * dt
        vx[i] = speed * math.cos(theta)
        vy[i] = speed * math.sin(theta)

        x += vx[i] * dt
        y += vy[i] * dt

        px[i] = x
        py[i] = y
        oz[i] = theta

    return MotionState(px=px, py=py, oz=oz, vx=vx, vy=vy, wz=wz)


def write_sample_document(
    output_path: Path,
    time_steps: int = TIME_STEPS,
    dt: float = DT,
) -> Path:
    """Write the default S-curve as a trajectory document (.json or .csv)."""
    from trajsim.services.document_io import build_export_document, write_document

    state = generate_s_curve(time_steps, dt)
    document = build_export_document(state, time_steps, dt)
    return write_document(output_path, document)


if __name__ == "__main__":
    output = Path(sys.argv[1]) if len(sys.argv) > 1 else Path("./data/default_trajectory.json")
    path = write_sample_document(output)
    print(f"Wrote default trajectory to {path}")
