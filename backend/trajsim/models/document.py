"""
Trajectory document model (as read, before length normalization).

Adapters load source files into this structure; the session fits each
signal to its own grid when importing.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import numpy as np
from numpy.typing import NDArray

from trajsim.models.trajectory import Signal


@dataclass
class TrajectoryDocument:
    """Signals extracted from an imported document."""

    source: str  # "json", "csv" or "api"

    # Only the signals present in the source; lengths are not yet normalized
    signals: dict[Signal, NDArray[np.float64]] = field(default_factory=dict)

    time_steps: Optional[int] = None  # as declared by the document
    dt: Optional[float] = None  # seconds, as declared by the document

    source_file: Optional[Path] = None
