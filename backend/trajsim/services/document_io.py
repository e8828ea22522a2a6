"""
Trajectory document import/export.

Documents are JSON objects of the form

    {"timeSteps": N, "dt": 0.1, "px": [...], "py": [...], "oz": [...],
     "vx": [...], "vy": [...], "wz": [...]}

Any subset of the six signal arrays may be present. CSV files with one
column per signal are accepted as well. Length normalization to the
session grid happens on import (see `normalize_signals`).
"""

import json
import logging
import math
from datetime import date
from numbers import Real
from pathlib import Path
from typing import Any, Mapping, Optional, Protocol

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from trajsim.models.document import TrajectoryDocument
from trajsim.models.trajectory import SIGNALS, MotionState, Signal, fit_length


logger = logging.getLogger(__name__)


class DocumentImportError(ValueError):
    """Raised when a document cannot be imported."""


class DocumentAdapter(Protocol):
    """Adapter interface for trajectory document files."""

    name: str

    def can_parse(self, filepath: Path) -> bool:
        ...

    def parse(self, filepath: Path) -> TrajectoryDocument:
        ...


def parse_document_data(data: Any, source: str = "json") -> TrajectoryDocument:
    """
    Validate decoded document data and extract its signals.

    Keys that are not one of the six signals are ignored, and so are signal
    keys whose value is not a list. At least one signal array must be
    present and every present array must contain only numbers or null.
    A null sample (how export writes non-finite values) is read as 0.

    Raises:
        DocumentImportError: if the data is not a usable document
    """
    if not isinstance(data, Mapping):
        raise DocumentImportError("Document must be a JSON object")

    signals: dict[Signal, NDArray[np.float64]] = {}
    for signal in SIGNALS:
        values = data.get(signal.value)
        if not isinstance(values, list):
            continue
        signals[signal] = _numeric_array(signal, values)

    if not signals:
        raise DocumentImportError(
            "Invalid data format. Expected trajectory data with px, py, oz, vx, vy, wz arrays."
        )

    return TrajectoryDocument(
        source=source,
        signals=signals,
        time_steps=_optional_int(data.get("timeSteps")),
        dt=_optional_float(data.get("dt")),
    )


def normalize_signals(
    document: TrajectoryDocument,
    time_steps: int,
) -> dict[Signal, NDArray[np.float64]]:
    """Fit every signal in the document to `time_steps` samples (truncate or zero-pad)."""
    return {signal: fit_length(values, time_steps) for signal, values in document.signals.items()}


class JsonDocumentAdapter:
    """Adapter for exported JSON documents."""

    name = "json"

    def can_parse(self, filepath: Path) -> bool:
        return filepath.suffix.lower() == ".json"

    def parse(self, filepath: Path) -> TrajectoryDocument:
        try:
            with open(filepath, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise DocumentImportError(f"Failed to parse JSON document: {e}") from e

        document = parse_document_data(data, source=self.name)
        document.source_file = filepath
        return document


class CsvDocumentAdapter:
    """
    Adapter for CSV documents with one column per signal.

    Expected columns: any of px, py, oz, vx, vy, wz (one row per sample).
    """

    name = "csv"

    def can_parse(self, filepath: Path) -> bool:
        return filepath.suffix.lower() == ".csv"

    def parse(self, filepath: Path) -> TrajectoryDocument:
        try:
            df = pd.read_csv(filepath)
        except (pd.errors.EmptyDataError, pd.errors.ParserError) as e:
            raise DocumentImportError(f"Failed to parse CSV document: {e}") from e
        df.columns = df.columns.str.strip().str.lower()

        signals: dict[Signal, NDArray[np.float64]] = {}
        for signal in SIGNALS:
            if signal.value not in df.columns:
                continue
            column = df[signal.value]
            values = pd.to_numeric(column, errors="coerce")
            if (values.isna() & column.notna()).any():
                raise DocumentImportError(f"Column '{signal.value}' contains non-numeric values")
            # Empty cells are exported non-finite samples
            signals[signal] = values.fillna(0.0).values.astype(np.float64)

        if not signals:
            raise DocumentImportError("CSV document has none of the columns px, py, oz, vx, vy, wz")

        return TrajectoryDocument(
            source=self.name,
            signals=signals,
            time_steps=len(df),
            source_file=filepath,
        )


ADAPTERS: list[DocumentAdapter] = [
    JsonDocumentAdapter(),
    CsvDocumentAdapter(),
]


def _select_adapter(filepath: Path) -> DocumentAdapter:
    for adapter in ADAPTERS:
        if adapter.can_parse(filepath):
            return adapter
    raise DocumentImportError(f"No adapter available for file: {filepath}")


def load_document(filepath: Path) -> TrajectoryDocument:
    """Read a trajectory document file via adapter selection."""
    filepath = Path(filepath)
    if not filepath.is_file():
        raise DocumentImportError(f"Document not found: {filepath}")

    adapter = _select_adapter(filepath)
    document = adapter.parse(filepath)
    logger.debug(
        f"Loaded {adapter.name} document {filepath.name} "
        f"with signals {[s.value for s in document.signals]}"
    )
    return document


def build_export_document(state: MotionState, time_steps: int, dt: float) -> dict:
    """Export document with all six signals and the sampling grid."""
    document: dict[str, Any] = {
        "timeSteps": time_steps,
        "dt": dt,
    }
    for signal in SIGNALS:
        document[signal.value] = [_json_number(v) for v in state.signal(signal)]
    return document


def default_export_filename(today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"trajectory_data_{today.isoformat()}.json"


def write_document(output_path: Path, document: Mapping[str, Any]) -> Path:
    """Write an export document as JSON, or as CSV for a .csv path."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    if output_path.suffix.lower() == ".csv":
        df = pd.DataFrame({s.value: document[s.value] for s in SIGNALS if s.value in document})
        df.to_csv(output_path, index=False)
    else:
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(document, f, indent=2)

    return output_path


def _numeric_array(signal: Signal, values: list) -> NDArray[np.float64]:
    samples = []
    for v in values:
        if v is None:
            samples.append(0.0)
            continue
        # bool is a Real subclass but never a valid sample
        if isinstance(v, bool) or not isinstance(v, Real):
            raise DocumentImportError(f"Signal '{signal.value}' contains a non-numeric value: {v!r}")
        samples.append(v)
    return np.asarray(samples, dtype=np.float64)


def _optional_int(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, Real):
        return None
    return int(value)


def _optional_float(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, Real):
        return None
    return float(value)


def _json_number(value: float) -> Optional[float]:
    """Plain float for JSON; non-finite values become None."""
    value = float(value)
    if not math.isfinite(value):
        return None
    return value
