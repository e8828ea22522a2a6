"""
Trajectory session - the synchronization controller.

Owns the six signal buffers of the document being edited, the optional
ground truth and the derived metrics, and keeps them consistent:

- the complete state is always the derivation engine's output for the
  active mode and the current driving signals;
- the metrics are always the metrics engine's output for the complete
  state and the current ground truth.

Every public operation computes its results first and commits them in one
step, so observers never see a half-updated session. Operations and reads
are serialized by a lock, so requests from a threaded server queue up
instead of interleaving.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

import numpy as np
from numpy.typing import ArrayLike, NDArray

from trajsim.config import DEFAULT_MODE, SimulationConfig
from trajsim.models.document import TrajectoryDocument
from trajsim.models.modes import CalculationMode, ModeConfig, get_mode_config
from trajsim.models.trajectory import (
    METRICS,
    SIGNALS,
    DerivedMetrics,
    MotionState,
    Signal,
    SignalBuffer,
    fit_length,
)
from trajsim.services.derivation import derive
from trajsim.services.document_io import build_export_document, normalize_signals
from trajsim.services.metrics import compute_metrics
from trajsim.utils.editing import SampleUpdate
from trajsim.utils.sample_data import generate_s_curve


logger = logging.getLogger(__name__)


class SignalNotEditableError(ValueError):
    """Raised when editing a signal the active mode derives."""


class SessionReentryError(RuntimeError):
    """Raised when a session operation starts while another is running."""


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only copy of a session after a committed operation."""

    revision: int
    mode: CalculationMode
    state: MotionState
    metrics: DerivedMetrics
    ground_truth: Optional[MotionState]

    @property
    def has_ground_truth(self) -> bool:
        return self.ground_truth is not None


SessionListener = Callable[[SessionSnapshot], None]


class TrajectorySession:
    """
    Synchronization controller for one edited trajectory.

    Operations run to completion one at a time. A second thread waits for
    the running operation; the same thread starting a nested operation
    (from a listener) gets SessionReentryError.
    """

    def __init__(
        self,
        config: Optional[SimulationConfig] = None,
        mode: Optional[CalculationMode] = None,
        initial_state: Optional[MotionState] = None,
    ):
        """
        Initialize the session.

        Args:
            config: Sampling grid. Defaults to the environment configuration.
            mode: Active calculation mode. Defaults to TRAJSIM_DEFAULT_MODE.
            initial_state: Starting signals. Defaults to the S-curve.
        """
        self._config = config or SimulationConfig()
        self._mode = mode or CalculationMode(DEFAULT_MODE)

        n = self._config.time_steps
        self._signals: dict[Signal, SignalBuffer] = {s: SignalBuffer(n) for s in SIGNALS}
        self._metrics = {m: SignalBuffer(n) for m in METRICS}
        self._ground_truth: Optional[MotionState] = None

        self._revision = 0
        self._lock = threading.RLock()
        self._busy = False
        self._listeners: list[SessionListener] = []

        if initial_state is None:
            initial_state = generate_s_curve(n, self._config.dt)
        with self._operation("init"):
            self._sync(initial_state)
            logger.info(f"Session started in {self._mode.value} mode ({n} samples, dt={self._config.dt})")

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def time_steps(self) -> int:
        return self._config.time_steps

    @property
    def dt(self) -> float:
        return self._config.dt

    @property
    def mode(self) -> CalculationMode:
        return self._mode

    @property
    def mode_config(self) -> ModeConfig:
        return get_mode_config(self._mode)

    @property
    def revision(self) -> int:
        return self._revision

    @property
    def has_ground_truth(self) -> bool:
        return self._ground_truth is not None

    def is_owned(self, signal: Signal) -> bool:
        """True if the active mode lets the user edit `signal` directly."""
        return self.mode_config.owns(signal)

    def signal(self, signal: Signal) -> NDArray[np.float64]:
        with self._lock:
            return self._signals[signal].snapshot()

    def state(self) -> MotionState:
        with self._lock:
            return self._current_state()

    def metrics(self) -> DerivedMetrics:
        with self._lock:
            return DerivedMetrics(**{m.value: self._metrics[m].snapshot() for m in METRICS})

    def ground_truth(self) -> Optional[MotionState]:
        with self._lock:
            return self._ground_truth.copy() if self._ground_truth is not None else None

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            return SessionSnapshot(
                revision=self._revision,
                mode=self._mode,
                state=self.state(),
                metrics=self.metrics(),
                ground_truth=self.ground_truth(),
            )

    def export_document(self) -> dict:
        return build_export_document(self.state(), self.time_steps, self.dt)

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """
        Register a callback run after every committed operation.

        Listeners only read; starting a session operation from inside a
        listener raises SessionReentryError. An exception raised by a
        listener is logged and does not reach the caller of the committed
        operation. Returns an unsubscribe function.
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def edit_signal(self, signal: Signal, updates: Iterable[SampleUpdate]) -> SessionSnapshot:
        """
        Point or batch edit of a driving signal.

        Indices outside the signal are clamped to its first/last sample.
        Values are stored exactly as given.

        Raises:
            SignalNotEditableError: if the active mode derives `signal`
        """
        with self._operation("edit") as op:
            if not self.is_owned(signal):
                logger.warning(f"Rejected edit of derived signal {signal.value} in {self._mode.value} mode")
                raise SignalNotEditableError(
                    f"Signal '{signal.value}' is derived in {self._mode.value} mode"
                )

            edited = SignalBuffer(self.time_steps, self._signals[signal].snapshot())
            count = 0
            for update in updates:
                edited.set(update.index, update.value)
                count += 1

            self._sync(self._current_state().with_signals({signal: edited.snapshot()}))
            logger.debug(f"Edited {count} samples of {signal.value}")

        return op.result

    def replace_signal(self, signal: Signal, values: ArrayLike) -> SessionSnapshot:
        """Bulk replace of a driving signal (fitted to the session length)."""
        fitted = fit_length(values, self.time_steps)
        return self.edit_signal(
            signal, [SampleUpdate(index=i, value=float(v)) for i, v in enumerate(fitted)]
        )

    def set_mode(self, mode: CalculationMode) -> SessionSnapshot:
        """
        Switch calculation mode.

        The existing contents of the newly owned signals become the driving
        input; nothing is reset.
        """
        with self._operation("mode") as op:
            previous = self._mode
            self._mode = mode
            self._sync(self._current_state())
            logger.info(f"Calculation mode changed: {previous.value} -> {mode.value}")

        return op.result

    def snapshot_ground_truth(self) -> SessionSnapshot:
        """Store a copy of the current six signals as the ground truth."""
        with self._operation("ground_truth") as op:
            current = self._current_state()
            metrics = compute_metrics(current, current, self.dt, self.time_steps)
            self._ground_truth = current.copy()
            self._write_metrics(metrics)
            logger.info("Ground truth set from current trajectory")

        return op.result

    def reset(self) -> SessionSnapshot:
        """Replace all signals with the default S-curve and re-sync."""
        with self._operation("reset") as op:
            default = generate_s_curve(self.time_steps, self.dt)
            self._sync(default)
            logger.info("Trajectory reset to default S-curve")

        return op.result

    def import_document(self, document: TrajectoryDocument) -> SessionSnapshot:
        """
        Replace the signals present in `document`, then re-sync.

        Signals absent from the document keep their values. Each imported
        signal is truncated or zero-padded to the session length.
        """
        with self._operation("import") as op:
            imported = normalize_signals(document, self.time_steps)
            if document.time_steps is not None and document.time_steps != self.time_steps:
                logger.info(
                    f"Document declares {document.time_steps} time steps, "
                    f"fitted to {self.time_steps}"
                )
            self._sync(self._current_state().with_signals(imported))
            logger.info(f"Imported signals: {', '.join(s.value for s in imported)}")

        return op.result

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _current_state(self) -> MotionState:
        return MotionState(**{s.value: self._signals[s].snapshot() for s in SIGNALS})

    def _sync(self, state: MotionState) -> None:
        """
        Derive, then commit signals and metrics together.

        `state` carries the driving input. Owned signals are committed from
        `state` itself, never from the engine output, so user input is kept
        exactly. Nothing is written until every result is computed.
        """
        owned = self.mode_config.driving_signals
        complete = derive(self._mode, state, self.dt)
        committed = complete.with_signals({s: state.signal(s) for s in owned})

        metrics = compute_metrics(committed, self._ground_truth, self.dt, self.time_steps)

        for signal in SIGNALS:
            self._signals[signal].replace(committed.signal(signal))
        self._write_metrics(metrics)

    def _write_metrics(self, metrics: DerivedMetrics) -> None:
        for metric in METRICS:
            self._metrics[metric].replace(metrics.metric(metric))

    def _operation(self, name: str) -> "_Operation":
        return _Operation(self, name)

    def _notify(self, snapshot: SessionSnapshot) -> None:
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception(f"Session listener failed after revision {snapshot.revision}")


class _Operation:
    """
    Context running one session operation under the session lock.

    On success the revision is bumped, the committed snapshot is stored in
    `result` and listeners are notified, all before the lock is released.
    """

    def __init__(self, session: TrajectorySession, name: str):
        self._session = session
        self._name = name
        self.result: Optional[SessionSnapshot] = None

    def __enter__(self):
        self._session._lock.acquire()
        if self._session._busy:
            self._session._lock.release()
            raise SessionReentryError(
                f"Cannot start '{self._name}' while another session operation is running"
            )
        self._session._busy = True
        return self

    def __exit__(self, exc_type, exc, tb):
        try:
            if exc_type is None:
                self._session._revision += 1
                self.result = self._session.snapshot()
                self._session._notify(self.result)
        finally:
            self._session._busy = False
            self._session._lock.release()
        return False


# Global session instance (set up by app initialization)
_session: Optional[TrajectorySession] = None


def get_session() -> TrajectorySession:
    """Get the global session instance."""
    global _session
    if _session is None:
        _session = TrajectorySession()
    return _session


def init_session(
    config: Optional[SimulationConfig] = None,
    mode: Optional[CalculationMode] = None,
    initial_state: Optional[MotionState] = None,
) -> TrajectorySession:
    """Initialize the global session."""
    global _session
    _session = TrajectorySession(config, mode, initial_state)
    return _session
