"""
Tests for the trajectory session (synchronization controller).
"""

import logging
import math
import threading
import time

import numpy as np
import pytest
from numpy.testing import assert_allclose, assert_array_equal

from trajsim.config import SimulationConfig
from trajsim.models.document import TrajectoryDocument
from trajsim.models.modes import MODES, CalculationMode
from trajsim.models.trajectory import SIGNALS, MotionState, Signal
from trajsim.services.derivation import derive
from trajsim.services.document_io import DocumentImportError, parse_document_data
from trajsim.services import session as session_module
from trajsim.services.metrics import compute_metrics
from trajsim.services.session import (
    SessionReentryError,
    SignalNotEditableError,
    TrajectorySession,
    get_session,
    init_session,
)
from trajsim.utils.editing import SampleUpdate
from trajsim.utils.sample_data import generate_s_curve


@pytest.fixture
def config():
    return SimulationConfig(time_steps=33, dt=0.1)


@pytest.fixture
def session(config):
    """Fresh session in position mode with the default S-curve."""
    return TrajectorySession(config, CalculationMode.POSITION)


def _assert_synchronized(session: TrajectorySession):
    """The stored state is a fixed point of the engine and the metrics match it."""
    state = session.state()
    derived = derive(session.mode, state, session.dt)
    for signal in SIGNALS:
        assert_allclose(derived.signal(signal), state.signal(signal), atol=1e-9)

    expected = compute_metrics(state, session.ground_truth(), session.dt, session.time_steps)
    metrics = session.metrics()
    for name in ("ax", "ay", "cz", "l1"):
        assert_allclose(getattr(metrics, name), getattr(expected, name), atol=1e-12)


class TestInitialState:
    """Tests for a fresh session."""

    def test_default_s_curve(self, session):
        state = session.state()
        s_curve = generate_s_curve(33, 0.1)

        assert len(state) == 33
        assert_allclose(state.px, s_curve.px)
        assert_allclose(state.py, s_curve.py)
        assert not session.has_ground_truth
        _assert_synchronized(session)

    def test_custom_grid(self):
        session = TrajectorySession(SimulationConfig(time_steps=4, dt=1.0), CalculationMode.VELOCITY)

        assert session.time_steps == 4
        assert len(session.signal(Signal.PX)) == 4

    def test_invalid_config(self):
        with pytest.raises(ValueError):
            SimulationConfig(time_steps=0)
        with pytest.raises(ValueError):
            SimulationConfig(dt=0.0)


class TestEditSignal:
    """Tests for edits of driving signals."""

    def test_velocity_scenario(self):
        """N=4, dt=1: unit forward speed integrates to 0, 1, 2, 3."""
        session = TrajectorySession(
            SimulationConfig(time_steps=4, dt=1.0),
            CalculationMode.VELOCITY,
            initial_state=MotionState.zeros(4),
        )

        session.edit_signal(Signal.VX, [SampleUpdate(i, 1.0) for i in range(4)])

        assert_allclose(session.signal(Signal.PX), [0, 1, 2, 3])
        assert_allclose(session.signal(Signal.PY), [0, 0, 0, 0])
        assert_allclose(session.signal(Signal.OZ), [0, 0, 0, 0])
        assert_allclose(session.signal(Signal.WZ), [0, 0, 0, 0])

    def test_reverse_heading_is_plus_pi(self):
        """vx < 0 with vy = -0.0 keeps oz inside (-pi, pi]."""
        session = TrajectorySession(
            SimulationConfig(time_steps=3, dt=0.1),
            CalculationMode.VELOCITY,
            initial_state=MotionState.zeros(3),
        )

        session.edit_signal(Signal.VX, [SampleUpdate(i, -1.0) for i in range(3)])
        session.edit_signal(Signal.VY, [SampleUpdate(i, -0.0) for i in range(3)])

        oz = session.signal(Signal.OZ)
        assert np.all(oz > -math.pi)
        assert_allclose(oz, [math.pi] * 3)

    def test_owned_signals_kept_exactly(self, session):
        """Driving signals hold exactly what the user wrote."""
        px_before = session.signal(Signal.PX)
        py_before = session.signal(Signal.PY)
        px_before[5] = 12.345678901234

        session.edit_signal(Signal.PX, [SampleUpdate(5, 12.345678901234)])

        assert_array_equal(session.signal(Signal.PX), px_before)
        assert_array_equal(session.signal(Signal.PY), py_before)
        _assert_synchronized(session)

    def test_derived_signals_updated(self, session):
        vx_before = session.signal(Signal.VX)

        session.edit_signal(Signal.PX, [SampleUpdate(10, 40.0)])

        assert not np.allclose(session.signal(Signal.VX), vx_before)

    def test_non_owned_rejected(self, session):
        """Editing a derived signal raises and changes nothing."""
        before = session.snapshot()

        with pytest.raises(SignalNotEditableError):
            session.edit_signal(Signal.VX, [SampleUpdate(0, 1.0)])

        assert session.revision == before.revision
        assert_array_equal(session.signal(Signal.VX), before.state.vx)

    def test_index_clamped(self, session):
        """Out-of-range indices land on the first/last sample."""
        session.edit_signal(Signal.PY, [SampleUpdate(-5, 1.5), SampleUpdate(1000, -2.5)])

        py = session.signal(Signal.PY)
        assert py[0] == 1.5
        assert py[-1] == -2.5

    def test_batch_edit(self, session):
        updates = [SampleUpdate(i, float(i)) for i in range(33)]

        session.edit_signal(Signal.PX, updates)

        assert_array_equal(session.signal(Signal.PX), np.arange(33, dtype=float))
        assert_allclose(session.signal(Signal.VX), np.full(33, 10.0))

    def test_replace_signal_fits_length(self, session):
        session.replace_signal(Signal.PY, [1.0, 2.0])

        py = session.signal(Signal.PY)
        assert len(py) == 33
        assert_array_equal(py[:3], [1.0, 2.0, 0.0])

    def test_integral_singularity_preserved(self):
        """A quarter turn in one step gives an unclamped huge vy."""
        session = TrajectorySession(
            SimulationConfig(time_steps=2, dt=1.0),
            CalculationMode.INTEGRAL,
            initial_state=MotionState.zeros(2),
        )

        session.edit_signal(Signal.VX, [SampleUpdate(0, 2.0), SampleUpdate(1, 2.0)])
        session.edit_signal(Signal.WZ, [SampleUpdate(0, math.pi / 2)])

        assert_allclose(session.signal(Signal.OZ), [0.0, math.pi / 2])
        assert abs(session.signal(Signal.VY)[1]) > 1e10


class TestSetMode:
    """Tests for switching calculation modes."""

    @pytest.mark.parametrize("mode", list(CalculationMode))
    def test_newly_owned_signals_kept(self, session, mode):
        """The values of the newly owned signals become the driving input."""
        before = session.state()

        session.set_mode(mode)

        for signal in MODES[mode].driving_signals:
            assert_array_equal(session.signal(signal), before.signal(signal))
        assert session.mode == mode
        _assert_synchronized(session)

    def test_round_trip_through_modes(self, session):
        """The S-curve survives a tour through every mode."""
        start = session.state()

        for mode in [CalculationMode.VELOCITY, CalculationMode.POSITION]:
            session.set_mode(mode)

        assert_allclose(session.signal(Signal.PX)[:-1], start.px[:-1], atol=1e-9)

    def test_ownership_follows_mode(self, session):
        session.set_mode(CalculationMode.INTEGRAL)

        assert session.is_owned(Signal.WZ)
        assert not session.is_owned(Signal.PX)
        with pytest.raises(SignalNotEditableError):
            session.edit_signal(Signal.PX, [SampleUpdate(0, 1.0)])


class TestGroundTruth:
    """Tests for ground-truth snapshots."""

    def test_snapshot_zero_error(self, session):
        session.snapshot_ground_truth()

        assert session.has_ground_truth
        assert_allclose(session.metrics().l1, np.zeros(33))

    def test_error_after_edit(self, session):
        session.snapshot_ground_truth()
        py = session.signal(Signal.PY)

        session.edit_signal(Signal.PY, [SampleUpdate(7, py[7] + 2.0)])

        l1 = session.metrics().l1
        assert_allclose(l1[7], 2.0)
        assert_allclose(np.delete(l1, 7), 0.0, atol=1e-12)

    def test_persists_through_edits_and_reset(self, session):
        session.snapshot_ground_truth()
        truth = session.ground_truth()

        session.edit_signal(Signal.PX, [SampleUpdate(3, 0.0)])
        session.set_mode(CalculationMode.VELOCITY)
        session.reset()

        assert session.has_ground_truth
        for signal in SIGNALS:
            assert_array_equal(session.ground_truth().signal(signal), truth.signal(signal))

    def test_ground_truth_is_a_copy(self, session):
        session.snapshot_ground_truth()

        session.ground_truth().px[:] = 99.0

        assert not np.any(session.ground_truth().px == 99.0)


class TestReset:
    """Tests for resetting to the S-curve."""

    def test_restores_default(self, session):
        session.edit_signal(Signal.PX, [SampleUpdate(i, 0.0) for i in range(33)])

        session.reset()

        assert_allclose(session.signal(Signal.PX), generate_s_curve(33, 0.1).px)
        _assert_synchronized(session)

    def test_resyncs_in_active_mode(self, session):
        session.set_mode(CalculationMode.INTEGRAL)

        session.reset()

        assert session.mode == CalculationMode.INTEGRAL
        _assert_synchronized(session)


class TestImport:
    """Tests for document import."""

    def test_subset_replaces_only_present(self, session):
        before = session.state()

        session.import_document(parse_document_data({"px": list(np.linspace(0, 32, 33))}))

        assert_allclose(session.signal(Signal.PX), np.linspace(0, 32, 33))
        assert_array_equal(session.signal(Signal.PY), before.py)
        _assert_synchronized(session)

    def test_padding_and_truncation(self):
        session = TrajectorySession(SimulationConfig(time_steps=10, dt=0.1), CalculationMode.POSITION)

        session.import_document(parse_document_data({"px": [1, 2, 3, 4, 5], "py": list(range(15))}))

        assert_allclose(session.signal(Signal.PX), [1, 2, 3, 4, 5, 0, 0, 0, 0, 0])
        assert_allclose(session.signal(Signal.PY), list(range(10)))

    def test_rejected_document_changes_nothing(self, session):
        before = session.snapshot()

        with pytest.raises(DocumentImportError):
            session.import_document(parse_document_data({"timeSteps": 33}))

        assert session.revision == before.revision
        for signal in SIGNALS:
            assert_array_equal(session.signal(signal), before.state.signal(signal))

    def test_import_of_derived_signal_is_rederived(self, session):
        """Imported non-driving signals are overwritten by the re-sync."""
        session.import_document(
            TrajectoryDocument(source="api", signals={Signal.VX: np.full(33, 99.0)})
        )

        assert not np.any(session.signal(Signal.VX) == 99.0)
        _assert_synchronized(session)

    def test_export_round_trip(self, session):
        session.edit_signal(Signal.PY, [SampleUpdate(4, 3.0)])
        exported = session.export_document()

        other = TrajectorySession(SimulationConfig(time_steps=33, dt=0.1), CalculationMode.POSITION)
        other.import_document(parse_document_data(exported))

        for signal in SIGNALS:
            assert_allclose(other.signal(signal), session.signal(signal), atol=1e-9)


class TestObservers:
    """Tests for snapshot notifications."""

    def test_notified_once_per_operation(self, session):
        snapshots = []
        session.subscribe(snapshots.append)

        session.edit_signal(Signal.PX, [SampleUpdate(0, 1.0), SampleUpdate(1, 2.0)])
        session.set_mode(CalculationMode.VELOCITY)

        assert len(snapshots) == 2
        assert snapshots[1].revision == snapshots[0].revision + 1
        assert snapshots[1].mode == CalculationMode.VELOCITY

    def test_snapshot_is_complete(self, session):
        snapshots = []
        session.subscribe(snapshots.append)

        session.edit_signal(Signal.PX, [SampleUpdate(10, 30.0)])

        snapshot = snapshots[0]
        assert snapshot.state.px[10] == 30.0
        assert_allclose(snapshot.state.vx, session.signal(Signal.VX))
        assert_allclose(snapshot.metrics.ax, session.metrics().ax)

    def test_unsubscribe(self, session):
        snapshots = []
        unsubscribe = session.subscribe(snapshots.append)

        unsubscribe()
        session.reset()

        assert snapshots == []

    def test_reentry_rejected(self, session):
        """A listener cannot start another session operation."""
        errors = []

        def listener(snapshot):
            try:
                session.reset()
            except SessionReentryError as e:
                errors.append(e)

        session.subscribe(listener)
        session.set_mode(CalculationMode.VELOCITY)

        assert len(errors) == 1
        assert session.mode == CalculationMode.VELOCITY

    def test_session_usable_after_reentry(self, session, caplog):
        """A nested operation fails inside the listener only; the outer one commits."""
        def listener(snapshot):
            session.set_mode(CalculationMode.POSITION)

        unsubscribe = session.subscribe(listener)
        with caplog.at_level(logging.ERROR, logger="trajsim.services.session"):
            snapshot = session.set_mode(CalculationMode.VELOCITY)
        unsubscribe()

        assert snapshot.mode == CalculationMode.VELOCITY
        assert "Session listener failed" in caplog.text
        assert "SessionReentryError" in caplog.text

        session.set_mode(CalculationMode.INTEGRAL)

        assert session.mode == CalculationMode.INTEGRAL

    def test_failing_listener_does_not_block_others(self, session, caplog):
        """A raising listener is logged; later listeners still run and the edit stands."""
        snapshots = []

        def broken(snapshot):
            raise ValueError("listener bug")

        session.subscribe(broken)
        session.subscribe(snapshots.append)

        with caplog.at_level(logging.ERROR, logger="trajsim.services.session"):
            result = session.edit_signal(Signal.PX, [SampleUpdate(3, 12.5)])

        assert session.signal(Signal.PX)[3] == 12.5
        assert len(snapshots) == 1
        assert snapshots[0].revision == result.revision
        assert "listener bug" in caplog.text


class TestThreadedAccess:
    """Operations from several threads are serialized, not rejected."""

    @pytest.fixture
    def slow_derive(self, monkeypatch):
        """Make derivation slow and signal when one has started."""
        started = threading.Event()

        def derive_slowly(mode, state, dt):
            started.set()
            time.sleep(0.1)
            return derive(mode, state, dt)

        monkeypatch.setattr(session_module, "derive", derive_slowly)
        return started

    def test_concurrent_edits(self, session, slow_derive):
        before = session.revision
        errors = []

        def edit(index, value):
            try:
                session.edit_signal(Signal.PX, [SampleUpdate(index, value)])
            except Exception as e:
                errors.append(e)

        threads = [
            threading.Thread(target=edit, args=(5, 40.0)),
            threading.Thread(target=edit, args=(6, 41.0)),
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)

        assert errors == []
        assert session.revision == before + 2
        assert session.signal(Signal.PX)[5] == 40.0
        assert session.signal(Signal.PX)[6] == 41.0
        _assert_synchronized(session)

    def test_read_waits_for_running_operation(self, session, slow_derive):
        """A snapshot taken mid-operation sees the committed result."""
        before = session.revision
        writer = threading.Thread(
            target=session.edit_signal, args=(Signal.PX, [SampleUpdate(2, 33.0)])
        )

        slow_derive.clear()
        writer.start()
        assert slow_derive.wait(timeout=5)
        snapshot = session.snapshot()
        writer.join(timeout=5)

        assert snapshot.revision == before + 1
        assert snapshot.state.px[2] == 33.0
        assert_allclose(snapshot.state.vx, derive(CalculationMode.POSITION, snapshot.state, 0.1).vx)


class TestGlobalSession:
    """Tests for the module-level session accessors."""

    def test_init_replaces_global(self, config):
        session = init_session(config, CalculationMode.DIFFERENTIAL)

        assert get_session() is session
        assert get_session().mode == CalculationMode.DIFFERENTIAL
