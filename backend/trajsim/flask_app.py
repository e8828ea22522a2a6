"""
Trajectory Sketch - Flask Backend

Alternative to FastAPI for environments where FastAPI isn't available.
Same API structure, different framework.
"""

import logging
from pathlib import Path
from typing import Optional

from flask import Flask, jsonify, request
from pydantic import ValidationError

from trajsim.api.responses import (
    build_mode_list,
    build_path_response,
    build_signal_info_list,
    build_signals_response,
    build_state_response,
    build_updates,
)
from trajsim.api.schemas import EditRequest, SetModeRequest
from trajsim.config import DEFAULT_MODE, SimulationConfig
from trajsim.models.modes import CalculationMode
from trajsim.services.document_io import (
    DocumentImportError,
    default_export_filename,
    load_document,
    parse_document_data,
)
from trajsim.services.session import SignalNotEditableError, get_session, init_session


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


# Create Flask app
app = Flask(__name__)


def _validation_detail(error: ValidationError) -> str:
    """First validation message, in the form 'field: message'."""
    first = error.errors()[0]
    location = ".".join(str(part) for part in first["loc"])
    return f"{location}: {first['msg']}" if location else first["msg"]


# ============================================================================
# Health Endpoints
# ============================================================================

@app.route("/")
def root():
    """Root endpoint - basic health check."""
    return jsonify({
        "name": "Trajectory Sketch",
        "version": "0.1.0",
        "status": "running",
    })


@app.route("/health")
def health_check():
    """Health check endpoint."""
    session = get_session()
    return jsonify({
        "status": "healthy",
        "mode": session.mode.value,
        "time_steps": session.time_steps,
        "dt": session.dt,
        "revision": session.revision,
    })


# ============================================================================
# Metadata Endpoints
# ============================================================================

@app.route("/modes", methods=["GET"])
def list_modes():
    """List the calculation modes and the signals each one drives."""
    return jsonify([m.model_dump() for m in build_mode_list()])


@app.route("/signals", methods=["GET"])
def list_signals():
    """List display metadata and ranges for signals and metrics."""
    return jsonify([s.model_dump() for s in build_signal_info_list()])


# ============================================================================
# Trajectory Endpoints
# ============================================================================

@app.route("/trajectory", methods=["GET"])
def get_trajectory():
    """Get the complete trajectory state."""
    return jsonify(build_state_response(get_session()).model_dump())


@app.route("/trajectory/edit", methods=["POST"])
def edit_trajectory():
    """Edit samples of a driving signal."""
    data = request.get_json(silent=True)
    if not data:
        return jsonify({"detail": "Request body is required"}), 400

    try:
        edit = EditRequest.model_validate(data)
    except ValidationError as e:
        return jsonify({"detail": _validation_detail(e)}), 400

    session = get_session()
    updates = build_updates(session, edit)

    try:
        snapshot = session.edit_signal(edit.signal, updates)
    except SignalNotEditableError as e:
        return jsonify({"detail": str(e)}), 409

    return jsonify(build_state_response(session, snapshot).model_dump())


@app.route("/trajectory/mode", methods=["PUT"])
def set_mode():
    """Switch the calculation mode, keeping the current signal values."""
    data = request.get_json(silent=True)
    if not data or "mode" not in data:
        return jsonify({"detail": "mode is required"}), 400

    try:
        mode_request = SetModeRequest.model_validate(data)
    except ValidationError as e:
        return jsonify({"detail": _validation_detail(e)}), 400

    session = get_session()
    snapshot = session.set_mode(mode_request.mode)
    return jsonify(build_state_response(session, snapshot).model_dump())


@app.route("/trajectory/reset", methods=["POST"])
def reset_trajectory():
    """Replace the trajectory with the default S-curve."""
    session = get_session()
    snapshot = session.reset()
    return jsonify(build_state_response(session, snapshot).model_dump())


@app.route("/trajectory/ground-truth", methods=["POST"])
def set_ground_truth():
    """Store the current trajectory as the ground truth."""
    session = get_session()
    snapshot = session.snapshot_ground_truth()
    return jsonify(build_state_response(session, snapshot).model_dump())


@app.route("/trajectory/ground-truth", methods=["GET"])
def get_ground_truth():
    """Get the stored ground-truth signals."""
    ground_truth = get_session().ground_truth()

    if ground_truth is None:
        return jsonify({"detail": "No ground truth set"}), 404

    return jsonify(build_signals_response(ground_truth).model_dump())


@app.route("/trajectory/path", methods=["GET"])
def get_path():
    """Get the 2D path of the current trajectory and of the ground truth."""
    return jsonify(build_path_response(get_session()).model_dump())


@app.route("/trajectory/import", methods=["POST"])
def import_trajectory():
    """Import a trajectory document."""
    data = request.get_json(silent=True)
    if data is None:
        return jsonify({"detail": "Request body must be JSON"}), 400

    session = get_session()

    try:
        document = parse_document_data(data, source="api")
    except DocumentImportError as e:
        logger.warning(f"Rejected document import: {e}")
        return jsonify({"detail": str(e)}), 400

    snapshot = session.import_document(document)
    return jsonify(build_state_response(session, snapshot).model_dump())


@app.route("/trajectory/export", methods=["GET"])
def export_trajectory():
    """Export the trajectory as a downloadable JSON document."""
    response = jsonify(get_session().export_document())
    response.headers["Content-Disposition"] = f'attachment; filename="{default_export_filename()}"'
    return response


# ============================================================================
# Startup
# ============================================================================

def create_app(
    config: Optional[SimulationConfig] = None,
    document_path: Optional[Path] = None,
) -> Flask:
    """Create and configure the Flask app."""
    session = init_session(config or SimulationConfig(), CalculationMode(DEFAULT_MODE))

    if document_path is not None:
        try:
            session.import_document(load_document(document_path))
            logger.info(f"Imported startup document: {document_path}")
        except DocumentImportError as e:
            logger.warning(f"Startup document not imported: {e}")

    return app


if __name__ == "__main__":
    import sys

    # Allow specifying a startup document as argument
    document_path = Path(sys.argv[1]) if len(sys.argv) > 1 else None

    create_app(document_path=document_path)
    app.run(host="0.0.0.0", port=8000, debug=True)
