"""
API routes for the edited trajectory.
"""

import logging
from typing import Any

from fastapi import APIRouter, Body, HTTPException
from fastapi.responses import JSONResponse

from trajsim.api.responses import (
    build_mode_list,
    build_path_response,
    build_signal_info_list,
    build_signals_response,
    build_state_response,
    build_updates,
)
from trajsim.api.schemas import (
    EditRequest,
    ErrorResponse,
    ModeResponse,
    PathResponse,
    SetModeRequest,
    SignalInfoResponse,
    SignalsResponse,
    StateResponse,
)
from trajsim.services.document_io import (
    DocumentImportError,
    default_export_filename,
    parse_document_data,
)
from trajsim.services.session import SignalNotEditableError, get_session


logger = logging.getLogger(__name__)


router = APIRouter(prefix="/trajectory", tags=["trajectory"])


@router.get("", response_model=StateResponse)
async def get_trajectory():
    """
    Get the complete trajectory state.

    Includes all six signals, the derived metrics, the active mode and the
    signals it lets the user edit.
    """
    return build_state_response(get_session())


@router.post(
    "/edit",
    response_model=StateResponse,
    responses={409: {"model": ErrorResponse}},
)
async def edit_trajectory(request: EditRequest):
    """
    Edit samples of a driving signal.

    Values are clamped into the signal's display range; the derived signals
    and metrics are recomputed before the response is built.
    """
    session = get_session()
    updates = build_updates(session, request)

    try:
        snapshot = session.edit_signal(request.signal, updates)
    except SignalNotEditableError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return build_state_response(session, snapshot)


@router.put("/mode", response_model=StateResponse)
async def set_mode(request: SetModeRequest):
    """Switch the calculation mode, keeping the current signal values."""
    session = get_session()
    snapshot = session.set_mode(request.mode)
    return build_state_response(session, snapshot)


@router.post("/reset", response_model=StateResponse)
async def reset_trajectory():
    """Replace the trajectory with the default S-curve."""
    session = get_session()
    snapshot = session.reset()
    return build_state_response(session, snapshot)


@router.post("/ground-truth", response_model=StateResponse)
async def set_ground_truth():
    """Store the current trajectory as the ground truth."""
    session = get_session()
    snapshot = session.snapshot_ground_truth()
    return build_state_response(session, snapshot)


@router.get(
    "/ground-truth",
    response_model=SignalsResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_ground_truth():
    """Get the stored ground-truth signals."""
    ground_truth = get_session().ground_truth()

    if ground_truth is None:
        raise HTTPException(status_code=404, detail="No ground truth set")

    return build_signals_response(ground_truth)


@router.get("/path", response_model=PathResponse)
async def get_path():
    """Get the 2D path of the current trajectory and of the ground truth."""
    return build_path_response(get_session())


@router.post(
    "/import",
    response_model=StateResponse,
    responses={400: {"model": ErrorResponse}},
)
async def import_trajectory(data: Any = Body(...)):
    """
    Import a trajectory document.

    Any subset of px, py, oz, vx, vy, wz may be given; each array is
    truncated or zero-padded to the session length. A document without any
    of them is rejected with 400 and the trajectory is left unchanged.
    """
    session = get_session()

    try:
        document = parse_document_data(data, source="api")
    except DocumentImportError as e:
        logger.warning(f"Rejected document import: {e}")
        raise HTTPException(status_code=400, detail=str(e))

    snapshot = session.import_document(document)
    return build_state_response(session, snapshot)


@router.get("/export")
async def export_trajectory():
    """Export the trajectory as a downloadable JSON document."""
    document = get_session().export_document()
    filename = default_export_filename()
    return JSONResponse(
        content=document,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ============================================================================
# Metadata Routes
# ============================================================================

meta_router = APIRouter(tags=["metadata"])


@meta_router.get("/modes", response_model=list[ModeResponse])
async def list_modes():
    """List the calculation modes and the signals each one drives."""
    return build_mode_list()


@meta_router.get("/signals", response_model=list[SignalInfoResponse])
async def list_signals():
    """List display metadata and ranges for signals and metrics."""
    return build_signal_info_list()
