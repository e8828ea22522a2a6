"""
Trajectory Sketch - FastAPI Backend

Main application entry point and configuration.
"""

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from trajsim.api.trajectory import meta_router, router as trajectory_router
from trajsim.config import DEFAULT_MODE, DOCUMENT_ENV, SimulationConfig
from trajsim.models.modes import CalculationMode
from trajsim.services.document_io import DocumentImportError, load_document
from trajsim.services.session import get_session, init_session


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


APP_NAME = "Trajectory Sketch"
APP_VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    logger.info("Starting Trajectory Sketch Backend")

    session = init_session(SimulationConfig(), CalculationMode(DEFAULT_MODE))

    document_path = os.getenv(DOCUMENT_ENV)
    if document_path:
        try:
            session.import_document(load_document(Path(document_path)))
            logger.info(f"Imported startup document: {document_path}")
        except DocumentImportError as e:
            logger.warning(f"Startup document not imported: {e}")

    yield

    # Shutdown
    logger.info("Shutting down Trajectory Sketch Backend")


# Create FastAPI app
app = FastAPI(
    title=APP_NAME,
    description="""
    Backend API for sketching vehicle trajectories.

    ## Features
    - Edit the two driving signals of the active calculation mode
    - Derive the remaining motion signals (position, heading, velocity, yaw rate)
    - Acceleration, curvature and tracking error against a ground truth
    - Import and export trajectory documents

    ## Data Flow
    1. Pick a mode via PUT /trajectory/mode
    2. Edit samples via POST /trajectory/edit
    3. Read the synchronized state via GET /trajectory
    4. Compare against a snapshot via POST /trajectory/ground-truth
    """,
    version=APP_VERSION,
    lifespan=lifespan,
)


# CORS middleware (allow all origins for development)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Include routers
app.include_router(trajectory_router)
app.include_router(meta_router)


@app.get("/")
async def root():
    """Root endpoint - basic health check."""
    return {
        "name": APP_NAME,
        "version": APP_VERSION,
        "status": "running",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    session = get_session()

    return {
        "status": "healthy",
        "mode": session.mode.value,
        "time_steps": session.time_steps,
        "dt": session.dt,
        "revision": session.revision,
    }
