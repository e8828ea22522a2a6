#!/usr/bin/env python3
"""
Launch script for Trajectory Sketch Backend.

Usage:
    python run_server.py [document] [--time-steps N] [--dt DT] [--mode MODE] [--port PORT] [--host HOST]

Examples:
    python run_server.py                              # Default S-curve, 33 samples at 0.1 s
    python run_server.py data/default_trajectory.json # Import a document at startup
    python run_server.py --mode velocity --port 5000  # Start in velocity mode on port 5000
"""

import argparse
import os
import sys
from pathlib import Path

# Add trajsim to path
sys.path.insert(0, str(Path(__file__).parent))

from trajsim.models.modes import CalculationMode


def main():
    parser = argparse.ArgumentParser(description="Trajectory Sketch Backend Server")
    parser.add_argument(
        "document",
        nargs="?",
        default=None,
        help="Trajectory document (.json or .csv) to import at startup"
    )
    parser.add_argument(
        "--time-steps", "-n",
        type=int,
        default=None,
        help="Samples per signal (default: 33)"
    )
    parser.add_argument(
        "--dt",
        type=float,
        default=None,
        help="Seconds between samples (default: 0.1)"
    )
    parser.add_argument(
        "--mode", "-m",
        choices=[m.value for m in CalculationMode],
        default=None,
        help="Calculation mode of the fresh session (default: position)"
    )
    parser.add_argument(
        "--port", "-p",
        type=int,
        default=8000,
        help="Port to run server on (default: 8000)"
    )
    parser.add_argument(
        "--host", "-H",
        default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1, use 0.0.0.0 for all interfaces)"
    )
    parser.add_argument(
        "--debug", "-d",
        action="store_true",
        help="Run in debug mode"
    )

    args = parser.parse_args()

    if args.time_steps is not None and args.time_steps < 1:
        parser.error("--time-steps must be positive")
    if args.dt is not None and args.dt <= 0:
        parser.error("--dt must be positive")

    # Hand the configuration to the app modules through the environment
    if args.time_steps is not None:
        os.environ["TRAJSIM_TIME_STEPS"] = str(args.time_steps)
    if args.dt is not None:
        os.environ["TRAJSIM_DT"] = str(args.dt)
    if args.mode is not None:
        os.environ["TRAJSIM_DEFAULT_MODE"] = args.mode

    time_steps = os.getenv("TRAJSIM_TIME_STEPS", "33")
    dt = os.getenv("TRAJSIM_DT", "0.1")
    mode = os.getenv("TRAJSIM_DEFAULT_MODE", "position")

    print(f"Trajectory Sketch Backend")
    print(f"=" * 40)
    print(f"Time steps: {time_steps}")
    print(f"dt: {dt} s")
    print(f"Mode: {mode}")
    print(f"Server: http://{args.host}:{args.port}")
    print(f"=" * 40)

    if args.document is not None:
        document = Path(args.document)
        if document.exists():
            os.environ["TRAJSIM_DOCUMENT"] = str(document.absolute())
            print(f"Startup document: {document.absolute()}")
        else:
            print(f"\nWarning: Document does not exist: {document}")
            print("Starting with the default S-curve")

    print("\nAPI Endpoints:")
    print("  GET  /                        - Health check")
    print("  GET  /health                  - Detailed health")
    print("  GET  /modes                   - Calculation modes")
    print("  GET  /signals                 - Signal ranges")
    print("  GET  /trajectory              - Full state")
    print("  POST /trajectory/edit         - Edit a driving signal")
    print("  PUT  /trajectory/mode         - Change mode")
    print("  POST /trajectory/reset        - Reset to S-curve")
    print("  POST /trajectory/ground-truth - Snapshot ground truth")
    print("  GET  /trajectory/path         - 2D paths")
    print("  POST /trajectory/import       - Import document")
    print("  GET  /trajectory/export       - Export document")
    print("\nStarting server...")

    import uvicorn

    uvicorn.run(
        "trajsim.main:app",
        host=args.host,
        port=args.port,
        reload=args.debug,
        log_level="info",
    )


if __name__ == "__main__":
    main()
