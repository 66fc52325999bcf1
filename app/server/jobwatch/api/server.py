"""
jobwatch Backend - FastAPI Server

Serves the job observability API that the operator dashboard polls and
streams from.
"""

import argparse
import logging
import sys
from pathlib import Path

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

# Running from a checkout: make the repository root importable so that the
# core package (`src.core`) resolves without installation.
# Path: .../<repo>/app/server/jobwatch/api/server.py
_repo_root = Path(__file__).resolve().parents[4]
if (_repo_root / "src" / "core").exists() and str(_repo_root) not in sys.path:
    sys.path.insert(0, str(_repo_root))

from .. import __version__  # noqa: E402
from .routes import codex, jobs, logs, sessions, usage  # noqa: E402

logger = logging.getLogger(__name__)

app = FastAPI(
    title="jobwatch Backend",
    description="Live view of autonomous agent jobs: processes, audit events, output logs, usage",
    version=__version__,
)


@app.exception_handler(HTTPException)
async def http_error_handler(_request: Request, exc: HTTPException) -> JSONResponse:
    """Report failures as ``{"error": message}`` like the rest of the dashboard API."""
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": "Invalid request", "details": jsonable_encoder(exc.errors())})


@app.get("/api/health")
def health():
    """Health check endpoint"""
    return {"status": "ok"}


# Include routers
app.include_router(jobs.router, prefix="/api", tags=["jobs"])
app.include_router(sessions.router, prefix="/api", tags=["sessions"])
app.include_router(usage.router, prefix="/api", tags=["usage"])
app.include_router(codex.router, prefix="/api", tags=["codex"])
app.include_router(logs.router, prefix="/api", tags=["logs"])


# IMPORTANT: keep last, it swallows every unmatched /api path.
@app.api_route("/api/{rest:path}", methods=["GET", "POST", "PUT", "PATCH", "DELETE"], include_in_schema=False)
def api_not_found(rest: str):
    return JSONResponse(status_code=404, content={"error": "API route not found"})


def main():
    """Main entry point for the server"""
    parser = argparse.ArgumentParser(description="jobwatch Backend Server")
    parser.add_argument(
        "--port",
        type=int,
        default=4175,
        help="Port to run the server on (default: 4175)",
    )
    parser.add_argument(
        "--host",
        type=str,
        default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1)",
    )
    args = parser.parse_args()

    print(f"Starting jobwatch backend on {args.host}:{args.port}")

    log_config = uvicorn.config.LOGGING_CONFIG
    log_config["formatters"]["access"]["fmt"] = "%(asctime)s %(levelprefix)s %(client_addr)s - \"%(request_line)s\" %(status_code)s"
    log_config["formatters"]["default"]["fmt"] = "%(asctime)s %(levelprefix)s %(message)s"
    log_config["formatters"]["access"]["datefmt"] = "%H:%M:%S"
    log_config["formatters"]["default"]["datefmt"] = "%H:%M:%S"
    log_config["loggers"]["src"] = {"handlers": ["default"], "level": "INFO", "propagate": False}
    log_config["loggers"]["jobwatch"] = {"handlers": ["default"], "level": "INFO", "propagate": False}

    uvicorn.run(app, host=args.host, port=args.port, log_level="info", log_config=log_config)


if __name__ == "__main__":
    main()
