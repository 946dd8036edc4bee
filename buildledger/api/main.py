"""
FastAPI application for the BuildLedger budget engine.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from buildledger.api.routes import (
    cost_codes,
    budgets,
    variance_api,
    reports,
    exports,
)
from buildledger.config import Config
from buildledger.engine.errors import (
    BudgetEngineError,
    ConflictError,
    InvalidState,
    InvalidTransition,
    NotFound,
    ValidationError,
)

logging.basicConfig(
    level=Config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Engine error -> HTTP status
ERROR_STATUS_CODES = {
    ValidationError: 422,
    InvalidState: 409,
    InvalidTransition: 409,
    NotFound: 404,
    ConflictError: 409,
}

# Create FastAPI app
app = FastAPI(
    title="BuildLedger",
    description="Budget versioning, commitment rollup, variance alerts and forecast-to-complete",
    version="1.0.0"
)

# CORS middleware for development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BudgetEngineError)
async def engine_error_handler(request: Request, exc: BudgetEngineError):
    """Render typed engine failures as JSON with a matching status code."""
    status_code = 400
    for error_type, code in ERROR_STATUS_CODES.items():
        if isinstance(exc, error_type):
            status_code = code
            break
    logger.info(f"{request.method} {request.url.path} -> {status_code} {type(exc).__name__}: {exc}")
    return JSONResponse(status_code=status_code, content=exc.to_dict())


# Include routers
app.include_router(cost_codes.router, tags=["Cost Codes"])
app.include_router(budgets.router, tags=["Budgets"])
app.include_router(variance_api.router, tags=["Variance"])
app.include_router(reports.router, tags=["Reports"])
app.include_router(exports.router, tags=["Exports"])


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "app": "BuildLedger"}


@app.get("/health")
async def health():
    """Health check endpoint."""
    from buildledger.db.postgres import test_connection
    db_ok, db_msg = test_connection()
    return {
        "status": "healthy" if db_ok else "unhealthy",
        "database": db_msg
    }
