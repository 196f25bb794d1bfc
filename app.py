"""
Main application file for CrewRate.
Wires the pricing route handlers, logging and error handlers into FastAPI.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import psycopg2
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from core.config import config
from core.database import check_connection, close_all_pools
from core.rates import RateCardStore
from routes.pricing import (
    get_rate_card_store,
    price_time_log_route,
    price_time_range_route,
    validate_windows_route,
    project_summary_route,
)
from utils.cache_manager import start_cache_cleanup_task
from utils.error_handler import CrewRateError, handle_application_error, handle_unexpected_error

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Configure logging
logging.basicConfig(level=config.LOG_LEVEL, format=LOG_FORMAT)
if config.LOG_FILE:
    file_handler = logging.FileHandler(config.LOG_FILE)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.getLogger().addHandler(file_handler)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if config.ENABLE_CACHING:
        start_cache_cleanup_task()
    logger.info(f"CrewRate {config.VERSION} starting")
    yield
    close_all_pools()


# FastAPI app setup
app = FastAPI(title="CrewRate", version=config.VERSION, lifespan=lifespan)

app.add_exception_handler(CrewRateError, handle_application_error)


# Global exception handler for database connection errors
@app.exception_handler(psycopg2.OperationalError)
async def database_connection_error_handler(request: Request, exc: psycopg2.OperationalError):
    """Handle database connection errors with helpful messages."""
    error_msg = str(exc)

    if "could not translate host name" in error_msg or "Name or service not known" in error_msg:
        user_message = "Database connection error: the server host name could not be resolved."
    elif "connection refused" in error_msg.lower():
        user_message = "Database connection error: the server refused the connection."
    else:
        user_message = "Database connection error."

    logger.error(f"Database connection error: {error_msg}")
    return JSONResponse(
        status_code=503,
        content={
            "error": user_message,
            "error_type": "database_connection_error"
        }
    )


app.add_exception_handler(Exception, handle_unexpected_error)


# Route registrations
@app.get("/health")
def health_check():
    """Health check endpoint; tests database connectivity when configured."""
    if not config.DATABASE_URL:
        return {"status": "ok", "version": config.VERSION, "database": "not_configured"}

    if check_connection():
        return {"status": "ok", "version": config.VERSION, "database": "connected"}
    return JSONResponse(
        status_code=503,
        content={"status": "error", "version": config.VERSION, "database": "disconnected"},
    )


@app.post("/api/pricing/time-log")
async def price_time_log_api(request: Request, store: RateCardStore = Depends(get_rate_card_store)):
    """Price a time log against subcontractor and client rate cards."""
    return await price_time_log_route(request, store)


@app.post("/api/pricing/time-range")
async def price_time_range_api(request: Request):
    """Price a start/end entry across time-based rate windows."""
    return await price_time_range_route(request)


@app.post("/api/pricing/windows/validate")
async def validate_windows_api(request: Request):
    """Check a rate window template for overlapping windows."""
    return await validate_windows_route(request)


@app.post("/api/projects/{project_id}/summary")
async def project_summary_api(request: Request, project_id: str):
    """Project billing summary and per-subcontractor tracking."""
    return await project_summary_route(request, project_id)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app:app", host=config.HOST, port=config.PORT, reload=config.DEBUG)
