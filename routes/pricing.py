"""
Pricing routes for CrewRate.
JSON handlers for time-log pricing, clock-time segmentation, window
template validation and project summaries.
"""
from __future__ import annotations

import json
import logging
from decimal import Decimal
from typing import Any, Dict

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from core.aggregation import aggregate_project_costs, check_record_consistency, project_summary
from core.database import PostgresRateCardStore
from core.logic import price_time_log, price_timed_entry
from core.models import TimeLogInput, get_field
from core.rates import RateCardStore, RateResolver
from core.segmenter import find_window_overlaps
from utils.error_handler import ValidationError

logger = logging.getLogger(__name__)


def get_rate_card_store() -> RateCardStore:
    """Store used by the pricing routes; overridden in tests."""
    return PostgresRateCardStore()


def _json_response(content: Any, status_code: int = 200) -> JSONResponse:
    # Money stays exact on the wire
    return JSONResponse(
        jsonable_encoder(content, custom_encoder={Decimal: str}),
        status_code=status_code,
    )


async def _read_body(request: Request) -> Dict[str, Any]:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError("Request body must be valid JSON")
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


async def price_time_log_route(request: Request, store: RateCardStore) -> JSONResponse:
    """Price a time log against both sides' rate cards."""
    body = await _read_body(request)
    company_id = get_field(body, "company_id", "companyId")
    if not isinstance(company_id, str) or not company_id:
        raise ValidationError("company_id is required", details={"field": "company_id"})

    time_log = TimeLogInput.from_payload(body)
    min_hours = get_field(body, "min_hours", "minHours")

    record = price_time_log(RateResolver(store), company_id, time_log, min_hours=min_hours)
    return _json_response(record)


async def price_time_range_route(request: Request) -> JSONResponse:
    """Price a start/end entry across time-based rate windows."""
    body = await _read_body(request)
    for snake, camel in (("start_time", "startTime"), ("end_time", "endTime"),
                         ("fallback_sub_rate", "fallbackSubRate"),
                         ("fallback_client_rate", "fallbackClientRate")):
        if get_field(body, snake, camel) is None:
            raise ValidationError(f"{snake} is required", details={"field": snake})

    result = price_timed_entry(
        get_field(body, "start_time", "startTime"),
        get_field(body, "end_time", "endTime"),
        body.get("windows") or [],
        get_field(body, "fallback_sub_rate", "fallbackSubRate"),
        get_field(body, "fallback_client_rate", "fallbackClientRate"),
        quantity=body.get("quantity", 1),
        day=body.get("date"),
    )
    return _json_response(result)


async def validate_windows_route(request: Request) -> JSONResponse:
    """Report overlapping windows in a rate window template."""
    body = await _read_body(request)
    windows = body.get("windows")
    if not isinstance(windows, list):
        raise ValidationError("windows must be a list", details={"field": "windows"})

    conflicts = find_window_overlaps(windows)
    return _json_response({
        "valid": not conflicts,
        "conflicts": [[first.label(), second.label()] for first, second in conflicts],
    })


async def project_summary_route(request: Request, project_id: str) -> JSONResponse:
    """Summarize and track a project's priced records."""
    body = await _read_body(request)
    time_logs = get_field(body, "time_logs", "timeLogs") or []
    expenses = body.get("expenses") or []
    include_submitted = bool(get_field(body, "include_submitted", "includeSubmitted", False))
    names = get_field(body, "subcontractor_names", "subcontractorNames") or {}

    inconsistent = [log.get("id") for log in time_logs if not check_record_consistency(log)]
    if inconsistent:
        logger.warning(f"Project {project_id}: {len(inconsistent)} time log(s) with inconsistent margin")

    return _json_response({
        "summary": project_summary(project_id, time_logs, expenses, include_submitted),
        "tracking": aggregate_project_costs(time_logs, expenses, names),
        "inconsistent_record_ids": inconsistent,
    })
