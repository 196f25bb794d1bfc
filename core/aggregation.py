"""
Cost aggregation for CrewRate.
Rolls priced time logs and expenses up into project totals, per-status
breakdowns and per-subcontractor tracking.
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

from core.constants import RecordStatus, TRACKED_STATUSES, UNKNOWN_SUBCONTRACTOR_NAME
from core.pricing import margin_percentage
from utils.error_handler import CalculationError
from utils.utils import round_money, to_decimal

logger = logging.getLogger(__name__)

ZERO = Decimal(0)

# Record field -> camelCase name used by documents written by older clients
_CAMEL = {
    "sub_cost": "subCost",
    "client_bill": "clientBill",
    "margin_value": "marginValue",
    "margin_pct": "marginPct",
    "hours_regular": "hoursRegular",
    "hours_ot": "hoursOT",
    "subcontractor_id": "subcontractorId",
}


def _field(record: Mapping[str, Any], name: str, default: Any = None) -> Any:
    if name in record:
        return record[name]
    return record.get(_CAMEL.get(name, name), default)


def _amount(record: Mapping[str, Any], name: str) -> Decimal:
    value = _field(record, name)
    return ZERO if value is None else to_decimal(value, name)


def _status(record: Mapping[str, Any]) -> str:
    return str(record.get("status") or RecordStatus.DRAFT.value).upper()


def _empty_breakdown() -> Dict[str, Decimal | int]:
    return {"hours": ZERO, "cost": ZERO, "billing": ZERO, "margin": ZERO, "count": 0}


def _add(bucket: Dict[str, Any], hours: Decimal, cost: Decimal, billing: Decimal) -> None:
    bucket["hours"] += hours
    bucket["cost"] += cost
    bucket["billing"] += billing
    bucket["margin"] += billing - cost
    bucket["count"] += 1


def _round_bucket(bucket: Dict[str, Any]) -> Dict[str, Any]:
    rounded = dict(bucket)
    for key in ("hours", "cost", "billing", "margin"):
        rounded[key] = round_money(bucket[key])
    return rounded


# =============================================================================
# Record Consistency
# =============================================================================

def check_record_consistency(record: Mapping[str, Any]) -> bool:
    """Whether client_bill - sub_cost equals margin_value to the cent."""
    bill = round_money(_amount(record, "client_bill"))
    cost = round_money(_amount(record, "sub_cost"))
    margin = round_money(_amount(record, "margin_value"))
    return bill - cost == margin


def assert_records_consistent(records: Iterable[Mapping[str, Any]]) -> None:
    """Raise CalculationError listing every record whose margin does not reconcile."""
    bad = [r.get("id") for r in records if not check_record_consistency(r)]
    if bad:
        raise CalculationError(
            "Priced records with inconsistent margin",
            details={"record_ids": bad},
        )


# =============================================================================
# Project Tracking
# =============================================================================

def aggregate_project_costs(
    time_logs: Iterable[Mapping[str, Any]],
    expenses: Iterable[Mapping[str, Any]] = (),
    subcontractor_names: Optional[Mapping[str, str]] = None,
) -> Dict[str, Any]:
    """
    Aggregate project costs across all statuses.

    Time logs contribute hours, cost (sub_cost) and billing (client_bill).
    Expenses are passed through: billed at cost, no margin, no hours.
    Records with a status outside DRAFT/SUBMITTED/APPROVED count towards
    the totals only.

    Returns:
        dict with totals, by_status and subcontractors (sorted by total
        cost, highest first)
    """
    names = subcontractor_names or {}
    totals = _empty_breakdown()
    by_status = {s.value: _empty_breakdown() for s in TRACKED_STATUSES}
    subcontractors: Dict[str, Dict[str, Any]] = {}

    def tracking_for(sub_id: str) -> Dict[str, Any]:
        if sub_id not in subcontractors:
            subcontractors[sub_id] = {
                "id": sub_id,
                "name": names.get(sub_id, UNKNOWN_SUBCONTRACTOR_NAME),
                "totals": _empty_breakdown(),
                "by_status": {s.value: _empty_breakdown() for s in TRACKED_STATUSES},
                "time_log_ids": [],
                "expense_ids": [],
            }
        return subcontractors[sub_id]

    def record(entry: Mapping[str, Any], hours: Decimal, cost: Decimal, billing: Decimal, kind: str) -> None:
        status = _status(entry)
        _add(totals, hours, cost, billing)
        if status in by_status:
            _add(by_status[status], hours, cost, billing)

        sub = tracking_for(_field(entry, "subcontractor_id"))
        _add(sub["totals"], hours, cost, billing)
        if status in sub["by_status"]:
            _add(sub["by_status"][status], hours, cost, billing)
        sub[kind].append(entry.get("id"))

    for log in time_logs:
        hours = _amount(log, "hours_regular") + _amount(log, "hours_ot")
        record(log, hours, _amount(log, "sub_cost"), _amount(log, "client_bill"), "time_log_ids")

    for expense in expenses:
        amount = _amount(expense, "amount")
        record(expense, ZERO, amount, amount, "expense_ids")

    subcontractor_rows: List[Dict[str, Any]] = []
    for sub in subcontractors.values():
        raw = sub["totals"]
        row = dict(sub)
        row["totals"] = _round_bucket(raw)
        row["totals"]["margin_pct"] = margin_percentage(raw["billing"], raw["cost"])
        row["by_status"] = {k: _round_bucket(v) for k, v in sub["by_status"].items()}
        subcontractor_rows.append(row)
    # Sort on unrounded totals
    subcontractor_rows.sort(key=lambda r: subcontractors[r["id"]]["totals"]["cost"], reverse=True)

    result_totals = _round_bucket(totals)
    result_totals["margin_pct"] = margin_percentage(totals["billing"], totals["cost"])

    return {
        "totals": result_totals,
        "by_status": {k: _round_bucket(v) for k, v in by_status.items()},
        "subcontractors": subcontractor_rows,
    }


def project_summary(
    project_id: str,
    time_logs: Iterable[Mapping[str, Any]],
    expenses: Iterable[Mapping[str, Any]] = (),
    include_submitted: bool = False,
) -> Dict[str, Any]:
    """
    Billing summary of a project.

    Only APPROVED records count, or SUBMITTED and APPROVED when
    include_submitted is set.
    """
    statuses = {RecordStatus.APPROVED.value}
    if include_submitted:
        statuses.add(RecordStatus.SUBMITTED.value)

    logs = [log for log in time_logs if _status(log) in statuses]
    spent = [exp for exp in expenses if _status(exp) in statuses]

    total_sub_cost = sum((_amount(log, "sub_cost") for log in logs), ZERO)
    total_client_bill = sum((_amount(log, "client_bill") for log in logs), ZERO)
    total_expenses = sum((_amount(exp, "amount") for exp in spent), ZERO)
    total_cost = total_sub_cost + total_expenses

    logger.info(f"Project {project_id} summary: {len(logs)} time log(s), {len(spent)} expense(s)")

    rounded_bill = round_money(total_client_bill)
    rounded_cost = round_money(total_cost)
    return {
        "project_id": project_id,
        "total_sub_cost": round_money(total_sub_cost),
        "total_client_bill": rounded_bill,
        "total_expenses": round_money(total_expenses),
        "total_cost": rounded_cost,
        "margin_value": rounded_bill - rounded_cost,
        "margin_pct": margin_percentage(total_client_bill, total_cost),
        "time_log_count": len(logs),
        "expense_count": len(spent),
    }
