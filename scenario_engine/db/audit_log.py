"""Scenario suite audit log."""

from typing import Any
from uuid import UUID

from scenario_engine.core.logging import get_logger
from scenario_engine.db.supabase_client import get_supabase

logger = get_logger(__name__)

AUDIT_TABLE = "scenario_suite_audit_log"


def write_audit_event(
    org_id: UUID,
    event_type: str,
    suite_id: UUID | None = None,
    run_id: UUID | None = None,
    run_item_id: UUID | None = None,
    details: dict[str, Any] | None = None,
    user_id: UUID | None = None,
) -> dict[str, Any]:
    """
    Append an audit event.

    Raises:
        ValueError: If the insert returns no row
    """
    supabase = get_supabase()

    row: dict[str, Any] = {
        "org_id": str(org_id),
        "event_type": event_type,
        "suite_id": str(suite_id) if suite_id else None,
        "run_id": str(run_id) if run_id else None,
        "run_item_id": str(run_item_id) if run_item_id else None,
        "details": details or {},
        "user_id": str(user_id) if user_id else None,
    }

    try:
        response = supabase.table(AUDIT_TABLE).insert(row).execute()

        if not response.data:
            raise ValueError("No data returned from write_audit_event")

        return response.data[0]

    except Exception as e:
        logger.error(
            f"Failed to write audit event {event_type}: {e}",
            extra={"org_id": str(org_id)},
        )
        raise


def list_audit_events(
    org_id: UUID,
    suite_id: UUID | None = None,
    run_id: UUID | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[dict[str, Any]], int]:
    """
    List audit events, newest first, filtered by suite or run.

    Returns:
        Tuple of (event rows, total matching count)
    """
    supabase = get_supabase()

    try:
        query = supabase.table(AUDIT_TABLE).select("*", count="exact").eq("org_id", str(org_id))
        if suite_id:
            query = query.eq("suite_id", str(suite_id))
        if run_id:
            query = query.eq("run_id", str(run_id))

        response = (
            query.order("created_at", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )
        rows = response.data or []
        total = response.count if response.count is not None else len(rows)
        return rows, total

    except Exception as e:
        logger.error(f"Failed to list audit events: {e}", extra={"org_id": str(org_id)})
        raise
