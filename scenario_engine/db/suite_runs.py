"""Suite run and run item database operations."""

from typing import Any
from uuid import UUID

from scenario_engine.core.logging import get_logger
from scenario_engine.db.supabase_client import get_supabase

logger = get_logger(__name__)

RUNS_TABLE = "scenario_suite_runs"
RUN_ITEMS_TABLE = "scenario_suite_run_items"


def get_run(org_id: UUID, run_id: UUID) -> dict[str, Any] | None:
    """
    Get a suite run by ID within an org.

    Returns:
        Run row or None if not found
    """
    supabase = get_supabase()

    try:
        response = (
            supabase.table(RUNS_TABLE)
            .select("*")
            .eq("org_id", str(org_id))
            .eq("id", str(run_id))
            .execute()
        )
        return response.data[0] if response.data else None

    except Exception as e:
        logger.error(f"Failed to get run {run_id}: {e}", extra={"org_id": str(org_id), "run_id": str(run_id)})
        raise


def list_runs(
    org_id: UUID,
    suite_id: UUID,
    status: str | None = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[dict[str, Any]], int]:
    """
    List runs of a suite, most recent first.

    Returns:
        Tuple of (run rows, total matching count)
    """
    supabase = get_supabase()

    try:
        query = (
            supabase.table(RUNS_TABLE)
            .select("*", count="exact")
            .eq("org_id", str(org_id))
            .eq("suite_id", str(suite_id))
        )
        if status:
            query = query.eq("status", status)

        response = (
            query.order("run_number", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )
        rows = response.data or []
        total = response.count if response.count is not None else len(rows)
        return rows, total

    except Exception as e:
        logger.error(f"Failed to list runs: {e}", extra={"org_id": str(org_id), "suite_id": str(suite_id)})
        raise


def count_runs(org_id: UUID, suite_id: UUID) -> int:
    """Number of runs a suite has had (used to number the next run)."""
    supabase = get_supabase()

    try:
        response = (
            supabase.table(RUNS_TABLE)
            .select("id", count="exact")
            .eq("org_id", str(org_id))
            .eq("suite_id", str(suite_id))
            .execute()
        )
        if response.count is not None:
            return response.count
        return len(response.data or [])

    except Exception as e:
        logger.error(f"Failed to count runs: {e}", extra={"org_id": str(org_id), "suite_id": str(suite_id)})
        raise


def list_org_runs(org_id: UUID) -> list[dict[str, Any]]:
    """Status, risk and timing of every run in an org."""
    supabase = get_supabase()

    try:
        response = (
            supabase.table(RUNS_TABLE)
            .select("status, aggregate_risk_level, total_items, started_at, completed_at")
            .eq("org_id", str(org_id))
            .execute()
        )
        return response.data or []

    except Exception as e:
        logger.error(f"Failed to list org runs: {e}", extra={"org_id": str(org_id)})
        raise


def save_run(run: dict[str, Any]) -> dict[str, Any]:
    """
    Upsert a run row keyed on id.

    Raises:
        ValueError: If the upsert returns no row
    """
    supabase = get_supabase()

    try:
        response = supabase.table(RUNS_TABLE).upsert(run, on_conflict="id").execute()

        if not response.data:
            raise ValueError("No data returned from save_run")

        saved = response.data[0]
        logger.debug(
            f"Saved run status={saved.get('status')} index={saved.get('current_item_index')}",
            extra={"run_id": saved.get("id")},
        )
        return saved

    except Exception as e:
        logger.error(f"Failed to save run: {e}", extra={"run_id": run.get("id")})
        raise


# =============================================================================
# Run items
# =============================================================================


def get_run_items(run_id: UUID) -> list[dict[str, Any]]:
    """List a run's items ordered by order_index."""
    supabase = get_supabase()

    try:
        response = (
            supabase.table(RUN_ITEMS_TABLE)
            .select("*")
            .eq("run_id", str(run_id))
            .order("order_index")
            .execute()
        )
        return response.data or []

    except Exception as e:
        logger.error(f"Failed to get items for run {run_id}: {e}", extra={"run_id": str(run_id)})
        raise


def save_run_item(item: dict[str, Any]) -> dict[str, Any]:
    """Upsert a single run item keyed on id."""
    saved = save_run_items([item])
    return saved[0]


def save_run_items(items: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """
    Upsert run items keyed on id.

    Raises:
        ValueError: If the upsert returns no rows
    """
    if not items:
        return []

    supabase = get_supabase()

    try:
        response = supabase.table(RUN_ITEMS_TABLE).upsert(items, on_conflict="id").execute()

        if not response.data:
            raise ValueError("No data returned from save_run_items")

        return response.data

    except Exception as e:
        logger.error(f"Failed to save {len(items)} run items: {e}", extra={"run_id": items[0].get("run_id")})
        raise
