"""Scenario suite and suite item database operations."""

from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from scenario_engine.core.logging import get_logger
from scenario_engine.db.supabase_client import get_supabase

logger = get_logger(__name__)

SUITES_TABLE = "scenario_suites"
ITEMS_TABLE = "scenario_suite_items"


# =============================================================================
# Suites
# =============================================================================


def get_suite(org_id: UUID, suite_id: UUID) -> dict[str, Any] | None:
    """
    Get a suite by ID within an org.

    Returns:
        Suite row or None if not found
    """
    supabase = get_supabase()

    try:
        response = (
            supabase.table(SUITES_TABLE)
            .select("*")
            .eq("org_id", str(org_id))
            .eq("id", str(suite_id))
            .execute()
        )
        return response.data[0] if response.data else None

    except Exception as e:
        logger.error(f"Failed to get suite {suite_id}: {e}", extra={"org_id": str(org_id)})
        raise


def list_suites(
    org_id: UUID,
    status: str | None = None,
    search: str | None = None,
    include_archived: bool = False,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[dict[str, Any]], int]:
    """
    List suites for an org, newest first.

    Args:
        org_id: Organization UUID
        status: Optional status filter
        search: Optional case-insensitive name search
        include_archived: Include archived suites
        limit: Page size
        offset: Page offset

    Returns:
        Tuple of (suite rows, total matching count)
    """
    supabase = get_supabase()

    try:
        query = supabase.table(SUITES_TABLE).select("*", count="exact").eq("org_id", str(org_id))

        if status:
            query = query.eq("status", status)
        if search:
            query = query.ilike("name", f"%{search}%")
        if not include_archived:
            query = query.is_("archived_at", "null")

        response = (
            query.order("created_at", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )
        rows = response.data or []
        total = response.count if response.count is not None else len(rows)
        return rows, total

    except Exception as e:
        logger.error(f"Failed to list suites: {e}", extra={"org_id": str(org_id)})
        raise


def list_suite_summaries(org_id: UUID) -> list[dict[str, Any]]:
    """Id and status of every non-archived suite in an org."""
    supabase = get_supabase()

    try:
        response = (
            supabase.table(SUITES_TABLE)
            .select("id, status")
            .eq("org_id", str(org_id))
            .is_("archived_at", "null")
            .execute()
        )
        return response.data or []

    except Exception as e:
        logger.error(f"Failed to list suite summaries: {e}", extra={"org_id": str(org_id)})
        raise


def create_suite(org_id: UUID, payload: dict[str, Any]) -> dict[str, Any]:
    """
    Insert a suite row.

    Raises:
        ValueError: If the insert returns no row
    """
    supabase = get_supabase()

    try:
        row = {**payload, "org_id": str(org_id)}
        response = supabase.table(SUITES_TABLE).insert(row).execute()

        if not response.data:
            raise ValueError("No data returned from create_suite")

        suite = response.data[0]
        logger.info(
            f"Created suite {suite['id']}",
            extra={"org_id": str(org_id), "suite_id": suite["id"]},
        )
        return suite

    except Exception as e:
        logger.error(f"Failed to create suite: {e}", extra={"org_id": str(org_id)})
        raise


def update_suite(org_id: UUID, suite_id: UUID, updates: dict[str, Any]) -> dict[str, Any] | None:
    """
    Update a suite.

    Returns:
        Updated suite row or None if not found
    """
    supabase = get_supabase()

    try:
        payload = {**updates, "updated_at": datetime.now(timezone.utc).isoformat()}
        response = (
            supabase.table(SUITES_TABLE)
            .update(payload)
            .eq("org_id", str(org_id))
            .eq("id", str(suite_id))
            .execute()
        )
        return response.data[0] if response.data else None

    except Exception as e:
        logger.error(
            f"Failed to update suite {suite_id}: {e}",
            extra={"org_id": str(org_id), "suite_id": str(suite_id)},
        )
        raise


def archive_suite(org_id: UUID, suite_id: UUID, updated_by: UUID | None = None) -> dict[str, Any] | None:
    """Mark a suite archived. Returns the updated row or None if not found."""
    now = datetime.now(timezone.utc).isoformat()
    updates: dict[str, Any] = {"status": "archived", "archived_at": now}
    if updated_by:
        updates["updated_by"] = str(updated_by)
    return update_suite(org_id, suite_id, updates)


# =============================================================================
# Suite items
# =============================================================================


def get_suite_items(suite_id: UUID) -> list[dict[str, Any]]:
    """List a suite's items ordered by order_index."""
    supabase = get_supabase()

    try:
        response = (
            supabase.table(ITEMS_TABLE)
            .select("*")
            .eq("suite_id", str(suite_id))
            .order("order_index")
            .execute()
        )
        return response.data or []

    except Exception as e:
        logger.error(f"Failed to get items for suite {suite_id}: {e}", extra={"suite_id": str(suite_id)})
        raise


def list_items_for_suites(suite_ids: list[UUID]) -> list[dict[str, Any]]:
    """Trigger condition types of every item in the given suites."""
    if not suite_ids:
        return []

    supabase = get_supabase()

    try:
        response = (
            supabase.table(ITEMS_TABLE)
            .select("suite_id, trigger_condition_type")
            .in_("suite_id", [str(s) for s in suite_ids])
            .execute()
        )
        return response.data or []

    except Exception as e:
        logger.error(f"Failed to list items for {len(suite_ids)} suites: {e}")
        raise


def get_suite_item(item_id: UUID) -> dict[str, Any] | None:
    supabase = get_supabase()

    try:
        response = supabase.table(ITEMS_TABLE).select("*").eq("id", str(item_id)).execute()
        return response.data[0] if response.data else None

    except Exception as e:
        logger.error(f"Failed to get suite item {item_id}: {e}")
        raise


def add_suite_item(suite_id: UUID, payload: dict[str, Any]) -> dict[str, Any]:
    """
    Insert a suite item.

    Raises:
        ValueError: If the insert returns no row
    """
    supabase = get_supabase()

    try:
        row = {**payload, "suite_id": str(suite_id)}
        response = supabase.table(ITEMS_TABLE).insert(row).execute()

        if not response.data:
            raise ValueError("No data returned from add_suite_item")

        item = response.data[0]
        logger.info(
            f"Added item {item['id']} at position {item.get('order_index')}",
            extra={"suite_id": str(suite_id)},
        )
        return item

    except Exception as e:
        logger.error(f"Failed to add suite item: {e}", extra={"suite_id": str(suite_id)})
        raise


def update_suite_item(item_id: UUID, updates: dict[str, Any]) -> dict[str, Any] | None:
    supabase = get_supabase()

    try:
        payload = {**updates, "updated_at": datetime.now(timezone.utc).isoformat()}
        response = supabase.table(ITEMS_TABLE).update(payload).eq("id", str(item_id)).execute()
        return response.data[0] if response.data else None

    except Exception as e:
        logger.error(f"Failed to update suite item {item_id}: {e}")
        raise


def remove_suite_item(item_id: UUID) -> bool:
    """Delete a suite item. Returns True if a row was removed."""
    supabase = get_supabase()

    try:
        response = supabase.table(ITEMS_TABLE).delete().eq("id", str(item_id)).execute()
        return bool(response.data)

    except Exception as e:
        logger.error(f"Failed to remove suite item {item_id}: {e}")
        raise
