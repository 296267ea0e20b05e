"""Scenario suite orchestration service.

Loads suites and runs from the database, applies the run state machine,
persists the result and records audit events. Every operation is scoped by the
caller's org_id.
"""

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from scenario_engine.chains.generate_suite_narrative import generate_suite_narrative
from scenario_engine.core import suite_run_state_machine as state_machine
from scenario_engine.core.config import get_settings
from scenario_engine.core.errors import (
    ArchivedSuiteError,
    InvalidRunStateError,
    NotFoundError,
    ValidationError,
)
from scenario_engine.core.logging import get_logger, log_with_context
from scenario_engine.core.risk_map import build_risk_map
from scenario_engine.core.run_metrics import compute_run_metrics, compute_suite_stats
from scenario_engine.core.schemas_orchestration import (
    AdvanceRunRequest,
    AdvanceRunResponse,
    AuditEvent,
    AuditEventListResponse,
    AuditEventType,
    CreateSuiteItemRequest,
    CreateSuiteRequest,
    GenerateNarrativeRequest,
    GenerateRiskMapRequest,
    NarrativeResponse,
    RecordItemResultRequest,
    RunDetailResponse,
    RunListResponse,
    StartRunRequest,
    Suite,
    SuiteDetailResponse,
    SuiteItem,
    SuiteListResponse,
    SuiteRiskMap,
    SuiteRun,
    SuiteRunItem,
    SuiteRunMetrics,
    SuiteRunStatus,
    SuiteStats,
    SuiteStatus,
    UpdateSuiteItemRequest,
    UpdateSuiteRequest,
)
from scenario_engine.db import audit_log as audit_db
from scenario_engine.db import suite_runs as runs_db
from scenario_engine.db import suites as suites_db

logger = get_logger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _str_or_none(value: UUID | None) -> str | None:
    return str(value) if value else None


# =============================================================================
# Loading helpers
# =============================================================================


def _load_suite(org_id: UUID, suite_id: UUID) -> Suite:
    row = suites_db.get_suite(org_id, suite_id)
    if not row:
        raise NotFoundError(f"Suite {suite_id} not found")
    return Suite.model_validate(row)


def _load_items(suite_id: UUID) -> list[SuiteItem]:
    return [SuiteItem.model_validate(row) for row in suites_db.get_suite_items(suite_id)]


def _load_run(org_id: UUID, run_id: UUID) -> SuiteRun:
    row = runs_db.get_run(org_id, run_id)
    if not row:
        raise NotFoundError(f"Suite run {run_id} not found")
    return SuiteRun.model_validate(row)


def _load_run_items(run_id: UUID) -> list[SuiteRunItem]:
    return [SuiteRunItem.model_validate(row) for row in runs_db.get_run_items(run_id)]


def _load_item_in_org(org_id: UUID, item_id: UUID) -> tuple[SuiteItem, Suite]:
    row = suites_db.get_suite_item(item_id)
    if not row:
        raise NotFoundError(f"Suite item {item_id} not found")
    item = SuiteItem.model_validate(row)
    # Items carry no org_id; ownership goes through the suite
    suite = _load_suite(org_id, item.suite_id)
    return item, suite


def _save_run(run: SuiteRun) -> SuiteRun:
    return SuiteRun.model_validate(runs_db.save_run(run.model_dump(mode="json")))


def _save_run_items(items: list[SuiteRunItem]) -> None:
    runs_db.save_run_items([item.model_dump(mode="json") for item in items])


def _merge_run_items(run_items: list[SuiteRunItem], changed: list[SuiteRunItem]) -> list[SuiteRunItem]:
    updates = {item.id: item for item in changed}
    return [updates.get(item.id, item) for item in run_items]


def _audit(
    org_id: UUID,
    event_type: AuditEventType,
    suite_id: UUID | None = None,
    run_id: UUID | None = None,
    run_item_id: UUID | None = None,
    details: dict[str, Any] | None = None,
    user_id: UUID | None = None,
) -> None:
    """Write an audit event. Failures are logged and never fail the operation."""
    try:
        audit_db.write_audit_event(
            org_id,
            event_type.value,
            suite_id=suite_id,
            run_id=run_id,
            run_item_id=run_item_id,
            details=details,
            user_id=user_id,
        )
    except Exception as e:
        log_with_context(
            logger,
            logging.WARNING,
            f"Failed to write audit event {event_type.value}: {e}",
            org_id=str(org_id),
            suite_id=_str_or_none(suite_id),
            run_id=_str_or_none(run_id),
        )


def _has_running_run(org_id: UUID, suite_id: UUID) -> bool:
    _, total = runs_db.list_runs(org_id, suite_id, status=SuiteRunStatus.RUNNING.value, limit=1)
    return total > 0


def _ensure_items_editable(suite: Suite) -> None:
    if suite.status == SuiteStatus.ARCHIVED:
        raise ArchivedSuiteError("Cannot modify archived suite")
    if suite.status == SuiteStatus.RUNNING or _has_running_run(suite.org_id, suite.id):
        raise InvalidRunStateError("Cannot modify items of a running suite")


def _ensure_order_index_free(items: list[SuiteItem], order_index: int, exclude_id: UUID | None = None) -> None:
    for item in items:
        if item.order_index == order_index and item.id != exclude_id:
            raise ValidationError(f"Order index {order_index} is already used in this suite")


def _item_row(request: CreateSuiteItemRequest, order_index: int) -> dict[str, Any]:
    condition = request.trigger_condition.model_dump(mode="json")
    return {
        "simulation_id": str(request.simulation_id),
        "order_index": order_index,
        "trigger_condition_type": condition["type"],
        "trigger_condition": condition,
        "label": request.label,
        "notes": request.notes,
    }


# =============================================================================
# Suites
# =============================================================================


def create_suite(org_id: UUID, request: CreateSuiteRequest, user_id: UUID | None = None) -> SuiteDetailResponse:
    """Create a suite and, optionally, its initial items."""
    positions = [
        item.order_index if item.order_index is not None else i for i, item in enumerate(request.items)
    ]
    if len(set(positions)) != len(positions):
        raise ValidationError("Suite items must have unique order indexes")

    row = suites_db.create_suite(
        org_id,
        {
            "name": request.name,
            "description": request.description,
            "status": (SuiteStatus.CONFIGURED if request.items else SuiteStatus.DRAFT).value,
            "config": request.config.model_dump(mode="json"),
            "metadata": request.metadata,
            "created_by": _str_or_none(user_id),
            "updated_by": _str_or_none(user_id),
        },
    )
    suite = Suite.model_validate(row)

    items = [
        SuiteItem.model_validate(suites_db.add_suite_item(suite.id, _item_row(item_request, position)))
        for item_request, position in zip(request.items, positions)
    ]

    log_with_context(
        logger, logging.INFO, f"Created suite with {len(items)} items", org_id=str(org_id), suite_id=str(suite.id)
    )
    _audit(
        org_id,
        AuditEventType.SUITE_CREATED,
        suite_id=suite.id,
        details={"name": suite.name, "item_count": len(items)},
        user_id=user_id,
    )
    return SuiteDetailResponse(suite=suite, items=sorted(items, key=lambda i: i.order_index))


def get_suite(org_id: UUID, suite_id: UUID) -> SuiteDetailResponse:
    suite = _load_suite(org_id, suite_id)
    return SuiteDetailResponse(suite=suite, items=_load_items(suite_id))


def list_suites(
    org_id: UUID,
    status: SuiteStatus | None = None,
    search: str | None = None,
    include_archived: bool = False,
    limit: int | None = None,
    offset: int = 0,
) -> SuiteListResponse:
    rows, total = suites_db.list_suites(
        org_id,
        status=status.value if status else None,
        search=search,
        include_archived=include_archived,
        limit=limit or get_settings().DEFAULT_PAGE_LIMIT,
        offset=offset,
    )
    return SuiteListResponse(suites=[Suite.model_validate(r) for r in rows], total=total)


def update_suite(
    org_id: UUID, suite_id: UUID, request: UpdateSuiteRequest, user_id: UUID | None = None
) -> Suite:
    """
    Apply a partial update to a suite.

    Raises:
        NotFoundError: If the suite does not exist in the org
        ArchivedSuiteError: If the suite is archived
    """
    suite = _load_suite(org_id, suite_id)
    if suite.status == SuiteStatus.ARCHIVED:
        raise ArchivedSuiteError("Cannot modify archived suite")
    if request.status == SuiteStatus.ARCHIVED:
        raise ValidationError("Use the archive operation to archive a suite")

    updates = request.model_dump(exclude_unset=True, mode="json")
    if not updates:
        return suite
    if user_id:
        updates["updated_by"] = str(user_id)

    row = suites_db.update_suite(org_id, suite_id, updates)
    if not row:
        raise NotFoundError(f"Suite {suite_id} not found")

    _audit(
        org_id,
        AuditEventType.SUITE_UPDATED,
        suite_id=suite_id,
        details={"updates": sorted(k for k in updates if k != "updated_by")},
        user_id=user_id,
    )
    return Suite.model_validate(row)


def archive_suite(
    org_id: UUID, suite_id: UUID, reason: str | None = None, user_id: UUID | None = None
) -> Suite:
    suite = _load_suite(org_id, suite_id)
    if suite.status == SuiteStatus.ARCHIVED:
        return suite
    if suite.status == SuiteStatus.RUNNING:
        raise InvalidRunStateError("Cannot archive a suite with a run in progress")

    row = suites_db.archive_suite(org_id, suite_id, updated_by=user_id)
    if not row:
        raise NotFoundError(f"Suite {suite_id} not found")

    _audit(org_id, AuditEventType.SUITE_ARCHIVED, suite_id=suite_id, details={"reason": reason}, user_id=user_id)
    return Suite.model_validate(row)


# =============================================================================
# Suite items
# =============================================================================


def add_suite_item(
    org_id: UUID, suite_id: UUID, request: CreateSuiteItemRequest, user_id: UUID | None = None
) -> SuiteItem:
    """Append (or insert at order_index) a step to a suite."""
    suite = _load_suite(org_id, suite_id)
    _ensure_items_editable(suite)

    existing = _load_items(suite_id)
    if request.order_index is not None:
        order_index = request.order_index
        _ensure_order_index_free(existing, order_index)
    else:
        order_index = max((i.order_index for i in existing), default=-1) + 1

    item = SuiteItem.model_validate(suites_db.add_suite_item(suite_id, _item_row(request, order_index)))

    if suite.status == SuiteStatus.DRAFT:
        suites_db.update_suite(org_id, suite_id, {"status": SuiteStatus.CONFIGURED.value})

    _audit(
        org_id,
        AuditEventType.ITEM_ADDED,
        suite_id=suite_id,
        details={"item_id": str(item.id), "simulation_id": str(item.simulation_id)},
        user_id=user_id,
    )
    return item


def update_suite_item(
    org_id: UUID, item_id: UUID, request: UpdateSuiteItemRequest, user_id: UUID | None = None
) -> SuiteItem:
    item, suite = _load_item_in_org(org_id, item_id)
    _ensure_items_editable(suite)

    updates = request.model_dump(exclude_unset=True, mode="json")
    if updates.get("trigger_condition") is None:
        updates.pop("trigger_condition", None)
    else:
        updates["trigger_condition_type"] = updates["trigger_condition"]["type"]
    if updates.get("order_index") is None:
        updates.pop("order_index", None)
    else:
        _ensure_order_index_free(_load_items(suite.id), updates["order_index"], exclude_id=item.id)

    if not updates:
        return item

    row = suites_db.update_suite_item(item_id, updates)
    if not row:
        raise NotFoundError(f"Suite item {item_id} not found")

    _audit(
        org_id,
        AuditEventType.ITEM_UPDATED,
        suite_id=suite.id,
        details={"item_id": str(item_id), "updates": sorted(updates)},
        user_id=user_id,
    )
    return SuiteItem.model_validate(row)


def remove_suite_item(org_id: UUID, item_id: UUID, user_id: UUID | None = None) -> None:
    item, suite = _load_item_in_org(org_id, item_id)
    _ensure_items_editable(suite)

    suites_db.remove_suite_item(item_id)
    _audit(
        org_id,
        AuditEventType.ITEM_REMOVED,
        suite_id=suite.id,
        details={"item_id": str(item_id)},
        user_id=user_id,
    )


# =============================================================================
# Runs
# =============================================================================


def start_run(
    org_id: UUID, suite_id: UUID, request: StartRunRequest, user_id: UUID | None = None
) -> RunDetailResponse:
    """
    Start a run of a suite.

    Raises:
        NotFoundError: If the suite does not exist in the org
        EmptySuiteError: If the suite has no items
        ArchivedSuiteError: If the suite is archived
        InvalidRunStateError: If another run of the suite is still running
    """
    suite = _load_suite(org_id, suite_id)
    items = _load_items(suite_id)
    if items and suite.status != SuiteStatus.ARCHIVED and _has_running_run(org_id, suite_id):
        raise InvalidRunStateError("Suite already has a running run")

    run_number = runs_db.count_runs(org_id, suite_id) + 1
    run, run_items = state_machine.start_run(
        suite,
        items,
        run_number=run_number,
        run_label=request.run_label or f"Run {run_number}",
        seed_context=request.seed_context,
        started_by=user_id,
    )

    run = _save_run(run)
    _save_run_items(run_items)
    suites_db.update_suite(org_id, suite_id, {"status": SuiteStatus.RUNNING.value})

    log_with_context(
        logger,
        logging.INFO,
        f"Started run {run_number} with {run.total_items} items",
        org_id=str(org_id),
        suite_id=str(suite_id),
        run_id=str(run.id),
    )
    _audit(
        org_id,
        AuditEventType.RUN_STARTED,
        suite_id=suite_id,
        run_id=run.id,
        details={"run_number": run_number, "item_count": run.total_items},
        user_id=user_id,
    )
    return RunDetailResponse(run=run, items=run_items)


def get_run(org_id: UUID, run_id: UUID) -> RunDetailResponse:
    run = _load_run(org_id, run_id)
    return RunDetailResponse(run=run, items=_load_run_items(run_id))


def list_runs(
    org_id: UUID,
    suite_id: UUID,
    status: SuiteRunStatus | None = None,
    limit: int | None = None,
    offset: int = 0,
) -> RunListResponse:
    _load_suite(org_id, suite_id)
    rows, total = runs_db.list_runs(
        org_id,
        suite_id,
        status=status.value if status else None,
        limit=limit or get_settings().DEFAULT_PAGE_LIMIT,
        offset=offset,
    )
    return RunListResponse(runs=[SuiteRun.model_validate(r) for r in rows], total=total)


def advance_run(
    org_id: UUID, run_id: UUID, request: AdvanceRunRequest, user_id: UUID | None = None
) -> AdvanceRunResponse:
    """
    Advance a run to its next triggered step.

    Without an explicit observation, the results of the most recent step that
    recorded one drive the trigger conditions. The current step, when it is
    completed implicitly here, has reported nothing and does not count.
    Conditions naming a ``source_item_id`` read that step's results instead.

    Raises:
        NotFoundError: If the run does not exist in the org
        InvalidRunStateError: If the run is not running
    """
    run = _load_run(org_id, run_id)
    suite = _load_suite(org_id, run.suite_id)
    items = _load_items(run.suite_id)
    run_items = _load_run_items(run_id)

    observation = request.observation or state_machine.latest_observation(run_items)
    outcome = state_machine.advance_run(
        run,
        items,
        run_items,
        observation=observation,
        skip_condition_check=request.skip_condition_check,
    )

    _save_run_items(outcome.changed_items)
    run_items = _merge_run_items(run_items, outcome.changed_items)

    if outcome.completed_item is not None:
        _audit(
            org_id,
            AuditEventType.ITEM_COMPLETED,
            suite_id=run.suite_id,
            run_id=run_id,
            run_item_id=outcome.completed_item.id,
            details={"order_index": outcome.completed_item.order_index, "implicit": True},
            user_id=user_id,
        )
    for skipped in outcome.skipped_items:
        _audit(
            org_id,
            AuditEventType.ITEM_CONDITION_EVALUATED,
            suite_id=run.suite_id,
            run_id=run_id,
            run_item_id=skipped.id,
            details={"met": False, **skipped.condition_details},
            user_id=user_id,
        )
        _audit(
            org_id,
            AuditEventType.ITEM_SKIPPED,
            suite_id=run.suite_id,
            run_id=run_id,
            run_item_id=skipped.id,
            details={"order_index": skipped.order_index},
            user_id=user_id,
        )
    if outcome.next_item is not None and outcome.next_item.condition_evaluated:
        _audit(
            org_id,
            AuditEventType.ITEM_CONDITION_EVALUATED,
            suite_id=run.suite_id,
            run_id=run_id,
            run_item_id=outcome.next_item.id,
            details={"met": True, **outcome.next_item.condition_details},
            user_id=user_id,
        )

    if outcome.completed:
        updated_run = _finalize_run(suite, items, outcome.run, run_items, user_id=user_id)
    else:
        updated_run = _save_run(outcome.run)

    log_with_context(
        logger,
        logging.INFO,
        f"Advanced run: advanced={outcome.advanced} completed={outcome.completed} "
        f"skipped={len(outcome.skipped_items)}",
        org_id=str(org_id),
        run_id=str(run_id),
    )
    return AdvanceRunResponse(
        run=updated_run,
        advanced=outcome.advanced,
        completed=outcome.completed,
        skipped_items=outcome.skipped_items,
        next_item=outcome.next_item,
    )


def abort_run(org_id: UUID, run_id: UUID, reason: str | None = None, user_id: UUID | None = None) -> SuiteRun:
    """
    Abort a running suite run.

    Raises:
        NotFoundError: If the run does not exist in the org
        CannotAbortError: If the run already completed or was aborted
    """
    run = _load_run(org_id, run_id)
    run_items = _load_run_items(run_id)

    outcome = state_machine.abort_run(run, reason=reason, run_items=run_items)
    _save_run_items(outcome.skipped_items)
    run_items = _merge_run_items(run_items, outcome.skipped_items)

    suite = _load_suite(org_id, run.suite_id)
    return _finalize_run(suite, _load_items(run.suite_id), outcome.run, run_items, user_id=user_id)


def record_item_result(
    org_id: UUID,
    run_id: UUID,
    run_item_id: UUID,
    request: RecordItemResultRequest,
    user_id: UUID | None = None,
) -> RunDetailResponse:
    """
    Record the reported result of the current step.

    Re-recording the status a step already has changes nothing.

    Raises:
        NotFoundError: If the run or step does not exist
        InvalidRunStateError: If the run is not running or the step cannot
            take the reported status
    """
    run = _load_run(org_id, run_id)
    run_items = _load_run_items(run_id)
    run_item = next((item for item in run_items if item.id == run_item_id), None)
    if run_item is None:
        raise NotFoundError(f"Run item {run_item_id} not found in run {run_id}")

    suite = _load_suite(org_id, run.suite_id)
    outcome = state_machine.record_item_result(
        run,
        run_item,
        request,
        stop_on_failure=suite.config.stop_on_failure,
        run_items=run_items,
    )
    if not outcome.changed:
        return RunDetailResponse(run=run, items=run_items)

    changed = [outcome.run_item, *outcome.skipped_items]
    _save_run_items(changed)
    run_items = _merge_run_items(run_items, changed)

    event = AuditEventType.ITEM_COMPLETED if request.status == "completed" else AuditEventType.ITEM_FAILED
    _audit(
        org_id,
        event,
        suite_id=run.suite_id,
        run_id=run_id,
        run_item_id=run_item_id,
        details={
            "order_index": outcome.run_item.order_index,
            "risk_level": outcome.run_item.risk_level.value if outcome.run_item.risk_level else None,
            "error_message": outcome.run_item.error_message,
        },
        user_id=user_id,
    )

    if outcome.aborted:
        updated_run = _finalize_run(suite, _load_items(run.suite_id), outcome.run, run_items, user_id=user_id)
    else:
        updated_run = _save_run(outcome.run)
    return RunDetailResponse(run=updated_run, items=run_items)


def _finalize_run(
    suite: Suite,
    suite_items: list[SuiteItem],
    run: SuiteRun,
    run_items: list[SuiteRunItem],
    user_id: UUID | None = None,
) -> SuiteRun:
    """Persist a run that reached a terminal status, with its aggregates."""
    run.aggregate_risk_level = state_machine.compute_aggregate_risk([i.risk_level for i in run_items])

    if run.status == SuiteRunStatus.COMPLETED:
        if suite.config.narrative_enabled:
            try:
                narrative = generate_suite_narrative(run, run_items)
                run.suite_narrative = narrative.content
            except Exception as e:
                log_with_context(
                    logger,
                    logging.WARNING,
                    f"Failed to generate narrative: {e}",
                    org_id=str(run.org_id),
                    run_id=str(run.id),
                )
        if suite.config.risk_map_enabled:
            run.risk_map = build_risk_map(run, suite_items, run_items)
        suite_status = SuiteStatus.COMPLETED
        event = AuditEventType.RUN_COMPLETED
    elif run.failed_items > 0:
        suite_status = SuiteStatus.FAILED
        event = AuditEventType.RUN_ABORTED
    else:
        suite_status = SuiteStatus.CONFIGURED
        event = AuditEventType.RUN_ABORTED

    saved = _save_run(run)
    suites_db.update_suite(run.org_id, suite.id, {"status": suite_status.value})

    log_with_context(
        logger,
        logging.INFO,
        f"Run finished with status {saved.status.value}",
        org_id=str(run.org_id),
        suite_id=str(suite.id),
        run_id=str(run.id),
        aggregate_risk_level=run.aggregate_risk_level.value,
    )
    _audit(
        run.org_id,
        event,
        suite_id=suite.id,
        run_id=run.id,
        details={
            "completed_items": run.completed_items,
            "failed_items": run.failed_items,
            "skipped_items": run.skipped_items,
            "aggregate_risk_level": run.aggregate_risk_level.value,
            "abort_reason": run.abort_reason,
        },
        user_id=user_id,
    )
    return saved


# =============================================================================
# Narrative, risk map, metrics
# =============================================================================


def generate_narrative(
    org_id: UUID, run_id: UUID, request: GenerateNarrativeRequest, user_id: UUID | None = None
) -> NarrativeResponse:
    """Generate (or regenerate) a run's narrative and store it on the run."""
    run = _load_run(org_id, run_id)
    run_items = _load_run_items(run_id)

    response = generate_suite_narrative(
        run, run_items, format=request.format, include_recommendations=request.include_recommendations
    )
    run.suite_narrative = response.content
    _save_run(run)

    _audit(
        org_id,
        AuditEventType.NARRATIVE_GENERATED,
        suite_id=run.suite_id,
        run_id=run_id,
        details={"format": request.format, "tokens_used": response.tokens_used},
        user_id=user_id,
    )
    return NarrativeResponse(
        narrative=response.content,
        format=request.format,
        tokens_used=response.tokens_used,
        generated_at=_now(),
    )


def generate_risk_map(
    org_id: UUID, run_id: UUID, request: GenerateRiskMapRequest, user_id: UUID | None = None
) -> SuiteRiskMap:
    run = _load_run(org_id, run_id)
    suite_items = _load_items(run.suite_id)
    run_items = _load_run_items(run_id)

    risk_map = build_risk_map(
        run,
        suite_items,
        run_items,
        include_opportunities=request.include_opportunities,
        include_mitigations=request.include_mitigations,
    )
    run.risk_map = risk_map
    _save_run(run)

    _audit(
        org_id,
        AuditEventType.RISK_MAP_GENERATED,
        suite_id=run.suite_id,
        run_id=run_id,
        details={"node_count": len(risk_map["nodes"]), "edge_count": len(risk_map["edges"])},
        user_id=user_id,
    )
    return SuiteRiskMap.model_validate(risk_map)


def get_run_metrics(org_id: UUID, run_id: UUID) -> SuiteRunMetrics:
    run = _load_run(org_id, run_id)
    return compute_run_metrics(run, _load_items(run.suite_id), _load_run_items(run_id))


def get_stats(org_id: UUID) -> SuiteStats:
    suites = suites_db.list_suite_summaries(org_id)
    runs = runs_db.list_org_runs(org_id)
    items = suites_db.list_items_for_suites([UUID(str(s["id"])) for s in suites])
    return compute_suite_stats(suites, runs, items)


# =============================================================================
# Audit log
# =============================================================================


def list_suite_audit_events(
    org_id: UUID, suite_id: UUID, limit: int | None = None, offset: int = 0
) -> AuditEventListResponse:
    _load_suite(org_id, suite_id)
    rows, total = audit_db.list_audit_events(
        org_id, suite_id=suite_id, limit=limit or get_settings().AUDIT_PAGE_LIMIT, offset=offset
    )
    return AuditEventListResponse(events=[AuditEvent.model_validate(r) for r in rows], total=total)


def list_run_audit_events(
    org_id: UUID, run_id: UUID, limit: int | None = None, offset: int = 0
) -> AuditEventListResponse:
    _load_run(org_id, run_id)
    rows, total = audit_db.list_audit_events(
        org_id, run_id=run_id, limit=limit or get_settings().AUDIT_PAGE_LIMIT, offset=offset
    )
    return AuditEventListResponse(events=[AuditEvent.model_validate(r) for r in rows], total=total)
