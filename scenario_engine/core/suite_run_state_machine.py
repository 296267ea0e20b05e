"""Suite run state machine.

A run starts ``running`` at item 0 and walks the suite's items in order.
Advancing completes the current step, then evaluates each following step's
trigger condition against the latest observation (or the step its condition
names as source); steps whose condition is not met are skipped until one
triggers or the suite is exhausted.
``completed`` and ``aborted`` are terminal.

All operations work on copies and return the new state; persistence is the
caller's concern.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4, uuid5

from scenario_engine.core.condition_evaluator import evaluate_with_details
from scenario_engine.core.errors import (
    ArchivedSuiteError,
    CannotAbortError,
    EmptySuiteError,
    InvalidRunStateError,
)
from scenario_engine.core.schemas_orchestration import (
    RISK_LEVEL_RANK,
    Observation,
    RecordItemResultRequest,
    RiskLevel,
    Suite,
    SuiteItem,
    SuiteRun,
    SuiteRunItem,
    SuiteRunItemStatus,
    SuiteRunStatus,
    SuiteStatus,
)


@dataclass
class AdvanceOutcome:
    """Result of one advance call."""

    run: SuiteRun
    advanced: bool
    completed: bool
    # Current step marked completed because the caller moved on
    completed_item: SuiteRunItem | None = None
    skipped_items: list[SuiteRunItem] = field(default_factory=list)
    next_item: SuiteRunItem | None = None

    @property
    def changed_items(self) -> list[SuiteRunItem]:
        items: list[SuiteRunItem] = []
        if self.completed_item is not None:
            items.append(self.completed_item)
        items.extend(self.skipped_items)
        if self.next_item is not None:
            items.append(self.next_item)
        return items


@dataclass
class AbortOutcome:
    run: SuiteRun
    skipped_items: list[SuiteRunItem] = field(default_factory=list)


@dataclass
class RecordOutcome:
    """Result of recording a step result."""

    run: SuiteRun
    run_item: SuiteRunItem
    changed: bool
    aborted: bool = False
    skipped_items: list[SuiteRunItem] = field(default_factory=list)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def run_item_id(run_id: UUID, suite_item_id: UUID) -> UUID:
    """Deterministic run item id, so rewriting the same step upserts."""
    return uuid5(run_id, str(suite_item_id))


def _by_order(run_items: list[SuiteRunItem]) -> dict[int, SuiteRunItem]:
    return {item.order_index: item for item in run_items}


def _ordered_items(items: list[SuiteItem]) -> list[SuiteItem]:
    return sorted(items, key=lambda item: item.order_index)


# =============================================================================
# Start
# =============================================================================


def start_run(
    suite: Suite,
    items: list[SuiteItem],
    run_number: int = 1,
    run_label: str | None = None,
    seed_context: dict[str, Any] | None = None,
    started_by: UUID | None = None,
    run_id: UUID | None = None,
    now: datetime | None = None,
) -> tuple[SuiteRun, list[SuiteRunItem]]:
    """
    Create a running suite run with one pending run item per suite item.

    Args:
        suite: Suite to run
        items: The suite's items
        run_number: Sequence number of this run within the suite
        run_label: Optional display label
        seed_context: Context handed to the first step
        started_by: Acting user
        run_id: Explicit run id (generated when omitted)
        now: Start timestamp (current time when omitted)

    Returns:
        Tuple of (run, run items ordered by order_index)

    Raises:
        EmptySuiteError: If the suite has no items
        ArchivedSuiteError: If the suite is archived
        InvalidRunStateError: If the suite already has a running run
    """
    if not items:
        raise EmptySuiteError()
    if suite.status == SuiteStatus.ARCHIVED:
        raise ArchivedSuiteError()
    if suite.status == SuiteStatus.RUNNING:
        raise InvalidRunStateError("Suite already has a running run")

    now = now or _utcnow()
    run_id = run_id or uuid4()
    ordered = _ordered_items(items)

    run = SuiteRun(
        id=run_id,
        org_id=suite.org_id,
        suite_id=suite.id,
        run_number=run_number,
        run_label=run_label,
        status=SuiteRunStatus.RUNNING,
        total_items=len(ordered),
        current_item_index=0,
        seed_context=seed_context or {},
        started_by=started_by,
        started_at=now,
        updated_at=now,
    )

    # Run items are positional: order_index is the step's position in this run
    run_items = [
        SuiteRunItem(
            id=run_item_id(run_id, item.id),
            org_id=suite.org_id,
            run_id=run_id,
            suite_item_id=item.id,
            order_index=position,
            status=SuiteRunItemStatus.PENDING,
            updated_at=now,
        )
        for position, item in enumerate(ordered)
    ]
    return run, run_items


# =============================================================================
# Advance
# =============================================================================


def advance_run(
    run: SuiteRun,
    items: list[SuiteItem],
    run_items: list[SuiteRunItem],
    observation: Observation | dict[str, Any] | None = None,
    skip_condition_check: bool = False,
    now: datetime | None = None,
) -> AdvanceOutcome:
    """
    Move a running suite run to its next triggered step.

    Every step after the current one is evaluated against the same
    observation, unless its condition names a ``source_item_id``; steps whose
    condition is not met are marked skipped. A step whose suite item has been
    removed since the run started is skipped. When no step remains the run
    completes.

    Raises:
        InvalidRunStateError: If the run is not running or a step's run item
            is missing
    """
    if run.status != SuiteRunStatus.RUNNING:
        raise InvalidRunStateError(f"Cannot advance {run.status.value} run")

    now = now or _utcnow()
    run = run.model_copy(deep=True)
    suite_items_by_id = {item.id: item for item in items}
    by_order = _by_order(run_items)
    outcome = AdvanceOutcome(run=run, advanced=False, completed=False)

    current = by_order.get(run.current_item_index)
    if current is not None and current.status == SuiteRunItemStatus.PENDING:
        outcome.completed_item = current.model_copy(
            update={"status": SuiteRunItemStatus.COMPLETED, "completed_at": now, "updated_at": now}
        )
        run.completed_items += 1
        by_order[current.order_index] = outcome.completed_item
    by_suite_item = {item.suite_item_id: item for item in by_order.values()}

    while True:
        next_index = run.current_item_index + 1
        if next_index >= run.total_items:
            run.status = SuiteRunStatus.COMPLETED
            run.current_item_index = run.total_items
            run.completed_at = now
            run.updated_at = now
            outcome.completed = True
            return outcome

        run_item = by_order.get(next_index)
        if run_item is None:
            raise InvalidRunStateError(f"Run item for step {next_index + 1} is missing")

        suite_item = suite_items_by_id.get(run_item.suite_item_id)
        if suite_item is None:
            met, details = False, {"type": "unknown", "reason": "suite_item_removed"}
        elif skip_condition_check:
            met, details = True, {"type": suite_item.trigger_condition_type, "reason": "condition_check_skipped"}
        else:
            met, details = _evaluate_step(suite_item, by_suite_item, observation)

        run.current_item_index = next_index
        run.updated_at = now

        if met:
            outcome.next_item = run_item.model_copy(
                update={
                    "condition_evaluated": not skip_condition_check,
                    "condition_result": True,
                    "condition_details": details,
                    "updated_at": now,
                }
            )
            outcome.advanced = True
            return outcome

        outcome.skipped_items.append(
            run_item.model_copy(
                update={
                    "status": SuiteRunItemStatus.SKIPPED,
                    "condition_evaluated": suite_item is not None,
                    "condition_result": False,
                    "condition_details": details,
                    "completed_at": now,
                    "updated_at": now,
                }
            )
        )
        run.skipped_items += 1


def _evaluate_step(
    suite_item: SuiteItem,
    by_suite_item: dict[UUID, SuiteRunItem],
    observation: Observation | dict[str, Any] | None,
) -> tuple[bool, dict[str, Any]]:
    source_id = getattr(suite_item.trigger_condition, "source_item_id", None)
    if source_id is None:
        return evaluate_with_details(suite_item.trigger_condition, observation)

    # A source step that has not completed contributes an empty observation
    source = by_suite_item.get(source_id)
    if source is not None and source.status == SuiteRunItemStatus.COMPLETED:
        source_observation = source.to_observation()
    else:
        source_observation = Observation()
    met, details = evaluate_with_details(suite_item.trigger_condition, source_observation)
    return met, {**details, "source_item_id": str(source_id)}


# =============================================================================
# Abort
# =============================================================================


def abort_run(
    run: SuiteRun,
    reason: str | None = None,
    run_items: list[SuiteRunItem] | None = None,
    now: datetime | None = None,
) -> AbortOutcome:
    """
    Abort a running suite run. Pending steps are marked skipped.

    Raises:
        CannotAbortError: If the run is already completed or aborted
    """
    if run.status != SuiteRunStatus.RUNNING:
        raise CannotAbortError(run.status.value)

    now = now or _utcnow()
    run = run.model_copy(deep=True)
    run.status = SuiteRunStatus.ABORTED
    run.abort_reason = reason
    run.completed_at = now
    run.updated_at = now

    skipped = [
        item.model_copy(
            update={"status": SuiteRunItemStatus.SKIPPED, "completed_at": now, "updated_at": now}
        )
        for item in run_items or []
        if item.status == SuiteRunItemStatus.PENDING
    ]
    run.skipped_items += len(skipped)
    return AbortOutcome(run=run, skipped_items=skipped)


# =============================================================================
# Record step result
# =============================================================================


def record_item_result(
    run: SuiteRun,
    run_item: SuiteRunItem,
    result: RecordItemResultRequest,
    stop_on_failure: bool = True,
    run_items: list[SuiteRunItem] | None = None,
    now: datetime | None = None,
) -> RecordOutcome:
    """
    Record the reported outcome of a step.

    Recording the status a step already has is a no-op, so callers can retry.
    A failed step on a stop-on-failure suite aborts the run.

    Raises:
        InvalidRunStateError: If the run is not running, the step is not the
            current step, or the step already holds a different status
    """
    requested = SuiteRunItemStatus(result.status)
    if run_item.status == requested:
        return RecordOutcome(run=run, run_item=run_item, changed=False)

    if run.status != SuiteRunStatus.RUNNING:
        raise InvalidRunStateError(f"Cannot record result on {run.status.value} run")
    if run_item.status != SuiteRunItemStatus.PENDING:
        raise InvalidRunStateError(
            f"Step {run_item.order_index + 1} is already {run_item.status.value}"
        )
    if run_item.order_index != run.current_item_index:
        raise InvalidRunStateError(
            f"Step {run_item.order_index + 1} is not the current step "
            f"(current is {run.current_item_index + 1})"
        )

    now = now or _utcnow()
    run = run.model_copy(deep=True)
    updated_item = run_item.model_copy(
        update={
            "status": requested,
            "risk_level": result.risk_level,
            "narrative": result.narrative,
            "outcome_type": result.outcome_type,
            "sentiment_shift": result.sentiment_shift,
            "key_findings": list(result.key_findings),
            "outcomes": list(result.outcomes),
            "error_message": result.error_message,
            "completed_at": now,
            "updated_at": now,
        }
    )

    if requested == SuiteRunItemStatus.COMPLETED:
        run.completed_items += 1
    else:
        run.failed_items += 1
    run.updated_at = now

    if requested == SuiteRunItemStatus.FAILED and stop_on_failure:
        others = [item for item in run_items or [] if item.id != updated_item.id]
        aborted = abort_run(
            run,
            reason=f"Step {updated_item.order_index + 1} failed",
            run_items=others,
            now=now,
        )
        return RecordOutcome(
            run=aborted.run,
            run_item=updated_item,
            changed=True,
            aborted=True,
            skipped_items=aborted.skipped_items,
        )

    return RecordOutcome(run=run, run_item=updated_item, changed=True)


# =============================================================================
# Observations and aggregates
# =============================================================================


def latest_observation(run_items: list[SuiteRunItem]) -> Observation:
    """
    Observation reported by the most recent completed step that recorded a
    result (empty if none).

    Steps completed implicitly by advancing past them report nothing and are
    passed over.
    """
    completed = [
        item
        for item in run_items
        if item.status == SuiteRunItemStatus.COMPLETED and item.has_reported_result()
    ]
    if not completed:
        return Observation()
    return max(completed, key=lambda item: item.order_index).to_observation()


def compute_aggregate_risk(levels: list[RiskLevel | None]) -> RiskLevel:
    """Highest risk level reported across a run's steps; LOW when none."""
    present = [level for level in levels if level is not None]
    if not present:
        return RiskLevel.LOW
    return max(present, key=lambda level: RISK_LEVEL_RANK[level])
