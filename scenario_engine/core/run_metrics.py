"""Run metrics and org-level suite statistics."""

from collections import Counter
from datetime import datetime
from typing import Any

from scenario_engine.core.risk_map import step_label
from scenario_engine.core.schemas_orchestration import (
    ConditionEvaluationStats,
    ItemMetrics,
    RiskLevel,
    SuiteItem,
    SuiteRun,
    SuiteRunItem,
    SuiteRunItemStatus,
    SuiteRunMetrics,
    SuiteRunStatus,
    SuiteStats,
    SuiteStatus,
    TriggerConditionType,
)


def _risk_counter() -> dict[str, int]:
    return {level.value: 0 for level in RiskLevel}


def compute_run_metrics(
    run: SuiteRun,
    suite_items: list[SuiteItem],
    run_items: list[SuiteRunItem],
) -> SuiteRunMetrics:
    """Per-run counters, risk distribution and condition evaluation stats."""
    suite_items_by_id = {item.id: item for item in suite_items}
    risk_distribution = _risk_counter()
    evaluations: dict[str, ConditionEvaluationStats] = {}
    item_metrics: list[ItemMetrics] = []

    for item in sorted(run_items, key=lambda i: i.order_index):
        if item.risk_level is not None:
            risk_distribution[item.risk_level.value] += 1

        suite_item = suite_items_by_id.get(item.suite_item_id)
        if suite_item is not None and item.condition_evaluated:
            condition_type = suite_item.trigger_condition_type
            stats = evaluations.setdefault(condition_type, ConditionEvaluationStats(type=condition_type))
            stats.evaluations += 1
            if item.condition_result is True:
                stats.met_count += 1
            elif item.condition_result is False:
                stats.unmet_count += 1

        item_metrics.append(
            ItemMetrics(
                run_item_id=item.id,
                suite_item_id=item.suite_item_id,
                label=step_label(item, suite_item),
                status=item.status,
                risk_level=item.risk_level,
            )
        )

    return SuiteRunMetrics(
        run_id=run.id,
        suite_id=run.suite_id,
        total_items=run.total_items,
        completed_items=run.completed_items,
        failed_items=run.failed_items,
        skipped_items=run.skipped_items,
        pending_items=sum(1 for i in run_items if i.status == SuiteRunItemStatus.PENDING),
        condition_met_items=sum(1 for i in run_items if i.condition_result is True),
        condition_unmet_items=sum(1 for i in run_items if i.condition_result is False),
        aggregate_risk_level=run.aggregate_risk_level or RiskLevel.LOW,
        risk_level_distribution=risk_distribution,
        condition_evaluations=list(evaluations.values()),
        item_metrics=item_metrics,
    )


def _parse_timestamp(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


def compute_suite_stats(
    suites: list[dict[str, Any]],
    runs: list[dict[str, Any]],
    items: list[dict[str, Any]],
) -> SuiteStats:
    """
    Org-level statistics over raw suite, run and suite item rows.

    Args:
        suites: Suite rows (status)
        runs: Run rows (status, aggregate_risk_level, started_at, completed_at)
        items: Suite item rows (trigger_condition_type)
    """
    by_status = {status.value: 0 for status in SuiteStatus}
    for suite in suites:
        status = suite.get("status")
        if status in by_status:
            by_status[status] += 1

    runs_by_status = {status.value: 0 for status in SuiteRunStatus}
    risk_distribution = _risk_counter()
    total_duration_ms = 0.0
    timed_runs = 0
    for run in runs:
        status = run.get("status")
        if status in runs_by_status:
            runs_by_status[status] += 1
        risk = run.get("aggregate_risk_level")
        if risk in risk_distribution:
            risk_distribution[risk] += 1
        started = _parse_timestamp(run.get("started_at"))
        completed = _parse_timestamp(run.get("completed_at"))
        if started and completed:
            total_duration_ms += (completed - started).total_seconds() * 1000
            timed_runs += 1

    condition_counts = Counter(
        item.get("trigger_condition_type") or TriggerConditionType.ALWAYS.value for item in items
    )
    most_used = (
        condition_counts.most_common(1)[0][0] if condition_counts else TriggerConditionType.ALWAYS.value
    )

    total_suites = len(suites)
    return SuiteStats(
        total_suites=total_suites,
        by_status=by_status,
        total_runs=len(runs),
        runs_by_status=runs_by_status,
        average_items_per_suite=len(items) / total_suites if total_suites else 0.0,
        average_run_duration_ms=total_duration_ms / timed_runs if timed_runs else 0.0,
        most_used_condition_type=most_used,
        risk_distribution=risk_distribution,
    )
