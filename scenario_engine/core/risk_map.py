"""Deterministic risk map for a suite run."""

from datetime import datetime, timezone

from scenario_engine.core.schemas_orchestration import (
    Opportunity,
    RiskFactor,
    RiskLevel,
    RiskMapEdge,
    RiskMapNode,
    SuiteItem,
    SuiteRun,
    SuiteRunItem,
)

OUTCOME_NODE_TYPES = {"risk": "risk", "opportunity": "opportunity"}
LABEL_MAX_CHARS = 50


def step_label(run_item: SuiteRunItem, suite_item: SuiteItem | None) -> str:
    if suite_item is not None and suite_item.label:
        return suite_item.label
    return f"Simulation {run_item.order_index + 1}"


def build_risk_map(
    run: SuiteRun,
    suite_items: list[SuiteItem],
    run_items: list[SuiteRunItem],
    include_opportunities: bool = True,
    include_mitigations: bool = True,
    now: datetime | None = None,
) -> dict:
    """
    Build the risk map graph for a run.

    One simulation node per step, one node per reported outcome (linked to
    its step), and a step-to-step edge labelled ``triggered`` or ``skipped``.
    Risk outcomes become risk factors; opportunity outcomes become
    opportunities when requested.

    Returns:
        SuiteRiskMap as a JSON-ready dict
    """
    suite_items_by_id = {item.id: item for item in suite_items}
    ordered = sorted(run_items, key=lambda item: item.order_index)
    by_order = {item.order_index: item for item in ordered}

    nodes: list[RiskMapNode] = []
    edges: list[RiskMapEdge] = []
    risk_factors: list[RiskFactor] = []
    opportunities: list[Opportunity] = []

    for item in ordered:
        node_id = str(item.id)
        condition_met = bool(item.condition_result)
        nodes.append(
            RiskMapNode(
                id=node_id,
                label=step_label(item, suite_items_by_id.get(item.suite_item_id)),
                type="simulation",
                risk_level=item.risk_level,
                details={"status": item.status.value},
            )
        )

        for idx, outcome in enumerate(item.outcomes):
            outcome_id = f"{node_id}-outcome-{idx}"
            nodes.append(
                RiskMapNode(
                    id=outcome_id,
                    label=outcome.description[:LABEL_MAX_CHARS] or "Outcome",
                    type=OUTCOME_NODE_TYPES.get(outcome.type, "outcome"),
                    risk_level=outcome.severity,
                )
            )
            edges.append(RiskMapEdge(source=node_id, target=outcome_id, condition_met=condition_met))

            source = f"Item {item.order_index + 1}"
            if outcome.type == "risk":
                risk_factors.append(
                    RiskFactor(
                        factor=outcome.description,
                        severity=outcome.severity or RiskLevel.MEDIUM,
                        source=source,
                        mitigations=list(outcome.mitigations) if include_mitigations else None,
                    )
                )
            elif outcome.type == "opportunity" and include_opportunities:
                opportunities.append(
                    Opportunity(
                        opportunity=outcome.description,
                        impact=outcome.impact or "medium",
                        source=source,
                    )
                )

        previous = by_order.get(item.order_index - 1)
        if previous is not None:
            edges.append(
                RiskMapEdge(
                    source=str(previous.id),
                    target=node_id,
                    label="triggered" if condition_met else "skipped",
                    condition_met=condition_met,
                )
            )

    return {
        "run_id": str(run.id),
        "suite_id": str(run.suite_id),
        "nodes": [node.model_dump(mode="json") for node in nodes],
        "edges": [edge.model_dump(mode="json") for edge in edges],
        "aggregate_risk_level": (run.aggregate_risk_level or RiskLevel.LOW).value,
        "risk_factors": [factor.model_dump(mode="json") for factor in risk_factors],
        "opportunities": [opp.model_dump(mode="json") for opp in opportunities],
        "generated_at": (now or datetime.now(timezone.utc)).isoformat(),
    }
