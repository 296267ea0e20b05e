"""Trigger condition evaluation.

Decides whether a queued suite step should execute given the observation
produced by the previous step. Evaluation is pure and total: malformed or
partial input evaluates to False (only ``always`` is unconditionally True),
so one missing data source never halts a suite run.
"""

import operator
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from scenario_engine.core.logging import get_logger
from scenario_engine.core.schemas_orchestration import (
    RISK_LEVEL_RANK,
    AlwaysCondition,
    KeywordMatchCondition,
    Observation,
    OutcomeMatchCondition,
    RiskThresholdCondition,
    SentimentShiftCondition,
    trigger_condition_adapter,
)

logger = get_logger(__name__)

COMPARATORS: dict[str, Callable[[int, int], bool]] = {
    ">=": operator.ge,
    ">": operator.gt,
    "==": operator.eq,
    "<": operator.lt,
    "<=": operator.le,
}

ConditionDetails = dict[str, Any]


# =============================================================================
# Input coercion
# =============================================================================


def _coerce_condition(condition: Any) -> Any:
    if isinstance(condition, Mapping):
        if condition.get("type") == "always":
            return AlwaysCondition()
        try:
            return trigger_condition_adapter.validate_python(dict(condition))
        except PydanticValidationError:
            return None
    return condition


def _coerce_observation(observation: Any) -> Observation | None:
    if isinstance(observation, Observation):
        return observation
    if observation is None:
        return Observation()
    if isinstance(observation, Mapping):
        try:
            return Observation.model_validate(dict(observation))
        except PydanticValidationError:
            return None
    return None


# =============================================================================
# Per-variant rules
# =============================================================================


def _risk_threshold(condition: RiskThresholdCondition, observation: Observation) -> tuple[bool, ConditionDetails]:
    details: ConditionDetails = {
        "threshold": condition.min_risk_level.value,
        "comparison": condition.comparison,
    }
    if observation.risk_level is None:
        return False, {**details, "reason": "no_risk_level"}

    observed_rank = RISK_LEVEL_RANK[observation.risk_level]
    threshold_rank = RISK_LEVEL_RANK[condition.min_risk_level]
    met = COMPARATORS[condition.comparison](observed_rank, threshold_rank)
    return met, {**details, "observed_risk_level": observation.risk_level.value}


def _keyword_match(condition: KeywordMatchCondition, observation: Observation) -> tuple[bool, ConditionDetails]:
    details: ConditionDetails = {"keywords": list(condition.keywords), "match_mode": condition.match_mode}
    if not observation.narrative:
        return False, {**details, "reason": "no_narrative"}
    if not condition.keywords:
        return False, {**details, "reason": "no_keywords"}

    if condition.case_sensitive:
        haystack = observation.narrative
        matched = [k for k in condition.keywords if k in haystack]
    else:
        haystack = observation.narrative.lower()
        matched = [k for k in condition.keywords if k.lower() in haystack]

    if condition.match_mode == "all":
        met = len(matched) == len(condition.keywords)
    else:
        met = len(matched) > 0
    return met, {**details, "matched_keywords": matched}


def _outcome_match(condition: OutcomeMatchCondition, observation: Observation) -> tuple[bool, ConditionDetails]:
    details: ConditionDetails = {"expected_outcome_type": condition.outcome_type}
    if condition.min_severity is not None:
        return _outcome_severity(condition, observation, details)
    if observation.outcome_type is None:
        return False, {**details, "reason": "no_outcome_type"}
    met = observation.outcome_type == condition.outcome_type
    return met, {**details, "observed_outcome_type": observation.outcome_type}


def _outcome_severity(
    condition: OutcomeMatchCondition, observation: Observation, details: ConditionDetails
) -> tuple[bool, ConditionDetails]:
    details = {**details, "min_severity": condition.min_severity.value}
    matching = [o for o in observation.outcomes if o.type == condition.outcome_type]
    if not matching:
        return False, {**details, "reason": "no_matching_outcomes"}

    threshold = RISK_LEVEL_RANK[condition.min_severity]
    severities = [o.severity for o in matching if o.severity is not None]
    met = any(RISK_LEVEL_RANK[s] >= threshold for s in severities)
    return met, {**details, "observed_severities": [s.value for s in severities]}


def _sentiment_shift(condition: SentimentShiftCondition, observation: Observation) -> tuple[bool, ConditionDetails]:
    details: ConditionDetails = {"direction": condition.direction, "magnitude": condition.magnitude}
    shift = observation.sentiment_shift
    if shift is None:
        return False, {**details, "reason": "no_sentiment_shift"}
    met = shift.direction == condition.direction and shift.magnitude == condition.magnitude
    return met, {
        **details,
        "observed_direction": shift.direction,
        "observed_magnitude": shift.magnitude,
    }


# =============================================================================
# Public API
# =============================================================================


def evaluate_with_details(condition: Any, observation: Any) -> tuple[bool, ConditionDetails]:
    """
    Evaluate a trigger condition and explain the result.

    Args:
        condition: TriggerCondition model or a raw condition mapping
        observation: Observation model, raw mapping, or None

    Returns:
        (met, details) where details records what was compared and, for a
        non-match caused by missing data, a ``reason``
    """
    cond = _coerce_condition(condition)
    if cond is None:
        return False, {"type": "unknown", "reason": "invalid_condition"}

    condition_type = getattr(cond, "type", "unknown")
    if isinstance(cond, AlwaysCondition):
        return True, {"type": condition_type}

    obs = _coerce_observation(observation)
    if obs is None:
        return False, {"type": condition_type, "reason": "invalid_observation"}

    if isinstance(cond, RiskThresholdCondition):
        met, details = _risk_threshold(cond, obs)
    elif isinstance(cond, KeywordMatchCondition):
        met, details = _keyword_match(cond, obs)
    elif isinstance(cond, OutcomeMatchCondition):
        met, details = _outcome_match(cond, obs)
    elif isinstance(cond, SentimentShiftCondition):
        met, details = _sentiment_shift(cond, obs)
    else:
        logger.debug(f"Unrecognized trigger condition type: {condition_type}")
        return False, {"type": condition_type, "reason": "unsupported_condition"}

    return met, {"type": condition_type, **details}


def evaluate(condition: Any, observation: Any) -> bool:
    """
    Evaluate a trigger condition against an observation.

    Never raises; missing observation fields evaluate to False.
    """
    met, _ = evaluate_with_details(condition, observation)
    return met
