"""Tests for orchestration schema validation."""

from uuid import uuid4

import pytest
from pydantic import ValidationError

from scenario_engine.core.schemas_orchestration import (
    AlwaysCondition,
    KeywordMatchCondition,
    RiskLevel,
    RiskThresholdCondition,
    Suite,
    SuiteItem,
    SuiteRun,
    trigger_condition_adapter,
)


class TestTriggerCondition:
    def test_discriminates_on_type(self):
        condition = trigger_condition_adapter.validate_python(
            {"type": "keyword_match", "keywords": ["crisis"], "match_mode": "all"}
        )
        assert isinstance(condition, KeywordMatchCondition)
        assert condition.match_mode == "all"

    def test_risk_threshold_requires_level(self):
        with pytest.raises(ValidationError):
            trigger_condition_adapter.validate_python({"type": "risk_threshold"})

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            trigger_condition_adapter.validate_python({"type": "moon_phase"})

    def test_comparison_alias_normalized(self):
        condition = RiskThresholdCondition(min_risk_level="high", comparison="gte")
        assert condition.comparison == ">="

    def test_invalid_comparison_rejected(self):
        with pytest.raises(ValidationError):
            RiskThresholdCondition(min_risk_level="high", comparison="!=")

    def test_conditions_are_frozen(self):
        condition = RiskThresholdCondition(min_risk_level="high")
        with pytest.raises(ValidationError):
            condition.type = "always"

    def test_keyword_list_must_not_be_empty(self):
        with pytest.raises(ValidationError):
            KeywordMatchCondition(keywords=[])


class TestSuiteItem:
    def _base(self, **overrides):
        return {
            "id": str(uuid4()),
            "suite_id": str(uuid4()),
            "simulation_id": str(uuid4()),
            "order_index": 0,
            **overrides,
        }

    def test_missing_condition_defaults_to_always(self):
        item = SuiteItem.model_validate(self._base(trigger_condition=None))
        assert isinstance(item.trigger_condition, AlwaysCondition)
        assert item.trigger_condition_type == "always"

    def test_condition_type_follows_condition(self):
        item = SuiteItem.model_validate(
            self._base(
                trigger_condition_type="always",
                trigger_condition={"type": "outcome_match", "outcome_type": "escalation"},
            )
        )
        assert item.trigger_condition_type == "outcome_match"

    def test_condition_without_type_uses_column(self):
        item = SuiteItem.model_validate(
            self._base(trigger_condition_type="risk_threshold", trigger_condition={"min_risk_level": "low"})
        )
        assert isinstance(item.trigger_condition, RiskThresholdCondition)

    def test_unreadable_stored_condition_kept_raw(self):
        item = SuiteItem.model_validate(self._base(trigger_condition={"type": "risk_threshold"}))
        assert item.trigger_condition == {"type": "risk_threshold"}

    def test_source_item_and_min_severity_parsed(self):
        source_id = uuid4()
        item = SuiteItem.model_validate(
            self._base(
                trigger_condition={
                    "type": "outcome_match",
                    "outcome_type": "risk",
                    "min_severity": "high",
                    "source_item_id": str(source_id),
                }
            )
        )
        assert item.trigger_condition.source_item_id == source_id
        assert item.trigger_condition.min_severity == RiskLevel.HIGH
        assert item.trigger_condition_type == "risk_threshold"


class TestSuiteRun:
    def test_total_items_must_be_positive(self):
        with pytest.raises(ValidationError):
            SuiteRun(id=uuid4(), org_id=uuid4(), suite_id=uuid4(), total_items=0)

    def test_index_cannot_exceed_total(self):
        with pytest.raises(ValidationError):
            SuiteRun(id=uuid4(), org_id=uuid4(), suite_id=uuid4(), total_items=2, current_item_index=3)

    def test_index_may_equal_total(self):
        run = SuiteRun(id=uuid4(), org_id=uuid4(), suite_id=uuid4(), total_items=2, current_item_index=2)
        assert run.current_item_index == 2


def test_suite_null_config_uses_defaults():
    suite = Suite.model_validate(
        {"id": str(uuid4()), "org_id": str(uuid4()), "name": "Drill", "config": None, "metadata": None}
    )
    assert suite.config.stop_on_failure is True
    assert suite.metadata == {}
