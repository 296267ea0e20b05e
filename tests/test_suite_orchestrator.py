"""Behavioral tests for the orchestration service over an in-memory database."""

from unittest.mock import patch
from uuid import uuid4

import pytest

from scenario_engine.chains.generate_suite_narrative import LLMResponse
from scenario_engine.core.errors import (
    ArchivedSuiteError,
    CannotAbortError,
    EmptySuiteError,
    InvalidRunStateError,
    NotFoundError,
    ValidationError,
)
from scenario_engine.core.schemas_orchestration import (
    AdvanceRunRequest,
    CreateSuiteItemRequest,
    CreateSuiteRequest,
    GenerateNarrativeRequest,
    GenerateRiskMapRequest,
    Observation,
    RecordItemResultRequest,
    RiskLevel,
    StartRunRequest,
    SuiteConfig,
    SuiteRunItemStatus,
    SuiteRunStatus,
    SuiteStatus,
    UpdateSuiteItemRequest,
    UpdateSuiteRequest,
)
from scenario_engine.services import suite_orchestrator
from tests.fakes.fake_orchestration_db import FakeOrchestrationDB

ORG_ID = uuid4()
USER_ID = uuid4()


@pytest.fixture
def fake_db():
    db = FakeOrchestrationDB()
    narrative = LLMResponse(content="Suite narrative", tokens_used=42, model="test-model")
    with (
        patch.object(suite_orchestrator, "suites_db", db),
        patch.object(suite_orchestrator, "runs_db", db),
        patch.object(suite_orchestrator, "audit_db", db),
        patch.object(suite_orchestrator, "generate_suite_narrative", return_value=narrative) as mock_narrative,
    ):
        db.mock_narrative = mock_narrative
        yield db


def item_request(condition: dict | None = None, label: str | None = None) -> CreateSuiteItemRequest:
    payload = {"simulation_id": str(uuid4()), "label": label}
    if condition:
        payload["trigger_condition"] = condition
    return CreateSuiteItemRequest.model_validate(payload)


def create_suite(conditions: list[dict | None], config: SuiteConfig | None = None):
    request = CreateSuiteRequest(
        name="Product recall drill",
        config=config or SuiteConfig(),
        items=[item_request(c, label=f"Step {i + 1}") for i, c in enumerate(conditions)],
    )
    return suite_orchestrator.create_suite(ORG_ID, request, user_id=USER_ID)


HIGH_RISK = {"type": "risk_threshold", "min_risk_level": "high"}


class TestSuiteManagement:
    def test_create_suite_with_items(self, fake_db):
        detail = create_suite([None, HIGH_RISK])

        assert detail.suite.status == SuiteStatus.CONFIGURED
        assert [i.order_index for i in detail.items] == [0, 1]
        assert detail.items[1].trigger_condition_type == "risk_threshold"
        assert "suite_created" in fake_db.event_types()

    def test_create_empty_suite_is_draft(self, fake_db):
        detail = create_suite([])

        assert detail.suite.status == SuiteStatus.DRAFT

    def test_duplicate_order_index_rejected(self, fake_db):
        request = CreateSuiteRequest(
            name="Dup",
            items=[
                CreateSuiteItemRequest(simulation_id=uuid4(), order_index=0),
                CreateSuiteItemRequest(simulation_id=uuid4(), order_index=0),
            ],
        )

        with pytest.raises(ValidationError):
            suite_orchestrator.create_suite(ORG_ID, request)

    def test_get_suite_scoped_by_org(self, fake_db):
        detail = create_suite([None])

        with pytest.raises(NotFoundError):
            suite_orchestrator.get_suite(uuid4(), detail.suite.id)

    def test_list_suites_excludes_archived(self, fake_db):
        kept = create_suite([None])
        archived = create_suite([None])
        suite_orchestrator.archive_suite(ORG_ID, archived.suite.id, reason="old")

        listing = suite_orchestrator.list_suites(ORG_ID)

        assert [s.id for s in listing.suites] == [kept.suite.id]
        assert listing.total == 1

    def test_update_suite(self, fake_db):
        detail = create_suite([None])

        suite = suite_orchestrator.update_suite(
            ORG_ID, detail.suite.id, UpdateSuiteRequest(name="Renamed"), user_id=USER_ID
        )

        assert suite.name == "Renamed"
        assert "suite_updated" in fake_db.event_types()

    def test_update_archived_suite_rejected(self, fake_db):
        detail = create_suite([None])
        suite_orchestrator.archive_suite(ORG_ID, detail.suite.id)

        with pytest.raises(ArchivedSuiteError):
            suite_orchestrator.update_suite(ORG_ID, detail.suite.id, UpdateSuiteRequest(name="x"))

    def test_add_item_appends_and_configures_draft(self, fake_db):
        detail = create_suite([])

        item = suite_orchestrator.add_suite_item(ORG_ID, detail.suite.id, item_request())
        second = suite_orchestrator.add_suite_item(ORG_ID, detail.suite.id, item_request(HIGH_RISK))

        assert item.order_index == 0
        assert second.order_index == 1
        assert suite_orchestrator.get_suite(ORG_ID, detail.suite.id).suite.status == SuiteStatus.CONFIGURED

    def test_update_item_condition_syncs_type(self, fake_db):
        detail = create_suite([None])
        item_id = detail.items[0].id

        updated = suite_orchestrator.update_suite_item(
            ORG_ID,
            item_id,
            UpdateSuiteItemRequest.model_validate(
                {"trigger_condition": {"type": "outcome_match", "outcome_type": "escalation"}}
            ),
        )

        assert updated.trigger_condition_type == "outcome_match"

    def test_remove_item(self, fake_db):
        detail = create_suite([None, None])

        suite_orchestrator.remove_suite_item(ORG_ID, detail.items[0].id)

        assert len(suite_orchestrator.get_suite(ORG_ID, detail.suite.id).items) == 1
        assert "item_removed" in fake_db.event_types()

    def test_items_locked_while_running(self, fake_db):
        detail = create_suite([None, None])
        suite_orchestrator.start_run(ORG_ID, detail.suite.id, StartRunRequest())

        with pytest.raises(InvalidRunStateError):
            suite_orchestrator.add_suite_item(ORG_ID, detail.suite.id, item_request())

    def test_items_locked_while_any_run_is_running(self, fake_db):
        detail = create_suite([None, None])
        suite_orchestrator.start_run(ORG_ID, detail.suite.id, StartRunRequest())
        fake_db.update_suite(ORG_ID, detail.suite.id, {"status": "configured"})

        with pytest.raises(InvalidRunStateError):
            suite_orchestrator.remove_suite_item(ORG_ID, detail.items[0].id)


class TestRunLifecycle:
    def test_start_run(self, fake_db):
        detail = create_suite([None, HIGH_RISK])

        started = suite_orchestrator.start_run(ORG_ID, detail.suite.id, StartRunRequest(), user_id=USER_ID)

        assert started.run.status == SuiteRunStatus.RUNNING
        assert started.run.run_number == 1
        assert started.run.run_label == "Run 1"
        assert len(started.items) == 2
        assert suite_orchestrator.get_suite(ORG_ID, detail.suite.id).suite.status == SuiteStatus.RUNNING
        assert "run_started" in fake_db.event_types()

    def test_run_numbers_increment(self, fake_db):
        detail = create_suite([None])
        first = suite_orchestrator.start_run(ORG_ID, detail.suite.id, StartRunRequest())
        suite_orchestrator.abort_run(ORG_ID, first.run.id)

        second = suite_orchestrator.start_run(ORG_ID, detail.suite.id, StartRunRequest())

        assert second.run.run_number == 2

    def test_start_empty_suite_rejected(self, fake_db):
        detail = create_suite([])

        with pytest.raises(EmptySuiteError):
            suite_orchestrator.start_run(ORG_ID, detail.suite.id, StartRunRequest())

    def test_start_archived_suite_rejected(self, fake_db):
        detail = create_suite([None])
        suite_orchestrator.archive_suite(ORG_ID, detail.suite.id)

        with pytest.raises(ArchivedSuiteError):
            suite_orchestrator.start_run(ORG_ID, detail.suite.id, StartRunRequest())

    def test_advance_uses_recorded_observation(self, fake_db):
        detail = create_suite([None, HIGH_RISK, None])
        started = suite_orchestrator.start_run(ORG_ID, detail.suite.id, StartRunRequest())
        first_item = started.items[0]

        suite_orchestrator.record_item_result(
            ORG_ID,
            started.run.id,
            first_item.id,
            RecordItemResultRequest(status="completed", risk_level=RiskLevel.CRITICAL),
        )
        advanced = suite_orchestrator.advance_run(ORG_ID, started.run.id, AdvanceRunRequest())

        assert advanced.advanced is True
        assert advanced.next_item.order_index == 1
        assert advanced.skipped_items == []
        assert "item_condition_evaluated" in fake_db.event_types()

    def test_advance_skips_and_completes_with_finalization(self, fake_db):
        detail = create_suite([None, HIGH_RISK])
        started = suite_orchestrator.start_run(ORG_ID, detail.suite.id, StartRunRequest())
        suite_orchestrator.record_item_result(
            ORG_ID,
            started.run.id,
            started.items[0].id,
            RecordItemResultRequest(status="completed", risk_level=RiskLevel.MEDIUM),
        )

        advanced = suite_orchestrator.advance_run(ORG_ID, started.run.id, AdvanceRunRequest())

        assert advanced.completed is True
        assert advanced.run.status == SuiteRunStatus.COMPLETED
        assert advanced.run.aggregate_risk_level == RiskLevel.MEDIUM
        assert advanced.run.suite_narrative == "Suite narrative"
        assert advanced.run.risk_map["run_id"] == str(started.run.id)
        assert [i.status for i in advanced.skipped_items] == [SuiteRunItemStatus.SKIPPED]
        assert suite_orchestrator.get_suite(ORG_ID, detail.suite.id).suite.status == SuiteStatus.COMPLETED
        assert "run_completed" in fake_db.event_types()
        assert "item_skipped" in fake_db.event_types()

    def test_explicit_observation_overrides_recorded(self, fake_db):
        detail = create_suite([None, HIGH_RISK])
        started = suite_orchestrator.start_run(ORG_ID, detail.suite.id, StartRunRequest())

        advanced = suite_orchestrator.advance_run(
            ORG_ID,
            started.run.id,
            AdvanceRunRequest(observation=Observation(risk_level=RiskLevel.HIGH)),
        )

        assert advanced.advanced is True
        assert advanced.next_item.condition_details["observed_risk_level"] == "high"

    def test_narrative_failure_does_not_fail_completion(self, fake_db):
        fake_db.mock_narrative.side_effect = RuntimeError("model unavailable")
        detail = create_suite([None])
        started = suite_orchestrator.start_run(ORG_ID, detail.suite.id, StartRunRequest())

        advanced = suite_orchestrator.advance_run(ORG_ID, started.run.id, AdvanceRunRequest())

        assert advanced.run.status == SuiteRunStatus.COMPLETED
        assert advanced.run.suite_narrative is None

    def test_narrative_and_risk_map_disabled(self, fake_db):
        config = SuiteConfig(narrative_enabled=False, risk_map_enabled=False)
        detail = create_suite([None], config=config)
        started = suite_orchestrator.start_run(ORG_ID, detail.suite.id, StartRunRequest())

        advanced = suite_orchestrator.advance_run(ORG_ID, started.run.id, AdvanceRunRequest())

        fake_db.mock_narrative.assert_not_called()
        assert advanced.run.risk_map == {}

    def test_audit_failure_does_not_fail_operation(self, fake_db):
        detail = create_suite([None])
        fake_db.fail_audit_writes = True

        started = suite_orchestrator.start_run(ORG_ID, detail.suite.id, StartRunRequest())

        assert started.run.status == SuiteRunStatus.RUNNING

    def test_abort_then_abort_again(self, fake_db):
        detail = create_suite([None, None])
        started = suite_orchestrator.start_run(ORG_ID, detail.suite.id, StartRunRequest())

        run = suite_orchestrator.abort_run(ORG_ID, started.run.id, reason="stop")

        assert run.status == SuiteRunStatus.ABORTED
        assert suite_orchestrator.get_suite(ORG_ID, detail.suite.id).suite.status == SuiteStatus.CONFIGURED
        with pytest.raises(CannotAbortError):
            suite_orchestrator.abort_run(ORG_ID, started.run.id)

    def test_failed_step_aborts_stop_on_failure_suite(self, fake_db):
        detail = create_suite([None, None])
        started = suite_orchestrator.start_run(ORG_ID, detail.suite.id, StartRunRequest())

        result = suite_orchestrator.record_item_result(
            ORG_ID,
            started.run.id,
            started.items[0].id,
            RecordItemResultRequest(status="failed", error_message="boom"),
        )

        assert result.run.status == SuiteRunStatus.ABORTED
        assert result.run.abort_reason == "Step 1 failed"
        assert suite_orchestrator.get_suite(ORG_ID, detail.suite.id).suite.status == SuiteStatus.FAILED
        assert "item_failed" in fake_db.event_types()

    def test_record_result_is_idempotent(self, fake_db):
        detail = create_suite([None, None])
        started = suite_orchestrator.start_run(ORG_ID, detail.suite.id, StartRunRequest())
        request = RecordItemResultRequest(status="completed", risk_level=RiskLevel.LOW)

        suite_orchestrator.record_item_result(ORG_ID, started.run.id, started.items[0].id, request)
        events_after_first = len(fake_db.audit_events)
        again = suite_orchestrator.record_item_result(ORG_ID, started.run.id, started.items[0].id, request)

        assert again.run.completed_items == 1
        assert len(fake_db.audit_events) == events_after_first

    def test_record_result_unknown_item(self, fake_db):
        detail = create_suite([None])
        started = suite_orchestrator.start_run(ORG_ID, detail.suite.id, StartRunRequest())

        with pytest.raises(NotFoundError):
            suite_orchestrator.record_item_result(
                ORG_ID, started.run.id, uuid4(), RecordItemResultRequest(status="completed")
            )

    def test_run_not_visible_to_other_org(self, fake_db):
        detail = create_suite([None])
        started = suite_orchestrator.start_run(ORG_ID, detail.suite.id, StartRunRequest())

        with pytest.raises(NotFoundError):
            suite_orchestrator.get_run(uuid4(), started.run.id)


class TestSuiteChangesDuringRun:
    def test_second_concurrent_run_rejected(self, fake_db):
        detail = create_suite([None, HIGH_RISK, None])
        first = suite_orchestrator.start_run(ORG_ID, detail.suite.id, StartRunRequest())

        with pytest.raises(InvalidRunStateError, match="already has a running run"):
            suite_orchestrator.start_run(ORG_ID, detail.suite.id, StartRunRequest())

        suite_orchestrator.abort_run(ORG_ID, first.run.id)
        second = suite_orchestrator.start_run(ORG_ID, detail.suite.id, StartRunRequest())
        assert second.run.run_number == 2

    def test_advance_matches_steps_by_suite_item_after_removal(self, fake_db):
        detail = create_suite([None, HIGH_RISK, None])
        started = suite_orchestrator.start_run(ORG_ID, detail.suite.id, StartRunRequest())
        # Removed behind the service's back, as a concurrent writer would
        fake_db.remove_suite_item(detail.items[0].id)

        advanced = suite_orchestrator.advance_run(ORG_ID, started.run.id, AdvanceRunRequest())

        assert [i.suite_item_id for i in advanced.skipped_items] == [detail.items[1].id]
        assert advanced.skipped_items[0].condition_details["type"] == "risk_threshold"
        assert advanced.next_item.suite_item_id == detail.items[2].id

    def test_advance_skips_removed_step(self, fake_db):
        detail = create_suite([None, None, None])
        started = suite_orchestrator.start_run(ORG_ID, detail.suite.id, StartRunRequest())
        fake_db.remove_suite_item(detail.items[1].id)

        advanced = suite_orchestrator.advance_run(ORG_ID, started.run.id, AdvanceRunRequest())

        assert advanced.skipped_items[0].condition_details["reason"] == "suite_item_removed"
        assert advanced.next_item.suite_item_id == detail.items[2].id

    def test_condition_reads_its_source_step(self, fake_db):
        detail = create_suite([None, None])
        source_id = detail.items[0].id
        suite_orchestrator.add_suite_item(
            ORG_ID,
            detail.suite.id,
            item_request({"type": "risk_threshold", "min_risk_level": "high", "source_item_id": str(source_id)}),
        )
        started = suite_orchestrator.start_run(ORG_ID, detail.suite.id, StartRunRequest())
        suite_orchestrator.record_item_result(
            ORG_ID,
            started.run.id,
            started.items[0].id,
            RecordItemResultRequest(status="completed", risk_level=RiskLevel.CRITICAL),
        )
        moved = suite_orchestrator.advance_run(ORG_ID, started.run.id, AdvanceRunRequest())
        suite_orchestrator.record_item_result(
            ORG_ID,
            started.run.id,
            moved.next_item.id,
            RecordItemResultRequest(status="completed", risk_level=RiskLevel.LOW),
        )

        advanced = suite_orchestrator.advance_run(ORG_ID, started.run.id, AdvanceRunRequest())

        assert advanced.advanced is True
        assert advanced.next_item.order_index == 2
        assert advanced.next_item.condition_details["source_item_id"] == str(source_id)
        assert advanced.next_item.condition_details["observed_risk_level"] == "critical"


class TestReporting:
    def _completed_run(self, fake_db):
        detail = create_suite([None, HIGH_RISK, None])
        started = suite_orchestrator.start_run(ORG_ID, detail.suite.id, StartRunRequest())
        suite_orchestrator.record_item_result(
            ORG_ID,
            started.run.id,
            started.items[0].id,
            RecordItemResultRequest.model_validate(
                {
                    "status": "completed",
                    "risk_level": "high",
                    "outcomes": [
                        {"type": "risk", "description": "Media pickup", "severity": "high", "mitigations": ["Statement"]},
                        {"type": "opportunity", "description": "Show leadership", "impact": "high"},
                    ],
                }
            ),
        )
        suite_orchestrator.advance_run(ORG_ID, started.run.id, AdvanceRunRequest())
        suite_orchestrator.advance_run(ORG_ID, started.run.id, AdvanceRunRequest())
        suite_orchestrator.advance_run(ORG_ID, started.run.id, AdvanceRunRequest())
        return detail, started

    def test_metrics(self, fake_db):
        _, started = self._completed_run(fake_db)

        metrics = suite_orchestrator.get_run_metrics(ORG_ID, started.run.id)

        assert metrics.total_items == 3
        assert metrics.completed_items == 3
        assert metrics.pending_items == 0
        assert metrics.condition_met_items == 2
        assert metrics.aggregate_risk_level == RiskLevel.HIGH
        assert metrics.risk_level_distribution["high"] == 1

    def test_risk_map(self, fake_db):
        _, started = self._completed_run(fake_db)

        risk_map = suite_orchestrator.generate_risk_map(ORG_ID, started.run.id, GenerateRiskMapRequest())

        assert [f.factor for f in risk_map.risk_factors] == ["Media pickup"]
        assert [o.opportunity for o in risk_map.opportunities] == ["Show leadership"]
        assert sum(1 for n in risk_map.nodes if n.type == "simulation") == 3
        assert "risk_map_generated" in fake_db.event_types()

    def test_generate_narrative(self, fake_db):
        _, started = self._completed_run(fake_db)

        response = suite_orchestrator.generate_narrative(
            ORG_ID, started.run.id, GenerateNarrativeRequest(format="executive")
        )

        assert response.narrative == "Suite narrative"
        assert response.tokens_used == 42
        assert response.format == "executive"

    def test_stats(self, fake_db):
        self._completed_run(fake_db)
        create_suite([])

        stats = suite_orchestrator.get_stats(ORG_ID)

        assert stats.total_suites == 2
        assert stats.by_status["completed"] == 1
        assert stats.by_status["draft"] == 1
        assert stats.total_runs == 1
        assert stats.runs_by_status["completed"] == 1
        assert stats.average_items_per_suite == 1.5
        assert stats.most_used_condition_type == "always"
        assert stats.risk_distribution["high"] == 1

    def test_audit_log_listing(self, fake_db):
        detail, started = self._completed_run(fake_db)

        suite_events = suite_orchestrator.list_suite_audit_events(ORG_ID, detail.suite.id)
        run_events = suite_orchestrator.list_run_audit_events(ORG_ID, started.run.id)

        assert suite_events.total >= run_events.total > 0
        assert all(e.run_id == started.run.id for e in run_events.events)
