"""Pydantic schemas for scenario suite orchestration."""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Union
from uuid import UUID

from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    TypeAdapter,
    field_validator,
    model_validator,
)


# ============================================================================
# Enums
# ============================================================================


class RiskLevel(str, Enum):
    """Ordered risk level: low < medium < high < critical."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


RISK_LEVEL_RANK: dict[RiskLevel, int] = {
    RiskLevel.LOW: 1,
    RiskLevel.MEDIUM: 2,
    RiskLevel.HIGH: 3,
    RiskLevel.CRITICAL: 4,
}


class SuiteStatus(str, Enum):
    """Suite lifecycle status."""
    DRAFT = "draft"
    CONFIGURED = "configured"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    ARCHIVED = "archived"


class SuiteRunStatus(str, Enum):
    """Suite run status. Only RUNNING accepts transitions."""
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"


TERMINAL_RUN_STATUSES = frozenset({SuiteRunStatus.COMPLETED, SuiteRunStatus.ABORTED})


class SuiteRunItemStatus(str, Enum):
    """Per-run status of one suite step."""
    PENDING = "pending"
    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"


class TriggerConditionType(str, Enum):
    """Discriminator values of TriggerCondition."""
    ALWAYS = "always"
    RISK_THRESHOLD = "risk_threshold"
    KEYWORD_MATCH = "keyword_match"
    OUTCOME_MATCH = "outcome_match"
    SENTIMENT_SHIFT = "sentiment_shift"


class AuditEventType(str, Enum):
    """Events written to the suite audit log."""
    SUITE_CREATED = "suite_created"
    SUITE_UPDATED = "suite_updated"
    SUITE_ARCHIVED = "suite_archived"
    ITEM_ADDED = "item_added"
    ITEM_UPDATED = "item_updated"
    ITEM_REMOVED = "item_removed"
    RUN_STARTED = "run_started"
    RUN_COMPLETED = "run_completed"
    RUN_ABORTED = "run_aborted"
    ITEM_CONDITION_EVALUATED = "item_condition_evaluated"
    ITEM_COMPLETED = "item_completed"
    ITEM_FAILED = "item_failed"
    ITEM_SKIPPED = "item_skipped"
    NARRATIVE_GENERATED = "narrative_generated"
    RISK_MAP_GENERATED = "risk_map_generated"


Comparison = Literal[">=", ">", "==", "<", "<="]

# Stored conditions may use the word forms
COMPARISON_ALIASES: dict[str, str] = {
    "gte": ">=",
    "gt": ">",
    "eq": "==",
    "lt": "<",
    "lte": "<=",
}

SentimentDirection = Literal["positive", "negative"]
SentimentMagnitude = Literal["small", "large"]


# ============================================================================
# Trigger conditions
# ============================================================================


class _BaseCondition(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    # Evaluate against this suite item's recorded result instead of the latest step
    source_item_id: UUID | None = None


class AlwaysCondition(_BaseCondition):
    """Always execute the step."""
    type: Literal["always"] = "always"


class RiskThresholdCondition(_BaseCondition):
    """Execute when the observed risk level compares against a threshold."""
    type: Literal["risk_threshold"] = "risk_threshold"
    min_risk_level: RiskLevel
    comparison: Comparison = ">="

    @field_validator("comparison", mode="before")
    @classmethod
    def _normalize_comparison(cls, value: Any) -> Any:
        if isinstance(value, str):
            return COMPARISON_ALIASES.get(value, value)
        return value


class KeywordMatchCondition(_BaseCondition):
    """Execute when keywords appear in the observed narrative."""
    type: Literal["keyword_match"] = "keyword_match"
    keywords: list[str] = Field(..., min_length=1, max_length=50)
    match_mode: Literal["any", "all"] = "any"
    case_sensitive: bool = False


class OutcomeMatchCondition(_BaseCondition):
    """Execute when the observed outcome type matches.

    With ``min_severity`` set, one of the reported outcomes of that type must
    carry at least that severity.
    """
    type: Literal["outcome_match"] = "outcome_match"
    outcome_type: str = Field(..., min_length=1)
    min_severity: RiskLevel | None = None


class SentimentShiftCondition(_BaseCondition):
    """Execute when the observed sentiment shift matches direction and magnitude."""
    type: Literal["sentiment_shift"] = "sentiment_shift"
    direction: SentimentDirection
    magnitude: SentimentMagnitude


TriggerCondition = Annotated[
    Union[
        AlwaysCondition,
        RiskThresholdCondition,
        KeywordMatchCondition,
        OutcomeMatchCondition,
        SentimentShiftCondition,
    ],
    Discriminator("type"),
]

trigger_condition_adapter: TypeAdapter = TypeAdapter(TriggerCondition)


# ============================================================================
# Observation
# ============================================================================


class SentimentShift(BaseModel):
    direction: SentimentDirection
    magnitude: SentimentMagnitude


class ItemOutcome(BaseModel):
    """An outcome reported for an executed step."""

    type: Literal["risk", "opportunity", "neutral"]
    description: str
    severity: RiskLevel | None = None
    impact: Literal["low", "medium", "high"] | None = None
    mitigations: list[str] = Field(default_factory=list)


class Observation(BaseModel):
    """Snapshot produced by the previous step. Every field is optional."""

    model_config = ConfigDict(extra="ignore")

    risk_level: RiskLevel | None = None
    narrative: str | None = None
    outcome_type: str | None = None
    sentiment_shift: SentimentShift | None = None
    outcomes: list[ItemOutcome] = Field(default_factory=list)


# ============================================================================
# Entities
# ============================================================================


class SuiteConfig(BaseModel):
    """Suite execution options."""

    model_config = ConfigDict(extra="ignore")

    stop_on_failure: bool = True
    narrative_enabled: bool = True
    risk_map_enabled: bool = True


class Suite(BaseModel):
    """A named, ordered collection of simulation steps."""

    id: UUID
    org_id: UUID
    name: str
    description: str | None = None
    status: SuiteStatus = SuiteStatus.DRAFT
    config: SuiteConfig = Field(default_factory=SuiteConfig)
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_by: UUID | None = None
    updated_by: UUID | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    archived_at: datetime | None = None

    @field_validator("config", "metadata", mode="before")
    @classmethod
    def _null_to_empty(cls, value: Any) -> Any:
        return value if value is not None else {}


class SuiteItem(BaseModel):
    """One step of a suite."""

    id: UUID
    suite_id: UUID
    simulation_id: UUID
    order_index: int = Field(..., ge=0)
    trigger_condition_type: str = TriggerConditionType.ALWAYS.value
    # Rows that no longer validate are kept raw; they evaluate to False
    trigger_condition: Union[TriggerCondition, dict[str, Any]] = Field(
        default_factory=AlwaysCondition, union_mode="left_to_right"
    )
    label: str | None = None
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @model_validator(mode="before")
    @classmethod
    def _sync_condition_type(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        condition = data.get("trigger_condition")
        if not condition:
            condition = {"type": data.get("trigger_condition_type") or "always"}
        elif isinstance(condition, dict) and "type" not in condition:
            condition = {**condition, "type": data.get("trigger_condition_type") or "always"}
        data["trigger_condition"] = condition
        condition_type = (
            condition.get("type") if isinstance(condition, dict) else getattr(condition, "type", None)
        )
        data["trigger_condition_type"] = condition_type or "always"
        return data


class SuiteRun(BaseModel):
    """One execution pass through a suite's items."""

    model_config = ConfigDict(validate_assignment=True)

    id: UUID
    org_id: UUID
    suite_id: UUID
    run_number: int = 1
    run_label: str | None = None
    status: SuiteRunStatus = SuiteRunStatus.RUNNING
    total_items: int = Field(..., gt=0)
    current_item_index: int = Field(default=0, ge=0)
    completed_items: int = 0
    skipped_items: int = 0
    failed_items: int = 0
    aggregate_risk_level: RiskLevel | None = None
    seed_context: dict[str, Any] = Field(default_factory=dict)
    suite_narrative: str | None = None
    risk_map: dict[str, Any] = Field(default_factory=dict)
    abort_reason: str | None = None
    started_by: UUID | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("seed_context", "risk_map", mode="before")
    @classmethod
    def _null_to_empty(cls, value: Any) -> Any:
        return value if value is not None else {}

    @model_validator(mode="after")
    def _index_within_bounds(self) -> "SuiteRun":
        if self.current_item_index > self.total_items:
            raise ValueError(
                f"current_item_index {self.current_item_index} exceeds total_items {self.total_items}"
            )
        return self

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_RUN_STATUSES


class SuiteRunItem(BaseModel):
    """Per-run record of one step's outcome."""

    id: UUID
    org_id: UUID
    run_id: UUID
    suite_item_id: UUID
    order_index: int = Field(..., ge=0)
    status: SuiteRunItemStatus = SuiteRunItemStatus.PENDING

    # Condition evaluation
    condition_evaluated: bool = False
    condition_result: bool | None = None
    condition_details: dict[str, Any] = Field(default_factory=dict)

    # Reported results
    risk_level: RiskLevel | None = None
    key_findings: list[Any] = Field(default_factory=list)
    narrative: str | None = None
    outcome_type: str | None = None
    sentiment_shift: SentimentShift | None = None
    outcomes: list[ItemOutcome] = Field(default_factory=list)
    error_message: str | None = None

    completed_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("condition_details", mode="before")
    @classmethod
    def _null_to_dict(cls, value: Any) -> Any:
        return value if value is not None else {}

    @field_validator("key_findings", "outcomes", mode="before")
    @classmethod
    def _null_to_list(cls, value: Any) -> Any:
        return value if value is not None else []

    def to_observation(self) -> Observation:
        """Observation this step produced, for evaluating the next step."""
        return Observation(
            risk_level=self.risk_level,
            narrative=self.narrative,
            outcome_type=self.outcome_type,
            sentiment_shift=self.sentiment_shift,
            outcomes=list(self.outcomes),
        )

    def has_reported_result(self) -> bool:
        """True once a caller recorded anything for this step."""
        return self.to_observation() != Observation()


class AuditEvent(BaseModel):
    id: UUID
    org_id: UUID
    suite_id: UUID | None = None
    run_id: UUID | None = None
    run_item_id: UUID | None = None
    event_type: str
    details: dict[str, Any] = Field(default_factory=dict)
    user_id: UUID | None = None
    created_at: datetime | None = None


# ============================================================================
# Requests
# ============================================================================


class CreateSuiteItemRequest(BaseModel):
    """Request body for adding a step to a suite."""

    simulation_id: UUID
    order_index: int | None = Field(None, ge=0, description="Defaults to the end of the suite")
    trigger_condition: TriggerCondition = Field(default_factory=AlwaysCondition)
    label: str | None = Field(None, max_length=100)
    notes: str | None = Field(None, max_length=2000)


class UpdateSuiteItemRequest(BaseModel):
    """Request body for updating a suite step."""

    order_index: int | None = Field(None, ge=0)
    trigger_condition: TriggerCondition | None = None
    label: str | None = Field(None, max_length=100)
    notes: str | None = Field(None, max_length=2000)


class CreateSuiteRequest(BaseModel):
    """Request body for creating a suite."""

    name: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(None, max_length=2000)
    config: SuiteConfig = Field(default_factory=SuiteConfig)
    metadata: dict[str, Any] = Field(default_factory=dict)
    items: list[CreateSuiteItemRequest] = Field(default_factory=list)


class UpdateSuiteRequest(BaseModel):
    """Request body for updating a suite."""

    name: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, max_length=2000)
    status: SuiteStatus | None = None
    config: SuiteConfig | None = None
    metadata: dict[str, Any] | None = None


class ArchiveSuiteRequest(BaseModel):
    reason: str | None = Field(None, max_length=500)


class StartRunRequest(BaseModel):
    """Request body for starting a suite run."""

    run_label: str | None = Field(None, max_length=200)
    seed_context: dict[str, Any] = Field(default_factory=dict)


class AdvanceRunRequest(BaseModel):
    """Request body for advancing a suite run.

    Without an explicit observation the latest completed step's reported
    results are used.
    """

    observation: Observation | None = None
    skip_condition_check: bool = False


class AbortRunRequest(BaseModel):
    reason: str | None = Field(None, max_length=500)


class RecordItemResultRequest(BaseModel):
    """Request body for reporting the outcome of the current step."""

    status: Literal["completed", "failed"]
    risk_level: RiskLevel | None = None
    narrative: str | None = None
    outcome_type: str | None = None
    sentiment_shift: SentimentShift | None = None
    key_findings: list[Any] = Field(default_factory=list)
    outcomes: list[ItemOutcome] = Field(default_factory=list)
    error_message: str | None = Field(None, max_length=2000)


class GenerateNarrativeRequest(BaseModel):
    format: Literal["summary", "detailed", "executive"] = "summary"
    include_recommendations: bool = True


class GenerateRiskMapRequest(BaseModel):
    include_opportunities: bool = True
    include_mitigations: bool = True


# ============================================================================
# Responses
# ============================================================================


class SuiteDetailResponse(BaseModel):
    suite: Suite
    items: list[SuiteItem]


class SuiteListResponse(BaseModel):
    suites: list[Suite]
    total: int


class SuiteItemResponse(BaseModel):
    item: SuiteItem


class RunDetailResponse(BaseModel):
    run: SuiteRun
    items: list[SuiteRunItem]


class RunListResponse(BaseModel):
    runs: list[SuiteRun]
    total: int


class AdvanceRunResponse(BaseModel):
    run: SuiteRun
    advanced: bool
    completed: bool
    skipped_items: list[SuiteRunItem] = Field(default_factory=list)
    next_item: SuiteRunItem | None = None


class AuditEventListResponse(BaseModel):
    events: list[AuditEvent]
    total: int


class NarrativeResponse(BaseModel):
    narrative: str
    format: str
    tokens_used: int
    generated_at: datetime


class RiskMapNode(BaseModel):
    id: str
    label: str
    type: Literal["simulation", "outcome", "risk", "opportunity"]
    risk_level: RiskLevel | None = None
    details: dict[str, Any] = Field(default_factory=dict)


class RiskMapEdge(BaseModel):
    source: str
    target: str
    label: str | None = None
    condition_met: bool = False


class RiskFactor(BaseModel):
    factor: str
    severity: RiskLevel
    source: str
    mitigations: list[str] | None = None


class Opportunity(BaseModel):
    opportunity: str
    impact: Literal["low", "medium", "high"]
    source: str


class SuiteRiskMap(BaseModel):
    run_id: UUID
    suite_id: UUID
    nodes: list[RiskMapNode]
    edges: list[RiskMapEdge]
    aggregate_risk_level: RiskLevel
    risk_factors: list[RiskFactor]
    opportunities: list[Opportunity]
    generated_at: datetime


class ConditionEvaluationStats(BaseModel):
    type: str
    evaluations: int = 0
    met_count: int = 0
    unmet_count: int = 0


class ItemMetrics(BaseModel):
    run_item_id: UUID
    suite_item_id: UUID
    label: str
    status: SuiteRunItemStatus
    risk_level: RiskLevel | None = None


class SuiteRunMetrics(BaseModel):
    run_id: UUID
    suite_id: UUID
    total_items: int
    completed_items: int
    failed_items: int
    skipped_items: int
    pending_items: int
    condition_met_items: int
    condition_unmet_items: int
    aggregate_risk_level: RiskLevel
    risk_level_distribution: dict[str, int]
    condition_evaluations: list[ConditionEvaluationStats]
    item_metrics: list[ItemMetrics]


class SuiteStats(BaseModel):
    total_suites: int
    by_status: dict[str, int]
    total_runs: int
    runs_by_status: dict[str, int]
    average_items_per_suite: float
    average_run_duration_ms: float
    most_used_condition_type: str
    risk_distribution: dict[str, int]
