"""API endpoints for executing scenario suites."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Path, Query

from scenario_engine.api.deps import get_user_id
from scenario_engine.core.errors import OrchestrationError
from scenario_engine.core.logging import get_logger
from scenario_engine.core.schemas_orchestration import (
    AbortRunRequest,
    AdvanceRunRequest,
    AdvanceRunResponse,
    AuditEventListResponse,
    GenerateNarrativeRequest,
    GenerateRiskMapRequest,
    NarrativeResponse,
    RecordItemResultRequest,
    RunDetailResponse,
    RunListResponse,
    StartRunRequest,
    SuiteRiskMap,
    SuiteRun,
    SuiteRunMetrics,
    SuiteRunStatus,
)
from scenario_engine.services import suite_orchestrator

logger = get_logger(__name__)

router = APIRouter()


@router.post("/suites/{suite_id}/runs", response_model=RunDetailResponse, status_code=201)
async def start_run(
    request: StartRunRequest | None = None,
    org_id: UUID = Path(..., description="Organization UUID"),
    suite_id: UUID = Path(..., description="Suite UUID"),
    user_id: UUID | None = Depends(get_user_id),
) -> RunDetailResponse:
    """
    Start a new run of a suite.

    Raises:
        HTTPException 404: If suite not found
        HTTPException 409: If the suite is empty or archived
        HTTPException 500: If database operation fails
    """
    try:
        logger.info(f"Starting run of suite {suite_id}", extra={"org_id": str(org_id), "suite_id": str(suite_id)})
        return suite_orchestrator.start_run(org_id, suite_id, request or StartRunRequest(), user_id=user_id)
    except OrchestrationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message) from e
    except Exception as e:
        error_msg = f"Failed to start suite run: {str(e)}"
        logger.error(error_msg, extra={"org_id": str(org_id), "suite_id": str(suite_id)}, exc_info=True)
        raise HTTPException(status_code=500, detail=error_msg) from e


@router.get("/suites/{suite_id}/runs", response_model=RunListResponse)
async def list_runs(
    org_id: UUID = Path(..., description="Organization UUID"),
    suite_id: UUID = Path(..., description="Suite UUID"),
    status: SuiteRunStatus | None = Query(None, description="Optional status filter"),
    limit: int | None = Query(None, ge=1, le=100),
    offset: int = Query(0, ge=0),
) -> RunListResponse:
    try:
        return suite_orchestrator.list_runs(org_id, suite_id, status=status, limit=limit, offset=offset)
    except OrchestrationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message) from e
    except Exception as e:
        error_msg = f"Failed to list suite runs: {str(e)}"
        logger.error(error_msg, extra={"org_id": str(org_id), "suite_id": str(suite_id)}, exc_info=True)
        raise HTTPException(status_code=500, detail=error_msg) from e


@router.get("/suite-runs/{run_id}", response_model=RunDetailResponse)
async def get_run(
    org_id: UUID = Path(..., description="Organization UUID"),
    run_id: UUID = Path(..., description="Suite run UUID"),
) -> RunDetailResponse:
    try:
        return suite_orchestrator.get_run(org_id, run_id)
    except OrchestrationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message) from e
    except Exception as e:
        error_msg = f"Failed to get suite run: {str(e)}"
        logger.error(error_msg, extra={"org_id": str(org_id), "run_id": str(run_id)}, exc_info=True)
        raise HTTPException(status_code=500, detail=error_msg) from e


@router.post("/suite-runs/{run_id}/advance", response_model=AdvanceRunResponse)
async def advance_run(
    request: AdvanceRunRequest | None = None,
    org_id: UUID = Path(..., description="Organization UUID"),
    run_id: UUID = Path(..., description="Suite run UUID"),
    user_id: UUID | None = Depends(get_user_id),
) -> AdvanceRunResponse:
    """
    Complete the current step and move to the next triggered one.

    Raises:
        HTTPException 404: If run not found
        HTTPException 409: If the run is not running
        HTTPException 500: If database operation fails
    """
    try:
        return suite_orchestrator.advance_run(org_id, run_id, request or AdvanceRunRequest(), user_id=user_id)
    except OrchestrationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message) from e
    except Exception as e:
        error_msg = f"Failed to advance suite run: {str(e)}"
        logger.error(error_msg, extra={"org_id": str(org_id), "run_id": str(run_id)}, exc_info=True)
        raise HTTPException(status_code=500, detail=error_msg) from e


@router.post("/suite-runs/{run_id}/abort", response_model=SuiteRun)
async def abort_run(
    request: AbortRunRequest | None = None,
    org_id: UUID = Path(..., description="Organization UUID"),
    run_id: UUID = Path(..., description="Suite run UUID"),
    user_id: UUID | None = Depends(get_user_id),
) -> SuiteRun:
    try:
        reason = request.reason if request else None
        logger.info(f"Aborting run {run_id}", extra={"org_id": str(org_id), "run_id": str(run_id)})
        return suite_orchestrator.abort_run(org_id, run_id, reason=reason, user_id=user_id)
    except OrchestrationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message) from e
    except Exception as e:
        error_msg = f"Failed to abort suite run: {str(e)}"
        logger.error(error_msg, extra={"org_id": str(org_id), "run_id": str(run_id)}, exc_info=True)
        raise HTTPException(status_code=500, detail=error_msg) from e


@router.post("/suite-runs/{run_id}/items/{run_item_id}/result", response_model=RunDetailResponse)
async def record_item_result(
    request: RecordItemResultRequest,
    org_id: UUID = Path(..., description="Organization UUID"),
    run_id: UUID = Path(..., description="Suite run UUID"),
    run_item_id: UUID = Path(..., description="Suite run item UUID"),
    user_id: UUID | None = Depends(get_user_id),
) -> RunDetailResponse:
    """
    Report the outcome of the current step.

    Raises:
        HTTPException 404: If run or step not found
        HTTPException 409: If the run or step cannot take the result
    """
    try:
        return suite_orchestrator.record_item_result(org_id, run_id, run_item_id, request, user_id=user_id)
    except OrchestrationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message) from e
    except Exception as e:
        error_msg = f"Failed to record step result: {str(e)}"
        logger.error(error_msg, extra={"org_id": str(org_id), "run_id": str(run_id)}, exc_info=True)
        raise HTTPException(status_code=500, detail=error_msg) from e


@router.get("/suite-runs/{run_id}/metrics", response_model=SuiteRunMetrics)
async def get_run_metrics(
    org_id: UUID = Path(..., description="Organization UUID"),
    run_id: UUID = Path(..., description="Suite run UUID"),
) -> SuiteRunMetrics:
    try:
        return suite_orchestrator.get_run_metrics(org_id, run_id)
    except OrchestrationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message) from e
    except Exception as e:
        error_msg = f"Failed to get run metrics: {str(e)}"
        logger.error(error_msg, extra={"org_id": str(org_id), "run_id": str(run_id)}, exc_info=True)
        raise HTTPException(status_code=500, detail=error_msg) from e


@router.post("/suite-runs/{run_id}/narrative", response_model=NarrativeResponse)
async def generate_narrative(
    request: GenerateNarrativeRequest | None = None,
    org_id: UUID = Path(..., description="Organization UUID"),
    run_id: UUID = Path(..., description="Suite run UUID"),
    user_id: UUID | None = Depends(get_user_id),
) -> NarrativeResponse:
    try:
        return suite_orchestrator.generate_narrative(
            org_id, run_id, request or GenerateNarrativeRequest(), user_id=user_id
        )
    except OrchestrationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message) from e
    except Exception as e:
        error_msg = f"Failed to generate narrative: {str(e)}"
        logger.error(error_msg, extra={"org_id": str(org_id), "run_id": str(run_id)}, exc_info=True)
        raise HTTPException(status_code=500, detail=error_msg) from e


@router.post("/suite-runs/{run_id}/risk-map", response_model=SuiteRiskMap)
async def generate_risk_map(
    request: GenerateRiskMapRequest | None = None,
    org_id: UUID = Path(..., description="Organization UUID"),
    run_id: UUID = Path(..., description="Suite run UUID"),
    user_id: UUID | None = Depends(get_user_id),
) -> SuiteRiskMap:
    try:
        return suite_orchestrator.generate_risk_map(
            org_id, run_id, request or GenerateRiskMapRequest(), user_id=user_id
        )
    except OrchestrationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message) from e
    except Exception as e:
        error_msg = f"Failed to generate risk map: {str(e)}"
        logger.error(error_msg, extra={"org_id": str(org_id), "run_id": str(run_id)}, exc_info=True)
        raise HTTPException(status_code=500, detail=error_msg) from e


@router.get("/suite-runs/{run_id}/audit-log", response_model=AuditEventListResponse)
async def list_run_audit_log(
    org_id: UUID = Path(..., description="Organization UUID"),
    run_id: UUID = Path(..., description="Suite run UUID"),
    limit: int | None = Query(None, ge=1, le=200),
    offset: int = Query(0, ge=0),
) -> AuditEventListResponse:
    try:
        return suite_orchestrator.list_run_audit_events(org_id, run_id, limit=limit, offset=offset)
    except OrchestrationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message) from e
    except Exception as e:
        error_msg = f"Failed to list audit events: {str(e)}"
        logger.error(error_msg, extra={"org_id": str(org_id), "run_id": str(run_id)}, exc_info=True)
        raise HTTPException(status_code=500, detail=error_msg) from e
