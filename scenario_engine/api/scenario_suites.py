"""API endpoints for scenario suite management."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Response

from scenario_engine.api.deps import get_user_id
from scenario_engine.core.errors import OrchestrationError
from scenario_engine.core.logging import get_logger
from scenario_engine.core.schemas_orchestration import (
    ArchiveSuiteRequest,
    AuditEventListResponse,
    CreateSuiteItemRequest,
    CreateSuiteRequest,
    Suite,
    SuiteDetailResponse,
    SuiteItemResponse,
    SuiteListResponse,
    SuiteStats,
    SuiteStatus,
    UpdateSuiteItemRequest,
    UpdateSuiteRequest,
)
from scenario_engine.services import suite_orchestrator

logger = get_logger(__name__)

router = APIRouter()


@router.get("/suites", response_model=SuiteListResponse)
async def list_suites(
    org_id: UUID = Path(..., description="Organization UUID"),
    status: SuiteStatus | None = Query(None, description="Optional status filter"),
    search: str | None = Query(None, max_length=200, description="Name search"),
    include_archived: bool = Query(False),
    limit: int | None = Query(None, ge=1, le=100),
    offset: int = Query(0, ge=0),
) -> SuiteListResponse:
    """
    List suites for an org.

    Raises:
        HTTPException 500: If database operation fails
    """
    try:
        return suite_orchestrator.list_suites(
            org_id,
            status=status,
            search=search,
            include_archived=include_archived,
            limit=limit,
            offset=offset,
        )
    except OrchestrationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message) from e
    except Exception as e:
        error_msg = f"Failed to list suites: {str(e)}"
        logger.error(error_msg, extra={"org_id": str(org_id)}, exc_info=True)
        raise HTTPException(status_code=500, detail=error_msg) from e


@router.post("/suites", response_model=SuiteDetailResponse, status_code=201)
async def create_suite(
    request: CreateSuiteRequest,
    org_id: UUID = Path(..., description="Organization UUID"),
    user_id: UUID | None = Depends(get_user_id),
) -> SuiteDetailResponse:
    """
    Create a suite, optionally with its initial items.

    Raises:
        HTTPException 400: If item order indexes collide
        HTTPException 500: If database operation fails
    """
    try:
        logger.info(f"Creating suite {request.name!r}", extra={"org_id": str(org_id)})
        return suite_orchestrator.create_suite(org_id, request, user_id=user_id)
    except OrchestrationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message) from e
    except Exception as e:
        error_msg = f"Failed to create suite: {str(e)}"
        logger.error(error_msg, extra={"org_id": str(org_id)}, exc_info=True)
        raise HTTPException(status_code=500, detail=error_msg) from e


@router.get("/suites/{suite_id}", response_model=SuiteDetailResponse)
async def get_suite(
    org_id: UUID = Path(..., description="Organization UUID"),
    suite_id: UUID = Path(..., description="Suite UUID"),
) -> SuiteDetailResponse:
    """
    Get a suite with its items.

    Raises:
        HTTPException 404: If suite not found
        HTTPException 500: If database operation fails
    """
    try:
        return suite_orchestrator.get_suite(org_id, suite_id)
    except OrchestrationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message) from e
    except Exception as e:
        error_msg = f"Failed to get suite: {str(e)}"
        logger.error(error_msg, extra={"org_id": str(org_id), "suite_id": str(suite_id)}, exc_info=True)
        raise HTTPException(status_code=500, detail=error_msg) from e


@router.patch("/suites/{suite_id}", response_model=Suite)
async def update_suite(
    request: UpdateSuiteRequest,
    org_id: UUID = Path(..., description="Organization UUID"),
    suite_id: UUID = Path(..., description="Suite UUID"),
    user_id: UUID | None = Depends(get_user_id),
) -> Suite:
    try:
        return suite_orchestrator.update_suite(org_id, suite_id, request, user_id=user_id)
    except OrchestrationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message) from e
    except Exception as e:
        error_msg = f"Failed to update suite: {str(e)}"
        logger.error(error_msg, extra={"org_id": str(org_id), "suite_id": str(suite_id)}, exc_info=True)
        raise HTTPException(status_code=500, detail=error_msg) from e


@router.post("/suites/{suite_id}/archive", response_model=Suite)
async def archive_suite(
    request: ArchiveSuiteRequest | None = None,
    org_id: UUID = Path(..., description="Organization UUID"),
    suite_id: UUID = Path(..., description="Suite UUID"),
    user_id: UUID | None = Depends(get_user_id),
) -> Suite:
    try:
        reason = request.reason if request else None
        logger.info(f"Archiving suite {suite_id}", extra={"org_id": str(org_id), "suite_id": str(suite_id)})
        return suite_orchestrator.archive_suite(org_id, suite_id, reason=reason, user_id=user_id)
    except OrchestrationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message) from e
    except Exception as e:
        error_msg = f"Failed to archive suite: {str(e)}"
        logger.error(error_msg, extra={"org_id": str(org_id), "suite_id": str(suite_id)}, exc_info=True)
        raise HTTPException(status_code=500, detail=error_msg) from e


@router.post("/suites/{suite_id}/items", response_model=SuiteItemResponse, status_code=201)
async def add_suite_item(
    request: CreateSuiteItemRequest,
    org_id: UUID = Path(..., description="Organization UUID"),
    suite_id: UUID = Path(..., description="Suite UUID"),
    user_id: UUID | None = Depends(get_user_id),
) -> SuiteItemResponse:
    """
    Add a step to a suite.

    Raises:
        HTTPException 400: If the order index is already used
        HTTPException 404: If suite not found
        HTTPException 409: If the suite is archived or running
    """
    try:
        item = suite_orchestrator.add_suite_item(org_id, suite_id, request, user_id=user_id)
        return SuiteItemResponse(item=item)
    except OrchestrationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message) from e
    except Exception as e:
        error_msg = f"Failed to add suite item: {str(e)}"
        logger.error(error_msg, extra={"org_id": str(org_id), "suite_id": str(suite_id)}, exc_info=True)
        raise HTTPException(status_code=500, detail=error_msg) from e


@router.patch("/suite-items/{item_id}", response_model=SuiteItemResponse)
async def update_suite_item(
    request: UpdateSuiteItemRequest,
    org_id: UUID = Path(..., description="Organization UUID"),
    item_id: UUID = Path(..., description="Suite item UUID"),
    user_id: UUID | None = Depends(get_user_id),
) -> SuiteItemResponse:
    try:
        item = suite_orchestrator.update_suite_item(org_id, item_id, request, user_id=user_id)
        return SuiteItemResponse(item=item)
    except OrchestrationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message) from e
    except Exception as e:
        error_msg = f"Failed to update suite item: {str(e)}"
        logger.error(error_msg, extra={"org_id": str(org_id)}, exc_info=True)
        raise HTTPException(status_code=500, detail=error_msg) from e


@router.delete("/suite-items/{item_id}", status_code=204)
async def remove_suite_item(
    org_id: UUID = Path(..., description="Organization UUID"),
    item_id: UUID = Path(..., description="Suite item UUID"),
    user_id: UUID | None = Depends(get_user_id),
) -> Response:
    try:
        suite_orchestrator.remove_suite_item(org_id, item_id, user_id=user_id)
        return Response(status_code=204)
    except OrchestrationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message) from e
    except Exception as e:
        error_msg = f"Failed to remove suite item: {str(e)}"
        logger.error(error_msg, extra={"org_id": str(org_id)}, exc_info=True)
        raise HTTPException(status_code=500, detail=error_msg) from e


@router.get("/suites/{suite_id}/audit-log", response_model=AuditEventListResponse)
async def list_suite_audit_log(
    org_id: UUID = Path(..., description="Organization UUID"),
    suite_id: UUID = Path(..., description="Suite UUID"),
    limit: int | None = Query(None, ge=1, le=200),
    offset: int = Query(0, ge=0),
) -> AuditEventListResponse:
    try:
        return suite_orchestrator.list_suite_audit_events(org_id, suite_id, limit=limit, offset=offset)
    except OrchestrationError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message) from e
    except Exception as e:
        error_msg = f"Failed to list audit events: {str(e)}"
        logger.error(error_msg, extra={"org_id": str(org_id), "suite_id": str(suite_id)}, exc_info=True)
        raise HTTPException(status_code=500, detail=error_msg) from e


@router.get("/stats", response_model=SuiteStats)
async def get_stats(org_id: UUID = Path(..., description="Organization UUID")) -> SuiteStats:
    """Suite and run statistics for an org."""
    try:
        return suite_orchestrator.get_stats(org_id)
    except Exception as e:
        error_msg = f"Failed to get suite stats: {str(e)}"
        logger.error(error_msg, extra={"org_id": str(org_id)}, exc_info=True)
        raise HTTPException(status_code=500, detail=error_msg) from e
