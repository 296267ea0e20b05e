"""API router for v1 endpoints."""

from fastapi import APIRouter, Depends

from scenario_engine.api import scenario_suites, suite_runs
from scenario_engine.api.deps import require_orchestration_enabled

ORCHESTRATION_PREFIX = "/orgs/{org_id}/scenario-orchestration"

router = APIRouter()

# Suite definitions, items, audit log and org stats
router.include_router(
    scenario_suites.router,
    prefix=ORCHESTRATION_PREFIX,
    tags=["scenario_suites"],
    dependencies=[Depends(require_orchestration_enabled)],
)

# Suite runs
router.include_router(
    suite_runs.router,
    prefix=ORCHESTRATION_PREFIX,
    tags=["suite_runs"],
    dependencies=[Depends(require_orchestration_enabled)],
)
