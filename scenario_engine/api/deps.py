"""Shared dependencies for the scenario orchestration endpoints."""

from uuid import UUID

from fastapi import Header, HTTPException, status

from scenario_engine.core.config import get_settings


async def require_orchestration_enabled() -> None:
    """Reject every request while the feature flag is off."""
    if not get_settings().ENABLE_SCENARIO_ORCHESTRATION:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Scenario orchestration is not enabled",
        )


async def get_user_id(x_user_id: UUID | None = Header(None, description="Acting user")) -> UUID | None:
    return x_user_id
