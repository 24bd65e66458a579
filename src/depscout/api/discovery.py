"""API endpoints for starting and inspecting discovery sessions."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field, field_validator

from depscout.discovery.service import DiscoveryService
from depscout.discovery.session import DiscoverySession
from depscout.exceptions import ConfigError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/discovery", tags=["discovery"])


class StartDiscoveryRequest(BaseModel):
    """Request body for starting a discovery session."""

    project_path: str = Field(description="Absolute path of the project to analyze", min_length=1)
    config: dict[str, Any] | None = Field(
        default=None,
        description="Optional per-session overrides (max_concurrency, min_confidence, ...)",
    )

    @field_validator("project_path")
    @classmethod
    def project_path_not_blank(cls, v: str) -> str:
        """Validate project_path is not just whitespace."""
        if not v.strip():
            raise ValueError("project_path cannot be empty or whitespace only")
        return v.strip()


class StartDiscoveryResponse(BaseModel):
    session_id: str = Field(description="Identifier of the scheduled session")


def get_discovery_service(request: Request) -> DiscoveryService:
    """Return the service attached to the application state."""
    return request.app.state.discovery_service


@router.post(
    "",
    response_model=StartDiscoveryResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={
        202: {"description": "Discovery scheduled"},
        400: {"description": "Invalid path or configuration override"},
    },
)
async def start_discovery(
    request: StartDiscoveryRequest,
    service: DiscoveryService = Depends(get_discovery_service),
) -> StartDiscoveryResponse:
    """Schedule discovery for a project and return its session id.

    The pipeline runs in the background; poll ``GET /api/v1/discovery/{id}``
    for progress.

    Raises:
        HTTPException: 400 if the config overrides are invalid.
    """
    try:
        session_id = await service.start_discovery(request.project_path, request.config)
    except ConfigError as e:
        logger.warning("Rejected discovery config: %s", e)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e

    logger.info("Scheduled discovery session %s for %s", session_id, request.project_path)
    return StartDiscoveryResponse(session_id=session_id)


@router.get("", response_model=list[DiscoverySession])
async def list_sessions(
    service: DiscoveryService = Depends(get_discovery_service),
) -> list[DiscoverySession]:
    """List snapshots of every session known to this server."""
    return service.get_all_sessions()


@router.get(
    "/{session_id}",
    response_model=DiscoverySession,
    responses={
        200: {"description": "Session snapshot"},
        404: {"description": "Session not found"},
    },
)
async def get_session(
    session_id: str,
    service: DiscoveryService = Depends(get_discovery_service),
) -> DiscoverySession:
    """Retrieve a snapshot of one session.

    Raises:
        HTTPException: 404 if the session doesn't exist.
    """
    session = service.get_session(session_id)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Session '{session_id}' not found",
        )
    return session
