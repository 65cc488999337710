import logging
from typing import Literal

from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy import text

from leavedesk.config import get_settings
from leavedesk.db import SessionDep
from leavedesk.services.directory import InMemoryDirectoryService, get_directory_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Liveness plus the state of the collaborators the workflow depends on."""

    status: Literal["ok", "degraded"]
    version: str
    environment: str
    database: Literal["ok", "unreachable"]
    directory: Literal["in_memory", "external"]


@router.get("/health", response_model=HealthResponse)
async def health(session: SessionDep) -> HealthResponse:
    """Unauthenticated probe; a dead database degrades the service rather than failing the probe."""
    settings = get_settings()
    database: Literal["ok", "unreachable"] = "ok"
    try:
        await session.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Health check could not reach the database")
        database = "unreachable"

    directory = get_directory_service()
    return HealthResponse(
        status="ok" if database == "ok" else "degraded",
        version=settings.app_version,
        environment=settings.environment,
        database=database,
        directory="in_memory" if isinstance(directory, InMemoryDirectoryService) else "external",
    )
