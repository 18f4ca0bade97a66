"""API dependencies."""

import logging
import secrets
from dataclasses import dataclass
from typing import AsyncGenerator

from fastapi import Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from vectorqueue.config import Environment, settings
from vectorqueue.db import base as db_base
from vectorqueue.engine.worker import VectorQueue

logger = logging.getLogger("vectorqueue.api")

DEV_TEAM_ID = "dev-team"
DEV_MEMBER_ID = "dev-member"


@dataclass
class Caller:
    """Team and member a request acts for."""

    team_id: str
    tmb_id: str


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session."""
    async with db_base.async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_vector_queue(request: Request) -> VectorQueue:
    """The process-wide queue runtime created at start-up."""
    queue = getattr(request.app.state, "vector_queue", None)
    if queue is None:
        raise HTTPException(status_code=503, detail="Vector queue not started")
    return queue


async def get_caller(
    x_team_id: str | None = Header(None, alias="X-Team-ID"),
    x_member_id: str | None = Header(None, alias="X-Member-ID"),
) -> Caller:
    """
    Extract team and member from request headers.

    Identity is resolved by the gateway in front of this service; in insecure
    development mode missing headers fall back to a fixed dev team.
    """
    if x_team_id and x_member_id:
        return Caller(team_id=x_team_id, tmb_id=x_member_id)

    if settings.allow_insecure_dev and settings.env == Environment.DEVELOPMENT:
        return Caller(team_id=x_team_id or DEV_TEAM_ID, tmb_id=x_member_id or DEV_MEMBER_ID)

    raise HTTPException(status_code=401, detail="Missing X-Team-ID or X-Member-ID")


async def verify_api_key(
    authorization: str | None = Header(None),
    x_api_key: str | None = Header(None, alias="X-API-Key"),
) -> None:
    """Verify the shared API key. Fails closed outside insecure dev mode."""
    if settings.allow_insecure_dev and settings.env == Environment.DEVELOPMENT:
        return

    api_key = None
    if authorization and authorization.startswith("Bearer "):
        api_key = authorization[7:]
    elif x_api_key:
        api_key = x_api_key

    if not api_key:
        raise HTTPException(
            status_code=401,
            detail="Missing authorization. Use Authorization: Bearer <key> or X-API-Key header",
        )

    if not settings.api_key:
        logger.error("No API key configured. Set VECTORQUEUE_API_KEY.")
        raise HTTPException(status_code=503, detail="Server misconfigured: no API key")

    if not secrets.compare_digest(api_key, settings.api_key):
        raise HTTPException(status_code=401, detail="Invalid API key")


def validate_auth_config() -> None:
    """
    Validate authentication configuration at startup.

    Raises:
        RuntimeError: If insecure dev mode is enabled outside development
    """
    if settings.allow_insecure_dev and settings.env != Environment.DEVELOPMENT:
        raise RuntimeError(
            f"SECURITY ERROR: allow_insecure_dev=true is only permitted in development. "
            f"Current environment: {settings.env.value}."
        )

    if settings.allow_insecure_dev:
        logger.warning("Running in INSECURE DEV MODE: authentication is disabled")
