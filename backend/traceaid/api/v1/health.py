"""Health check endpoint."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from traceaid.core.dependencies import get_db
from traceaid.schemas.common import Envelope

logger = logging.getLogger(__name__)

router = APIRouter()

VERSION = "0.1.0"


@router.get("/health", response_model=Envelope[dict])
async def health_check(db: AsyncSession = Depends(get_db)) -> Envelope[dict]:
    """Check DB connectivity."""
    db_status = "ok"
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.warning("Health check: database unreachable", exc_info=True)
        db_status = "error"

    status = "ok" if db_status == "ok" else "degraded"
    return Envelope(
        message=f"Service {status}",
        data={"status": status, "db": db_status, "version": VERSION},
    )
