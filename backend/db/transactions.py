"""
Unit-of-work helper for multi-row workflows.

Commits once at the end of the block. Any failure rolls the whole session
back; domain errors propagate unchanged and anything else is reported as a
WorkflowFailed carrying the workflow's message.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import AppError, WorkflowFailed

logger = structlog.get_logger()


@asynccontextmanager
async def atomic(db: AsyncSession, failure_message: str) -> AsyncIterator[AsyncSession]:
    try:
        yield db
        await db.commit()
    except AppError:
        await db.rollback()
        raise
    except Exception as exc:
        await db.rollback()
        logger.error("transaction.rolled_back", failure=failure_message, error=str(exc), exc_info=True)
        raise WorkflowFailed(failure_message, details=str(exc)) from exc
