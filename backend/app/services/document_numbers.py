"""
Document number issuance.

Numbers come from one counter row per prefix, advanced by a single
``UPDATE ... RETURNING`` statement so concurrent submissions can never be
handed the same value. Numbers are formatted ``<prefix>-<6 digits>``.
"""

import logging

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import settings
from backend.app.models.document_counter import DocumentCounter

logger = logging.getLogger("checklist")

NUMBER_WIDTH = 6


def format_document_number(prefix: str, value: int) -> str:
    return f"{prefix}-{value:0{NUMBER_WIDTH}d}"


async def _advance(db: AsyncSession, prefix: str):
    result = await db.execute(
        update(DocumentCounter)
        .where(DocumentCounter.prefix == prefix)
        .values(last_value=DocumentCounter.last_value + 1)
        .returning(DocumentCounter.last_value)
        .execution_options(synchronize_session=False)
    )
    return result.scalar_one_or_none()


async def ensure_counter(db: AsyncSession, prefix: str = None) -> None:
    """Create the counter row for ``prefix`` if it is missing. Commits."""
    prefix = prefix or settings.document_prefix
    existing = await db.execute(select(DocumentCounter.prefix).where(DocumentCounter.prefix == prefix))
    if existing.scalar_one_or_none() is not None:
        return
    db.add(DocumentCounter(prefix=prefix, last_value=0))
    try:
        await db.commit()
    except IntegrityError:
        # Another worker created it first
        await db.rollback()


async def issue_document_number(db: AsyncSession, prefix: str = None) -> str:
    """
    Reserve the next document number inside the caller's transaction.

    Does not commit: if the surrounding transaction rolls back, the counter
    step rolls back with it.
    """
    prefix = prefix or settings.document_prefix

    value = await _advance(db, prefix)
    if value is None:
        try:
            async with db.begin_nested():
                db.add(DocumentCounter(prefix=prefix, last_value=0))
        except IntegrityError:
            logger.debug("Counter row for %s created concurrently", prefix)
        value = await _advance(db, prefix)

    return format_document_number(prefix, value)
