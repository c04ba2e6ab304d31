"""
Background analysis of journal entries.

Entry writes hand the entry id to ``analysis_scheduler``, which runs the analysis
as a supervised asyncio task after the request has returned. Re-analysis of a
single entry and batch reprocessing of unprocessed entries run inline.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import Optional, Set

from sqlalchemy.ext.asyncio import AsyncSession

from .agents import journal_analysis_agent
from .config import settings
from .crud import get_entry, get_user_entry, get_unprocessed_entry_ids, update_entry_analysis
from .database import get_session_maker

logger = logging.getLogger(__name__)


class AnalysisOutcome(str, Enum):
    ANALYZED = "analyzed"   # model reply parsed and stored
    FALLBACK = "fallback"   # model failed; placeholder analysis stored
    SKIPPED = "skipped"     # no LLM credentials; nothing stored
    MISSING = "missing"     # entry not found (or deleted mid-flight); nothing stored


class EntryNotFoundError(Exception):
    def __init__(self, entry_id: uuid.UUID):
        super().__init__(f"Journal entry {entry_id} not found")
        self.entry_id = entry_id


@dataclass
class ReprocessSummary:
    processed_count: int
    remaining_count: int


async def _analyze(db: AsyncSession, entry_id: uuid.UUID) -> AnalysisOutcome:
    entry = await get_entry(db, entry_id)
    if entry is None:
        logger.info(f"Entry {entry_id} not found; nothing to analyze")
        return AnalysisOutcome.MISSING

    content = entry.content
    # End the read so no pooled connection is held while the model runs
    await db.commit()

    if not settings.llm_configured:
        logger.error(f"Gemini API key not configured; skipping analysis for entry {entry_id}")
        return AnalysisOutcome.SKIPPED

    result = await journal_analysis_agent(content)
    if result.is_fallback:
        logger.warning(f"Storing fallback analysis for entry {entry_id}")

    try:
        updated = await update_entry_analysis(
            db,
            entry_id,
            supportive_response=result.supportive_response,
            identified_patterns=result.identified_patterns,
            suggested_strategies=result.suggested_strategies,
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    if not updated:
        logger.info(f"Entry {entry_id} was deleted during analysis; result discarded")
        return AnalysisOutcome.MISSING
    return AnalysisOutcome.FALLBACK if result.is_fallback else AnalysisOutcome.ANALYZED


async def analyze_entry(entry_id: uuid.UUID, db: Optional[AsyncSession] = None) -> AnalysisOutcome:
    """
    Analyze one entry and store the result with ``processed=True``.

    LLM and parsing failures are absorbed into the fallback analysis; only store
    errors propagate. Without ``db`` a dedicated session is opened, which is what
    background tasks use.
    """
    if db is not None:
        return await _analyze(db, entry_id)
    async with get_session_maker()() as session:
        return await _analyze(session, entry_id)


class AnalysisScheduler:
    """Runs entry analyses as fire-and-forget asyncio tasks and logs their failures."""

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def schedule(self, entry_id: uuid.UUID) -> asyncio.Task:
        task = asyncio.create_task(analyze_entry(entry_id), name=f"analyze-entry-{entry_id}")
        self._tasks.add(task)
        task.add_done_callback(partial(self._on_done, entry_id))
        logger.debug(f"Scheduled analysis for entry {entry_id}")
        return task

    def _on_done(self, entry_id: uuid.UUID, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning(f"Analysis for entry {entry_id} was cancelled")
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Background analysis failed for entry {entry_id}", exc_info=exc)
        else:
            logger.info(f"Analysis for entry {entry_id} finished: {task.result().value}")

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for in-flight analyses, including ones scheduled while waiting."""
        while self._tasks:
            _, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
            if timeout is not None and pending:
                return

    async def shutdown(self, timeout: float = 10.0) -> None:
        await self.drain(timeout=timeout)
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)


async def reprocess_entry(db: AsyncSession, user_id: uuid.UUID, entry_id: uuid.UUID) -> AnalysisOutcome:
    """Re-analyze one of the user's entries now, overwriting any prior analysis."""
    entry = await get_user_entry(db, entry_id, user_id)
    if entry is None:
        raise EntryNotFoundError(entry_id)
    return await analyze_entry(entry.id, db=db)


async def reprocess_unprocessed(
    db: AsyncSession, user_id: uuid.UUID, limit: Optional[int] = None
) -> ReprocessSummary:
    """
    Analyze the user's unprocessed entries one at a time, oldest first, up to ``limit``.

    A failing entry is logged and skipped; the batch carries on.
    """
    entry_ids = await get_unprocessed_entry_ids(db, user_id)
    if not entry_ids:
        return ReprocessSummary(processed_count=0, remaining_count=0)

    limit = limit or settings.reprocess_batch_limit
    processed_count = 0
    for entry_id in entry_ids[:limit]:
        try:
            outcome = await analyze_entry(entry_id, db=db)
        except Exception as e:
            logger.error(f"Error processing entry {entry_id}: {e}", exc_info=True)
            continue
        if outcome in (AnalysisOutcome.ANALYZED, AnalysisOutcome.FALLBACK):
            processed_count += 1

    logger.info(f"Reprocess for user {user_id}: {processed_count} processed, "
                f"{len(entry_ids) - processed_count} remaining")
    return ReprocessSummary(
        processed_count=processed_count,
        remaining_count=len(entry_ids) - processed_count,
    )


analysis_scheduler = AnalysisScheduler()
