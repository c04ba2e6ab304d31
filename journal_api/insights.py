"""
Mood and pattern insights over a user's journal.
"""

import uuid
from collections import Counter
from datetime import datetime, timedelta
from typing import Optional, List, Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from .config import settings
from .crud import (
    count_user_entries,
    count_unprocessed_entries,
    get_mood_label_counts,
    get_mood_scores,
    get_mood_trend,
    get_processed_patterns,
)
from .database import utcnow
from .schemas import MOOD_LABELS, InsightsResponse, MoodCount, MoodTrendPoint, PatternCount, TrendMood


def bucket_mood_score(score: int) -> str:
    """Map a 1-10 score onto the five mood labels (upper bounds inclusive)."""
    if score <= 2:
        return "Very Negative"
    if score <= 4:
        return "Negative"
    if score <= 6:
        return "Neutral"
    if score <= 8:
        return "Positive"
    return "Very Positive"


def distribution_from_scores(scores: Iterable[Optional[int]]) -> List[MoodCount]:
    counts = Counter(bucket_mood_score(score) for score in scores if score)
    return [MoodCount(label=label, count=counts[label]) for label in MOOD_LABELS if counts[label]]


def top_patterns(pattern_lists: Iterable[List[str]], limit: int) -> List[PatternCount]:
    counts = Counter(pattern for patterns in pattern_lists for pattern in patterns if pattern)
    return [PatternCount(pattern=p, count=n) for p, n in counts.most_common(limit)]


async def get_mood_distribution(db: AsyncSession, user_id: uuid.UUID) -> List[MoodCount]:
    """Counts per mood label; entries that only carry a score are bucketed when no labels exist."""
    labelled = await get_mood_label_counts(db, user_id)
    if labelled:
        return [MoodCount(label=label, count=count) for label, count in labelled]
    return distribution_from_scores(await get_mood_scores(db, user_id))


async def get_insights(
    db: AsyncSession, user_id: uuid.UUID, now: Optional[datetime] = None
) -> InsightsResponse:
    if await count_user_entries(db, user_id) == 0:
        return InsightsResponse()

    now = now or utcnow()
    since = now - timedelta(days=settings.mood_trend_days)
    trend = await get_mood_trend(db, user_id, since)

    return InsightsResponse(
        mood_distribution=await get_mood_distribution(db, user_id),
        mood_trend=[MoodTrendPoint(date=d, mood=TrendMood(score=score)) for d, score in trend],
        common_patterns=top_patterns(
            await get_processed_patterns(db, user_id), settings.top_patterns_limit
        ),
        unprocessed_count=await count_unprocessed_entries(db, user_id),
    )
