import uuid
from typing import Optional, List, Dict, Any, Tuple, Sequence
from datetime import datetime, date, timedelta
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, desc, func

from .database import User, JournalEntry, GratitudeEntry, utcnow, as_utc
from .auth_utils import get_password_hash, verify_password


# --- Users ---

async def get_user_by_id(db: AsyncSession, user_id: uuid.UUID) -> Optional[User]:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.email == email.lower()))
    return result.scalar_one_or_none()


async def create_user(db: AsyncSession, username: str, email: str, password: str) -> User:
    """
    Create a new user. Raises ValueError if the email is already registered.
    """
    if await get_user_by_email(db, email):
        raise ValueError("User with this email already exists")
    user = User(
        username=username,
        email=email.lower(),
        password_hash=get_password_hash(password),
    )
    db.add(user)
    await db.flush()
    await db.refresh(user)
    return user


async def authenticate_user(db: AsyncSession, email: str, password: str) -> Optional[User]:
    user = await get_user_by_email(db, email)
    if not user or not verify_password(password, user.password_hash):
        return None
    return user


async def record_journal_activity(
    db: AsyncSession, user_id: uuid.UUID, now: Optional[datetime] = None
) -> Optional[User]:
    """
    Advance the user's day streak for a journal entry written at ``now``.

    Same UTC day as the last entry leaves the streak alone, the following day
    extends it, and any longer gap restarts it at 1.
    """
    user = await get_user_by_id(db, user_id)
    if not user:
        return None
    now = now or utcnow()
    today = now.date()
    last = as_utc(user.last_entry_date)

    if last is None:
        user.current_streak = 1
    else:
        last_day = last.date()
        if last_day == today:
            user.current_streak = user.current_streak or 1
        elif last_day == today - timedelta(days=1):
            user.current_streak = (user.current_streak or 0) + 1
        else:
            user.current_streak = 1
    user.longest_streak = max(user.longest_streak or 0, user.current_streak)
    user.last_entry_date = now
    await db.flush()
    return user


# --- Journal entries ---

async def create_entry(
    db: AsyncSession,
    user_id: uuid.UUID,
    content: str,
    mood_score: Optional[int] = None,
    mood_label: Optional[str] = None,
    tags: Optional[List[str]] = None,
    entry_date: Optional[datetime] = None,
) -> JournalEntry:
    entry = JournalEntry(
        user_id=user_id,
        content=content,
        date=entry_date or utcnow(),
        mood_score=mood_score,
        mood_label=mood_label,
        tags=list(tags or []),
        processed=False,
    )
    db.add(entry)
    await db.flush()
    await db.refresh(entry)
    return entry


async def get_entry(db: AsyncSession, entry_id: uuid.UUID) -> Optional[JournalEntry]:
    """Point lookup by id only; used by the analysis engine."""
    result = await db.execute(select(JournalEntry).where(JournalEntry.id == entry_id))
    return result.scalar_one_or_none()


async def get_user_entry(
    db: AsyncSession, entry_id: uuid.UUID, user_id: uuid.UUID
) -> Optional[JournalEntry]:
    result = await db.execute(
        select(JournalEntry).where(
            JournalEntry.id == entry_id,
            JournalEntry.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def list_user_entries(db: AsyncSession, user_id: uuid.UUID) -> Sequence[JournalEntry]:
    result = await db.execute(
        select(JournalEntry)
        .where(JournalEntry.user_id == user_id)
        .order_by(desc(JournalEntry.date))
    )
    return result.scalars().all()


EDITABLE_ENTRY_FIELDS = ("content", "mood_score", "mood_label", "tags")


async def update_entry_fields(
    db: AsyncSession,
    entry: JournalEntry,
    changes: Dict[str, Any],
    clear_analysis: bool = False,
) -> JournalEntry:
    """
    Overwrite the user-editable fields named in ``changes``; others keep their values.

    With ``clear_analysis`` the previous analysis is dropped in the same write so
    a stale reflection is never shown next to edited content.
    """
    for name, value in changes.items():
        if name not in EDITABLE_ENTRY_FIELDS:
            raise ValueError(f"Field {name!r} is not editable")
        setattr(entry, name, value)
    if clear_analysis:
        entry.supportive_response = None
        entry.identified_patterns = None
        entry.suggested_strategies = None
        entry.processed = False
    await db.flush()
    await db.refresh(entry)
    return entry


async def delete_user_entry(db: AsyncSession, entry_id: uuid.UUID, user_id: uuid.UUID) -> bool:
    result = await db.execute(
        delete(JournalEntry).where(
            JournalEntry.id == entry_id,
            JournalEntry.user_id == user_id,
        )
    )
    return result.rowcount > 0


async def update_entry_analysis(
    db: AsyncSession,
    entry_id: uuid.UUID,
    supportive_response: str,
    identified_patterns: List[str],
    suggested_strategies: List[str],
) -> bool:
    """
    Replace the analysis of an entry and mark it processed.

    Only the analysis columns are written. Returns False when the entry no
    longer exists.
    """
    result = await db.execute(
        update(JournalEntry)
        .where(JournalEntry.id == entry_id)
        .values(
            supportive_response=supportive_response,
            identified_patterns=list(identified_patterns),
            suggested_strategies=list(suggested_strategies),
            processed=True,
        )
    )
    return result.rowcount > 0


async def get_unprocessed_entry_ids(db: AsyncSession, user_id: uuid.UUID) -> List[uuid.UUID]:
    result = await db.execute(
        select(JournalEntry.id)
        .where(
            JournalEntry.user_id == user_id,
            JournalEntry.processed.isnot(True),
        )
        .order_by(JournalEntry.date.asc())
    )
    return list(result.scalars().all())


async def count_unprocessed_entries(db: AsyncSession, user_id: uuid.UUID) -> int:
    result = await db.execute(
        select(func.count(JournalEntry.id)).where(
            JournalEntry.user_id == user_id,
            JournalEntry.processed.isnot(True),
        )
    )
    return result.scalar_one()


async def count_user_entries(db: AsyncSession, user_id: uuid.UUID) -> int:
    result = await db.execute(
        select(func.count(JournalEntry.id)).where(JournalEntry.user_id == user_id)
    )
    return result.scalar_one()


async def get_mood_label_counts(db: AsyncSession, user_id: uuid.UUID) -> List[Tuple[str, int]]:
    """Group-count entries by mood label, skipping unlabelled entries."""
    count = func.count(JournalEntry.id)
    result = await db.execute(
        select(JournalEntry.mood_label, count)
        .where(
            JournalEntry.user_id == user_id,
            JournalEntry.mood_label.isnot(None),
        )
        .group_by(JournalEntry.mood_label)
        .order_by(desc(count), JournalEntry.mood_label)
    )
    return [(label, n) for label, n in result.all()]


async def get_mood_scores(db: AsyncSession, user_id: uuid.UUID) -> List[Optional[int]]:
    result = await db.execute(
        select(JournalEntry.mood_score).where(JournalEntry.user_id == user_id)
    )
    return list(result.scalars().all())


async def get_mood_trend(
    db: AsyncSession, user_id: uuid.UUID, since: datetime
) -> List[Tuple[datetime, Optional[int]]]:
    result = await db.execute(
        select(JournalEntry.date, JournalEntry.mood_score)
        .where(
            JournalEntry.user_id == user_id,
            JournalEntry.date >= since,
        )
        .order_by(JournalEntry.date.asc())
    )
    return [(as_utc(d), score) for d, score in result.all()]


async def get_processed_patterns(db: AsyncSession, user_id: uuid.UUID) -> List[List[str]]:
    result = await db.execute(
        select(JournalEntry.identified_patterns)
        .where(
            JournalEntry.user_id == user_id,
            JournalEntry.processed.is_(True),
        )
        .order_by(JournalEntry.date.asc())
    )
    return [patterns or [] for patterns in result.scalars().all()]


async def get_entries_for_wordcloud(
    db: AsyncSession, user_id: uuid.UUID, since: datetime
) -> List[Dict[str, Any]]:
    """Project the fields the word cloud needs for entries dated on or after ``since``."""
    result = await db.execute(
        select(JournalEntry.content, JournalEntry.mood_label, JournalEntry.identified_patterns)
        .where(
            JournalEntry.user_id == user_id,
            JournalEntry.date >= since,
        )
        .order_by(JournalEntry.date.asc())
    )
    return [
        {"content": content, "mood_label": label, "identified_patterns": patterns or []}
        for content, label, patterns in result.all()
    ]


# --- Gratitude ---

async def get_gratitude_for_day(
    db: AsyncSession, user_id: uuid.UUID, day: date
) -> Optional[GratitudeEntry]:
    result = await db.execute(
        select(GratitudeEntry).where(
            GratitudeEntry.user_id == user_id,
            GratitudeEntry.day == day,
        )
    )
    return result.scalar_one_or_none()


async def get_recent_gratitude(
    db: AsyncSession, user_id: uuid.UUID, since_day: date
) -> Sequence[GratitudeEntry]:
    result = await db.execute(
        select(GratitudeEntry)
        .where(
            GratitudeEntry.user_id == user_id,
            GratitudeEntry.day >= since_day,
        )
        .order_by(desc(GratitudeEntry.day))
    )
    return result.scalars().all()


async def upsert_gratitude(
    db: AsyncSession, user_id: uuid.UUID, day: date, entries: List[str]
) -> GratitudeEntry:
    """Create or replace the user's gratitude list for ``day``."""
    items = [{"content": text} for text in entries]
    gratitude = await get_gratitude_for_day(db, user_id, day)
    if gratitude is None:
        gratitude = GratitudeEntry(user_id=user_id, day=day, entries=items)
        db.add(gratitude)
    else:
        gratitude.entries = items
    await db.flush()
    await db.refresh(gratitude)
    return gratitude
