"""
Word-cloud data: the most frequent emotionally salient words in a user's entries.
"""

import calendar
import re
import uuid
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Optional, List, Dict, Any, Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from .config import settings
from .crud import get_entries_for_wordcloud
from .database import utcnow
from .schemas import WordFrequency

TIMEFRAMES = ("week", "month", "year", "all")

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Always kept, even when short or generic.
MOOD_WORDS = frozenset([
    # Positive
    "happy", "excited", "joy", "ecstatic", "peaceful", "content", "satisfied", "grateful", "optimistic",
    "confident", "enthusiastic", "proud", "calm", "relaxed", "hopeful", "blessed", "amazing", "wonderful",
    # Negative
    "sad", "angry", "anxious", "frustrated", "worried", "depressed", "stressed", "overwhelmed", "upset",
    "disappointed", "hurt", "lonely", "guilty", "insecure", "tired", "exhausted", "annoyed", "afraid",
    "nervous", "scared", "miserable", "helpless", "hopeless",
    # Neutral / mixed
    "confused", "surprised", "uncertain", "indifferent", "ambivalent", "curious", "thoughtful", "reflective",
    "nostalgic", "bittersweet", "contemplative",
])

STOPWORDS = frozenset("""
a about above across after afterwards again against all almost alone along already also although always am
among amongst an and another any anybody anyhow anyone anything anyway anywhere are around as at back be
became because become becomes becoming been before beforehand behind being below beside besides between
beyond both but by can cannot could did do does doing done down during each either else elsewhere enough
etc even ever every everyone everything everywhere except few for former formerly from further get gets
getting got had has have having he hence her here hereafter hereby herein hers herself him himself his how
however i if in indeed into is it its itself just last latter least less like made make many may me
meanwhile might mine more moreover most mostly much must my myself namely neither never nevertheless next
no nobody none noone nor not nothing now nowhere of off often on once one only onto or other others
otherwise our ours ourselves out over own per perhaps please put rather really same see seem seemed
seeming seems several she should since so some somehow someone something sometime sometimes somewhere
still such than that the their theirs them themselves then thence there thereafter thereby therefore
therein thereupon these they this those though through throughout thru thus to together too toward
towards under until up upon us very via was we well were what whatever when whence whenever where
whereafter whereas whereby wherein whereupon wherever whether which while whither who whoever whole whom
whose why will with within without would yet you your yours yourself yourselves
im ive id ill youre dont didnt doesnt isnt wasnt cant couldnt wont wouldnt shouldnt thats theres
""".split())

_PUNCT_RE = re.compile(r"[^\w\s]|_")
_SPACE_RE = re.compile(r"\s+")

MOOD_LABEL_WEIGHT = 3


def timeframe_start(timeframe: Optional[str], now: Optional[datetime] = None) -> datetime:
    """Lower bound on entry date for a timeframe; unknown values mean ``all``."""
    now = now or utcnow()
    if timeframe == "week":
        return now - timedelta(days=7)
    if timeframe == "month":
        year, month = (now.year, now.month - 1) if now.month > 1 else (now.year - 1, 12)
        day = min(now.day, calendar.monthrange(year, month)[1])
        return now.replace(year=year, month=month, day=day)
    if timeframe == "year":
        day = now.day
        if now.month == 2 and day == 29:
            day = 28
        return now.replace(year=now.year - 1, day=day)
    return EPOCH


def tokenize(text: str) -> List[str]:
    """Lowercase, drop punctuation, collapse whitespace and split."""
    cleaned = _SPACE_RE.sub(" ", _PUNCT_RE.sub("", text.lower())).strip()
    return cleaned.split(" ") if cleaned else []


def _keep(word: str) -> bool:
    if word in MOOD_WORDS:
        return True
    return word not in STOPWORDS and len(word) > 3


def extract_word_frequencies(
    entries: Iterable[Dict[str, Any]], limit: int = 100
) -> List[WordFrequency]:
    """
    Rank words across entries for the word cloud.

    Each entry dict carries ``content``, ``mood_label`` and ``identified_patterns``.
    Body text keeps mood words plus longer non-stopwords; each entry's mood label
    is counted three times and every longer word of its identified patterns once.
    """
    entries = list(entries)
    if not entries:
        return []

    all_content = " ".join(entry.get("content") or "" for entry in entries)
    words = [w for w in tokenize(all_content) if len(w) > 2]
    tokens = [w for w in words if _keep(w)]

    for entry in entries:
        label = entry.get("mood_label")
        if label:
            tokens.extend([label.lower()] * MOOD_LABEL_WEIGHT)
        for pattern in entry.get("identified_patterns") or []:
            if isinstance(pattern, str):
                tokens.extend(w for w in tokenize(pattern) if len(w) > 3)

    counts = Counter(tokens)
    # most_common is a stable sort, so ties stay in first-seen order
    return [WordFrequency(text=word, value=count) for word, count in counts.most_common(limit)]


async def get_word_frequencies(
    db: AsyncSession, user_id: uuid.UUID, timeframe: Optional[str] = "all", now: Optional[datetime] = None
) -> List[WordFrequency]:
    since = timeframe_start(timeframe, now)
    entries = await get_entries_for_wordcloud(db, user_id, since)
    return extract_word_frequencies(entries, limit=settings.wordcloud_max_words)
