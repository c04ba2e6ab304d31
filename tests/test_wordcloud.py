from datetime import datetime, timedelta, timezone

from journal_api import crud
from journal_api.database import utcnow
from journal_api.wordcloud import (
    EPOCH,
    extract_word_frequencies,
    get_word_frequencies,
    timeframe_start,
    tokenize,
)


def _freqs(result):
    return {w.text: w.value for w in result}


def test_tokenize_strips_punctuation_and_whitespace():
    assert tokenize("Hello,   WORLD!\nit's_fine") == ["hello", "world", "itsfine"]
    assert tokenize("   ") == []


def test_mood_words_kept_and_stopwords_dropped():
    content = " ".join(["happy"] * 5 + ["the"] * 10)
    result = _freqs(extract_word_frequencies([{"content": content}]))
    assert "the" not in result
    assert result["happy"] == 5


def test_short_mood_words_survive_length_filter():
    result = _freqs(extract_word_frequencies([{"content": "sad joy cat dog running"}]))
    assert result["sad"] == 1
    assert result["joy"] == 1
    assert "cat" not in result
    assert "dog" not in result
    assert result["running"] == 1


def test_mood_labels_are_weighted_three_times():
    entries = [
        {"content": "walked home", "mood_label": "Very Positive"},
        {"content": "slept badly", "mood_label": "Negative"},
        {"content": "", "mood_label": "Negative"},
    ]
    result = _freqs(extract_word_frequencies(entries))
    assert result["very positive"] == 3
    assert result["negative"] == 6


def test_pattern_words_are_added_once_each():
    entries = [{
        "content": "work deadline",
        "identified_patterns": ["All-or-nothing thinking", "Catastrophizing!", None],
    }]
    result = _freqs(extract_word_frequencies(entries))
    assert result["allornothing"] == 1
    assert result["thinking"] == 1
    assert result["catastrophizing"] == 1


def test_results_sorted_and_capped():
    content = " ".join(f"word{i:03d} " * (i % 7 + 1) for i in range(150))
    result = extract_word_frequencies([{"content": content}], limit=100)
    assert len(result) == 100
    values = [w.value for w in result]
    assert values == sorted(values, reverse=True)


def test_no_entries_means_no_words():
    assert extract_word_frequencies([]) == []


def test_timeframe_bounds():
    now = datetime(2024, 3, 31, 12, 0, tzinfo=timezone.utc)
    assert timeframe_start("week", now) == now - timedelta(days=7)
    assert timeframe_start("month", now) == datetime(2024, 2, 29, 12, 0, tzinfo=timezone.utc)
    assert timeframe_start("year", now) == datetime(2023, 3, 31, 12, 0, tzinfo=timezone.utc)
    assert timeframe_start("all", now) == EPOCH
    assert timeframe_start("decade", now) == EPOCH


def test_month_bound_wraps_year():
    now = datetime(2024, 1, 15, tzinfo=timezone.utc)
    assert timeframe_start("month", now) == datetime(2023, 12, 15, tzinfo=timezone.utc)


async def test_word_frequencies_respect_timeframe(db, user, other_user):
    now = utcnow()
    await crud.create_entry(db, user.id, "grateful grateful", mood_label="Positive",
                            entry_date=now - timedelta(days=2))
    await crud.create_entry(db, user.id, "anxious", entry_date=now - timedelta(days=40))
    await crud.create_entry(db, other_user.id, "lonely", entry_date=now)
    await db.commit()

    week = _freqs(await get_word_frequencies(db, user.id, "week", now=now))
    everything = _freqs(await get_word_frequencies(db, user.id, "all", now=now))

    assert week == {"grateful": 2, "positive": 3}
    assert everything["anxious"] == 1
    assert "lonely" not in everything


async def test_word_frequencies_empty_window(db, user):
    assert await get_word_frequencies(db, user.id, "week") == []
