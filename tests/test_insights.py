from datetime import timedelta

import pytest

from journal_api import crud
from journal_api.database import utcnow
from journal_api.insights import bucket_mood_score, get_insights, top_patterns


@pytest.mark.parametrize("score,label", [
    (1, "Very Negative"),
    (2, "Very Negative"),
    (3, "Negative"),
    (4, "Negative"),
    (5, "Neutral"),
    (6, "Neutral"),
    (7, "Positive"),
    (8, "Positive"),
    (9, "Very Positive"),
    (10, "Very Positive"),
])
def test_bucket_upper_bounds_are_inclusive(score, label):
    assert bucket_mood_score(score) == label


def test_top_patterns_counts_and_limits():
    lists = [["a", "b"], ["b", "c"], ["b"], ["c"], ["d"], ["e"], ["f"]]
    result = top_patterns(lists, limit=3)
    assert [(p.pattern, p.count) for p in result] == [("b", 3), ("c", 2), ("a", 1)]


async def test_empty_user_gets_empty_insights(db, user):
    insights = await get_insights(db, user.id)
    assert insights.model_dump(by_alias=True) == {
        "moodDistribution": [],
        "moodTrend": [],
        "commonPatterns": [],
        "unprocessedCount": 0,
    }


async def test_distribution_falls_back_to_score_buckets(db, user):
    for score in [1, 3, 5, 7, 9]:
        await crud.create_entry(db, user.id, "entry", mood_score=score)
    await crud.create_entry(db, user.id, "no mood at all")
    await db.commit()

    insights = await get_insights(db, user.id)

    assert {m.label: m.count for m in insights.mood_distribution} == {
        "Very Negative": 1,
        "Negative": 1,
        "Neutral": 1,
        "Positive": 1,
        "Very Positive": 1,
    }


async def test_fallback_omits_empty_buckets(db, user):
    for score in [8, 7, 2]:
        await crud.create_entry(db, user.id, "entry", mood_score=score)
    await db.commit()

    insights = await get_insights(db, user.id)

    assert [(m.label, m.count) for m in insights.mood_distribution] == [
        ("Very Negative", 1),
        ("Positive", 2),
    ]


async def test_distribution_uses_labels_when_present(db, user):
    await crud.create_entry(db, user.id, "a", mood_score=9, mood_label="Positive")
    await crud.create_entry(db, user.id, "b", mood_score=8, mood_label="Positive")
    await crud.create_entry(db, user.id, "c", mood_score=2, mood_label="Negative")
    # Score-only entries are not bucketed once any label exists
    await crud.create_entry(db, user.id, "d", mood_score=1)
    await db.commit()

    insights = await get_insights(db, user.id)

    assert {m.label: m.count for m in insights.mood_distribution} == {"Positive": 2, "Negative": 1}


async def test_mood_trend_covers_last_two_weeks_in_order(db, user):
    now = utcnow()
    await crud.create_entry(db, user.id, "old", mood_score=2, entry_date=now - timedelta(days=20))
    await crud.create_entry(db, user.id, "recent", mood_score=7, entry_date=now - timedelta(days=1))
    await crud.create_entry(db, user.id, "older", mood_score=4, entry_date=now - timedelta(days=10))
    await db.commit()

    insights = await get_insights(db, user.id, now=now)

    assert [p.mood.score for p in insights.mood_trend] == [4, 7]


async def test_common_patterns_only_from_processed_entries(db, user):
    processed = await crud.create_entry(db, user.id, "one")
    other = await crud.create_entry(db, user.id, "two")
    await crud.create_entry(db, user.id, "pending")
    await db.commit()
    await crud.update_entry_analysis(db, processed.id, "ok", ["Catastrophizing", "Labeling"], ["x"])
    await crud.update_entry_analysis(db, other.id, "ok", ["Catastrophizing"], ["y"])
    await db.commit()

    insights = await get_insights(db, user.id)

    assert [(p.pattern, p.count) for p in insights.common_patterns] == [
        ("Catastrophizing", 2),
        ("Labeling", 1),
    ]
    assert insights.unprocessed_count == 1


async def test_insights_ignore_other_users(db, user, other_user):
    await crud.create_entry(db, other_user.id, "not yours", mood_score=3, mood_label="Negative")
    await db.commit()

    insights = await get_insights(db, user.id)

    assert insights.mood_distribution == []
    assert insights.unprocessed_count == 0
