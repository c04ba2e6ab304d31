"""
FastAPI application for journal entries, AI analysis, insights and gratitude lists.
"""
import uuid
import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import List, Optional

from fastapi import FastAPI, Depends, HTTPException, status, Query
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncSession

from .config import settings
from .database import init_database, close_database, get_db, utcnow, JournalEntry, GratitudeEntry, User
from .schemas import (
    CreateJournalEntryRequest, UpdateJournalEntryRequest, JournalEntryResponse,
    CreatedJournalEntryResponse, Analysis, Mood, Streak, MessageResponse,
    ReprocessResponse, ReprocessEntryResponse, InsightsResponse, WordFrequency,
    GratitudeRequest, GratitudeResponse, GratitudeItem,
    UserRegister, UserLogin, UserProfile, TokenResponse, HealthResponse,
)
from .auth_utils import get_current_user_id, create_token_response
from . import crud
from .analysis_service import (
    analysis_scheduler, reprocess_entry, reprocess_unprocessed, EntryNotFoundError,
)
from .insights import get_insights
from .wordcloud import get_word_frequencies, TIMEFRAMES

# --- Basic Setup ---
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application startup and shutdown events."""
    logger.info("Application startup...")
    await init_database(settings.database_url)
    if settings.llm_configured:
        try:
            from .agents import get_vertex_model
            get_vertex_model()
            logger.info("Vertex AI initialized")
        except Exception as e:
            logger.warning(f"Vertex AI init skipped/failed: {e}")
    else:
        logger.warning("No Gemini API key or Vertex project configured; entries will not be analyzed")

    yield

    logger.info("Application shutdown...")
    await analysis_scheduler.shutdown()
    await close_database()
    logger.info("Application shutdown complete")


app = FastAPI(
    title="Journal & Mood Service",
    description="Journaling backend with AI-supported reflections and mood insights.",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def entry_to_response(entry: JournalEntry) -> JournalEntryResponse:
    mood = None
    if entry.mood_score is not None or entry.mood_label is not None:
        mood = Mood(score=entry.mood_score, label=entry.mood_label)
    return JournalEntryResponse(
        id=entry.id,
        user_id=entry.user_id,
        content=entry.content,
        date=entry.date,
        mood=mood,
        tags=entry.tags or [],
        analysis=Analysis(
            supportive_response=entry.supportive_response,
            identified_patterns=entry.identified_patterns or [],
            suggested_strategies=entry.suggested_strategies or [],
            processed=bool(entry.processed),
        ),
        created_at=entry.created_at,
        updated_at=entry.updated_at,
    )


def gratitude_to_response(gratitude: Optional[GratitudeEntry]) -> GratitudeResponse:
    if gratitude is None:
        return GratitudeResponse()
    return GratitudeResponse(
        id=gratitude.id,
        day=gratitude.day,
        entries=[GratitudeItem(**item) for item in gratitude.entries or []],
    )


def user_to_profile(user: User) -> UserProfile:
    return UserProfile(
        id=user.id,
        username=user.username,
        email=user.email,
        current_streak=user.current_streak or 0,
        longest_streak=user.longest_streak or 0,
        last_entry_date=user.last_entry_date,
        created_at=user.created_at,
    )


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Journal entry not found")


@app.get("/health", response_model=HealthResponse)
async def health_check():
    return HealthResponse(status="healthy")


# --- Authentication Endpoints ---
@app.post("/api/auth/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register_user(user_data: UserRegister, db: AsyncSession = Depends(get_db)):
    """Register a new user."""
    try:
        user = await crud.create_user(db, user_data.username, user_data.email, user_data.password)
        await db.commit()
    except ValueError as e:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except Exception as e:
        await db.rollback()
        logger.error(f"Registration error: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to register user")

    logger.info(f"New user registered: {user.id}")
    return TokenResponse(**create_token_response(user.id), user=user_to_profile(user))


@app.post("/api/auth/login", response_model=TokenResponse)
async def login_user(login_data: UserLogin, db: AsyncSession = Depends(get_db)):
    user = await crud.authenticate_user(db, login_data.email, login_data.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return TokenResponse(**create_token_response(user.id), user=user_to_profile(user))


@app.get("/api/auth/profile", response_model=UserProfile)
async def get_user_profile(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    user = await crud.get_user_by_id(db, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user_to_profile(user)


# --- Journal Endpoints ---
@app.post("/api/journal", response_model=CreatedJournalEntryResponse, status_code=status.HTTP_201_CREATED)
async def create_journal_entry(
    body: CreateJournalEntryRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Save an entry and queue its analysis; the response does not wait for the model."""
    try:
        entry = await crud.create_entry(
            db,
            user_id=user_id,
            content=body.content,
            mood_score=body.mood.score if body.mood else None,
            mood_label=body.mood.label if body.mood else None,
            tags=body.tags,
        )
        user = await crud.record_journal_activity(db, user_id)
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.error(f"Error creating journal entry: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to create journal entry")

    analysis_scheduler.schedule(entry.id)

    response = CreatedJournalEntryResponse(**entry_to_response(entry).model_dump())
    if user is not None:
        response.streak = Streak(current=user.current_streak, longest=user.longest_streak)
    return response


@app.get("/api/journal", response_model=List[JournalEntryResponse])
async def list_journal_entries(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    try:
        entries = await crud.list_user_entries(db, user_id)
    except Exception as e:
        logger.error(f"Error fetching journal entries: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to fetch journal entries")
    return [entry_to_response(entry) for entry in entries]


@app.get("/api/journal/insights", response_model=InsightsResponse)
async def journal_insights(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await get_insights(db, user_id)
    except Exception as e:
        logger.error(f"Error generating journal insights: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to generate journal insights")


@app.get("/api/journal/wordcloud", response_model=List[WordFrequency])
async def journal_wordcloud(
    timeframe: str = Query("all", description=f"One of {', '.join(TIMEFRAMES)}"),
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await get_word_frequencies(db, user_id, timeframe)
    except Exception as e:
        logger.error(f"Error generating word cloud data for timeframe {timeframe}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to generate word cloud data")


@app.post("/api/journal/reprocess", response_model=ReprocessResponse)
async def reprocess_journal_entries(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Analyze unprocessed entries now, a capped batch at a time."""
    try:
        summary = await reprocess_unprocessed(db, user_id)
    except Exception as e:
        logger.error(f"Error reprocessing journal entries: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to reprocess journal entries")

    if summary.processed_count == 0 and summary.remaining_count == 0:
        message = "No entries to process"
    else:
        message = f"Successfully processed {summary.processed_count} entries"
    return ReprocessResponse(
        message=message,
        processed_count=summary.processed_count,
        remaining_count=summary.remaining_count,
    )


@app.get("/api/journal/{entry_id}", response_model=JournalEntryResponse)
async def get_journal_entry(
    entry_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    entry = await crud.get_user_entry(db, entry_id, user_id)
    if not entry:
        raise _not_found()
    return entry_to_response(entry)


@app.put("/api/journal/{entry_id}", response_model=JournalEntryResponse)
async def update_journal_entry(
    entry_id: uuid.UUID,
    body: UpdateJournalEntryRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Edit an entry and queue a fresh analysis of the new content."""
    entry = await crud.get_user_entry(db, entry_id, user_id)
    if not entry:
        raise _not_found()
    changes = {"content": body.content}
    if "mood" in body.model_fields_set:
        changes["mood_score"] = body.mood.score if body.mood else None
        changes["mood_label"] = body.mood.label if body.mood else None
    if "tags" in body.model_fields_set:
        changes["tags"] = list(body.tags or [])
    try:
        entry = await crud.update_entry_fields(
            db, entry, changes, clear_analysis=settings.clear_analysis_on_update
        )
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.error(f"Error updating journal entry {entry_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to update journal entry")

    analysis_scheduler.schedule(entry.id)
    return entry_to_response(entry)


@app.delete("/api/journal/{entry_id}", response_model=MessageResponse)
async def delete_journal_entry(
    entry_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    try:
        deleted = await crud.delete_user_entry(db, entry_id, user_id)
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.error(f"Error deleting journal entry {entry_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to delete journal entry")
    if not deleted:
        raise _not_found()
    return MessageResponse(message="Journal entry deleted successfully")


@app.post("/api/journal/{entry_id}/reprocess", response_model=ReprocessEntryResponse)
async def reprocess_journal_entry(
    entry_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Re-run analysis for one entry and wait for the result."""
    try:
        outcome = await reprocess_entry(db, user_id, entry_id)
        entry = await crud.get_user_entry(db, entry_id, user_id)
        if entry is not None:
            await db.refresh(entry)
    except EntryNotFoundError:
        raise _not_found()
    except Exception as e:
        logger.error(f"Error reprocessing journal entry {entry_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to reprocess journal entry")
    if entry is None:
        raise _not_found()

    return ReprocessEntryResponse(
        message="Journal entry analysis completed",
        entry_id=entry.id,
        outcome=outcome.value,
        analysis=entry_to_response(entry).analysis,
    )


# --- Gratitude Endpoints ---
@app.get("/api/gratitude/today", response_model=GratitudeResponse)
async def get_todays_gratitude(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    gratitude = await crud.get_gratitude_for_day(db, user_id, utcnow().date())
    return gratitude_to_response(gratitude)


@app.get("/api/gratitude/recent", response_model=List[GratitudeResponse])
async def get_recent_gratitude(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    since_day = utcnow().date() - timedelta(days=7)
    return [gratitude_to_response(g) for g in await crud.get_recent_gratitude(db, user_id, since_day)]


@app.post("/api/gratitude", response_model=GratitudeResponse)
async def save_gratitude(
    body: GratitudeRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    try:
        gratitude = await crud.upsert_gratitude(db, user_id, utcnow().date(), body.entries)
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.error(f"Error saving gratitude entry: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to save gratitude entry")
    return gratitude_to_response(gratitude)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("journal_api.main:app", host="0.0.0.0", port=8001, reload=True)
