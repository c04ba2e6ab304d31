"""
Pydantic models for API request/response validation.
"""

from typing import Optional, List, Literal
from pydantic import BaseModel, ConfigDict, Field, EmailStr, field_validator
from uuid import UUID
from datetime import datetime, date

from .database import utcnow


MoodLabel = Literal["Very Negative", "Negative", "Neutral", "Positive", "Very Positive"]

MOOD_LABELS: List[str] = ["Very Negative", "Negative", "Neutral", "Positive", "Very Positive"]


class CamelModel(BaseModel):
    """Serialises with the camelCase keys the web client expects."""

    model_config = ConfigDict(populate_by_name=True)


class Mood(BaseModel):
    score: Optional[int] = Field(None, ge=1, le=10)
    label: Optional[MoodLabel] = None


class CreateJournalEntryRequest(BaseModel):
    content: str = Field(..., min_length=1)
    mood: Optional[Mood] = None
    tags: List[str] = Field(default_factory=list)

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("content must not be empty")
        return v


class UpdateJournalEntryRequest(CreateJournalEntryRequest):
    """Fields left out of the body keep their stored values; see ``model_fields_set``."""

    tags: Optional[List[str]] = None


class Analysis(CamelModel):
    supportive_response: Optional[str] = Field(None, alias="supportiveResponse")
    identified_patterns: List[str] = Field(default_factory=list, alias="identifiedPatterns")
    suggested_strategies: List[str] = Field(default_factory=list, alias="suggestedStrategies")
    processed: bool = False


class Streak(BaseModel):
    current: int
    longest: int


class JournalEntryResponse(CamelModel):
    id: UUID
    user_id: UUID = Field(..., alias="userId")
    content: str
    date: datetime
    mood: Optional[Mood] = None
    tags: List[str] = Field(default_factory=list)
    analysis: Analysis
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")


class CreatedJournalEntryResponse(JournalEntryResponse):
    streak: Optional[Streak] = None


class MessageResponse(BaseModel):
    message: str


class ReprocessResponse(CamelModel):
    message: str
    processed_count: int = Field(..., alias="processedCount")
    remaining_count: int = Field(0, alias="remainingCount")


class ReprocessEntryResponse(CamelModel):
    message: str
    entry_id: UUID = Field(..., alias="entryId")
    outcome: str
    analysis: Analysis


class MoodCount(BaseModel):
    label: str
    count: int


class TrendMood(BaseModel):
    score: Optional[int] = None


class MoodTrendPoint(BaseModel):
    date: datetime
    mood: TrendMood = Field(default_factory=TrendMood)


class PatternCount(BaseModel):
    pattern: str
    count: int


class InsightsResponse(CamelModel):
    mood_distribution: List[MoodCount] = Field(default_factory=list, alias="moodDistribution")
    mood_trend: List[MoodTrendPoint] = Field(default_factory=list, alias="moodTrend")
    common_patterns: List[PatternCount] = Field(default_factory=list, alias="commonPatterns")
    unprocessed_count: int = Field(0, alias="unprocessedCount")


class WordFrequency(BaseModel):
    text: str
    value: int


# Gratitude
class GratitudeRequest(BaseModel):
    entries: List[str] = Field(..., min_length=1)

    @field_validator("entries")
    @classmethod
    def entries_not_blank(cls, v: List[str]) -> List[str]:
        cleaned = [e.strip() for e in v if e and e.strip()]
        if not cleaned:
            raise ValueError("At least one gratitude entry is required")
        return cleaned


class GratitudeItem(BaseModel):
    content: str


class GratitudeResponse(CamelModel):
    id: Optional[UUID] = None
    day: Optional[date] = None
    entries: List[GratitudeItem] = Field(default_factory=list)


# Authentication
class UserRegister(BaseModel):
    username: str = Field(..., min_length=1, max_length=150)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=100)


class UserLogin(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class UserProfile(CamelModel):
    id: UUID
    username: str
    email: str
    current_streak: int = Field(0, alias="currentStreak")
    longest_streak: int = Field(0, alias="longestStreak")
    last_entry_date: Optional[datetime] = Field(None, alias="lastEntryDate")
    created_at: Optional[datetime] = Field(None, alias="createdAt")


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserProfile


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime = Field(default_factory=utcnow)
