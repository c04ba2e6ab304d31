import os

os.environ.setdefault("USE_SECRET_MANAGER", "false")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./journal-test.db")
os.environ["GEMINI_API_KEY"] = ""
os.environ["VERTEX_PROJECT_ID"] = ""

import json

import httpx
import pytest

from journal_api import agents, crud, database
from journal_api.analysis_service import analysis_scheduler
from journal_api.auth_utils import create_access_token
from journal_api.config import settings
from journal_api.main import app


VALID_REPLY = json.dumps({
    "supportiveResponse": "It sounds like today asked a lot of you, and you still showed up.",
    "identifiedPatterns": ["Catastrophizing", "All-or-nothing thinking"],
    "suggestedStrategies": ["Try a five minute breathing break.", "Write down one thing that went okay."],
})


class FakeLLM:
    """Stands in for ``agents.generate_analysis_text``; records every prompt it receives."""

    def __init__(self, reply=VALID_REPLY):
        self.reply = reply
        self.prompts = []

    async def __call__(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if isinstance(self.reply, Exception):
            raise self.reply
        return self.reply

    @property
    def calls(self) -> int:
        return len(self.prompts)


@pytest.fixture
async def database_ready(tmp_path):
    await database.init_database(f"sqlite+aiosqlite:///{tmp_path / 'journal.db'}")
    yield
    await analysis_scheduler.drain()
    await database.close_database()


@pytest.fixture
async def db(database_ready):
    async with database.get_session_maker()() as session:
        yield session


@pytest.fixture
def llm_configured(monkeypatch):
    monkeypatch.setattr(settings, "gemini_api_key", "test-key")


@pytest.fixture
def fake_llm(monkeypatch, llm_configured):
    fake = FakeLLM()
    monkeypatch.setattr(agents, "generate_analysis_text", fake)
    return fake


@pytest.fixture
async def user(db):
    user = await crud.create_user(db, "riley", "riley@example.com", "s3cret-pass")
    await db.commit()
    return user


@pytest.fixture
async def other_user(db):
    user = await crud.create_user(db, "sam", "sam@example.com", "s3cret-pass")
    await db.commit()
    return user


def auth_headers(user_id) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user_id)})}"}


@pytest.fixture
async def client(database_ready):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
