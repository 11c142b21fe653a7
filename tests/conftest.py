"""
Pytest Configuration and Fixtures

Provides fixtures for:
- Database sessions (async, in-memory SQLite)
- An HTTP client against the FastAPI app with Clerk verification patched
- A fake OpenAI client for the summarizer
- Test data factories
"""
# Settings are read at import time, so the environment is prepared before importing app
import os
import tempfile

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ.setdefault("OPENAI_API_KEY", "sk-test-key")
os.environ.setdefault("CLERK_SECRET_KEY", "sk_test_clerk")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("LOG_DIR", os.path.join(tempfile.gettempdir(), "voice-coach-test-logs"))

import pytest
from types import SimpleNamespace
from typing import AsyncGenerator, List, Optional
from unittest.mock import AsyncMock, patch

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base, get_db
from app.enums.session_enums import SessionStatus, UserRoleType
from app.middlewares.clerk_auth import ClerkAuthMiddleware
from app.models.coaching_session import CoachingSession
from app.models.session_message import SessionMessage
from app.models.system_prompt import SystemPrompt
from app.models.user import User, UserRole
from app.main import app


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture(scope="function")
async def async_engine():
    """Create async test database engine"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(scope="function")
async def db_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create async database session for tests"""
    async_session_maker = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )

    async with async_session_maker() as session:
        yield session
        await session.rollback()


def _fake_verify_token(self, request) -> Optional[dict]:
    """Bearer token is the Clerk user id; "invalid" is rejected."""
    token = request.headers.get("Authorization", "").split(" ", 1)[-1]
    if token == "invalid":
        return None
    return {"sub": token, "email": f"{token}@example.com"}


@pytest.fixture(autouse=True)
def mock_clerk():
    with patch.object(ClerkAuthMiddleware, "_verify_token", _fake_verify_token):
        yield


@pytest.fixture(scope="function")
async def test_client(db_session: AsyncSession):
    """Create test client with database override"""
    from httpx import AsyncClient, ASGITransport

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    return {"Authorization": "Bearer user_alice"}


@pytest.fixture
def other_auth_headers():
    return {"Authorization": "Bearer user_bob"}


# ============================================================================
# Mock External Services
# ============================================================================

def make_completion(content: Optional[str]):
    """Shape of an AsyncOpenAI chat completion, as far as the summarizer reads it."""
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))]
    )


@pytest.fixture
def fake_openai(monkeypatch):
    """Replace the summarizer's OpenAI client. Set `.create.return_value` or `.create.side_effect`."""
    from app.services.session_summary_service import summary_generator

    create = AsyncMock(return_value=make_completion(
        '{"summary": "Talked about work.", "main_goals": ["Grow"], "topics_discussed": ["Career"]}'
    ))
    client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
    monkeypatch.setattr(summary_generator, "openai_client", client)
    return SimpleNamespace(client=client, create=create)


# ============================================================================
# Test Data Factories
# ============================================================================

@pytest.fixture
def user_factory(db_session: AsyncSession):
    """Factory for creating test users"""
    async def _create_user(clerk_id: str = "user_alice", admin: bool = False) -> User:
        user = User(clerk_id=clerk_id, email=f"{clerk_id}@example.com", is_active=True)
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        if admin:
            db_session.add(UserRole(user_id=user.id, role=UserRoleType.ADMIN.value))
            await db_session.commit()
        return user

    return _create_user


@pytest.fixture
def session_factory(db_session: AsyncSession):
    """Factory for creating coaching sessions, optionally with a transcript"""
    async def _create_session(
        user: User,
        status: SessionStatus = SessionStatus.ACTIVE,
        transcript: Optional[List[tuple]] = None
    ) -> CoachingSession:
        session = CoachingSession(user_id=user.id, status=status.value)
        db_session.add(session)
        await db_session.commit()
        await db_session.refresh(session)

        for sender, content in transcript or []:
            db_session.add(SessionMessage(session_id=session.id, sender=sender, content=content))
            # distinct created_at per row
            await db_session.commit()
        return session

    return _create_session


@pytest.fixture
def prompt_factory(db_session: AsyncSession):
    async def _create_prompt(text: str, name: str = "Custom", is_active: bool = True) -> SystemPrompt:
        prompt = SystemPrompt(name=name, prompt_text=text, is_active=is_active)
        db_session.add(prompt)
        await db_session.commit()
        await db_session.refresh(prompt)
        return prompt

    return _create_prompt
