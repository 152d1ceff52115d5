"""
DefenseHub - Test Configuration and Fixtures
"""
import os
from datetime import timedelta
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession
from faker import Faker

# Set testing environment before the app reads its settings
os.environ['ENVIRONMENT'] = 'testing'
os.environ['DATABASE_URL'] = 'sqlite+aiosqlite:///./test_defensehub.db'
os.environ['LOG_LEVEL'] = 'WARNING'

from defensehub.main import app
from defensehub.core.database import Base, build_engine, build_session_factory, get_db
from defensehub.core.types import utcnow
import defensehub.models  # noqa: F401  register tables on the metadata
from defensehub.models.defense_session import DefenseSession, SessionType, SessionStatus
from defensehub.models.topic import Topic, TopicStatus
from defensehub.models.registration import Registration

fake = Faker()


@pytest_asyncio.fixture
async def engine(tmp_path):
    """Fresh file-backed SQLite database for each test"""
    eng = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'defensehub_test.db'}")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Test client; every request gets its own session like in production"""
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def defense_session(db_session: AsyncSession) -> DefenseSession:
    """Ongoing combined session whose report window is open today"""
    session = DefenseSession(
        name=f"Defense {fake.year()}",
        session_type=SessionType.combined,
        status=SessionStatus.ongoing,
        start_date=utcnow() - timedelta(days=60),
        expected_report_date=utcnow() + timedelta(days=10),
    )
    db_session.add(session)
    await db_session.commit()
    await db_session.refresh(session)
    return session


@pytest.fixture
def make_topic(db_session: AsyncSession, defense_session: DefenseSession):
    """Factory for topics in the test session (approved unless told otherwise)"""
    async def _make(
        max_students: int = 1,
        title: Optional[str] = None,
        supervisor_id: str = "sup-1",
        status: TopicStatus = TopicStatus.approved,
        session: Optional[DefenseSession] = None,
    ) -> Topic:
        topic = Topic(
            session_id=(session or defense_session).id,
            supervisor_id=supervisor_id,
            supervisor_name=fake.name(),
            title=title or fake.catch_phrase(),
            summary=fake.sentence(),
            objectives=fake.sentence(),
            expected_results=fake.sentence(),
            field="Software Engineering",
            max_students=max_students,
            status=status,
        )
        db_session.add(topic)
        await db_session.commit()
        await db_session.refresh(topic)
        return topic
    return _make


@pytest.fixture
def make_registration(db_session: AsyncSession, defense_session: DefenseSession):
    """Factory for student registrations in the test session"""
    async def _make(session: Optional[DefenseSession] = None, **overrides) -> Registration:
        values = dict(
            session_id=(session or defense_session).id,
            student_doc_id=fake.uuid4(),
            student_id=str(fake.unique.random_number(digits=8, fix_len=True)),
            student_name=fake.name(),
        )
        values.update(overrides)
        registration = Registration(**values)
        db_session.add(registration)
        await db_session.commit()
        await db_session.refresh(registration)
        return registration
    return _make
