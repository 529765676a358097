"""Test configuration and fixtures."""

from types import SimpleNamespace
from typing import AsyncGenerator, List

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.core.database import get_async_session
from app.main import app as application
from app.models.base import Base
from app.models.enums import RoleName
from app.models.organization import User
from factories import SCORED_SECTIONS, SINGLE_SECTION, Factory


@pytest.fixture
async def async_engine():
    """In-memory SQLite engine shared by every connection of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        echo=False,
    )

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def db_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create async database session for tests."""
    async_session_maker = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def factory(db_session) -> Factory:
    return Factory(db_session)


@pytest.fixture
async def world(db_session, factory) -> SimpleNamespace:
    """One department with staff, a scored and an unscored subject, and trainees enrolled in both."""
    department = await factory.department("FLT")
    other_department = await factory.department("MNT")

    academic = await factory.user(RoleName.ACADEMIC_DEPARTMENT)
    admin = await factory.user(RoleName.ADMINISTRATOR)
    head = await factory.user(RoleName.DEPARTMENT_HEAD, department)
    other_head = await factory.user(RoleName.DEPARTMENT_HEAD, other_department)
    examiner = await factory.user(RoleName.TRAINER, department, signature_image_url="https://cdn.example.com/sig/examiner.png")
    second_examiner = await factory.user(RoleName.TRAINER, department)
    outsider = await factory.user(RoleName.TRAINER, department)
    trainees: List[User] = [await factory.user(RoleName.TRAINEE) for _ in range(5)]

    course = await factory.course(department)
    scored_subject = await factory.subject(course, pass_score=80)
    plain_subject = await factory.subject(course)

    for subject in (scored_subject, plain_subject):
        await factory.enroll(subject, trainees)
        await factory.assign_subject(subject, examiner)
        await factory.assign_subject(subject, second_examiner)

    scored_template = await factory.template(department, SCORED_SECTIONS)
    single_template = await factory.template(department, SINGLE_SECTION)
    await factory.commit()

    return SimpleNamespace(
        department=department,
        other_department=other_department,
        academic=academic,
        admin=admin,
        head=head,
        other_head=other_head,
        examiner=examiner,
        second_examiner=second_examiner,
        outsider=outsider,
        trainees=trainees,
        course=course,
        scored_subject=scored_subject,
        plain_subject=plain_subject,
        scored_template=scored_template,
        single_template=single_template,
    )


@pytest.fixture
async def client(db_session) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the app, sharing the test session."""

    async def override_session():
        yield db_session

    application.dependency_overrides[get_async_session] = override_session
    async with AsyncClient(transport=ASGITransport(app=application), base_url="http://test") as http:
        yield http
    application.dependency_overrides.clear()

