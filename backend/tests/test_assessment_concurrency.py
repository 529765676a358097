"""Concurrent section saves from separate sessions."""

import asyncio

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.core.exceptions import SectionAlreadyAssessedError
from app.models.base import Base
from app.models.enums import AssessmentStatus, FieldType
from app.repositories.assessment import AssessmentSectionRepository
from app.schemas.assessment import ValueMutationResponse
from app.services.assessment_value_service import AssessmentValueService
from factories import as_actor
from flows import create_forms, fill, sections_of, values_of


@pytest.fixture
async def async_engine(tmp_path):
    """File backed SQLite so each session gets its own connection."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'assessments.db'}", poolclass=NullPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_maker(async_engine):
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def claims_together(monkeypatch):
    """Hold every claim until two saves have reached it."""
    arrived = []
    both_ready = asyncio.Event()
    claim = AssessmentSectionRepository.claim

    async def claim_after_rendezvous(self, section_id, user_id):
        arrived.append(user_id)
        if len(arrived) == 2:
            both_ready.set()
        await asyncio.wait_for(both_ready.wait(), timeout=5)
        return await claim(self, section_id, user_id)

    monkeypatch.setattr(AssessmentSectionRepository, "claim", claim_after_rendezvous)
    return arrived


async def test_racing_saves_claim_the_section_once(db_session, world, session_maker, claims_together):
    [form_id] = await create_forms(
        db_session, world, world.scored_template, world.scored_subject, world.trainees[:1]
    )
    section = (await sections_of(db_session, form_id))["Second examiner"]
    contenders = {
        world.examiner.id: (world.examiner, "examiner notes"),
        world.second_examiner.id: (world.second_examiner, "second examiner notes"),
    }

    async def save_as(user, text):
        async with session_maker() as session:
            return await AssessmentValueService(session).save_values(
                section.id, fill(section, {FieldType.TEXT: text}), as_actor(user)
            )

    results = await asyncio.gather(
        *(save_as(user, text) for user, text in contenders.values()), return_exceptions=True
    )

    assert len(claims_together) == 2
    saved = [r for r in results if isinstance(r, ValueMutationResponse)]
    refused = [r for r in results if isinstance(r, SectionAlreadyAssessedError)]
    assert len(saved) == 1
    assert len(refused) == 1
    assert saved[0].assessment_form_status == AssessmentStatus.DRAFT

    async with session_maker() as session:
        stored = (await sections_of(session, form_id))["Second examiner"]
        _, winner_text = contenders[stored.assessed_by_id]
        assert values_of(stored)[FieldType.TEXT] == winner_text
