"""Assessment events: grouped listings and event-wide actions."""

from datetime import timedelta

import pytest

from app.core import clock
from app.core.exceptions import (
    AssessmentAlreadyExistsError,
    AuthorizationError,
    BothSubjectAndCourseProvidedError,
    BusinessLogicError,
    EventNotFoundError,
    OccurrenceDateError,
    ValidationError,
)
from app.models.enums import AssessmentStatus, EventStatus, ReviewAction
from app.repositories.assessment import AssessmentFilters
from app.schemas.assessment import ApproveRejectRequest
from app.schemas.assessment_event import EventKeyRequest, UpdateAssessmentEventRequest
from app.services.assessment_approval_service import AssessmentApprovalService
from app.services.assessment_event_service import AssessmentEventService, base_name
from app.services.assessment_service import AssessmentService
from factories import as_actor
from flows import create_forms, submitted_scored_form


def event_key(world, days_ahead, template=None, subject=None, **extra):
    return EventKeyRequest(
        template_id=(template or world.single_template).id,
        subject_id=(subject or world.plain_subject).id,
        occurrence_date=clock.today() + timedelta(days=days_ahead),
        **extra,
    )


def update_request(world, days_ahead, **changes):
    key = event_key(world, days_ahead)
    return UpdateAssessmentEventRequest(**key.model_dump(), **changes)


async def statuses(session, form_ids):
    service = AssessmentService(session)
    return [(await service.load_form(form_id)).status for form_id in form_ids]


def test_base_name_strips_trainee_suffix():
    assert base_name("Line check - TR0001") == "Line check"
    assert base_name("Day - night - TR0001") == "Day - night"
    assert base_name("Plain") == "Plain"


class TestListEvents:
    async def test_forms_are_grouped_per_event(self, db_session, world):
        await create_forms(db_session, world, world.single_template, world.plain_subject, world.trainees[:3])
        await create_forms(
            db_session, world, world.single_template, world.plain_subject, world.trainees, days_ahead=4, name="Sim"
        )

        response = await AssessmentEventService(db_session).list_events(as_actor(world.academic), AssessmentFilters())

        assert response.pagination.total == 2
        future, current = response.events
        assert (future.name, future.total_trainees, future.status) == ("Sim", 5, EventStatus.NOT_STARTED)
        assert (current.name, current.total_trainees, current.status) == ("Checkride", 3, EventStatus.ON_GOING)
        assert current.entity_info.type == "subject"
        assert current.template_info.name == world.single_template.name

    async def test_status_filter_and_trainer_scope(self, db_session, world):
        await create_forms(db_session, world, world.single_template, world.plain_subject, world.trainees[:3])
        await create_forms(
            db_session, world, world.single_template, world.plain_subject, world.trainees, days_ahead=4
        )
        service = AssessmentEventService(db_session)

        not_started = await service.list_events(
            as_actor(world.examiner), AssessmentFilters(), status=EventStatus.NOT_STARTED
        )
        assert [e.occurrence_date for e in not_started.events] == [clock.today() + timedelta(days=4)]

        outsider = await service.list_events(as_actor(world.outsider), AssessmentFilters())
        assert outsider.events == []

    async def test_finished_event_counts_results(self, db_session, world):
        form_id = await submitted_scored_form(db_session, world, score="90")
        await AssessmentApprovalService(db_session).approve_reject(
            form_id, ApproveRejectRequest(action=ReviewAction.APPROVED), as_actor(world.head)
        )

        response = await AssessmentEventService(db_session).list_events(as_actor(world.admin), AssessmentFilters())
        [event] = response.events
        assert event.status == EventStatus.FINISHED
        assert (event.total_passed, event.total_failed) == (1, 0)


class TestDepartmentEvents:
    async def test_requires_department_head(self, db_session, world):
        with pytest.raises(AuthorizationError):
            await AssessmentEventService(db_session).list_department_events(
                as_actor(world.academic), AssessmentFilters()
            )

    async def test_review_counters(self, db_session, world):
        await submitted_scored_form(db_session, world)
        await create_forms(db_session, world, world.scored_template, world.scored_subject, world.trainees[1:3])

        response = await AssessmentEventService(db_session).list_department_events(
            as_actor(world.head), AssessmentFilters()
        )
        [event] = response.events
        assert event.total_assessments == 3
        assert event.total_submitted_form == 1
        assert event.total_reviewed_form == 0
        assert event.total_cancelled_form == 0
        assert event.total_trainers == 2
        assert event.status == EventStatus.ON_GOING

        other = await AssessmentEventService(db_session).list_department_events(
            as_actor(world.other_head), AssessmentFilters()
        )
        assert other.events == []


class TestArchiveEvent:
    async def test_archive_cancels_not_started_forms_once(self, db_session, world):
        form_ids = await create_forms(
            db_session, world, world.single_template, world.plain_subject, world.trainees[:3], days_ahead=2
        )
        service = AssessmentEventService(db_session)
        actor = as_actor(world.academic)

        first = await service.archive_event(event_key(world, 2), actor)
        assert first.updated_count == 3
        assert first.message == "Archived 3 assessment(s)"
        assert first.name == "Checkride"
        assert await statuses(db_session, form_ids) == [AssessmentStatus.CANCELLED] * 3

        second = await service.archive_event(event_key(world, 2), actor)
        assert second.updated_count == 0
        assert second.total_assessment_forms == 3

        listing = await service.list_events(actor, AssessmentFilters())
        assert listing.events[0].status == EventStatus.FINISHED

    async def test_started_forms_are_left_alone(self, db_session, world):
        form_ids = await create_forms(
            db_session, world, world.single_template, world.plain_subject, world.trainees[:2]
        )
        response = await AssessmentEventService(db_session).archive_event(
            event_key(world, 0), as_actor(world.academic)
        )
        assert response.updated_count == 0
        assert await statuses(db_session, form_ids) == [AssessmentStatus.ON_GOING] * 2

    async def test_unknown_event(self, db_session, world):
        with pytest.raises(EventNotFoundError):
            await AssessmentEventService(db_session).archive_event(event_key(world, 9), as_actor(world.academic))

    async def test_event_key_needs_one_entity(self, db_session, world):
        with pytest.raises(BothSubjectAndCourseProvidedError):
            await AssessmentEventService(db_session).archive_event(
                event_key(world, 2, course_id=world.course.id), as_actor(world.academic)
            )


class TestActivate:
    async def test_future_event_cannot_be_activated(self, db_session, world):
        await create_forms(db_session, world, world.single_template, world.plain_subject, world.trainees[:1], days_ahead=3)
        with pytest.raises(BusinessLogicError):
            await AssessmentEventService(db_session).activate_event(event_key(world, 3), as_actor(world.academic))

    async def test_activate_event_on_its_date(self, db_session, world, monkeypatch):
        form_ids = await create_forms(
            db_session, world, world.single_template, world.plain_subject, world.trainees[:2], days_ahead=3
        )
        key = event_key(world, 3)
        monkeypatch.setattr(clock, "today", lambda: key.occurrence_date)

        response = await AssessmentEventService(db_session).activate_event(key, as_actor(world.admin))
        assert response.message == "Activated 2 assessment(s)"
        assert await statuses(db_session, form_ids) == [AssessmentStatus.ON_GOING] * 2

    async def test_due_activation_is_idempotent(self, db_session, world, monkeypatch):
        due = await create_forms(
            db_session, world, world.single_template, world.plain_subject, world.trainees[:2], days_ahead=1
        )
        later = await create_forms(
            db_session, world, world.single_template, world.plain_subject, world.trainees[:2], days_ahead=5
        )
        tomorrow = clock.today() + timedelta(days=1)
        monkeypatch.setattr(clock, "today", lambda: tomorrow)
        service = AssessmentEventService(db_session)

        assert await service.activate_due_assessments() == 2
        assert await service.activate_due_assessments() == 0
        assert await statuses(db_session, due) == [AssessmentStatus.ON_GOING] * 2
        assert await statuses(db_session, later) == [AssessmentStatus.NOT_STARTED] * 2

        with pytest.raises(BusinessLogicError):
            await service.activate_due_assessments(tomorrow + timedelta(days=1))


class TestUpdateEvent:
    async def test_rename_and_reschedule(self, db_session, world):
        form_ids = await create_forms(
            db_session, world, world.single_template, world.plain_subject, world.trainees[:2], days_ahead=2
        )
        new_date = clock.today() + timedelta(days=6)

        response = await AssessmentEventService(db_session).update_event(
            update_request(world, 2, name="Night sim", new_occurrence_date=new_date), as_actor(world.academic)
        )

        assert response.updated_count == 2
        assert response.name == "Night sim"
        assert response.occurrence_date == new_date
        service = AssessmentService(db_session)
        forms = [await service.load_form(form_id) for form_id in form_ids]
        assert {form.name for form in forms} == {f"Night sim - {t.eid}" for t in world.trainees[:2]}
        assert {form.occurrence_date for form in forms} == {new_date}

    async def test_needs_a_change(self, db_session, world):
        with pytest.raises(ValidationError):
            await AssessmentEventService(db_session).update_event(update_request(world, 2), as_actor(world.academic))

    async def test_event_of_today_is_fixed(self, db_session, world):
        await create_forms(db_session, world, world.single_template, world.plain_subject, world.trainees[:1])
        with pytest.raises(BusinessLogicError):
            await AssessmentEventService(db_session).update_event(
                update_request(world, 0, name="Renamed"), as_actor(world.academic)
            )

    @pytest.mark.parametrize("new_days", [0, 61])
    async def test_new_date_bounds(self, db_session, world, new_days):
        await create_forms(
            db_session, world, world.single_template, world.plain_subject, world.trainees[:1], days_ahead=2
        )
        with pytest.raises(OccurrenceDateError):
            await AssessmentEventService(db_session).update_event(
                update_request(world, 2, new_occurrence_date=clock.today() + timedelta(days=new_days)),
                as_actor(world.academic),
            )

    async def test_reschedule_onto_existing_event_conflicts(self, db_session, world):
        await create_forms(
            db_session, world, world.single_template, world.plain_subject, world.trainees[:2], days_ahead=2
        )
        await create_forms(
            db_session, world, world.single_template, world.plain_subject, world.trainees[1:3], days_ahead=4
        )
        with pytest.raises(AssessmentAlreadyExistsError) as exc_info:
            await AssessmentEventService(db_session).update_event(
                update_request(world, 2, new_occurrence_date=clock.today() + timedelta(days=4)),
                as_actor(world.academic),
            )
        assert [d["trainee_id"] for d in exc_info.value.details["duplicates"]] == [str(world.trainees[1].id)]

    async def test_cancelled_event_has_nothing_to_update(self, db_session, world):
        await create_forms(
            db_session, world, world.single_template, world.plain_subject, world.trainees[:1], days_ahead=2
        )
        service = AssessmentEventService(db_session)
        await service.archive_event(event_key(world, 2), as_actor(world.academic))

        with pytest.raises(BusinessLogicError):
            await service.update_event(update_request(world, 2, name="Again"), as_actor(world.academic))
