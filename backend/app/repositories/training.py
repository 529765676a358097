"""Training repositories - subjects, courses, enrollments and instructor assignments."""

from typing import Iterable, List, Optional, Set, Union
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import EnrollmentStatus, RoleName, TrainingStatus, UserStatus
from app.models.organization import User
from app.models.training import Course, CourseInstructor, Subject, SubjectEnrollment, SubjectInstructor
from app.repositories.base import BaseRepository

# Enrollment statuses that make a trainee assessable
ASSESSABLE_ENROLLMENT_STATUSES = (EnrollmentStatus.ON_GOING, EnrollmentStatus.FINISHED)


class SubjectRepository(BaseRepository[Subject]):
    def __init__(self, db: AsyncSession):
        super().__init__(db, Subject)


class CourseRepository(BaseRepository[Course]):
    def __init__(self, db: AsyncSession):
        super().__init__(db, Course)


class EnrollmentRepository(BaseRepository[SubjectEnrollment]):
    """Answers who is enrolled in a subject or course."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, SubjectEnrollment)

    def _enrolled_user_ids(self, subject_id: Optional[UUID], course_id: Optional[UUID]):
        query = select(SubjectEnrollment.trainee_user_id).where(
            SubjectEnrollment.status.in_(ASSESSABLE_ENROLLMENT_STATUSES)
        )
        if subject_id is not None:
            return query.where(SubjectEnrollment.subject_id == subject_id)
        # Course enrollment means enrollment in any non-archived subject of the course
        return query.join(Subject, Subject.id == SubjectEnrollment.subject_id).where(
            Subject.course_id == course_id,
            Subject.status != TrainingStatus.ARCHIVED,
        )

    async def get_enrolled_trainees(
        self,
        subject_id: Optional[UUID] = None,
        course_id: Optional[UUID] = None,
    ) -> List[User]:
        """Active trainees enrolled in the subject (or any subject of the course)."""
        query = (
            select(User)
            .where(
                User.id.in_(self._enrolled_user_ids(subject_id, course_id)),
                User.role == RoleName.TRAINEE,
                User.status == UserStatus.ACTIVE,
            )
            .order_by(User.eid)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_enrolled_ids(
        self,
        user_ids: Iterable[UUID],
        subject_id: Optional[UUID] = None,
        course_id: Optional[UUID] = None,
    ) -> Set[UUID]:
        """Subset of ``user_ids`` with an assessable enrollment."""
        user_ids = list(user_ids)
        if not user_ids:
            return set()
        query = self._enrolled_user_ids(subject_id, course_id).where(
            SubjectEnrollment.trainee_user_id.in_(user_ids)
        )
        result = await self.db.execute(query)
        return set(result.scalars().all())


class InstructorRepository:
    """Answers which trainers are assigned to a subject or course, and in which role."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_assignment(
        self,
        user_id: UUID,
        subject_id: Optional[UUID] = None,
        course_id: Optional[UUID] = None,
    ) -> Optional[Union[SubjectInstructor, CourseInstructor]]:
        """Get the trainer's assignment for the subject (or course), if any."""
        if subject_id is not None:
            query = select(SubjectInstructor).where(
                SubjectInstructor.subject_id == subject_id,
                SubjectInstructor.trainer_user_id == user_id,
            )
        elif course_id is not None:
            query = select(CourseInstructor).where(
                CourseInstructor.course_id == course_id,
                CourseInstructor.trainer_user_id == user_id,
            )
        else:
            return None
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_assigned_subject_ids(self, user_id: UUID) -> List[UUID]:
        result = await self.db.execute(
            select(SubjectInstructor.subject_id).where(SubjectInstructor.trainer_user_id == user_id)
        )
        return list(result.scalars().all())

    async def get_assigned_course_ids(self, user_id: UUID) -> List[UUID]:
        result = await self.db.execute(
            select(CourseInstructor.course_id).where(CourseInstructor.trainer_user_id == user_id)
        )
        return list(result.scalars().all())
