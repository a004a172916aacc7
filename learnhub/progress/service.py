"""Learner progress service layer.

Business logic for:
- Course enrollment lifecycle (enroll, drop, completion)
- Module activity and quiz attempts with derived-state refresh
- Recommendation completion
- Cross-course overview, analytics and learning-gap reports

Progress records and enrollments are written with lightweight
transactions: ``INSERT ... IF NOT EXISTS`` on creation and
``UPDATE ... IF version = ?`` afterwards. A write that loses the race is
re-read and re-applied, up to ``max_write_retries`` times.
"""

import json
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING, TypeVar
from uuid import UUID

import structlog

from learnhub.courses.models import CourseDefinition

from . import gaps, tracking
from .analytics import (
    LearningAnalyticsSummary,
    ProgressOverview,
    aggregate_learning_analytics,
    summarize_progress,
)
from .enrollment import apply_progress, drop, new_enrollment
from .exceptions import (
    AlreadyEnrolledError,
    ConcurrentUpdateError,
    CourseNotFoundError,
    EnrollmentClosedError,
    NotEnrolledError,
    QuizNotFoundError,
)
from .gaps import LearningGapReport, collect_learning_gaps
from .models import Enrollment, ProgressRecord
from .pipeline import initialize_progress
from .tracking import ModuleActivity, QuizAttemptResult


if TYPE_CHECKING:
    from cassandra.cluster import Session

    from learnhub.courses.service import CourseStructureService

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class ProgressUpdate:
    """Outcome of one learning event.

    ``newly_completed`` is True only for the event that moved the
    enrollment into ``completed``.
    """

    record: ProgressRecord
    enrollment: Enrollment
    newly_completed: bool = False
    attempt: QuizAttemptResult | None = None


# ==============================================================================
# Progress Service
# ==============================================================================


class ProgressService:
    """Service for learner progress and enrollment tracking."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        course_service: "CourseStructureService",
        max_write_retries: int = 3,
        allow_writes_after_drop: bool = False,
    ):
        """Initialize with Cassandra session and the course provider."""
        self.session = session
        self.keyspace = keyspace
        self.course_service = course_service
        self.max_write_retries = max_write_retries
        self.allow_writes_after_drop = allow_writes_after_drop
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        # Progress records
        self._get_record = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.progress_records
            WHERE user_id = ? AND course_id = ?
        """)

        self._get_user_records = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.progress_records
            WHERE user_id = ?
        """)

        self._insert_record = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.progress_records
            (user_id, course_id, version, data, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._update_record = self.session.prepare(f"""
            UPDATE {self.keyspace}.progress_records
            SET data = ?, version = ?, updated_at = ?
            WHERE user_id = ? AND course_id = ?
            IF version = ?
        """)

        # Enrollments
        self._get_enrollment = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.enrollments
            WHERE course_id = ? AND user_id = ?
        """)

        self._insert_enrollment = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollments
            (course_id, user_id, status, progress, enrolled_at, last_accessed,
             completed_at, dropped_at, version)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._update_enrollment = self.session.prepare(f"""
            UPDATE {self.keyspace}.enrollments
            SET status = ?, progress = ?, last_accessed = ?, completed_at = ?,
                dropped_at = ?, version = ?
            WHERE course_id = ? AND user_id = ?
            IF version = ?
        """)

        # Enrollments by user (lookup)
        self._get_user_enrollments = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.enrollments_by_user
            WHERE user_id = ?
        """)

        self._upsert_enrollment_by_user = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollments_by_user
            (user_id, enrolled_at, course_id, status, progress, last_accessed,
             completed_at, dropped_at, version)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)

    @property
    def _write_attempts(self) -> int:
        return self.max_write_retries + 1

    async def _require_course(self, course_id: UUID) -> CourseDefinition:
        course = await self.course_service.get_course(course_id)
        if course is None:
            raise CourseNotFoundError
        return course

    # ==========================================================================
    # Enrollment Operations
    # ==========================================================================

    async def enroll_user(self, user_id: UUID, course_id: UUID) -> Enrollment:
        """Enroll user in a course.

        Args:
            user_id: User UUID
            course_id: Course UUID

        Returns:
            Enrollment entity

        Raises:
            CourseNotFoundError: If the course structure is unknown
            AlreadyEnrolledError: If user already enrolled
        """
        await self._require_course(course_id)

        enrollment = replace(
            new_enrollment(user_id, course_id, datetime.now(UTC)), version=1
        )
        result = await self.session.aexecute(
            self._insert_enrollment,
            [
                enrollment.course_id,
                enrollment.user_id,
                enrollment.status.value,
                enrollment.progress,
                enrollment.enrolled_at,
                enrollment.last_accessed,
                enrollment.completed_at,
                enrollment.dropped_at,
                enrollment.version,
            ],
        )
        if not result.was_applied:
            raise AlreadyEnrolledError

        await self._write_enrollment_lookup(enrollment)

        logger.info(
            "user_enrolled",
            user_id=str(user_id),
            course_id=str(course_id),
        )

        return enrollment

    async def get_enrollment(self, user_id: UUID, course_id: UUID) -> Enrollment | None:
        """Get enrollment by user and course."""
        result = await self.session.aexecute(self._get_enrollment, [course_id, user_id])
        row = result.one()
        return Enrollment.from_row(row) if row else None

    async def get_user_enrollments(self, user_id: UUID) -> list[Enrollment]:
        """Get all enrollments for a user, newest first."""
        rows = await self.session.aexecute(self._get_user_enrollments, [user_id])
        return [Enrollment.from_row(row) for row in rows]

    async def drop_course(self, user_id: UUID, course_id: UUID) -> Enrollment:
        """Drop a course whatever its progress. Progress is kept as it was.

        Raises:
            NotEnrolledError: If user is not enrolled
        """
        now = datetime.now(UTC)
        before, after = await self._mutate_enrollment(
            user_id, course_id, lambda e: drop(e, now)
        )

        if not before.is_dropped:
            logger.info(
                "enrollment_dropped",
                user_id=str(user_id),
                course_id=str(course_id),
                progress=after.progress,
            )

        return after

    async def _write_enrollment_lookup(self, enrollment: Enrollment) -> None:
        await self.session.aexecute(
            self._upsert_enrollment_by_user,
            [
                enrollment.user_id,
                enrollment.enrolled_at,
                enrollment.course_id,
                enrollment.status.value,
                enrollment.progress,
                enrollment.last_accessed,
                enrollment.completed_at,
                enrollment.dropped_at,
                enrollment.version,
            ],
        )

    async def _mutate_enrollment(
        self,
        user_id: UUID,
        course_id: UUID,
        transform: Callable[[Enrollment], Enrollment],
    ) -> tuple[Enrollment, Enrollment]:
        """Apply ``transform`` with a versioned write, retrying on conflict.

        Returns:
            (enrollment before, enrollment after)
        """
        for attempt in range(1, self._write_attempts + 1):
            current = await self.get_enrollment(user_id, course_id)
            if current is None:
                raise NotEnrolledError

            updated = transform(current)
            if updated == current:
                return current, current

            updated = replace(updated, version=current.version + 1)
            result = await self.session.aexecute(
                self._update_enrollment,
                [
                    updated.status.value,
                    updated.progress,
                    updated.last_accessed,
                    updated.completed_at,
                    updated.dropped_at,
                    updated.version,
                    course_id,
                    user_id,
                    current.version,
                ],
            )
            if result.was_applied:
                await self._write_enrollment_lookup(updated)
                return current, updated

            logger.warning(
                "progress_write_conflict",
                entity="enrollment",
                user_id=str(user_id),
                course_id=str(course_id),
                attempt=attempt,
            )

        raise ConcurrentUpdateError

    # ==========================================================================
    # Progress Record Storage
    # ==========================================================================

    @staticmethod
    def _record_from_row(row) -> ProgressRecord:
        return ProgressRecord.from_dict(
            json.loads(row.data),
            user_id=row.user_id,
            course_id=row.course_id,
            version=row.version or 0,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    async def _load_record(self, user_id: UUID, course_id: UUID) -> ProgressRecord | None:
        result = await self.session.aexecute(self._get_record, [user_id, course_id])
        row = result.one()
        return self._record_from_row(row) if row else None

    async def _get_or_create_record(
        self, user_id: UUID, course_id: UUID
    ) -> ProgressRecord:
        """Load the record, creating it from the course structure if absent."""
        for attempt in range(1, self._write_attempts + 1):
            record = await self._load_record(user_id, course_id)
            if record is not None:
                return record

            course = await self._require_course(course_id)
            record = replace(
                initialize_progress(user_id, course, datetime.now(UTC)), version=1
            )
            result = await self.session.aexecute(
                self._insert_record,
                [
                    record.user_id,
                    record.course_id,
                    record.version,
                    json.dumps(record.to_dict()),
                    record.created_at,
                    record.updated_at,
                ],
            )
            if result.was_applied:
                logger.info(
                    "progress_record_created",
                    user_id=str(user_id),
                    course_id=str(course_id),
                    modules=len(record.module_progress),
                    quizzes=len(record.quiz_progress),
                )
                return record

            logger.debug(
                "progress_record_created_concurrently",
                user_id=str(user_id),
                course_id=str(course_id),
                attempt=attempt,
            )

        raise ConcurrentUpdateError

    async def _mutate_record(
        self,
        user_id: UUID,
        course_id: UUID,
        transform: Callable[[ProgressRecord], tuple[ProgressRecord, T]],
        guard: Callable[[], Awaitable[object]] | None = None,
    ) -> tuple[ProgressRecord, T]:
        """Apply a pure transformation with a versioned write.

        ``guard`` runs before every attempt, so a retry re-checks it.
        ``transform`` and ``guard`` may raise; nothing is written in that case.
        """
        for attempt in range(1, self._write_attempts + 1):
            if guard is not None:
                await guard()
            current = await self._get_or_create_record(user_id, course_id)
            updated, outcome = transform(current)
            updated = replace(updated, version=current.version + 1)

            result = await self.session.aexecute(
                self._update_record,
                [
                    json.dumps(updated.to_dict()),
                    updated.version,
                    updated.updated_at,
                    user_id,
                    course_id,
                    current.version,
                ],
            )
            if result.was_applied:
                return updated, outcome

            logger.warning(
                "progress_write_conflict",
                entity="progress_record",
                user_id=str(user_id),
                course_id=str(course_id),
                attempt=attempt,
            )

        raise ConcurrentUpdateError

    async def _require_writable_enrollment(
        self, user_id: UUID, course_id: UUID
    ) -> Enrollment:
        enrollment = await self.get_enrollment(user_id, course_id)
        if enrollment is None:
            raise NotEnrolledError
        if enrollment.is_dropped and not self.allow_writes_after_drop:
            raise EnrollmentClosedError
        return enrollment

    async def _sync_enrollment(
        self, record: ProgressRecord, now: datetime
    ) -> tuple[Enrollment, bool]:
        """Mirror the record's completion rate onto its enrollment.

        A drop that lands after the record was written wins: the record
        keeps the event and the enrollment stays dropped.
        """
        try:
            before, after = await self._mutate_enrollment(
                record.user_id,
                record.course_id,
                lambda e: apply_progress(
                    e,
                    record.analytics.completion_rate,
                    now,
                    allow_dropped=self.allow_writes_after_drop,
                ),
            )
        except EnrollmentClosedError:
            logger.info(
                "enrollment_dropped_during_write",
                user_id=str(record.user_id),
                course_id=str(record.course_id),
            )
            enrollment = await self.get_enrollment(record.user_id, record.course_id)
            if enrollment is None:
                raise NotEnrolledError from None
            return enrollment, False

        newly_completed = after.is_completed and not before.is_completed

        if newly_completed:
            logger.info(
                "course_completed",
                user_id=str(record.user_id),
                course_id=str(record.course_id),
                average_score=record.analytics.average_score,
            )

        return after, newly_completed

    # ==========================================================================
    # Learning Events
    # ==========================================================================

    async def get_course_progress(self, user_id: UUID, course_id: UUID) -> ProgressRecord:
        """Get a learner's record for one course, creating it on first access.

        Raises:
            NotEnrolledError: If user is not enrolled
            CourseNotFoundError: If the record is new and the course is unknown
        """
        if await self.get_enrollment(user_id, course_id) is None:
            raise NotEnrolledError
        return await self._get_or_create_record(user_id, course_id)

    async def record_module_activity(
        self,
        user_id: UUID,
        course_id: UUID,
        module_id: UUID,
        activity: ModuleActivity,
    ) -> ProgressUpdate:
        """Record time, completion or score for one module.

        Raises:
            NotEnrolledError: If user is not enrolled
            EnrollmentClosedError: If the enrollment was dropped
            ModuleProgressNotFoundError: If the course has no such module
            ValidationError: On negative time or an out-of-range score
        """
        now = datetime.now(UTC)
        record, _ = await self._mutate_record(
            user_id,
            course_id,
            lambda r: (tracking.record_module_activity(r, module_id, activity, now), None),
            guard=lambda: self._require_writable_enrollment(user_id, course_id),
        )
        enrollment, newly_completed = await self._sync_enrollment(record, now)

        logger.info(
            "module_activity_recorded",
            user_id=str(user_id),
            course_id=str(course_id),
            module_id=str(module_id),
            completion_rate=record.analytics.completion_rate,
            gaps=len(record.learning_gaps),
        )

        return ProgressUpdate(
            record=record,
            enrollment=enrollment,
            newly_completed=newly_completed,
        )

    async def submit_quiz_attempt(
        self,
        user_id: UUID,
        course_id: UUID,
        quiz_id: UUID,
        answers: list[int],
        time_taken: float,
    ) -> ProgressUpdate:
        """Grade a quiz submission and append it to the learner's history.

        Raises:
            NotEnrolledError: If user is not enrolled
            EnrollmentClosedError: If the enrollment was dropped
            QuizNotFoundError: If the course has no such quiz
            ValidationError: On an empty quiz or negative time taken
        """
        course = await self._require_course(course_id)
        quiz = course.find_quiz(quiz_id)
        if quiz is None:
            raise QuizNotFoundError

        now = datetime.now(UTC)
        record, attempt = await self._mutate_record(
            user_id,
            course_id,
            lambda r: tracking.submit_quiz_attempt(r, quiz, answers, time_taken, now),
            guard=lambda: self._require_writable_enrollment(user_id, course_id),
        )
        enrollment, newly_completed = await self._sync_enrollment(record, now)

        logger.info(
            "quiz_attempt_submitted",
            user_id=str(user_id),
            course_id=str(course_id),
            quiz_id=str(quiz_id),
            attempt_number=attempt.attempt_number,
            score=attempt.score,
            passed=attempt.passed,
        )

        return ProgressUpdate(
            record=record,
            enrollment=enrollment,
            newly_completed=newly_completed,
            attempt=attempt,
        )

    async def complete_recommendation(
        self, user_id: UUID, course_id: UUID, recommendation_id: str
    ) -> ProgressRecord:
        """Mark a recommendation as done.

        Raises:
            NotEnrolledError: If user is not enrolled
            RecommendationNotFoundError: If the record has no such recommendation
        """
        if await self.get_enrollment(user_id, course_id) is None:
            raise NotEnrolledError

        record, _ = await self._mutate_record(
            user_id,
            course_id,
            lambda r: (gaps.complete_recommendation(r, recommendation_id), None),
        )

        logger.info(
            "recommendation_completed",
            user_id=str(user_id),
            course_id=str(course_id),
            recommendation_id=recommendation_id,
        )

        return record

    # ==========================================================================
    # Cross-Course Views
    # ==========================================================================

    async def get_user_progress_records(self, user_id: UUID) -> list[ProgressRecord]:
        """Get every progress record for a user."""
        rows = await self.session.aexecute(self._get_user_records, [user_id])
        return [self._record_from_row(row) for row in rows]

    async def get_student_overview(self, user_id: UUID) -> ProgressOverview:
        """Dashboard overview across all courses."""
        records = await self.get_user_progress_records(user_id)
        return summarize_progress(records)

    async def get_learning_analytics(self, user_id: UUID) -> LearningAnalyticsSummary:
        """Detailed analytics with category and level breakdowns."""
        records = await self.get_user_progress_records(user_id)
        courses = await self.course_service.get_courses([r.course_id for r in records])
        return aggregate_learning_analytics(records, courses)

    async def get_learning_gaps(self, user_id: UUID) -> LearningGapReport:
        """All learning gaps and recommendations, highest priority first."""
        records = await self.get_user_progress_records(user_id)
        courses = await self.course_service.get_courses([r.course_id for r in records])
        return collect_learning_gaps(records, courses)
