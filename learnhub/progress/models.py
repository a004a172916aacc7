"""Entities and table definitions for learner progress.

A ``ProgressRecord`` is the per (user, course) aggregate: one
``ModuleProgress`` per course module, one ``QuizProgress`` per quiz, the
derived ``LearningAnalytics``, and the derived gap and recommendation
lists. Records are immutable snapshots; every change produces a new record
(see ``progress.pipeline``).

Cassandra stores each record as JSON text next to a ``version`` counter
used for conditional (lightweight transaction) writes.
"""

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID


class EnrollmentStatus(str, Enum):
    """Course enrollment status."""

    ENROLLED = "enrolled"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    DROPPED = "dropped"


class GapType(str, Enum):
    LOW_SCORE = "low_score"
    MULTIPLE_ATTEMPTS = "multiple_attempts"
    INCOMPLETE = "incomplete"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RecommendationType(str, Enum):
    REVIEW_MODULE = "review_module"
    PRACTICE_QUIZ = "practice_quiz"
    ADDITIONAL_RESOURCES = "additional_resources"
    PEER_HELP = "peer_help"


# ==============================================================================
# Helper Functions
# ==============================================================================


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware (Cassandra returns naive datetimes)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def _dump_dt(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt else None


def _load_dt(value: str | None) -> datetime | None:
    return ensure_utc_aware(datetime.fromisoformat(value)) if value else None


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

# One row per (user, course); partitioned by user for the cross-course views.
# ``data`` holds the serialized ProgressRecord, ``version`` guards updates.
PROGRESS_RECORDS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.progress_records (
    user_id UUID,
    course_id UUID,
    version INT,
    data TEXT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP,
    PRIMARY KEY (user_id, course_id)
)
"""

# Enrollments partitioned by course ("who is enrolled here?")
ENROLLMENTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments (
    course_id UUID,
    user_id UUID,
    status TEXT,
    progress DOUBLE,
    enrolled_at TIMESTAMP,
    last_accessed TIMESTAMP,
    completed_at TIMESTAMP,
    dropped_at TIMESTAMP,
    version INT,
    PRIMARY KEY (course_id, user_id)
)
"""

# Lookup: enrollments by user, newest first
ENROLLMENTS_BY_USER_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments_by_user (
    user_id UUID,
    enrolled_at TIMESTAMP,
    course_id UUID,
    status TEXT,
    progress DOUBLE,
    last_accessed TIMESTAMP,
    completed_at TIMESTAMP,
    dropped_at TIMESTAMP,
    version INT,
    PRIMARY KEY (user_id, enrolled_at, course_id)
) WITH CLUSTERING ORDER BY (enrolled_at DESC, course_id ASC)
"""

PROGRESS_TABLES_CQL = [
    PROGRESS_RECORDS_TABLE_CQL,
    ENROLLMENTS_TABLE_CQL,
    ENROLLMENTS_BY_USER_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


@dataclass(frozen=True)
class ModuleProgress:
    """Learner state for one course module.

    Attributes:
        module_id: Module UUID
        title: Module title snapshot taken when the record was created
        time_spent: Minutes accumulated across activity updates
        completed: Whether the learner finished the module
        completed_at: Set whenever ``completed`` is True
        score: Latest module score (0-100)
        attempts: Number of activity updates received for this module
    """

    module_id: UUID
    title: str
    time_spent: float = 0
    completed: bool = False
    completed_at: datetime | None = None
    score: float = 0
    attempts: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "module_id": str(self.module_id),
            "title": self.title,
            "time_spent": self.time_spent,
            "completed": self.completed,
            "completed_at": _dump_dt(self.completed_at),
            "score": self.score,
            "attempts": self.attempts,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ModuleProgress":
        return cls(
            module_id=UUID(data["module_id"]),
            title=data.get("title", ""),
            time_spent=data.get("time_spent") or 0,
            completed=bool(data.get("completed")),
            completed_at=_load_dt(data.get("completed_at")),
            score=data.get("score") or 0,
            attempts=data.get("attempts") or 0,
        )


@dataclass(frozen=True)
class QuizAttempt:
    """One graded quiz submission. Never modified after it is appended."""

    attempt_number: int
    score: int
    correct_answers: int
    total_questions: int
    time_taken: float
    attempted_at: datetime
    passed: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "attempt_number": self.attempt_number,
            "score": self.score,
            "correct_answers": self.correct_answers,
            "total_questions": self.total_questions,
            "time_taken": self.time_taken,
            "attempted_at": _dump_dt(self.attempted_at),
            "passed": self.passed,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "QuizAttempt":
        return cls(
            attempt_number=data["attempt_number"],
            score=data["score"],
            correct_answers=data["correct_answers"],
            total_questions=data["total_questions"],
            time_taken=data.get("time_taken") or 0,
            attempted_at=_load_dt(data["attempted_at"]),
            passed=bool(data["passed"]),
        )


@dataclass(frozen=True)
class QuizProgress:
    """Attempt history for one quiz."""

    quiz_id: UUID
    title: str
    attempts: tuple[QuizAttempt, ...] = ()
    best_score: int = 0
    total_attempts: int = 0

    @property
    def has_passed(self) -> bool:
        return any(attempt.passed for attempt in self.attempts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "quiz_id": str(self.quiz_id),
            "title": self.title,
            "attempts": [a.to_dict() for a in self.attempts],
            "best_score": self.best_score,
            "total_attempts": self.total_attempts,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "QuizProgress":
        return cls(
            quiz_id=UUID(data["quiz_id"]),
            title=data.get("title", ""),
            attempts=tuple(QuizAttempt.from_dict(a) for a in data.get("attempts", [])),
            best_score=data.get("best_score") or 0,
            total_attempts=data.get("total_attempts") or 0,
        )


@dataclass(frozen=True)
class LearningAnalytics:
    """Aggregates derived from module state; never edited directly."""

    total_time_spent: float = 0
    average_score: float = 0
    completion_rate: float = 0
    last_study_session: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_time_spent": self.total_time_spent,
            "average_score": self.average_score,
            "completion_rate": self.completion_rate,
            "last_study_session": _dump_dt(self.last_study_session),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LearningAnalytics":
        return cls(
            total_time_spent=data.get("total_time_spent") or 0,
            average_score=data.get("average_score") or 0,
            completion_rate=data.get("completion_rate") or 0,
            last_study_session=_load_dt(data.get("last_study_session")),
        )


@dataclass(frozen=True)
class LearningGap:
    """A detected weakness tied to a module."""

    module_id: UUID
    module_title: str
    gap_type: GapType
    description: str
    suggested_actions: tuple[str, ...]
    priority: Priority

    def to_dict(self) -> dict[str, Any]:
        return {
            "module_id": str(self.module_id),
            "module_title": self.module_title,
            "gap_type": self.gap_type.value,
            "description": self.description,
            "suggested_actions": list(self.suggested_actions),
            "priority": self.priority.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LearningGap":
        return cls(
            module_id=UUID(data["module_id"]),
            module_title=data.get("module_title", ""),
            gap_type=GapType(data["gap_type"]),
            description=data.get("description", ""),
            suggested_actions=tuple(data.get("suggested_actions", ())),
            priority=Priority(data.get("priority", Priority.MEDIUM.value)),
        )


@dataclass(frozen=True)
class Recommendation:
    """Suggested next step for the learner.

    ``id`` is ``<type>:<target_id>`` so a recommendation keeps its identity
    (and its ``is_completed`` flag) across recomputations.
    """

    id: str
    type: RecommendationType
    target_id: UUID
    title: str
    description: str
    priority: Priority = Priority.MEDIUM
    is_completed: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "target_id": str(self.target_id),
            "title": self.title,
            "description": self.description,
            "priority": self.priority.value,
            "is_completed": self.is_completed,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Recommendation":
        return cls(
            id=data["id"],
            type=RecommendationType(data["type"]),
            target_id=UUID(data["target_id"]),
            title=data.get("title", ""),
            description=data.get("description", ""),
            priority=Priority(data.get("priority", Priority.MEDIUM.value)),
            is_completed=bool(data.get("is_completed")),
        )


@dataclass(frozen=True)
class ProgressRecord:
    """Per (user, course) progress aggregate.

    Attributes:
        user_id: Learner UUID
        course_id: Course UUID
        module_progress: One entry per course module, in course order
        quiz_progress: One entry per course quiz
        analytics: Derived aggregates
        learning_gaps: Derived gaps, rebuilt on every change
        recommendations: Derived recommendations, rebuilt on every change
        created_at: Creation timestamp
        updated_at: Last mutation timestamp
        version: Storage version for conditional writes (0 = never stored)
    """

    user_id: UUID
    course_id: UUID
    module_progress: tuple[ModuleProgress, ...] = ()
    quiz_progress: tuple[QuizProgress, ...] = ()
    analytics: LearningAnalytics = field(default_factory=LearningAnalytics)
    learning_gaps: tuple[LearningGap, ...] = ()
    recommendations: tuple[Recommendation, ...] = ()
    created_at: datetime | None = None
    updated_at: datetime | None = None
    version: int = 0

    def find_module(self, module_id: UUID) -> ModuleProgress | None:
        return next((m for m in self.module_progress if m.module_id == module_id), None)

    def find_quiz(self, quiz_id: UUID) -> QuizProgress | None:
        return next((q for q in self.quiz_progress if q.quiz_id == quiz_id), None)

    def replace_module(self, updated: ModuleProgress) -> "ProgressRecord":
        """Return a copy with one module entry swapped, keeping order."""
        return replace(
            self,
            module_progress=tuple(
                updated if m.module_id == updated.module_id else m
                for m in self.module_progress
            ),
        )

    def replace_quiz(self, updated: QuizProgress) -> "ProgressRecord":
        return replace(
            self,
            quiz_progress=tuple(
                updated if q.quiz_id == updated.quiz_id else q
                for q in self.quiz_progress
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize the stored payload (identity and version live in columns)."""
        return {
            "module_progress": [m.to_dict() for m in self.module_progress],
            "quiz_progress": [q.to_dict() for q in self.quiz_progress],
            "analytics": self.analytics.to_dict(),
            "learning_gaps": [g.to_dict() for g in self.learning_gaps],
            "recommendations": [r.to_dict() for r in self.recommendations],
        }

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        *,
        user_id: UUID,
        course_id: UUID,
        version: int = 0,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ) -> "ProgressRecord":
        return cls(
            user_id=user_id,
            course_id=course_id,
            module_progress=tuple(
                ModuleProgress.from_dict(m) for m in data.get("module_progress", [])
            ),
            quiz_progress=tuple(
                QuizProgress.from_dict(q) for q in data.get("quiz_progress", [])
            ),
            analytics=LearningAnalytics.from_dict(data.get("analytics", {})),
            learning_gaps=tuple(
                LearningGap.from_dict(g) for g in data.get("learning_gaps", [])
            ),
            recommendations=tuple(
                Recommendation.from_dict(r) for r in data.get("recommendations", [])
            ),
            created_at=ensure_utc_aware(created_at),
            updated_at=ensure_utc_aware(updated_at),
            version=version,
        )

    def __repr__(self) -> str:
        return (
            f"<ProgressRecord user={self.user_id} course={self.course_id} "
            f"v{self.version} {self.analytics.completion_rate}%>"
        )


@dataclass(frozen=True)
class Enrollment:
    """Course enrollment entity.

    Attributes:
        course_id: Course UUID
        user_id: User UUID
        status: enrolled, in-progress, completed or dropped
        progress: Mirror of the progress record's completion rate (0-100)
        enrolled_at: Enrollment timestamp
        last_accessed: Last module/quiz activity timestamp
        completed_at: Set exactly when status is completed
        dropped_at: When the learner dropped the course
        version: Storage version for conditional writes (0 = never stored)
    """

    course_id: UUID
    user_id: UUID
    status: EnrollmentStatus = EnrollmentStatus.ENROLLED
    progress: float = 0
    enrolled_at: datetime | None = None
    last_accessed: datetime | None = None
    completed_at: datetime | None = None
    dropped_at: datetime | None = None
    version: int = 0

    @property
    def is_completed(self) -> bool:
        return self.status == EnrollmentStatus.COMPLETED

    @property
    def is_dropped(self) -> bool:
        return self.status == EnrollmentStatus.DROPPED

    @classmethod
    def from_row(cls, row: Any) -> "Enrollment":
        """Create Enrollment instance from Cassandra row."""
        return cls(
            course_id=row.course_id,
            user_id=row.user_id,
            status=EnrollmentStatus(row.status or EnrollmentStatus.ENROLLED.value),
            progress=row.progress or 0,
            enrolled_at=ensure_utc_aware(row.enrolled_at),
            last_accessed=ensure_utc_aware(row.last_accessed),
            completed_at=ensure_utc_aware(row.completed_at),
            dropped_at=ensure_utc_aware(row.dropped_at),
            version=row.version or 0,
        )

    def __repr__(self) -> str:
        return (
            f"<Enrollment user={self.user_id} course={self.course_id} "
            f"{self.status.value} {self.progress}%>"
        )
