"""Course structure definitions consumed by the progress engine.

Course content itself is authored elsewhere; this module only models the
immutable shape the engine needs: which modules a course has, and which
quizzes (with their answer keys and passing thresholds).

Cassandra stores one row per course with modules and quizzes serialized
as JSON text, since the structure is always read and written whole.
"""

import json
from dataclasses import dataclass
from typing import Any
from uuid import UUID


DEFAULT_PASSING_SCORE = 70


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

COURSE_STRUCTURES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.course_structures (
    course_id UUID PRIMARY KEY,
    title TEXT,
    category TEXT,
    level TEXT,
    instructor TEXT,
    modules TEXT,
    quizzes TEXT
)
"""

COURSES_TABLES_CQL = [COURSE_STRUCTURES_TABLE_CQL]


# ==============================================================================
# Entity Classes
# ==============================================================================


@dataclass(frozen=True)
class ModuleDefinition:
    """A content unit within a course."""

    id: UUID
    title: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": str(self.id), "title": self.title}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ModuleDefinition":
        return cls(id=UUID(str(data["id"])), title=data["title"])


@dataclass(frozen=True)
class QuizQuestion:
    """Multiple-choice question; ``correct_answer`` is an option index."""

    prompt: str
    options: tuple[str, ...]
    correct_answer: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "prompt": self.prompt,
            "options": list(self.options),
            "correct_answer": self.correct_answer,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "QuizQuestion":
        return cls(
            prompt=data.get("prompt", ""),
            options=tuple(data.get("options", ())),
            correct_answer=data["correct_answer"],
        )


@dataclass(frozen=True)
class QuizDefinition:
    """Assessment with an ordered question list and a passing threshold."""

    id: UUID
    title: str
    questions: tuple[QuizQuestion, ...] = ()
    passing_score: int = DEFAULT_PASSING_SCORE

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "title": self.title,
            "questions": [q.to_dict() for q in self.questions],
            "passing_score": self.passing_score,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "QuizDefinition":
        passing_score = data.get("passing_score")
        return cls(
            id=UUID(str(data["id"])),
            title=data["title"],
            questions=tuple(QuizQuestion.from_dict(q) for q in data.get("questions", [])),
            passing_score=(
                DEFAULT_PASSING_SCORE if passing_score is None else passing_score
            ),
        )


@dataclass(frozen=True)
class CourseDefinition:
    """Immutable course structure.

    Attributes:
        id: Course UUID
        title: Course title
        modules: Ordered modules; order drives gap discovery order
        quizzes: Quizzes attached to the course
        category: Catalog category (used by analytics breakdowns)
        level: Difficulty level (used by analytics breakdowns)
        instructor: Instructor display name (printed on certificates)
    """

    id: UUID
    title: str
    modules: tuple[ModuleDefinition, ...] = ()
    quizzes: tuple[QuizDefinition, ...] = ()
    category: str | None = None
    level: str | None = None
    instructor: str | None = None

    def find_quiz(self, quiz_id: UUID) -> QuizDefinition | None:
        """Return the quiz definition with this ID, if the course has one."""
        return next((q for q in self.quizzes if q.id == quiz_id), None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "title": self.title,
            "category": self.category,
            "level": self.level,
            "instructor": self.instructor,
            "modules": [m.to_dict() for m in self.modules],
            "quizzes": [q.to_dict() for q in self.quizzes],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CourseDefinition":
        return cls(
            id=UUID(str(data["id"])),
            title=data["title"],
            category=data.get("category"),
            level=data.get("level"),
            instructor=data.get("instructor"),
            modules=tuple(ModuleDefinition.from_dict(m) for m in data.get("modules", [])),
            quizzes=tuple(QuizDefinition.from_dict(q) for q in data.get("quizzes", [])),
        )

    @classmethod
    def from_row(cls, row: Any) -> "CourseDefinition":
        """Create CourseDefinition from a Cassandra row."""
        return cls.from_dict(
            {
                "id": row.course_id,
                "title": row.title,
                "category": row.category,
                "level": row.level,
                "instructor": row.instructor,
                "modules": json.loads(row.modules) if row.modules else [],
                "quizzes": json.loads(row.quizzes) if row.quizzes else [],
            }
        )

    def __repr__(self) -> str:
        return (
            f"<CourseDefinition {self.id} modules={len(self.modules)} "
            f"quizzes={len(self.quizzes)}>"
        )
