"""Course structure provider backed by Cassandra."""

import json
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from .models import CourseDefinition


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)


class CourseStructureService:
    """Read and store immutable course definitions."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._get_course = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.course_structures
            WHERE course_id = ?
        """)

        self._upsert_course = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.course_structures
            (course_id, title, category, level, instructor, modules, quizzes)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """)

    async def get_course(self, course_id: UUID) -> CourseDefinition | None:
        """Get a course definition, or None if the course is unknown."""
        result = await self.session.aexecute(self._get_course, [course_id])
        row = result.one()
        return CourseDefinition.from_row(row) if row else None

    async def get_courses(self, course_ids: list[UUID]) -> dict[UUID, CourseDefinition]:
        """Get several course definitions keyed by ID (unknown IDs are skipped)."""
        courses: dict[UUID, CourseDefinition] = {}
        for course_id in dict.fromkeys(course_ids):
            course = await self.get_course(course_id)
            if course is not None:
                courses[course_id] = course
        return courses

    async def save_course(self, course: CourseDefinition) -> CourseDefinition:
        """Store a course definition (used by the catalog and seed scripts)."""
        data = course.to_dict()
        await self.session.aexecute(
            self._upsert_course,
            [
                course.id,
                course.title,
                course.category,
                course.level,
                course.instructor,
                json.dumps(data["modules"]),
                json.dumps(data["quizzes"]),
            ],
        )
        logger.info(
            "course_structure_saved",
            course_id=str(course.id),
            modules=len(course.modules),
            quizzes=len(course.quizzes),
        )
        return course
