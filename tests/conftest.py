"""Shared test fixtures."""

import os
import tempfile
from datetime import UTC, datetime
from uuid import UUID, uuid4

import pytest


os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="learnhub-logs-"))
os.environ.setdefault("LOG_FORMAT", "json")

from fastapi.testclient import TestClient  # noqa: E402

from learnhub.courses.models import (  # noqa: E402
    CourseDefinition,
    ModuleDefinition,
    QuizDefinition,
    QuizQuestion,
)
from learnhub.main import app  # noqa: E402
from learnhub.progress.models import ProgressRecord  # noqa: E402
from learnhub.progress.pipeline import initialize_progress  # noqa: E402


@pytest.fixture
def client() -> TestClient:
    """HTTP client without the lifespan (no Cassandra)."""
    return TestClient(app)


@pytest.fixture
def user_id() -> UUID:
    """Test learner ID."""
    return uuid4()


@pytest.fixture
def now() -> datetime:
    return datetime(2024, 3, 15, 10, 30, tzinfo=UTC)


@pytest.fixture
def quiz() -> QuizDefinition:
    """Three-question quiz; correct answers are 0, 1, 2."""
    return QuizDefinition(
        id=uuid4(),
        title="Basics Quiz",
        questions=(
            QuizQuestion(prompt="Q1", options=("a", "b", "c"), correct_answer=0),
            QuizQuestion(prompt="Q2", options=("a", "b", "c"), correct_answer=1),
            QuizQuestion(prompt="Q3", options=("a", "b", "c"), correct_answer=2),
        ),
    )


@pytest.fixture
def course(quiz: QuizDefinition) -> CourseDefinition:
    """Two-module course with one quiz."""
    return CourseDefinition(
        id=uuid4(),
        title="Intro to Python",
        modules=(
            ModuleDefinition(id=uuid4(), title="Variables"),
            ModuleDefinition(id=uuid4(), title="Functions"),
        ),
        quizzes=(quiz,),
        category="programming",
        level="beginner",
        instructor="Ada Lovelace",
    )


@pytest.fixture
def record(user_id: UUID, course: CourseDefinition, now: datetime) -> ProgressRecord:
    """Fresh progress record for ``course``."""
    return initialize_progress(user_id, course, now)
