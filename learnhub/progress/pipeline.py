"""Derived-state pipeline.

Every tracker event ends in ``refresh``: analytics are recomputed, then
gaps, then recommendations, each from the full current snapshot. The
input record is never modified; a new one is returned.
"""

from dataclasses import replace
from datetime import datetime
from uuid import UUID

from learnhub.courses.models import CourseDefinition

from .analytics import recompute_analytics
from .gaps import derive_recommendations, identify_gaps
from .models import ModuleProgress, ProgressRecord, QuizProgress


def refresh(
    record: ProgressRecord,
    now: datetime,
    *,
    study_session: bool = True,
) -> ProgressRecord:
    """Recompute analytics, gaps and recommendations for ``record``.

    Args:
        record: Snapshot whose module/quiz state was just changed
        now: Event time
        study_session: Whether the change was learner activity, which
            moves ``last_study_session`` forward

    Returns:
        New record with derived state rebuilt and ``updated_at`` set
    """
    last_session = now if study_session else record.analytics.last_study_session
    analytics = recompute_analytics(record.module_progress, last_session)
    gaps = identify_gaps(record.module_progress)
    recommendations = derive_recommendations(
        gaps, record.quiz_progress, previous=record.recommendations
    )
    return replace(
        record,
        analytics=analytics,
        learning_gaps=gaps,
        recommendations=recommendations,
        updated_at=now,
    )


def initialize_progress(
    user_id: UUID,
    course: CourseDefinition,
    now: datetime,
) -> ProgressRecord:
    """Build the first record for a learner from the course structure."""
    record = ProgressRecord(
        user_id=user_id,
        course_id=course.id,
        module_progress=tuple(
            ModuleProgress(module_id=m.id, title=m.title) for m in course.modules
        ),
        quiz_progress=tuple(
            QuizProgress(quiz_id=q.id, title=q.title) for q in course.quizzes
        ),
        created_at=now,
    )
    return refresh(record, now, study_session=False)
