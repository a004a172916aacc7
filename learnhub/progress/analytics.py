"""Learning analytics.

``recompute_analytics`` derives a record's aggregates from its module
state. It always recomputes from scratch, so the result is correct even
if earlier writes were partial or applied out of order.

The remaining functions build the cross-course read models shown on the
learner dashboard. They only average and count; nothing here is weighted.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from learnhub.courses.models import CourseDefinition

from .models import LearningAnalytics, ModuleProgress, ProgressRecord


RECENT_ACTIVITY_LIMIT = 10
UNCATEGORIZED = "uncategorized"


def round_half_up(value: float, places: int = 0) -> float:
    """Round like a calculator does (2.5 -> 3), unlike ``round()``."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def recompute_analytics(
    modules: Iterable[ModuleProgress],
    last_study_session: datetime | None = None,
) -> LearningAnalytics:
    """Derive total time, average score and completion rate.

    Args:
        modules: The record's module progress entries
        last_study_session: Carried through unchanged

    Returns:
        Fresh LearningAnalytics
    """
    modules = list(modules)
    completed = [m for m in modules if m.completed]

    average_score = (
        sum(m.score for m in completed) / len(completed) if completed else 0
    )
    completion_rate = 100 * len(completed) / len(modules) if modules else 0

    return LearningAnalytics(
        total_time_spent=sum(m.time_spent for m in modules),
        average_score=average_score,
        completion_rate=completion_rate,
        last_study_session=last_study_session,
    )


# ==============================================================================
# Cross-course read models
# ==============================================================================


@dataclass(frozen=True)
class ProgressOverview:
    total_courses: int
    completed_courses: int
    in_progress_courses: int
    total_time_spent: float
    average_score: float


@dataclass(frozen=True)
class BreakdownCount:
    total: int = 0
    completed: int = 0


@dataclass(frozen=True)
class RecentActivity:
    course_id: UUID
    course_title: str
    last_session: datetime
    completion_rate: float


@dataclass(frozen=True)
class LearningAnalyticsSummary:
    total_courses: int = 0
    completed_courses: int = 0
    in_progress_courses: int = 0
    total_time_spent: float = 0
    average_score: float = 0
    total_learning_gaps: int = 0
    category_breakdown: dict[str, BreakdownCount] = field(default_factory=dict)
    level_breakdown: dict[str, BreakdownCount] = field(default_factory=dict)
    recent_activity: list[RecentActivity] = field(default_factory=list)


def _is_complete(record: ProgressRecord) -> bool:
    return record.analytics.completion_rate == 100


def _is_started(record: ProgressRecord) -> bool:
    return 0 < record.analytics.completion_rate < 100


def summarize_progress(records: Iterable[ProgressRecord]) -> ProgressOverview:
    """Dashboard overview across all of a learner's courses."""
    records = list(records)
    total_time = sum(r.analytics.total_time_spent for r in records)
    average = sum(r.analytics.average_score for r in records) / (len(records) or 1)

    return ProgressOverview(
        total_courses=len(records),
        completed_courses=sum(1 for r in records if _is_complete(r)),
        in_progress_courses=sum(1 for r in records if _is_started(r)),
        total_time_spent=round_half_up(total_time),
        average_score=round_half_up(average, 1),
    )


def _bump(
    breakdown: dict[str, BreakdownCount], key: str, completed: bool
) -> None:
    current = breakdown.get(key, BreakdownCount())
    breakdown[key] = BreakdownCount(
        total=current.total + 1,
        completed=current.completed + (1 if completed else 0),
    )


def aggregate_learning_analytics(
    records: Iterable[ProgressRecord],
    courses: Mapping[UUID, CourseDefinition],
) -> LearningAnalyticsSummary:
    """Detailed analytics with category/level breakdowns and recent sessions.

    The average score only counts courses with some completed module.
    """
    records = list(records)
    categories: dict[str, BreakdownCount] = {}
    levels: dict[str, BreakdownCount] = {}
    recent: list[RecentActivity] = []

    for record in records:
        course = courses.get(record.course_id)
        done = _is_complete(record)
        _bump(categories, (course and course.category) or UNCATEGORIZED, done)
        _bump(levels, (course and course.level) or UNCATEGORIZED, done)

        if record.analytics.last_study_session:
            recent.append(
                RecentActivity(
                    course_id=record.course_id,
                    course_title=course.title if course else "",
                    last_session=record.analytics.last_study_session,
                    completion_rate=record.analytics.completion_rate,
                )
            )

    scored = [r for r in records if r.analytics.completion_rate > 0]
    average = (
        sum(r.analytics.average_score for r in scored) / len(scored) if scored else 0
    )
    recent.sort(key=lambda activity: activity.last_session, reverse=True)

    return LearningAnalyticsSummary(
        total_courses=len(records),
        completed_courses=sum(1 for r in records if _is_complete(r)),
        in_progress_courses=sum(1 for r in records if _is_started(r)),
        total_time_spent=sum(r.analytics.total_time_spent for r in records),
        average_score=average,
        total_learning_gaps=sum(len(r.learning_gaps) for r in records),
        category_breakdown=categories,
        level_breakdown=levels,
        recent_activity=recent[:RECENT_ACTIVITY_LIMIT],
    )
