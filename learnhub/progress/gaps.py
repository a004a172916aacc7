"""Learning gap detection and recommendations.

Rules are deterministic thresholds over the current module and quiz state.
Both lists are rebuilt from scratch on every change; nothing is diffed
against the previous list except the learner's ``is_completed`` marks on
recommendations that still apply.
"""

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, replace
from typing import TypeVar
from uuid import UUID

from learnhub.courses.models import CourseDefinition

from .exceptions import RecommendationNotFoundError
from .models import (
    GapType,
    LearningGap,
    ModuleProgress,
    Priority,
    ProgressRecord,
    QuizProgress,
    Recommendation,
    RecommendationType,
)


LOW_SCORE_THRESHOLD = 70
MULTIPLE_ATTEMPTS_THRESHOLD = 2

PRIORITY_WEIGHTS = {Priority.HIGH: 3, Priority.MEDIUM: 2, Priority.LOW: 1}

LOW_SCORE_ACTIONS = (
    "Review module content",
    "Take practice quiz",
    "Seek help from instructor",
)
MULTIPLE_ATTEMPTS_ACTIONS = (
    "Review fundamental concepts",
    "Practice with similar problems",
)
INCOMPLETE_ACTIONS = (
    "Complete module content",
    "Set study schedule",
)


T = TypeVar("T")


def sort_by_priority(items: Iterable[T]) -> list[T]:
    """Order gaps or recommendations high -> low; ties keep their order."""
    return sorted(items, key=lambda item: PRIORITY_WEIGHTS[item.priority], reverse=True)


def identify_gaps(modules: Iterable[ModuleProgress]) -> tuple[LearningGap, ...]:
    """Scan module state and emit gaps in module order.

    A completed module can produce both a low-score and a multiple-attempts
    gap. An incomplete module only ever produces an incomplete gap.
    """
    gaps: list[LearningGap] = []

    for module in modules:
        if not module.completed:
            gaps.append(
                LearningGap(
                    module_id=module.module_id,
                    module_title=module.title,
                    gap_type=GapType.INCOMPLETE,
                    description=f"Module {module.title} not completed",
                    suggested_actions=INCOMPLETE_ACTIONS,
                    priority=Priority.MEDIUM,
                )
            )
            continue

        if module.score < LOW_SCORE_THRESHOLD:
            gaps.append(
                LearningGap(
                    module_id=module.module_id,
                    module_title=module.title,
                    gap_type=GapType.LOW_SCORE,
                    description=f"Low score ({module.score:g}%) in {module.title}",
                    suggested_actions=LOW_SCORE_ACTIONS,
                    priority=Priority.HIGH,
                )
            )

        if module.attempts > MULTIPLE_ATTEMPTS_THRESHOLD:
            gaps.append(
                LearningGap(
                    module_id=module.module_id,
                    module_title=module.title,
                    gap_type=GapType.MULTIPLE_ATTEMPTS,
                    description=(
                        f"Multiple attempts ({module.attempts}) needed for "
                        f"{module.title}"
                    ),
                    suggested_actions=MULTIPLE_ATTEMPTS_ACTIONS,
                    priority=Priority.MEDIUM,
                )
            )

    return tuple(gaps)


def recommendation_id(kind: RecommendationType, target_id: UUID) -> str:
    return f"{kind.value}:{target_id}"


def _for_gap(gap: LearningGap) -> Recommendation | None:
    if gap.gap_type == GapType.LOW_SCORE:
        return Recommendation(
            id=recommendation_id(RecommendationType.REVIEW_MODULE, gap.module_id),
            type=RecommendationType.REVIEW_MODULE,
            target_id=gap.module_id,
            title=f"Review {gap.module_title}",
            description=gap.description,
            priority=Priority.HIGH,
        )
    if gap.gap_type == GapType.MULTIPLE_ATTEMPTS:
        return Recommendation(
            id=recommendation_id(RecommendationType.PEER_HELP, gap.module_id),
            type=RecommendationType.PEER_HELP,
            target_id=gap.module_id,
            title=f"Study {gap.module_title} with a peer",
            description=gap.description,
            priority=Priority.MEDIUM,
        )
    return None


def _for_quiz(quiz: QuizProgress) -> Recommendation | None:
    if quiz.total_attempts == 0 or quiz.has_passed:
        return None
    return Recommendation(
        id=recommendation_id(RecommendationType.PRACTICE_QUIZ, quiz.quiz_id),
        type=RecommendationType.PRACTICE_QUIZ,
        target_id=quiz.quiz_id,
        title=f"Practice {quiz.title}",
        description=(
            f"Best score so far is {quiz.best_score}% after "
            f"{quiz.total_attempts} attempt(s)"
        ),
        priority=Priority.MEDIUM,
    )


def derive_recommendations(
    gaps: Sequence[LearningGap],
    quizzes: Iterable[QuizProgress],
    previous: Iterable[Recommendation] = (),
) -> tuple[Recommendation, ...]:
    """Build recommendations from the fresh gaps and the quiz history.

    Completion marks from ``previous`` survive for recommendations whose id
    is produced again.
    """
    done = {r.id for r in previous if r.is_completed}
    candidates = [_for_gap(gap) for gap in gaps] + [_for_quiz(q) for q in quizzes]

    return tuple(
        replace(rec, is_completed=True) if rec.id in done else rec
        for rec in candidates
        if rec is not None
    )


def complete_recommendation(
    record: ProgressRecord, rec_id: str
) -> ProgressRecord:
    """Mark one recommendation as done.

    Raises:
        RecommendationNotFoundError: If the record has no such recommendation
    """
    if not any(r.id == rec_id for r in record.recommendations):
        raise RecommendationNotFoundError
    return replace(
        record,
        recommendations=tuple(
            replace(r, is_completed=True) if r.id == rec_id else r
            for r in record.recommendations
        ),
    )


# ==============================================================================
# Cross-course report
# ==============================================================================


@dataclass(frozen=True)
class CourseGap:
    course_id: UUID
    course_title: str
    gap: LearningGap

    @property
    def priority(self) -> Priority:
        return self.gap.priority


@dataclass(frozen=True)
class CourseRecommendation:
    course_id: UUID
    course_title: str
    recommendation: Recommendation

    @property
    def priority(self) -> Priority:
        return self.recommendation.priority


@dataclass(frozen=True)
class LearningGapReport:
    learning_gaps: list[CourseGap]
    recommendations: list[CourseRecommendation]
    total_gaps: int
    high_priority_gaps: int
    pending_recommendations: int


def collect_learning_gaps(
    records: Iterable[ProgressRecord],
    courses: Mapping[UUID, CourseDefinition],
) -> LearningGapReport:
    """Gather every course's gaps and recommendations, priority-sorted."""
    gaps: list[CourseGap] = []
    recommendations: list[CourseRecommendation] = []

    for record in records:
        course = courses.get(record.course_id)
        title = course.title if course else ""
        gaps.extend(CourseGap(record.course_id, title, g) for g in record.learning_gaps)
        recommendations.extend(
            CourseRecommendation(record.course_id, title, r)
            for r in record.recommendations
        )

    gaps = sort_by_priority(gaps)
    recommendations = sort_by_priority(recommendations)

    return LearningGapReport(
        learning_gaps=gaps,
        recommendations=recommendations,
        total_gaps=len(gaps),
        high_priority_gaps=sum(1 for g in gaps if g.priority == Priority.HIGH),
        pending_recommendations=sum(
            1 for r in recommendations if not r.recommendation.is_completed
        ),
    )
