"""Tests for learning gap detection and recommendations."""

from datetime import UTC, datetime
from uuid import uuid4

import pytest

from learnhub.courses.models import CourseDefinition
from learnhub.progress.exceptions import RecommendationNotFoundError
from learnhub.progress.gaps import (
    INCOMPLETE_ACTIONS,
    LOW_SCORE_ACTIONS,
    collect_learning_gaps,
    complete_recommendation,
    derive_recommendations,
    identify_gaps,
    recommendation_id,
    sort_by_priority,
)
from learnhub.progress.models import (
    GapType,
    ModuleProgress,
    Priority,
    ProgressRecord,
    QuizAttempt,
    QuizProgress,
    RecommendationType,
)
from learnhub.progress.pipeline import initialize_progress, refresh
from learnhub.progress.tracking import ModuleActivity, record_module_activity


NOW = datetime(2024, 5, 1, tzinfo=UTC)


def _completed(score: float, attempts: int = 1, title: str = "Module") -> ModuleProgress:
    return ModuleProgress(
        module_id=uuid4(),
        title=title,
        completed=True,
        completed_at=NOW,
        score=score,
        attempts=attempts,
    )


class TestIdentifyGaps:
    """Tests for identify_gaps."""

    def test_no_modules_no_gaps(self):
        assert identify_gaps([]) == ()

    def test_low_score_is_high_priority(self):
        gaps = identify_gaps([_completed(65)])

        assert len(gaps) == 1
        assert gaps[0].gap_type == GapType.LOW_SCORE
        assert gaps[0].priority == Priority.HIGH
        assert gaps[0].suggested_actions == LOW_SCORE_ACTIONS

    def test_good_score_has_no_gap(self):
        assert identify_gaps([_completed(85)]) == ()

    def test_threshold_score_is_not_low(self):
        assert identify_gaps([_completed(70)]) == ()

    def test_multiple_attempts_above_two(self):
        gaps = identify_gaps([_completed(85, attempts=3)])

        assert [g.gap_type for g in gaps] == [GapType.MULTIPLE_ATTEMPTS]
        assert gaps[0].priority == Priority.MEDIUM

    def test_two_attempts_is_fine(self):
        assert identify_gaps([_completed(85, attempts=2)]) == ()

    def test_low_score_and_multiple_attempts_together(self):
        gaps = identify_gaps([_completed(50, attempts=4)])

        assert [g.gap_type for g in gaps] == [
            GapType.LOW_SCORE,
            GapType.MULTIPLE_ATTEMPTS,
        ]

    def test_incomplete_module(self):
        module = ModuleProgress(module_id=uuid4(), title="Loops", score=10, attempts=5)

        gaps = identify_gaps([module])

        assert len(gaps) == 1
        assert gaps[0].gap_type == GapType.INCOMPLETE
        assert gaps[0].priority == Priority.MEDIUM
        assert gaps[0].module_title == "Loops"
        assert gaps[0].suggested_actions == INCOMPLETE_ACTIONS

    def test_gaps_follow_module_order(self):
        first = _completed(40, title="First")
        second = ModuleProgress(module_id=uuid4(), title="Second")

        gaps = identify_gaps([first, second])

        assert [g.module_title for g in gaps] == ["First", "Second"]


class TestSortByPriority:
    def test_high_first_ties_keep_order(self):
        gaps = identify_gaps(
            [
                ModuleProgress(module_id=uuid4(), title="A"),
                _completed(30, title="B"),
                ModuleProgress(module_id=uuid4(), title="C"),
                _completed(20, title="D"),
            ]
        )

        ordered = sort_by_priority(gaps)

        assert [g.module_title for g in ordered] == ["B", "D", "A", "C"]


class TestDeriveRecommendations:
    """Tests for derive_recommendations."""

    def test_gap_recommendations(self):
        low = _completed(50, attempts=3)
        gaps = identify_gaps([low])

        recommendations = derive_recommendations(gaps, [])

        assert [r.type for r in recommendations] == [
            RecommendationType.REVIEW_MODULE,
            RecommendationType.PEER_HELP,
        ]
        assert recommendations[0].priority == Priority.HIGH
        assert recommendations[0].id == recommendation_id(
            RecommendationType.REVIEW_MODULE, low.module_id
        )
        assert all(r.target_id == low.module_id for r in recommendations)

    def test_incomplete_gap_has_no_recommendation(self):
        gaps = identify_gaps([ModuleProgress(module_id=uuid4(), title="A")])

        assert derive_recommendations(gaps, []) == ()

    def test_quiz_without_pass(self):
        attempt = QuizAttempt(
            attempt_number=1,
            score=40,
            correct_answers=2,
            total_questions=5,
            time_taken=3,
            attempted_at=NOW,
            passed=False,
        )
        failing = QuizProgress(
            quiz_id=uuid4(), title="Quiz", attempts=(attempt,), best_score=40,
            total_attempts=1,
        )
        untouched = QuizProgress(quiz_id=uuid4(), title="Later")

        recommendations = derive_recommendations((), [failing, untouched])

        assert len(recommendations) == 1
        assert recommendations[0].type == RecommendationType.PRACTICE_QUIZ
        assert recommendations[0].target_id == failing.quiz_id

    def test_completion_mark_carries_over(self):
        gaps = identify_gaps([_completed(50)])
        previous = derive_recommendations(gaps, [])
        done = complete_recommendation(
            ProgressRecord(user_id=uuid4(), course_id=uuid4(), recommendations=previous),
            previous[0].id,
        ).recommendations

        recommendations = derive_recommendations(gaps, [], previous=done)

        assert recommendations[0].is_completed is True


class TestCompleteRecommendation:
    def test_marks_only_the_target(self, course: CourseDefinition):
        record = initialize_progress(uuid4(), course, NOW)
        for module in course.modules:
            record = record_module_activity(
                record, module.id, ModuleActivity(completed=True, score=50), NOW
            )
        target = record.recommendations[0].id

        record = complete_recommendation(record, target)

        assert [r.is_completed for r in record.recommendations] == [True, False]

    def test_unknown_id_raises(self, record: ProgressRecord):
        with pytest.raises(RecommendationNotFoundError):
            complete_recommendation(record, "review_module:nope")

    def test_mark_survives_refresh(self, course: CourseDefinition):
        module = course.modules[0]
        record = initialize_progress(uuid4(), course, NOW)
        record = record_module_activity(
            record, module.id, ModuleActivity(completed=True, score=40), NOW
        )
        record = complete_recommendation(record, record.recommendations[0].id)

        record = refresh(record, NOW)

        assert record.recommendations[0].is_completed is True


class TestInitializeProgress:
    def test_builds_entries_from_course(self, course: CourseDefinition, now):
        user_id = uuid4()

        record = initialize_progress(user_id, course, now)

        assert record.user_id == user_id
        assert record.course_id == course.id
        assert [m.module_id for m in record.module_progress] == [
            m.id for m in course.modules
        ]
        assert all(not m.completed and m.attempts == 0 for m in record.module_progress)
        assert [q.quiz_id for q in record.quiz_progress] == [q.id for q in course.quizzes]
        assert record.analytics.last_study_session is None
        assert record.created_at == now
        assert [g.gap_type for g in record.learning_gaps] == [
            GapType.INCOMPLETE,
            GapType.INCOMPLETE,
        ]


class TestCollectLearningGaps:
    def test_report_is_sorted_and_counted(self, course: CourseDefinition):
        record = initialize_progress(uuid4(), course, NOW)
        record = record_module_activity(
            record, course.modules[1].id, ModuleActivity(completed=True, score=30), NOW
        )

        report = collect_learning_gaps([record], {course.id: course})

        assert [g.gap.gap_type for g in report.learning_gaps] == [
            GapType.LOW_SCORE,
            GapType.INCOMPLETE,
        ]
        assert report.learning_gaps[0].course_title == course.title
        assert report.total_gaps == 2
        assert report.high_priority_gaps == 1
        assert report.pending_recommendations == 1

    def test_unknown_course_has_empty_title(self, record: ProgressRecord):
        report = collect_learning_gaps([record], {})

        assert all(g.course_title == "" for g in report.learning_gaps)
