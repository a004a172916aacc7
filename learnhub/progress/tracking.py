"""Module and quiz trackers.

Both entry points validate everything first and only then build a new
record, so a rejected event leaves the caller's record as it was.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from uuid import UUID

from learnhub.courses.models import QuizDefinition

from .exceptions import ModuleProgressNotFoundError, QuizNotFoundError, ValidationError
from .models import ProgressRecord, QuizAttempt
from .pipeline import refresh


MIN_SCORE = 0
MAX_SCORE = 100


@dataclass(frozen=True)
class ModuleActivity:
    """One module activity update; ``None`` fields are left untouched."""

    time_spent_delta: float | None = None
    completed: bool | None = None
    score: float | None = None


@dataclass(frozen=True)
class QuizAttemptResult:
    """What the learner sees after submitting a quiz."""

    quiz_id: UUID
    attempt_number: int
    score: int
    correct_answers: int
    total_questions: int
    passed: bool
    best_score: int
    time_taken: float


def validate_module_activity(activity: ModuleActivity) -> None:
    if activity.time_spent_delta is not None and activity.time_spent_delta < 0:
        raise ValidationError("Time spent cannot be negative", "invalid_time_spent")
    if activity.score is not None and not MIN_SCORE <= activity.score <= MAX_SCORE:
        raise ValidationError(
            f"Score must be between {MIN_SCORE} and {MAX_SCORE}", "invalid_score"
        )


def record_module_activity(
    record: ProgressRecord,
    module_id: UUID,
    activity: ModuleActivity,
    now: datetime,
) -> ProgressRecord:
    """Apply a module activity update and refresh derived state.

    Time is added to the running total, ``completed`` and ``score`` are
    overwritten when given, and every call counts as one attempt.
    Completing an already completed module keeps the original
    ``completed_at``; un-completing clears it.

    Raises:
        ModuleProgressNotFoundError: If the record has no such module
        ValidationError: On negative time or an out-of-range score
    """
    module = record.find_module(module_id)
    if module is None:
        raise ModuleProgressNotFoundError
    validate_module_activity(activity)

    changes: dict = {"attempts": module.attempts + 1}

    if activity.time_spent_delta is not None:
        changes["time_spent"] = module.time_spent + activity.time_spent_delta

    if activity.completed is not None:
        changes["completed"] = activity.completed
        if not activity.completed:
            changes["completed_at"] = None
        elif not (module.completed and module.completed_at):
            changes["completed_at"] = now

    if activity.score is not None:
        changes["score"] = activity.score

    return refresh(record.replace_module(replace(module, **changes)), now)


def grade_answers(
    quiz: QuizDefinition, answers: list[int]
) -> tuple[int, int, int]:
    """Grade answers positionally against the quiz's answer key.

    Missing answers count as wrong; extra answers are ignored.

    Returns:
        (correct answers, total questions, score rounded half up)

    Raises:
        ValidationError: If the quiz has no questions
    """
    total = len(quiz.questions)
    if total == 0:
        raise ValidationError("Quiz has no questions to grade", "empty_quiz")

    correct = sum(
        1
        for answer, question in zip(answers, quiz.questions, strict=False)
        if answer == question.correct_answer
    )
    # floor(100 * correct / total + 0.5) in integer arithmetic
    score = (200 * correct + total) // (2 * total)
    return correct, total, score


def submit_quiz_attempt(
    record: ProgressRecord,
    quiz: QuizDefinition,
    answers: list[int],
    time_taken: float,
    now: datetime,
) -> tuple[ProgressRecord, QuizAttemptResult]:
    """Grade a submission, append it to the quiz history, refresh state.

    Quiz results feed recommendations only; completion rate is driven by
    module completion alone.

    Raises:
        QuizNotFoundError: If the record does not track this quiz
        ValidationError: On an empty quiz or negative time taken
    """
    quiz_progress = record.find_quiz(quiz.id)
    if quiz_progress is None:
        raise QuizNotFoundError("Quiz not found in progress")
    if time_taken < 0:
        raise ValidationError("Time taken cannot be negative", "invalid_time_taken")

    correct, total, score = grade_answers(quiz, answers)
    attempt = QuizAttempt(
        attempt_number=quiz_progress.total_attempts + 1,
        score=score,
        correct_answers=correct,
        total_questions=total,
        time_taken=time_taken,
        attempted_at=now,
        passed=score >= quiz.passing_score,
    )
    updated_quiz = replace(
        quiz_progress,
        attempts=(*quiz_progress.attempts, attempt),
        total_attempts=attempt.attempt_number,
        best_score=max(quiz_progress.best_score, score),
    )

    result = QuizAttemptResult(
        quiz_id=quiz.id,
        attempt_number=attempt.attempt_number,
        score=score,
        correct_answers=correct,
        total_questions=total,
        passed=attempt.passed,
        best_score=updated_quiz.best_score,
        time_taken=time_taken,
    )
    return refresh(record.replace_quiz(updated_quiz), now), result
