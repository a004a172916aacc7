"""Pydantic schemas for learner progress.

Request and response models for:
- Module activity updates and quiz submissions
- Course enrollment
- Course progress, overview, analytics and learning-gap queries
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .analytics import LearningAnalyticsSummary, ProgressOverview
from .gaps import LearningGapReport, sort_by_priority
from .models import (
    Enrollment,
    EnrollmentStatus,
    GapType,
    LearningGap,
    Priority,
    ProgressRecord,
    QuizProgress,
    Recommendation,
    RecommendationType,
)
from .tracking import ModuleActivity, QuizAttemptResult


# ==============================================================================
# Learning Event Schemas
# ==============================================================================


class UpdateModuleProgressRequest(BaseModel):
    """Module activity update; omitted fields are left unchanged."""

    time_spent: float | None = Field(
        None, ge=0, description="Minutes to add to the module's time spent"
    )
    completed: bool | None = Field(None, description="Mark module complete or not")
    score: float | None = Field(None, ge=0, le=100, description="Module score 0-100")

    def to_activity(self) -> ModuleActivity:
        return ModuleActivity(
            time_spent_delta=self.time_spent,
            completed=self.completed,
            score=self.score,
        )


class SubmitQuizRequest(BaseModel):
    """Quiz submission: selected option index per question, in order."""

    answers: list[int] = Field(..., description="Selected option indices")
    time_taken: float = Field(0, ge=0, description="Minutes spent on the attempt")


# ==============================================================================
# Progress Record Schemas
# ==============================================================================


class ModuleProgressResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    module_id: UUID
    title: str
    time_spent: float
    completed: bool
    completed_at: datetime | None = None
    score: float
    attempts: int


class QuizAttemptResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    attempt_number: int
    score: int
    correct_answers: int
    total_questions: int
    time_taken: float
    attempted_at: datetime
    passed: bool


class QuizProgressResponse(BaseModel):
    quiz_id: UUID
    title: str
    attempts: list[QuizAttemptResponse] = []
    best_score: int
    total_attempts: int
    passed: bool

    @classmethod
    def from_entity(cls, entity: QuizProgress) -> "QuizProgressResponse":
        """Create response from entity."""
        return cls(
            quiz_id=entity.quiz_id,
            title=entity.title,
            attempts=[QuizAttemptResponse.model_validate(a) for a in entity.attempts],
            best_score=entity.best_score,
            total_attempts=entity.total_attempts,
            passed=entity.has_passed,
        )


class LearningAnalyticsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_time_spent: float
    average_score: float
    completion_rate: float
    last_study_session: datetime | None = None


class LearningGapResponse(BaseModel):
    module_id: UUID
    module_title: str
    gap_type: GapType
    description: str
    suggested_actions: list[str]
    priority: Priority

    @classmethod
    def from_entity(cls, entity: LearningGap) -> "LearningGapResponse":
        return cls(
            module_id=entity.module_id,
            module_title=entity.module_title,
            gap_type=entity.gap_type,
            description=entity.description,
            suggested_actions=list(entity.suggested_actions),
            priority=entity.priority,
        )


class RecommendationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    type: RecommendationType
    target_id: UUID
    title: str
    description: str
    priority: Priority
    is_completed: bool

    @classmethod
    def from_entity(cls, entity: Recommendation) -> "RecommendationResponse":
        return cls.model_validate(entity)


class CourseProgressResponse(BaseModel):
    """Complete progress for one course."""

    user_id: UUID
    course_id: UUID
    module_progress: list[ModuleProgressResponse] = []
    quiz_progress: list[QuizProgressResponse] = []
    analytics: LearningAnalyticsResponse
    learning_gaps: list[LearningGapResponse] = []
    recommendations: list[RecommendationResponse] = []
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_entity(cls, entity: ProgressRecord) -> "CourseProgressResponse":
        """Create response from entity."""
        return cls(
            user_id=entity.user_id,
            course_id=entity.course_id,
            module_progress=[
                ModuleProgressResponse.model_validate(m) for m in entity.module_progress
            ],
            quiz_progress=[QuizProgressResponse.from_entity(q) for q in entity.quiz_progress],
            analytics=LearningAnalyticsResponse.model_validate(entity.analytics),
            learning_gaps=[
                LearningGapResponse.from_entity(g)
                for g in sort_by_priority(entity.learning_gaps)
            ],
            recommendations=[
                RecommendationResponse.from_entity(r)
                for r in sort_by_priority(entity.recommendations)
            ],
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )


# ==============================================================================
# Enrollment Schemas
# ==============================================================================


class EnrollRequest(BaseModel):
    """Request to enroll in a course."""

    course_id: UUID = Field(..., description="Course UUID to enroll in")


class EnrollmentResponse(BaseModel):
    """Enrollment response."""

    model_config = ConfigDict(from_attributes=True)

    course_id: UUID
    user_id: UUID
    status: EnrollmentStatus
    progress: float = Field(description="Completion rate 0-100")
    enrolled_at: datetime | None = None
    last_accessed: datetime | None = None
    completed_at: datetime | None = None
    dropped_at: datetime | None = None

    @classmethod
    def from_entity(cls, entity: Enrollment) -> "EnrollmentResponse":
        return cls.model_validate(entity)


class EnrollmentListResponse(BaseModel):
    """List of user enrollments."""

    items: list[EnrollmentResponse]
    total: int


class ModuleUpdateResponse(BaseModel):
    """Result of a module activity update."""

    progress: CourseProgressResponse
    enrollment: EnrollmentResponse
    course_completed: bool = Field(
        False, description="True when this update completed the course"
    )


class QuizAttemptResultResponse(BaseModel):
    """Graded attempt plus the refreshed course state."""

    model_config = ConfigDict(from_attributes=True)

    quiz_id: UUID
    attempt_number: int
    score: int
    correct_answers: int
    total_questions: int
    passed: bool
    best_score: int
    time_taken: float
    enrollment: EnrollmentResponse | None = None
    analytics: LearningAnalyticsResponse | None = None
    course_completed: bool = False

    @classmethod
    def from_result(
        cls,
        result: QuizAttemptResult,
        enrollment: Enrollment,
        record: ProgressRecord,
        course_completed: bool,
    ) -> "QuizAttemptResultResponse":
        return cls(
            quiz_id=result.quiz_id,
            attempt_number=result.attempt_number,
            score=result.score,
            correct_answers=result.correct_answers,
            total_questions=result.total_questions,
            passed=result.passed,
            best_score=result.best_score,
            time_taken=result.time_taken,
            enrollment=EnrollmentResponse.from_entity(enrollment),
            analytics=LearningAnalyticsResponse.model_validate(record.analytics),
            course_completed=course_completed,
        )


# ==============================================================================
# Cross-Course Schemas
# ==============================================================================


class ProgressOverviewResponse(BaseModel):
    """Dashboard overview across courses."""

    model_config = ConfigDict(from_attributes=True)

    total_courses: int
    completed_courses: int
    in_progress_courses: int
    total_time_spent: float
    average_score: float

    @classmethod
    def from_overview(cls, overview: ProgressOverview) -> "ProgressOverviewResponse":
        return cls.model_validate(overview)


class BreakdownResponse(BaseModel):
    total: int
    completed: int


class RecentActivityResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    course_id: UUID
    course_title: str
    last_session: datetime
    completion_rate: float


class LearningAnalyticsSummaryResponse(BaseModel):
    total_courses: int
    completed_courses: int
    in_progress_courses: int
    total_time_spent: float
    average_score: float
    total_learning_gaps: int
    category_breakdown: dict[str, BreakdownResponse]
    level_breakdown: dict[str, BreakdownResponse]
    recent_activity: list[RecentActivityResponse]

    @classmethod
    def from_summary(
        cls, summary: LearningAnalyticsSummary
    ) -> "LearningAnalyticsSummaryResponse":
        return cls(
            total_courses=summary.total_courses,
            completed_courses=summary.completed_courses,
            in_progress_courses=summary.in_progress_courses,
            total_time_spent=summary.total_time_spent,
            average_score=summary.average_score,
            total_learning_gaps=summary.total_learning_gaps,
            category_breakdown={
                key: BreakdownResponse(total=b.total, completed=b.completed)
                for key, b in summary.category_breakdown.items()
            },
            level_breakdown={
                key: BreakdownResponse(total=b.total, completed=b.completed)
                for key, b in summary.level_breakdown.items()
            },
            recent_activity=[
                RecentActivityResponse.model_validate(a) for a in summary.recent_activity
            ],
        )


class CourseGapResponse(LearningGapResponse):
    course_id: UUID
    course_title: str


class CourseRecommendationResponse(RecommendationResponse):
    course_id: UUID
    course_title: str


class GapSummaryResponse(BaseModel):
    total_gaps: int
    high_priority_gaps: int
    pending_recommendations: int


class LearningGapReportResponse(BaseModel):
    """Learning gaps and recommendations across courses."""

    learning_gaps: list[CourseGapResponse]
    recommendations: list[CourseRecommendationResponse]
    summary: GapSummaryResponse

    @classmethod
    def from_report(cls, report: LearningGapReport) -> "LearningGapReportResponse":
        return cls(
            learning_gaps=[
                CourseGapResponse(
                    course_id=item.course_id,
                    course_title=item.course_title,
                    **LearningGapResponse.from_entity(item.gap).model_dump(),
                )
                for item in report.learning_gaps
            ],
            recommendations=[
                CourseRecommendationResponse(
                    course_id=item.course_id,
                    course_title=item.course_title,
                    **RecommendationResponse.from_entity(item.recommendation).model_dump(),
                )
                for item in report.recommendations
            ],
            summary=GapSummaryResponse(
                total_gaps=report.total_gaps,
                high_priority_gaps=report.high_priority_gaps,
                pending_recommendations=report.pending_recommendations,
            ),
        )
