"""Learner progress and analytics engine.

Provides:
- Module activity and quiz attempt tracking
- Derived analytics, learning gaps and recommendations
- Enrollment lifecycle with completion detection
- Cross-course overview and reports
"""

from .models import (
    PROGRESS_TABLES_CQL,
    Enrollment,
    EnrollmentStatus,
    GapType,
    LearningAnalytics,
    LearningGap,
    ModuleProgress,
    Priority,
    ProgressRecord,
    QuizAttempt,
    QuizProgress,
    Recommendation,
    RecommendationType,
)


__all__ = [
    "PROGRESS_TABLES_CQL",
    "Enrollment",
    "EnrollmentStatus",
    "GapType",
    "LearningAnalytics",
    "LearningGap",
    "ModuleProgress",
    "Priority",
    "ProgressRecord",
    "QuizAttempt",
    "QuizProgress",
    "Recommendation",
    "RecommendationType",
]
