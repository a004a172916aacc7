"""Course structure provider.

Supplies the immutable module and quiz definitions that the progress
engine tracks learners against.
"""

from .models import (
    COURSES_TABLES_CQL,
    DEFAULT_PASSING_SCORE,
    CourseDefinition,
    ModuleDefinition,
    QuizDefinition,
    QuizQuestion,
)


__all__ = [
    "COURSES_TABLES_CQL",
    "DEFAULT_PASSING_SCORE",
    "CourseDefinition",
    "ModuleDefinition",
    "QuizDefinition",
    "QuizQuestion",
]
