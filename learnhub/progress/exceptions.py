"""Progress engine errors.

Two families matter to callers: ``NotFoundError`` (a referenced course,
enrollment, record, module or quiz does not exist) and ``ValidationError``
(malformed input). Neither is retried; the caller fixes the request.
The remaining classes describe lifecycle and storage conflicts raised by
the service layer, never by the pure engine functions.
"""


class ProgressError(Exception):
    """Base progress error."""

    def __init__(self, message: str, code: str = "progress_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class NotFoundError(ProgressError):
    """A referenced entity is absent."""

    def __init__(self, message: str = "Not found", code: str = "not_found"):
        super().__init__(message, code)


class ValidationError(ProgressError):
    """Input rejected before any state was touched."""

    def __init__(self, message: str, code: str = "validation_error"):
        super().__init__(message, code)


class CourseNotFoundError(NotFoundError):
    def __init__(self, message: str = "Course not found"):
        super().__init__(message, "course_not_found")


class NotEnrolledError(NotFoundError):
    """User not enrolled in course."""

    def __init__(self, message: str = "User is not enrolled in this course"):
        super().__init__(message, "not_enrolled")


class ProgressNotFoundError(NotFoundError):
    def __init__(self, message: str = "Progress record not found"):
        super().__init__(message, "progress_not_found")


class ModuleProgressNotFoundError(NotFoundError):
    def __init__(self, message: str = "Module not found in progress"):
        super().__init__(message, "module_not_found")


class QuizNotFoundError(NotFoundError):
    def __init__(self, message: str = "Quiz not found"):
        super().__init__(message, "quiz_not_found")


class RecommendationNotFoundError(NotFoundError):
    def __init__(self, message: str = "Recommendation not found"):
        super().__init__(message, "recommendation_not_found")


class AlreadyEnrolledError(ProgressError):
    """User already enrolled."""

    def __init__(self, message: str = "Already enrolled in this course"):
        super().__init__(message, "already_enrolled")


class EnrollmentClosedError(ProgressError):
    """Activity submitted against a dropped enrollment."""

    def __init__(self, message: str = "Enrollment has been dropped"):
        super().__init__(message, "enrollment_closed")


class ConcurrentUpdateError(ProgressError):
    """Conditional write kept losing to concurrent writers."""

    def __init__(
        self, message: str = "Progress was modified concurrently, please retry"
    ):
        super().__init__(message, "concurrent_update")
