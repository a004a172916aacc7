"""Enrollment state machine.

    enrolled -> in-progress -> completed
    enrolled | in-progress | completed -> dropped

``completed`` is reached only through ``check_completion``. It is left
again when the mirrored progress falls back below 100 or the course is
dropped. ``dropped`` is terminal.
"""

from dataclasses import replace
from datetime import datetime
from uuid import UUID

from .exceptions import EnrollmentClosedError
from .models import Enrollment, EnrollmentStatus


FULL_PROGRESS = 100


def new_enrollment(user_id: UUID, course_id: UUID, now: datetime) -> Enrollment:
    return Enrollment(
        course_id=course_id,
        user_id=user_id,
        status=EnrollmentStatus.ENROLLED,
        progress=0,
        enrolled_at=now,
        last_accessed=now,
    )


def check_completion(enrollment: Enrollment, now: datetime) -> Enrollment:
    """Flip to completed when progress hits 100.

    Idempotent: an already completed enrollment keeps its ``completed_at``.
    """
    if enrollment.progress < FULL_PROGRESS or enrollment.is_dropped:
        return enrollment
    if enrollment.is_completed and enrollment.completed_at:
        return enrollment
    return replace(
        enrollment,
        status=EnrollmentStatus.COMPLETED,
        completed_at=enrollment.completed_at or now,
    )


def apply_progress(
    enrollment: Enrollment,
    completion_rate: float,
    now: datetime,
    *,
    allow_dropped: bool = False,
) -> Enrollment:
    """Mirror a fresh completion rate onto the enrollment.

    Called after every module or quiz event. Moves ``enrolled`` to
    ``in-progress``, refreshes ``last_accessed`` and re-evaluates
    completion. A completed enrollment whose progress drops below 100
    goes back to in-progress.

    Raises:
        EnrollmentClosedError: If the enrollment is dropped and writes
            after a drop are not allowed
    """
    if enrollment.is_dropped:
        if not allow_dropped:
            raise EnrollmentClosedError
        return replace(enrollment, progress=completion_rate, last_accessed=now)

    status = enrollment.status
    completed_at = enrollment.completed_at
    if status == EnrollmentStatus.ENROLLED:
        status = EnrollmentStatus.IN_PROGRESS
    elif status == EnrollmentStatus.COMPLETED and completion_rate < FULL_PROGRESS:
        status = EnrollmentStatus.IN_PROGRESS
        completed_at = None

    updated = replace(
        enrollment,
        status=status,
        progress=completion_rate,
        last_accessed=now,
        completed_at=completed_at,
    )
    return check_completion(updated, now)


def drop(enrollment: Enrollment, now: datetime) -> Enrollment:
    """Drop the course whatever its progress. Dropping twice is a no-op.

    Progress is kept as it was. A completed enrollment loses its
    ``completed_at`` along with the ``completed`` status.
    """
    if enrollment.is_dropped:
        return enrollment
    return replace(
        enrollment, status=EnrollmentStatus.DROPPED, dropped_at=now, completed_at=None
    )
