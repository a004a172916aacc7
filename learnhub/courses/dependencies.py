"""FastAPI dependencies for the course structure provider."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import CourseStructureService


async def get_course_service(request: Request) -> CourseStructureService:
    """Get course structure service from app state."""
    app_state = request.app.state
    if not getattr(app_state, "course_service", None):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Course service not available",
        )
    return app_state.course_service


CourseServiceDep = Annotated[CourseStructureService, Depends(get_course_service)]
