"""Lesson catalogue and history endpoints."""
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query

from examprep.dependencies import ServiceContainer, get_services
from examprep.errors import AuthenticationRequiredError, ExamPrepError, RateLimitedError
from examprep.utils import page_window, should_paginate

router = APIRouter(prefix="/api", tags=["lessons"])


def _upstream_error(error: ExamPrepError) -> HTTPException:
    if isinstance(error, AuthenticationRequiredError):
        return HTTPException(status_code=401, detail=str(error))
    if isinstance(error, RateLimitedError):
        return HTTPException(status_code=429, detail=str(error))
    return HTTPException(status_code=502, detail=str(error))


@router.get("/lessons")
async def list_lessons(
    services: Annotated[ServiceContainer, Depends(get_services)],
) -> list[dict[str, object]]:
    """List lessons of the remote service."""
    try:
        lessons = await services.lesson_service.list_lessons()
    except ExamPrepError as e:
        raise _upstream_error(e)
    return [lesson.model_dump() for lesson in lessons]


@router.get("/history")
async def lesson_history(
    services: Annotated[ServiceContainer, Depends(get_services)],
) -> list[dict[str, object]]:
    """Get the user's finished quizzes."""
    try:
        items = await services.lesson_service.get_lesson_history()
    except ExamPrepError as e:
        raise _upstream_error(e)
    return [item.model_dump() for item in items]


@router.get("/pagination")
def pagination_window(
    total_pages: Annotated[int, Query(alias="totalPages", ge=0)],
    current_page: Annotated[int, Query(alias="currentPage", ge=0)] = 0,
    total_elements: Annotated[int | None, Query(alias="totalElements", ge=0)] = None,
    page_size: Annotated[int | None, Query(alias="pageSize", ge=1)] = None,
) -> dict[str, object]:
    """Page buttons to render for a list."""
    visible = True
    if total_elements is not None and page_size is not None:
        visible = should_paginate(total_elements, page_size, total_pages)
    return {
        "visible": visible,
        "pages": page_window(total_pages, current_page) if visible else [],
    }
