"""Quiz session endpoints."""
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response
from fastapi.responses import FileResponse, RedirectResponse

from examprep.dependencies import ServiceContainer, get_managed_session, get_services
from examprep.errors import InvalidQuestionCountError
from examprep.models import (
    AnswerRequest,
    LocaleRequest,
    QuestionIndexRequest,
    SessionCreate,
    StartRequest,
)
from examprep.services.image_cache import handle_path
from examprep.services.quiz_session import QuizSession, SessionPhase
from examprep.services.session_registry import ManagedSession
from examprep.utils import locale_for_language

router = APIRouter(prefix="/api/sessions", tags=["sessions"])

SessionDep = Annotated[ManagedSession, Depends(get_managed_session)]


def session_payload(session: QuizSession) -> dict[str, object]:
    """Serialize the state a quiz screen renders."""
    payload: dict[str, object] = {
        "sessionId": session.session_id,
        "kind": session.source.kind,
        "phase": session.phase.value,
        "locale": session.locale,
        "lessonId": session.source.lesson_id,
        "currentIndex": session.current_index,
        "totalQuestions": session.total_questions,
        "score": session.score,
        "isAnswered": session.is_answered,
        "showResults": session.show_results,
        "marked": sorted(session.marked),
        "submission": session.submission_state.value,
        "error": session.error,
        "timeRemaining": session.countdown.remaining_seconds,
        "timeRemainingText": session.countdown.formatted(),
        "answers": {
            str(index): {"selectedOption": answer.selected_option, "isCorrect": answer.is_correct}
            for index, answer in session.answers.items()
        },
    }

    question_set = session.question_set
    if question_set is not None:
        payload["title"] = question_set.title
        payload["description"] = question_set.description
        payload["icon"] = question_set.icon

    question = session.current_question
    if question is not None:
        reveal = session.is_answered or session.show_results
        payload["question"] = {
            "questionId": question.question_id,
            "text": question.text_for(session.locale),
            "options": question.options_for(session.locale),
            "hasImage": bool(question.photo),
            "correctOption": question.correct_option() if reveal else None,
        }

    progress = session.progress()
    payload["progress"] = {
        "answered": progress.answered_questions,
        "unanswered": progress.unanswered_questions,
        "marked": progress.marked_questions,
        "percentage": progress.progress_percentage,
        "status": progress.completion_status,
    }

    if session.results is not None:
        payload["results"] = {
            "totalQuestions": session.results.total_questions,
            "correctAnswers": session.results.correct_answers,
            "incorrectAnswers": session.results.incorrect_answers,
            "percentage": session.results.percentage,
            "passed": session.results.passed,
        }
    return payload


@router.post("")
async def create_session(
    payload: SessionCreate,
    services: Annotated[ServiceContainer, Depends(get_services)],
) -> dict[str, object]:
    """Open a quiz session and load its questions."""
    try:
        source = services.sessions.build_source(
            payload.kind,
            lesson_id=payload.lessonId,
            template_id=payload.templateId,
            question_count=payload.questionCount,
            use_cache=payload.useCache,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    managed = services.sessions.create(source, locale=locale_for_language(payload.language))
    await managed.session.load()
    return session_payload(managed.session)


@router.get("/{session_id}")
async def get_session(managed: SessionDep) -> dict[str, object]:
    """Get session state."""
    return session_payload(managed.session)


@router.post("/{session_id}/answer")
async def select_answer(managed: SessionDep, payload: AnswerRequest) -> dict[str, object]:
    """Answer the current question."""
    try:
        recorded = managed.session.select_answer(payload.optionIndex)
    except IndexError as e:
        raise HTTPException(status_code=400, detail=str(e))
    result = session_payload(managed.session)
    result["recorded"] = recorded
    return result


@router.post("/{session_id}/jump")
async def jump_to_question(managed: SessionDep, payload: QuestionIndexRequest) -> dict[str, object]:
    """Go to a question by index."""
    try:
        managed.session.jump_to_question(payload.index)
    except IndexError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return session_payload(managed.session)


@router.post("/{session_id}/next")
async def next_question(managed: SessionDep) -> dict[str, object]:
    managed.session.next_question()
    return session_payload(managed.session)


@router.post("/{session_id}/previous")
async def previous_question(managed: SessionDep) -> dict[str, object]:
    managed.session.previous_question()
    return session_payload(managed.session)


@router.post("/{session_id}/mark")
async def toggle_mark(managed: SessionDep, payload: QuestionIndexRequest) -> dict[str, object]:
    """Flag or unflag a question for review."""
    try:
        managed.session.toggle_mark(payload.index)
    except IndexError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return session_payload(managed.session)


@router.post("/{session_id}/expire")
async def expire_timer(managed: SessionDep) -> dict[str, object]:
    """Finish the quiz as if time ran out."""
    managed.session.expire_timer()
    return session_payload(managed.session)


@router.post("/{session_id}/start")
async def start_random_quiz(managed: SessionDep, payload: StartRequest) -> dict[str, object]:
    """Choose the question count of a random quiz."""
    session = managed.session
    if session.phase not in (SessionPhase.CHOOSING_COUNT, SessionPhase.ERROR):
        raise HTTPException(status_code=409, detail="Question count already chosen")
    try:
        await session.start(payload.questionCount)
    except InvalidQuestionCountError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return session_payload(session)


@router.post("/{session_id}/retry")
async def retry_session(managed: SessionDep) -> dict[str, object]:
    """Start over; reloads if the questions never arrived."""
    session = managed.session
    if session.phase is SessionPhase.ERROR:
        await session.load()
        return session_payload(session)
    session.retry()
    if session.phase is SessionPhase.LOADING:
        await session.load()
    return session_payload(session)


@router.put("/{session_id}/locale")
async def change_locale(managed: SessionDep, payload: LocaleRequest) -> dict[str, object]:
    """Switch display language, refetching questions if a quiz is running."""
    refetched = await managed.coordinator.change_locale(locale_for_language(payload.language))
    result = session_payload(managed.session)
    result["refetched"] = refetched
    return result


@router.get("/{session_id}/image", response_model=None)
async def question_image(managed: SessionDep, index: int | None = None) -> Response:
    """Image of the current (or given) question."""
    try:
        handle = await managed.session.load_image(index)
    except IndexError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if handle.startswith(("http://", "https://")):
        return RedirectResponse(handle)
    path = handle_path(handle) if handle else None
    if path is None or not path.exists():
        return Response(status_code=204)
    return FileResponse(path)


@router.delete("/{session_id}")
async def close_session(
    session_id: str,
    services: Annotated[ServiceContainer, Depends(get_services)],
) -> dict[str, object]:
    """Close a session and release its images."""
    if not await services.sessions.close(session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    return {"status": "closed", "sessionId": session_id}
