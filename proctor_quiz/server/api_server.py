"""FastAPI server that exposes the quiz to the student page."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Literal

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import BaseModel, Field
import uvicorn

from proctor_quiz.constants.about import APP_ABOUT_TEXT, APP_LICENSE, APP_NAME, APP_VERSION
from proctor_quiz.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from proctor_quiz.constants.quiz_constants import DEFAULT_NUMBER_OF_QUESTIONS, MAX_QUESTIONS, MIN_QUESTIONS
from proctor_quiz.core.errors import QuestionGenerationError, SessionNotFoundError
from proctor_quiz.core.markdown_math_renderer import renderer
from proctor_quiz.core.models import Notice, SessionSnapshot
from proctor_quiz.core.quiz_manager import QuizManager
from proctor_quiz.core.services.proctoring_monitor import BrowserSignal
from proctor_quiz.server.student_page import STUDENT_PAGE_HTML
from proctor_quiz.utils.async_tasks import drain_pending


class CreateSessionPayload(BaseModel):
    """Payload schema for starting a new quiz attempt."""

    topic: str
    difficulty: Literal["easy", "medium", "hard"] = "medium"
    count: int = Field(default=DEFAULT_NUMBER_OF_QUESTIONS, ge=MIN_QUESTIONS, le=MAX_QUESTIONS)
    subtopic: str | None = None
    additional_instructions: str | None = None
    time_limit_minutes: int | None = Field(default=None, gt=0)
    user_id: str | None = None
    challenger_name: str | None = None


class AnswerPayload(BaseModel):
    """Payload schema for submitted answers."""

    question_id: str
    value: str


class NavigatePayload(BaseModel):
    action: Literal["next", "previous", "goto"]
    index: int | None = None


class SignalPayload(BaseModel):
    kind: BrowserSignal
    detail: str | None = None


class ConnectivityPayload(BaseModel):
    online: bool


def _get_quiz_manager_dependency(quiz_manager: QuizManager):
    def dependency() -> QuizManager:
        return quiz_manager

    return dependency


def _notice_payload(notice: Notice) -> dict[str, object]:
    return {
        "id": notice.id,
        "level": notice.level.value,
        "title": notice.title,
        "message": notice.message,
        "action": notice.action.value if notice.action else None,
        "dismissible": notice.dismissible,
        "created_at": notice.created_at.isoformat(),
    }


def _summary_payload(snapshot: SessionSnapshot) -> dict[str, object]:
    return {
        "id": snapshot.id,
        "topic": snapshot.topic,
        "subtopic": snapshot.subtopic,
        "difficulty": snapshot.difficulty,
        "state": snapshot.state.value,
        "question_count": snapshot.question_count,
        "created_at": snapshot.created_at.isoformat(),
        "completed_at": snapshot.completed_at.isoformat() if snapshot.completed_at else None,
        "termination_reason": snapshot.termination_reason.value if snapshot.termination_reason else None,
        "score": snapshot.score,
    }


def _session_payload(manager: QuizManager, snapshot: SessionSnapshot) -> dict[str, object]:
    """Full view for the page. Correct answers are only revealed once completed."""
    completed = snapshot.is_completed
    current = snapshot.current_question
    timers = manager.get_timer_status(snapshot.id)
    flag_count, flag_limit = manager.get_flag_status(snapshot.id)
    payload = _summary_payload(snapshot)
    payload.update(
        {
            "current_question_index": snapshot.current_question_index,
            "current_question": {
                "id": current.id,
                "question_html": renderer.render_fragment(current.question_text),
                "options": list(current.options),
                "options_html": [renderer.render_inline(option) for option in current.options],
                "user_answer": current.user_answer,
            },
            "started_at": snapshot.started_at.isoformat() if snapshot.started_at else None,
            "total_time_limit_seconds": snapshot.total_time_limit_seconds,
            "per_question_time_seconds": snapshot.per_question_time_seconds,
            "total_time_taken_seconds": snapshot.total_time_taken_seconds,
            "timers": {
                "overall_remaining_seconds": timers.overall_remaining_seconds,
                "question_remaining_seconds": timers.question_remaining_seconds,
            },
            "is_open": manager.is_open(snapshot.id),
            "fullscreen": manager.is_fullscreen(snapshot.id),
            "flag_count": flag_count,
            "flag_limit": flag_limit,
            "cheating_flag_count": snapshot.cheating_flag_count,
            "notices": [_notice_payload(notice) for notice in manager.get_notices(snapshot.id)],
            "questions": [
                {
                    "id": question.id,
                    "question_text": question.question_text,
                    "options": list(question.options),
                    "user_answer": question.user_answer,
                    "correct_option": question.correct_option if completed else None,
                    "is_correct": question.is_correct,
                }
                for question in snapshot.questions
            ],
        }
    )
    return payload


def create_api_app(quiz_manager: QuizManager, watch_connectivity: bool = False) -> FastAPI:
    """Create a FastAPI application wired to the provided quiz manager."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        quiz_manager.start(watch_connectivity=watch_connectivity)
        yield
        quiz_manager.shutdown()
        await drain_pending()

    app = FastAPI(
        title=f"{APP_NAME} API",
        version=APP_VERSION,
        description=APP_ABOUT_TEXT,
        license_info={"name": APP_LICENSE},
        lifespan=lifespan,
    )
    quiz_manager_dep = _get_quiz_manager_dependency(quiz_manager)

    @app.exception_handler(SessionNotFoundError)
    async def session_not_found(request: Request, exc: SessionNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(QuestionGenerationError)
    async def generation_failed(request: Request, exc: QuestionGenerationError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.get("/", response_class=HTMLResponse)
    async def serve_student_page() -> str:
        return STUDENT_PAGE_HTML

    @app.post("/sessions", status_code=201)
    async def create_session(
        payload: CreateSessionPayload,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        try:
            snapshot = manager.create_session(
                payload.topic,
                payload.difficulty,
                payload.count,
                subtopic=payload.subtopic,
                instructions=payload.additional_instructions,
                time_limit_minutes=payload.time_limit_minutes,
                user_id=payload.user_id,
                challenger_name=payload.challenger_name,
            )
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return _session_payload(manager, snapshot)

    @app.get("/sessions")
    async def list_sessions(manager: QuizManager = Depends(quiz_manager_dep)) -> list[dict[str, object]]:
        return [_summary_payload(snapshot) for snapshot in manager.list_sessions()]

    @app.delete("/sessions/completed")
    async def clear_completed(manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        return {"removed": manager.clear_completed_sessions()}

    @app.get("/sessions/{session_id}")
    async def get_session(session_id: str, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        snapshot = await manager.load_session(session_id)
        return _session_payload(manager, snapshot)

    @app.delete("/sessions/{session_id}", status_code=204)
    async def delete_session(session_id: str, manager: QuizManager = Depends(quiz_manager_dep)) -> None:
        manager.delete_session(session_id)

    @app.post("/sessions/{session_id}/open")
    async def open_session(session_id: str, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        snapshot = await manager.open_session(session_id)
        return _session_payload(manager, snapshot)

    @app.post("/sessions/{session_id}/close")
    async def close_session(session_id: str, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        manager.close_session(session_id)
        return {"closed": True}

    @app.post("/sessions/{session_id}/answer")
    async def answer_question(
        session_id: str,
        payload: AnswerPayload,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        try:
            snapshot = manager.answer(session_id, payload.question_id, payload.value)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return _session_payload(manager, snapshot)

    @app.post("/sessions/{session_id}/navigate")
    async def navigate(
        session_id: str,
        payload: NavigatePayload,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        if payload.action == "next":
            snapshot = manager.next_question(session_id)
        elif payload.action == "previous":
            snapshot = manager.previous_question(session_id)
        else:
            if payload.index is None:
                raise HTTPException(status_code=422, detail="An index is required for goto.")
            snapshot = manager.navigate_to(session_id, payload.index)
        return _session_payload(manager, snapshot)

    @app.post("/sessions/{session_id}/submit")
    async def submit(session_id: str, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        snapshot = manager.submit(session_id)
        return _session_payload(manager, snapshot)

    @app.post("/sessions/{session_id}/signals")
    async def record_signal(
        session_id: str,
        payload: SignalPayload,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        verdict = manager.handle_signal(session_id, payload.kind, payload.detail)
        flag_count, flag_limit = manager.get_flag_status(session_id)
        snapshot = manager.get_session(session_id)
        return {
            "suppress": verdict.suppress,
            "event": verdict.event.kind.value if verdict.event else None,
            "flag_count": flag_count,
            "flag_limit": flag_limit,
            "completed": snapshot.is_completed,
            "termination_reason": snapshot.termination_reason.value if snapshot.termination_reason else None,
        }

    @app.get("/sessions/{session_id}/notices")
    async def get_notices(session_id: str, manager: QuizManager = Depends(quiz_manager_dep)) -> list[dict[str, object]]:
        manager.get_session(session_id)
        return [_notice_payload(notice) for notice in manager.get_notices(session_id)]

    @app.post("/sessions/{session_id}/notices/{notice_id}/dismiss")
    async def dismiss_notice(
        session_id: str,
        notice_id: str,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        if not manager.dismiss_notice(session_id, notice_id):
            raise HTTPException(status_code=409, detail="Notice cannot be dismissed.")
        return {"dismissed": True}

    @app.post("/connectivity")
    async def report_connectivity(
        payload: ConnectivityPayload,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        came_online = manager.set_online(payload.online)
        return {"online": payload.online, "sync_scheduled": came_online}

    return app


def run_api_server(
    quiz_manager: QuizManager,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
    watch_connectivity: bool = True,
) -> None:
    """Serve the API with uvicorn until interrupted."""
    app = create_api_app(quiz_manager, watch_connectivity=watch_connectivity)
    config = uvicorn.Config(app=app, host=host, port=port, log_level="info")
    server = uvicorn.Server(config)
    server.run()
