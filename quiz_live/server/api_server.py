"""FastAPI server exposing the live quiz WebSocket and read-only endpoints."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable
from contextlib import asynccontextmanager
import json
import logging
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PayloadValidationError
import uvicorn

from quiz_live.config import Settings
from quiz_live.constants.about import APP_NAME, APP_VERSION
from quiz_live.constants.network_constants import WEBSOCKET_PATH
from quiz_live.core.errors import NotFoundError, QuizError
from quiz_live.core.models import Quiz
from quiz_live.core.services.quiz_store import QuizStore
from quiz_live.core.services.session_store import SessionStore
from quiz_live.core.session_gateway import ConnectionContext, SessionGateway

logger = logging.getLogger(__name__)


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


class JoinPayload(_Payload):
    """Payload schema for ``join-quiz``."""

    join_code: str = Field(alias="joinCode", min_length=1)
    participant_name: str = Field(default="", alias="participantName", max_length=40)


class SubmitAnswerPayload(_Payload):
    """Payload schema for ``submit-answer``."""

    session_id: str = Field(alias="sessionId", min_length=1)
    participant_id: str = Field(alias="participantId", min_length=1)
    question_id: str = Field(alias="questionId", min_length=1)
    answer: list[str] = Field(min_length=1)
    time_to_answer: float | None = Field(default=None, alias="timeToAnswer", allow_inf_nan=False)


class StartPayload(_Payload):
    """Payload schema for ``start-quiz``."""

    join_code: str = Field(alias="joinCode", min_length=1)


class NextQuestionPayload(_Payload):
    """Payload schema for ``next-question``."""

    session_id: str = Field(alias="sessionId", min_length=1)


async def _handle_join(gateway: SessionGateway, connection: ConnectionContext, payload: JoinPayload) -> None:
    await gateway.on_join(connection, payload.join_code, payload.participant_name)


async def _handle_submit(
    gateway: SessionGateway, connection: ConnectionContext, payload: SubmitAnswerPayload
) -> None:
    await gateway.on_submit_answer(
        connection,
        payload.session_id,
        payload.participant_id,
        payload.question_id,
        payload.answer,
        payload.time_to_answer,
    )


async def _handle_start(gateway: SessionGateway, connection: ConnectionContext, payload: StartPayload) -> None:
    await gateway.on_start(connection, payload.join_code)


async def _handle_next(
    gateway: SessionGateway, connection: ConnectionContext, payload: NextQuestionPayload
) -> None:
    await gateway.on_advance_question(connection, payload.session_id)


_EVENT_HANDLERS: dict[str, tuple[type[_Payload], Callable[..., Awaitable[None]]]] = {
    "join-quiz": (JoinPayload, _handle_join),
    "submit-answer": (SubmitAnswerPayload, _handle_submit),
    "start-quiz": (StartPayload, _handle_start),
    "next-question": (NextQuestionPayload, _handle_next),
}


def _describe_payload_error(exc: PayloadValidationError) -> str:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"]) or "payload"
        problems.append(f"{location}: {error['msg']}")
    return "Invalid payload (" + "; ".join(problems) + ")"


async def dispatch_message(gateway: SessionGateway, connection: ConnectionContext, raw: str) -> None:
    """Validate one inbound frame and route it to the gateway."""
    try:
        message = json.loads(raw)
    except json.JSONDecodeError:
        await connection.send("error", "Messages must be JSON objects")
        return
    if not isinstance(message, dict) or not isinstance(message.get("event"), str):
        await connection.send("error", "Messages need an 'event' name and a 'data' object")
        return

    event = message["event"]
    handler = _EVENT_HANDLERS.get(event)
    if handler is None:
        await connection.send("error", f"Unknown event '{event}'")
        return

    payload_model, handle = handler
    try:
        payload = payload_model.model_validate(message.get("data") or {})
    except PayloadValidationError as exc:
        await connection.send("error", _describe_payload_error(exc))
        return
    await handle(gateway, connection, payload)


def _get_gateway_dependency(gateway: SessionGateway):
    def dependency() -> SessionGateway:
        return gateway

    return dependency


def create_api_app(
    settings: Settings | None = None,
    quizzes: Iterable[Quiz] = (),
    gateway: SessionGateway | None = None,
) -> FastAPI:
    """Create a FastAPI application wired to a session gateway."""
    settings = settings or Settings()
    gateway = gateway or SessionGateway(QuizStore(), SessionStore(), settings=settings)
    initial_quizzes = list(quizzes)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        for quiz in initial_quizzes:
            try:
                stored = await gateway.quiz_store.add(quiz)
            except QuizError as exc:
                logger.error("Skipping quiz '%s': %s", quiz.title, exc)
                continue
            logger.info("Quiz '%s' ready, join code %s", stored.title, stored.join_code)
        yield
        await gateway.close()

    app = FastAPI(title=f"{APP_NAME} API", version=APP_VERSION, lifespan=lifespan)
    gateway_dep = _get_gateway_dependency(gateway)

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/quizzes/join/{code}")
    async def get_quiz_by_join_code(
        code: str,
        manager: SessionGateway = Depends(gateway_dep),
    ) -> dict[str, object]:
        try:
            return await manager.get_public_quiz(code)
        except NotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc

    @app.get("/api/sessions/{session_id}")
    async def get_session(
        session_id: str,
        manager: SessionGateway = Depends(gateway_dep),
    ) -> dict[str, object]:
        try:
            return await manager.get_session(session_id)
        except NotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc

    @app.get("/api/sessions/{session_id}/leaderboard")
    async def get_session_leaderboard(
        session_id: str,
        manager: SessionGateway = Depends(gateway_dep),
    ) -> list[dict[str, object]]:
        try:
            leaderboard = await manager.get_leaderboard(session_id)
        except NotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return [entry.to_dict() for entry in leaderboard]

    @app.websocket(WEBSOCKET_PATH)
    async def quiz_socket(websocket: WebSocket) -> None:
        await websocket.accept()

        async def send(event: str, data: Any) -> None:
            await websocket.send_json({"event": event, "data": data})

        connection = gateway.connect(send)
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                raw = message.get("text")
                if raw is None:
                    await send("error", "Messages must be JSON objects")
                    continue
                await dispatch_message(gateway, connection, raw)
        except WebSocketDisconnect:
            pass
        finally:
            await gateway.on_disconnect(connection)

    return app


def run_api_server(app: FastAPI, host: str, port: int, log_level: str = "info") -> None:
    """Serve the application with uvicorn until interrupted."""
    config = uvicorn.Config(app=app, host=host, port=port, log_level=log_level.lower())
    server = uvicorn.Server(config)
    server.run()
