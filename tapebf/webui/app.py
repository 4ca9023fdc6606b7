from __future__ import annotations

import logging
from typing import Annotated, List, Optional, Sequence

from fastapi import Depends, FastAPI, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, field_validator

from tapebf.bf_interpreter import BrainfuckInterpreter, BrainfuckState, ExecutionSnapshot
from tapebf.errors import ExecutionError, MismatchedBraces
from tapebf.visualizer import DebugSession

from .session import SessionStore

logger = logging.getLogger(__name__)

DEFAULT_RUN_STEPS = 100_000


class ErrorInfo(BaseModel):
    kind: str
    message: str

    @classmethod
    def from_exception(cls, exc: Optional[ExecutionError]) -> Optional["ErrorInfo"]:
        return None if exc is None else cls(kind=exc.kind, message=str(exc))


class ProgramInput(BaseModel):
    code: str = ""
    input: str = ""

    @field_validator("input")
    @classmethod
    def input_is_latin1(cls, value: str) -> str:
        try:
            value.encode("latin-1")
        except UnicodeEncodeError as exc:
            raise ValueError("input must only contain characters in the range U+0000..U+00FF") from exc
        return value

    def input_bytes(self) -> bytes:
        return self.input.encode("latin-1")


class RunConfiguration(ProgramInput):
    max_steps: int = Field(default=DEFAULT_RUN_STEPS, ge=1)


class RunResult(BaseModel):
    output: str
    pointer: int
    tape: List[int]
    error: Optional[ErrorInfo]


class SessionConfiguration(ProgramInput):
    tape_window: int = Field(default=10, ge=0)
    max_steps: Optional[int] = Field(default=None, ge=1)
    history_limit: int = Field(default=200, ge=1)


class SnapshotView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    step: int
    pc: int
    command: Optional[str]
    pointer: int
    tape_start: int
    tape: List[int]
    output: str


class SessionView(BaseModel):
    session_id: str
    code: str
    snapshot: SnapshotView
    executed: List[SnapshotView] = []
    finished: bool
    error: Optional[ErrorInfo]
    breakpoints: List[int]
    stopped_at: Optional[int]


class StepRequest(BaseModel):
    count: int = Field(default=1, ge=1)


class RunRequest(BaseModel):
    limit: Optional[int] = Field(default=None, ge=1)
    ignore_breakpoints: bool = False


class BreakpointRequest(BaseModel):
    pc: int = Field(ge=0)


def _store(request: Request) -> SessionStore:
    return request.app.state.sessions


def _session(session_id: str, store: Annotated[SessionStore, Depends(_store)]) -> DebugSession:
    try:
        return store.get(session_id)
    except KeyError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


Store = Annotated[SessionStore, Depends(_store)]
Session = Annotated[DebugSession, Depends(_session)]


def _view(session_id: str, session: DebugSession, executed: Sequence[ExecutionSnapshot] = ()) -> SessionView:
    return SessionView(
        session_id=session_id,
        code=session.code,
        snapshot=SnapshotView.model_validate(session.current),
        executed=[SnapshotView.model_validate(snapshot) for snapshot in executed],
        finished=session.finished,
        error=ErrorInfo.from_exception(session.error),
        breakpoints=sorted(session.breakpoints),
        stopped_at=session.stopped_at,
    )


def _execution_error(request: Request, exc: ExecutionError) -> JSONResponse:
    code = status.HTTP_422_UNPROCESSABLE_ENTITY if isinstance(exc, MismatchedBraces) else status.HTTP_409_CONFLICT
    return JSONResponse(status_code=code, content={"detail": {"kind": exc.kind, "message": str(exc)}})


def create_app(store: Optional[SessionStore] = None) -> FastAPI:
    """Build the API. Execution errors raised by a route become 409, or 422
    for mismatched braces, with ``{"kind", "message"}`` as the detail."""
    app = FastAPI(title="tapebf WebUI API", version="0.1.0")
    app.state.sessions = store if store is not None else SessionStore()
    app.add_exception_handler(ExecutionError, _execution_error)

    @app.post("/api/run", response_model=RunResult)
    def run_program(payload: RunConfiguration) -> RunResult:
        interpreter = BrainfuckInterpreter()
        state = BrainfuckState()
        error = None
        try:
            interpreter.run(payload.code, input_data=payload.input_bytes(), max_steps=payload.max_steps, state=state)
        except ExecutionError as exc:
            logger.debug("Program stopped with %s: %s", exc.kind, exc)
            error = ErrorInfo.from_exception(exc)
        return RunResult(
            output=interpreter.output_text(),
            pointer=state.pointer,
            tape=state.tape.window(0, len(state.tape)),
            error=error,
        )

    @app.post("/api/session", response_model=SessionView, status_code=status.HTTP_201_CREATED)
    def create_session(payload: SessionConfiguration, sessions: Store) -> SessionView:
        session = DebugSession(
            payload.code,
            input_data=payload.input_bytes(),
            tape_window=payload.tape_window,
            max_steps=payload.max_steps,
            history_limit=payload.history_limit,
        )
        session_id = sessions.add(session)
        logger.debug("Created session %s", session_id)
        return _view(session_id, session)

    @app.get("/api/session/{session_id}", response_model=SessionView)
    def get_session(session_id: str, session: Session) -> SessionView:
        return _view(session_id, session)

    @app.post("/api/session/{session_id}/reset", response_model=SessionView)
    def reset_session(session_id: str, session: Session) -> SessionView:
        session.restart()
        return _view(session_id, session)

    @app.post("/api/session/{session_id}/step", response_model=SessionView)
    def step_session(session_id: str, payload: StepRequest, session: Session) -> SessionView:
        executed = session.advance(payload.count, honor_breakpoints=False)
        return _view(session_id, session, executed)

    @app.post("/api/session/{session_id}/run", response_model=SessionView)
    def run_session(session_id: str, payload: RunRequest, session: Session) -> SessionView:
        executed = session.advance(payload.limit, honor_breakpoints=not payload.ignore_breakpoints)
        return _view(session_id, session, executed)

    @app.post("/api/session/{session_id}/breakpoints", response_model=SessionView)
    def add_breakpoint(session_id: str, payload: BreakpointRequest, session: Session) -> SessionView:
        try:
            session.set_breakpoint(payload.pc)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
        return _view(session_id, session)

    @app.delete("/api/session/{session_id}/breakpoints/{pc}", response_model=SessionView)
    def remove_breakpoint(session_id: str, pc: int, session: Session) -> SessionView:
        if not session.clear_breakpoint(pc):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Breakpoint not found at pc={pc}")
        return _view(session_id, session)

    @app.delete("/api/session/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_session(session_id: str, sessions: Store) -> Response:
        if not sessions.discard(session_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown session id: {session_id}")
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return app


__all__ = ["create_app"]
