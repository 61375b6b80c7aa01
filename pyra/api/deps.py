"""FastAPI dependencies shared by the route modules."""

from __future__ import annotations

from fastapi import Request

from pyra.api.errors import ErrorCode, PyraAPIError
from pyra.pipeline.factory import Runtime
from pyra.pipeline.session import Session


def get_runtime(request: Request) -> Runtime:
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise PyraAPIError(503, ErrorCode.SERVICE_UNAVAILABLE, "Pipeline is not initialised")
    return runtime


def lookup_session(runtime: Runtime, session_id: str) -> Session:
    session = runtime.sessions.get(session_id)
    if session is None:
        raise PyraAPIError(404, ErrorCode.SESSION_NOT_FOUND, f"Session {session_id} not found")
    return session
