from __future__ import annotations

import hmac
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse

if TYPE_CHECKING:
    from copilot_gateway.settings import Settings

AUTH_HEADER = "authorization"
BEARER_PREFIX = "bearer "
AUTH_ERROR_MESSAGE = "Invalid or missing Authorization header"


class ErrorShape(str, Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"


def _openai_error_body() -> dict[str, Any]:
    return {
        "error": {
            "message": AUTH_ERROR_MESSAGE,
            "type": "invalid_api_key",
        },
    }


def _anthropic_error_body() -> dict[str, Any]:
    return {
        "type": "error",
        "error": {
            "type": "authentication_error",
            "message": AUTH_ERROR_MESSAGE,
        },
    }


ERROR_BODY_BUILDERS: dict[ErrorShape, Callable[[], dict[str, Any]]] = {
    ErrorShape.OPENAI: _openai_error_body,
    ErrorShape.ANTHROPIC: _anthropic_error_body,
}

# First matching prefix wins; unmatched paths get DEFAULT_ERROR_SHAPE.
ERROR_SHAPE_BY_PATH_PREFIX: tuple[tuple[str, ErrorShape], ...] = (
    ("/v1/messages", ErrorShape.ANTHROPIC),
)
DEFAULT_ERROR_SHAPE = ErrorShape.OPENAI


@dataclass(frozen=True, slots=True)
class AuthDecision:
    allowed: bool
    error_shape: ErrorShape | None = None


ALLOW = AuthDecision(allowed=True)


def error_shape_for_path(path: str) -> ErrorShape:
    for prefix, shape in ERROR_SHAPE_BY_PATH_PREFIX:
        if path.startswith(prefix):
            return shape
    return DEFAULT_ERROR_SHAPE


def extract_bearer_token(header_value: str) -> str | None:
    if not header_value.lower().startswith(BEARER_PREFIX):
        return None
    return header_value[len(BEARER_PREFIX) :].strip()


def unauthorized_response(shape: ErrorShape) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content=ERROR_BODY_BUILDERS[shape](),
    )


class MasterKeyGate:
    """Admits a request only when it carries ``Authorization: Bearer <master key>``.

    A blank master key disables the gate entirely.
    """

    def __init__(self, master_key: str | None = None) -> None:
        self._master_key = (master_key or "").strip()
        self._master_key_bytes = self._master_key.encode("utf-8")

    @classmethod
    def configure(cls, master_key: str | None) -> MasterKeyGate:
        return cls(master_key)

    @classmethod
    def from_settings(cls, settings: Settings) -> MasterKeyGate:
        return cls(settings.master_key)

    @property
    def enabled(self) -> bool:
        return bool(self._master_key)

    def decide(self, authorization: str | None, path: str) -> AuthDecision:
        if not self.enabled:
            return ALLOW

        candidate = extract_bearer_token(authorization or "")
        if candidate is not None and hmac.compare_digest(
            candidate.encode("utf-8"), self._master_key_bytes
        ):
            return ALLOW
        return AuthDecision(allowed=False, error_shape=error_shape_for_path(path))

    def gate_request(self, request: Request) -> JSONResponse | None:
        if not self.enabled:
            return None

        decision = self.decide(request.headers.get(AUTH_HEADER, ""), request.url.path)
        if decision.allowed:
            return None
        return unauthorized_response(decision.error_shape or DEFAULT_ERROR_SHAPE)


def install_master_key_gate(app: FastAPI, gate: MasterKeyGate | None = None) -> None:
    """Register the gate as HTTP middleware.

    Without an explicit gate the middleware uses ``app.state.master_key_gate``,
    which lets the app configure the gate during startup.
    """

    @app.middleware("http")
    async def master_key_middleware(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        active_gate = gate or getattr(app.state, "master_key_gate", None)
        if active_gate is not None:
            rejection = active_gate.gate_request(request)
            if rejection is not None:
                return rejection
        return await call_next(request)
