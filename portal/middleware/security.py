from __future__ import annotations

import secrets
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from fastapi.responses import JSONResponse

from vestry.shared.errors import AuthRequired, ErrorKind
from vestry.shared.gate import GateLogger

_log = GateLogger.get("AdminIdentity")


class AdminIdentity:
    """
    Verifies the admin bearer token.

    The Authorization header may carry ``Bearer <token>`` or the bare
    token. With no token configured every request is refused.
    """

    def __init__(self, token: Optional[str]):
        self._token = token or None
        if self._token is None:
            _log.warning("ADMIN_TOKEN is not set - all /api requests will be refused")

    @property
    def configured(self) -> bool:
        return self._token is not None

    def verify(self, authorization: Optional[str]) -> None:
        """
        Raises:
            AuthRequired: If the header is missing or does not match
        """
        if self._token is None:
            raise AuthRequired("Admin token is not configured")
        if not authorization:
            raise AuthRequired("Missing Authorization header")

        presented = authorization.strip()
        scheme, _, rest = presented.partition(" ")
        if scheme.lower() == "bearer" and rest:
            presented = rest.strip()

        if not secrets.compare_digest(presented.encode("utf-8"), self._token.encode("utf-8")):
            raise AuthRequired("Invalid admin token")


class AdminAuthMiddleware(BaseHTTPMiddleware):
    """Require admin identity on every /api route."""

    PROTECTED_PREFIX = "/api"

    def __init__(self, app, identity: AdminIdentity):
        super().__init__(app)
        self._identity = identity

    async def dispatch(self, request, call_next):
        path = request.url.path

        # CORS preflight carries no credentials
        if request.method == "OPTIONS":
            return await call_next(request)

        if path == self.PROTECTED_PREFIX or path.startswith(self.PROTECTED_PREFIX + "/"):
            try:
                self._identity.verify(request.headers.get("authorization"))
            except AuthRequired as e:
                _log.warning(f"Rejected {request.method} {path}: {e.message}")
                return JSONResponse(
                    status_code=e.status_code,
                    content={
                        "success": False,
                        "message": e.message,
                        "error_kind": ErrorKind.AUTH_REQUIRED.value,
                    },
                )

        return await call_next(request)


__all__ = ["AdminIdentity", "AdminAuthMiddleware"]
