from typing import Dict, Optional
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from app.domain.models import ErrorKind

class PortalError(Exception):
    """Base for failures surfaced to the page that triggered them."""
    kind: ErrorKind = ErrorKind.SERVER
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

class UpstreamUnavailable(PortalError):
    """The upstream API could not be reached or did not answer in time."""
    kind = ErrorKind.TRANSPORT
    status_code = status.HTTP_502_BAD_GATEWAY

class UpstreamAuthError(PortalError):
    """401/403 from upstream; the session has to be re-established."""
    kind = ErrorKind.AUTH

    def __init__(self, message: str, status_code: int = status.HTTP_401_UNAUTHORIZED):
        super().__init__(message)
        self.status_code = status_code

class UpstreamError(PortalError):
    """Any other non-success answer; the server's message is kept verbatim."""
    kind = ErrorKind.SERVER

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code

class ValidationFailed(PortalError):
    """Local validation failure; raised before any network call."""
    kind = ErrorKind.VALIDATION
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, errors: Dict[str, str]):
        super().__init__("; ".join(errors.values()))
        self.errors = errors

def error_body(exc: PortalError, needs_relogin: Optional[bool] = None) -> dict:
    body = {"detail": exc.message, "errorKind": exc.kind.value}
    if isinstance(exc, ValidationFailed):
        body["errors"] = exc.errors
    if needs_relogin is not None:
        body["needsRelogin"] = needs_relogin
    return body

def setup_exception_handlers(app: FastAPI):

    @app.exception_handler(PortalError)
    async def portal_error_handler(request: Request, exc: PortalError):
        needs_relogin = None
        if isinstance(exc, UpstreamAuthError):
            view_model = getattr(request.state, "view_model", None)
            needs_relogin = bool(view_model and view_model.needs_relogin)
        return JSONResponse(status_code=exc.status_code, content=error_body(exc, needs_relogin))
