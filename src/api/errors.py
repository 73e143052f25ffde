"""
Exception handlers - domain errors to HTTP responses.

Every TalkDroveError is rendered as {"success": false, "message": ...}
with the status code registered for its class. Only the error's safe
message is returned; details stay in the logs.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from src.domain.exceptions import (
    AttemptsExceeded,
    CredentialExhausted,
    DeliveryError,
    DeploymentError,
    Forbidden,
    InvalidCredentials,
    NotAuthenticated,
    NotFound,
    TalkDroveError,
    TransactionFailure,
    ValidationError,
    VerificationError,
    VerificationMismatch,
)

logger = logging.getLogger(__name__)

# Most specific class first
STATUS_CODES: list[tuple[type[TalkDroveError], int]] = [
    (AttemptsExceeded, status.HTTP_429_TOO_MANY_REQUESTS),
    (VerificationError, status.HTTP_400_BAD_REQUEST),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (InvalidCredentials, status.HTTP_401_UNAUTHORIZED),
    (NotAuthenticated, status.HTTP_401_UNAUTHORIZED),
    (Forbidden, status.HTTP_403_FORBIDDEN),
    (NotFound, status.HTTP_404_NOT_FOUND),
    (DeploymentError, status.HTTP_502_BAD_GATEWAY),
    (DeliveryError, status.HTTP_502_BAD_GATEWAY),
    (CredentialExhausted, status.HTTP_503_SERVICE_UNAVAILABLE),
    (TransactionFailure, status.HTTP_500_INTERNAL_SERVER_ERROR),
]


def status_for(exc: TalkDroveError) -> int:
    for error_class, code in STATUS_CODES:
        if isinstance(exc, error_class):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def handle_domain_error(request: Request, exc: TalkDroveError) -> JSONResponse:
    code = status_for(exc)
    if code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc)

    body: dict = {"success": False, "message": exc.message}
    if isinstance(exc, VerificationMismatch):
        body["attempts_left"] = exc.attempts_left
    return JSONResponse(status_code=code, content=body)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(TalkDroveError, handle_domain_error)
