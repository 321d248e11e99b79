import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


class RelayError(Exception):
    """Base class for failures that map to a JSON error envelope."""

    status_code = 500

    def __init__(self, message: str, detail=None, raw=None, status_code: int = None):
        super().__init__(message)
        self.message = message
        self.detail = detail
        self.raw = raw
        if status_code is not None:
            self.status_code = status_code


class ConfigurationError(RelayError):
    """A provider credential is missing."""

    status_code = 500


class RequestValidationFailed(RelayError):
    status_code = 400


class UpstreamError(RelayError):
    """The provider answered with an error status, or could not be reached."""

    status_code = 500


class EmptyGenerationError(RelayError):
    """The generation provider succeeded but returned no text."""

    status_code = 500


class MalformedResponseError(RelayError):
    """The provider succeeded but its payload is missing an expected field."""

    status_code = 502


def create_error_response(status_code: int, error: str, detail=None, raw=None) -> JSONResponse:
    logging.error(f"Error {status_code}: {error}" + (f" ({detail})" if detail else ""))

    content = {"error": error}
    if detail is not None:
        content["detail"] = detail
    if raw is not None:
        content["raw"] = raw
    return JSONResponse(status_code=status_code, content=jsonable_encoder(content))


async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
    return create_error_response(exc.status_code, exc.message, exc.detail, exc.raw)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return create_error_response(400, "Invalid request body", detail=exc.errors())


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RelayError, relay_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
