"""JSON response helpers shared by all handlers."""

from http import HTTPStatus
from typing import Any

from fastapi import Response
from fastapi.responses import JSONResponse

INTERNAL_SERVER_ERROR = "internal server error"


def error(status: HTTPStatus, errors: Any) -> JSONResponse:
    """Error envelope: ``{"code": 404, "status": "Not Found", "errors": ...}``."""
    return JSONResponse(
        status_code=status.value,
        content={"code": status.value, "status": status.phrase, "errors": errors},
    )


def ok(content: Any) -> JSONResponse:
    return JSONResponse(status_code=HTTPStatus.OK.value, content=content)


def no_content() -> Response:
    return Response(status_code=HTTPStatus.NO_CONTENT.value)


def bad_request(errors: Any) -> JSONResponse:
    return error(HTTPStatus.BAD_REQUEST, errors)


def not_found(errors: Any) -> JSONResponse:
    return error(HTTPStatus.NOT_FOUND, errors)


def internal_server_error() -> JSONResponse:
    """500 response; fault detail is logged, never sent."""
    return error(HTTPStatus.INTERNAL_SERVER_ERROR, INTERNAL_SERVER_ERROR)
