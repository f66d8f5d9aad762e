import logging
import traceback

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .exceptions import BaseAPIException, InternalServerError, ValidationError

logger = logging.getLogger("retroapi")

NO_STORE = {"Cache-Control": "no-store"}


def _where(request: Request) -> str:
    client = request.client.host if request.client else "-"
    return f"{request.method} {request.url.path} from {client}"


async def handle_base_api_exception(request: Request, exc: BaseAPIException):
    level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    logger.log(
        level,
        f"[{exc.error_code}] {_where(request)} -> {exc.status_code}: {exc.message}",
    )
    return JSONResponse(
        status_code=exc.status_code, content=exc.envelope(), headers=NO_STORE
    )


async def handle_validation_error(request: Request, exc: RequestValidationError):
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    logger.warning(f"[VALIDATION_001] {_where(request)} -> 422: {errors}")

    error = ValidationError("Request validation failed", {"errors": errors})
    return JSONResponse(
        status_code=error.status_code, content=error.envelope(), headers=NO_STORE
    )


async def handle_unexpected_error(request: Request, exc: Exception):
    # 전체 스택 트레이스 포함
    tb_str = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    logger.error(
        f"[Unhandled Error] {_where(request)}\n"
        f"Exception Type: {type(exc).__name__}\n"
        f"Exception Message: {exc}\n\n"
        f"Full Stack Trace:\n{tb_str}"
    )

    internal = InternalServerError()
    return JSONResponse(status_code=internal.status_code, content=internal.envelope())
