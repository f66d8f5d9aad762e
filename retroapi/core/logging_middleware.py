import logging
import time

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

logger = logging.getLogger("retroapi")


def _access_line(request: Request, response: Response, took_ms: float) -> str:
    """
    [Response] GET /api/v1/wallet/balance account=<uuid> -> 200 in 3.2ms source=merged drift=yes

    account 는 verify_token 이 통과했을 때만 채워진다.
    """
    account = getattr(request.state, "account_id", None) or "anonymous"
    parts = [
        f"[Response] {request.method} {request.url.path}",
        f"account={account}",
        f"-> {response.status_code} in {took_ms:.1f}ms",
    ]
    source = response.headers.get("X-Wallet-Source")
    if source:
        parts.append(f"source={source}")
        parts.append(f"drift={'yes' if 'X-Wallet-Drift' in response.headers else 'no'}")
    return " ".join(parts)


class LoggingMiddleware(BaseHTTPMiddleware):
    """요청/응답 접근 로그 + X-Took-ms 헤더"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        started = time.perf_counter()
        client = request.client.host if request.client else "-"
        logger.info(f"[Request] {request.method} {request.url.path} from {client}")

        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                f"[Unhandled Error] {request.method} {request.url.path} from {client}"
            )
            raise

        took_ms = (time.perf_counter() - started) * 1000
        response.headers["X-Took-ms"] = str(round(took_ms))

        if response.status_code >= 500:
            level = logging.ERROR
        elif response.status_code >= 400:
            level = logging.WARNING
        else:
            level = logging.INFO
        logger.log(level, _access_line(request, response, took_ms))
        return response
