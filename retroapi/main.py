import logging
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from mangum import Mangum
from starlette.middleware.cors import CORSMiddleware

load_dotenv("retroapi/.env")

from retroapi import containers  # noqa: E402
from retroapi.config import settings  # noqa: E402
from retroapi.core.exception_handlers import (  # noqa: E402
    handle_base_api_exception,
    handle_unexpected_error,
    handle_validation_error,
)
from retroapi.core.exceptions import BaseAPIException  # noqa: E402
from retroapi.core.logging_middleware import LoggingMiddleware  # noqa: E402
from retroapi.logging_config import setup_logging  # noqa: E402
from retroapi.routers import (  # noqa: E402
    game_router,
    health_router,
    shop_router,
    wallet_router,
)

logger = logging.getLogger("retroapi")


def create_app() -> FastAPI:
    setup_logging(log_level=settings.LOG_LEVEL, json_logs=settings.LOG_JSON)

    app = FastAPI(title=settings.APP_NAME, debug=settings.DEBUG)
    app.container = containers.Container()  # type: ignore

    app.add_middleware(LoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(BaseAPIException, handle_base_api_exception)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    app.include_router(health_router.router)
    app.include_router(wallet_router.router, prefix=settings.API_V1_STR)
    app.include_router(game_router.router, prefix=settings.API_V1_STR)
    app.include_router(shop_router.router, prefix=settings.API_V1_STR)

    logger.info(f"{settings.APP_NAME} started (environment={settings.ENVIRONMENT})")
    return app


app = create_app()

handler = Mangum(app)
