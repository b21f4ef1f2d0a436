import logging

from dotenv import load_dotenv
from fastapi import FastAPI
from mangum import Mangum
from starlette.middleware.cors import CORSMiddleware

from coinapi import containers
from coinapi.config import settings
from coinapi.core.exception_handlers import register_exception_handlers
from coinapi.core.logging_middleware import LoggingMiddleware
from coinapi.logging_config import setup_logging
from coinapi.routers import (
    account_router,
    coin_router,
    eq_level_router,
    health_router,
    referral_router,
    tournament_router,
)

load_dotenv("coinapi/.env")
setup_logging(settings.LOG_LEVEL, sql_log_level=settings.SQL_LOG_LEVEL)
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(title=settings.APP_NAME, debug=settings.DEBUG)
    app.container = containers.Container()  # type: ignore

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)
    register_exception_handlers(app)

    app.include_router(health_router.router)
    app.include_router(coin_router.router, prefix=settings.API_V1_STR)
    app.include_router(tournament_router.router, prefix=settings.API_V1_STR)
    app.include_router(referral_router.router, prefix=settings.API_V1_STR)
    app.include_router(account_router.router, prefix=settings.API_V1_STR)
    app.include_router(eq_level_router.router, prefix=settings.API_V1_STR)

    @app.get("/")
    def hello() -> dict:
        return {"message": settings.APP_NAME}

    return app


app = create_app()

handler = Mangum(app)
