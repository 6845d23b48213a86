from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from app.api.history import router as history_router
from app.api.send import router as send_router
from app.config import settings
from app.db.session import init_db
from app.middleware.error_handler import global_exception_handler, invalid_transition_handler
from app.middleware.logging import LoggingMiddleware
from app.output.errors import InvalidTransitionError
from app.output.service import dispatch_service


logger = structlog.get_logger()


def configure_logging():
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            (
                structlog.dev.ConsoleRenderer()
                if settings.APP_ENV == "development"
                else structlog.processors.JSONRenderer()
            ),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    logger.info("app.startup", env=settings.APP_ENV)

    await init_db()
    await dispatch_service.initialize()

    yield

    # Shutdown
    await dispatch_service.shutdown()
    logger.info("app.shutdown")


app = FastAPI(title="KokoSend", lifespan=lifespan)

# Middleware
app.add_middleware(LoggingMiddleware)

# Exception handlers
app.add_exception_handler(InvalidTransitionError, invalid_transition_handler)
app.add_exception_handler(Exception, global_exception_handler)

# Routes
app.include_router(send_router)
app.include_router(history_router)


@app.get("/health")
async def health():
    return {"status": "ok"}
