import structlog
from fastapi import Request
from fastapi.responses import JSONResponse

from app.output.errors import InvalidTransitionError

logger = structlog.get_logger()


async def invalid_transition_handler(request: Request, exc: InvalidTransitionError) -> JSONResponse:
    logger.warning("invalid_transition", path=request.url.path, detail=str(exc))
    return JSONResponse(status_code=409, content={"error": "Conflict", "detail": str(exc)})


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_exception", path=request.url.path, method=request.method)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "detail": str(exc)},
    )
