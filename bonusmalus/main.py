import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from bonusmalus.api import routes
from bonusmalus.api.models import ErrorDetail, ErrorResponse
from bonusmalus.core.config import get_settings
from bonusmalus.core.exceptions import GameError
from bonusmalus.db.database import engine
from bonusmalus.db.schema import Base

logger = logging.getLogger(__name__)

# Codes for errors raised by the framework itself (unknown route, wrong method, ...)
HTTP_ERROR_CODES: dict[int, str] = {
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
    status.HTTP_405_METHOD_NOT_ALLOWED: "METHOD_NOT_ALLOWED",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: logging and tables
    logging.basicConfig(
        level=get_settings().log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    Base.metadata.create_all(bind=engine)
    yield


app = FastAPI(
    title="Bonus/Malus Game API",
    description="Scoring game where players claim bonus and malus rules, first come first served",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(routes.router)


def validation_error_detail(error: dict[str, Any]) -> ErrorDetail:
    """One pydantic error entry. Domain errors raised inside validators keep their own code."""
    cause = error.get("ctx", {}).get("error")
    if isinstance(cause, GameError):
        return ErrorDetail(message=cause.message, code=cause.code)
    location = ".".join(str(part) for part in error.get("loc", ()))
    return ErrorDetail(message=f"{location}: {error.get('msg', 'invalid value')}", code="VALIDATION_FAILED")


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    body = ErrorResponse(errors=[validation_error_detail(error) for error in exc.errors()])
    logger.info(f"Rejected malformed request to {request.url.path}: {body.errors}")
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=body.model_dump())


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Failures raised by the routes already carry the error list; anything else gets wrapped in one."""
    if isinstance(exc.detail, dict) and "errors" in exc.detail:
        content = exc.detail
    else:
        code = HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR")
        content = ErrorResponse(errors=[ErrorDetail(message=str(exc.detail), code=code)]).model_dump()
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


@app.get("/health")
def health():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
