from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.exceptions import ConfigurationError
from .core.logging import configure_logging, get_logger
from .core.settings import get_settings, validate_settings

from .auth.router import router as auth_router
from .chat.router import router as chat_router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL, settings.is_production)
    validate_settings(settings)
    Path(settings.AUDIT_LOG_DIR).mkdir(parents=True, exist_ok=True)
    logger.info("startup", environment=settings.ENVIRONMENT, audit_log_dir=settings.AUDIT_LOG_DIR)
    yield


app = FastAPI(title=get_settings().PROJECT_NAME, lifespan=lifespan)

app.include_router(auth_router)
app.include_router(chat_router)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Invalid request body", "details": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(ConfigurationError)
async def configuration_exception_handler(request: Request, exc: ConfigurationError):
    logger.error("configuration_error", error=str(exc), path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": str(exc)},
    )


@app.get("/")
def read_root():
    return {"message": f"Welcome to {get_settings().PROJECT_NAME}"}
