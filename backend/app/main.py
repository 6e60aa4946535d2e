from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.v1.router import api_router
from app.core.config import settings
from app.core.database import close_db, init_db
from app.core.exceptions import (
    ApplicationError,
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from app.core.logging_config import configure_logging
from app.schemas.common import ErrorResponse

logger = structlog.get_logger()

ERROR_STATUS = [
    (ValidationError, 400),
    (AuthenticationError, 401),
    (AuthorizationError, 403),
    (NotFoundError, 404),
    (ConflictError, 409),
]


def status_for(exc: ApplicationError) -> int:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return 500


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    logger.info("application_startup", app=settings.APP_NAME)
    if settings.DB_CREATE_TABLES:
        await init_db()
    yield
    await close_db()


app = FastAPI(
    title=settings.APP_NAME,
    description="Multi-tenant assessment execution engine",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"],
)


@app.exception_handler(ApplicationError)
async def application_error_handler(request: Request, exc: ApplicationError):
    status_code = status_for(exc)
    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    logger.info(
        "application_error",
        path=request.url.path,
        error=type(exc).__name__,
        status_code=status_code,
        message=exc.message,
    )
    body = ErrorResponse(detail=exc.message, error=type(exc).__name__, **exc.details)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"), headers=headers)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error("unhandled_exception", path=request.url.path, error=str(exc), exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


app.include_router(api_router)


@app.get("/")
async def root():
    return {"message": f"{settings.APP_NAME} API", "version": "0.1.0"}


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
