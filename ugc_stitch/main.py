import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ugc_stitch.api import clips, concatenate, operations
from ugc_stitch.config import get_settings
from ugc_stitch.constants.error_codes import get_error_spec
from ugc_stitch.exceptions import StitchError

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    if not settings.gemini_api_key:
        logger.warning("GEMINI_API_KEY is not set; clip downloads will be rejected")
    yield


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "Content-Length"],
)


def _http_error_code(status_code: int) -> str:
    mapping = {
        400: "BAD_REQUEST",
        404: "NOT_FOUND",
        422: "VALIDATION_ERROR",
        500: "INTERNAL_ERROR",
    }
    return mapping.get(status_code, "HTTP_ERROR")


@app.exception_handler(StitchError)
async def stitch_exception_handler(request: Request, exc: StitchError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: [{exc.code}] {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_response_body())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed request bodies are answered with 400, like every other input error."""
    errors = exc.errors()
    if errors:
        first_error = errors[0]
        loc = " -> ".join(str(x) for x in first_error.get("loc", []))
        msg = first_error.get("msg", "Validation error")
        message = f"{loc}: {msg}" if loc else msg
    else:
        message = "Request validation failed"
    return JSONResponse(
        status_code=400,
        content={"error": message, "code": "VALIDATION_ERROR", "retryable": False},
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    code = _http_error_code(exc.status_code)
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": str(exc.detail),
            "code": code,
            "retryable": get_error_spec(code).get("retryable", False),
        },
    )


# Global exception handler to ensure errors return proper JSON
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "code": "INTERNAL_ERROR", "retryable": True},
    )


# Routers
app.include_router(concatenate.router, prefix="/api/concatenate-videos", tags=["concatenate"])
app.include_router(operations.router, prefix="/api", tags=["operations"])
app.include_router(clips.router, prefix="/api", tags=["clips"])


@app.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "healthy", "version": settings.app_version, "git_hash": settings.git_hash}


@app.get("/api/version")
async def get_version() -> dict[str, str]:
    """Return the backend version info."""
    return {"version": settings.app_version, "git_hash": settings.git_hash}
