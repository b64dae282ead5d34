import logging

from fastapi import FastAPI
from fastapi import Request
from fastapi import status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from edugen.api.routes import router
from edugen.core.config import settings
from edugen.core.exceptions import AuthenticationRequired
from edugen.core.exceptions import ConfigurationError
from edugen.core.exceptions import PersistenceError
from edugen.core.exceptions import ProviderError
from edugen.core.exceptions import ValidationFailed
from edugen.core.logging import setup_logging

setup_logging()

app = FastAPI(title="EduGen")

logger = logging.getLogger(__name__)


@app.on_event("startup")
async def startup_event() -> None:
    logger.info("Application startup - model %s via %s", settings.model_id, settings.llm_base_url)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
    logger.error("HTTP exception: %s (status: %s)", exc.detail, exc.status_code)
    return JSONResponse({"detail": exc.detail}, status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.error("Request validation failed: %s", exc.errors(), exc_info=False)
    return JSONResponse(
        {"error": "Input validation failed", "details": exc.errors()},
        status_code=422,
    )


@app.exception_handler(ValidationFailed)
async def validation_failed_handler(_request: Request, exc: ValidationFailed) -> JSONResponse:
    logger.error("Validation failed: %s %s", str(exc), exc.errors)
    return JSONResponse(
        {"error": "Input validation failed", "details": exc.errors},
        status_code=422,
    )


@app.exception_handler(AuthenticationRequired)
async def authentication_exception_handler(_request: Request, exc: AuthenticationRequired) -> JSONResponse:
    logger.warning("Authentication required: %s", str(exc))
    return JSONResponse({"error": str(exc)}, status_code=401)


@app.exception_handler(ProviderError)
async def provider_exception_handler(_request: Request, exc: ProviderError) -> JSONResponse:
    logger.error("Generation provider error: %s", str(exc))
    return JSONResponse({"error": str(exc)}, status_code=502)


@app.exception_handler(PersistenceError)
async def persistence_exception_handler(_request: Request, exc: PersistenceError) -> JSONResponse:
    logger.error("Persistence error: %s", str(exc))
    return JSONResponse({"error": str(exc)}, status_code=500)


@app.exception_handler(ConfigurationError)
async def configuration_exception_handler(_request: Request, exc: ConfigurationError) -> JSONResponse:
    logger.error("Configuration error: %s", str(exc))
    return JSONResponse({"error": str(exc)}, status_code=500)


@app.get("/health", status_code=status.HTTP_200_OK, tags=["Health"])
async def health_check() -> dict[str, str]:
    logger.info("Health check endpoint called")
    return {"status": "ok"}


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_methods=["POST", "GET", "OPTIONS"],
    allow_headers=["*"],
)
app.include_router(router)
