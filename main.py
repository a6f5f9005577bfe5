from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
import structlog
import time
from app.api.errors import to_http_exception
from app.api.routes import api_router
from app.config.settings import settings
from app.core.database import create_tables
from app.core.dependencies import container
from app.core.exceptions import AIServiceError

SECRET_FIELDS = {"api_key", "openai_api_key", "authorization"}


def redact_secrets(_logger, _method_name, event_dict):
    """Structlog processor: secrets never reach the log output"""
    for key in SECRET_FIELDS.intersection(event_dict):
        event_dict[key] = "***"
    return event_dict


def configure_logging() -> None:
    logging.basicConfig(format="%(message)s", level=settings.log_level.upper())
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            redact_secrets,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


configure_logging()
logger = structlog.get_logger()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""

    app = FastAPI(
        title="Test Generation Assistant API",
        description="Per-project AI assistant sessions for BDD test case generation and suggestions",
        version="1.0.0",
        openapi_url=f"{settings.api_prefix}/openapi.json",
        docs_url=f"{settings.api_prefix}/docs",
        redoc_url=f"{settings.api_prefix}/redoc"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure this properly for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.time()
        logger.info("Request started", method=request.method, path=request.url.path)

        response = await call_next(request)

        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = f"{process_time:.3f}"
        logger.info(
            "Request completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            process_time=process_time
        )
        return response

    # Service errors that escaped a route keep their 4xx mapping
    @app.exception_handler(AIServiceError)
    async def ai_service_exception_handler(request: Request, exc: AIServiceError):
        http_error = to_http_exception(exc, "AI service error")
        return JSONResponse(
            status_code=http_error.status_code,
            content={"detail": http_error.detail, "timestamp": time.time()}
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(
            "Unhandled exception",
            method=request.method,
            path=request.url.path,
            error=str(exc),
            exc_info=True
        )
        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error",
                "timestamp": time.time()
            }
        )

    app.include_router(api_router, prefix=settings.api_prefix)

    return app


app = create_app()


@app.on_event("startup")
async def startup_event():
    """Create tables and report whether the OpenAI key is in place"""
    logger.info("Application starting up", environment=settings.environment)

    try:
        create_tables()
    except Exception as e:
        logger.error("Failed to initialize database", error=str(e))
        raise

    if container.credential_store().is_configured():
        logger.info("OpenAI API key found", credentials_env_file=settings.credentials_env_file)
    else:
        logger.warning(
            "OpenAI API key not configured, AI endpoints will fail until it is saved",
            credentials_env_file=settings.credentials_env_file
        )

    logger.info(
        "Application startup completed",
        assistant_model=settings.assistant_model,
        serialize_project_sessions=settings.serialize_project_sessions
    )


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Application shutting down")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
