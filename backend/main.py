"""
SleepSense - Backend Entrypoint

FastAPI application factory and server configuration.
Run with: uvicorn main:app --reload   (from the backend/ directory)
"""

from contextlib import asynccontextmanager
import logging
import uuid
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from sleepsense import __version__
from sleepsense.api import routes
from sleepsense.config import Settings, get_settings
from sleepsense.core.logging import LogContext, setup_structured_logging
from sleepsense.core.pipeline import create_engine

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Application factory.

    Args:
        settings: Settings override (tests); cached settings when None
    """
    settings = settings or get_settings()

    setup_structured_logging(level=settings.app_log_level, json_format=settings.log_json)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Startup:
            - Create the app store and coach engine from settings
        Shutdown:
            - Nothing to flush; every save is written synchronously
        """
        logger.info("SleepSense starting in %s mode", settings.app_env)

        app.state.engine = create_engine(settings)
        app.state.settings = settings

        logger.info(
            "Engine ready: storage=%s, data_dir=%s, anonymize_logs=%s",
            settings.storage_backend,
            settings.data_dir,
            settings.anonymize_logs,
        )

        yield

        logger.info("SleepSense shutting down")

    # Interactive docs stay off in production even when debug is left on
    show_docs = settings.app_debug and not settings.is_production

    app = FastAPI(
        title="SleepSense",
        description="Local sleep-anxiety coach API",
        version=__version__,
        docs_url="/docs" if show_docs else None,
        redoc_url="/redoc" if show_docs else None,
        lifespan=lifespan,
    )

    # --- CORS ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- Request IDs ---
    @app.middleware("http")
    async def request_context(request: Request, call_next):
        """Tag every log line of a request with its id and echo it back."""
        request_id = request.headers.get(REQUEST_ID_HEADER) or f"req_{uuid.uuid4().hex[:12]}"
        with LogContext(request_id=request_id):
            response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    # --- Routes ---
    app.include_router(routes.router, prefix="/api")

    @app.get("/")
    async def root():
        """Root health check."""
        return {
            "service": "SleepSense",
            "status": "operational",
            "version": __version__,
        }

    return app


# Create app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(app, host=settings.backend_host, port=settings.backend_port)
