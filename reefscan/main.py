"""
Reefscan Marine Life API

Analyzes underwater photos with a vision model, reconciles the detections with
the species catalog and each device's sighting collection, and stores the
original and an annotated copy of every photo.

Run:
    uvicorn reefscan.main:app --host 0.0.0.0 --port 8000
"""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import ORJSONResponse
from fastapi.staticfiles import StaticFiles

from reefscan.clients.object_store import LocalObjectStore
from reefscan.config import get_settings
from reefscan.core.dependencies import AppState
from reefscan.core.exceptions import ReefscanError
from reefscan.routers import analysis_router, collections_router, health_router


logger = logging.getLogger(__name__)

BATCH_UPLOAD_PATH = '/intelligence/analyze-photos'


# =============================================================================
# Lifespan Manager
# =============================================================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifecycle manager.

    Startup:
    - Report catalog size, quota and vision model configuration

    Shutdown:
    - Nothing to release; quota counters are process-local and are dropped
    """
    state: AppState = app.state.reefscan

    logger.info('=== STARTUP ===')
    logger.info(f'Vision model: {state.vision_model.name}')
    logger.info(f'Quota: {state.quota.limit} calls per {state.quota.window}')
    if not getattr(state.vision_model, 'configured', True):
        logger.warning('OPENAI_API_KEY not set: analysis requests will return 503')
    logger.info('=== SERVICE READY ===')

    yield

    logger.info('=== SHUTDOWN COMPLETE ===')


# =============================================================================
# FastAPI Application
# =============================================================================
def create_app(state: AppState | None = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        state: Pre-built AppState (tests pass one assembled from fakes).
            Defaults to one configured from Settings.

    Returns:
        Configured FastAPI app
    """
    settings = state.settings if state is not None else get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    state = state or AppState(settings)

    app = FastAPI(
        title=settings.api_title,
        description=settings.api_description,
        version=settings.api_version,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
    )
    app.state.reefscan = state

    # =========================================================================
    # Error Handling
    # =========================================================================
    @app.exception_handler(ReefscanError)
    async def reefscan_error_handler(request: Request, exc: ReefscanError):
        if exc.status_code >= 500:
            logger.error(f'{request.method} {request.url.path} failed: {exc.message}')
        return ORJSONResponse(status_code=exc.status_code, content=exc.to_dict())

    # =========================================================================
    # Performance Monitoring Middleware
    # =========================================================================
    @app.middleware('http')
    async def performance_middleware(request: Request, call_next):
        """
        Reject oversize single-photo uploads early and log slow requests.
        """
        start_time = time.time()

        # Check file size for single-photo uploads (early validation)
        if request.method == 'POST' and request.url.path != BATCH_UPLOAD_PATH:
            content_length = request.headers.get('content-length', '')
            if content_length.isdigit() and int(content_length) > settings.max_file_size_bytes:
                max_mb = settings.max_file_size_mb
                logger.warning(
                    f'Request rejected: File size {int(content_length) / 1024 / 1024:.2f}MB '
                    f'exceeds {max_mb}MB limit'
                )
                return ORJSONResponse(
                    status_code=413,
                    content={
                        'detail': f'File too large. Maximum size: {max_mb}MB',
                        'code': 'PAYLOAD_TOO_LARGE',
                    },
                )

        response = await call_next(request)

        duration_ms = (time.time() - start_time) * 1000
        response.headers['X-Process-Time'] = f'{duration_ms:.2f}ms'

        if duration_ms > settings.slow_request_threshold_ms:
            logger.warning(
                f'Slow request: {request.method} {request.url.path} - '
                f'{duration_ms:.2f}ms (threshold: {settings.slow_request_threshold_ms}ms)'
            )

        return response

    # =========================================================================
    # Routers and Static Files
    # =========================================================================
    app.include_router(health_router)
    app.include_router(analysis_router)
    app.include_router(collections_router)

    if isinstance(state.object_store, LocalObjectStore):
        state.object_store.root.mkdir(parents=True, exist_ok=True)
        app.mount('/media', StaticFiles(directory=state.object_store.root), name='media')

    return app


app = create_app()
