"""
FastAPI dependency injection for shared resources.

Uses FastAPI's Depends() pattern for proper lifecycle management.
The AppState container is built once per application (create_app) and stored
on app.state; dependencies read it from the request so tests can inject an
AppState assembled from fakes.
"""

import logging
from typing import Annotated

from fastapi import Depends, Request

from reefscan.clients.catalog_store import CatalogStore, InMemoryCatalogStore
from reefscan.clients.object_store import LocalObjectStore, ObjectStore
from reefscan.clients.photo_fetcher import HttpPhotoFetcher, PhotoFetcher
from reefscan.clients.sighting_store import InMemorySightingStore, SightingStore
from reefscan.clients.vision_model import OpenAIVisionModel, VisionModel
from reefscan.config.settings import Settings, get_settings
from reefscan.services.annotation import AnnotationRenderer
from reefscan.services.collection import CollectionService
from reefscan.services.image import ImageService
from reefscan.services.pipeline import PipelineOrchestrator
from reefscan.services.quota import InMemoryQuotaStore, QuotaGate
from reefscan.services.reconciliation import ReconciliationEngine
from reefscan.services.storage import PhotoStorageService
from reefscan.utils.clock import Clock, utc_now


logger = logging.getLogger(__name__)


# =============================================================================
# Application State
# =============================================================================
class AppState:
    """
    Application state container for shared resources.

    Collaborators default to the shipped implementations configured from
    Settings; pass any of them explicitly to substitute fakes.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        catalog: CatalogStore | None = None,
        sightings: SightingStore | None = None,
        object_store: ObjectStore | None = None,
        vision_model: VisionModel | None = None,
        quota: QuotaGate | None = None,
        photo_fetcher: PhotoFetcher | None = None,
        clock: Clock = utc_now,
    ):
        self.settings = settings or get_settings()
        settings = self.settings
        self.clock = clock

        self.catalog = catalog or self._default_catalog(settings)
        self.sightings = sightings or InMemorySightingStore(clock=clock)
        self.object_store = object_store or LocalObjectStore(
            settings.storage_root, settings.storage_bucket, settings.public_base_url
        )
        self.vision_model = vision_model or OpenAIVisionModel(
            api_key=settings.openai_api_key,
            model=settings.vision_model,
            timeout=settings.vision_timeout_seconds,
            max_tokens=settings.vision_max_tokens,
        )
        self.quota = quota or QuotaGate(
            InMemoryQuotaStore(),
            limit=settings.quota_daily_limit,
            window=settings.quota_window,
            clock=clock,
        )
        self.photo_fetcher = photo_fetcher or HttpPhotoFetcher(
            timeout=settings.photo_fetch_timeout_seconds,
            max_bytes=settings.max_file_size_bytes,
        )

        self.image_service = ImageService(
            max_file_size_mb=settings.max_file_size_mb, jpeg_quality=settings.jpeg_quality
        )
        self.renderer = AnnotationRenderer(jpeg_quality=settings.annotation_jpeg_quality)
        self.storage = PhotoStorageService(self.object_store, self.renderer, clock=clock)
        self.engine = ReconciliationEngine(
            self.catalog,
            self.sightings,
            confidence_threshold=settings.confidence_threshold,
            autocreate_confidence=settings.catalog_autocreate_confidence,
            clock=clock,
        )
        self.pipeline = PipelineOrchestrator(
            quota=self.quota,
            vision_model=self.vision_model,
            engine=self.engine,
            storage=self.storage,
            image_service=self.image_service,
            clock=clock,
        )
        self.collections = CollectionService(
            self.catalog, self.sightings, self.storage, self.image_service, clock=clock
        )

    @staticmethod
    def _default_catalog(settings: Settings) -> CatalogStore:
        if settings.catalog_seed_path:
            return InMemoryCatalogStore.from_json_file(settings.catalog_seed_path)
        logger.info('No catalog seed configured, starting with an empty catalog')
        return InMemoryCatalogStore()


# =============================================================================
# FastAPI Dependencies (use with Depends())
# =============================================================================
def get_app_state(request: Request) -> AppState:
    """Dependency for the application state container."""
    return request.app.state.reefscan


def get_pipeline(state: Annotated[AppState, Depends(get_app_state)]) -> PipelineOrchestrator:
    """Dependency for the analysis pipeline."""
    return state.pipeline


def get_quota_gate(state: Annotated[AppState, Depends(get_app_state)]) -> QuotaGate:
    """Dependency for the quota gate."""
    return state.quota


def get_photo_fetcher(state: Annotated[AppState, Depends(get_app_state)]) -> PhotoFetcher:
    """Dependency for the remote photo fetcher."""
    return state.photo_fetcher


def get_collection_service(
    state: Annotated[AppState, Depends(get_app_state)],
) -> CollectionService:
    """Dependency for the collection service."""
    return state.collections


# Type aliases for cleaner endpoint signatures
AppStateDep = Annotated[AppState, Depends(get_app_state)]
PipelineDep = Annotated[PipelineOrchestrator, Depends(get_pipeline)]
QuotaGateDep = Annotated[QuotaGate, Depends(get_quota_gate)]
CollectionServiceDep = Annotated[CollectionService, Depends(get_collection_service)]
PhotoFetcherDep = Annotated[PhotoFetcher, Depends(get_photo_fetcher)]
