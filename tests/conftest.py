"""
Shared pytest fixtures.

Services are wired the same way AppState wires them, with every external
collaborator replaced by a fake from fakes.py.
"""

from datetime import timedelta

import pytest
from fakes import (
    FakeVisionModel,
    FixedClock,
    MemoryObjectStore,
    detection,
    detections_json,
    make_jpeg,
)

from reefscan.clients.catalog_store import InMemoryCatalogStore
from reefscan.clients.sighting_store import InMemorySightingStore
from reefscan.config.settings import Settings
from reefscan.schemas.sighting import SpeciesRecord
from reefscan.services.annotation import AnnotationRenderer
from reefscan.services.image import ImageService
from reefscan.services.pipeline import PipelineOrchestrator
from reefscan.services.quota import InMemoryQuotaStore, QuotaGate
from reefscan.services.reconciliation import ReconciliationEngine
from reefscan.services.storage import PhotoStorageService


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def jpeg_bytes() -> bytes:
    return make_jpeg()


@pytest.fixture
def species() -> list[SpeciesRecord]:
    return [
        SpeciesRecord(
            id='sp-clownfish',
            name='Clownfish',
            scientific_name='Amphiprion ocellaris',
            category='Fishes',
            rarity=2,
        ),
        SpeciesRecord(
            id='sp-blue-tang',
            name='Blue Tang',
            scientific_name='Paracanthurus hepatus',
            category='Fishes',
            rarity=2,
        ),
    ]


@pytest.fixture
def catalog(species) -> InMemoryCatalogStore:
    return InMemoryCatalogStore(species)


@pytest.fixture
def sightings(clock) -> InMemorySightingStore:
    return InMemorySightingStore(clock=clock)


@pytest.fixture
def object_store() -> MemoryObjectStore:
    return MemoryObjectStore()


@pytest.fixture
def quota(clock) -> QuotaGate:
    return QuotaGate(InMemoryQuotaStore(), limit=10, window=timedelta(hours=24), clock=clock)


@pytest.fixture
def vision_model() -> FakeVisionModel:
    return FakeVisionModel(
        detections_json(
            detection(
                'Clownfish',
                0.92,
                'Amphiprion ocellaris',
                boundingBox={'x': 0.1, 'y': 0.2, 'width': 0.3, 'height': 0.25},
            )
        )
    )


@pytest.fixture
def engine(catalog, sightings, clock) -> ReconciliationEngine:
    return ReconciliationEngine(catalog, sightings, clock=clock)


@pytest.fixture
def storage(object_store, clock) -> PhotoStorageService:
    return PhotoStorageService(object_store, AnnotationRenderer(), clock=clock)


@pytest.fixture
def image_service() -> ImageService:
    return ImageService(max_file_size_mb=5, jpeg_quality=90)


@pytest.fixture
def pipeline(quota, vision_model, engine, storage, image_service, clock) -> PipelineOrchestrator:
    return PipelineOrchestrator(
        quota=quota,
        vision_model=vision_model,
        engine=engine,
        storage=storage,
        image_service=image_service,
        clock=clock,
    )


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        openai_api_key=None,
        storage_root=str(tmp_path / 'objects'),
        quota_daily_limit=3,
        max_file_size_mb=5,
    )
