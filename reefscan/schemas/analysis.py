"""
Pipeline result models.

Per-image results, batch summaries, quota status and collection views
returned by the orchestrator and the HTTP layer.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from reefscan.schemas.detection import AnnotationMetadata, Detection, ImageAnalysis, UnknownSpecies
from reefscan.schemas.geometry import BoundingBox
from reefscan.schemas.sighting import Sighting, SightingPhoto, SpeciesRecord


FailureStage = Literal['catalog_lookup', 'catalog_write', 'sighting_write', 'photo_write']


class CollectionEntry(BaseModel):
    """A sighting touched by one analysis call."""

    sighting_id: str
    species_id: str
    species: str
    detection_index: int = Field(..., description='First detection resolving to this sighting')
    confidence: float = Field(..., ge=0.0, le=1.0)
    bounding_box: BoundingBox | None = None
    photo_id: str | None = Field(None, description='Photo attached by this call')
    created: bool = Field(default=False, description='True when the sighting was new')


class DetectionFailure(BaseModel):
    """A non-fatal write failure for one detection."""

    index: int = Field(..., description='Position of the detection in the response')
    species: str
    stage: FailureStage
    error: str


class ReconciliationResult(BaseModel):
    """Outcome of reconciling one photo's detections."""

    detections: list[Detection] = Field(default_factory=list)
    collection_entries: list[CollectionEntry] = Field(default_factory=list)
    failures: list[DetectionFailure] = Field(default_factory=list)


class StoredPhoto(BaseModel):
    """Locations of an uploaded photo and its annotated variant."""

    url: str
    storage_path: str
    annotated_url: str | None = None
    annotated_path: str | None = None


class PhotoUrlRequest(BaseModel):
    """JSON body for analyzing a photo that is already hosted elsewhere."""

    device_id: str | None = Field(None, description='Device identifier (required)')
    photo_url: str | None = Field(None, description='http(s) URL of the photo (required)')
    spot_id: str | None = None
    lat: float | None = None
    lng: float | None = None

    class Config:
        json_schema_extra = {
            'example': {
                'device_id': 'diver-phone',
                'photo_url': 'https://example.com/reef.jpg',
                'spot_id': 'ribbon-reef',
                'lat': -16.5,
                'lng': 145.8,
            }
        }


class ImageAnalysisResult(BaseModel):
    """
    Result for one analyzed photo.

    success=False results carry error and error_code instead of detections.
    """

    filename: str
    success: bool = True
    detections: list[Detection] = Field(default_factory=list)
    unknown_species: list[UnknownSpecies] = Field(default_factory=list)
    image_analysis: ImageAnalysis | None = None
    annotation_metadata: AnnotationMetadata | None = None
    collection_entries: list[CollectionEntry] = Field(default_factory=list)
    failures: list[DetectionFailure] = Field(default_factory=list)
    original_photo_url: str | None = None
    annotated_photo_url: str | None = None
    error: str | None = None
    error_code: str | None = None


class BatchSummary(BaseModel):
    """Aggregate statistics for a batch."""

    total_images: int
    successful_analyses: int
    failed_analyses: int
    total_detections: int
    average_confidence: float = Field(
        ..., description='Mean over successful images of their mean detection confidence'
    )
    processing_time_ms: float


class BatchAnalysisResult(BaseModel):
    """Result for a batch of photos."""

    results: list[ImageAnalysisResult] = Field(default_factory=list)
    summary: BatchSummary


class QuotaStatus(BaseModel):
    """Read-only view of a device's quota window."""

    device_id: str
    used: int
    limit: int
    remaining: int
    reset_at: datetime | None = Field(None, description='Unset when no window is active')


class SightingDetail(BaseModel):
    """A sighting with its species and photos."""

    sighting: Sighting
    species: SpeciesRecord | None = None
    photos: list[SightingPhoto] = Field(default_factory=list)
