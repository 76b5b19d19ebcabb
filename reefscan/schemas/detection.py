"""
Detection-related Pydantic models.

Detections are produced per analysis call from the vision model's response and
are never persisted as-is. Coordinates are normalized to [0, 1] relative to the
image dimensions with the origin at the top-left corner.
"""

from typing import Any

from pydantic import BaseModel, Field

from reefscan.schemas.geometry import BoundingBox
from reefscan.schemas.sighting import SpeciesRecord


class DetectionInstance(BaseModel):
    """One located occurrence of a species within the photo."""

    bounding_box: BoundingBox = Field(..., description='Normalized box')
    confidence: float = Field(..., ge=0.0, le=1.0, description='Per-instance confidence')


class Detection(BaseModel):
    """
    A model-proposed species occurrence.

    Catalog fields start unset and are filled in by reconciliation.
    """

    species: str = Field(default='Unknown', description='Common name proposed by the model')
    scientific_name: str | None = Field(None, description='Scientific name if the model gave one')
    confidence: float = Field(default=0.0, ge=0.0, le=1.0, description='Detection confidence')
    instances: list[DetectionInstance] = Field(
        default_factory=list, description='Located occurrences in the photo'
    )
    was_in_database: bool = Field(default=False, description='Matched or created in the catalog')
    catalog_id: str | None = Field(None, description='Resolved catalog species id')
    catalog_entry: SpeciesRecord | None = Field(None, description='Resolved catalog record')
    attributes: dict[str, Any] = Field(
        default_factory=dict, description='Free-text observations from the model'
    )

    @property
    def primary_box(self) -> BoundingBox | None:
        """Bounding box of the first instance, if any."""
        return self.instances[0].bounding_box if self.instances else None


class UnknownSpecies(BaseModel):
    """An organism the model saw but could not name."""

    description: str = Field(default='Unknown species')
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    bounding_box: BoundingBox
    similar_species: list[str] = Field(default_factory=list)
    attributes: dict[str, Any] = Field(default_factory=dict)
    raw_response: str = Field(default='', description='Raw model text kept as evidence')


class ImageAnalysis(BaseModel):
    """Whole-image assessment returned alongside detections."""

    overall_quality: str = 'fair'
    lighting_conditions: str = 'moderate'
    water_clarity: str = 'moderate'
    depth_estimate: str = 'medium'
    habitat_type: str = 'mixed'


class AnnotationMetadata(BaseModel):
    """Model-reported totals for the annotation."""

    total_detections: int = 0
    identified_species: int = 0
    unknown_species: int = 0
    average_confidence: float = 0.0
    annotation_quality: str = 'medium'
    processing_notes: str = ''


class ParsedAnalysis(BaseModel):
    """Structured view of one vision model response."""

    detections: list[Detection] = Field(default_factory=list)
    unknown_species: list[UnknownSpecies] = Field(default_factory=list)
    image_analysis: ImageAnalysis | None = None
    annotation_metadata: AnnotationMetadata | None = None
