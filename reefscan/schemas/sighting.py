"""
Catalog and sighting history models.

SpeciesRecord lives in the external catalog; Sighting and SightingPhoto make up
a device's collection. A device has at most one open Sighting per species.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from reefscan.schemas.geometry import BoundingBox


class SightingStatus(str, Enum):
    """Lifecycle status of a sighting."""

    PENDING = 'pending'
    IDENTIFIED = 'identified'
    UNKNOWN = 'unknown'


class NewSpeciesRecord(BaseModel):
    """Fields for creating a catalog entry."""

    name: str = Field(..., min_length=1, description='Common name')
    scientific_name: str | None = Field(None, description='Scientific name')
    category: str | None = Field(None, description='Fishes, Creatures or Corals; unset if unknown')
    rarity: int = Field(default=3, ge=1, le=5, description='1 (common) to 5 (very rare)')
    danger: str = Field(default='Low', description='Low, Medium, High or Extreme')
    venomous: bool = Field(default=False)
    description: str | None = Field(None)


class SpeciesRecord(NewSpeciesRecord):
    """A catalog entry."""

    id: str = Field(..., description='Catalog species id')


class Sighting(BaseModel):
    """One device's record of a species observed over time."""

    id: str
    device_id: str
    species_id: str | None = Field(None, description='Catalog id, unset while unresolved')
    status: SightingStatus
    first_seen: datetime
    last_seen: datetime
    notes: str | None = None

    @property
    def is_open(self) -> bool:
        """Open sightings are the ones new photos of the same species merge into."""
        return self.status != SightingStatus.UNKNOWN


class NewSightingPhoto(BaseModel):
    """Fields for attaching a photo to a sighting."""

    url: str = Field(..., description='Public URL of the original photo')
    storage_path: str = Field(..., description='Object store path of the original photo')
    annotated_url: str | None = Field(None, description='Public URL of the annotated variant')
    bounding_box: BoundingBox | None = None
    confidence: float | None = Field(None, ge=0.0, le=1.0)
    lat: float | None = Field(None, ge=-90.0, le=90.0)
    lng: float | None = Field(None, ge=-180.0, le=180.0)
    spot_id: str | None = None
    taken_at: datetime


class SightingPhoto(NewSightingPhoto):
    """A photo attached to a sighting."""

    id: str
    sighting_id: str
