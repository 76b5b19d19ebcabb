"""
Sighting history store.

A device's collection is a set of Sightings, each owning zero or more
SightingPhotos. The store enforces the uniqueness constraint the pipeline
relies on: at most one open sighting per (device, species).
"""

import logging
import threading
import uuid
from abc import ABC, abstractmethod
from datetime import datetime

from reefscan.core.exceptions import (
    SightingConflictError,
    SightingNotFoundError,
    SightingWriteError,
)
from reefscan.schemas.sighting import NewSightingPhoto, Sighting, SightingPhoto, SightingStatus
from reefscan.utils.clock import Clock, utc_now


logger = logging.getLogger(__name__)


class SightingStore(ABC):
    """Persistence contract for sightings and their photos."""

    @abstractmethod
    def find_open_sighting(self, device_id: str, species_id: str) -> Sighting | None:
        """Return the device's open sighting of a species, if any."""

    @abstractmethod
    def create_sighting(
        self,
        device_id: str,
        species_id: str | None,
        status: SightingStatus,
        notes: str | None = None,
    ) -> Sighting:
        """
        Create a sighting with first_seen = last_seen = now.

        Raises:
            SightingConflictError: The device already has an open sighting of species_id
            SightingWriteError: The write failed
        """

    @abstractmethod
    def touch_last_seen(
        self, sighting_id: str, device_id: str, seen_at: datetime | None = None
    ) -> Sighting:
        """Advance last_seen. Never moves it backwards."""

    @abstractmethod
    def add_photo(self, sighting_id: str, photo: NewSightingPhoto) -> SightingPhoto:
        """Attach a photo to a sighting."""

    @abstractmethod
    def delete_sighting(self, sighting_id: str, device_id: str) -> None:
        """Delete an owned sighting and its photos."""

    @abstractmethod
    def get_sighting(self, sighting_id: str, device_id: str) -> Sighting | None:
        """Fetch a sighting owned by device_id."""

    @abstractmethod
    def list_sightings(self, device_id: str) -> list[Sighting]:
        """All sightings of a device, most recently seen first."""

    @abstractmethod
    def list_photos(self, sighting_id: str) -> list[SightingPhoto]:
        """Photos of a sighting, oldest first."""


class InMemorySightingStore(SightingStore):
    """
    Thread-safe in-memory sighting store.

    A single lock guards all tables, which makes the open-sighting uniqueness
    check and the insert one atomic step.
    """

    def __init__(self, clock: Clock = utc_now):
        self._clock = clock
        self._sightings: dict[str, Sighting] = {}
        self._photos: dict[str, list[SightingPhoto]] = {}
        self._lock = threading.Lock()

    def _owned(self, sighting_id: str, device_id: str) -> Sighting:
        """Lookup under lock. Raises SightingNotFoundError for foreign or missing ids."""
        sighting = self._sightings.get(sighting_id)
        if sighting is None or sighting.device_id != device_id:
            raise SightingNotFoundError(sighting_id, device_id)
        return sighting

    def _find_open(self, device_id: str, species_id: str) -> Sighting | None:
        for sighting in self._sightings.values():
            if (
                sighting.device_id == device_id
                and sighting.species_id == species_id
                and sighting.is_open
            ):
                return sighting
        return None

    def find_open_sighting(self, device_id: str, species_id: str) -> Sighting | None:
        with self._lock:
            return self._find_open(device_id, species_id)

    def create_sighting(
        self,
        device_id: str,
        species_id: str | None,
        status: SightingStatus,
        notes: str | None = None,
    ) -> Sighting:
        now = self._clock()
        with self._lock:
            if (
                species_id is not None
                and status != SightingStatus.UNKNOWN
                and self._find_open(device_id, species_id) is not None
            ):
                raise SightingConflictError(device_id, species_id)

            sighting = Sighting(
                id=uuid.uuid4().hex,
                device_id=device_id,
                species_id=species_id,
                status=status,
                first_seen=now,
                last_seen=now,
                notes=notes,
            )
            self._sightings[sighting.id] = sighting
            self._photos[sighting.id] = []

        logger.debug(f'Created {status.value} sighting {sighting.id} for device {device_id}')
        return sighting

    def touch_last_seen(
        self, sighting_id: str, device_id: str, seen_at: datetime | None = None
    ) -> Sighting:
        seen_at = seen_at or self._clock()
        with self._lock:
            sighting = self._owned(sighting_id, device_id)
            if seen_at > sighting.last_seen:
                sighting = sighting.model_copy(update={'last_seen': seen_at})
                self._sightings[sighting_id] = sighting
            return sighting

    def add_photo(self, sighting_id: str, photo: NewSightingPhoto) -> SightingPhoto:
        with self._lock:
            if sighting_id not in self._sightings:
                raise SightingWriteError(f"sighting '{sighting_id}' does not exist", sighting_id)

            stored = SightingPhoto(
                id=uuid.uuid4().hex, sighting_id=sighting_id, **photo.model_dump()
            )
            self._photos[sighting_id].append(stored)
            return stored

    def delete_sighting(self, sighting_id: str, device_id: str) -> None:
        with self._lock:
            self._owned(sighting_id, device_id)
            del self._sightings[sighting_id]
            photos = self._photos.pop(sighting_id, [])

        logger.info(f'Deleted sighting {sighting_id} ({len(photos)} photos) for device {device_id}')

    def get_sighting(self, sighting_id: str, device_id: str) -> Sighting | None:
        with self._lock:
            sighting = self._sightings.get(sighting_id)
            if sighting is None or sighting.device_id != device_id:
                return None
            return sighting

    def list_sightings(self, device_id: str) -> list[Sighting]:
        with self._lock:
            owned = [s for s in self._sightings.values() if s.device_id == device_id]
        return sorted(owned, key=lambda s: s.last_seen, reverse=True)

    def list_photos(self, sighting_id: str) -> list[SightingPhoto]:
        with self._lock:
            return list(self._photos.get(sighting_id, []))
