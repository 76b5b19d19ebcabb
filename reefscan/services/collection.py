"""
Collection (sighting history) service.

Lets a device browse its sightings, add sightings by hand, append photos to
existing sightings and delete them. Manual sightings start as 'pending' with no
species; their photos are stored without annotation.
"""

import logging

from reefscan.clients.catalog_store import CatalogStore
from reefscan.clients.sighting_store import SightingStore
from reefscan.core.exceptions import SightingNotFoundError
from reefscan.schemas.analysis import SightingDetail
from reefscan.schemas.sighting import NewSightingPhoto, Sighting, SightingStatus
from reefscan.services.image import ImageService
from reefscan.services.pipeline import validate_device_id, validate_location
from reefscan.services.storage import PhotoStorageService
from reefscan.utils.boxes import normalize_bounding_box
from reefscan.utils.clock import Clock, utc_now


logger = logging.getLogger(__name__)

MANUAL_LABEL = 'manual'


class CollectionService:
    """Sighting lifecycle operations scoped to one device."""

    def __init__(
        self,
        catalog: CatalogStore,
        sightings: SightingStore,
        storage: PhotoStorageService,
        image_service: ImageService,
        clock: Clock = utc_now,
    ):
        self.catalog = catalog
        self.sightings = sightings
        self.storage = storage
        self.image_service = image_service
        self.clock = clock

    def list_sightings(self, device_id: str) -> list[SightingDetail]:
        """All sightings of a device with species and photos, most recent first."""
        device_id = validate_device_id(device_id)
        return [self._detail(s) for s in self.sightings.list_sightings(device_id)]

    def get_sighting(self, device_id: str, sighting_id: str) -> SightingDetail:
        """
        One owned sighting.

        Raises:
            SightingNotFoundError: Missing or owned by another device
        """
        return self._detail(self._owned(device_id, sighting_id))

    def add_manual_sighting(
        self,
        device_id: str,
        image_bytes: bytes,
        filename: str,
        notes: str | None = None,
        bounding_box: dict | None = None,
        spot_id: str | None = None,
        lat: float | None = None,
        lng: float | None = None,
    ) -> SightingDetail:
        """
        Create a pending sighting from a user photo.

        Args:
            device_id: Owning device
            image_bytes: Photo bytes
            filename: Original filename
            notes: Optional free-text notes
            bounding_box: Optional box-like value, normalized before storing
            spot_id: Optional dive spot id
            lat: Optional latitude
            lng: Optional longitude

        Returns:
            The new sighting with its photo
        """
        device_id = validate_device_id(device_id)
        validate_location(lat, lng)
        jpeg = self.image_service.prepare(image_bytes, filename)

        stored = self.storage.store_photo(jpeg, filename, device_id, MANUAL_LABEL)
        sighting = self.sightings.create_sighting(
            device_id, None, SightingStatus.PENDING, notes=notes
        )
        self.sightings.add_photo(
            sighting.id,
            NewSightingPhoto(
                url=stored.url,
                storage_path=stored.storage_path,
                bounding_box=normalize_bounding_box(bounding_box) if bounding_box else None,
                lat=lat,
                lng=lng,
                spot_id=spot_id,
                taken_at=sighting.first_seen,
            ),
        )

        logger.info(f'Manual sighting {sighting.id} added for {device_id}')
        return self._detail(sighting)

    def add_photo(
        self,
        device_id: str,
        sighting_id: str,
        image_bytes: bytes,
        filename: str,
        bounding_box: dict | None = None,
        spot_id: str | None = None,
        lat: float | None = None,
        lng: float | None = None,
    ) -> SightingDetail:
        """
        Append a photo to an owned sighting and advance its last-seen time.

        Raises:
            SightingNotFoundError: Missing or owned by another device
        """
        sighting = self._owned(device_id, sighting_id)
        validate_location(lat, lng)
        jpeg = self.image_service.prepare(image_bytes, filename)

        label = MANUAL_LABEL
        if sighting.species_id and (species := self.catalog.get_by_id(sighting.species_id)):
            label = species.name

        stored = self.storage.store_photo(jpeg, filename, sighting.device_id, label)
        now = self.clock()
        self.sightings.add_photo(
            sighting.id,
            NewSightingPhoto(
                url=stored.url,
                storage_path=stored.storage_path,
                bounding_box=normalize_bounding_box(bounding_box) if bounding_box else None,
                lat=lat,
                lng=lng,
                spot_id=spot_id,
                taken_at=now,
            ),
        )
        sighting = self.sightings.touch_last_seen(sighting.id, sighting.device_id, now)
        return self._detail(sighting)

    def delete_sighting(self, device_id: str, sighting_id: str) -> None:
        """
        Delete an owned sighting and its photos.

        Raises:
            SightingNotFoundError: Missing or owned by another device
        """
        sighting = self._owned(device_id, sighting_id)
        photos = self.sightings.list_photos(sighting.id)
        self.sightings.delete_sighting(sighting.id, sighting.device_id)

        for photo in photos:
            self.storage.delete_photo(photo.storage_path)

    def _owned(self, device_id: str, sighting_id: str) -> Sighting:
        device_id = validate_device_id(device_id)
        sighting = self.sightings.get_sighting(sighting_id, device_id)
        if sighting is None:
            raise SightingNotFoundError(sighting_id, device_id)
        return sighting

    def _detail(self, sighting: Sighting) -> SightingDetail:
        species = self.catalog.get_by_id(sighting.species_id) if sighting.species_id else None
        return SightingDetail(
            sighting=sighting, species=species, photos=self.sightings.list_photos(sighting.id)
        )
