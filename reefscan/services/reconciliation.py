"""
Detection reconciliation.

Matches detections against the species catalog and merges them into the
device's sighting history. A device has at most one open sighting per species:
repeated detections of the same species reuse that sighting, bump its
last-seen timestamp and append one photo per call.

Reconciliation runs in two phases so the photo can be uploaded in between:
    resolve()        catalog match / auto-create, find-or-create sightings
    attach_photos()  one SightingPhoto per touched sighting

Per-detection write failures are collected, never raised.
"""

import logging
from datetime import datetime

from reefscan.clients.catalog_store import CatalogStore
from reefscan.clients.sighting_store import SightingStore
from reefscan.core.exceptions import (
    CatalogWriteError,
    SightingConflictError,
    StoreError,
)
from reefscan.schemas.analysis import (
    CollectionEntry,
    DetectionFailure,
    FailureStage,
    ReconciliationResult,
    StoredPhoto,
)
from reefscan.schemas.detection import Detection
from reefscan.schemas.sighting import (
    NewSightingPhoto,
    NewSpeciesRecord,
    Sighting,
    SightingStatus,
    SpeciesRecord,
)
from reefscan.utils.clock import Clock, utc_now


logger = logging.getLogger(__name__)

# Defaults for species added to the catalog from a detection
AUTO_CREATED_RARITY = 3
AUTO_CREATED_DANGER = 'Low'


class ReconciliationEngine:
    """
    Reconciles detections with the catalog and a device's sightings.

    Args:
        catalog: Species catalog store
        sightings: Sighting store (must enforce open-sighting uniqueness)
        confidence_threshold: Detections below this are reported but never persisted
        autocreate_confidence: Minimum confidence to add an unmatched, scientifically
            named species to the catalog
        clock: Source of "now" for last-seen and photo timestamps
    """

    def __init__(
        self,
        catalog: CatalogStore,
        sightings: SightingStore,
        confidence_threshold: float = 0.7,
        autocreate_confidence: float = 0.8,
        clock: Clock = utc_now,
    ):
        self.catalog = catalog
        self.sightings = sightings
        self.confidence_threshold = confidence_threshold
        self.autocreate_confidence = autocreate_confidence
        self.clock = clock

    # =========================================================================
    # Phase 1: catalog + sightings
    # =========================================================================
    def resolve(self, detections: list[Detection], device_id: str) -> ReconciliationResult:
        """
        Resolve detections to catalog species and open sightings.

        Args:
            detections: Parsed detections, in model order
            device_id: Owning device

        Returns:
            ReconciliationResult with updated detections (same order), one
            CollectionEntry per distinct resolved species, and collected failures
        """
        result = ReconciliationResult()
        entries_by_species: dict[str, CollectionEntry] = {}

        for index, detection in enumerate(detections):
            if detection.confidence < self.confidence_threshold:
                logger.debug(
                    f'Skipping {detection.species} ({detection.confidence:.2f} < '
                    f'{self.confidence_threshold})'
                )
                result.detections.append(detection)
                continue

            record = self._resolve_species(index, detection, result)
            if record is None:
                result.detections.append(detection)
                continue

            detection = detection.model_copy(
                update={'was_in_database': True, 'catalog_id': record.id, 'catalog_entry': record}
            )
            result.detections.append(detection)

            if record.id in entries_by_species:
                continue

            entry = self._merge_sighting(index, detection, record, device_id, result)
            if entry is not None:
                entries_by_species[record.id] = entry
                result.collection_entries.append(entry)

        return result

    def _resolve_species(
        self, index: int, detection: Detection, result: ReconciliationResult
    ) -> SpeciesRecord | None:
        """Catalog match by common name, then scientific name, then auto-create."""
        try:
            record = self.catalog.find_by_name(detection.species)
            if record is None and detection.scientific_name:
                record = self.catalog.find_by_name(detection.scientific_name)
        except StoreError as e:
            self._fail(result, index, detection, 'catalog_lookup', e)
            return None

        if record is not None:
            return record

        if detection.confidence < self.autocreate_confidence or not detection.scientific_name:
            return None

        fields = NewSpeciesRecord(
            name=detection.species,
            scientific_name=detection.scientific_name,
            rarity=AUTO_CREATED_RARITY,
            danger=AUTO_CREATED_DANGER,
            venomous=False,
            description=f'Identified as {detection.species}',
        )
        try:
            record = self.catalog.create(fields)
        except CatalogWriteError as e:
            self._fail(result, index, detection, 'catalog_write', e)
            return None

        logger.info(
            f'Added {record.name} ({record.scientific_name}) to catalog '
            f'at confidence {detection.confidence:.2f}'
        )
        return record

    def _merge_sighting(
        self,
        index: int,
        detection: Detection,
        record: SpeciesRecord,
        device_id: str,
        result: ReconciliationResult,
    ) -> CollectionEntry | None:
        """Reuse the device's open sighting of the species or create one."""
        created = False
        try:
            sighting = self.sightings.find_open_sighting(device_id, record.id)
            if sighting is None:
                sighting, created = self._create_or_reread(device_id, record.id)
            if not created:
                sighting = self.sightings.touch_last_seen(sighting.id, device_id, self.clock())
        except StoreError as e:
            self._fail(result, index, detection, 'sighting_write', e)
            return None

        instance = detection.instances[0] if detection.instances else None
        return CollectionEntry(
            sighting_id=sighting.id,
            species_id=record.id,
            species=record.name,
            detection_index=index,
            confidence=instance.confidence if instance else detection.confidence,
            bounding_box=instance.bounding_box if instance else None,
            created=created,
        )

    def _create_or_reread(self, device_id: str, species_id: str) -> tuple[Sighting, bool]:
        """Create an identified sighting; on a uniqueness conflict use the winner's."""
        try:
            sighting = self.sightings.create_sighting(
                device_id, species_id, SightingStatus.IDENTIFIED
            )
            return sighting, True
        except SightingConflictError:
            existing = self.sightings.find_open_sighting(device_id, species_id)
            if existing is None:
                raise
            logger.debug(f'Concurrent sighting of {species_id} for {device_id}, reusing')
            return existing, False

    # =========================================================================
    # Phase 2: photos
    # =========================================================================
    def attach_photos(
        self,
        result: ReconciliationResult,
        photo: StoredPhoto,
        lat: float | None = None,
        lng: float | None = None,
        spot_id: str | None = None,
        taken_at: datetime | None = None,
    ) -> ReconciliationResult:
        """
        Attach the uploaded photo to every sighting touched in phase 1.

        Args:
            result: Output of resolve(); entries are updated in place
            photo: Stored photo locations
            lat: Optional latitude
            lng: Optional longitude
            spot_id: Optional dive spot id
            taken_at: Capture time (default now)

        Returns:
            The same result, with photo ids set and photo_write failures added
        """
        taken_at = taken_at or self.clock()

        for entry in result.collection_entries:
            fields = NewSightingPhoto(
                url=photo.url,
                storage_path=photo.storage_path,
                annotated_url=photo.annotated_url,
                bounding_box=entry.bounding_box,
                confidence=entry.confidence,
                lat=lat,
                lng=lng,
                spot_id=spot_id,
                taken_at=taken_at,
            )
            try:
                entry.photo_id = self.sightings.add_photo(entry.sighting_id, fields).id
            except StoreError as e:
                detection = result.detections[entry.detection_index]
                self._fail(result, entry.detection_index, detection, 'photo_write', e)

        return result

    def reconcile(
        self,
        detections: list[Detection],
        device_id: str,
        photo: StoredPhoto | None = None,
        **photo_fields,
    ) -> ReconciliationResult:
        """Run both phases. Without a photo only phase 1 runs."""
        result = self.resolve(detections, device_id)
        if photo is not None:
            self.attach_photos(result, photo, **photo_fields)
        return result

    def _fail(
        self,
        result: ReconciliationResult,
        index: int,
        detection: Detection,
        stage: FailureStage,
        error: Exception,
    ) -> None:
        logger.warning(f'{stage} failed for detection {index} ({detection.species}): {error}')
        result.failures.append(
            DetectionFailure(index=index, species=detection.species, stage=stage, error=str(error))
        )
