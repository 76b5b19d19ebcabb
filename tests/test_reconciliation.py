"""Tests for catalog matching and sighting merging."""

import pytest

from reefscan.clients.catalog_store import InMemoryCatalogStore
from reefscan.clients.sighting_store import InMemorySightingStore
from reefscan.core.exceptions import CatalogWriteError, SightingWriteError, StoreError
from reefscan.schemas.analysis import StoredPhoto
from reefscan.schemas.detection import Detection, DetectionInstance
from reefscan.schemas.geometry import BoundingBox
from reefscan.schemas.sighting import SightingStatus
from reefscan.services.reconciliation import ReconciliationEngine


DEVICE = 'diver-phone'

PHOTO = StoredPhoto(
    url='https://cdn.test/collections/diver-phone/ai_analysis/a.jpg',
    storage_path='collections/diver-phone/ai_analysis/a.jpg',
    annotated_url='https://cdn.test/collections/diver-phone/ai_analysis/a_annotated.jpg',
    annotated_path='collections/diver-phone/ai_analysis/a_annotated.jpg',
)


def make_detection(
    species: str,
    confidence: float,
    scientific_name: str | None = None,
    box: BoundingBox | None = None,
) -> Detection:
    box = box or BoundingBox(x=0.1, y=0.1, width=0.2, height=0.2)
    return Detection(
        species=species,
        scientific_name=scientific_name,
        confidence=confidence,
        instances=[DetectionInstance(bounding_box=box, confidence=confidence)],
    )


# =============================================================================
# Failing collaborators
# =============================================================================


class ReadOnlyCatalog(InMemoryCatalogStore):
    def create(self, fields):
        raise CatalogWriteError(fields.name, 'catalog is read-only')


class OfflineCatalog(InMemoryCatalogStore):
    def find_by_name(self, name):
        raise StoreError('catalog offline')


class BrokenSightingStore(InMemorySightingStore):
    def create_sighting(self, device_id, species_id, status, notes=None):
        raise SightingWriteError('disk full')


class PhotoRejectingStore(InMemorySightingStore):
    def add_photo(self, sighting_id, photo):
        raise SightingWriteError('photo table locked', sighting_id)


class RacingSightingStore(InMemorySightingStore):
    """Hides the open sighting from the first lookup, as if another request won the insert."""

    def __init__(self, clock):
        super().__init__(clock=clock)
        self.hide_next_lookup = False

    def find_open_sighting(self, device_id, species_id):
        if self.hide_next_lookup:
            self.hide_next_lookup = False
            return None
        return super().find_open_sighting(device_id, species_id)


# =============================================================================
# Threshold and catalog matching
# =============================================================================


class TestResolveSpecies:
    """Catalog matching and auto-creation."""

    def test_below_threshold_is_returned_unchanged(self, engine, sightings, catalog):
        low = make_detection('Clownfish', 0.69, 'Amphiprion ocellaris')

        result = engine.resolve([low], DEVICE)

        assert result.detections == [low]
        assert result.collection_entries == []
        assert result.failures == []
        assert sightings.list_sightings(DEVICE) == []
        assert len(catalog) == 2

    def test_match_by_common_name_is_case_insensitive(self, engine):
        result = engine.resolve([make_detection('clownFISH', 0.9)], DEVICE)

        found = result.detections[0]
        assert found.was_in_database is True
        assert found.catalog_id == 'sp-clownfish'
        assert found.catalog_entry.name == 'Clownfish'

    def test_match_by_scientific_name(self, engine):
        detection = make_detection('Regal Tang', 0.85, 'Paracanthurus hepatus')

        result = engine.resolve([detection], DEVICE)

        assert result.detections[0].catalog_id == 'sp-blue-tang'
        assert result.detections[0].species == 'Regal Tang'
        assert result.collection_entries[0].species == 'Blue Tang'

    def test_autocreate_with_scientific_name(self, engine, catalog):
        detection = make_detection('Mandarinfish', 0.88, 'Synchiropus splendidus')

        result = engine.resolve([detection], DEVICE)

        record = catalog.find_by_name('Mandarinfish')
        assert record is not None
        assert record.scientific_name == 'Synchiropus splendidus'
        assert (record.rarity, record.danger, record.venomous) == (3, 'Low', False)
        assert result.detections[0].catalog_id == record.id
        assert result.collection_entries[0].created is True

    def test_no_autocreate_without_scientific_name(self, engine, catalog, sightings):
        result = engine.resolve([make_detection('Mystery Goby', 0.99)], DEVICE)

        assert result.detections[0].was_in_database is False
        assert result.collection_entries == []
        assert len(catalog) == 2
        assert sightings.list_sightings(DEVICE) == []

    def test_no_autocreate_between_thresholds(self, engine, catalog):
        detection = make_detection('Mandarinfish', 0.75, 'Synchiropus splendidus')

        result = engine.resolve([detection], DEVICE)

        assert result.detections[0].was_in_database is False
        assert len(catalog) == 2

    def test_catalog_write_failure_is_collected(self, species, sightings, clock):
        engine = ReconciliationEngine(ReadOnlyCatalog(species), sightings, clock=clock)
        detections = [
            make_detection('Mandarinfish', 0.9, 'Synchiropus splendidus'),
            make_detection('Clownfish', 0.9),
        ]

        result = engine.resolve(detections, DEVICE)

        assert [f.stage for f in result.failures] == ['catalog_write']
        assert result.failures[0].index == 0
        assert result.detections[0].was_in_database is False
        assert [e.species for e in result.collection_entries] == ['Clownfish']

    def test_catalog_lookup_failure_is_collected(self, species, sightings, clock):
        engine = ReconciliationEngine(OfflineCatalog(species), sightings, clock=clock)

        result = engine.resolve([make_detection('Clownfish', 0.9)], DEVICE)

        assert result.failures[0].stage == 'catalog_lookup'
        assert result.detections[0].was_in_database is False


# =============================================================================
# Sighting merging
# =============================================================================


class TestMergeSightings:
    """At most one open sighting per device and species."""

    def test_first_detection_creates_identified_sighting(self, engine, sightings, clock):
        result = engine.resolve([make_detection('Clownfish', 0.9)], DEVICE)

        entry = result.collection_entries[0]
        assert entry.created is True
        sighting = sightings.get_sighting(entry.sighting_id, DEVICE)
        assert sighting.status == SightingStatus.IDENTIFIED
        assert sighting.species_id == 'sp-clownfish'
        assert sighting.first_seen == sighting.last_seen == clock()

    def test_repeat_detection_reuses_sighting_and_advances_last_seen(
        self, engine, sightings, clock
    ):
        first = engine.resolve([make_detection('Clownfish', 0.9)], DEVICE)
        clock.advance(hours=2)
        second = engine.resolve([make_detection('Clownfish', 0.8)], DEVICE)

        entry = second.collection_entries[0]
        assert entry.created is False
        assert entry.sighting_id == first.collection_entries[0].sighting_id
        sighting = sightings.get_sighting(entry.sighting_id, DEVICE)
        assert sighting.last_seen == clock()
        assert sighting.first_seen < sighting.last_seen
        assert len(sightings.list_sightings(DEVICE)) == 1

    def test_same_species_twice_in_one_photo_gives_one_entry(self, engine):
        detections = [
            make_detection('Clownfish', 0.9),
            make_detection('Clownfish', 0.8, box=BoundingBox(x=0.5, y=0.5, width=0.2, height=0.2)),
        ]

        result = engine.resolve(detections, DEVICE)

        assert len(result.collection_entries) == 1
        assert result.collection_entries[0].detection_index == 0
        assert all(d.was_in_database for d in result.detections)

    def test_devices_have_separate_sightings(self, engine, sightings):
        engine.resolve([make_detection('Clownfish', 0.9)], DEVICE)
        engine.resolve([make_detection('Clownfish', 0.9)], 'other-device')

        assert len(sightings.list_sightings(DEVICE)) == 1
        assert len(sightings.list_sightings('other-device')) == 1

    def test_unknown_status_sighting_is_not_reused(self, engine, sightings):
        stale = sightings.create_sighting(DEVICE, 'sp-clownfish', SightingStatus.UNKNOWN)

        result = engine.resolve([make_detection('Clownfish', 0.9)], DEVICE)

        assert result.collection_entries[0].created is True
        assert result.collection_entries[0].sighting_id != stale.id

    def test_concurrent_insert_conflict_reuses_winner(self, catalog, clock):
        store = RacingSightingStore(clock)
        winner = store.create_sighting(DEVICE, 'sp-clownfish', SightingStatus.IDENTIFIED)
        store.hide_next_lookup = True
        engine = ReconciliationEngine(catalog, store, clock=clock)

        result = engine.resolve([make_detection('Clownfish', 0.9)], DEVICE)

        assert result.failures == []
        assert result.collection_entries[0].sighting_id == winner.id
        assert result.collection_entries[0].created is False
        assert len(store.list_sightings(DEVICE)) == 1

    def test_sighting_write_failure_is_collected(self, catalog, clock):
        engine = ReconciliationEngine(catalog, BrokenSightingStore(clock=clock), clock=clock)

        result = engine.resolve([make_detection('Clownfish', 0.9)], DEVICE)

        assert result.collection_entries == []
        assert result.failures[0].stage == 'sighting_write'
        assert result.detections[0].was_in_database is True


# =============================================================================
# Photo attachment
# =============================================================================


class TestAttachPhotos:
    """One photo record per touched sighting."""

    def test_photo_carries_entry_box_and_location(self, engine, sightings, clock):
        box = BoundingBox(x=0.2, y=0.3, width=0.4, height=0.1)
        result = engine.resolve([make_detection('Clownfish', 0.9, box=box)], DEVICE)

        engine.attach_photos(result, PHOTO, lat=-16.5, lng=145.8, spot_id='ribbon-reef')

        entry = result.collection_entries[0]
        photos = sightings.list_photos(entry.sighting_id)
        assert len(photos) == 1
        photo = photos[0]
        assert entry.photo_id == photo.id
        assert photo.bounding_box == box
        assert photo.confidence == 0.9
        assert photo.url == PHOTO.url
        assert photo.annotated_url == PHOTO.annotated_url
        assert (photo.lat, photo.lng, photo.spot_id) == (-16.5, 145.8, 'ribbon-reef')
        assert photo.taken_at == clock()

    def test_reconciling_same_photo_twice_adds_photo_not_sighting(self, engine, sightings):
        detections = [make_detection('Clownfish', 0.9), make_detection('Blue Tang', 0.8)]

        engine.reconcile(detections, DEVICE, PHOTO)
        engine.reconcile(detections, DEVICE, PHOTO)

        owned = sightings.list_sightings(DEVICE)
        assert len(owned) == 2
        assert all(len(sightings.list_photos(s.id)) == 2 for s in owned)

    def test_photo_write_failure_is_collected(self, catalog, clock):
        engine = ReconciliationEngine(catalog, PhotoRejectingStore(clock=clock), clock=clock)

        result = engine.reconcile([make_detection('Clownfish', 0.9)], DEVICE, PHOTO)

        assert result.collection_entries[0].photo_id is None
        assert [(f.stage, f.species) for f in result.failures] == [('photo_write', 'Clownfish')]

    def test_reconcile_without_photo_only_resolves(self, engine, sightings):
        result = engine.reconcile([make_detection('Clownfish', 0.9)], DEVICE)

        assert result.collection_entries[0].photo_id is None
        assert sightings.list_photos(result.collection_entries[0].sighting_id) == []


@pytest.mark.parametrize('confidence, persisted', [(0.7, True), (0.6999, False)])
def test_threshold_is_inclusive(engine, confidence, persisted):
    result = engine.resolve([make_detection('Clownfish', confidence)], DEVICE)
    assert bool(result.collection_entries) is persisted
