"""
Species catalog store.

The catalog is an external collaborator; CatalogStore is the contract the
reconciliation engine depends on. InMemoryCatalogStore is the shipped
implementation, optionally seeded from a JSON file at startup.

Seed file format (list of species objects):
    [
        {"id": "clownfish", "name": "Clownfish", "scientific_name": "Amphiprion ocellaris",
         "category": "Fishes", "rarity": 2, "danger": "Low", "venomous": false}
    ]
"""

import logging
import threading
import uuid
from abc import ABC, abstractmethod
from pathlib import Path

import orjson

from reefscan.core.exceptions import CatalogWriteError
from reefscan.schemas.sighting import NewSpeciesRecord, SpeciesRecord


logger = logging.getLogger(__name__)


class CatalogStore(ABC):
    """Read-mostly access to curated species records."""

    @abstractmethod
    def find_by_name(self, name: str) -> SpeciesRecord | None:
        """Case-insensitive exact match on common or scientific name."""

    @abstractmethod
    def create(self, fields: NewSpeciesRecord) -> SpeciesRecord:
        """Create a species record. Raises CatalogWriteError on failure."""

    @abstractmethod
    def get_by_id(self, species_id: str) -> SpeciesRecord | None:
        """Fetch a species record by id."""


class InMemoryCatalogStore(CatalogStore):
    """
    Thread-safe in-memory catalog.

    Names are indexed case-insensitively; a common name takes precedence over
    a scientific name when both would match different records.
    """

    def __init__(self, records: list[SpeciesRecord] | None = None):
        self._records: dict[str, SpeciesRecord] = {}
        self._lock = threading.Lock()
        for record in records or []:
            self._records[record.id] = record

    @classmethod
    def from_json_file(cls, path: str | Path) -> 'InMemoryCatalogStore':
        """
        Load a catalog from a JSON seed file.

        Args:
            path: Path to a JSON list of species objects

        Returns:
            Seeded catalog store
        """
        raw = orjson.loads(Path(path).read_bytes())
        records = [SpeciesRecord(**item) for item in raw]
        logger.info(f'Loaded {len(records)} catalog species from {path}')
        return cls(records)

    def find_by_name(self, name: str) -> SpeciesRecord | None:
        key = name.strip().casefold()
        if not key:
            return None

        with self._lock:
            records = list(self._records.values())

        for record in records:
            if record.name.casefold() == key:
                return record
        for record in records:
            if record.scientific_name and record.scientific_name.casefold() == key:
                return record
        return None

    def create(self, fields: NewSpeciesRecord) -> SpeciesRecord:
        with self._lock:
            key = fields.name.casefold()
            if any(record.name.casefold() == key for record in self._records.values()):
                raise CatalogWriteError(fields.name, 'name already exists')

            record = SpeciesRecord(id=uuid.uuid4().hex, **fields.model_dump())
            self._records[record.id] = record
            return record

    def get_by_id(self, species_id: str) -> SpeciesRecord | None:
        with self._lock:
            return self._records.get(species_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
