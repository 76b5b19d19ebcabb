"""
Client modules for external collaborators.

Each collaborator has an abstract contract and a shipped implementation:
- CatalogStore / InMemoryCatalogStore: curated species records
- SightingStore / InMemorySightingStore: per-device sighting history
- ObjectStore / LocalObjectStore: photo bytes, returns public URLs
- VisionModel / OpenAIVisionModel: image -> raw text with embedded JSON
- PhotoFetcher / HttpPhotoFetcher: photo URL -> image bytes
"""

from reefscan.clients.catalog_store import CatalogStore, InMemoryCatalogStore
from reefscan.clients.object_store import LocalObjectStore, ObjectStore
from reefscan.clients.photo_fetcher import HttpPhotoFetcher, PhotoFetcher
from reefscan.clients.sighting_store import InMemorySightingStore, SightingStore
from reefscan.clients.vision_model import ANALYSIS_PROMPT, OpenAIVisionModel, VisionModel


__all__ = [
    'ANALYSIS_PROMPT',
    'CatalogStore',
    'HttpPhotoFetcher',
    'InMemoryCatalogStore',
    'InMemorySightingStore',
    'LocalObjectStore',
    'ObjectStore',
    'OpenAIVisionModel',
    'PhotoFetcher',
    'SightingStore',
    'VisionModel',
]
