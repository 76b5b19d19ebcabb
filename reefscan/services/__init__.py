"""
Service layer containing business logic.

Separates business logic from API routes for cleaner architecture.
"""

from reefscan.services.annotation import AnnotationRenderer
from reefscan.services.collection import CollectionService
from reefscan.services.image import ImageService
from reefscan.services.parser import DetectionParser
from reefscan.services.pipeline import PipelineOrchestrator
from reefscan.services.quota import InMemoryQuotaStore, QuotaGate, QuotaStore
from reefscan.services.reconciliation import ReconciliationEngine
from reefscan.services.storage import PhotoStorageService


__all__ = [
    'AnnotationRenderer',
    'CollectionService',
    'DetectionParser',
    'ImageService',
    'InMemoryQuotaStore',
    'PhotoStorageService',
    'PipelineOrchestrator',
    'QuotaGate',
    'QuotaStore',
    'ReconciliationEngine',
]
