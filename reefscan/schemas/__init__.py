"""
Pydantic schemas for request/response validation.
"""

from reefscan.schemas.analysis import (
    BatchAnalysisResult,
    BatchSummary,
    CollectionEntry,
    DetectionFailure,
    ImageAnalysisResult,
    PhotoUrlRequest,
    QuotaStatus,
    ReconciliationResult,
    SightingDetail,
    StoredPhoto,
)
from reefscan.schemas.common import ErrorResponse, HealthResponse, ServiceInfoResponse
from reefscan.schemas.detection import (
    AnnotationMetadata,
    Detection,
    DetectionInstance,
    ImageAnalysis,
    ParsedAnalysis,
    UnknownSpecies,
)
from reefscan.schemas.geometry import BoundingBox
from reefscan.schemas.sighting import (
    NewSightingPhoto,
    NewSpeciesRecord,
    Sighting,
    SightingPhoto,
    SightingStatus,
    SpeciesRecord,
)


__all__ = [
    'AnnotationMetadata',
    'BatchAnalysisResult',
    'BatchSummary',
    'BoundingBox',
    'CollectionEntry',
    'Detection',
    'DetectionFailure',
    'DetectionInstance',
    'ErrorResponse',
    'HealthResponse',
    'ImageAnalysis',
    'ImageAnalysisResult',
    'NewSightingPhoto',
    'NewSpeciesRecord',
    'ParsedAnalysis',
    'PhotoUrlRequest',
    'QuotaStatus',
    'ReconciliationResult',
    'ServiceInfoResponse',
    'Sighting',
    'SightingDetail',
    'SightingPhoto',
    'SightingStatus',
    'SpeciesRecord',
    'StoredPhoto',
    'UnknownSpecies',
]
