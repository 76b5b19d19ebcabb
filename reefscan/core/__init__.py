"""
Core module with shared dependencies and exception handling.

Exceptions are re-exported here. Import FastAPI dependencies from
reefscan.core.dependencies directly; it wires up every service and would make
this package import the clients that themselves import these exceptions.
"""

from reefscan.core.exceptions import (
    AnnotationError,
    CatalogWriteError,
    ContentRefusedError,
    DetectionParseError,
    InputValidationError,
    InvalidImageError,
    ModelUnavailableError,
    ObjectStoreError,
    QuotaExceededError,
    ReefscanError,
    SightingConflictError,
    SightingNotFoundError,
    SightingWriteError,
    StoreError,
)


__all__ = [
    'AnnotationError',
    'CatalogWriteError',
    'ContentRefusedError',
    'DetectionParseError',
    'InputValidationError',
    'InvalidImageError',
    'ModelUnavailableError',
    'ObjectStoreError',
    'QuotaExceededError',
    'ReefscanError',
    'SightingConflictError',
    'SightingNotFoundError',
    'SightingWriteError',
    'StoreError',
]
