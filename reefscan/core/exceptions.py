"""
Custom exceptions for the marine life analysis service.

Every error carries an HTTP status code and a machine-readable code so the
application-level handler can render it without per-route mapping.
"""

from datetime import datetime


class ReefscanError(Exception):
    """Base exception for analysis pipeline errors."""

    status_code = 500
    code = 'INTERNAL_ERROR'
    retryable = False

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Response body for the HTTP layer."""
        return {'detail': self.message, 'code': self.code}


# =============================================================================
# Input
# =============================================================================
class InputValidationError(ReefscanError):
    """Raised when a required input field is missing or malformed."""

    status_code = 400
    code = 'VALIDATION_ERROR'

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid '{field}': {reason}")


class InvalidImageError(InputValidationError):
    """Raised when an uploaded photo cannot be decoded or is too large."""

    def __init__(self, filename: str, reason: str):
        self.filename = filename
        super().__init__('photo', reason)
        self.message = f"Invalid image '{filename}': {reason}"
        self.args = (self.message,)


# =============================================================================
# Quota
# =============================================================================
class QuotaExceededError(ReefscanError):
    """Raised when a device has no vision model calls left in its window."""

    status_code = 429
    code = 'RATE_LIMIT_EXCEEDED'

    def __init__(
        self, device_id: str, used: int, limit: int, reset_at: datetime, requested: int = 1
    ):
        self.device_id = device_id
        self.used = used
        self.limit = limit
        self.reset_at = reset_at
        self.requested = requested
        remaining = max(limit - used, 0)
        if requested > 1:
            message = (
                f'Rate limit exceeded: {requested} analyses requested but only {remaining} of '
                f'{limit} remaining ({used} used)'
            )
        else:
            message = f'Rate limit exceeded: {used} of {limit} analyses used'
        super().__init__(message)

    def to_dict(self) -> dict:
        body = super().to_dict()
        body.update(
            {
                'used': self.used,
                'limit': self.limit,
                'requested': self.requested,
                'reset_at': self.reset_at.isoformat(),
            }
        )
        return body


# =============================================================================
# Vision Model
# =============================================================================
class DetectionParseError(ReefscanError):
    """Raised when the vision model response holds no recoverable JSON."""

    status_code = 502
    code = 'PARSE_ERROR'

    def __init__(self, reason: str, raw_text: str | None = None):
        self.reason = reason
        self.raw_text = raw_text
        super().__init__(f'Could not parse vision model response: {reason}')


class ContentRefusedError(DetectionParseError):
    """Raised when the vision model declined to analyze the photo."""

    code = 'CONTENT_REFUSED'

    def __init__(self, raw_text: str):
        super().__init__('model declined to analyze the image', raw_text)


class ModelUnavailableError(ReefscanError):
    """Raised when the vision model cannot be reached. Safe for the caller to retry."""

    status_code = 503
    code = 'AI_SERVICE_ERROR'
    retryable = True

    def __init__(self, model_name: str, reason: str):
        self.model_name = model_name
        self.reason = reason
        super().__init__(f"Vision model '{model_name}' unavailable: {reason}")

    def to_dict(self) -> dict:
        body = super().to_dict()
        body['retryable'] = True
        return body


# =============================================================================
# Rendering
# =============================================================================
class AnnotationError(ReefscanError):
    """Raised when the annotated overlay cannot be rendered."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f'Annotation failed: {reason}')


# =============================================================================
# Collaborator Stores
# =============================================================================
class StoreError(ReefscanError):
    """Base exception for catalog, sighting and object store failures."""


class CatalogWriteError(StoreError):
    """Raised when a species record cannot be created."""

    def __init__(self, species: str, reason: str):
        self.species = species
        self.reason = reason
        super().__init__(f"Could not create catalog entry '{species}': {reason}")


class SightingWriteError(StoreError):
    """Raised when a sighting or sighting photo cannot be written."""

    def __init__(self, reason: str, sighting_id: str | None = None):
        self.reason = reason
        self.sighting_id = sighting_id
        super().__init__(f'Sighting write failed: {reason}')


class SightingConflictError(SightingWriteError):
    """Raised when a device already has an open sighting for the species."""

    status_code = 409
    code = 'CONFLICT'

    def __init__(self, device_id: str, species_id: str):
        self.device_id = device_id
        self.species_id = species_id
        super().__init__(f"device '{device_id}' already has an open sighting of '{species_id}'")


class SightingNotFoundError(StoreError):
    """Raised when a sighting does not exist or belongs to another device."""

    status_code = 404
    code = 'NOT_FOUND'

    def __init__(self, sighting_id: str, device_id: str):
        self.sighting_id = sighting_id
        self.device_id = device_id
        super().__init__(f"Sighting '{sighting_id}' not found for device '{device_id}'")


class ObjectStoreError(StoreError):
    """Raised when a photo cannot be uploaded to the object store."""

    status_code = 502
    code = 'STORAGE_ERROR'

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Upload of '{path}' failed: {reason}")
