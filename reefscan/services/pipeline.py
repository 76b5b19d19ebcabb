"""
Photo analysis pipeline.

Sequences one photo through the stages:

    validate -> normalize to JPEG -> quota unit -> vision model -> parse
             -> store original -> resolve catalog/sightings
             -> store annotated variant -> attach photo records -> result

Single-photo errors propagate to the caller. Batches verify quota capacity for
every photo up front, reject the whole batch if it does not fit, then process
photos one at a time and report per-photo failures in the result.
"""

import logging
import time

from reefscan.clients.vision_model import VisionModel
from reefscan.core.exceptions import InputValidationError, ReefscanError
from reefscan.schemas.analysis import BatchAnalysisResult, BatchSummary, ImageAnalysisResult
from reefscan.services.image import ImageService
from reefscan.services.parser import DetectionParser
from reefscan.services.quota import QuotaGate
from reefscan.services.reconciliation import ReconciliationEngine
from reefscan.services.storage import ANALYSIS_LABEL, PhotoStorageService
from reefscan.utils.clock import Clock, utc_now


logger = logging.getLogger(__name__)


def validate_device_id(device_id: str | None) -> str:
    """Device id is the only required identity field."""
    if device_id is None or not str(device_id).strip():
        raise InputValidationError('device_id', 'required')
    return str(device_id).strip()


def validate_location(lat: float | None, lng: float | None) -> None:
    if lat is not None and not -90.0 <= lat <= 90.0:
        raise InputValidationError('lat', 'must be between -90 and 90')
    if lng is not None and not -180.0 <= lng <= 180.0:
        raise InputValidationError('lng', 'must be between -180 and 180')


class PipelineOrchestrator:
    """
    Runs photos through quota, vision model, parsing, reconciliation and storage.

    All collaborators are injected so tests can substitute fakes.
    """

    def __init__(
        self,
        quota: QuotaGate,
        vision_model: VisionModel,
        engine: ReconciliationEngine,
        storage: PhotoStorageService,
        image_service: ImageService,
        parser: DetectionParser | None = None,
        clock: Clock = utc_now,
    ):
        self.quota = quota
        self.vision_model = vision_model
        self.engine = engine
        self.storage = storage
        self.image_service = image_service
        self.parser = parser or DetectionParser()
        self.clock = clock

    # =========================================================================
    # Single photo
    # =========================================================================
    def analyze_image(
        self,
        image_bytes: bytes,
        filename: str,
        device_id: str,
        spot_id: str | None = None,
        lat: float | None = None,
        lng: float | None = None,
    ) -> ImageAnalysisResult:
        """
        Analyze one photo. Consumes one quota unit at the vision model call.

        Args:
            image_bytes: Uploaded photo bytes (any Pillow-readable format)
            filename: Original filename
            device_id: Owning device
            spot_id: Optional dive spot id
            lat: Optional latitude
            lng: Optional longitude

        Returns:
            ImageAnalysisResult with success=True

        Raises:
            InputValidationError: Missing device id, bad location or unreadable photo
            QuotaExceededError: No units left
            ModelUnavailableError: Vision model failure
            DetectionParseError: No JSON in the model response
            ObjectStoreError: The original photo could not be stored
        """
        device_id = validate_device_id(device_id)
        validate_location(lat, lng)
        return self._analyze(image_bytes, filename, device_id, spot_id, lat, lng)

    def _analyze(
        self,
        image_bytes: bytes,
        filename: str,
        device_id: str,
        spot_id: str | None,
        lat: float | None,
        lng: float | None,
    ) -> ImageAnalysisResult:
        jpeg = self.image_service.prepare(image_bytes, filename)

        self.quota.acquire(device_id)
        raw_text = self.vision_model.analyze(jpeg)
        parsed = self.parser.parse(raw_text)

        # Nothing is written to the catalog or sightings unless the original is stored
        stored = self.storage.store_photo(jpeg, filename, device_id, ANALYSIS_LABEL)
        reconciled = self.engine.resolve(parsed.detections, device_id)
        self.storage.store_annotated(stored, jpeg, filename, reconciled.detections)
        self.engine.attach_photos(
            reconciled, stored, lat=lat, lng=lng, spot_id=spot_id, taken_at=self.clock()
        )

        logger.info(
            f'Analyzed {filename} for {device_id}: {len(reconciled.detections)} detections, '
            f'{len(reconciled.collection_entries)} sightings, {len(reconciled.failures)} failures'
        )
        return ImageAnalysisResult(
            filename=filename,
            success=True,
            detections=reconciled.detections,
            unknown_species=parsed.unknown_species,
            image_analysis=parsed.image_analysis,
            annotation_metadata=parsed.annotation_metadata,
            collection_entries=reconciled.collection_entries,
            failures=reconciled.failures,
            original_photo_url=stored.url,
            annotated_photo_url=stored.annotated_url,
        )

    # =========================================================================
    # Batch
    # =========================================================================
    def analyze_batch(
        self,
        images: list[tuple[bytes, str]],
        device_id: str,
        spot_id: str | None = None,
        lat: float | None = None,
        lng: float | None = None,
    ) -> BatchAnalysisResult:
        """
        Analyze several photos sequentially.

        Args:
            images: List of (image_bytes, filename)
            device_id: Owning device
            spot_id: Optional dive spot id
            lat: Optional latitude
            lng: Optional longitude

        Returns:
            BatchAnalysisResult with one result per photo (input order) and a summary

        Raises:
            InputValidationError: Missing device id, no photos or bad location
            QuotaExceededError: Fewer units left than photos; nothing was processed
        """
        device_id = validate_device_id(device_id)
        validate_location(lat, lng)
        if not images:
            raise InputValidationError('photos', 'at least one photo is required')

        self.quota.ensure_capacity(device_id, len(images))

        start_time = time.perf_counter()
        results: list[ImageAnalysisResult] = []

        for image_bytes, filename in images:
            try:
                result = self._analyze(image_bytes, filename, device_id, spot_id, lat, lng)
            except ReefscanError as e:
                logger.warning(f'Batch image {filename} failed: {e.message}')
                result = ImageAnalysisResult(
                    filename=filename, success=False, error=e.message, error_code=e.code
                )
            results.append(result)

        processing_time_ms = (time.perf_counter() - start_time) * 1000
        return BatchAnalysisResult(
            results=results, summary=summarize(results, processing_time_ms)
        )


def summarize(results: list[ImageAnalysisResult], processing_time_ms: float) -> BatchSummary:
    """
    Batch statistics.

    average_confidence is the mean over successful photos of each photo's mean
    detection confidence (0 for a photo without detections).
    """
    successful = [r for r in results if r.success]

    per_image_means = []
    for result in successful:
        confidences = [d.confidence for d in result.detections]
        per_image_means.append(sum(confidences) / len(confidences) if confidences else 0.0)

    return BatchSummary(
        total_images=len(results),
        successful_analyses=len(successful),
        failed_analyses=len(results) - len(successful),
        total_detections=sum(len(r.detections) for r in successful),
        average_confidence=sum(per_image_means) / len(per_image_means) if per_image_means else 0.0,
        processing_time_ms=round(processing_time_ms, 2),
    )
