"""
Photo storage service.

Uploads the normalized original photo and, when there is something to draw,
an annotated variant next to it:

    collections/<device>/<label>/<label>_<epoch-ms>_<random>.jpg
    collections/<device>/<label>/<label>_<epoch-ms>_<random>_annotated.jpg

The annotated variant is best-effort. If rendering or its upload fails the
original is kept and annotated_url is left unset.
"""

import logging
import re
import secrets

from reefscan.clients.object_store import ObjectStore
from reefscan.core.exceptions import AnnotationError, ObjectStoreError
from reefscan.schemas.analysis import StoredPhoto
from reefscan.schemas.detection import Detection
from reefscan.services.annotation import AnnotationRenderer
from reefscan.utils.clock import Clock, utc_now


logger = logging.getLogger(__name__)

ANALYSIS_LABEL = 'ai_analysis'
JPEG_CONTENT_TYPE = 'image/jpeg'

_UNSAFE_PATH_CHARS = re.compile(r'[^A-Za-z0-9_-]+')


def path_segment(value: str, fallback: str = 'unknown') -> str:
    """Make a value safe to use as one object store path segment."""
    return _UNSAFE_PATH_CHARS.sub('_', value.strip()).strip('_') or fallback


def annotated_path_for(path: str) -> str:
    """Replace the extension of path with _annotated.jpg."""
    stem, dot, _ = path.rpartition('.')
    return f'{stem if dot else path}_annotated.jpg'


class PhotoStorageService:
    """
    Stores original and annotated photos in the object store.

    Args:
        object_store: Destination store
        renderer: Renderer for the annotated variant
        clock: Source of the filename timestamp
    """

    def __init__(
        self,
        object_store: ObjectStore,
        renderer: AnnotationRenderer,
        clock: Clock = utc_now,
    ):
        self.object_store = object_store
        self.renderer = renderer
        self.clock = clock

    def build_path(self, device_id: str, label: str) -> str:
        """Object path for a new photo under the device's collection."""
        label = path_segment(label, 'photo')
        epoch_ms = int(self.clock().timestamp() * 1000)
        filename = f'{label}_{epoch_ms}_{secrets.token_hex(4)}.jpg'
        return f'collections/{path_segment(device_id)}/{label}/{filename}'

    def store_photo(
        self,
        image: bytes,
        filename: str,
        device_id: str,
        label: str = ANALYSIS_LABEL,
        detections: list[Detection] | None = None,
    ) -> StoredPhoto:
        """
        Upload a JPEG and, with detections, its annotated variant.

        Args:
            image: Normalized JPEG bytes
            filename: Original upload name (for logs)
            device_id: Owning device
            label: Folder/prefix label, e.g. a species name
            detections: Detections to draw; None or empty skips annotation

        Returns:
            StoredPhoto with URLs and paths

        Raises:
            ObjectStoreError: The original could not be uploaded
        """
        path = self.build_path(device_id, label)
        url = self.object_store.upload(image, path, JPEG_CONTENT_TYPE)
        stored = StoredPhoto(url=url, storage_path=path)

        if detections:
            self.store_annotated(stored, image, filename, detections)
        return stored

    def store_annotated(
        self, stored: StoredPhoto, image: bytes, filename: str, detections: list[Detection]
    ) -> StoredPhoto:
        """
        Render detections onto an already stored original and upload the variant.

        Best-effort: on failure annotated_url stays unset and the error is logged.

        Args:
            stored: Result of the original upload; updated in place
            image: The same JPEG bytes that were uploaded
            filename: Original upload name (for logs)
            detections: Detections to draw; empty skips annotation

        Returns:
            The same StoredPhoto
        """
        if not detections:
            return stored

        annotated_path = annotated_path_for(stored.storage_path)
        try:
            annotated = self.renderer.render(image, detections)
            stored.annotated_url = self.object_store.upload(
                annotated, annotated_path, JPEG_CONTENT_TYPE
            )
            stored.annotated_path = annotated_path
        except (AnnotationError, ObjectStoreError) as e:
            logger.warning(f'Annotated variant skipped for {filename}: {e}')

        return stored

    def delete_photo(self, storage_path: str) -> None:
        """Remove a photo and its annotated variant. Failures are logged, not raised."""
        for path in (storage_path, annotated_path_for(storage_path)):
            try:
                self.object_store.delete(path)
            except ObjectStoreError as e:
                logger.warning(f'Could not delete {path}: {e}')
