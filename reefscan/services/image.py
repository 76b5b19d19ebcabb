"""
Image handling service.

Validates uploads and normalizes them to RGB JPEG before analysis, so the
vision model, the renderer and the object store all see the same bytes.
"""

import io
import logging

from PIL import Image, UnidentifiedImageError

from reefscan.config import get_settings
from reefscan.core.exceptions import InvalidImageError


logger = logging.getLogger(__name__)


class ImageService:
    """
    Upload preprocessing service.

    Handles:
    - Size validation
    - Format normalization to JPEG (PNG, WebP, palette and RGBA inputs)
    - Decompression bomb rejection
    """

    def __init__(self, max_file_size_mb: int | None = None, jpeg_quality: int | None = None):
        settings = get_settings()
        self.max_file_size_mb = max_file_size_mb or settings.max_file_size_mb
        self.jpeg_quality = jpeg_quality or settings.jpeg_quality

    def validate_size(self, image_bytes: bytes, filename: str = 'upload') -> bool:
        """
        Validate image file size.

        Args:
            image_bytes: Image bytes
            filename: Name used in error messages

        Returns:
            True if valid

        Raises:
            InvalidImageError: Empty or larger than the configured maximum
        """
        if not image_bytes:
            raise InvalidImageError(filename, 'empty file')

        size_mb = len(image_bytes) / (1024 * 1024)
        if size_mb > self.max_file_size_mb:
            raise InvalidImageError(
                filename, f'file size {size_mb:.2f}MB exceeds maximum {self.max_file_size_mb}MB'
            )

        return True

    def convert_to_jpeg(self, image_bytes: bytes, filename: str = 'upload') -> bytes:
        """
        Convert image to RGB JPEG.

        Args:
            image_bytes: Original image bytes
            filename: Name used in error messages

        Returns:
            JPEG bytes

        Raises:
            InvalidImageError: Not a decodable image, or too many pixels to decode
        """
        try:
            img = Image.open(io.BytesIO(image_bytes))
            img.load()
        except Image.DecompressionBombError as e:
            logger.warning(f'Rejected oversized image {filename}: {e}')
            raise InvalidImageError(
                filename, 'image dimensions exceed the decompression limit'
            ) from e
        except (UnidentifiedImageError, OSError) as e:
            logger.warning(f'Could not decode {filename}: {e}')
            raise InvalidImageError(filename, 'not a decodable image') from e

        # Convert to RGB if needed
        if img.mode != 'RGB':
            img = img.convert('RGB')

        buffer = io.BytesIO()
        img.save(buffer, format='JPEG', quality=self.jpeg_quality, optimize=True)
        return buffer.getvalue()

    def prepare(self, image_bytes: bytes, filename: str = 'upload') -> bytes:
        """Validate and normalize an upload in one step."""
        self.validate_size(image_bytes, filename)
        return self.convert_to_jpeg(image_bytes, filename)
