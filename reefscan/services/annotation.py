"""
Annotated overlay rendering.

Draws each detection instance as a rectangle with a filled label reading
"<species> (<confidence>%)" above its top-left corner. Boxes are stored as
fractions and converted to pixels against the image actually being drawn,
so the same detections work on a resized or re-encoded copy of the photo.
"""

import logging

import cv2
import numpy as np

from reefscan.core.exceptions import AnnotationError
from reefscan.schemas.detection import Detection


logger = logging.getLogger(__name__)

# Stroke colors cycled by detection position
PALETTE_HEX = ('#00FF00', '#FF0000', '#0000FF', '#FFFF00', '#FF00FF', '#00FFFF')

LABEL_PADDING = 5
LABEL_GAP = 5
LABEL_TEXT_COLOR = (0, 0, 0)


def hex_to_bgr(color: str) -> tuple[int, int, int]:
    """'#RRGGBB' -> OpenCV BGR tuple."""
    value = color.lstrip('#')
    red, green, blue = (int(value[i : i + 2], 16) for i in (0, 2, 4))
    return (blue, green, red)


PALETTE = tuple(hex_to_bgr(c) for c in PALETTE_HEX)


def format_label(species: str, confidence: float) -> str:
    """Label text with the confidence as a whole percentage (half rounds up)."""
    return f'{species} ({int(confidence * 100 + 0.5)}%)'


class AnnotationRenderer:
    """
    Renders detections onto a JPEG.

    Args:
        jpeg_quality: Output JPEG quality (1-100)
        line_width: Box stroke width in pixels
        font_scale: OpenCV font scale for labels
    """

    def __init__(self, jpeg_quality: int = 90, line_width: int = 3, font_scale: float = 0.5):
        self.jpeg_quality = jpeg_quality
        self.line_width = line_width
        self.font = cv2.FONT_HERSHEY_SIMPLEX
        self.font_scale = font_scale
        self.font_thickness = 1

    def render(self, image_bytes: bytes, detections: list[Detection]) -> bytes:
        """
        Draw detections onto an image.

        Args:
            image_bytes: Encoded image (JPEG expected)
            detections: Detections with normalized boxes; color follows list position

        Returns:
            New JPEG bytes. With no detections this is a clean re-encode.

        Raises:
            AnnotationError: The image cannot be decoded or encoded
        """
        img = self.decode(image_bytes)
        height, width = img.shape[:2]

        try:
            for index, detection in enumerate(detections):
                color = PALETTE[index % len(PALETTE)]
                for instance in detection.instances:
                    x1, y1, x2, y2 = instance.bounding_box.to_pixels(width, height)
                    cv2.rectangle(img, (x1, y1), (x2, y2), color, self.line_width)
                    label = format_label(detection.species, instance.confidence)
                    self._draw_label(img, label, x1, y1, color)

            ok, encoded = cv2.imencode(
                '.jpg', img, [int(cv2.IMWRITE_JPEG_QUALITY), int(self.jpeg_quality)]
            )
        except cv2.error as e:
            raise AnnotationError(str(e)) from e

        if not ok:
            raise AnnotationError('JPEG encoding failed')

        logger.debug(f'Rendered {len(detections)} detections on {width}x{height} image')
        return encoded.tobytes()

    def decode(self, image_bytes: bytes) -> np.ndarray:
        """Decode to a BGR array or raise AnnotationError."""
        if not image_bytes:
            raise AnnotationError('empty image buffer')

        img = cv2.imdecode(np.frombuffer(image_bytes, dtype=np.uint8), cv2.IMREAD_COLOR)
        if img is None:
            raise AnnotationError('image buffer could not be decoded')
        return img

    def _draw_label(
        self, img: np.ndarray, label: str, x: int, y: int, color: tuple[int, int, int]
    ) -> None:
        """Filled label box above (x, y), kept fully on canvas."""
        height, width = img.shape[:2]
        (text_w, text_h), baseline = cv2.getTextSize(
            label, self.font, self.font_scale, self.font_thickness
        )
        label_w = text_w + 2 * LABEL_PADDING
        label_h = text_h + baseline + LABEL_PADDING

        # Label bottom edge never above label_h, so the label never leaves the top
        bottom = max(y - LABEL_GAP, label_h)
        top = bottom - label_h
        left = max(min(x, width - label_w), 0)

        cv2.rectangle(img, (left, top), (left + label_w, bottom), color, cv2.FILLED)
        cv2.putText(
            img,
            label,
            (left + LABEL_PADDING, bottom - baseline),
            self.font,
            self.font_scale,
            LABEL_TEXT_COLOR,
            self.font_thickness,
            cv2.LINE_AA,
        )
