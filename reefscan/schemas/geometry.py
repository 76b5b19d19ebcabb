"""
Normalized bounding box model.

Coordinates are fractions of image width/height with the origin at the
top-left corner, so the same box can be drawn onto a resized or re-encoded
copy of the photo.
"""

from pydantic import BaseModel, Field


class BoundingBox(BaseModel):
    """
    Axis-aligned box as fractions of image width/height.

    Construct through reefscan.utils.boxes.normalize_bounding_box() when the
    input is untrusted; the constructor itself only validates ranges.
    """

    x: float = Field(..., ge=0.0, le=1.0, description='Left edge (normalized 0-1)')
    y: float = Field(..., ge=0.0, le=1.0, description='Top edge (normalized 0-1)')
    width: float = Field(..., gt=0.0, le=1.0, description='Box width (normalized 0-1)')
    height: float = Field(..., gt=0.0, le=1.0, description='Box height (normalized 0-1)')

    class Config:
        frozen = True

    def to_pixels(self, image_width: int, image_height: int) -> tuple[int, int, int, int]:
        """
        Convert to pixel corners for an image of the given size.

        Args:
            image_width: Image width in pixels
            image_height: Image height in pixels

        Returns:
            Tuple of (x1, y1, x2, y2) clipped to the image
        """
        x1 = int(round(self.x * image_width))
        y1 = int(round(self.y * image_height))
        x2 = int(round((self.x + self.width) * image_width))
        y2 = int(round((self.y + self.height) * image_height))
        return (
            min(max(x1, 0), image_width - 1),
            min(max(y1, 0), image_height - 1),
            min(max(x2, 0), image_width - 1),
            min(max(y2, 0), image_height - 1),
        )
