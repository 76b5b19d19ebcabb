"""
Bounding box normalization.

Vision model geometry is untrusted: fields may be missing, strings, negative,
NaN, pixel-scale or overflow the frame. normalize_bounding_box() is total and
always returns a well-formed BoundingBox in the unit square.

Usage:
    from reefscan.utils.boxes import normalize_bounding_box

    box = normalize_bounding_box({'x': 0.2, 'y': '0.3', 'width': 1.4})
    # BoundingBox(x=0.2, y=0.3, width=0.8, height=0.7)
"""

import logging
import math
from collections.abc import Mapping, Sequence
from typing import Any

from reefscan.schemas.geometry import BoundingBox


logger = logging.getLogger(__name__)

# Smallest width/height a box may have (one ten-thousandth of the frame)
MIN_EXTENT = 1e-4

FULL_FRAME = BoundingBox(x=0.0, y=0.0, width=1.0, height=1.0)

_FIELDS = ('x', 'y', 'width', 'height')


def _to_float(value: Any) -> float | None:
    """Parse a finite float, or None when the value is unusable."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _extract(raw: Any) -> dict[str, Any] | None:
    """Pull the four raw fields out of a box-like value, or None if it is not box-like."""
    if isinstance(raw, BoundingBox):
        return raw.model_dump()
    if isinstance(raw, Mapping):
        return {name: raw.get(name) for name in _FIELDS}
    if isinstance(raw, Sequence) and not isinstance(raw, str | bytes) and len(raw) == 4:
        return dict(zip(_FIELDS, raw, strict=True))
    return None


def _clamp(value: float, low: float, high: float) -> float:
    return min(max(value, low), high)


def normalize_bounding_box(raw: Any) -> BoundingBox:
    """
    Coerce an arbitrary box-like value into a unit-square BoundingBox.

    Accepts a mapping with x/y/width/height keys, a 4-item sequence in that
    order, or an existing BoundingBox. Anything else (including None) yields
    the full frame (0, 0, 1, 1).

    Rules:
        - Missing or unparseable x/y default to 0
        - Missing or unparseable width/height extend to the frame edge
        - x, y are clamped to [0, 1 - MIN_EXTENT]
        - width, height are clamped to [MIN_EXTENT, 1 - x] / [MIN_EXTENT, 1 - y]

    Never raises.

    Args:
        raw: Box-like value from the vision model

    Returns:
        BoundingBox with all fields in [0, 1] and positive extent
    """
    fields = _extract(raw)
    if fields is None:
        if raw is not None:
            logger.debug(f'Unrecognized bounding box {raw!r}, using full frame')
        return FULL_FRAME

    x = _to_float(fields['x'])
    y = _to_float(fields['y'])
    width = _to_float(fields['width'])
    height = _to_float(fields['height'])

    x = _clamp(x if x is not None else 0.0, 0.0, 1.0 - MIN_EXTENT)
    y = _clamp(y if y is not None else 0.0, 0.0, 1.0 - MIN_EXTENT)
    width = _clamp(width if width is not None else 1.0, MIN_EXTENT, 1.0 - x)
    height = _clamp(height if height is not None else 1.0, MIN_EXTENT, 1.0 - y)

    box = BoundingBox(x=x, y=y, width=width, height=height)
    if any(box_value != _to_float(fields[name]) for name, box_value in box.model_dump().items()):
        logger.debug(f'Adjusted bounding box {fields} -> {box.model_dump()}')
    return box
