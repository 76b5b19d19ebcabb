"""
Small pure helpers shared by services.
"""

from reefscan.utils.boxes import FULL_FRAME, MIN_EXTENT, normalize_bounding_box
from reefscan.utils.clock import Clock, utc_now


__all__ = [
    'FULL_FRAME',
    'MIN_EXTENT',
    'Clock',
    'normalize_bounding_box',
    'utc_now',
]
