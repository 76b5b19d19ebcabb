"""
Reefscan - marine life photo analysis service.

A vision model proposes species detections for a photo; the service normalises
them, reconciles them against the species catalog and the device's sighting
history, renders an annotated overlay and stores both photos.
"""

__version__ = '1.0.0'
