"""
Collections Router

A device's sighting history: list, inspect, add manually, append photos and
delete. All routes are scoped by the device id in the path.
"""

import logging

import orjson
from fastapi import APIRouter, File, Form, UploadFile

from reefscan.core.dependencies import CollectionServiceDep
from reefscan.core.exceptions import InputValidationError
from reefscan.schemas.analysis import SightingDetail
from reefscan.schemas.common import ErrorResponse


logger = logging.getLogger(__name__)

router = APIRouter(
    prefix='/collections',
    tags=['Collections'],
    responses={400: {'model': ErrorResponse}, 404: {'model': ErrorResponse}},
)


def parse_bounding_box(raw: str | None) -> dict | None:
    """Decode the optional bounding_box form field (a JSON object)."""
    if not raw:
        return None
    try:
        value = orjson.loads(raw)
    except orjson.JSONDecodeError as e:
        raise InputValidationError('bounding_box', 'must be a JSON object') from e
    if not isinstance(value, dict):
        raise InputValidationError('bounding_box', 'must be a JSON object')
    return value


def read_photo(photo: UploadFile | None) -> tuple[bytes, str]:
    if photo is None:
        raise InputValidationError('photo', 'required')
    return photo.file.read(), photo.filename or 'uploaded_image'


@router.get('/{device_id}', response_model=list[SightingDetail])
def list_sightings(device_id: str, collections: CollectionServiceDep):
    """All sightings of a device, most recently seen first."""
    return collections.list_sightings(device_id)


@router.post('/{device_id}', response_model=SightingDetail, status_code=201)
def add_sighting(
    device_id: str,
    collections: CollectionServiceDep,
    photo: UploadFile | None = File(None),
    notes: str | None = Form(None),
    bounding_box: str | None = Form(None),
    spot_id: str | None = Form(None),
    lat: float | None = Form(None),
    lng: float | None = Form(None),
):
    """
    Add a sighting by hand.

    The sighting starts as 'pending' with no species. bounding_box is an
    optional JSON object with x, y, width, height in [0, 1].
    """
    image_data, filename = read_photo(photo)
    return collections.add_manual_sighting(
        device_id,
        image_data,
        filename,
        notes=notes,
        bounding_box=parse_bounding_box(bounding_box),
        spot_id=spot_id,
        lat=lat,
        lng=lng,
    )


@router.get('/{device_id}/{sighting_id}', response_model=SightingDetail)
def get_sighting(device_id: str, sighting_id: str, collections: CollectionServiceDep):
    """One sighting with its species and photos."""
    return collections.get_sighting(device_id, sighting_id)


@router.post('/{device_id}/{sighting_id}', response_model=SightingDetail, status_code=201)
def add_photo(
    device_id: str,
    sighting_id: str,
    collections: CollectionServiceDep,
    photo: UploadFile | None = File(None),
    bounding_box: str | None = Form(None),
    spot_id: str | None = Form(None),
    lat: float | None = Form(None),
    lng: float | None = Form(None),
):
    """Append a photo to a sighting and advance its last-seen time."""
    image_data, filename = read_photo(photo)
    return collections.add_photo(
        device_id,
        sighting_id,
        image_data,
        filename,
        bounding_box=parse_bounding_box(bounding_box),
        spot_id=spot_id,
        lat=lat,
        lng=lng,
    )


@router.delete('/{device_id}/{sighting_id}')
def delete_sighting(device_id: str, sighting_id: str, collections: CollectionServiceDep):
    """Delete a sighting and its photos."""
    collections.delete_sighting(device_id, sighting_id)
    logger.info(f'Sighting {sighting_id} deleted by {device_id}')
    return {'deleted': True, 'sighting_id': sighting_id}
