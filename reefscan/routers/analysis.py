"""
Photo Analysis Router

Runs uploaded photos through the analysis pipeline and exposes the per-device
quota. Pipeline errors (ReefscanError) are rendered by the application-level
exception handler with their own status codes.
"""

import logging

from fastapi import APIRouter, File, Form, HTTPException, Query, UploadFile

from reefscan.core.dependencies import PhotoFetcherDep, PipelineDep, QuotaGateDep
from reefscan.core.exceptions import InputValidationError, ReefscanError
from reefscan.schemas.analysis import (
    BatchAnalysisResult,
    ImageAnalysisResult,
    PhotoUrlRequest,
    QuotaStatus,
)
from reefscan.schemas.common import ErrorResponse
from reefscan.services.pipeline import validate_device_id


logger = logging.getLogger(__name__)

router = APIRouter(
    prefix='/intelligence',
    tags=['Photo Analysis'],
    responses={
        400: {'model': ErrorResponse},
        429: {'model': ErrorResponse},
        502: {'model': ErrorResponse},
        503: {'model': ErrorResponse},
    },
)


@router.post('/analyze-photo', response_model=ImageAnalysisResult)
def analyze_photo(
    pipeline: PipelineDep,
    device_id: str | None = Form(None),
    photo: UploadFile | None = File(None),
    spot_id: str | None = Form(None),
    lat: float | None = Form(None),
    lng: float | None = Form(None),
):
    """
    Analyze one photo.

    Consumes one quota unit when the vision model is called. The photo and,
    if anything was detected, an annotated copy are stored; high-confidence
    detections are merged into the device's collection.

    Args:
        device_id: Device identifier (required)
        photo: Image file (JPEG/PNG/WebP)
        spot_id: Optional dive spot id
        lat: Optional latitude
        lng: Optional longitude

    Returns:
        ImageAnalysisResult with detections, collection entries and photo URLs
    """
    if photo is None:
        raise InputValidationError('photo', 'required')

    filename = photo.filename or 'uploaded_image'

    try:
        image_data = photo.file.read()
        return pipeline.analyze_image(
            image_data, filename, device_id, spot_id=spot_id, lat=lat, lng=lng
        )

    except ReefscanError:
        raise

    except Exception as e:
        logger.error(f'Analysis error for {filename}: {e}')
        raise HTTPException(status_code=500, detail=f'Analysis failed: {e!s}') from e


@router.post('/analyze-photo-url', response_model=ImageAnalysisResult)
def analyze_photo_url(request: PhotoUrlRequest, pipeline: PipelineDep, fetcher: PhotoFetcherDep):
    """
    Analyze a photo hosted at a URL.

    Same pipeline and quota rules as /analyze-photo; the photo is downloaded
    first and a failed download is reported as a 400.

    Args:
        request: device_id and photo_url (required), optional spot_id, lat, lng

    Returns:
        ImageAnalysisResult with detections, collection entries and photo URLs
    """
    device_id = validate_device_id(request.device_id)
    if not request.photo_url or not request.photo_url.strip():
        raise InputValidationError('photo_url', 'required')

    try:
        image_data, filename = fetcher.fetch(request.photo_url.strip())
        return pipeline.analyze_image(
            image_data,
            filename,
            device_id,
            spot_id=request.spot_id,
            lat=request.lat,
            lng=request.lng,
        )

    except ReefscanError:
        raise

    except Exception as e:
        logger.error(f'Analysis error for {request.photo_url}: {e}')
        raise HTTPException(status_code=500, detail=f'Analysis failed: {e!s}') from e


@router.post('/analyze-photos', response_model=BatchAnalysisResult)
def analyze_photos(
    pipeline: PipelineDep,
    device_id: str | None = Form(None),
    photos: list[UploadFile] | None = File(None),
    spot_id: str | None = Form(None),
    lat: float | None = Form(None),
    lng: float | None = Form(None),
):
    """
    Analyze several photos in one request.

    Quota for every photo is verified first; if it does not fit the whole batch
    is rejected with 429 and nothing is processed. Photos are then analyzed in
    order and per-photo failures are reported in the results.

    Args:
        device_id: Device identifier (required)
        photos: Image files
        spot_id: Optional dive spot id
        lat: Optional latitude
        lng: Optional longitude

    Returns:
        BatchAnalysisResult with per-photo results and a summary
    """
    try:
        images_data = []
        for photo in photos or []:
            filename = photo.filename or f'image_{len(images_data)}'
            images_data.append((photo.file.read(), filename))

        return pipeline.analyze_batch(images_data, device_id, spot_id=spot_id, lat=lat, lng=lng)

    except ReefscanError:
        raise

    except Exception as e:
        logger.error(f'Batch analysis error: {e}')
        raise HTTPException(status_code=500, detail=f'Batch analysis failed: {e!s}') from e


@router.get('/rate-limit', response_model=QuotaStatus)
def rate_limit(quota: QuotaGateDep, device_id: str | None = Query(None)):
    """
    Quota status for a device. Does not consume a unit.

    Args:
        device_id: Device identifier (required)

    Returns:
        QuotaStatus with used, limit, remaining and reset time
    """
    return quota.status(validate_device_id(device_id))
