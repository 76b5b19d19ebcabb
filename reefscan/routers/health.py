"""
Health and Monitoring Router

Provides health checks and service info.
"""

import logging
import os

import psutil
from fastapi import APIRouter

from reefscan.core.dependencies import AppStateDep
from reefscan.schemas.common import HealthResponse, ServiceInfoResponse


logger = logging.getLogger(__name__)

router = APIRouter(
    tags=['Health & Monitoring'],
)


@router.get('/', response_model=ServiceInfoResponse)
def root(state: AppStateDep):
    """
    Service information endpoint.

    Returns the service name, version and the main endpoints.
    """
    settings = state.settings

    return {
        'service': settings.api_title,
        'version': settings.api_version,
        'status': 'running',
        'endpoints': {
            'analyze_photo': 'POST /intelligence/analyze-photo',
            'analyze_photo_url': 'POST /intelligence/analyze-photo-url',
            'analyze_photos': 'POST /intelligence/analyze-photos',
            'rate_limit': 'GET /intelligence/rate-limit?device_id=',
            'collections': '/collections/{device_id}',
            'health': 'GET /health',
        },
    }


@router.get('/health', response_model=HealthResponse)
def health(state: AppStateDep):
    """
    Health check with process metrics.

    Returns:
    - Service status
    - Vision model configuration
    - Quota configuration
    - Memory and CPU usage
    """
    settings = state.settings

    # Process metrics
    process = psutil.Process(os.getpid())
    memory_info = process.memory_info()

    return {
        'status': 'healthy',
        'vision_model': state.vision_model.name,
        'vision_model_configured': getattr(state.vision_model, 'configured', True),
        'quota': {
            'daily_limit': state.quota.limit,
            'window_hours': int(state.quota.window.total_seconds() // 3600),
        },
        'performance': {
            'memory_mb': round(memory_info.rss / 1024 / 1024, 2),
            'cpu_percent': process.cpu_percent(),
            'max_file_size_mb': settings.max_file_size_mb,
            'slow_request_threshold_ms': settings.slow_request_threshold_ms,
        },
    }
