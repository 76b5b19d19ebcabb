"""
Common Pydantic models used across multiple endpoints.

Health checks, service info and error responses.
"""

from pydantic import BaseModel, Field


class PerformanceMetrics(BaseModel):
    """Process metrics for health check."""

    memory_mb: float
    cpu_percent: float
    max_file_size_mb: int
    slow_request_threshold_ms: int


class QuotaConfig(BaseModel):
    """Quota settings reported by the health check."""

    daily_limit: int
    window_hours: int


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(default='healthy', description='Service health status')
    vision_model: str = Field(..., description='Configured vision model')
    vision_model_configured: bool = Field(..., description='True when an API key is set')
    quota: QuotaConfig
    performance: PerformanceMetrics = Field(..., description='Performance metrics')


class ServiceInfoResponse(BaseModel):
    """Root endpoint response with service information."""

    service: str
    version: str
    status: str = Field(default='running')
    endpoints: dict[str, str]


class ErrorResponse(BaseModel):
    """Body of every error response."""

    detail: str
    code: str
