"""
Configuration module for the marine life analysis service.

Provides centralized configuration using Pydantic Settings with environment variable support.
"""

from reefscan.config.settings import Settings, get_settings


__all__ = ['Settings', 'get_settings']
