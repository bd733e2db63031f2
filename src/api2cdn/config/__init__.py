"""
Configuration module for the API-to-CDN sync pipeline.
Secrets and tuning knobs come from the environment; endpoints from YAML.
"""

from ..types import ConfigurationError
from .settings import (
    ApiCredentials,
    CloudflareCredentials,
    Config,
    SyncOptions,
)

__all__ = [
    'Config',
    'ConfigurationError',
    'ApiCredentials',
    'CloudflareCredentials',
    'SyncOptions',
]
