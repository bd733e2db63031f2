"""
Pipeline Enumerations

Core enums for type safety and clear interface definitions across the pipeline.
"""

from enum import Enum


class Environment(str, Enum):
    """Deployment environments with their own CDN namespace."""
    DEVELOPMENT = "development"  # Default target for manual and local runs
    PRODUCTION = "production"    # Scheduled daily sync target


class ContentType(str, Enum):
    """MIME types used on the wire."""
    JSON = "application/json"
    JAVASCRIPT = "application/javascript"
