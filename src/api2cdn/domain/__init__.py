"""
Domain Models and Types

This module contains the core domain models and enumerations used throughout the pipeline.

Models:
- EndpointSpec: Named upstream resource and the module file it produces
- ApiSettings: Upstream API coordinates and credential
- CdnTarget: Key-value namespace coordinates and credential
- DeploymentRecord: Result of a single CDN upload
- AccessCheckResult: Result of a public accessibility probe

Enums:
- Environment: Deployment environments (development, production)
- ContentType: MIME types used on the wire
"""

from .enums import ContentType, Environment
from .models import AccessCheckResult, ApiSettings, CdnTarget, DeploymentRecord, EndpointSpec

__all__ = [
    "EndpointSpec", "ApiSettings", "CdnTarget", "DeploymentRecord", "AccessCheckResult",
    "Environment", "ContentType"
]
