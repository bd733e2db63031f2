"""
Type definitions for the API-to-CDN sync pipeline.

This module provides the error taxonomy shared by every pipeline stage and the
immutable result objects returned by the publisher and the sync runner.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from .domain.enums import Environment
from .domain.models import AccessCheckResult, ApiSettings, CdnTarget, DeploymentRecord, EndpointSpec


# Sync-specific exception hierarchy
class SyncError(Exception):
    """Base exception for sync pipeline operations."""

    @property
    def kind(self) -> str:
        return type(self).__name__


class ConfigurationError(SyncError):
    """Raised when configuration is invalid or incomplete."""
    pass


class AuthenticationError(SyncError):
    """Remote service rejected the credential (HTTP 401)."""
    pass


class AuthorizationError(SyncError):
    """Credential is valid but lacks permission (HTTP 403)."""
    pass


class UpstreamHttpError(SyncError):
    """Non-success HTTP status from a remote service."""
    def __init__(self, status: int, detail: str):
        self.status = status
        self.detail = detail
        super().__init__(f"API error ({status}): {detail}")


class UpstreamProtocolError(SyncError):
    """Remote service answered with a body that violates the expected contract."""
    pass


class NetworkError(SyncError):
    """Connection failure, DNS failure or timeout."""
    def __init__(self, cause: str):
        self.cause = cause
        super().__init__(f"Network error: {cause}")


class FilesystemError(SyncError):
    """Local directory creation, read or write failure."""
    pass


class RemoteRejectionError(SyncError):
    """CDN explicitly rejected an upload and returned an error list."""
    def __init__(self, errors: list[Any]):
        self.errors = errors
        super().__init__(f"KV upload rejected: {errors!r}")


class NotFoundError(SyncError):
    """A file expected by the publisher does not exist."""
    pass


NEVER_RETRY = (
    ConfigurationError,
    AuthenticationError,
    AuthorizationError,
    UpstreamProtocolError,
)


@dataclass(frozen=True)
class RetryPolicy:
    """Immutable retry configuration for fetch and publish calls.

    ``max_attempts`` counts the first call, so ``1`` disables retrying.
    Server errors (5xx) are retried when ``UpstreamHttpError`` is listed in
    ``retryable``; client errors never are.
    """
    max_attempts: int = 3
    base_delay: float = 1.0
    backoff_multiplier: float = 2.0
    max_delay: float = 30.0
    retryable: tuple[type[SyncError], ...] = (NetworkError, UpstreamHttpError)

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ConfigurationError("max_attempts must be at least 1")
        if self.base_delay < 0:
            raise ConfigurationError("base_delay must be non-negative")

    def should_retry(self, exc: BaseException) -> bool:
        if isinstance(exc, NEVER_RETRY):
            return False
        if not isinstance(exc, self.retryable):
            return False
        if isinstance(exc, UpstreamHttpError):
            return exc.status >= 500
        return True

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the given (1-based) failed attempt."""
        return min(self.base_delay * self.backoff_multiplier ** (attempt - 1), self.max_delay)


@dataclass(frozen=True)
class SyncSettings:
    """Fully resolved configuration for one run, passed explicitly to each component."""
    environment: Environment
    api: ApiSettings
    cdn: CdnTarget
    endpoints: tuple[EndpointSpec, ...]
    output_dir: Path = Path("output")
    retry: RetryPolicy = field(default_factory=RetryPolicy)


@dataclass(frozen=True)
class UploadRecord:
    """A local module file and the KV key it is stored under."""
    file_path: Path
    key: str

    @classmethod
    def for_file(cls, file_path: Path, key: Optional[str] = None) -> "UploadRecord":
        file_path = Path(file_path)
        return cls(file_path=file_path, key=key or file_path.name)


@dataclass(frozen=True)
class PublishResult:
    """Per-record outcome inside a best-effort batch."""
    key: str
    succeeded: bool
    deployment: Optional[DeploymentRecord] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None


@dataclass(frozen=True)
class BatchOutcome:
    """Aggregate result of ``KVPublisher.publish_all``."""
    total: int
    succeeded: int
    failed: int
    results: list[PublishResult] = field(default_factory=list)

    @property
    def all_succeeded(self) -> bool:
        return self.failed == 0


@dataclass(frozen=True)
class EndpointResult:
    """Artifacts produced for one endpoint during a sync run."""
    name: str
    output_path: Path
    byte_size: int
    record_count: int = 0
    deployment: Optional[DeploymentRecord] = None
    access_check: Optional[AccessCheckResult] = None


@dataclass
class PipelineRunOutcome:
    """Aggregate over all endpoints processed in one invocation."""
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    results: list[EndpointResult] = field(default_factory=list)
    first_error: Optional[SyncError] = None
    failed_endpoint: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.failed == 0 and self.first_error is None
