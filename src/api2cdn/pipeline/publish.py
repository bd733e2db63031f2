# publish.py
# Publisher for the Cloudflare KV namespace behind the CDN edge
# - One idempotent PUT per module, key = file name
# - Typed errors for auth (401), permission (403) and explicit rejections
# - Best-effort batches: failures are collected, never raised
# - Advisory public accessibility check, separate from the upload verdict

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional

import requests

from ..domain.enums import ContentType
from ..domain.models import AccessCheckResult, CdnTarget, DeploymentRecord
from ..types import (
    AuthenticationError,
    AuthorizationError,
    BatchOutcome,
    ConfigurationError,
    FilesystemError,
    NetworkError,
    NotFoundError,
    PublishResult,
    RemoteRejectionError,
    SyncError,
    UploadRecord,
    UpstreamHttpError,
)
from .source import error_detail

logger = logging.getLogger(__name__)

MODULE_SUFFIX = ".js"


def collect_output_files(output_dir: Path) -> list[UploadRecord]:
    """
    Find generated modules in an output directory.

    Raises:
        NotFoundError: If the directory does not exist
    """
    output_dir = Path(output_dir)
    if not output_dir.is_dir():
        raise NotFoundError(f"Output directory not found: {output_dir}")
    return [
        UploadRecord.for_file(path)
        for path in sorted(output_dir.iterdir())
        if path.is_file() and path.suffix == MODULE_SUFFIX
    ]


class KVPublisher:
    """
    Uploads generated modules to a KV namespace and probes their public URLs.

    Usage:
      - publish(path) for a single module; raises on any failure
      - publish_all(records) for a best-effort sweep; never raises
      - verify_public(url) after a successful upload; advisory only
    """

    def __init__(self, target: CdnTarget, session: Optional[requests.Session] = None):
        self.target = target
        self._external_session = session
        self._own_session: Optional[requests.Session] = None

    @property
    def session(self) -> requests.Session:
        if self._external_session is not None:
            return self._external_session
        if self._own_session is None:
            self._own_session = requests.Session()
        return self._own_session

    # ----------------------------
    # Single upload
    # ----------------------------
    def publish(self, file_path: Path, key: Optional[str] = None) -> DeploymentRecord:
        """
        Upload one module file.

        Args:
            file_path: Generated module on disk
            key: KV key; defaults to the file name

        Returns:
            DeploymentRecord with the public URL of the module

        Raises:
            ConfigurationError: Any CDN coordinate missing (checked first)
            NotFoundError: file_path does not exist
            FilesystemError: file_path cannot be read
            AuthenticationError / AuthorizationError: HTTP 401 / 403
            RemoteRejectionError: CDN answered with an explicit error list
            UpstreamHttpError: Other HTTP failure without error detail
            NetworkError: Connection failure or timeout
        """
        missing = self.target.missing_fields()
        if missing:
            raise ConfigurationError(
                f"Missing required Cloudflare configuration: {', '.join(missing)}"
            )

        file_path = Path(file_path)
        if not file_path.is_file():
            raise NotFoundError(f"File not found: {file_path}")

        try:
            content = file_path.read_bytes()
        except OSError as e:
            raise FilesystemError(f"Failed to read {file_path}: {e}") from e

        key = key or file_path.name
        logger.info(f"Deploying {key} to Cloudflare CDN...")
        self._upload(key, content)

        record = DeploymentRecord(
            key=key,
            byte_size=len(content),
            public_url=self.target.public_url(key),
            succeeded=True,
        )
        logger.info(f"Successfully deployed {key} to CDN ({record.byte_size} bytes)")
        return record

    def _upload(self, key: str, content: bytes) -> None:
        headers = {
            "Authorization": f"Bearer {self.target.api_token}",
            "Content-Type": ContentType.JAVASCRIPT.value,
        }
        try:
            response = self.session.put(
                self.target.value_url(key),
                data=content,
                headers=headers,
                timeout=self.target.upload_timeout_s,
            )
        except requests.RequestException as e:
            raise NetworkError(str(e)) from e

        status = response.status_code
        if status == 401:
            raise AuthenticationError("Cloudflare authentication failed - check API token")
        if status == 403:
            raise AuthorizationError("Cloudflare access denied - check account permissions")

        try:
            body = response.json()
        except ValueError:
            body = None

        if status < 400 and isinstance(body, dict) and body.get("success") is True:
            return
        if isinstance(body, dict) and body.get("errors"):
            raise RemoteRejectionError(body["errors"])
        if status >= 400:
            raise UpstreamHttpError(status, error_detail(response))
        raise RemoteRejectionError([])

    # ----------------------------
    # Batch upload
    # ----------------------------
    def publish_all(self, records: Iterable[UploadRecord]) -> BatchOutcome:
        """
        Upload every record independently.

        A failing record is reported in the outcome and does not stop the
        remaining uploads. Records are processed sequentially in the given
        order; callers must not pass two records with the same key.
        """
        records = list(records)
        logger.info(f"Deploying {len(records)} files to CDN...")

        results: list[PublishResult] = []
        for record in records:
            try:
                deployment = self.publish(record.file_path, record.key)
            except SyncError as e:
                logger.error(f"Failed to deploy {record.key}: {e.kind}: {e}")
                results.append(PublishResult(
                    key=record.key,
                    succeeded=False,
                    error=str(e),
                    error_kind=e.kind,
                ))
            else:
                results.append(PublishResult(key=record.key, succeeded=True, deployment=deployment))

        succeeded = sum(1 for r in results if r.succeeded)
        outcome = BatchOutcome(
            total=len(results),
            succeeded=succeeded,
            failed=len(results) - succeeded,
            results=results,
        )
        logger.info(f"Deployment Summary: {outcome.succeeded} successful, {outcome.failed} failed")
        return outcome

    # ----------------------------
    # Accessibility check
    # ----------------------------
    def verify_public(self, url: str) -> AccessCheckResult:
        """
        GET a published URL and report whether it is served.

        Never raises; a failed check does not change any DeploymentRecord.
        """
        logger.info(f"Testing CDN accessibility: {url}")
        try:
            response = self.session.get(url, timeout=self.target.check_timeout_s)
        except requests.RequestException as e:
            logger.warning(f"CDN test failed: {e}")
            return AccessCheckResult(success=False, url=url, detail=str(e))

        if response.status_code == 200:
            size = len(response.content)
            logger.info(f"CDN accessible: {url} ({size} bytes)")
            return AccessCheckResult(
                success=True,
                url=url,
                status=200,
                byte_size=size,
                content_type=response.headers.get("Content-Type"),
            )

        logger.warning(f"CDN returned status {response.status_code}: {url}")
        return AccessCheckResult(
            success=False,
            url=url,
            status=response.status_code,
            detail=f"HTTP {response.status_code}",
        )

    def close(self) -> None:
        if self._own_session is not None:
            self._own_session.close()
            self._own_session = None
