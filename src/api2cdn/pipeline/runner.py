"""
SyncRunner - Fetch -> Transform -> Persist -> Publish sequencing

Runs the configured endpoints one after another and stops at the first
failure. Artifacts written before the failure are left on disk.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Iterable, Optional

import requests

from ..domain.models import EndpointSpec
from ..types import EndpointResult, PipelineRunOutcome, SyncError, SyncSettings
from ..utils import format_duration, retry_with_backoff
from .publish import KVPublisher
from .source import ApiSource
from .transform import ModuleTransformer, count_records

logger = logging.getLogger(__name__)


class SyncRunner:
    """
    Orchestrates one sync run over a list of endpoints.

    All components share one HTTP session. Fetch and publish calls are
    wrapped in the settings' retry policy; verification is advisory.
    """

    def __init__(
        self,
        settings: SyncSettings,
        session: Optional[requests.Session] = None,
        publish: bool = True,
        verify: bool = True,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings
        self.publish_enabled = publish
        self.verify_enabled = verify and publish
        self._owns_session = session is None
        self.session = session or requests.Session()

        self.source = ApiSource(settings.api, session=self.session)
        self.transformer = ModuleTransformer()
        self.publisher = KVPublisher(settings.cdn, session=self.session)
        self._retry = retry_with_backoff(settings.retry, sleep=sleep)

    def run(self, endpoints: Optional[Iterable[EndpointSpec]] = None) -> PipelineRunOutcome:
        """
        Process endpoints in order, failing fast.

        Args:
            endpoints: Endpoints to sync; defaults to all configured endpoints

        Returns:
            PipelineRunOutcome with per-endpoint results and the first error, if any
        """
        endpoints = list(endpoints if endpoints is not None else self.settings.endpoints)
        outcome = PipelineRunOutcome()
        start = time.time()

        logger.info(f"Starting API-to-CDN sync for {len(endpoints)} endpoint(s) "
                    f"[{self.settings.environment.value}]")

        for index, endpoint in enumerate(endpoints):
            logger.info(f"Processing endpoint: {endpoint.name}")
            try:
                result = self.sync_endpoint(endpoint)
            except SyncError as e:
                outcome.failed += 1
                outcome.first_error = e
                outcome.failed_endpoint = endpoint.name
                outcome.skipped = len(endpoints) - index - 1
                logger.error(f"Endpoint {endpoint.name} failed: {e.kind}: {e}")
                if outcome.skipped:
                    logger.warning(f"Skipping {outcome.skipped} remaining endpoint(s)")
                break
            outcome.results.append(result)
            outcome.succeeded += 1

        logger.info(f"Sync finished in {format_duration(time.time() - start)}: "
                    f"{outcome.succeeded} succeeded, {outcome.failed} failed, {outcome.skipped} skipped")
        return outcome

    def sync_endpoint(self, endpoint: EndpointSpec) -> EndpointResult:
        """Run every stage for one endpoint; raises the first SyncError."""
        data = self._retry(self.source.fetch)(endpoint)
        records = count_records(data)
        logger.info(f"Successfully fetched {records} records")

        content = self.transformer.render(data, endpoint)
        output_path = self.transformer.persist(content, self.settings.output_dir / endpoint.output_file)

        deployment = None
        access_check = None
        if self.publish_enabled:
            deployment = self._retry(self.publisher.publish)(output_path, endpoint.output_file)
            if self.verify_enabled:
                access_check = self.publisher.verify_public(deployment.public_url)

        return EndpointResult(
            name=endpoint.name,
            output_path=output_path,
            byte_size=len(content.encode("utf-8")),
            record_count=records,
            deployment=deployment,
            access_check=access_check,
        )

    def close(self) -> None:
        if self._owns_session:
            self.session.close()
