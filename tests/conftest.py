"""Shared fixtures and helpers for the test suite."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

import pytest
import requests

from api2cdn.domain.enums import Environment
from api2cdn.domain.models import ApiSettings, CdnTarget, EndpointSpec
from api2cdn.types import RetryPolicy, SyncSettings

ENV_KEYS = (
    "ENVIRONMENT",
    "API_BASE_URL",
    "API_AUTH_TOKEN",
    "API_TIMEOUT_SECONDS",
    "CLOUDFLARE_API_TOKEN",
    "CLOUDFLARE_ACCOUNT_ID",
    "CLOUDFLARE_API_BASE_URL",
    "CDN_NAMESPACE_ID",
    "CDN_PUBLIC_DOMAIN",
    "CDN_UPLOAD_TIMEOUT_SECONDS",
    "CDN_CHECK_TIMEOUT_SECONDS",
    "SYNC_OUTPUT_DIR",
    "SYNC_MAX_ATTEMPTS",
    "SYNC_RETRY_BASE_DELAY",
)

SAMPLE_PAYLOAD = {
    "data": [
        {"account": {"specification": {"display_name": "Standard", "max_leverage": 500, "pips": 0.6}}},
        {"account": {"specification": {"display_name": "Swap-Free", "max_leverage": 500, "pips": 2.2}}},
    ]
}


def make_response(
    status: int,
    body: Any = None,
    *,
    text: Optional[str] = None,
    headers: Optional[dict[str, str]] = None,
    url: str = "",
) -> requests.Response:
    """Build a real ``requests.Response`` with the given status and body."""

    response = requests.Response()
    response.status_code = status
    if text is None:
        text = "" if body is None else json.dumps(body)
    response._content = text.encode("utf-8")
    response.encoding = "utf-8"
    response.headers.update(headers or {})
    response.url = url
    response.reason = "OK" if status < 400 else "Error"
    return response


class FakeSession:
    """Stand-in for ``requests.Session`` that replays queued responses or errors."""

    def __init__(self, *items: Any) -> None:
        self.calls: list[tuple[str, str, dict[str, Any]]] = []
        self._queue: list[Any] = list(items)
        self.closed = False

    def queue(self, *items: Any) -> None:
        self._queue.extend(items)

    def _next(self) -> requests.Response:
        if not self._queue:
            raise AssertionError("Unexpected HTTP call: no response queued")
        item = self._queue.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    def get(self, url: str, **kwargs: Any) -> requests.Response:
        self.calls.append(("GET", url, kwargs))
        return self._next()

    def put(self, url: str, data: Any = None, **kwargs: Any) -> requests.Response:
        self.calls.append(("PUT", url, {"data": data, **kwargs}))
        return self._next()

    def close(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep tests independent of the developer's shell and .env files."""

    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def endpoint() -> EndpointSpec:
    return EndpointSpec(
        name="account-specs",
        source_path="/api/account-specs",
        output_file="account-specifications.js",
    )


@pytest.fixture
def api_settings() -> ApiSettings:
    return ApiSettings(base_url="http://api.test", auth_token="test-token-123", timeout_s=10.0)


@pytest.fixture
def cdn_target() -> CdnTarget:
    return CdnTarget(
        api_token="cf-token-abcdef",
        account_id="acct-1",
        namespace_id="ns-1",
        public_domain="cdn.test",
        api_base_url="https://cf.test/client/v4",
    )


@pytest.fixture
def sync_settings(tmp_path: Path, endpoint: EndpointSpec, api_settings: ApiSettings, cdn_target: CdnTarget) -> SyncSettings:
    return SyncSettings(
        environment=Environment.DEVELOPMENT,
        api=api_settings,
        cdn=cdn_target,
        endpoints=(endpoint,),
        output_dir=tmp_path / "output",
        retry=RetryPolicy(max_attempts=3, base_delay=1.0),
    )


@pytest.fixture
def sync_file(tmp_path: Path) -> Path:
    """A sync YAML file with two endpoints and fully configured environments."""

    path = tmp_path / "sync.yml"
    path.write_text(
        "endpoints:\n"
        "  - name: account-specs\n"
        "    path: /api/account-specs\n"
        "    output_file: account-specifications.js\n"
        "  - name: trading-instruments\n"
        "    path: /api/trading-instruments\n"
        "environments:\n"
        "  development:\n"
        "    namespace_id: ns-dev\n"
        "    cdn_domain: cdn-dev.test\n"
        "  production:\n"
        "    namespace_id: ns-prod\n"
        "    cdn_domain: cdn.test\n",
        encoding="utf-8",
    )
    return path
