import dataclasses

import pytest
import requests

from api2cdn.domain.models import EndpointSpec
from api2cdn.pipeline.runner import SyncRunner
from api2cdn.pipeline.transform import ModuleTransformer
from api2cdn.types import AuthenticationError, RetryPolicy, UpstreamHttpError

from conftest import SAMPLE_PAYLOAD, make_response

KV_OK = {"success": True, "errors": []}

INSTRUMENTS = EndpointSpec(
    name="trading-instruments",
    source_path="/api/trading-instruments",
    output_file="trading-instruments.js",
)


class SleepRecorder:
    def __init__(self):
        self.delays = []

    def __call__(self, seconds):
        self.delays.append(seconds)


@pytest.fixture
def sleeper():
    return SleepRecorder()


def test_full_run_fetches_persists_publishes_and_verifies(sync_settings, fake_session, sleeper):
    fake_session.queue(
        make_response(200, SAMPLE_PAYLOAD),
        make_response(200, KV_OK),
        make_response(200, text="// module", headers={"Content-Type": "application/javascript"}),
    )
    runner = SyncRunner(sync_settings, session=fake_session, sleep=sleeper)

    outcome = runner.run()

    assert outcome.ok
    assert (outcome.succeeded, outcome.failed, outcome.skipped) == (1, 0, 0)
    result = outcome.results[0]
    assert result.name == "account-specs"
    assert result.record_count == 2
    assert result.output_path == sync_settings.output_dir / "account-specifications.js"
    assert result.byte_size == result.output_path.stat().st_size
    assert result.deployment.public_url == "https://cdn.test/account-specifications.js"
    assert result.access_check.success is True
    assert [call[0] for call in fake_session.calls] == ["GET", "PUT", "GET"]

    module_text = result.output_path.read_text(encoding="utf-8")
    assert ModuleTransformer.extract_data(module_text, "accountSpecs") == SAMPLE_PAYLOAD
    assert sleeper.delays == []


def test_skip_publish_only_writes_locally(sync_settings, fake_session):
    fake_session.queue(make_response(200, SAMPLE_PAYLOAD))
    runner = SyncRunner(sync_settings, session=fake_session, publish=False)

    outcome = runner.run()

    assert outcome.ok
    assert outcome.results[0].deployment is None
    assert outcome.results[0].access_check is None
    assert outcome.results[0].output_path.exists()
    assert len(fake_session.calls) == 1


def test_no_verify_skips_accessibility_check(sync_settings, fake_session):
    fake_session.queue(make_response(200, []), make_response(200, KV_OK))
    runner = SyncRunner(sync_settings, session=fake_session, verify=False)

    outcome = runner.run()

    assert outcome.ok
    assert outcome.results[0].access_check is None
    assert [call[0] for call in fake_session.calls] == ["GET", "PUT"]


def test_first_failure_stops_the_run(sync_settings, endpoint, fake_session):
    fake_session.queue(make_response(401, {"error": "Invalid token"}))
    runner = SyncRunner(sync_settings, session=fake_session, publish=False)

    outcome = runner.run([endpoint, INSTRUMENTS])

    assert not outcome.ok
    assert (outcome.succeeded, outcome.failed, outcome.skipped) == (0, 1, 1)
    assert isinstance(outcome.first_error, AuthenticationError)
    assert outcome.failed_endpoint == "account-specs"
    assert len(fake_session.calls) == 1
    assert not (sync_settings.output_dir / "trading-instruments.js").exists()


def test_artifacts_before_failure_stay_on_disk(sync_settings, endpoint, fake_session):
    settings = dataclasses.replace(sync_settings, retry=RetryPolicy(max_attempts=1))
    fake_session.queue(make_response(200, SAMPLE_PAYLOAD), make_response(404, {"error": "gone"}))
    runner = SyncRunner(settings, session=fake_session, publish=False)

    outcome = runner.run([endpoint, INSTRUMENTS])

    assert (outcome.succeeded, outcome.failed, outcome.skipped) == (1, 1, 0)
    assert isinstance(outcome.first_error, UpstreamHttpError)
    assert outcome.failed_endpoint == "trading-instruments"
    assert (settings.output_dir / "account-specifications.js").exists()


def test_transient_fetch_failure_is_retried(sync_settings, fake_session, sleeper):
    fake_session.queue(
        requests.ConnectionError("connection reset"),
        make_response(503, text="busy"),
        make_response(200, SAMPLE_PAYLOAD),
    )
    runner = SyncRunner(sync_settings, session=fake_session, publish=False, sleep=sleeper)

    outcome = runner.run()

    assert outcome.ok
    assert len(fake_session.calls) == 3
    assert sleeper.delays == [1.0, 2.0]


def test_client_errors_are_not_retried(sync_settings, fake_session, sleeper):
    fake_session.queue(make_response(404, {"error": "no such resource"}))
    runner = SyncRunner(sync_settings, session=fake_session, publish=False, sleep=sleeper)

    outcome = runner.run()

    assert isinstance(outcome.first_error, UpstreamHttpError)
    assert len(fake_session.calls) == 1
    assert sleeper.delays == []


def test_retries_give_up_after_max_attempts(sync_settings, fake_session, sleeper):
    fake_session.queue(*(make_response(500, {"error": "down"}) for _ in range(3)))
    runner = SyncRunner(sync_settings, session=fake_session, publish=False, sleep=sleeper)

    outcome = runner.run()

    assert outcome.first_error.status == 500
    assert len(fake_session.calls) == 3
    assert sleeper.delays == [1.0, 2.0]


def test_failed_accessibility_check_does_not_fail_run(sync_settings, fake_session):
    fake_session.queue(
        make_response(200, SAMPLE_PAYLOAD),
        make_response(200, KV_OK),
        make_response(404, text="Not Found"),
    )
    runner = SyncRunner(sync_settings, session=fake_session)

    outcome = runner.run()

    assert outcome.ok
    assert outcome.results[0].deployment.succeeded is True
    assert outcome.results[0].access_check.success is False


def test_publish_failure_is_fail_fast(sync_settings, endpoint, fake_session):
    fake_session.queue(
        make_response(200, SAMPLE_PAYLOAD),
        make_response(403, {"success": False, "errors": []}),
    )
    runner = SyncRunner(sync_settings, session=fake_session)

    outcome = runner.run([endpoint, INSTRUMENTS])

    assert outcome.first_error.kind == "AuthorizationError"
    assert outcome.skipped == 1
    assert (sync_settings.output_dir / "account-specifications.js").exists()


def test_close_leaves_injected_session_open(sync_settings, fake_session):
    SyncRunner(sync_settings, session=fake_session).close()

    assert fake_session.closed is False
