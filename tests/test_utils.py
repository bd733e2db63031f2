import pytest

from api2cdn.types import (
    AuthenticationError,
    ConfigurationError,
    NetworkError,
    RetryPolicy,
    UpstreamHttpError,
    UpstreamProtocolError,
)
from api2cdn.utils import format_duration, load_yaml_file, mask_secret, retry_with_backoff


class FlakyCall:
    """Raise the queued errors in order, then return ``"done"``."""

    __name__ = "flaky_call"

    def __init__(self, *errors):
        self.errors = list(errors)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return "done"


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (NetworkError("reset"), True),
        (UpstreamHttpError(500, "oops"), True),
        (UpstreamHttpError(503, "busy"), True),
        (UpstreamHttpError(404, "missing"), False),
        (UpstreamHttpError(429, "slow down"), False),
        (AuthenticationError("bad token"), False),
        (ConfigurationError("missing"), False),
        (UpstreamProtocolError("not json"), False),
        (ValueError("unrelated"), False),
    ],
)
def test_should_retry(error, expected):
    assert RetryPolicy().should_retry(error) is expected


def test_delay_grows_and_is_capped():
    policy = RetryPolicy(base_delay=1.0, backoff_multiplier=2.0, max_delay=5.0)

    assert [policy.delay_for(n) for n in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 5.0]


@pytest.mark.parametrize("kwargs", [{"max_attempts": 0}, {"base_delay": -1}])
def test_invalid_policy(kwargs):
    with pytest.raises(ConfigurationError):
        RetryPolicy(**kwargs)


def test_retry_until_success():
    delays = []
    call = FlakyCall(NetworkError("a"), NetworkError("b"))

    result = retry_with_backoff(RetryPolicy(max_attempts=3), sleep=delays.append)(call)()

    assert result == "done"
    assert call.calls == 3
    assert delays == [1.0, 2.0]


def test_retry_reraises_after_budget():
    delays = []
    call = FlakyCall(NetworkError("a"), NetworkError("b"))

    with pytest.raises(NetworkError):
        retry_with_backoff(RetryPolicy(max_attempts=2), sleep=delays.append)(call)()

    assert call.calls == 2
    assert delays == [1.0]


def test_single_attempt_disables_retry():
    call = FlakyCall(NetworkError("a"))

    with pytest.raises(NetworkError):
        retry_with_backoff(RetryPolicy(max_attempts=1), sleep=lambda _: None)(call)()

    assert call.calls == 1


def test_non_retryable_error_propagates_immediately():
    delays = []
    call = FlakyCall(AuthenticationError("denied"))

    with pytest.raises(AuthenticationError):
        retry_with_backoff(RetryPolicy(), sleep=delays.append)(call)()

    assert call.calls == 1
    assert delays == []


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (None, "<unset>"),
        ("", "<unset>"),
        ("short", "*****"),
        ("abcdefghijkl", "abcd...****"),
    ],
)
def test_mask_secret(value, expected):
    assert mask_secret(value) == expected


def test_format_duration():
    assert format_duration(4.0) == "4.0s"
    assert format_duration(125) == "2m 5.0s"


def test_load_yaml_file(tmp_path):
    empty = tmp_path / "empty.yml"
    empty.write_text("", encoding="utf-8")
    broken = tmp_path / "broken.yml"
    broken.write_text("key: [unterminated\n", encoding="utf-8")

    assert load_yaml_file(empty) == {}
    with pytest.raises(ValueError, match="Invalid YAML"):
        load_yaml_file(broken)
    with pytest.raises(FileNotFoundError):
        load_yaml_file(tmp_path / "absent.yml")
