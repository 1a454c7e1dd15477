"""Tests for the retrying HTTP session."""
from campfire.core.geocoder import ForestGeocoder
from campfire.utils.http import build_session


def retry_policy(session):
    return session.get_adapter("https://example.org").max_retries


def test_transient_statuses_are_retried():
    retry = retry_policy(build_session(retry_attempts=3, backoff=0.5))

    assert retry.total == 2
    assert retry.backoff_factor == 0.5
    assert set(retry.status_forcelist) == {408, 429, 500, 502, 503, 504}
    assert retry.is_retry("GET", 503)
    assert retry.is_retry("GET", 429)
    assert not retry.is_retry("GET", 404)


def test_only_get_is_retried():
    retry = retry_policy(build_session())

    assert not retry.is_retry("POST", 503)


def test_retry_after_header_is_ignored():
    """A server cannot stretch the wait beyond the configured backoff."""
    assert retry_policy(build_session()).respect_retry_after_header is False


def test_single_attempt_means_no_retries():
    assert retry_policy(build_session(retry_attempts=1)).total == 0


def test_rate_limit_left_to_caller():
    retry = retry_policy(build_session(retry_rate_limited=False))

    assert 429 not in retry.status_forcelist
    assert not retry.is_retry("GET", 429)
    assert retry.is_retry("GET", 502)


def test_user_agent_header():
    session = build_session(user_agent="campfire-tests/1.0")

    assert session.headers["User-Agent"] == "campfire-tests/1.0"


def test_default_sessions_split_rate_limit_handling(memory_cache, geocoder_config):
    """The self-hosted Nominatim session leaves 429 to the provider's own retries."""
    geocoder = ForestGeocoder(memory_cache, config=geocoder_config)

    assert 429 in retry_policy(geocoder.nominatim.session).status_forcelist
    assert 429 not in retry_policy(geocoder.nominatim.local_session).status_forcelist
    assert retry_policy(geocoder.google.session).respect_retry_after_header is False
