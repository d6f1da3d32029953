import socket
import time

import pytest
import requests

from app.core.config import settings
from app.services import url_verifier
from app.services.url_verifier import (
    SOURCE_ALLOW_LIST,
    SOURCE_PROBE,
    UrlVerifier,
    classify_connection_error,
    decide_verification,
)
from tests.utils import FakeHttpSession


def _verifier(http_session: FakeHttpSession, **kwargs) -> UrlVerifier:
    options = {"timeout": 1.0, "concurrency": 2, "dispatch_delay": 0, "session": http_session}
    options.update(kwargs)
    return UrlVerifier(["youtube.com", "coursera.org"], **options)


# --- allow-list -------------------------------------------------------------


@pytest.mark.parametrize(
    "url",
    [
        "https://www.youtube.com/watch?v=x",
        "https://youtube.com/c/channel",
        "http://m.youtube.com/watch?v=abc",
        "https://WWW.COURSERA.ORG/learn/python",
    ],
)
def test_known_platforms_are_recognised(verifier, url):
    assert verifier.is_known_authentic_platform(url) is True


@pytest.mark.parametrize(
    "url",
    [
        "http://not-a-real-domain-xyz123.test",
        "not a url",
        "",
        None,
        "youtube.com/watch?v=x",
        "https://",
    ],
)
def test_unknown_or_malformed_urls_fail_closed(verifier, url):
    assert verifier.is_known_authentic_platform(url) is False


def test_allow_list_accepts_any_parseable_scheme(verifier, http_session):
    assert verifier.is_known_authentic_platform("ftp://ftp.coursera.org/slides.pdf") is True
    assert http_session.call_count == 0


def test_allow_list_is_injected_not_global(http_session):
    verifier = UrlVerifier(["my-school.test"], session=http_session)
    assert verifier.is_known_authentic_platform("https://www.my-school.test/course") is True
    assert verifier.is_known_authentic_platform("https://www.youtube.com/watch?v=x") is False


def test_default_allow_list_comes_from_settings(http_session):
    verifier = UrlVerifier.from_settings("development", session=http_session)
    assert verifier.known_domains == frozenset(settings.KNOWN_PLATFORM_DOMAINS)
    assert verifier.is_known_authentic_platform("https://docs.python.org/3/") is True


# --- probe ------------------------------------------------------------------


def test_verify_url_ok_status():
    session = FakeHttpSession(default=200)
    result = _verifier(session).verify_url("https://example.org/page")

    assert result.is_valid is True
    assert result.status_code == 200
    assert result.error is None
    assert session.call_count == 1


def test_verify_url_redirect_counts_as_valid():
    session = FakeHttpSession(default=301)
    result = _verifier(session).verify_url("https://example.org/old")

    assert result.is_valid is True
    assert result.status_code == 301
    _, kwargs = session.calls[0]
    assert kwargs["allow_redirects"] is False


def test_verify_url_http_error_status():
    session = FakeHttpSession(default=404)
    result = _verifier(session).verify_url("https://example.org/missing")

    assert result.is_valid is False
    assert result.status_code == 404
    assert result.error == "HTTP 404"


def test_verify_url_server_error_status():
    result = _verifier(FakeHttpSession(default=503)).verify_url("https://example.org/")
    assert result.error == "HTTP 503"


def test_verify_url_adds_missing_scheme():
    session = FakeHttpSession()
    _verifier(session).verify_url("example.org/course")

    url, kwargs = session.calls[0]
    assert url == "https://example.org/course"
    assert kwargs["timeout"] == 1.0
    assert "User-Agent" in kwargs["headers"]


def test_verify_url_explicit_timeout_overrides_default():
    session = FakeHttpSession()
    _verifier(session).verify_url("https://example.org", timeout=3)
    assert session.calls[0][1]["timeout"] == 3


@pytest.mark.parametrize("url", ["https://exa mple.org/page", "https://:80", "http://example.org:99999/"])
def test_malformed_url_never_hits_the_network(url):
    session = FakeHttpSession()
    result = _verifier(session).verify_url(url)

    assert result.is_valid is False
    assert result.error == url_verifier.INVALID_URL_FORMAT
    assert session.call_count == 0


@pytest.mark.parametrize("url", ["", "   ", None])
def test_empty_url_is_rejected(url):
    session = FakeHttpSession()
    result = _verifier(session).verify_url(url)

    assert result.is_valid is False
    assert result.error == url_verifier.INVALID_URL_STRING
    assert session.call_count == 0


@pytest.mark.parametrize(
    "exc, expected",
    [
        (
            requests.exceptions.ConnectionError(socket.gaierror(-2, "Name or service not known")),
            url_verifier.DOMAIN_NOT_FOUND,
        ),
        (
            requests.exceptions.ConnectionError("Failed to resolve 'nowhere.invalid'"),
            url_verifier.DOMAIN_NOT_FOUND,
        ),
        (
            requests.exceptions.ConnectionError(ConnectionRefusedError(111, "Connection refused")),
            url_verifier.CONNECTION_REFUSED,
        ),
        (requests.exceptions.ConnectTimeout("timed out"), url_verifier.REQUEST_TIMEOUT),
        (requests.exceptions.ReadTimeout("read timed out"), url_verifier.REQUEST_TIMEOUT),
        (
            requests.exceptions.SSLError("[SSL: CERTIFICATE_VERIFY_FAILED] certificate has expired"),
            url_verifier.SSL_CERT_EXPIRED,
        ),
        (
            requests.exceptions.SSLError("[SSL: CERTIFICATE_VERIFY_FAILED] self-signed certificate"),
            url_verifier.SSL_VERIFICATION_FAILED,
        ),
        (requests.exceptions.ConnectionError("Connection aborted"), url_verifier.CONNECTION_FAILED),
        (requests.exceptions.TooManyRedirects("loop"), url_verifier.CONNECTION_FAILED),
    ],
)
def test_connection_errors_are_classified(exc, expected):
    session = FakeHttpSession(default=exc)
    result = _verifier(session).verify_url("https://example.org/")

    assert result.is_valid is False
    assert result.status_code is None
    assert result.error == expected


def test_classify_follows_wrapped_causes():
    try:
        try:
            raise socket.gaierror(-3, "Temporary failure in name resolution")
        except socket.gaierror as inner:
            raise requests.exceptions.ConnectionError("Max retries exceeded") from inner
    except requests.exceptions.ConnectionError as exc:
        assert classify_connection_error(exc) == url_verifier.DOMAIN_NOT_FOUND


def test_tls_strictness_depends_on_deployment_mode():
    session = FakeHttpSession()
    UrlVerifier.from_settings("production", session=session).verify_url("https://example.org")
    UrlVerifier.from_settings("development", session=session).verify_url("https://example.org")

    assert session.calls[0][1]["verify"] is True
    assert session.calls[1][1]["verify"] is False


# --- decision policy --------------------------------------------------------


def test_decide_known_platform_makes_no_network_call():
    session = FakeHttpSession(default=requests.exceptions.ConnectTimeout("timed out"))
    decision = _verifier(session).decide("https://www.youtube.com/watch?v=x")

    assert decision.verified is True
    assert decision.source == SOURCE_ALLOW_LIST
    assert decision.error is None
    assert session.call_count == 0


def test_decide_falls_back_to_probe():
    session = FakeHttpSession(default=200)
    decision = _verifier(session).decide("https://example.org/page")

    assert decision.verified is True
    assert decision.source == SOURCE_PROBE
    assert decision.status_code == 200
    assert decision.checked_at is not None


def test_decide_reports_probe_failure_without_raising():
    session = FakeHttpSession(default=requests.exceptions.ConnectionError(socket.gaierror(-2, "unknown host")))
    decision = _verifier(session).decide("https://nowhere.invalid/")

    assert decision.verified is False
    assert decision.error == url_verifier.DOMAIN_NOT_FOUND


def test_decide_verification_uses_supplied_verifier():
    session = FakeHttpSession(default=404)
    decision = decide_verification("https://example.org/gone", verifier=_verifier(session))

    assert decision.verified is False
    assert decision.error == "HTTP 404"
    assert decision.status_code == 404


# --- verify_many ------------------------------------------------------------


@pytest.mark.asyncio
async def test_verify_many_keeps_input_order():
    urls = [f"https://example.org/{index}" for index in range(7)]
    session = FakeHttpSession(responses={urls[2]: 404, urls[5]: requests.exceptions.ReadTimeout("slow")})

    checks = await _verifier(session).verify_many(urls)

    assert [check.url for check in checks] == urls
    assert [check.result.is_valid for check in checks] == [True, True, False, True, True, False, True]
    assert checks[2].result.error == "HTTP 404"
    assert checks[5].result.error == url_verifier.REQUEST_TIMEOUT
    assert session.call_count == len(urls)


@pytest.mark.asyncio
async def test_verify_many_bounds_concurrency():
    urls = [f"https://example.org/{index}" for index in range(8)]
    session = FakeHttpSession(delay=0.05)

    await _verifier(session).verify_many(urls, concurrency=2)

    assert session.call_count == 8
    assert session.max_in_flight == 2


@pytest.mark.asyncio
async def test_verify_many_pauses_between_dispatches():
    urls = [f"https://example.org/{index}" for index in range(4)]
    session = FakeHttpSession()

    started = time.perf_counter()
    checks = await _verifier(session, dispatch_delay=0.1).verify_many(urls, concurrency=2)
    elapsed = time.perf_counter() - started

    assert [check.result.is_valid for check in checks] == [True] * 4
    # Two workers, two requests each, one pause after every request.
    assert elapsed >= 0.2


@pytest.mark.asyncio
async def test_verify_many_enforces_overall_deadline():
    urls = ["https://example.org/slow", "https://example.org/also-slow"]
    session = FakeHttpSession(delay=0.5)

    started = time.perf_counter()
    checks = await _verifier(session, timeout=0.05).verify_many(urls, concurrency=2)
    elapsed = time.perf_counter() - started

    assert [check.result.error for check in checks] == [url_verifier.REQUEST_TIMEOUT] * 2
    assert elapsed < 0.5


@pytest.mark.asyncio
async def test_verify_many_empty_input():
    session = FakeHttpSession()
    assert await _verifier(session).verify_many([]) == []
    assert session.call_count == 0
