"""Trust checks for externally supplied resource URLs.

A URL is trusted either because its host belongs to a configured set of
known learning platforms (no network access at all) or because a single
``HEAD`` probe answers with a 2xx/3xx status. Probe failures are never
raised: they come back as a :class:`VerificationResult` whose ``error`` is
one of the short messages below, so the admin UI can show something
actionable.
"""

from __future__ import annotations

import asyncio
import logging
import socket
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Iterator, Optional
from urllib.parse import urlsplit

import requests

from app.core.config import settings

logger = logging.getLogger(__name__)

DOMAIN_NOT_FOUND = "Domain not found"
CONNECTION_REFUSED = "Connection refused"
REQUEST_TIMEOUT = "Request timeout"
SSL_CERT_EXPIRED = "SSL certificate expired"
SSL_VERIFICATION_FAILED = "SSL certificate verification failed"
CONNECTION_FAILED = "Connection failed"
INVALID_URL_FORMAT = "Invalid URL format"
INVALID_URL_STRING = "Invalid URL string"

SOURCE_ALLOW_LIST = "allow_list"
SOURCE_PROBE = "probe"

_DNS_FAILURE_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "failed to resolve",
    "getaddrinfo failed",
    "temporary failure in name resolution",
    "no address associated with hostname",
)


@dataclass(frozen=True, slots=True)
class VerificationResult:
    is_valid: bool
    status_code: Optional[int] = None
    error: Optional[str] = None


@dataclass(frozen=True, slots=True)
class UrlCheck:
    url: str
    result: VerificationResult


@dataclass(frozen=True, slots=True)
class TrustDecision:
    verified: bool
    source: str
    error: Optional[str] = None
    status_code: Optional[int] = None
    checked_at: Optional[datetime] = None


def normalize_url(url: str) -> str:
    candidate = url.strip()
    if not candidate.lower().startswith(("http://", "https://")):
        candidate = "https://" + candidate
    return candidate


def _is_well_formed(url: str) -> bool:
    try:
        parts = urlsplit(url)
        hostname = parts.hostname
        # Accessing ``port`` validates it and raises ValueError when invalid.
        parts.port
    except ValueError:
        return False
    if parts.scheme not in {"http", "https"} or not hostname:
        return False
    return not any(char.isspace() for char in url)


def _exception_chain(exc: BaseException) -> Iterator[BaseException]:
    """Yield ``exc`` and everything it wraps (causes, contexts, urllib3 reasons)."""
    seen: set[int] = set()
    stack: list[object] = [exc]
    while stack:
        current = stack.pop()
        if not isinstance(current, BaseException) or id(current) in seen:
            continue
        seen.add(id(current))
        yield current
        stack.extend(current.args)
        stack.append(getattr(current, "reason", None))
        stack.append(current.__cause__)
        stack.append(current.__context__)


def classify_connection_error(exc: BaseException) -> str:
    """Map a ``requests`` failure onto the fixed error taxonomy."""
    chain = list(_exception_chain(exc))
    text = " ".join(str(item) for item in chain).lower()

    if isinstance(exc, requests.exceptions.Timeout) or any(
        isinstance(item, (socket.timeout, TimeoutError)) for item in chain
    ):
        return REQUEST_TIMEOUT

    if isinstance(exc, requests.exceptions.SSLError):
        if "certificate has expired" in text or "certificate_expired" in text:
            return SSL_CERT_EXPIRED
        return SSL_VERIFICATION_FAILED

    if any(isinstance(item, socket.gaierror) for item in chain) or any(
        type(item).__name__ == "NameResolutionError" for item in chain
    ):
        return DOMAIN_NOT_FOUND
    if any(marker in text for marker in _DNS_FAILURE_MARKERS):
        return DOMAIN_NOT_FOUND

    if any(isinstance(item, ConnectionRefusedError) for item in chain) or "connection refused" in text:
        return CONNECTION_REFUSED

    if isinstance(exc, (requests.exceptions.InvalidURL, requests.exceptions.MissingSchema)):
        return INVALID_URL_FORMAT

    return CONNECTION_FAILED


class UrlVerifier:
    """Decides whether a resource URL can be marked as verified."""

    def __init__(
        self,
        known_domains: Iterable[str],
        *,
        strict_tls: bool = True,
        timeout: float = 10.0,
        concurrency: int = 5,
        dispatch_delay: float = 0.1,
        user_agent: str | None = None,
        session: requests.Session | None = None,
    ):
        self.known_domains = frozenset(d.strip().lower() for d in known_domains if d and d.strip())
        self.strict_tls = strict_tls
        self.timeout = timeout
        self.concurrency = concurrency
        self.dispatch_delay = dispatch_delay
        self.user_agent = user_agent or settings.URL_VERIFICATION_USER_AGENT
        self.session = session or requests.Session()

    @classmethod
    def from_settings(
        cls,
        deployment_mode: str | None = None,
        *,
        session: requests.Session | None = None,
    ) -> "UrlVerifier":
        mode = (deployment_mode or settings.ENVIRONMENT or "").strip().lower()
        return cls(
            settings.KNOWN_PLATFORM_DOMAINS,
            strict_tls=mode == "production",
            timeout=settings.URL_VERIFICATION_TIMEOUT_SECONDS,
            concurrency=settings.URL_VERIFICATION_CONCURRENCY,
            dispatch_delay=settings.URL_VERIFICATION_DISPATCH_DELAY_SECONDS,
            session=session,
        )

    # ------------------------------------------------------------------
    # Allow-list fast path
    # ------------------------------------------------------------------
    def is_known_authentic_platform(self, url: str | None) -> bool:
        """Return True when the URL host contains a known platform domain.

        Pure and offline. Any scheme is accepted as long as the URL parses
        with a hostname; everything else is rejected.
        """
        if not url or not isinstance(url, str):
            return False
        try:
            parts = urlsplit(url.strip())
            hostname = parts.hostname
        except ValueError:
            return False
        if not parts.scheme or not hostname:
            return False
        if any(char.isspace() for char in hostname):
            return False

        hostname = hostname.lower()
        if hostname.startswith("www."):
            hostname = hostname[4:]
        return any(domain in hostname for domain in self.known_domains)

    # ------------------------------------------------------------------
    # Network probe
    # ------------------------------------------------------------------
    def verify_url(self, url: str | None, timeout: float | None = None) -> VerificationResult:
        if not url or not isinstance(url, str) or not url.strip():
            return VerificationResult(is_valid=False, error=INVALID_URL_STRING)

        target = normalize_url(url)
        if not _is_well_formed(target):
            return VerificationResult(is_valid=False, error=INVALID_URL_FORMAT)

        headers = {
            "User-Agent": self.user_agent,
            "Accept": "*/*",
            "Accept-Language": "en-US,en;q=0.9",
        }
        try:
            response = self.session.head(
                target,
                timeout=timeout or self.timeout,
                allow_redirects=False,
                verify=self.strict_tls,
                headers=headers,
            )
        except requests.RequestException as exc:
            error = classify_connection_error(exc)
            logger.info("URL probe failed for %s: %s (%s)", target, error, exc)
            return VerificationResult(is_valid=False, error=error)

        status_code = response.status_code
        response.close()
        if 200 <= status_code < 400:
            return VerificationResult(is_valid=True, status_code=status_code)
        return VerificationResult(is_valid=False, status_code=status_code, error=f"HTTP {status_code}")

    async def verify_many(self, urls: Iterable[str], concurrency: int | None = None) -> list[UrlCheck]:
        """Probe ``urls`` with at most ``concurrency`` requests in flight.

        Workers pull from one shared queue and pause ``dispatch_delay``
        seconds after each probe. A probe that has not answered within
        ``timeout`` seconds overall counts as a timeout even if the socket
        keeps trickling data. Results keep the input order.
        """
        pending = deque(enumerate(urls))
        results: list[UrlCheck | None] = [None] * len(pending)
        limit = max(1, concurrency or self.concurrency)

        async def worker() -> None:
            while pending:
                index, url = pending.popleft()
                try:
                    result = await asyncio.wait_for(asyncio.to_thread(self.verify_url, url), timeout=self.timeout)
                except asyncio.TimeoutError:
                    logger.info("URL probe for %s exceeded %ss", url, self.timeout)
                    result = VerificationResult(is_valid=False, error=REQUEST_TIMEOUT)
                results[index] = UrlCheck(url=url, result=result)
                if self.dispatch_delay:
                    await asyncio.sleep(self.dispatch_delay)

        await asyncio.gather(*(worker() for _ in range(min(limit, len(pending)))))
        return [check for check in results if check is not None]

    # ------------------------------------------------------------------
    # Decision policy
    # ------------------------------------------------------------------
    def decide(self, url: str | None) -> TrustDecision:
        """Allow-list first, live probe otherwise."""
        now = datetime.now(timezone.utc)
        if self.is_known_authentic_platform(url):
            return TrustDecision(verified=True, source=SOURCE_ALLOW_LIST, checked_at=now)

        result = self.verify_url(url)
        return self.decision_from_result(result, checked_at=now)

    @staticmethod
    def decision_from_result(result: VerificationResult, *, checked_at: datetime | None = None) -> TrustDecision:
        error = None if result.is_valid else (result.error or "URL verification failed")
        return TrustDecision(
            verified=result.is_valid,
            source=SOURCE_PROBE,
            error=error,
            status_code=result.status_code,
            checked_at=checked_at or datetime.now(timezone.utc),
        )


def decide_verification(
    url: str | None,
    deployment_mode: str | None = None,
    *,
    verifier: UrlVerifier | None = None,
) -> TrustDecision:
    verifier = verifier or UrlVerifier.from_settings(deployment_mode)
    return verifier.decide(url)
