"""Mail provider detection for an email address.

Resolution order: static known-domain table, cached result, live MX
lookup. DNS failures fall back to "unknown" and are not cached so the
next attempt can succeed.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, replace

import dns.exception
import dns.resolver

from labelforge.cache import TTLCache

logger = logging.getLogger(__name__)

UNKNOWN = "unknown"

DEFAULT_TTL = 24 * 60 * 60

KNOWN_DOMAINS = {
    "gmail.com": "gmail",
    "googlemail.com": "gmail",
    "outlook.com": "outlook",
    "hotmail.com": "outlook",
    "live.com": "outlook",
    "msn.com": "outlook",
    "office365.com": "outlook",
}

# MX host suffixes, checked in order
MX_SIGNATURES = (
    ("google.com", "gmail"),
    ("googlemail.com", "gmail"),
    ("protection.outlook.com", "outlook"),
    ("outlook.com", "outlook"),
)

Resolver = Callable[[str], list[str]]


@dataclass(frozen=True)
class Detection:
    """Outcome of provider detection.

    Attributes:
        provider: "gmail", "outlook" or "unknown".
        domain: Lower-cased domain of the address.
        method: "known_domain", "cache", "mx_lookup" or "fallback".
        confidence: 0.0 - 1.0.
    """

    provider: str
    domain: str
    method: str
    confidence: float

    @property
    def is_known(self) -> bool:
        return self.provider != UNKNOWN


def dns_mx_resolver(domain: str) -> list[str]:
    """Return the MX exchange hosts for a domain, lower-cased without trailing dot."""
    answers = dns.resolver.resolve(domain, "MX", lifetime=5.0)
    return [str(answer.exchange).rstrip(".").lower() for answer in answers]


def _domain_of(email: str) -> str:
    local, sep, domain = email.strip().rpartition("@")
    domain = domain.strip().lower().rstrip(".")
    if not sep or not local or not domain:
        raise ValueError(f"Invalid email address: {email!r}")
    return domain


def _match_mx(hosts: list[str]) -> str | None:
    for host in hosts:
        for suffix, provider in MX_SIGNATURES:
            if host == suffix or host.endswith("." + suffix):
                return provider
    return None


class ProviderDetector:
    """Detect which mail provider hosts an address.

    Example:
        detector = ProviderDetector()
        detector.detect("ops@acme-hvac.com")
        # Detection(provider='outlook', domain='acme-hvac.com', method='mx_lookup', confidence=0.9)
    """

    def __init__(self, cache: TTLCache | None = None, resolver: Resolver = dns_mx_resolver):
        self._cache = cache if cache is not None else TTLCache(ttl=DEFAULT_TTL)
        self._resolver = resolver

    def detect(self, email: str) -> Detection:
        """Detect the provider for an email address.

        Raises:
            ValueError: If the address has no local part or domain.
        """
        domain = _domain_of(email)

        known = KNOWN_DOMAINS.get(domain)
        if known:
            return Detection(known, domain, "known_domain", 1.0)

        cached = self._cache.get(domain)
        if cached is not None:
            return replace(cached, method="cache")

        try:
            hosts = self._resolver(domain)
        except dns.exception.DNSException as e:
            logger.warning("MX lookup for %s failed: %s", domain, e)
            return Detection(UNKNOWN, domain, "fallback", 0.0)

        provider = _match_mx(hosts)
        if provider:
            detection = Detection(provider, domain, "mx_lookup", 0.9)
        else:
            logger.debug("No provider signature in MX hosts for %s: %s", domain, hosts)
            detection = Detection(UNKNOWN, domain, "mx_lookup", 0.3)

        self._cache.set(domain, detection)
        return detection
