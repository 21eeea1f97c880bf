"""URL canonicalization for media reference deduplication.

This module turns raw observed URLs into a stable comparison key. Hosts
recognized as trusted CDN/platform domains get conservative cleaning that
keeps signed-link parameters intact; other hosts additionally lose common
campaign and click-id parameters. Canonicalization is best-effort: a URL
that cannot be parsed is returned unchanged instead of raising.
"""

import logging
import re
from typing import Iterable, NamedTuple, Optional, Tuple
from urllib.parse import urlsplit, urlunsplit, unquote_plus

from ..config.settings import (
    DEFAULT_AUTH_PARAMS,
    DEFAULT_BYTE_RANGE_PARAMS,
    DEFAULT_HEAVY_TRACKING_PARAMS,
    DEFAULT_TRACKING_PARAMS,
    DEFAULT_TRUSTED_DOMAINS,
    URLSettings,
)

logger = logging.getLogger(__name__)

_ABSOLUTE_RE = re.compile(r'^https?://', re.IGNORECASE)
_PASSTHROUGH_SCHEMES = ('data:', 'blob:')
_EMPTY_VALUES = {'', 'undefined', 'null'}
_DEFAULT_PORTS = {'http': '80', 'https': '443'}


class URLCanonicalizationError(Exception):
    """Raised internally when a URL cannot be canonicalized."""
    pass


class CanonicalURL(NamedTuple):
    """Result of canonicalization; unpacks as (canonical, display, trusted)."""
    canonical_url: str
    display_url: str
    trusted: bool


def is_passthrough(url: str) -> bool:
    """Check whether a URL uses a scheme that is kept verbatim (data:, blob:)."""
    return isinstance(url, str) and url.strip().lower().startswith(_PASSTHROUGH_SCHEMES)


def is_capturable(url: str) -> bool:
    """Check whether a canonicalized URL can be stored as a media reference.

    Args:
        url: Canonical URL

    Returns:
        True for absolute http(s) URLs and data:/blob: URLs
    """
    if not isinstance(url, str):
        return False
    return bool(_ABSOLUTE_RE.match(url)) or is_passthrough(url)


def _normalize_netloc(scheme: str, netloc: str) -> str:
    """Lowercase the host, punycode IDNs and drop default ports.

    Args:
        scheme: Lowercased URL scheme
        netloc: Raw netloc component

    Returns:
        Normalized netloc
    """
    userinfo, at, host_port = netloc.rpartition('@')
    host_port = host_port.lower()

    if host_port.startswith('['):
        # [IPv6] with optional :port
        host, bracket, rest = host_port.partition(']')
        if not bracket:
            raise URLCanonicalizationError(f"Malformed IPv6 host: {netloc}")
        host = host + ']'
        port = rest[1:] if rest.startswith(':') else ''
    else:
        host, _, port = host_port.partition(':')
        try:
            host = host.encode('idna').decode('ascii')
        except UnicodeError:
            # Keep hosts the idna codec rejects (underscores, long labels)
            pass

    if not host or host == '[]':
        raise URLCanonicalizationError(f"URL missing host: {netloc}")

    if port and not port.isdigit():
        raise URLCanonicalizationError(f"Invalid port: {port}")
    if port and _DEFAULT_PORTS.get(scheme) == str(int(port)):
        port = ''

    host_port = f"{host}:{int(port)}" if port else host
    return f"{userinfo}@{host_port}" if at else host_port


def _host_forms(host: str) -> Tuple[str, ...]:
    """Return a lowercased host in its given, punycode and Unicode spellings."""
    forms = [host]
    try:
        forms.append(host.encode('idna').decode('ascii'))
    except UnicodeError:
        pass
    try:
        forms.append(host.encode('ascii').decode('idna'))
    except UnicodeError:
        pass
    return tuple(forms)


class URLCanonicalizer:
    """Canonicalizes URLs against configured trusted domains and parameter lists."""

    def __init__(
        self,
        trusted_domains: Optional[Iterable[str]] = None,
        tracking_params: Optional[Iterable[str]] = None,
        heavy_tracking_params: Optional[Iterable[str]] = None,
        byte_range_params: Optional[Iterable[str]] = None,
        auth_params: Optional[Iterable[str]] = None,
    ):
        """Initialize canonicalizer.

        Args:
            trusted_domains: Host substrings identifying trusted CDN/platform hosts
            tracking_params: Generic tracking parameters removed everywhere
            heavy_tracking_params: Campaign/referral/click-id parameters removed
                from untrusted hosts only
            byte_range_params: Byte-range markers removed everywhere
            auth_params: Parameter name stems that are always preserved
        """
        def _lower(values, default):
            return tuple(v.lower() for v in (default if values is None else values) if v)

        self.trusted_domains = _lower(trusted_domains, DEFAULT_TRUSTED_DOMAINS)
        self.tracking_params = frozenset(_lower(tracking_params, DEFAULT_TRACKING_PARAMS))
        self.heavy_tracking_params = frozenset(
            _lower(heavy_tracking_params, DEFAULT_HEAVY_TRACKING_PARAMS)
        )
        self.byte_range_params = frozenset(_lower(byte_range_params, DEFAULT_BYTE_RANGE_PARAMS))
        self.auth_params = _lower(auth_params, DEFAULT_AUTH_PARAMS)

    @classmethod
    def from_settings(cls, settings: URLSettings) -> "URLCanonicalizer":
        """Build a canonicalizer from URL settings."""
        return cls(
            trusted_domains=settings.trusted_domains,
            tracking_params=settings.tracking_params,
            heavy_tracking_params=settings.heavy_tracking_params,
            byte_range_params=settings.byte_range_params,
            auth_params=settings.auth_params,
        )

    def is_trusted_host(self, host: Optional[str]) -> bool:
        """Case-insensitive substring match of a host against trusted domains.

        Both the Unicode and the punycode spelling of an IDN host are
        matched, so a host keeps its trust after being punycoded.
        """
        if not host:
            return False
        forms = _host_forms(host.lower())
        return any(domain in form for domain in self.trusted_domains for form in forms)

    def is_trusted_url(self, url: str) -> bool:
        """Check whether an http(s) URL is hosted on a trusted domain."""
        if not isinstance(url, str) or is_passthrough(url):
            return False
        try:
            return self.is_trusted_host(urlsplit(url.strip()).hostname)
        except ValueError:
            return False

    def _is_auth_param(self, name: str) -> bool:
        return any(
            name == stem or name.startswith(stem) or name.endswith(stem)
            for stem in self.auth_params
        )

    def _filter_query(self, query: str, trusted: bool) -> str:
        """Drop removable parameters, keeping order and raw encoding of the rest."""
        if not query:
            return ''

        kept = []
        for pair in query.split('&'):
            if not pair:
                continue
            raw_name, _, raw_value = pair.partition('=')
            name = unquote_plus(raw_name).strip().lower()
            value = unquote_plus(raw_value).strip().lower()
            if not name or value in _EMPTY_VALUES:
                continue
            if self._is_auth_param(name):
                kept.append(pair)
                continue
            if name in self.byte_range_params or name in self.tracking_params:
                continue
            if name.startswith('utm_'):
                continue
            if not trusted and name in self.heavy_tracking_params:
                continue
            kept.append(pair)

        return '&'.join(kept)

    def _clean(self, url: str) -> Tuple[str, bool]:
        parts = urlsplit(url)
        scheme = parts.scheme.lower()
        netloc = _normalize_netloc(scheme, parts.netloc)
        trusted = self.is_trusted_host(parts.hostname)
        path = parts.path or '/'
        query = self._filter_query(parts.query, trusted)
        # Fragments are never sent to the server
        return urlunsplit((scheme, netloc, path, query, '')), trusted

    def canonicalize(self, raw_url: str) -> CanonicalURL:
        """Canonicalize a raw observed URL.

        Args:
            raw_url: URL as observed

        Returns:
            CanonicalURL; the input unchanged for data:/blob:, non-absolute
            and unparseable URLs

        Example:
            >>> URLCanonicalizer().canonicalize("//cdn.example.com/v.mp4?utm_source=x")
            CanonicalURL(canonical_url='https://cdn.example.com/v.mp4', ...)
        """
        if not isinstance(raw_url, str):
            return CanonicalURL(raw_url, raw_url, False)

        url = raw_url.strip()
        if is_passthrough(url):
            return CanonicalURL(url, url, False)

        if url.startswith('//'):
            url = 'https:' + url

        if not _ABSOLUTE_RE.match(url):
            return CanonicalURL(raw_url, raw_url, False)

        try:
            cleaned, trusted = self._clean(url)
        except (URLCanonicalizationError, ValueError) as e:
            logger.debug(f"Leaving URL uncanonicalized: {e}")
            return CanonicalURL(raw_url, raw_url, False)

        return CanonicalURL(cleaned, cleaned, trusted)


_default_canonicalizer = URLCanonicalizer()


def canonicalize(raw_url: str) -> CanonicalURL:
    """Canonicalize a URL with the default trusted-domain and parameter lists."""
    return _default_canonicalizer.canonicalize(raw_url)
