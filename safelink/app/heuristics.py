"""
heuristics.py

URL normalisation and the individual rule checks used by the scoring engine.

Public functions:
    parse_host(raw: str) -> (host, path)
    canonical_key(url: str) -> str
    normalize_url(raw: str) -> str
    validate_input(raw: str) -> bool
    is_shortener_host, has_urgency_language, estimate_domain_age,
    estimate_ssl_validity, estimate_blacklisted, estimate_excessive_redirects,
    is_clean_domain_shape, is_known_safe_domain

Domain age, SSL validity, blacklist and redirect checks are offline estimates.
They are grouped in a Checks bundle so real lookups can replace them without
touching the scorer.

Example:
    >>> parse_host("example.com/login?next=/")
    ('example.com', '/login?next=/')
"""

import re
from typing import Callable, NamedTuple, Tuple
from urllib.parse import urlparse

# Configuration: lists and thresholds (tweakable)
KNOWN_SAFE_DOMAINS = {"google.com", "apple.com", "microsoft.com", "amazon.com"}

SHORTENER_DOMAINS = {
    "bit.ly", "tinyurl.com", "goo.gl", "t.co", "ow.ly",
    "buff.ly", "rb.gy", "short.ly", "is.gd",
}

URGENCY_KEYWORDS = (
    "verify", "reset", "update", "confirm", "secure", "account", "login",
    "unauthorized", "suspend", "password", "malware", "scam", "phish",
    "download", "virus",
)

BLACKLIST_MARKERS = ("badsite", "phish", "malicious", "malware-download")
BAD_CERT_MARKERS = ("selfsigned", "invalid-cert", "testcert")
REDIRECT_MARKERS = ("redirect", "redir", "continue", "next=", "returnurl")

YOUNG_DOMAIN_MARKERS = ("new-", "recent", "young")
OLD_DOMAIN_MARKERS = ("old-", "established")

KNOWN_DOMAIN_AGE_DAYS = 365 * 10
YOUNG_DOMAIN_AGE_DAYS = 12
MIN_DOMAIN_AGE_DAYS = 10
MAX_DOMAIN_AGE_DAYS = 365 * 3
DAYS_PER_HOST_CHAR = 20

CLEAN_MAX_LABELS = 3
CLEAN_MAX_LENGTH = 25

SCHEME_RE = re.compile(r'^[a-zA-Z][a-zA-Z\d+.-]*://')
HOSTNAME_INPUT_RE = re.compile(r'^([a-zA-Z0-9-]+\.)+[a-zA-Z]{2,}(/.*)?$')
HTTP_INPUT_RE = re.compile(r'^https?://')
URGENCY_RE = re.compile("|".join(URGENCY_KEYWORDS), re.IGNORECASE)
# Characters not allowed in a storage key
ILLEGAL_KEY_CHARS_RE = re.compile(r'[.#$/\[\]]')


def _ensure_scheme(url: str) -> str:
    """Ensure URL has a scheme so urlparse works predictably."""
    if not SCHEME_RE.match(url):
        return 'https://' + url
    return url


def _matches_domain(host: str, domains) -> bool:
    """True if host is one of domains or a subdomain of one."""
    host = host.lower().rstrip('.')
    return any(host == d or host.endswith('.' + d) for d in domains)


def parse_host(raw: str) -> Tuple[str, str]:
    """
    Split raw user input into (host, path). Never raises.

    Input without a scheme is treated as https. When the input cannot be
    parsed, the host is everything up to the first '/' and the path is the rest.
    """
    raw = (raw or '').strip()
    try:
        parsed = urlparse(_ensure_scheme(raw))
        host = parsed.hostname
        if not host:
            raise ValueError(f"no hostname in {raw!r}")
        path = parsed.path + (('?' + parsed.query) if parsed.query else '')
        return host, path
    except ValueError:
        host = raw.split('/', 1)[0]
        path = raw[raw.index('/'):] if '/' in raw else ''
        return host, path


def canonical_key(url: str) -> str:
    """
    Storage-safe key for a URL's community state.

    Scheme, host case and trailing slashes do not change the key; the query
    string is ignored.
    """
    raw = (url or '').strip()
    try:
        parsed = urlparse(_ensure_scheme(raw))
        if not parsed.hostname:
            raise ValueError(f"no hostname in {raw!r}")
        host_part = ILLEGAL_KEY_CHARS_RE.sub('_', parsed.hostname)
        path_part = ILLEGAL_KEY_CHARS_RE.sub('_', parsed.path.rstrip('/'))
        return host_part + path_part
    except ValueError:
        return ILLEGAL_KEY_CHARS_RE.sub('_', raw)


def normalize_url(raw: str) -> str:
    """Trimmed URL with https:// prepended when no scheme was given."""
    return _ensure_scheme((raw or '').strip())


def validate_input(raw: str) -> bool:
    """Accept 'example.com[/path]' or anything starting with http(s)://."""
    if not raw or not raw.strip():
        return False
    value = raw.strip()
    return bool(HOSTNAME_INPUT_RE.match(value) or HTTP_INPUT_RE.match(value))


def is_known_safe_domain(host: str) -> bool:
    return _matches_domain(host, KNOWN_SAFE_DOMAINS)


def is_shortener_host(host: str) -> bool:
    return _matches_domain(host, SHORTENER_DOMAINS)


def has_urgency_language(text: str) -> bool:
    """True if text contains a high-pressure / phishing-adjacent keyword."""
    return bool(URGENCY_RE.search(text or ''))


def estimate_domain_age(host: str) -> int:
    """
    Estimated domain age in days, bounded to [10, 1095] for unknown hosts.

    Offline stand-in for a WHOIS lookup (see ssl_check.whois_domain_age).
    """
    host = (host or '').lower()
    if is_known_safe_domain(host):
        return KNOWN_DOMAIN_AGE_DAYS
    if any(m in host for m in YOUNG_DOMAIN_MARKERS):
        return YOUNG_DOMAIN_AGE_DAYS
    if any(m in host for m in OLD_DOMAIN_MARKERS):
        return MAX_DOMAIN_AGE_DAYS
    return min(MAX_DOMAIN_AGE_DAYS, max(MIN_DOMAIN_AGE_DAYS, len(host) * DAYS_PER_HOST_CHAR))


def estimate_ssl_validity(url: str) -> bool:
    """False for plaintext URLs or known-bad certificate markers."""
    url = (url or '').strip().lower()
    if any(m in url for m in BAD_CERT_MARKERS):
        return False
    return not url.startswith('http://')


def estimate_blacklisted(host: str) -> bool:
    host = (host or '').lower()
    return any(m in host for m in BLACKLIST_MARKERS)


def estimate_excessive_redirects(url: str) -> bool:
    """Redirect parameters in the URL, or a URL shortener host."""
    lowered = (url or '').lower()
    if any(m in lowered for m in REDIRECT_MARKERS):
        return True
    host, _ = parse_host(url)
    return is_shortener_host(host)


def is_clean_domain_shape(host: str) -> bool:
    """Major domain, or a short hyphen-free host with at most three labels."""
    if is_known_safe_domain(host):
        return True
    parts = host.split('.')
    return len(parts) <= CLEAN_MAX_LABELS and len(host) < CLEAN_MAX_LENGTH and '-' not in host


class Checks(NamedTuple):
    """Replaceable lookups used by the scorer. Signatures must not change."""
    ssl_valid: Callable[[str], bool]            # (url) -> bool
    blacklisted: Callable[[str], bool]          # (host) -> bool
    domain_age: Callable[[str], int]            # (host) -> days
    excessive_redirects: Callable[[str], bool]  # (url) -> bool


DEFAULT_CHECKS = Checks(
    ssl_valid=estimate_ssl_validity,
    blacklisted=estimate_blacklisted,
    domain_age=estimate_domain_age,
    excessive_redirects=estimate_excessive_redirects,
)


def live_checks() -> Checks:
    """Checks bundle using certificate retrieval and WHOIS where available."""
    from safelink.app.ssl_check import live_domain_age, live_ssl_validity

    return DEFAULT_CHECKS._replace(ssl_valid=live_ssl_validity, domain_age=live_domain_age)
