"""
scanner.py

Rule-based scoring (0..10 safety) and the scan pipeline.

Public functions:
    score_url(raw: str, checks: Checks = None) -> ScanResult
    build_reasons(safety: int, breakdown: dict) -> list
    scan(raw: str, ...) -> ScanResult

Scoring starts at 0 and applies fixed integer points per check:

    https               +2 / 0
    ssl                 +2 / 0
    blacklisted         +2 / -2
    cleanDomain         +1 / 0
    suspiciousKeywords  +1 / -1
    domainAge           +1 / 0
    redirects           +1 / -1

The total is clamped to 0..10.
"""

import logging
from typing import Callable, Dict, List, Optional

from safelink import config
from safelink.app.heuristics import (
    DEFAULT_CHECKS,
    Checks,
    has_urgency_language,
    is_clean_domain_shape,
    is_known_safe_domain,
    live_checks,
    normalize_url,
    parse_host,
    validate_input,
)
from safelink.app.reachability import is_domain_valid
from safelink.app.threat_intel import run_external_check, should_auto_check
from safelink.app.tiers import BE_CAREFUL_MAX, tier_of
from safelink.models import ScanResult

logger = logging.getLogger("scanner")

MAX_SAFETY = 10
ESTABLISHED_AGE_DAYS = 180

# Caution messages, in the order they are listed
CAUTIONS = (
    ("blacklisted", -2, "Domain is flagged on threat lists."),
    ("suspiciousKeywords", -1, "URL contains suspicious, urgent keywords."),
    ("redirects", -1, "Excessive redirects or shortener detected."),
    ("https", 0, "Missing HTTPS for a secure connection."),
    ("ssl", 0, "Missing or invalid SSL Certificate."),
    ("domainAge", 0, "Domain is less than 6 months old."),
)

CONFIRMATIONS = (
    ("https", 2, "Uses HTTPS for a secure connection."),
    ("ssl", 2, "Valid SSL Certificate detected."),
    ("blacklisted", 2, "Domain is not flagged on threat lists."),
    ("cleanDomain", 1, "Domain name is short and clean."),
    ("suspiciousKeywords", 1, "No suspicious keywords found."),
    ("domainAge", 1, "Domain is established (over 6 months old)."),
    ("redirects", 1, "No excessive redirects detected."),
)

NO_FLAGS_REASON = "Analysis complete. No specific flags found, but score is 0. Check for valid domain format."


class InvalidURLError(ValueError):
    """Input is not a usable address."""


class UnreachableDomainError(Exception):
    """The domain does not exist or cannot be reached."""


def _default_checks() -> Checks:
    return live_checks() if config.LIVE_CHECKS else DEFAULT_CHECKS


def build_reasons(safety: int, breakdown: Dict[str, int]) -> List[str]:
    """Cautions first for risky scores; confirmations when nothing is wrong or the score is Safe."""
    reasons = []
    if safety <= BE_CAREFUL_MAX:
        reasons = [msg for key, value, msg in CAUTIONS if breakdown.get(key) == value]
    if not reasons or safety > BE_CAREFUL_MAX:
        reasons.extend(msg for key, value, msg in CONFIRMATIONS if breakdown.get(key) == value)
    if not reasons:
        reasons.append(NO_FLAGS_REASON)
    return reasons


def score_url(raw: str, checks: Optional[Checks] = None) -> ScanResult:
    """
    Score raw user input. Never raises: malformed input falls back to the
    best-effort host split in parse_host.
    """
    checks = checks or _default_checks()
    raw = (raw or "").strip()
    host, _ = parse_host(raw)
    lower_host = host.lower()
    lower_url = raw.lower()

    breakdown = {}

    is_https = lower_url.startswith("https://")
    known_safe = is_known_safe_domain(lower_host) and not lower_url.startswith("http://")
    breakdown["https"] = 2 if (is_https or known_safe) else 0

    breakdown["ssl"] = 2 if checks.ssl_valid(raw) else 0
    breakdown["blacklisted"] = -2 if checks.blacklisted(host) else 2
    breakdown["cleanDomain"] = 1 if is_clean_domain_shape(host) else 0

    suspicious = has_urgency_language(lower_host) or has_urgency_language(lower_url)
    breakdown["suspiciousKeywords"] = -1 if suspicious else 1

    breakdown["domainAge"] = 1 if checks.domain_age(host) > ESTABLISHED_AGE_DAYS else 0
    breakdown["redirects"] = -1 if checks.excessive_redirects(raw) else 1

    safety = max(0, min(MAX_SAFETY, int(round(sum(breakdown.values())))))
    tier, color = tier_of(safety)
    positive = sum(v for v in breakdown.values() if v > 0)
    confidence = max(0.0, min(1.0, positive / MAX_SAFETY))

    return ScanResult(
        url=normalize_url(raw),
        safety=safety,
        tier=tier,
        color=color,
        confidence=confidence,
        reasons=build_reasons(safety, breakdown),
        breakdown=breakdown,
    )


def scan(
    raw: str,
    checks: Optional[Checks] = None,
    gate: Callable[[str], bool] = None,
    lookup: Callable[[str], Optional[dict]] = None,
    auto_external: bool = True,
) -> ScanResult:
    """
    Full pipeline: validate input, check the domain exists, score, and run the
    external check straight away for middle-tier results.

    Raises InvalidURLError or UnreachableDomainError before any scoring.
    """
    if not validate_input(raw):
        raise InvalidURLError("Please enter a valid address like example.com or https://example.com")

    gate = gate or is_domain_valid
    host, _ = parse_host(raw)
    if not gate(host):
        raise UnreachableDomainError("The domain does not exist or cannot be reached.")

    result = score_url(raw, checks=checks)
    logger.info("Scored %s: safety=%d tier=%s", result.url, result.safety, result.tier)

    if auto_external and should_auto_check(result):
        result = run_external_check(result, lookup=lookup)
    return result
