"""Ordering of scan results for the history and community lists."""

from datetime import datetime, timezone
from typing import Iterable, List

from safelink.app.tiers import BE_CAREFUL, HIGH_RISK, SAFE
from safelink.models import ScanResult

# Riskiest first; unknown tiers sort last
TIER_SEVERITY = {HIGH_RISK: 0, BE_CAREFUL: 1, SAFE: 2}
UNKNOWN_SEVERITY = len(TIER_SEVERITY)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _timestamp(result: ScanResult) -> float:
    try:
        ts = datetime.fromisoformat(result.timestamp)
    except (TypeError, ValueError):
        ts = _EPOCH
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return (ts - _EPOCH).total_seconds()


def _severity(result: ScanResult) -> int:
    return TIER_SEVERITY.get(result.tier, UNKNOWN_SEVERITY)


def history_key(result: ScanResult):
    return (_severity(result), -(result.dislikes or 0), -_timestamp(result))


def community_key(result: ScanResult):
    return (_severity(result), -(result.dislikes or 0), -(result.likes or 0), -_timestamp(result))


def rank_history(results: Iterable[ScanResult]) -> List[ScanResult]:
    """Tier (riskiest first), then most disliked, then newest."""
    return sorted(results, key=history_key)


def rank_community(results: Iterable[ScanResult]) -> List[ScanResult]:
    """Tier (riskiest first), then most disliked, then most liked, then newest."""
    return sorted(results, key=community_key)
