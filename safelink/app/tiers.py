"""Risk tier classification. The only place the score thresholds live."""

from typing import Tuple

HIGH_RISK = "High Risk"
BE_CAREFUL = "Be Careful"
SAFE = "Safe"

TIERS = (HIGH_RISK, BE_CAREFUL, SAFE)

TIER_COLORS = {
    HIGH_RISK: "#ef4444",
    BE_CAREFUL: "#f59e0b",
    SAFE: "#10b981",
}

HIGH_RISK_MAX = 3
BE_CAREFUL_MAX = 6


def tier_of(safety: int) -> Tuple[str, str]:
    """Map a 0..10 safety score to (tier, color)."""
    if safety <= HIGH_RISK_MAX:
        tier = HIGH_RISK
    elif safety <= BE_CAREFUL_MAX:
        tier = BE_CAREFUL
    else:
        tier = SAFE
    return tier, TIER_COLORS[tier]
