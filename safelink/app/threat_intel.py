"""
threat_intel.py

Second opinion from the remote reputation service, folded into an existing
scan result.

Public functions:
    lookup_reputation(url: str) -> dict | None
    did_all_checks_fail(checks) -> bool
    reconcile(result: ScanResult, response: dict | None) -> ScanResult
    should_auto_check(result) -> bool
    can_run_check(result) -> bool
    run_external_check(result, lookup=None) -> ScanResult

The service answers:
    {
        "finalVerdict": "malicious" | "suspicious" | ...,
        "summary": "...",
        "checks": {"<name>": {"status": "...", "details": "...", "checked": true}}
    }

A verdict can only lower the safety score. Reconciliation happens at most
once per result.

Requirements:
    pip install requests
"""

import logging
from dataclasses import replace
from typing import Any, Callable, Dict, Optional

import requests

from safelink import config
from safelink.app.tiers import BE_CAREFUL_MAX, HIGH_RISK_MAX
from safelink.models import ApiCheck, ScanResult

logger = logging.getLogger("threat_intel")

FAILED_NOTE = "External API scan failed"

# Highest safety allowed after each verdict
VERDICT_CAPS = {
    "malicious": 1,
    "suspicious": 4,
}


def lookup_reputation(url: str, timeout: float = None) -> Optional[Dict[str, Any]]:
    """
    POST the URL to the reputation service. Returns the decoded response, or
    None on any transport error, non-success status or non-JSON body.
    """
    timeout = config.REPUTATION_TIMEOUT if timeout is None else timeout
    try:
        resp = requests.post(config.REPUTATION_URL, json={"url": url}, timeout=timeout)
    except requests.RequestException as e:
        logger.error("Reputation lookup failed for %s: %s", url, e)
        return None
    if not resp.ok:
        logger.error("Reputation API error for %s: HTTP %s", url, resp.status_code)
        return None
    try:
        data = resp.json()
    except ValueError:
        logger.error("Reputation API returned invalid JSON for %s", url)
        return None
    if not isinstance(data, dict):
        logger.error("Reputation API returned unexpected payload for %s", url)
        return None
    return data


def did_all_checks_fail(checks: Optional[Dict[str, Any]]) -> bool:
    """True when every sub-check is unchecked or errored. A missing mapping is not a failure."""
    if checks is None:
        return False
    return all(
        not isinstance(c, dict) or c.get("checked") is False or c.get("status") == "error"
        for c in checks.values()
    )


def reconcile(result: ScanResult, response: Optional[Dict[str, Any]]) -> ScanResult:
    """Return a copy of result with the remote verdict applied. No-op once already reconciled."""
    if result.api_check is not None and result.api_check.done:
        return result

    checks = response.get("checks") if response else None
    if not isinstance(checks, dict):
        checks = None
    if response is None or did_all_checks_fail(checks):
        logger.warning("External check failed for %s; keeping safety %d", result.url, result.safety)
        return replace(result, api_check=ApiCheck(note=FAILED_NOTE, failed=True, checks={}))

    verdict = response.get("finalVerdict") or response.get("final_verdict")
    safety = result.safety
    cap = VERDICT_CAPS.get(verdict)
    if cap is not None:
        safety = min(safety, cap)

    updated = result.with_safety(safety)
    api_check = ApiCheck(note=response.get("summary") or "", failed=False, checks=dict(checks or {}))
    logger.info("External verdict %r for %s: safety %d -> %d", verdict, result.url, result.safety, updated.safety)
    return replace(updated, api_check=api_check)


def _done(result: ScanResult) -> bool:
    return result.api_check is not None and result.api_check.done


def should_auto_check(result: ScanResult) -> bool:
    """Middle-tier results get the external check without being asked."""
    return HIGH_RISK_MAX < result.safety <= BE_CAREFUL_MAX and not _done(result)


def can_run_check(result: ScanResult) -> bool:
    """Manual trigger is available unless already done or the result is already High Risk."""
    return result.safety > HIGH_RISK_MAX and not _done(result)


def run_external_check(
    result: ScanResult,
    lookup: Callable[[str], Optional[Dict[str, Any]]] = None,
) -> ScanResult:
    if _done(result):
        return result
    lookup = lookup or lookup_reputation
    return reconcile(result, lookup(result.url))
