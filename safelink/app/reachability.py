"""
reachability.py

Domain existence gate run before scoring.

Well-known domains pass immediately. Anything else must answer at least one
favicon probe; probes are tried one after another, each with its own timeout.
"""

import logging
from typing import List

import requests

from safelink import config

logger = logging.getLogger("reachability")

WELL_KNOWN_DOMAINS = (
    "google.com", "youtube.com", "facebook.com", "amazon.com",
    "ebay.com", "wikipedia.org", "twitter.com", "instagram.com",
    "linkedin.com", "microsoft.com", "apple.com", "netflix.com",
    "github.com", "stackoverflow.com", "khanacademy.org", "coursera.org",
)

PROBE_PATH = "/favicon.ico"


def is_well_known(host: str) -> bool:
    clean = host.lower()
    if clean.startswith("www."):
        clean = clean[len("www."):]
    return any(clean == d or clean.endswith("." + d) for d in WELL_KNOWN_DOMAINS)


def probe_urls(host: str) -> List[str]:
    """Scheme x www. variants, duplicates removed, order kept."""
    candidates = [
        f"https://{host}{PROBE_PATH}",
        f"https://www.{host}{PROBE_PATH}",
        f"http://{host}{PROBE_PATH}",
        f"http://www.{host}{PROBE_PATH}",
    ]
    return list(dict.fromkeys(candidates))


def is_domain_valid(host: str, timeout: float = None) -> bool:
    """True if host is well known or answers any probe with an HTTP response."""
    if not host:
        return False
    if is_well_known(host):
        return True

    timeout = config.PROBE_TIMEOUT if timeout is None else timeout
    headers = {
        "Accept": "image/*,*/*;q=0.8",
        "User-Agent": config.PROBE_USER_AGENT,
        "Cache-Control": "no-cache",
    }
    for url in probe_urls(host):
        try:
            with requests.get(url, headers=headers, timeout=timeout, stream=True):
                pass
        except requests.RequestException as e:
            logger.debug("probe %s failed: %s", url, e)
            continue
        logger.info("Domain %s reachable via %s", host, url)
        return True

    logger.info("Domain %s unreachable after %d probes", host, len(probe_urls(host)))
    return False
