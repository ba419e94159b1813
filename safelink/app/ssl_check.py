"""
ssl_check.py

Live certificate and domain-age lookups that can replace the offline
estimates in heuristics.py (enable with SAFELINK_LIVE_CHECKS=1).

Public functions:
    check_certificate(host: str) -> dict
    whois_domain_age(host: str) -> int | None
    live_ssl_validity(url: str) -> bool
    live_domain_age(host: str) -> int

Requires:
    pip install cryptography python-whois
"""

import datetime
import logging
import socket
import ssl
from typing import Any, Dict, Optional

import whois
from cryptography import x509

from safelink.app.heuristics import estimate_domain_age, estimate_ssl_validity, parse_host

logger = logging.getLogger("ssl_check")

CERT_TIMEOUT = 5  # seconds
COMMON_NAME_OID = "2.5.4.3"


def _get_certificate(host: str, port: int = 443, timeout: int = CERT_TIMEOUT) -> Optional[str]:
    """
    Fetch the server's certificate as PEM, or None if no TLS connection could be made.

    Verification is off for the handshake: expiry, self-signing and name
    mismatch are judged by check_certificate() on the parsed certificate.
    """
    ctx = ssl.create_default_context()
    ctx.check_hostname = False
    ctx.verify_mode = ssl.CERT_NONE
    try:
        with socket.create_connection((host, port), timeout=timeout) as sock:
            with ctx.wrap_socket(sock, server_hostname=host) as conn:
                der_cert = conn.getpeercert(True)
        if not der_cert:
            return None
        return ssl.DER_cert_to_PEM_cert(der_cert)
    except (OSError, ssl.SSLError) as e:
        logger.debug("certificate fetch failed for %s: %s", host, e)
        return None


def _names_for(cert: x509.Certificate) -> list:
    names = [attr.value for attr in cert.subject if attr.oid.dotted_string == COMMON_NAME_OID]
    try:
        san = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName)
        names.extend(san.value.get_values_for_type(x509.DNSName))
    except x509.ExtensionNotFound:
        pass
    return names


def _host_matches(host: str, name: str) -> bool:
    name = name.lower()
    if name.startswith("*."):
        return host.endswith(name[1:]) and host.count(".") == name.count(".")
    return host == name


def check_certificate(host: str) -> Dict[str, Any]:
    """
    Retrieve and inspect the TLS certificate for host.

    Returns:
    {
      "host": "example.com",
      "cert_valid": True,         # None when no certificate was retrieved
      "expiry_days": 120,
      "expired": False,
      "self_signed": False,
      "name_mismatch": False,
      "explanation": "..."
    }
    """
    result = {
        "host": host,
        "cert_valid": None,
        "expiry_days": None,
        "expired": None,
        "self_signed": None,
        "name_mismatch": None,
        "explanation": "",
    }

    pem_cert = _get_certificate(host)
    if not pem_cert:
        result["explanation"] = "Unable to retrieve certificate"
        return result

    try:
        cert = x509.load_pem_x509_certificate(pem_cert.encode())
    except ValueError as e:
        result["cert_valid"] = False
        result["explanation"] = f"Certificate parse error: {e}"
        return result

    now = datetime.datetime.now(datetime.timezone.utc)
    days_left = (cert.not_valid_after_utc - now).days
    expired = days_left < 0
    self_signed = cert.issuer == cert.subject
    name_mismatch = not any(_host_matches(host.lower(), n) for n in _names_for(cert))

    result.update({
        "expiry_days": days_left,
        "expired": expired,
        "self_signed": self_signed,
        "name_mismatch": name_mismatch,
        "cert_valid": not (expired or self_signed or name_mismatch),
    })
    if result["cert_valid"]:
        result["explanation"] = f"Certificate valid for {days_left} more days"
    else:
        problems = [label for label, bad in (
            ("expired", expired), ("self-signed", self_signed), ("name mismatch", name_mismatch),
        ) if bad]
        result["explanation"] = "Certificate problems: " + ", ".join(problems)
    return result


def whois_domain_age(host: str) -> Optional[int]:
    """Return domain age in days using WHOIS (None if the registrar blocks or the lookup fails)."""
    try:
        record = whois.whois(host)
    except Exception as e:
        logger.debug("whois lookup failed for %s: %s", host, e)
        return None
    creation_date = record.creation_date
    if isinstance(creation_date, list):
        creation_date = creation_date[0] if creation_date else None
    if not isinstance(creation_date, datetime.datetime):
        return None
    if creation_date.tzinfo is None:
        creation_date = creation_date.replace(tzinfo=datetime.timezone.utc)
    return (datetime.datetime.now(datetime.timezone.utc) - creation_date).days


def live_ssl_validity(url: str) -> bool:
    # plaintext and marker checks still apply before any network call
    if not estimate_ssl_validity(url):
        return False
    host, _ = parse_host(url)
    valid = check_certificate(host)["cert_valid"]
    if valid is None:
        return estimate_ssl_validity(url)
    return valid


def live_domain_age(host: str) -> int:
    age = whois_domain_age(host)
    if age is None:
        return estimate_domain_age(host)
    return age
