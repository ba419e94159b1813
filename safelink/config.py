# config.py
"""
Runtime configuration for Safe Link.

Every value can be overridden with an environment variable in deployment.
"""

import os

# Storage
DB_FILE = os.getenv("SAFELINK_DB", "safelink.db")
DATABASE_URL = os.getenv("SAFELINK_DATABASE_URL", f"sqlite:///{DB_FILE}")

# Remote reputation service
REPUTATION_URL = os.getenv("SAFELINK_REPUTATION_URL", "http://localhost:5000/api/scan")
REPUTATION_TIMEOUT = float(os.getenv("SAFELINK_REPUTATION_TIMEOUT", "15"))

# Domain existence probes (seconds per attempt)
PROBE_TIMEOUT = float(os.getenv("SAFELINK_PROBE_TIMEOUT", "3"))
PROBE_USER_AGENT = "Mozilla/5.0 (compatible; SafeLinkScanner/1.0)"

# List views
HISTORY_LIMIT = int(os.getenv("SAFELINK_HISTORY_LIMIT", "5"))
COMMUNITY_LIMIT = int(os.getenv("SAFELINK_COMMUNITY_LIMIT", "20"))

# Use certificate / WHOIS lookups instead of the offline estimates
LIVE_CHECKS = os.getenv("SAFELINK_LIVE_CHECKS", "0").lower() in ("1", "true", "yes")

# API
API_KEY = os.getenv("SAFELINK_API_KEY", None)
REDIS_URL = os.getenv("REDIS_URL")
PORT = int(os.getenv("PORT", "5050"))
