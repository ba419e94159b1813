"""Main Flask API for Safe Link.

Run: python -m safelink.api
"""

import logging

from flask import Flask, abort, jsonify, request
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
import redis as redis_lib
from sqlalchemy.exc import SQLAlchemyError

from safelink import __version__, community, config, db
from safelink.app.scanner import InvalidURLError, UnreachableDomainError, scan
from safelink.app.threat_intel import can_run_check, run_external_check
from safelink.models import REACTIONS

# Logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("api")

# Flask app
app = Flask(__name__)

# Rate limiter: prefer Redis storage in production when REDIS_URL is set
if config.REDIS_URL:
    try:
        redis_lib.from_url(config.REDIS_URL).ping()
        limiter = Limiter(app=app, key_func=get_remote_address,
                          default_limits=["60 per minute"], storage_uri=config.REDIS_URL)
        logger.info("Using Redis at %s for rate limiting", config.REDIS_URL)
    except redis_lib.RedisError:
        logger.exception("Failed to connect to Redis, falling back to in-memory limiter")
        limiter = Limiter(app=app, key_func=get_remote_address, default_limits=["60 per minute"])
else:
    limiter = Limiter(app=app, key_func=get_remote_address, default_limits=["60 per minute"])

db.init_db()

if config.API_KEY:
    logger.info("API key enabled")


def require_api_key() -> None:
    if not config.API_KEY:
        return
    key = request.headers.get("X-API-Key") or request.args.get("api_key")
    if not key or key != config.API_KEY:
        abort(401, description="Invalid or missing API key")


def viewer_id() -> str:
    data = request.get_json(silent=True) or {}
    return (request.headers.get("X-Viewer-Id")
            or request.args.get("viewer_id")
            or data.get("viewer_id")
            or "")


def _limit_arg(default: int):
    try:
        limit = int(request.args.get("limit", default))
    except ValueError:
        return None
    return min(200, max(1, limit))


@app.errorhandler(SQLAlchemyError)
def storage_error(e):
    logger.exception("Storage failure on %s %s", request.method, request.path)
    return jsonify({"error": "storage_unavailable"}), 503


@app.route("/health", methods=["GET"])
def health():
    return jsonify({"status": "ok", "version": __version__})


@app.route("/scan", methods=["POST"])
@limiter.limit("30 per minute")
def scan_endpoint():
    require_api_key()
    data = request.get_json(silent=True)
    if not data or "url" not in data:
        return jsonify({"error": "missing 'url' in JSON body"}), 400

    try:
        result = scan(str(data["url"]))
    except InvalidURLError as e:
        return jsonify({"error": "invalid_input", "detail": str(e)}), 400
    except UnreachableDomainError as e:
        return jsonify({"error": "unreachable_domain", "detail": str(e)}), 422

    persisted = True
    try:
        community.record_scan(result)
    except SQLAlchemyError:
        logger.exception("Failed to persist scan %s", result.id)
        persisted = False

    body = result.to_dict()
    body["persisted"] = persisted
    body["can_run_external_check"] = can_run_check(result)
    return jsonify(body), 200


@app.route("/scan/<scan_id>", methods=["GET"])
def get_scan(scan_id: str):
    require_api_key()
    result = community.get_result(scan_id, viewer_id() or None)
    if result is None:
        return jsonify({"error": "not_found"}), 404
    return jsonify(result.to_dict())


@app.route("/scan/<scan_id>/external-check", methods=["POST"])
@limiter.limit("10 per minute")
def external_check(scan_id: str):
    require_api_key()
    result = community.get_result(scan_id, viewer_id() or None)
    if result is None:
        return jsonify({"error": "not_found"}), 404
    if result.api_check is not None and result.api_check.done:
        return jsonify(result.to_dict()), 200
    if not can_run_check(result):
        return jsonify({"error": "external_check_suppressed",
                        "detail": "High risk - do not visit. Consider reporting this link."}), 409

    updated = run_external_check(result)
    persisted = True
    try:
        updated = community.apply_reconciliation(updated)
    except SQLAlchemyError:
        logger.exception("Failed to persist external check for %s", scan_id)
        persisted = False
    body = updated.to_dict()
    body["persisted"] = persisted
    return jsonify(body), 200


@app.route("/history", methods=["GET", "DELETE"])
@limiter.limit("20 per minute")
def history():
    require_api_key()
    if request.method == "DELETE":
        community.clear_history()
        return jsonify({"cleared": True}), 200
    limit = _limit_arg(config.HISTORY_LIMIT)
    if limit is None:
        return jsonify({"error": "limit must be integer"}), 400
    rows = community.load_history(viewer_id() or None, limit=limit)
    return jsonify({"count": len(rows), "rows": [r.to_dict() for r in rows]})


@app.route("/community", methods=["GET"])
@limiter.limit("20 per minute")
def community_view():
    require_api_key()
    limit = _limit_arg(config.COMMUNITY_LIMIT)
    if limit is None:
        return jsonify({"error": "limit must be integer"}), 400
    rows = community.load_community(viewer_id() or None, search=request.args.get("q", ""), limit=limit)
    return jsonify({"count": len(rows), "rows": [r.to_dict() for r in rows]})


@app.route("/links/reaction", methods=["POST"])
@limiter.limit("30 per minute")
def reaction():
    require_api_key()
    data = request.get_json(silent=True) or {}
    url = data.get("url")
    choice = data.get("reaction")
    if not url or choice not in REACTIONS:
        return jsonify({"error": "expected JSON body with 'url' and 'reaction' (like|dislike)"}), 400
    viewer = viewer_id()
    if not viewer:
        return jsonify({"error": "missing viewer id"}), 400
    return jsonify(community.toggle_reaction(url, viewer, choice)), 200


@app.route("/links/comments", methods=["GET", "POST"])
@limiter.limit("30 per minute")
def comments():
    require_api_key()
    if request.method == "GET":
        url = request.args.get("url")
        if not url:
            return jsonify({"error": "missing 'url' parameter"}), 400
        return jsonify({"comments": [c.to_dict() for c in community.list_comments(url)]})

    data = request.get_json(silent=True) or {}
    url = data.get("url")
    if not url:
        return jsonify({"error": "missing 'url' in JSON body"}), 400
    viewer = viewer_id()
    if not viewer:
        return jsonify({"error": "missing viewer id"}), 400
    try:
        posted = community.post_comment(url, data.get("text", ""), viewer, data.get("images") or [])
    except ValueError as e:
        return jsonify({"error": "invalid_comment", "detail": str(e)}), 400
    return jsonify({"comments": [c.to_dict() for c in posted]}), 201


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=config.PORT, debug=False)
