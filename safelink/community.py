"""
community.py

History and community views: persisted scans joined with the live
community state (counters, comments) kept per canonical URL key.
"""

import logging
from typing import Iterable, List, Optional

from safelink import config, db
from safelink.app.heuristics import canonical_key
from safelink.images import prepare_attachments
from safelink.models import Comment, ScanResult
from safelink.ranking import rank_community, rank_history

logger = logging.getLogger("community")

EMPTY_COMMENT_MESSAGE = "Please add a comment or attach an image"


def record_scan(result: ScanResult) -> str:
    """Persist a scan and make sure its community record exists."""
    key = canonical_key(result.url)
    scan_id = db.save_scan(result.to_dict(persist=True), key)
    db.ensure_link(key)
    return scan_id


def apply_reconciliation(result: ScanResult) -> ScanResult:
    """
    Store history/<id> after the external verdict was folded in.

    Only the first reconciliation of a record is kept. If another one was
    stored meanwhile, that stored result is returned instead of ``result``.
    """
    stored, written = db.save_checked_scan(result.to_dict(persist=True), canonical_key(result.url))
    if written:
        return result
    kept = ScanResult.from_dict(stored)
    kept.likes, kept.dislikes = result.likes, result.dislikes
    kept.comments, kept.user_reaction = result.comments, result.user_reaction
    return kept


def get_result(scan_id: str, viewer_id: Optional[str] = None) -> Optional[ScanResult]:
    data = db.get_scan(scan_id)
    if data is None:
        return None
    return _merge([ScanResult.from_dict(data)], viewer_id)[0]


def _merge(results: Iterable[ScanResult], viewer_id: Optional[str]) -> List[ScanResult]:
    """Overlay stored counters and comments (store wins) and the viewer's own reaction."""
    links = db.get_links()
    own = db.get_reactions(viewer_id) if viewer_id else {}
    merged = []
    for r in results:
        key = canonical_key(r.url)
        link = links.get(key, {})
        r.likes = link.get("likes", r.likes or 0)
        r.dislikes = link.get("dislikes", r.dislikes or 0)
        r.comments = [Comment.from_dict(c) for c in db.list_comments(key)]
        r.user_reaction = own.get(key)
        merged.append(r)
    return merged


def _load(viewer_id: Optional[str]) -> List[ScanResult]:
    return _merge((ScanResult.from_dict(d) for d in db.list_scans()), viewer_id)


def load_history(viewer_id: Optional[str] = None, limit: int = None) -> List[ScanResult]:
    limit = config.HISTORY_LIMIT if limit is None else limit
    return rank_history(_load(viewer_id))[:limit]


def load_community(viewer_id: Optional[str] = None, search: str = "", limit: int = None) -> List[ScanResult]:
    limit = config.COMMUNITY_LIMIT if limit is None else limit
    results = _load(viewer_id)
    needle = (search or "").strip().lower()
    if needle:
        results = [r for r in results if needle in r.url.lower()]
    return rank_community(results)[:limit]


def toggle_reaction(url: str, viewer_id: str, reaction: str) -> dict:
    """Like/dislike on behalf of one viewer; returns the new counters and the viewer's reaction."""
    if not viewer_id:
        raise ValueError("viewer id is required to react")
    key = canonical_key(url)
    state = db.apply_reaction(key, viewer_id, reaction)
    logger.info("Reaction %s on %s by %s -> %s", reaction, key, viewer_id, state)
    return state


def post_comment(url: str, text: str, user_id: str, images: Iterable[str] = ()) -> List[Comment]:
    """Append a comment and return the full, ordered comment list for the URL."""
    if not user_id:
        raise ValueError("viewer id is required to comment")
    text = (text or "").strip()
    images = prepare_attachments(images)
    if not text and not images:
        raise ValueError(EMPTY_COMMENT_MESSAGE)
    key = canonical_key(url)
    comment = Comment(text=text, user_id=user_id, images=images)
    db.ensure_link(key)
    db.add_comment(key, comment.to_dict())
    return list_comments(url)


def list_comments(url: str) -> List[Comment]:
    return [Comment.from_dict(c) for c in db.list_comments(canonical_key(url))]


def clear_history() -> None:
    db.clear_all()
