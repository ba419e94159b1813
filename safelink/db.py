# db.py
"""
Database module using SQLAlchemy (SQLite by default).

Logical layout:
    history/<scan id>              -> scans
    links/<canonical key>          -> links (likes / dislikes)
    links/<canonical key>/comments -> comments (append-only)
    per-viewer reactions           -> reactions (canonical key, viewer id)

subscribe() registers a callback fired after every committed write under a
path prefix, e.g. subscribe("history", cb) or subscribe("links/example_com", cb).
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text, UniqueConstraint, case, create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import declarative_base, sessionmaker

from safelink import config
from safelink.state import next_reaction

logger = logging.getLogger("db")

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Scan(Base):
    __tablename__ = "scans"
    id = Column(String(64), primary_key=True)
    url = Column(Text, index=True)
    canonical_key = Column(Text, index=True)
    safety = Column(Integer)
    tier = Column(String(32))
    result_json = Column(Text)  # persisted ScanResult as JSON
    api_checked = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)


class Link(Base):
    __tablename__ = "links"
    key = Column(Text, primary_key=True)
    likes = Column(Integer, default=0, nullable=False)
    dislikes = Column(Integer, default=0, nullable=False)


class Reaction(Base):
    __tablename__ = "reactions"
    __table_args__ = (UniqueConstraint("link_key", "viewer_id", name="uq_reaction_viewer"),)
    id = Column(Integer, primary_key=True, autoincrement=True)
    link_key = Column(Text, index=True, nullable=False)
    viewer_id = Column(String(64), nullable=False)
    reaction = Column(String(16), nullable=False)


class CommentRow(Base):
    __tablename__ = "comments"
    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(64), unique=True, nullable=False)
    link_key = Column(Text, index=True, nullable=False)
    text = Column(Text, default="")
    timestamp = Column(String(64))
    user_id = Column(String(64))
    images_json = Column(Text, default="[]")


engine = None
SessionLocal = None
_subscribers: List[tuple] = []


def configure(database_url: str = None) -> None:
    """(Re)bind the module to a database URL. Tables are created by init_db()."""
    global engine, SessionLocal
    database_url = database_url or config.DATABASE_URL
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    engine = create_engine(database_url, connect_args=connect_args)
    SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)


def init_db() -> None:
    Base.metadata.create_all(bind=engine)


def subscribe(prefix: str, callback: Callable[[str], None]) -> Callable[[], None]:
    """Call callback(path) after each write whose path starts with prefix. Returns an unsubscribe function."""
    entry = (prefix, callback)
    _subscribers.append(entry)

    def unsubscribe() -> None:
        if entry in _subscribers:
            _subscribers.remove(entry)

    return unsubscribe


def _notify(path: str) -> None:
    for prefix, callback in list(_subscribers):
        if path.startswith(prefix):
            try:
                callback(path)
            except Exception:
                logger.exception("Subscriber for %s failed on %s", prefix, path)


# ---------------------------------------------------------------------------
# history
# ---------------------------------------------------------------------------

def save_scan(result: Dict[str, Any], canonical_key: str) -> str:
    """Insert or overwrite history/<id>. Returns the record id."""
    session = SessionLocal()
    try:
        scan = session.get(Scan, result["id"]) or Scan(id=result["id"])
        scan.url = result["url"]
        scan.canonical_key = canonical_key
        scan.safety = result["safety"]
        scan.tier = result["tier"]
        scan.result_json = json.dumps(result)
        scan.api_checked = bool(scan.api_checked) or bool(result.get("api_check"))
        session.add(scan)
        session.commit()
        scan_id = scan.id
    finally:
        session.close()
    _notify(f"history/{scan_id}")
    return scan_id


def save_checked_scan(result: Dict[str, Any], canonical_key: str) -> Tuple[Dict[str, Any], bool]:
    """
    Store a reconciled result unless history/<id> already holds one.

    The write is a single conditional UPDATE, so of two overlapping external
    checks only the first one lands. Returns (stored result, written).
    """
    session = SessionLocal()
    try:
        written = (
            session.query(Scan)
            .filter(Scan.id == result["id"], Scan.api_checked.is_(False))
            .update({
                Scan.url: result["url"],
                Scan.canonical_key: canonical_key,
                Scan.safety: result["safety"],
                Scan.tier: result["tier"],
                Scan.result_json: json.dumps(result),
                Scan.api_checked: True,
            }, synchronize_session=False)
        )
        session.commit()
    finally:
        session.close()

    if written:
        _notify(f"history/{result['id']}")
        return result, True

    stored = get_scan(result["id"])
    if stored is None:
        save_scan(result, canonical_key)
        return result, True
    logger.info("External check for %s already stored, keeping it", result["id"])
    return stored, False


def get_scan(scan_id: str) -> Optional[Dict[str, Any]]:
    session = SessionLocal()
    try:
        scan = session.get(Scan, scan_id)
    finally:
        session.close()
    if not scan:
        return None
    return json.loads(scan.result_json)


def list_scans(limit: Optional[int] = None, offset: int = 0) -> List[Dict[str, Any]]:
    """Persisted results, newest first."""
    session = SessionLocal()
    try:
        query = session.query(Scan).order_by(Scan.created_at.desc()).offset(offset)
        if limit is not None:
            query = query.limit(limit)
        rows = query.all()
    finally:
        session.close()
    return [json.loads(r.result_json) for r in rows]


# ---------------------------------------------------------------------------
# links
# ---------------------------------------------------------------------------

def ensure_link(key: str) -> bool:
    """Create links/<key> with zero counters if absent. Existing state is never reset."""
    session = SessionLocal()
    try:
        if session.get(Link, key) is not None:
            return False
        session.add(Link(key=key, likes=0, dislikes=0))
        try:
            session.commit()
        except IntegrityError:
            # created by a concurrent writer
            session.rollback()
            return False
    finally:
        session.close()
    _notify(f"links/{key}")
    return True


def get_link(key: str) -> Dict[str, int]:
    session = SessionLocal()
    try:
        link = session.get(Link, key)
    finally:
        session.close()
    if not link:
        return {"likes": 0, "dislikes": 0}
    return {"likes": link.likes, "dislikes": link.dislikes}


def get_links() -> Dict[str, Dict[str, int]]:
    session = SessionLocal()
    try:
        rows = session.query(Link).all()
    finally:
        session.close()
    return {r.key: {"likes": r.likes, "dislikes": r.dislikes} for r in rows}


def get_reactions(viewer_id: str) -> Dict[str, str]:
    """{canonical key: reaction} for one viewer."""
    if not viewer_id:
        return {}
    session = SessionLocal()
    try:
        rows = session.query(Reaction).filter(Reaction.viewer_id == viewer_id).all()
    finally:
        session.close()
    return {r.link_key: r.reaction for r in rows}


def _bump(column, delta: int):
    """SQL expression column + delta, floored at zero."""
    return case((column + delta < 0, 0), else_=column + delta)


def apply_reaction(key: str, viewer_id: str, requested: str) -> Dict[str, Any]:
    """
    Toggle a viewer's reaction on links/<key> and adjust the counters in the
    same transaction. Returns {"likes", "dislikes", "user_reaction"}.

    Counters are changed with an UPDATE ... SET likes = likes + n so that
    reactions from other viewers committed meanwhile are not lost.
    """
    ensure_link(key)
    session = SessionLocal()
    try:
        row = (
            session.query(Reaction)
            .filter(Reaction.link_key == key, Reaction.viewer_id == viewer_id)
            .first()
        )
        current = row.reaction if row else None
        new, d_likes, d_dislikes = next_reaction(current, requested)

        session.query(Link).filter(Link.key == key).update({
            Link.likes: _bump(Link.likes, d_likes),
            Link.dislikes: _bump(Link.dislikes, d_dislikes),
        }, synchronize_session=False)
        if new is None:
            if row is not None:
                session.delete(row)
        elif row is None:
            session.add(Reaction(link_key=key, viewer_id=viewer_id, reaction=new))
        else:
            row.reaction = new
        session.commit()
        link = session.get(Link, key)
        state = {"likes": link.likes, "dislikes": link.dislikes, "user_reaction": new}
    finally:
        session.close()
    _notify(f"links/{key}")
    return state


# ---------------------------------------------------------------------------
# comments
# ---------------------------------------------------------------------------

def add_comment(key: str, comment: Dict[str, Any]) -> str:
    """Append to links/<key>/comments. Returns the comment id."""
    session = SessionLocal()
    try:
        session.add(CommentRow(
            id=comment["id"],
            link_key=key,
            text=comment.get("text", ""),
            timestamp=comment.get("timestamp"),
            user_id=comment.get("user_id"),
            images_json=json.dumps(comment.get("images") or []),
        ))
        session.commit()
    finally:
        session.close()
    _notify(f"links/{key}/comments")
    return comment["id"]


def list_comments(key: str) -> List[Dict[str, Any]]:
    """Comments for links/<key> in insertion order."""
    session = SessionLocal()
    try:
        rows = session.query(CommentRow).filter(CommentRow.link_key == key).order_by(CommentRow.seq).all()
    finally:
        session.close()
    return [
        {
            "id": r.id,
            "text": r.text,
            "timestamp": r.timestamp,
            "user_id": r.user_id,
            "images": json.loads(r.images_json or "[]"),
        }
        for r in rows
    ]


def clear_all() -> None:
    """Delete history, community counters, reactions and comments."""
    session = SessionLocal()
    try:
        for model in (CommentRow, Reaction, Link, Scan):
            session.query(model).delete()
        session.commit()
    finally:
        session.close()
    _notify("history")
    _notify("links")


configure()
