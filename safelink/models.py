# models.py
"""
Data model shared by the scoring engine, the store and the API.

ScanResult.to_dict() is the wire/storage shape. user_reaction is per-viewer
session state and is dropped by to_dict(persist=True), together with the
community-owned comments.
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from safelink.app.tiers import tier_of

REACTIONS = ("like", "dislike")


def new_id() -> str:
    return str(uuid.uuid4())


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Comment:
    text: str
    user_id: str
    images: List[str] = field(default_factory=list)
    id: str = field(default_factory=new_id)
    timestamp: str = field(default_factory=now_iso)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "timestamp": self.timestamp,
            "user_id": self.user_id,
            "images": list(self.images),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Comment":
        return cls(
            id=data.get("id") or new_id(),
            text=data.get("text", ""),
            timestamp=data.get("timestamp") or now_iso(),
            user_id=data.get("user_id", ""),
            images=list(data.get("images") or []),
        )


@dataclass(frozen=True)
class ApiCheck:
    """Outcome of the external verdict reconciliation. Only ever created done."""
    note: str
    failed: bool = False
    checks: Dict[str, Any] = field(default_factory=dict)
    done: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {"done": self.done, "failed": self.failed, "note": self.note, "checks": dict(self.checks)}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["ApiCheck"]:
        if not data:
            return None
        return cls(
            note=data.get("note", ""),
            failed=bool(data.get("failed", False)),
            checks=dict(data.get("checks") or {}),
            done=bool(data.get("done", True)),
        )


@dataclass
class ScanResult:
    url: str
    safety: int
    tier: str
    color: str
    confidence: float
    reasons: List[str]
    breakdown: Dict[str, int]
    id: str = field(default_factory=new_id)
    timestamp: str = field(default_factory=now_iso)
    likes: int = 0
    dislikes: int = 0
    user_reaction: Optional[str] = None
    comments: List[Comment] = field(default_factory=list)
    api_check: Optional[ApiCheck] = None

    def with_safety(self, safety: int) -> "ScanResult":
        """Return a copy with a new clamped safety and the matching tier/color."""
        safety = max(0, min(10, int(round(safety))))
        tier, color = tier_of(safety)
        return replace(self, safety=safety, tier=tier, color=color)

    def to_dict(self, persist: bool = False) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "url": self.url,
            "safety": self.safety,
            "tier": self.tier,
            "color": self.color,
            "confidence": self.confidence,
            "reasons": list(self.reasons),
            "breakdown": dict(self.breakdown),
            "timestamp": self.timestamp,
            "likes": self.likes,
            "dislikes": self.dislikes,
            "api_check": self.api_check.to_dict() if self.api_check else None,
        }
        if not persist:
            data["user_reaction"] = self.user_reaction
            data["comments"] = [c.to_dict() for c in self.comments]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScanResult":
        safety = max(0, min(10, int(data.get("safety", 0))))
        tier, color = tier_of(safety)
        return cls(
            id=data.get("id") or new_id(),
            url=data["url"],
            safety=safety,
            tier=tier,
            color=color,
            confidence=float(data.get("confidence", 0.0)),
            reasons=list(data.get("reasons") or []),
            breakdown=dict(data.get("breakdown") or {}),
            timestamp=data.get("timestamp") or now_iso(),
            likes=int(data.get("likes") or 0),
            dislikes=int(data.get("dislikes") or 0),
            user_reaction=data.get("user_reaction"),
            comments=[Comment.from_dict(c) for c in data.get("comments") or []],
            api_check=ApiCheck.from_dict(data.get("api_check")),
        )
