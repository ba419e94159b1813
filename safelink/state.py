"""
state.py

Per-session view state as a plain value plus reducers:

    new_state = reduce(state, event)

Results are keyed by id. Draft comment text and pending images are local to
the session; counters and comments come from the store. The viewer's own
reaction is also local and never read from another viewer's record.
"""

from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Tuple

from safelink.app.heuristics import canonical_key
from safelink.images import MAX_IMAGES_PER_COMMENT
from safelink.models import REACTIONS, ScanResult


def next_reaction(current: Optional[str], requested: str) -> Tuple[Optional[str], int, int]:
    """
    Toggle rule for one viewer. Returns (new reaction, likes delta, dislikes delta).

    Repeating a reaction clears it; switching moves the vote.
    """
    if requested not in REACTIONS:
        raise ValueError(f"reaction must be one of {REACTIONS}, got {requested!r}")
    deltas = {"like": 0, "dislike": 0}
    if current == requested:
        deltas[requested] -= 1
        return None, deltas["like"], deltas["dislike"]
    if current in REACTIONS:
        deltas[current] -= 1
    deltas[requested] += 1
    return requested, deltas["like"], deltas["dislike"]


@dataclass(frozen=True)
class Draft:
    text: str = ""
    images: Tuple[str, ...] = ()


@dataclass(frozen=True)
class SessionState:
    results: Dict[str, ScanResult] = field(default_factory=dict)
    order: Tuple[str, ...] = ()        # result ids, most recent first
    current_id: Optional[str] = None   # result on display
    drafts: Dict[str, Draft] = field(default_factory=dict)
    reactions: Dict[str, str] = field(default_factory=dict)  # canonical key -> own reaction

    @property
    def current(self) -> Optional[ScanResult]:
        return self.results.get(self.current_id) if self.current_id else None

    def recent(self) -> List[ScanResult]:
        return [self.results[i] for i in self.order if i in self.results]


# events

@dataclass(frozen=True)
class ScanCompleted:
    result: ScanResult


@dataclass(frozen=True)
class ResultUpdated:
    result: ScanResult


@dataclass(frozen=True)
class RemoteSnapshot:
    results: Tuple[ScanResult, ...]


@dataclass(frozen=True)
class DraftEdited:
    result_id: str
    text: str


@dataclass(frozen=True)
class ImagesAttached:
    result_id: str
    images: Tuple[str, ...]


@dataclass(frozen=True)
class DraftSubmitted:
    result_id: str


@dataclass(frozen=True)
class ReactionSet:
    key: str
    reaction: Optional[str]
    likes: int
    dislikes: int


@dataclass(frozen=True)
class HistoryCleared:
    pass


def _with_own_reaction(state: SessionState, result: ScanResult) -> ScanResult:
    return replace(result, user_reaction=state.reactions.get(canonical_key(result.url)))


def reduce(state: SessionState, event) -> SessionState:
    if isinstance(event, ScanCompleted):
        result = _with_own_reaction(state, event.result)
        results = dict(state.results)
        results[result.id] = result
        order = (result.id,) + tuple(i for i in state.order if i != result.id)
        return replace(state, results=results, order=order, current_id=result.id)

    if isinstance(event, ResultUpdated):
        if event.result.id not in state.results:
            return state
        results = dict(state.results)
        results[event.result.id] = _with_own_reaction(state, event.result)
        return replace(state, results=results)

    if isinstance(event, RemoteSnapshot):
        # store wins for scores, counters and comments
        results = {r.id: _with_own_reaction(state, r) for r in event.results}
        current = state.current
        if current is not None and current.id not in results:
            results[current.id] = current
        order = tuple(r.id for r in event.results)
        if current is not None and current.id not in order:
            order = (current.id,) + order
        return replace(state, results=results, order=order)

    if isinstance(event, DraftEdited):
        drafts = dict(state.drafts)
        drafts[event.result_id] = replace(drafts.get(event.result_id, Draft()), text=event.text)
        return replace(state, drafts=drafts)

    if isinstance(event, ImagesAttached):
        drafts = dict(state.drafts)
        draft = drafts.get(event.result_id, Draft())
        images = (draft.images + tuple(event.images))[:MAX_IMAGES_PER_COMMENT]
        drafts[event.result_id] = replace(draft, images=images)
        return replace(state, drafts=drafts)

    if isinstance(event, DraftSubmitted):
        drafts = dict(state.drafts)
        drafts.pop(event.result_id, None)
        return replace(state, drafts=drafts)

    if isinstance(event, ReactionSet):
        reactions = dict(state.reactions)
        if event.reaction is None:
            reactions.pop(event.key, None)
        else:
            reactions[event.key] = event.reaction
        results = {
            rid: (replace(r, likes=event.likes, dislikes=event.dislikes, user_reaction=event.reaction)
                  if canonical_key(r.url) == event.key else r)
            for rid, r in state.results.items()
        }
        return replace(state, results=results, reactions=reactions)

    if isinstance(event, HistoryCleared):
        return replace(state, results={}, order=(), current_id=None, drafts={}, reactions={})

    raise TypeError(f"unknown event {type(event).__name__}")
