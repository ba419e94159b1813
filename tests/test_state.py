from dataclasses import replace

import pytest

from safelink.app.heuristics import canonical_key
from safelink.app.scanner import score_url
from safelink.app.threat_intel import reconcile
from safelink.models import Comment
from safelink.state import (
    DraftEdited,
    DraftSubmitted,
    HistoryCleared,
    ImagesAttached,
    ReactionSet,
    RemoteSnapshot,
    ResultUpdated,
    ScanCompleted,
    SessionState,
    next_reaction,
    reduce,
)


@pytest.mark.parametrize("current,requested,expected", [
    (None, "like", ("like", 1, 0)),
    (None, "dislike", ("dislike", 0, 1)),
    ("like", "like", (None, -1, 0)),
    ("dislike", "dislike", (None, 0, -1)),
    ("like", "dislike", ("dislike", -1, 1)),
    ("dislike", "like", ("like", 1, -1)),
])
def test_next_reaction(current, requested, expected):
    assert next_reaction(current, requested) == expected


def test_next_reaction_rejects_unknown():
    with pytest.raises(ValueError):
        next_reaction(None, "love")


def test_scan_completed_becomes_current_and_most_recent():
    a, b = score_url("example.com"), score_url("example.org")
    state = reduce(reduce(SessionState(), ScanCompleted(a)), ScanCompleted(b))
    assert state.current is state.results[b.id]
    assert [r.id for r in state.recent()] == [b.id, a.id]


def test_reducers_do_not_mutate_previous_state():
    s0 = SessionState()
    s1 = reduce(s0, ScanCompleted(score_url("example.com")))
    assert s0.results == {}
    assert s1 is not s0


def test_result_updated_replaces_by_id():
    r = score_url("http://example.com")
    state = reduce(SessionState(), ScanCompleted(r))
    updated = reconcile(r, {"finalVerdict": "malicious", "summary": "", "checks": {"x": {"status": "bad"}}})
    state = reduce(state, ResultUpdated(updated))
    assert state.current.safety == 1
    assert state.current.api_check.done


def test_result_updated_for_unknown_id_is_ignored():
    state = SessionState()
    assert reduce(state, ResultUpdated(score_url("example.com"))) is state


def test_remote_snapshot_remote_wins_for_counters_local_wins_for_drafts():
    local = score_url("https://example.com")
    state = reduce(SessionState(), ScanCompleted(local))
    state = reduce(state, DraftEdited(local.id, "half-typed"))
    state = reduce(state, ImagesAttached(local.id, ("data:image/png;base64,AA==",)))

    remote = replace(local, likes=7, dislikes=2, comments=[Comment(text="hi", user_id="u2")])
    state = reduce(state, RemoteSnapshot((remote,)))

    merged = state.results[local.id]
    assert (merged.likes, merged.dislikes) == (7, 2)
    assert [c.text for c in merged.comments] == ["hi"]
    assert state.drafts[local.id].text == "half-typed"
    assert state.drafts[local.id].images == ("data:image/png;base64,AA==",)


def test_remote_snapshot_keeps_own_reaction_and_unsaved_current():
    saved = score_url("https://example.org")
    current = score_url("https://example.com")
    state = reduce(SessionState(), ScanCompleted(current))
    state = reduce(state, ReactionSet(canonical_key(saved.url), "dislike", 0, 1))

    remote = replace(saved, user_reaction="like")
    state = reduce(state, RemoteSnapshot((remote,)))

    assert state.results[saved.id].user_reaction == "dislike"
    assert state.current.id == current.id
    assert state.order == (current.id, saved.id)


def test_reaction_set_updates_every_result_for_the_url():
    a = score_url("https://example.com/")
    b = score_url("http://example.com")
    other = score_url("https://example.org")
    state = SessionState()
    for r in (a, b, other):
        state = reduce(state, ScanCompleted(r))
    state = reduce(state, ReactionSet(canonical_key(a.url), "like", 3, 1))
    assert state.results[a.id].likes == 3
    assert state.results[b.id].user_reaction == "like"
    assert state.results[other.id].likes == 0

    state = reduce(state, ReactionSet(canonical_key(a.url), None, 2, 1))
    assert canonical_key(a.url) not in state.reactions
    assert state.results[a.id].user_reaction is None


def test_images_attached_caps_at_three():
    state = reduce(SessionState(), ImagesAttached("x", ("1", "2")))
    state = reduce(state, ImagesAttached("x", ("3", "4")))
    assert state.drafts["x"].images == ("1", "2", "3")


def test_draft_submitted_clears_draft():
    state = reduce(SessionState(), DraftEdited("x", "text"))
    state = reduce(state, DraftSubmitted("x"))
    assert "x" not in state.drafts


def test_history_cleared():
    state = reduce(SessionState(), ScanCompleted(score_url("example.com")))
    state = reduce(state, HistoryCleared())
    assert state.results == {}
    assert state.current is None


def test_unknown_event_raises():
    with pytest.raises(TypeError):
        reduce(SessionState(), object())
