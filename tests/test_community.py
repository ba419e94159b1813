import pytest
from sqlalchemy import inspect

from safelink import community
from safelink.app.heuristics import canonical_key
from safelink.app.scanner import score_url
from safelink.app.threat_intel import reconcile
from safelink.images import AttachmentError, encode_image


def test_record_and_load_history(store):
    r = score_url("https://www.google.com/")
    community.record_scan(r)
    rows = community.load_history()
    assert [x.id for x in rows] == [r.id]
    assert rows[0].safety == 10
    assert rows[0].api_check is None


def test_shared_reaction_field_is_not_persisted(store):
    r = score_url("https://example.com")
    r.user_reaction = "like"
    community.record_scan(r)
    assert "user_reaction" not in store.get_scan(r.id)
    assert community.load_history()[0].user_reaction is None


def test_history_is_ranked_and_limited(store):
    for url in ["https://www.google.com/", "http://badsite-login.com/verify-account", "http://example.com"]:
        community.record_scan(score_url(url))
    rows = community.load_history(limit=2)
    assert [r.tier for r in rows] == ["High Risk", "Be Careful"]


def test_reactions_are_per_viewer(store):
    url = "https://example.com/page"
    community.record_scan(score_url(url))

    assert community.toggle_reaction(url, "alice", "like") == {"likes": 1, "dislikes": 0, "user_reaction": "like"}
    assert community.toggle_reaction(url, "bob", "dislike") == {"likes": 1, "dislikes": 1, "user_reaction": "dislike"}

    assert community.load_history("alice")[0].user_reaction == "like"
    assert community.load_history("bob")[0].user_reaction == "dislike"
    assert community.load_history("carol")[0].user_reaction is None
    assert community.load_history()[0].user_reaction is None


def test_reaction_toggle_and_switch(store):
    url = "https://example.com"
    community.toggle_reaction(url, "alice", "like")
    assert community.toggle_reaction(url, "alice", "like") == {"likes": 0, "dislikes": 0, "user_reaction": None}
    community.toggle_reaction(url, "alice", "like")
    assert community.toggle_reaction(url, "alice", "dislike") == {"likes": 0, "dislikes": 1, "user_reaction": "dislike"}


def test_reaction_requires_viewer(store):
    with pytest.raises(ValueError):
        community.toggle_reaction("https://example.com", "", "like")


def test_rescanning_does_not_reset_community_state(store):
    url = "https://example.com/a"
    community.record_scan(score_url(url))
    community.toggle_reaction(url, "alice", "dislike")
    community.record_scan(score_url(url))
    rows = community.load_history()
    assert len(rows) == 2
    assert all(r.dislikes == 1 for r in rows)


def test_community_state_shared_across_url_variants(store):
    community.record_scan(score_url("https://example.com/path/"))
    community.toggle_reaction("http://EXAMPLE.com/path", "alice", "like")
    community.post_comment("example.com/path", "legit", "alice")
    row = community.load_history()[0]
    assert row.likes == 1
    assert [c.text for c in row.comments] == ["legit"]
    assert store.get_link(canonical_key("https://example.com/path")) == {"likes": 1, "dislikes": 0}


def test_comments_append_in_order(store):
    url = "https://example.com"
    community.post_comment(url, "first", "u1")
    img = encode_image(b"\x89PNG\r\n\x1a\n", "image/png")
    comments = community.post_comment(url, "", "u2", images=[img])
    assert [c.text for c in comments] == ["first", ""]
    assert comments[1].images == [img]
    assert comments[1].user_id == "u2"


def test_empty_comment_rejected(store):
    with pytest.raises(ValueError, match="add a comment or attach an image"):
        community.post_comment("https://example.com", "   ", "u1")


def test_bad_attachment_rejected(store):
    with pytest.raises(AttachmentError):
        community.post_comment("https://example.com", "look", "u1", images=["data:image/gif;base64,R0lGODlh"])
    assert community.list_comments("https://example.com") == []


def test_community_search_and_order(store):
    for url in ["https://www.google.com/", "https://shop.example.com", "http://example.com"]:
        community.record_scan(score_url(url))
    community.toggle_reaction("https://shop.example.com", "alice", "like")
    rows = community.load_community(search="EXAMPLE")
    assert [r.url for r in rows] == ["http://example.com", "https://shop.example.com"]


def test_apply_reconciliation_persists_lower_score(store):
    r = score_url("http://example.com")
    community.record_scan(r)
    updated = reconcile(r, {"finalVerdict": "suspicious", "summary": "meh", "checks": {"a": {"status": "warn"}}})
    community.apply_reconciliation(updated)
    stored = community.get_result(r.id)
    assert stored.safety == 4
    assert stored.api_check.done
    assert stored.api_check.note == "meh"


def test_get_result_missing(store):
    assert community.get_result("nope") is None


def test_clear_history(store):
    url = "https://example.com"
    community.record_scan(score_url(url))
    community.toggle_reaction(url, "alice", "like")
    community.clear_history()
    assert community.load_history() == []
    assert store.get_links() == {}
    assert store.get_reactions("alice") == {}


def test_subscribers_see_writes(store):
    seen = []
    unsubscribe = store.subscribe("links/", seen.append)
    history_seen = []
    store.subscribe("history", history_seen.append)

    r = score_url("https://example.com")
    community.record_scan(r)
    community.post_comment(r.url, "hi", "u1")
    assert history_seen == [f"history/{r.id}"]
    assert seen == ["links/example_com", "links/example_com/comments"]

    unsubscribe()
    community.toggle_reaction(r.url, "alice", "like")
    assert len(seen) == 2


def test_failing_subscriber_does_not_break_writes(store):
    def broken(path):
        raise RuntimeError("listener bug")

    store.subscribe("history", broken)
    r = score_url("https://example.com")
    assert community.record_scan(r) == r.id


def test_only_first_reconciliation_is_stored(store):
    r = score_url("https://www.google.com/")
    community.record_scan(r)
    malicious = reconcile(r, {"finalVerdict": "malicious", "summary": "phishing kit",
                              "checks": {"vt": {"status": "bad"}}})
    clean = reconcile(r, {"finalVerdict": "clean", "summary": "nothing found",
                          "checks": {"vt": {"status": "ok"}}})

    assert community.apply_reconciliation(malicious).safety == 1
    kept = community.apply_reconciliation(clean)
    assert kept.safety == 1
    assert kept.api_check.note == "phishing kit"
    assert community.get_result(r.id).safety == 1


def test_reactions_committed_meanwhile_are_not_lost(store, monkeypatch):
    url = "https://example.com"
    community.record_scan(score_url(url))
    key = canonical_key(url)
    real_next_reaction = store.next_reaction
    interleaved = []

    def next_reaction(current, requested):
        # viewer-b's like commits while viewer-a's toggle is in flight
        if not interleaved:
            interleaved.append(True)
            store.apply_reaction(key, "viewer-b", "like")
        return real_next_reaction(current, requested)

    monkeypatch.setattr(store, "next_reaction", next_reaction)
    state = community.toggle_reaction(url, "viewer-a", "like")
    assert state == {"likes": 2, "dislikes": 0, "user_reaction": "like"}
    assert store.get_link(key) == {"likes": 2, "dislikes": 0}


def test_comment_requires_viewer(store):
    with pytest.raises(ValueError, match="viewer id"):
        community.post_comment("https://example.com", "hello", "")
    assert community.list_comments("https://example.com") == []


def test_tables_created_by_init_db_only(store, tmp_path):
    path = tmp_path / "fresh.db"
    store.configure(f"sqlite:///{path}")
    assert not path.exists()
    store.init_db()
    assert {"scans", "links", "reactions", "comments"} <= set(inspect(store.engine).get_table_names())
