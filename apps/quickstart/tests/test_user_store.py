"""Tests for the in-memory user state store: pending validations, promotion, and disable."""

import threading

from apps.quickstart.users import TOLERANCE_IN_SECONDS, UserStateStore


def test_tolerance_is_six_minutes():
    assert TOLERANCE_IN_SECONDS == 360


# ---------------------------------------------------------------------------
# Promotion window
# ---------------------------------------------------------------------------


def test_promote_within_window(store, clock):
    """Token marked at t=1000 and promoted at t=1350 enables the user."""
    store.mark_pending("abc")
    clock.now = 1350.0
    assert store.promote("abc", "user1") is True
    assert store.list_enabled() == ["user1"]
    assert store.is_pending("abc") is False


def test_promote_outside_window_changes_nothing(store, clock):
    """Token promoted 400 s later is rejected and both maps stay as they were."""
    store.mark_pending("abc")
    clock.now = 1400.0
    assert store.promote("abc", "user1") is False
    assert store.list_enabled() == []
    assert store.is_pending("abc") is True


def test_promote_at_exact_tolerance_succeeds(store, clock):
    store.mark_pending("edge")
    clock.advance(360)
    assert store.promote("edge", "user1") is True


def test_promote_tolerates_future_timestamp(store, clock):
    """Freshness uses the absolute difference, so clock skew works both ways."""
    clock.now = 2000.0
    store.mark_pending("skewed")
    clock.now = 2000.0 - 300
    assert store.is_pending_fresh("skewed") is True
    assert store.promote("skewed", "user1") is True


def test_promote_unknown_token_fails(store):
    assert store.promote("never-issued", "user1") is False
    assert store.list_enabled() == []


def test_token_is_single_use(store):
    store.mark_pending("once")
    assert store.promote("once", "user1") is True
    assert store.promote("once", "user2") is False
    assert store.list_enabled() == ["user1"]


def test_is_pending_fresh_custom_tolerance(store, clock):
    store.mark_pending("t")
    clock.advance(100)
    assert store.is_pending_fresh("t") is True
    assert store.is_pending_fresh("t", tolerance=50) is False


def test_mark_pending_refreshes_timestamp(store, clock):
    """Calling mark_pending again for the same state restarts its window."""
    store.mark_pending("again")
    clock.advance(300)
    store.mark_pending("again")
    clock.advance(300)
    assert store.promote("again", "user1") is True


# ---------------------------------------------------------------------------
# Disable
# ---------------------------------------------------------------------------


def test_disable_removes_user(store):
    store.mark_pending("s")
    store.promote("s", "user1")
    assert store.disable("user1") is True
    assert "user1" not in store.list_enabled()
    assert store.is_enabled("user1") is False


def test_disable_is_idempotent(store):
    assert store.disable("ghost") is False
    assert store.disable("ghost") is False
    assert store.list_enabled() == []


# ---------------------------------------------------------------------------
# Stale token sweep
# ---------------------------------------------------------------------------


def test_purge_stale_drops_expired_tokens(store, clock):
    store.mark_pending("old")
    clock.advance(400)
    store.mark_pending("new")
    assert store.is_pending("old") is False
    assert store.is_pending("new") is True


def test_purge_stale_returns_count(store, clock):
    store.mark_pending("a")
    store.mark_pending("b")
    clock.advance(361)
    assert store.purge_stale() == 2
    assert store.purge_stale() == 0


def test_reset_clears_everything(store):
    store.mark_pending("s")
    store.promote("s", "user1")
    store.mark_pending("other")
    store.reset()
    assert store.list_enabled() == []
    assert store.is_pending("other") is False


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------


def test_concurrent_promotions_consume_token_once():
    """Only one of many racing promotions for the same token wins."""
    store = UserStateStore()
    store.mark_pending("contended")
    results = []
    barrier = threading.Barrier(8)

    def worker(i: int) -> None:
        barrier.wait()
        results.append(store.promote("contended", f"user{i}"))

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count(True) == 1
    assert len(store.list_enabled()) == 1
