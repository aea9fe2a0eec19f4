"""Tests for the per-user pending selection cache."""

import asyncio

import pytest

from core.selection import SelectionCache, SelectionOutcomeKind
from tests.conftest import make_record


def _records(n=3):
    return [make_record(f"展会{i}") for i in range(1, n + 1)]


class TestSelectionResolve:
    @pytest.mark.asyncio
    async def test_no_pending_entry_passes_through(self):
        cache = SelectionCache()
        outcome = cache.resolve("u1", "1")
        assert outcome.kind is SelectionOutcomeKind.PASSTHROUGH

    @pytest.mark.asyncio
    async def test_zero_cancels_and_clears(self):
        cache = SelectionCache()
        cache.start("u1", _records())

        outcome = cache.resolve("u1", "0")

        assert outcome.kind is SelectionOutcomeKind.CANCELED
        assert not cache.has_pending("u1")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("index", [1, 2, 3])
    async def test_valid_index_returns_matching_record(self, index):
        cache = SelectionCache()
        records = _records()
        cache.start("u1", records, image_mode=True)

        outcome = cache.resolve("u1", str(index))

        assert outcome.kind is SelectionOutcomeKind.RESOLVED
        assert outcome.record is records[index - 1]
        assert outcome.image_mode is True
        assert not cache.has_pending("u1")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["4", "-1", "abc", "", "1.5", "２", " 0 ", "00"])
    async def test_invalid_input_keeps_entry(self, text):
        cache = SelectionCache()
        records = _records()
        cache.start("u1", records)

        outcome = cache.resolve("u1", text)

        assert outcome.kind is SelectionOutcomeKind.INVALID
        assert cache.has_pending("u1")
        assert cache.resolve("u1", "1").record is records[0]

    @pytest.mark.asyncio
    async def test_users_are_isolated(self):
        cache = SelectionCache()
        cache.start("u1", _records(2))
        cache.start("u2", _records(3))

        cache.resolve("u1", "0")

        assert not cache.has_pending("u1")
        assert cache.pending_count("u2") == 3

    @pytest.mark.asyncio
    async def test_start_rejects_empty_list(self):
        cache = SelectionCache()
        with pytest.raises(ValueError):
            cache.start("u1", [])


class TestSelectionExpiry:
    @pytest.mark.asyncio
    async def test_expiry_clears_and_notifies(self):
        cache = SelectionCache(text_ttl=0.05)
        notices = []

        async def _notify():
            notices.append("timeout")

        cache.start("u1", _records(), on_expire=_notify)
        await asyncio.sleep(0.15)

        assert not cache.has_pending("u1")
        assert notices == ["timeout"]

    @pytest.mark.asyncio
    async def test_image_mode_uses_longer_ttl(self):
        cache = SelectionCache(text_ttl=0.05, image_ttl=0.5)
        cache.start("u1", _records(), image_mode=True)

        await asyncio.sleep(0.15)

        assert cache.has_pending("u1")
        cache.discard("u1")

    @pytest.mark.asyncio
    async def test_superseded_entry_timer_never_fires(self):
        cache = SelectionCache(text_ttl=0.2)
        notices = []

        async def _first():
            notices.append("first")

        async def _second():
            notices.append("second")

        cache.start("u1", _records(2), on_expire=_first)
        await asyncio.sleep(0.1)
        newer = _records(3)
        cache.start("u1", newer, on_expire=_second)

        # The first timer would have fired here
        await asyncio.sleep(0.15)
        assert cache.pending_count("u1") == 3
        assert notices == []

        await asyncio.sleep(0.15)
        assert notices == ["second"]
        assert not cache.has_pending("u1")

    @pytest.mark.asyncio
    async def test_resolved_entry_sends_no_timeout(self):
        cache = SelectionCache(text_ttl=0.05)
        notices = []

        async def _notify():
            notices.append("timeout")

        cache.start("u1", _records(), on_expire=_notify)
        cache.resolve("u1", "2")
        await asyncio.sleep(0.1)

        assert notices == []

    @pytest.mark.asyncio
    async def test_failing_notice_is_contained(self):
        cache = SelectionCache(text_ttl=0.01)

        async def _boom():
            raise RuntimeError("send failed")

        cache.start("u1", _records(), on_expire=_boom)
        await asyncio.sleep(0.05)

        assert not cache.has_pending("u1")

    @pytest.mark.asyncio
    async def test_clear_all_cancels_timers(self):
        cache = SelectionCache(text_ttl=0.05)
        notices = []

        async def _notify():
            notices.append("timeout")

        cache.start("u1", _records(), on_expire=_notify)
        cache.start("u2", _records(), on_expire=_notify)
        cache.clear_all()
        await asyncio.sleep(0.1)

        assert notices == []
        assert not cache.has_pending("u1")
        assert not cache.has_pending("u2")
