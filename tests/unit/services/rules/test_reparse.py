"""Unit tests for ReparseOrchestrator.

Tests cover:
- Sweep selection (scope, attributed parser, orphans, skipped items)
- Stats accounting
- Per-item write retries and failures
- Unresolved sweep and single-item reparse
"""

import pytest

from app.config.rules import ReparseConfig
from app.models.filter_rule import TargetType
from app.models.raw_item import ParseStatus
from app.services.rules.locks import LocalScopeLockManager, fetcher_lock_key
from app.services.rules.reparse import ReparseOrchestrator
from app.services.rules.resolver import PARSE_REGEX_MISMATCH, TitleParserResolver
from app.services.rules.scope import ScopeResolver


@pytest.fixture
def locks() -> LocalScopeLockManager:
    return LocalScopeLockManager(timeout=1.0)


@pytest.fixture
def orchestrator(fake_store, locks) -> ReparseOrchestrator:
    """Orchestrator with small pages."""
    return ReparseOrchestrator(
        fake_store,
        TitleParserResolver(),
        ScopeResolver(),
        locks,
        ReparseConfig(batch_size=2, persist_max_attempts=3),
    )


@pytest.mark.unit
class TestReparseSweep:
    """Tests for parser-change sweeps."""

    @pytest.mark.asyncio
    async def test_global_sweep_resolves_everything(
        self, fake_store, orchestrator, make_parser, make_item
    ):
        """A global parser sweeps every non-skipped item."""
        fake_store.add_parser(make_parser(1, condition=r"Show"))
        fake_store.add_item(make_item(1, "Show - 01"))
        fake_store.add_item(make_item(2, "Show - xx"))
        fake_store.add_item(make_item(3, "Other"))

        stats = await orchestrator.reparse(1)

        assert (stats.parsed, stats.failed, stats.no_match, stats.total) == (1, 1, 1, 3)
        assert fake_store.items[1].status == ParseStatus.PARSED
        assert fake_store.items[1].parser_id == 1
        assert fake_store.items[1].parse_result["episode_no"] == 1
        assert fake_store.items[2].status == ParseStatus.FAILED
        assert fake_store.items[2].error_message == PARSE_REGEX_MISMATCH
        assert fake_store.items[3].status == ParseStatus.NO_MATCH
        assert fake_store.items[3].parser_id is None

    @pytest.mark.asyncio
    async def test_stats_add_up(self, fake_store, orchestrator, make_parser, make_item):
        """parsed + no_match + failed always equals total."""
        fake_store.add_parser(make_parser(1, condition=r"^S"))
        for i, title in enumerate(["Show - 01", "Show - x", "Nope", "Sea - 2", "X"], start=1):
            fake_store.add_item(make_item(i, title))

        stats = await orchestrator.reparse(1)

        assert stats.parsed + stats.no_match + stats.failed == stats.total == 5

    @pytest.mark.asyncio
    async def test_scoped_sweep(self, fake_store, orchestrator, make_parser, make_item):
        """A fetcher-scoped parser only sweeps that fetcher's items."""
        fake_store.add_parser(
            make_parser(1, created_from_type=TargetType.FETCHER, created_from_id=1)
        )
        fake_store.add_item(make_item(1, "Show - 01", fetcher_id=1))
        fake_store.add_item(make_item(2, "Show - 02", fetcher_id=2))

        stats = await orchestrator.reparse(1, TargetType.FETCHER, 1)

        assert stats.total == 1
        assert fake_store.saved == [1]
        assert fake_store.items[2].status == ParseStatus.PENDING

    @pytest.mark.asyncio
    async def test_items_attributed_to_parser_swept(
        self, fake_store, orchestrator, make_parser, make_item
    ):
        """Items the parser claimed before a scope change are swept too."""
        fake_store.add_parser(
            make_parser(1, created_from_type=TargetType.FETCHER, created_from_id=1)
        )
        fake_store.add_item(
            make_item(1, "Show - 01", fetcher_id=2), parser_id=1, status=ParseStatus.PARSED
        )

        stats = await orchestrator.reparse(1, TargetType.FETCHER, 1)

        assert stats.total == 1
        assert fake_store.items[1].status == ParseStatus.NO_MATCH
        assert fake_store.items[1].parser_id is None

    @pytest.mark.asyncio
    async def test_skipped_items_untouched(self, fake_store, orchestrator, make_parser, make_item):
        """Skipped items are never swept."""
        fake_store.add_parser(make_parser(1))
        fake_store.add_item(make_item(1, "Show - 01"), status=ParseStatus.SKIPPED)

        stats = await orchestrator.reparse(1)

        assert stats.total == 0
        assert fake_store.items[1].status == ParseStatus.SKIPPED

    @pytest.mark.asyncio
    async def test_orphans_after_delete(self, fake_store, orchestrator, make_parser, make_item):
        """Items left without a parser are swept when orphans are included."""
        fake_store.add_parser(make_parser(2, condition=r"Show"))
        fake_store.add_item(
            make_item(1, "Show - 01", fetcher_id=5), status=ParseStatus.PARSED, parser_id=None
        )

        without = await orchestrator.reparse(1, TargetType.FETCHER, 9, include_orphans=False)
        with_orphans = await orchestrator.reparse(1, TargetType.FETCHER, 9, include_orphans=True)

        assert without.total == 0
        assert with_orphans.total == 1
        assert fake_store.items[1].parser_id == 2

    @pytest.mark.asyncio
    async def test_pages_cover_all_items(self, fake_store, orchestrator, make_parser, make_item):
        """Keyset paging visits every item exactly once."""
        fake_store.add_parser(make_parser(1))
        for i in range(1, 8):
            fake_store.add_item(make_item(i, f"Show - {i:02d}"))

        stats = await orchestrator.reparse(1)

        assert stats.total == 7
        assert fake_store.saved == list(range(1, 8))


@pytest.mark.unit
class TestPersistence:
    """Tests for per-item write handling."""

    @pytest.mark.asyncio
    async def test_transient_failure_retried(
        self, fake_store, orchestrator, make_parser, make_item
    ):
        """A write that fails fewer times than the attempt limit succeeds."""
        fake_store.add_parser(make_parser(1))
        fake_store.add_item(make_item(1, "Show - 01"))
        fake_store.write_failures[1] = 2

        stats = await orchestrator.reparse(1)

        assert stats.parsed == 1
        assert fake_store.items[1].status == ParseStatus.PARSED

    @pytest.mark.asyncio
    async def test_persistent_failure_counted(
        self, fake_store, orchestrator, make_parser, make_item
    ):
        """An item whose write keeps failing counts as failed; others continue."""
        fake_store.add_parser(make_parser(1))
        fake_store.add_item(make_item(1, "Show - 01"))
        fake_store.add_item(make_item(2, "Show - 02"))
        fake_store.write_failures[1] = 10

        stats = await orchestrator.reparse(1)

        assert (stats.parsed, stats.failed, stats.total) == (1, 1, 2)
        assert fake_store.items[1].status == ParseStatus.PENDING
        assert fake_store.items[2].status == ParseStatus.PARSED

    @pytest.mark.asyncio
    async def test_vanished_item_counted_failed(
        self, fake_store, orchestrator, make_parser, make_item
    ):
        """An item deleted mid-sweep is counted as failed without retries."""
        fake_store.add_parser(make_parser(1))
        fake_store.add_item(make_item(1, "Show - 01"))
        save = fake_store.save_resolution

        async def delete_then_save(item_id, resolution):
            fake_store.items.pop(item_id, None)
            await save(item_id, resolution)

        fake_store.save_resolution = delete_then_save

        stats = await orchestrator.reparse(1)

        assert (stats.failed, stats.total) == (1, 1)


@pytest.mark.unit
class TestUnresolvedAndSingle:
    """Tests for the unresolved sweep and single-item reparse."""

    @pytest.mark.asyncio
    async def test_unresolved_sweep(self, fake_store, orchestrator, make_parser, make_item):
        """Only pending, no_match and failed items are swept."""
        fake_store.add_parser(make_parser(1))
        fake_store.add_item(make_item(1, "Show - 01"), status=ParseStatus.PENDING)
        fake_store.add_item(make_item(2, "Show - 02"), status=ParseStatus.NO_MATCH)
        fake_store.add_item(make_item(3, "Show - 03"), status=ParseStatus.FAILED)
        fake_store.add_item(make_item(4, "Show - 04"), status=ParseStatus.PARSED, parser_id=1)
        fake_store.add_item(make_item(5, "Show - 05"), status=ParseStatus.SKIPPED)

        stats = await orchestrator.reparse_unresolved()

        assert stats.total == 3
        assert sorted(fake_store.saved) == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_reparse_item(self, fake_store, orchestrator, make_parser, make_item):
        """A single item is resolved and persisted."""
        fake_store.add_parser(make_parser(1))
        item = make_item(1, "Show - 01")
        fake_store.add_item(item)

        resolution = await orchestrator.reparse_item(item)

        assert resolution.matched_parser_id == 1
        assert fake_store.items[1].status == ParseStatus.PARSED

    @pytest.mark.asyncio
    async def test_locks_released(self, fake_store, orchestrator, locks, make_parser, make_item):
        """Scope locks are released once the sweep ends."""
        fake_store.add_parser(make_parser(1))
        fake_store.add_item(make_item(1, "Show - 01", fetcher_id=3))

        await orchestrator.reparse(1)

        assert locks.locked(fetcher_lock_key(3)) is False


@pytest.mark.unit
class TestSweepSnapshot:
    """Tests for the scope snapshot a sweep works from."""

    @pytest.mark.asyncio
    async def test_scopes_read_once_per_sweep(
        self, fake_store, orchestrator, make_parser, make_item
    ):
        """Subscription scopes are read once, not once per page."""
        fake_store.add_parser(make_parser(1))
        for i in range(1, 6):
            fake_store.add_item(make_item(i, f"Show - 0{i}"))

        stats = await orchestrator.reparse(1)

        assert stats.total == 5
        assert fake_store.scope_reads == 1

    @pytest.mark.asyncio
    async def test_unlocked_subscription_left_alone(
        self, fake_store, orchestrator, make_parser, make_item, monkeypatch
    ):
        """Items of a subscription that joined the scope after locking are not touched."""
        fake_store.add_parser(make_parser(1))
        fake_store.add_item(make_item(1, "Show - 01", fetcher_id=1))
        fake_store.add_item(make_item(2, "Show - 02", fetcher_id=2))

        async def locked_before_join(selection):
            return [1]

        monkeypatch.setattr(fake_store, "selection_subscription_ids", locked_before_join)

        stats = await orchestrator.reparse(1)

        assert stats.total == 1
        assert fake_store.items[1].status == ParseStatus.PARSED
        assert fake_store.items[2].status == ParseStatus.PENDING
