"""
Tests for BalanceService: the needs-balance check, Result mapping, per-match
locking and the timeout fallback.
"""

import asyncio
import random
import threading
import time

import pytest

from domain.models.balance_plan import (
    STRATEGY_EXACT,
    STRATEGY_FULL_SHUFFLE,
    STRATEGY_HEURISTIC_TIMEOUT,
    STRATEGY_SIZE_ONLY,
)
from domain.models.player import Player, Side
from services import error_codes
from services.balance_service import BalanceService
from tests.conftest import make_roster


async def wait_until_unlocked(lock, attempts=500):
    """Poll until a lock held by a background search is released."""
    for _ in range(attempts):
        if not lock.locked():
            return
        await asyncio.sleep(0.01)
    raise AssertionError("match lock was never released")


class TestNeedsBalance:
    """Test the unbalanced-match check."""

    def test_stacked_match_needs_balance(self, balance_service, stacked_roster):
        """Ten strong players on one side exceed the threshold."""
        assert balance_service.needs_balance(stacked_roster, threshold=0.75) is True

    def test_even_match_does_not(self, balance_service, stacked_roster):
        """Five strong players per side is fine."""
        for i, player in enumerate(stacked_roster):
            player.side = Side.A if i % 2 == 0 else Side.B
        assert balance_service.needs_balance(stacked_roster, threshold=0.75) is False

    def test_underdog_side_also_counts(self, balance_service, stacked_roster):
        """A side that is too weak triggers balancing just like a too strong one."""
        for player in stacked_roster:
            player.side = player.side.opposite
        assert balance_service.needs_balance(stacked_roster, threshold=0.75) is True

    def test_one_sided_roster_does_not(self, balance_service):
        """With nobody on side B there is no match to judge."""
        players = [Player(f"p{i}", side=Side.A) for i in range(4)]
        assert balance_service.needs_balance(players) is False


class TestPlanBalance:
    """Test synchronous planning and error mapping."""

    def test_plan_for_stacked_roster(self, balance_service, stacked_roster):
        """A stacked roster yields an exact plan with ten moves."""
        result = balance_service.plan_balance(stacked_roster, threshold=0.75)

        assert result.success
        plan = result.value
        assert plan.strategy == STRATEGY_EXACT
        assert plan.moved_players == 10

    def test_small_roster_uses_size_only(self, balance_service):
        """Below the player threshold only sizes are balanced."""
        players = make_roster(6, side_a=5)
        result = balance_service.plan_balance(players)

        assert result.success
        assert result.value.strategy == STRATEGY_SIZE_ONLY
        assert len(result.value.side_a) == 3
        assert len(result.value.side_b) == 3

    def test_engine_error_becomes_failed_result(self, balance_service, stacked_roster):
        """Engine errors are returned with their code instead of raised."""
        for player in stacked_roster[:10]:
            player.clan_id = "TAG"
        result = balance_service.plan_balance(stacked_roster, threshold=0.75)

        assert not result.success
        assert result.error_code == error_codes.INFEASIBLE_TOLERANCE

    def test_invalid_threshold_rejected_for_small_roster(self, balance_service):
        """The threshold is checked before the size-only shortcut."""
        players = make_roster(6, side_a=5)
        result = balance_service.plan_balance(players, threshold=2.0)

        assert not result.success
        assert result.error_code == error_codes.INVALID_CONFIGURATION

    def test_invalid_threshold_becomes_failed_result(self, balance_service, stacked_roster):
        """A bad threshold is reported as a configuration error."""
        result = balance_service.plan_balance(stacked_roster, threshold=0.4)

        assert not result.success
        assert result.error_code == error_codes.INVALID_CONFIGURATION


class TestFullShuffle:
    """Test the full shuffle plan."""

    def test_shuffle_moves_a_share_of_squads(self, balance_service):
        """40% of five squads per side is two squads each way."""
        players = [
            Player(f"{side.name}{squad}-{k}", side=side, squad_id=str(squad))
            for side in (Side.A, Side.B)
            for squad in range(5)
            for k in range(2)
        ]
        result = balance_service.plan_full_shuffle(players, percentage=40, rng=random.Random(1))

        assert result.success
        assert result.value.strategy == STRATEGY_FULL_SHUFFLE
        assert result.value.moved_players == 8

    def test_empty_roster_fails(self, balance_service):
        """There is nothing to shuffle."""
        result = balance_service.plan_full_shuffle([])
        assert result.error_code == error_codes.INSUFFICIENT_PLAYERS

    def test_bad_percentage_fails(self, balance_service, stacked_roster):
        """Percentages outside 0-100 are rejected."""
        result = balance_service.plan_full_shuffle(stacked_roster, percentage=150)
        assert result.error_code == error_codes.VALIDATION_ERROR


class TestBalanceLocks:
    """Test per-match lock handling."""

    def test_lock_is_reused_per_match(self, balance_service, match_id):
        """The same match always gets the same lock."""
        assert balance_service.get_balance_lock(match_id) is balance_service.get_balance_lock(match_id)

    def test_locks_are_per_match(self, balance_service, match_id, secondary_match_id):
        """Different matches have independent locks."""
        assert balance_service.get_balance_lock(match_id) is not balance_service.get_balance_lock(
            secondary_match_id
        )

    def test_release_match_drops_idle_lock(self, balance_service, match_id):
        """A finished match's lock is forgotten."""
        lock = balance_service.get_balance_lock(match_id)
        balance_service.release_match(match_id)
        assert balance_service.get_balance_lock(match_id) is not lock

    @pytest.mark.asyncio
    async def test_release_match_keeps_busy_lock(self, balance_service, match_id):
        """A lock still held by a running search is not forgotten."""
        lock = balance_service.get_balance_lock(match_id)
        await lock.acquire()
        try:
            balance_service.release_match(match_id)
            assert balance_service.get_balance_lock(match_id) is lock
        finally:
            lock.release()


class TestPlanBalanceAsync:
    """Test the async API."""

    @pytest.mark.asyncio
    async def test_async_plan(self, balance_service, stacked_roster, match_id):
        """The async API returns the same plan as the sync one."""
        result = await balance_service.plan_balance_async(match_id, stacked_roster, threshold=0.75)
        expected = balance_service.plan_balance(stacked_roster, threshold=0.75)

        assert result.success
        assert result.value.side_a == expected.value.side_a

    @pytest.mark.asyncio
    async def test_concurrent_run_is_refused(self, balance_service, stacked_roster, match_id):
        """A second run for the same match is refused while the first holds the lock."""
        lock = balance_service.get_balance_lock(match_id)
        await lock.acquire()
        try:
            result = await balance_service.plan_balance_async(match_id, stacked_roster)
        finally:
            lock.release()

        assert not result.success
        assert result.error_code == error_codes.BALANCE_IN_PROGRESS

    @pytest.mark.asyncio
    async def test_other_match_is_not_blocked(
        self, balance_service, stacked_roster, match_id, secondary_match_id
    ):
        """A run for one match does not block another match."""
        lock = balance_service.get_balance_lock(match_id)
        await lock.acquire()
        try:
            result = await balance_service.plan_balance_async(secondary_match_id, stacked_roster)
        finally:
            lock.release()

        assert result.success

    @pytest.mark.asyncio
    async def test_lock_released_after_run(self, balance_service, stacked_roster, match_id):
        """The match lock is free again once a run completes."""
        await balance_service.plan_balance_async(match_id, stacked_roster)
        assert not balance_service.get_balance_lock(match_id).locked()

    @pytest.mark.asyncio
    async def test_timeout_falls_back_to_heuristic(self, balancer, stacked_roster, match_id):
        """A search that misses the deadline is replaced by the heuristic."""
        service = BalanceService(balancer, player_threshold=10)
        real_plan_balance = service.plan_balance

        def slow_plan_balance(*args, **kwargs):
            time.sleep(0.5)
            return real_plan_balance(*args, **kwargs)

        service.plan_balance = slow_plan_balance
        result = await service.plan_balance_async(match_id, stacked_roster, min_moves=True, timeout=0.05)

        assert result.success
        plan = result.value
        assert plan.strategy == STRATEGY_HEURISTIC_TIMEOUT
        assert abs(len(plan.side_a) - len(plan.side_b)) <= 1
        assert set(plan.side_a) | set(plan.side_b) == {p.player_id for p in stacked_roster}
        await wait_until_unlocked(service.get_balance_lock(match_id))

    @pytest.mark.asyncio
    async def test_concurrent_calls_one_wins(self, balancer, stacked_roster, match_id):
        """Two simultaneous runs for one match: one plans, one is refused."""
        service = BalanceService(balancer, player_threshold=10)
        real_plan_balance = service.plan_balance

        def slow_plan_balance(*args, **kwargs):
            time.sleep(0.1)
            return real_plan_balance(*args, **kwargs)

        service.plan_balance = slow_plan_balance
        results = await asyncio.gather(
            service.plan_balance_async(match_id, stacked_roster),
            service.plan_balance_async(match_id, stacked_roster),
        )

        codes = sorted(str(r.error_code) for r in results)
        assert [r.success for r in results].count(True) == 1
        assert error_codes.BALANCE_IN_PROGRESS in codes

    @pytest.mark.asyncio
    async def test_timed_out_search_keeps_match_locked(self, balancer, stacked_roster, match_id):
        """After a timeout the match stays busy until the search thread ends; runs never overlap."""
        service = BalanceService(balancer, player_threshold=10)
        real_plan_balance = service.plan_balance
        finish = threading.Event()
        counter_lock = threading.Lock()
        in_flight = 0
        peak = []

        def blocked_plan_balance(*args, **kwargs):
            nonlocal in_flight
            with counter_lock:
                in_flight += 1
                peak.append(in_flight)
            finish.wait(5.0)
            with counter_lock:
                in_flight -= 1
            return real_plan_balance(*args, **kwargs)

        service.plan_balance = blocked_plan_balance
        lock = service.get_balance_lock(match_id)

        first = await service.plan_balance_async(match_id, stacked_roster, timeout=0.05)
        second = await service.plan_balance_async(match_id, stacked_roster, timeout=0.05)

        assert first.value.strategy == STRATEGY_HEURISTIC_TIMEOUT
        assert second.error_code == error_codes.BALANCE_IN_PROGRESS
        assert lock.locked()

        finish.set()
        await wait_until_unlocked(lock)

        third = await service.plan_balance_async(match_id, stacked_roster)
        assert third.success
        assert max(peak) == 1

    @pytest.mark.asyncio
    async def test_failed_search_releases_lock(self, balancer, stacked_roster, match_id):
        """An unexpected worker error propagates and frees the match."""
        service = BalanceService(balancer, player_threshold=10)

        def broken_plan_balance(*args, **kwargs):
            raise RuntimeError("rating provider went away")

        service.plan_balance = broken_plan_balance
        with pytest.raises(RuntimeError):
            await service.plan_balance_async(match_id, stacked_roster)

        await wait_until_unlocked(service.get_balance_lock(match_id))
