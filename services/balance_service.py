"""
BalanceService: host-facing entry point for balancing a match.

Wraps the synchronous engine with what the host plugin needs around it:
the "does this match need balancing" check, a size-only fallback for small
rosters, error-to-Result mapping, per-match serialisation and a deadline.
"""

import asyncio
import logging
import random
from collections.abc import Iterable, Sequence

from balancer import TeamBalancer
from config import (
    BALANCE_PLAYER_THRESHOLD,
    BALANCE_TIMEOUT_SECONDS,
    BALANCE_WIN_PROBABILITY_THRESHOLD,
    FULL_SHUFFLE_PERCENTAGE,
)
from domain.errors import BalanceError
from domain.models.balance_plan import STRATEGY_HEURISTIC_TIMEOUT, BalancePlan
from domain.models.player import Player, Side
from domain.services.team_balancing_service import TeamBalancingService
from rating_system import Rater
from services.error_codes import BALANCE_IN_PROGRESS, INSUFFICIENT_PLAYERS, VALIDATION_ERROR
from services.result import Result

logger = logging.getLogger("squad_balancer.balance_service")


class BalanceService:
    """
    Plans team balances for running matches.

    The engine has no guard against reentry, so the async API allows at most
    one balancing run per match at a time.
    """

    def __init__(
        self,
        balancer: TeamBalancer,
        rater: Rater | None = None,
        team_balancing_service: TeamBalancingService | None = None,
        player_threshold: int | None = None,
        timeout_seconds: float | None = None,
    ):
        """
        Initialize the service.

        Args:
            balancer: Engine used for skill balancing
            rater: Rater for the needs_balance check (default: the balancer's)
            team_balancing_service: Metrics and size-only balancing
            player_threshold: Fewer players than this get a size-only balance
            timeout_seconds: Deadline for one async balancing run
        """
        self.balancer = balancer
        self.rater = rater or balancer.rater
        self.team_balancing = team_balancing_service or TeamBalancingService()
        self.player_threshold = (
            player_threshold if player_threshold is not None else BALANCE_PLAYER_THRESHOLD
        )
        self.timeout_seconds = timeout_seconds if timeout_seconds is not None else BALANCE_TIMEOUT_SECONDS
        self._balance_locks: dict[str | int, asyncio.Lock] = {}

    def get_balance_lock(self, match_id: str | int) -> asyncio.Lock:
        """Get or create the lock serialising balancing runs for a match."""
        lock = self._balance_locks.get(match_id)
        if lock is None:
            lock = self._balance_locks[match_id] = asyncio.Lock()
        return lock

    def release_match(self, match_id: str | int) -> None:
        """Forget the lock of a finished match, unless a search still holds it."""
        lock = self._balance_locks.get(match_id)
        if lock is not None and not lock.locked():
            del self._balance_locks[match_id]

    def needs_balance(self, players: Iterable[Player], threshold: float | None = None) -> bool:
        """
        Check whether either side is favoured beyond the threshold.

        Args:
            players: Roster snapshot; unassigned players are ignored
            threshold: Win probability above which a side counts as favoured
        """
        threshold = threshold if threshold is not None else BALANCE_WIN_PROBABILITY_THRESHOLD
        players = list(players)
        side_a = [p.player_id for p in players if p.side is Side.A]
        side_b = [p.player_id for p in players if p.side is Side.B]
        if not side_a or not side_b:
            return False
        probability = self.rater.win_probability(side_a, side_b)
        logger.info(f"Side A win probability {probability:.3f} (threshold {threshold:.3f})")
        return probability > threshold or 1 - probability > threshold

    def plan_balance(
        self,
        players: Sequence[Player],
        squads: Iterable[Iterable[str]] | None = None,
        clans: Iterable[Iterable[str]] | None = None,
        threshold: float | None = None,
        min_moves: bool | None = None,
    ) -> Result[BalancePlan]:
        """
        Compute a balance plan for a roster.

        Rosters below the player threshold get a size-only balance, since a
        skill estimate over a handful of players is mostly noise.

        Returns:
            Result with the BalancePlan, or the engine error's code on failure
        """
        try:
            threshold = self.balancer.resolve_threshold(threshold)
        except BalanceError as e:
            logger.warning(f"Balance rejected ({e.code}): {e.message}")
            return Result.from_error(e)

        if len(players) < self.player_threshold:
            logger.info(
                f"{len(players)} players is below the balance threshold of "
                f"{self.player_threshold}, balancing on size only"
            )
            return Result.ok(self.team_balancing.size_only_balance(players, self.rater.rate))

        try:
            plan = self.balancer.calculate_target_teams(
                players,
                squads=squads,
                clans=clans,
                win_probability_threshold=threshold,
                min_moves=min_moves,
            )
        except BalanceError as e:
            logger.warning(f"Balance failed ({e.code}): {e.message}")
            return Result.from_error(e)

        plan.moved_players = self.team_balancing.count_moves(players, plan)
        logger.info(f"Balance planned ({plan.strategy}): {plan.moved_players} players to move")
        return Result.ok(plan)

    def plan_full_shuffle(
        self,
        players: Sequence[Player],
        percentage: float | None = None,
        rng: random.Random | None = None,
    ) -> Result[BalancePlan]:
        """Plan a random swap of a share of each side's squads."""
        percentage = percentage if percentage is not None else FULL_SHUFFLE_PERCENTAGE
        if not players:
            return Result.fail("No players to shuffle", code=INSUFFICIENT_PLAYERS)
        try:
            plan = self.team_balancing.random_squad_shuffle(players, percentage, rng=rng)
        except ValueError as e:
            return Result.fail(str(e), code=VALIDATION_ERROR)
        logger.info(f"Full shuffle planned: {plan.moved_players} players to move")
        return Result.ok(plan)

    async def plan_balance_async(
        self,
        match_id: str | int,
        players: Sequence[Player],
        squads: Iterable[Iterable[str]] | None = None,
        clans: Iterable[Iterable[str]] | None = None,
        threshold: float | None = None,
        min_moves: bool | None = None,
        timeout: float | None = None,
    ) -> Result[BalancePlan]:
        """
        Plan a balance off the event loop, at most one run per match.

        The engine runs in a worker thread under a deadline. On timeout the
        greedy heuristic is used instead (the min-moves objective is dropped)
        and the plan is marked heuristic_timeout. A thread cannot be
        interrupted, so the match lock stays held until the timed-out search
        thread has really finished.

        Returns:
            Result with the BalancePlan, or balance_in_progress if another run
            for the match holds the lock
        """
        lock = self.get_balance_lock(match_id)
        if lock.locked():
            return Result.fail(f"Balance already running for match {match_id}", code=BALANCE_IN_PROGRESS)

        timeout = timeout if timeout is not None else self.timeout_seconds
        players = list(players)
        squads = [list(s) for s in squads] if squads is not None else None
        clans = [list(c) for c in clans] if clans is not None else None

        await lock.acquire()

        def release(done: asyncio.Future) -> None:
            lock.release()
            if not done.cancelled() and done.exception() is not None:
                logger.error(f"Balance worker for match {match_id} failed: {done.exception()}")

        worker = asyncio.ensure_future(
            asyncio.to_thread(self.plan_balance, players, squads, clans, threshold, min_moves)
        )
        worker.add_done_callback(release)

        try:
            return await asyncio.wait_for(asyncio.shield(worker), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(
                f"Balance for match {match_id} timed out after {timeout}s, using heuristic; "
                "the match stays locked until the search finishes"
            )
            return await asyncio.to_thread(self._heuristic_fallback, players, squads, clans)

    def _heuristic_fallback(
        self,
        players: Sequence[Player],
        squads: Iterable[Iterable[str]] | None,
        clans: Iterable[Iterable[str]] | None,
    ) -> Result[BalancePlan]:
        try:
            groups = self.balancer.form_groups(players, squads, clans)
            result = self.balancer.heuristic.partition(groups)
        except BalanceError as e:
            logger.warning(f"Heuristic fallback failed ({e.code}): {e.message}")
            return Result.from_error(e)

        plan = result.to_plan(STRATEGY_HEURISTIC_TIMEOUT)
        plan.moved_players = self.team_balancing.count_moves(players, plan)
        plan.notes.append("exact search timed out")
        return Result.ok(plan)
