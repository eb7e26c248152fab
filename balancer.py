"""
Team balancing orchestrator.
"""

import logging
from collections.abc import Iterable, Sequence

from config import BALANCE_MIN_MOVES, BALANCE_WIN_PROBABILITY_THRESHOLD, BALANCER_SETTINGS
from domain.errors import InvalidConfigurationError
from domain.models.balance_plan import (
    STRATEGY_EXACT,
    STRATEGY_EXACT_MIN_MOVES,
    STRATEGY_HEURISTIC,
    BalancePlan,
)
from domain.models.group import Group
from domain.models.player import Player
from domain.services.group_formation_service import GroupFormationService
from domain.services.heuristic_partition_service import HeuristicPartitioner
from domain.services.partition_search_service import ExactPartitionSearch
from rating_system import Rater


class TeamBalancer:
    """
    Computes target teams for a roster.

    Forms groups from squad and clan membership, then runs the exact search
    when the group count allows it and the greedy heuristic otherwise. Errors
    from either strategy reach the caller unchanged.
    """

    def __init__(
        self,
        rater: Rater,
        max_exact_groups: int | None = None,
        split_groups: bool | None = None,
        iteration_factor: float | None = None,
        preserve_clans: bool | None = None,
        preserve_squads: bool | None = None,
        verbose: bool | None = None,
        logger: logging.Logger | None = None,
    ):
        """
        Initialize the balancer.

        Args:
            rater: Rating model shared by group formation and both strategies
            max_exact_groups: Largest group count handled by the exact search (default 20)
            split_groups: Treat every player as its own group
            iteration_factor: Heuristic placement budget per group (default 1.5)
            preserve_clans: Form clan groups (False ignores clan membership)
            preserve_squads: Form squad groups (False ignores squad membership)
            verbose: Log group tables and search statistics at INFO instead of DEBUG
            logger: Logger for run diagnostics (default squad_balancer.balancer)
        """
        settings = BALANCER_SETTINGS
        self.rater = rater
        self.max_exact_groups = (
            max_exact_groups if max_exact_groups is not None else settings["max_exact_groups"]
        )
        self.split_groups = split_groups if split_groups is not None else settings["split_groups"]
        self.iteration_factor = (
            iteration_factor if iteration_factor is not None else settings["iteration_factor"]
        )
        self.preserve_clans = preserve_clans if preserve_clans is not None else settings["preserve_clans"]
        self.preserve_squads = (
            preserve_squads if preserve_squads is not None else settings["preserve_squads"]
        )
        self.verbose = verbose if verbose is not None else settings["verbose"]
        self.logger = logger or logging.getLogger("squad_balancer.balancer")

        if self.max_exact_groups < 1:
            raise InvalidConfigurationError(
                f"max_exact_groups must be at least 1, got {self.max_exact_groups}"
            )

        self.group_formation = GroupFormationService(rater, split_groups=self.split_groups)
        self.heuristic = HeuristicPartitioner(rater, iteration_factor=self.iteration_factor)

    def _log(self, message: str) -> None:
        self.logger.log(logging.INFO if self.verbose else logging.DEBUG, message)

    def form_groups(
        self,
        players: Sequence[Player],
        squads: Iterable[Iterable[str]] | None = None,
        clans: Iterable[Iterable[str]] | None = None,
    ) -> list[Group]:
        """Form groups, honouring the preserve_clans/preserve_squads switches."""
        if not self.preserve_squads:
            squads = []
        if not self.preserve_clans:
            clans = []
        return self.group_formation.form_groups(players, squads=squads, clans=clans)

    @staticmethod
    def resolve_threshold(win_probability_threshold: float | None) -> float:
        """Apply the configured default and check the threshold is within (0.5, 1]."""
        threshold = (
            win_probability_threshold
            if win_probability_threshold is not None
            else BALANCE_WIN_PROBABILITY_THRESHOLD
        )
        if not 0.5 < threshold <= 1.0:
            raise InvalidConfigurationError(
                f"win_probability_threshold must be within (0.5, 1], got {threshold}"
            )
        return threshold

    def calculate_target_teams(
        self,
        players: Sequence[Player],
        squads: Iterable[Iterable[str]] | None = None,
        clans: Iterable[Iterable[str]] | None = None,
        win_probability_threshold: float | None = None,
        min_moves: bool | None = None,
    ) -> BalancePlan:
        """
        Compute the target side of every player.

        Args:
            players: Roster snapshot
            squads: Squad membership sets; derived from squad tags if None
            clans: Clan membership sets; derived from clan tags if None
            win_probability_threshold: Highest accepted win probability for
                either side, in (0.5, 1]
            min_moves: Minimise moved players instead of the skill gap

        Returns:
            BalancePlan covering every player in the roster

        Raises:
            InvalidConfigurationError: Threshold out of range, or min_moves with
                more groups than the exact search handles
            ImpossibleSizeConstraintError: Group sizes cannot form two even sides
            InfeasibleToleranceError: No assignment reaches the threshold
        """
        threshold = self.resolve_threshold(win_probability_threshold)
        min_moves = min_moves if min_moves is not None else BALANCE_MIN_MOVES

        if not players:
            self._log("Empty roster, nothing to balance")
            return BalancePlan.empty()

        groups = self.form_groups(players, squads, clans)
        allowable_gap = self.rater.probability_to_rating_gap(threshold)
        self._log(
            f"Balancing {len(players)} players in {len(groups)} groups "
            f"(threshold {threshold:.3f}, allowable gap {allowable_gap:.4f}, min_moves={min_moves})"
        )
        if self.verbose:
            for group in groups:
                self._log(f"  {group}")

        if len(groups) > self.max_exact_groups:
            if min_moves:
                raise InvalidConfigurationError(
                    f"Min moves balance is not available for {len(groups)} groups "
                    f"(exact search handles at most {self.max_exact_groups})"
                )
            result = self.heuristic.partition(groups, allowable_gap)
            strategy = STRATEGY_HEURISTIC
        else:
            search = ExactPartitionSearch(groups)
            if min_moves:
                result = search.search_min_moves(allowable_gap)
                strategy = STRATEGY_EXACT_MIN_MOVES
            else:
                result = search.search_skill(allowable_gap)
                strategy = STRATEGY_EXACT

        plan = result.to_plan(strategy)
        self._log(
            f"Plan ({strategy}): {len(plan.side_a)}/{len(plan.side_b)} players, "
            f"gap {plan.skill_gap:.4f}, {plan.moved_players} moves, {plan.iterations} iterations"
        )
        return plan
