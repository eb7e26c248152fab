"""
Greedy partition fallback for rosters with too many groups for exact search.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from config import HEURISTIC_ITERATION_FACTOR
from domain.errors import (
    ImpossibleSizeConstraintError,
    InfeasibleToleranceError,
    InvalidConfigurationError,
    IterationLimitExceededError,
)
from domain.models.balance_plan import PartitionResult
from domain.models.group import Group, PartitionTargets
from domain.models.player import Side
from rating_system import Rater

logger = logging.getLogger("squad_balancer.heuristic")


@dataclass
class _Sides:
    """Running player counts and rating sums of both sides."""

    size_a: int = 0
    size_b: int = 0
    rating_a: float = 0.0
    rating_b: float = 0.0

    def pick(self) -> Side:
        """Side with fewer players; on a size tie, side A only if it is weaker."""
        if self.size_a < self.size_b or (self.size_a == self.size_b and self.rating_a < self.rating_b):
            return Side.A
        return Side.B

    def add(self, group: Group, side: Side) -> None:
        if side is Side.A:
            self.size_a += group.size
            self.rating_a += group.rating
        else:
            self.size_b += group.size
            self.rating_b += group.rating

    def remove(self, group: Group, side: Side) -> None:
        if side is Side.A:
            self.size_a -= group.size
            self.rating_a -= group.rating
        else:
            self.size_b -= group.size
            self.rating_b -= group.rating

    def imbalance(self) -> int:
        return abs(self.size_a - self.size_b)


class HeuristicPartitioner:
    """
    Near-linear greedy partition.

    Groups are processed in ascending rate_group order and each goes to the
    side with fewer players. If a placement leaves a size imbalance that the
    unplaced players cannot even out, earlier placements are rolled back until
    the problem group fits, and the problem group is moved ahead of them.
    """

    def __init__(self, rater: Rater, iteration_factor: float | None = None):
        """
        Initialize the partitioner.

        Args:
            rater: Rater whose rate_group orders the groups
            iteration_factor: Placement budget per group (default HEURISTIC_ITERATION_FACTOR)
        """
        self.rater = rater
        self.iteration_factor = (
            iteration_factor if iteration_factor is not None else HEURISTIC_ITERATION_FACTOR
        )
        if self.iteration_factor < 1:
            raise InvalidConfigurationError(
                f"iteration_factor must be at least 1, got {self.iteration_factor}"
            )

    def partition(self, groups: Sequence[Group], allowable_gap: float | None = None) -> PartitionResult:
        """
        Split groups into two sides whose sizes differ by at most one.

        The larger side is always reported as side A.

        Args:
            groups: Groups to assign
            allowable_gap: If given, largest accepted per-player skill gap

        Returns:
            PartitionResult for the greedy assignment

        Raises:
            ImpossibleSizeConstraintError: A group cannot fit on either side
            IterationLimitExceededError: Roll-backs used up the placement budget
            InfeasibleToleranceError: Final gap exceeds allowable_gap
        """
        targets = PartitionTargets.from_groups(groups)
        for group in groups:
            if group.size > targets.player_target:
                raise ImpossibleSizeConstraintError(
                    f"Group {group} has {group.size} players but a side holds at most "
                    f"{targets.player_target}"
                )

        # Score once; rate_group is not required to be stable between calls
        scores = [self.rater.rate_group(group.members) for group in groups]
        order = [group for _, _, group in sorted(zip(scores, range(len(groups)), groups))]
        assignments: list[Side | None] = [None] * len(order)

        sides = _Sides()
        remaining = targets.total_players
        iteration_limit = self.iteration_factor * len(order)
        iterations = 0
        i = 0

        while i < len(order):
            iterations += 1
            if iterations > iteration_limit:
                raise IterationLimitExceededError(
                    f"Greedy balance did not converge within {iteration_limit:.0f} placements; "
                    "player group sizes are likely too big"
                )

            group = order[i]
            side = sides.pick()
            sides.add(group, side)
            assignments[i] = side
            remaining -= group.size

            if sides.imbalance() <= remaining + 1:
                i += 1
                continue

            # Unplace the problem group, then earlier ones until it can go in without breaking sizes
            sides.remove(group, side)
            assignments[i] = None
            remaining += group.size
            j = i - 1
            while not self._fits(group, sides, remaining):
                if j < 0:
                    raise ImpossibleSizeConstraintError(
                        f"Group {group} cannot be placed without leaving the sides unbalanced"
                    )
                sides.remove(order[j], assignments[j])
                assignments[j] = None
                remaining += order[j].size
                j -= 1

            logger.debug(f"Rolled back {i - j - 1} placements to fit {group}")
            order.insert(j + 1, order.pop(i))
            i = j + 1

        side_a = [g for g, s in zip(order, assignments) if s is Side.A]
        side_b = [g for g, s in zip(order, assignments) if s is Side.B]
        if sides.size_a < sides.size_b:
            side_a, side_b = side_b, side_a

        side_a_rating = sum(g.rating for g in side_a)
        skill_gap = targets.normalized_gap(side_a_rating)
        logger.debug(
            f"Greedy balance finished: {len(side_a)}/{len(side_b)} groups, "
            f"gap {skill_gap:.4f}, {iterations} placements"
        )

        if allowable_gap is not None and skill_gap > allowable_gap:
            raise InfeasibleToleranceError(
                f"Greedy balance reached {skill_gap:.4f} per player, allowed {allowable_gap:.4f}",
                best_gap=skill_gap,
                allowable_gap=allowable_gap,
            )

        return PartitionResult(
            side_a_groups=side_a,
            side_b_groups=side_b,
            skill_gap=skill_gap,
            moved_players=sum(g.moves_to_side_a for g in side_a) + sum(g.moves_to_side_b for g in side_b),
            iterations=iterations,
        )

    @staticmethod
    def _fits(group: Group, sides: _Sides, remaining: int) -> bool:
        """Would placing group on the picked side keep the imbalance recoverable?"""
        trial = _Sides(sides.size_a, sides.size_b, sides.rating_a, sides.rating_b)
        trial.add(group, trial.pick())
        return trial.imbalance() <= remaining - group.size + 1
