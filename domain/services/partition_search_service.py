"""
Exact partition search.

Branch and bound over groups sorted by descending rating, looking for the set
of groups for side A whose size is exactly the player target and whose rating
sum is closest to the balanced target. The depth-first search keeps an
explicit index stack instead of recursing.
"""

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass, field

from domain.errors import (
    ImpossibleSizeConstraintError,
    InfeasibleToleranceError,
    InvalidConfigurationError,
)
from domain.models.balance_plan import PartitionResult
from domain.models.group import Group, PartitionTargets

logger = logging.getLogger("squad_balancer.search")


@dataclass
class SearchState:
    """
    DFS state: indices of the groups currently on side A plus running totals.

    move_delta is the sum of (moves_to_side_a - moves_to_side_b) over the
    included groups; together with a prefix of moves_to_side_b it gives the
    moves implied by every decided group.
    """

    stack: list[int] = field(default_factory=list)
    included_skill: float = 0.0
    included_players: int = 0
    move_delta: int = 0
    iterations: int = 0

    def push(self, index: int, group: Group) -> None:
        self.stack.append(index)
        self.included_skill += group.rating
        self.included_players += group.size
        self.move_delta += group.moves_to_side_a - group.moves_to_side_b

    def pop(self, groups: Sequence[Group]) -> int:
        index = self.stack.pop()
        group = groups[index]
        self.included_skill -= group.rating
        self.included_players -= group.size
        self.move_delta -= group.moves_to_side_a - group.moves_to_side_b
        return index


class ExactPartitionSearch:
    """
    Exact side-A search in two modes: skill-optimal and minimal player moves.

    Groups are sorted by descending rating (stable, so equal ratings keep their
    formation order) and the "include" branch is explored before "exclude".
    Among equally good candidates the first one found wins, which favours
    including the earlier, higher rated group. The search is deterministic for
    a given group list.
    """

    def __init__(self, groups: Sequence[Group]):
        self.groups: list[Group] = sorted(groups, key=lambda g: g.rating, reverse=True)
        self.targets = PartitionTargets.from_groups(self.groups)

        n = len(self.groups)
        # Suffix arrays have a trailing zero so index n means "no groups left"
        self.max_skill_from = [0.0] * (n + 1)
        self.players_remaining = [0] * (n + 1)
        self.min_moves_from = [0] * (n + 1)
        self.moves_to_b_from = [0] * (n + 1)
        for i in range(n - 1, -1, -1):
            group = self.groups[i]
            # Negative ratings can only lower a side's total, so they never raise the bound
            self.max_skill_from[i] = self.max_skill_from[i + 1] + max(group.rating, 0.0)
            self.players_remaining[i] = self.players_remaining[i + 1] + group.size
            self.min_moves_from[i] = self.min_moves_from[i + 1] + min(
                group.moves_to_side_a, group.moves_to_side_b
            )
            self.moves_to_b_from[i] = self.moves_to_b_from[i + 1] + group.moves_to_side_b

        # min_fill_from[i][k] / max_fill_from[i][k]: lowest and highest skill that k
        # more players taken from groups i..end can add, with groups split into
        # per-player shares. Every real completion lies between the two.
        player_target = self.targets.player_target
        self.min_fill_from: list[list[float]] = []
        self.max_fill_from: list[list[float]] = []
        for i in range(n + 1):
            shares = sorted(
                g.rating / g.size for g in self.groups[i:] for _ in range(g.size)
            )
            self.min_fill_from.append(self._prefix_sums(shares, player_target, math.inf))
            self.max_fill_from.append(self._prefix_sums(shares[::-1], player_target, -math.inf))

        # Float sums taken in a different order may disagree in the last bits
        self.slack = 1e-9 * max(1.0, abs(self.targets.target_skill))

    @staticmethod
    def _prefix_sums(values: list[float], length: int, missing: float) -> list[float]:
        sums = [0.0]
        for k in range(length):
            sums.append(sums[-1] + values[k] if k < len(values) else missing)
        return sums

    def _check_group_sizes(self) -> None:
        """Fail fast when a group cannot fit on either side."""
        player_target = self.targets.player_target
        for group in self.groups:
            if group.size > player_target:
                raise ImpossibleSizeConstraintError(
                    f"Group {group} has {group.size} players but a side holds at most "
                    f"{player_target}. Disable clan/squad preservation for this match."
                )

    def _has_size_feasible_partition(self) -> bool:
        """Check whether any set of groups adds up to exactly the player target."""
        player_target = self.targets.player_target
        reachable = {0}
        for group in self.groups:
            reachable |= {total + group.size for total in reachable if total + group.size <= player_target}
        return player_target in reachable

    def _moved_players(self, state: SearchState, cursor: int) -> int:
        """Moves implied by groups before cursor (included on A, skipped on B)."""
        decided_to_b = self.moves_to_b_from[0] - self.moves_to_b_from[cursor]
        return decided_to_b + state.move_delta

    def _build_result(self, stack: list[int], iterations: int) -> PartitionResult:
        included = set(stack)
        side_a = [g for i, g in enumerate(self.groups) if i in included]
        side_b = [g for i, g in enumerate(self.groups) if i not in included]
        side_a_rating = sum(g.rating for g in side_a)
        return PartitionResult(
            side_a_groups=side_a,
            side_b_groups=side_b,
            skill_gap=self.targets.normalized_gap(side_a_rating),
            moved_players=sum(g.moves_to_side_a for g in side_a) + sum(g.moves_to_side_b for g in side_b),
            iterations=iterations,
        )

    def _bitset(self, stack: list[int]) -> str:
        included = set(stack)
        return "".join("1" if i in included else "0" for i in range(len(self.groups)))

    def search_skill(self, allowable_gap: float) -> PartitionResult:
        """
        Find the side A with the smallest skill gap.

        Args:
            allowable_gap: Largest accepted gap per player on side A

        Raises:
            ImpossibleSizeConstraintError: No set of groups fills side A exactly
            InfeasibleToleranceError: Best gap per player exceeds allowable_gap
        """
        self._check_group_sizes()
        groups = self.groups
        targets = self.targets
        state = SearchState()

        best_stack: list[int] | None = None
        best_gap = math.inf
        skill_lower_bound = -math.inf
        i = 0

        while True:
            state.iterations += 1
            players_needed = targets.player_target - state.included_players

            if players_needed == 0:
                skill_gap = abs(state.included_skill - targets.target_skill)
                if skill_gap < best_gap:
                    best_gap = skill_gap
                    best_stack = list(state.stack)
                    # Only ever tightens: any later candidate must beat this gap
                    skill_lower_bound = targets.target_skill - skill_gap
                    logger.debug(
                        f"New best: gap {skill_gap:.4f} {self._bitset(best_stack)} "
                        f"after {state.iterations} iterations"
                    )
                    if skill_gap <= self.slack:
                        logger.debug(f"Perfect split found after {state.iterations} iterations")
                        break
                backtrack = True
            else:
                backtrack = (
                    players_needed > self.players_remaining[i]
                    or state.included_skill + self.max_skill_from[i] <= skill_lower_bound
                    or state.included_skill + self.max_fill_from[i][players_needed]
                    <= skill_lower_bound - self.slack
                    or state.included_skill + self.min_fill_from[i][players_needed]
                    >= targets.target_skill + best_gap + self.slack
                )

            if backtrack:
                if not state.stack:
                    break
                i = state.pop(groups) + 1
                continue

            if groups[i].size <= players_needed:
                state.push(i, groups[i])
            i += 1

        if best_stack is None:
            raise ImpossibleSizeConstraintError(
                f"No combination of {len(groups)} groups fills a side of {targets.player_target} players"
            )

        normalized_gap = best_gap / targets.player_target if targets.player_target else 0.0
        logger.debug(
            f"Skill search finished: gap {normalized_gap:.4f} per player, "
            f"{state.iterations} iterations, {self._bitset(best_stack)}"
        )
        if normalized_gap > allowable_gap:
            raise InfeasibleToleranceError(
                f"Best balance found is {normalized_gap:.4f} per player, allowed {allowable_gap:.4f}. "
                "A large clan or squad probably dominates one side.",
                best_gap=normalized_gap,
                allowable_gap=allowable_gap,
            )

        return self._build_result(best_stack, state.iterations)

    def search_min_moves(self, allowable_gap: float) -> PartitionResult:
        """
        Find the side A within tolerance that moves the fewest players.

        The skill gap only breaks ties between candidates with the same number
        of moves.

        Args:
            allowable_gap: Largest accepted gap per player on side A

        Raises:
            InvalidConfigurationError: allowable_gap is negative
            ImpossibleSizeConstraintError: No set of groups fills side A exactly
            InfeasibleToleranceError: No size-valid side is within allowable_gap
        """
        if allowable_gap < 0:
            raise InvalidConfigurationError(f"allowable_gap must be non-negative, got {allowable_gap}")
        self._check_group_sizes()
        groups = self.groups
        targets = self.targets
        state = SearchState()

        allowed_total = allowable_gap * targets.player_target
        skill_floor = targets.target_skill - allowed_total
        skill_ceiling = targets.target_skill + allowed_total

        best_stack: list[int] | None = None
        best_moves = math.inf
        best_gap = math.inf
        i = 0

        while True:
            state.iterations += 1
            players_needed = targets.player_target - state.included_players
            moved_players = self._moved_players(state, i)

            if players_needed == 0:
                # Every group not on the stack goes to side B
                final_moves = self.moves_to_b_from[0] + state.move_delta
                skill_gap = abs(state.included_skill - targets.target_skill)
                if skill_gap <= allowed_total and (
                    final_moves < best_moves or (final_moves == best_moves and skill_gap < best_gap)
                ):
                    best_moves = final_moves
                    best_gap = skill_gap
                    best_stack = list(state.stack)
                    logger.debug(
                        f"New best: {final_moves} moves, gap {skill_gap:.4f} "
                        f"{self._bitset(best_stack)} after {state.iterations} iterations"
                    )
                    if final_moves == self.min_moves_from[0] and skill_gap <= self.slack:
                        break
                backtrack = True
            else:
                backtrack = (
                    players_needed > self.players_remaining[i]
                    or moved_players + self.min_moves_from[i] > best_moves
                    or state.included_skill + self.max_skill_from[i] < skill_floor
                    or state.included_skill + self.max_fill_from[i][players_needed]
                    < skill_floor - self.slack
                    or state.included_skill + self.min_fill_from[i][players_needed]
                    > skill_ceiling + self.slack
                )

            if backtrack:
                if not state.stack:
                    break
                i = state.pop(groups) + 1
                continue

            if groups[i].size <= players_needed:
                state.push(i, groups[i])
            i += 1

        if best_stack is None:
            if not self._has_size_feasible_partition():
                raise ImpossibleSizeConstraintError(
                    f"No combination of {len(groups)} groups fills a side of {targets.player_target} players"
                )
            raise InfeasibleToleranceError(
                f"No assignment within {allowable_gap:.4f} per player exists for these groups",
                allowable_gap=allowable_gap,
            )

        logger.debug(
            f"Min moves search finished: {best_moves} moves, gap {best_gap:.4f}, "
            f"{state.iterations} iterations, {self._bitset(best_stack)}"
        )
        return self._build_result(best_stack, state.iterations)
