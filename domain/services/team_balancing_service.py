"""
Team balancing domain service.

Side metrics and the simple balancing modes that do not need a partition
search: a player-level size balance and a random squad shuffle.
"""

import math
import random
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass

from domain.models.balance_plan import STRATEGY_FULL_SHUFFLE, STRATEGY_SIZE_ONLY, BalancePlan
from domain.models.player import Player, Side


@dataclass
class SideSummary:
    """Player count and rating totals of one side."""

    side: Side
    players: int
    total_rating: float

    @property
    def average_rating(self) -> float:
        if self.players == 0:
            return 0.0
        return self.total_rating / self.players


class TeamBalancingService:
    """
    Pure domain service for side metrics and non-search balancing.

    Responsibilities:
    - Summarise each side's ratings
    - Count the moves a plan implies
    - Produce size-only and shuffle plans
    """

    def side_skill_summary(
        self, players: Iterable[Player], rate: Callable[[str], float]
    ) -> tuple[SideSummary, SideSummary]:
        """
        Summarise the current sides.

        Args:
            players: Roster snapshot; unassigned players are ignored
            rate: Rating function for a player id

        Returns:
            Tuple of (side A summary, side B summary)
        """
        summary_a = SideSummary(Side.A, 0, 0.0)
        summary_b = SideSummary(Side.B, 0, 0.0)
        for player in players:
            if player.side is Side.A:
                summary = summary_a
            elif player.side is Side.B:
                summary = summary_b
            else:
                continue
            summary.players += 1
            summary.total_rating += rate(player.player_id)
        return summary_a, summary_b

    def skill_difference(self, players: Iterable[Player], rate: Callable[[str], float]) -> float:
        """Absolute difference between the sides' average ratings."""
        summary_a, summary_b = self.side_skill_summary(players, rate)
        return abs(summary_a.average_rating - summary_b.average_rating)

    def count_moves(self, players: Iterable[Player], plan: BalancePlan) -> int:
        """Number of players whose side differs from the plan."""
        to_side_a, to_side_b = plan.moves_for(players)
        return len(to_side_a) + len(to_side_b)

    def size_only_balance(self, players: Sequence[Player], rate: Callable[[str], float]) -> BalancePlan:
        """
        Player-level greedy balance that ignores squads and clans.

        Players are taken weakest first; each goes to the side with fewer
        players, or on a tie to side A only if side A is weaker. Used for small
        rosters where a group search is not worth running.
        """
        side_a: list[str] = []
        side_b: list[str] = []
        rating_a = 0.0
        rating_b = 0.0

        ratings = {player.player_id: rate(player.player_id) for player in players}
        for player_id in sorted(ratings, key=ratings.get):
            if len(side_a) < len(side_b) or (len(side_a) == len(side_b) and rating_a < rating_b):
                side_a.append(player_id)
                rating_a += ratings[player_id]
            else:
                side_b.append(player_id)
                rating_b += ratings[player_id]

        if len(side_a) < len(side_b):
            side_a, side_b = side_b, side_a
            rating_a, rating_b = rating_b, rating_a

        plan = BalancePlan(
            side_a=side_a,
            side_b=side_b,
            strategy=STRATEGY_SIZE_ONLY,
            side_a_rating=rating_a,
            side_b_rating=rating_b,
        )
        plan.moved_players = self.count_moves(players, plan)
        return plan

    def random_squad_shuffle(
        self,
        players: Sequence[Player],
        percentage: float,
        rng: random.Random | None = None,
    ) -> BalancePlan:
        """
        Swap a random share of each side's squads to the other side.

        Players without a squad stay where they are; unassigned players fill
        the smaller side.

        Args:
            players: Roster snapshot
            percentage: Share of each side's squads to move (0-100), rounded up
            rng: Random source (default: a fresh random.Random)

        Returns:
            BalancePlan with strategy full_shuffle
        """
        if not 0 <= percentage <= 100:
            raise ValueError(f"percentage must be within [0, 100], got {percentage}")
        rng = rng or random.Random()

        squads: dict[tuple[Side, str], list[str]] = {}
        targets: dict[str, Side] = {}
        unassigned: list[str] = []
        for player in players:
            if player.side is None:
                unassigned.append(player.player_id)
                continue
            targets[player.player_id] = player.side
            if player.squad_id is not None:
                squads.setdefault((player.side, player.squad_id), []).append(player.player_id)

        notes = []
        for side in (Side.A, Side.B):
            side_squads = [members for (squad_side, _), members in squads.items() if squad_side is side]
            swap_count = min(math.ceil(len(side_squads) * percentage / 100), len(side_squads))
            chosen = rng.sample(side_squads, swap_count)
            for members in chosen:
                for player_id in members:
                    targets[player_id] = side.opposite
            notes.append(f"{swap_count} of {len(side_squads)} squads moved off side {side.name}")

        side_a = [pid for pid, side in targets.items() if side is Side.A]
        side_b = [pid for pid, side in targets.items() if side is Side.B]
        for player_id in unassigned:
            (side_a if len(side_a) <= len(side_b) else side_b).append(player_id)

        plan = BalancePlan(side_a=side_a, side_b=side_b, strategy=STRATEGY_FULL_SHUFFLE, notes=notes)
        plan.moved_players = self.count_moves(players, plan)
        return plan
