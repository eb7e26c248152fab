"""
Balance plan domain model.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field

from domain.models.group import Group
from domain.models.player import Player, Side

STRATEGY_EXACT = "exact"
STRATEGY_EXACT_MIN_MOVES = "exact_min_moves"
STRATEGY_HEURISTIC = "heuristic"
STRATEGY_HEURISTIC_TIMEOUT = "heuristic_timeout"
STRATEGY_SIZE_ONLY = "size_only"
STRATEGY_FULL_SHUFFLE = "full_shuffle"
STRATEGY_EMPTY = "empty"


@dataclass
class BalancePlan:
    """
    Target team assignment produced by one balancing run.

    side_a and side_b are disjoint and together cover the whole roster.
    The remaining fields are diagnostics for logging.
    """

    side_a: list[str]
    side_b: list[str]
    strategy: str = STRATEGY_EXACT
    skill_gap: float | None = None  # per-player gap against the balanced target
    moved_players: int | None = None
    iterations: int = 0
    side_a_rating: float | None = None
    side_b_rating: float | None = None
    notes: list[str] = field(default_factory=list)

    @classmethod
    def empty(cls) -> "BalancePlan":
        return cls(side_a=[], side_b=[], strategy=STRATEGY_EMPTY, skill_gap=0.0, moved_players=0)

    def side_of(self, player_id: str) -> Side | None:
        """Target side for a player, or None if the player is not in the plan."""
        if player_id in self.side_a:
            return Side.A
        if player_id in self.side_b:
            return Side.B
        return None

    def assignment(self) -> dict[str, Side]:
        """Map every planned player id to its target side."""
        targets = {pid: Side.A for pid in self.side_a}
        targets.update({pid: Side.B for pid in self.side_b})
        return targets

    def moves_for(self, players: Iterable[Player]) -> tuple[list[str], list[str]]:
        """
        Derive the swap lists handed to the swap executor.

        Players not covered by the plan (joined after it was computed) are left
        for the executor to distribute.

        Returns:
            Tuple of (ids to move onto side A, ids to move onto side B)
        """
        targets = self.assignment()
        to_side_a: list[str] = []
        to_side_b: list[str] = []
        for player in players:
            target = targets.get(player.player_id)
            if target is None or player.side is target:
                continue
            if target is Side.A:
                to_side_a.append(player.player_id)
            else:
                to_side_b.append(player.player_id)
        return to_side_a, to_side_b

    def __len__(self) -> int:
        return len(self.side_a) + len(self.side_b)


@dataclass
class PartitionResult:
    """Group-level outcome of a partition strategy, before flattening into a plan."""

    side_a_groups: list[Group]
    side_b_groups: list[Group]
    skill_gap: float
    moved_players: int
    iterations: int = 0

    @property
    def side_a_rating(self) -> float:
        return sum(g.rating for g in self.side_a_groups)

    @property
    def side_b_rating(self) -> float:
        return sum(g.rating for g in self.side_b_groups)

    def to_plan(self, strategy: str) -> BalancePlan:
        """Flatten the groups into player id lists."""
        return BalancePlan(
            side_a=[pid for g in self.side_a_groups for pid in g.members],
            side_b=[pid for g in self.side_b_groups for pid in g.members],
            strategy=strategy,
            skill_gap=self.skill_gap,
            moved_players=self.moved_players,
            iterations=self.iterations,
            side_a_rating=self.side_a_rating,
            side_b_rating=self.side_b_rating,
        )
