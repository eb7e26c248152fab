"""
Group domain model.

A group is the atomic unit moved by the balancer: a clan, a squad or a single
player. Its members always end up on the same side.
"""

import math
from collections.abc import Sequence
from dataclasses import dataclass

GROUP_KIND_CLAN = "clan"
GROUP_KIND_SQUAD = "squad"
GROUP_KIND_INDIVIDUAL = "individual"


@dataclass(frozen=True)
class Group:
    """
    Immutable group of players that must be assigned to one side together.

    Attributes:
        members: Player ids in formation order (never empty)
        rating: Sum of each member's individual rating
        current_side_count: Members currently on side A
        current_side_b_count: Members currently on side B
        kind: clan, squad or individual
        key: Identifier of the clan/squad the group came from
    """

    members: tuple[str, ...]
    rating: float
    current_side_count: int = 0
    current_side_b_count: int = 0
    kind: str = GROUP_KIND_INDIVIDUAL
    key: str | None = None

    def __post_init__(self):
        if not self.members:
            raise ValueError("Group must have at least one member")

    @property
    def size(self) -> int:
        return len(self.members)

    @property
    def moves_to_side_a(self) -> int:
        """Players that change side if the group is assigned to side A."""
        return self.size - self.current_side_count

    @property
    def moves_to_side_b(self) -> int:
        """Players that change side if the group is assigned to side B."""
        return self.size - self.current_side_b_count

    def __str__(self) -> str:
        label = f"{self.kind}:{self.key}" if self.key is not None else self.kind
        return f"{label} x{self.size} (rating {self.rating:.3f}, on A {self.current_side_count})"


@dataclass(frozen=True)
class PartitionTargets:
    """Totals and the balanced target for side A."""

    total_skill: float
    total_players: int
    average_skill: float
    player_target: int
    target_skill: float

    @classmethod
    def from_groups(cls, groups: Sequence[Group]) -> "PartitionTargets":
        """
        Compute totals and targets for a set of groups.

        Side A is the reference side and receives ceil(total / 2) players.
        """
        total_skill = sum(g.rating for g in groups)
        total_players = sum(g.size for g in groups)
        if total_players == 0:
            return cls(0.0, 0, 0.0, 0, 0.0)
        average_skill = total_skill / total_players
        player_target = math.ceil(total_players / 2)
        return cls(
            total_skill=total_skill,
            total_players=total_players,
            average_skill=average_skill,
            player_target=player_target,
            target_skill=average_skill * player_target,
        )

    def normalized_gap(self, side_skill: float) -> float:
        """Skill gap of a side-A total against the target, per target player."""
        if self.player_target == 0:
            return 0.0
        return abs(side_skill - self.target_skill) / self.player_target
