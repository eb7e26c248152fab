"""
Player domain model.
"""

from dataclasses import dataclass
from enum import Enum


class Side(int, Enum):
    """The two sides of a match. Side A is the reference side for balancing."""

    A = 1
    B = 2

    @property
    def opposite(self) -> "Side":
        return Side.B if self is Side.A else Side.A


@dataclass
class Player:
    """
    Represents a connected player in the roster snapshot.

    This is a pure domain model with no infrastructure dependencies.
    """

    player_id: str
    side: Side | None = None  # None while unassigned
    squad_id: str | None = None
    clan_id: str | None = None
    name: str | None = None

    def __str__(self) -> str:
        side_str = self.side.name if self.side is not None else "-"
        return f"{self.name or self.player_id} (side {side_str}, squad {self.squad_id}, clan {self.clan_id})"


@dataclass
class PlayerStats:
    """
    Aggregate statistics for one player, as resolved by the rating provider.

    win_rate is a percentage (0-100).
    """

    kdr: float = 1.0
    play_time: float = 0.0
    total_score: float = 0.0
    win_rate: float | None = None
    highest_killstreak: int | None = None
