"""
Group formation domain service.

Turns a flat roster plus squad/clan membership hints into the atomic groups
that the partition strategies move around.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from domain.models.group import (
    GROUP_KIND_CLAN,
    GROUP_KIND_INDIVIDUAL,
    GROUP_KIND_SQUAD,
    Group,
)
from domain.models.player import Player, Side
from rating_system import Rater


def players_to_squad_sets(players: Iterable[Player]) -> list[list[str]]:
    """
    Build squad membership sets from the players' squad tags.

    Squad ids are only unique per side in game, so the key is (side, squad id).
    Players without a squad tag are not part of any set.
    """
    squads: dict[tuple[Side | None, str], list[str]] = {}
    for player in players:
        if player.squad_id is None:
            continue
        squads.setdefault((player.side, player.squad_id), []).append(player.player_id)
    return list(squads.values())


def players_to_clan_sets(players: Iterable[Player]) -> list[list[str]]:
    """Build clan membership sets from the players' clan tags."""
    clans: dict[str, list[str]] = {}
    for player in players:
        if player.clan_id is None:
            continue
        clans.setdefault(player.clan_id, []).append(player.player_id)
    return list(clans.values())


@dataclass
class _GroupBuilder:
    kind: str
    key: str
    members: list[str] = field(default_factory=list)
    rating: float = 0.0
    side_a_count: int = 0
    side_b_count: int = 0

    def add(self, player: Player, rating: float) -> None:
        self.members.append(player.player_id)
        self.rating += rating
        if player.side is Side.A:
            self.side_a_count += 1
        elif player.side is Side.B:
            self.side_b_count += 1

    def build(self) -> Group:
        return Group(
            members=tuple(self.members),
            rating=self.rating,
            current_side_count=self.side_a_count,
            current_side_b_count=self.side_b_count,
            kind=self.kind,
            key=self.key,
        )


class GroupFormationService:
    """
    Pure domain service that forms balancing groups.

    Clans take priority over squads: a clan member playing in a pub squad moves
    with the clan, not with the squad.
    """

    def __init__(self, rater: Rater, split_groups: bool = False):
        """
        Initialize group formation.

        Args:
            rater: Rater used for each member's individual rating
            split_groups: If True every player is its own group
        """
        self.rater = rater
        self.split_groups = split_groups

    def form_groups(
        self,
        players: Sequence[Player],
        squads: Iterable[Iterable[str]] | None = None,
        clans: Iterable[Iterable[str]] | None = None,
    ) -> list[Group]:
        """
        Form groups for a balancing run.

        Args:
            players: Roster snapshot
            squads: Squad membership sets (player ids); derived from tags if None
            clans: Clan membership sets (player ids); derived from tags if None

        Returns:
            Clan groups, then squad groups, then individuals, each in first
            encounter order. Every player appears in exactly one group.
        """
        if self.split_groups:
            squads, clans = [], []
        if squads is None:
            squads = players_to_squad_sets(players)
        if clans is None:
            clans = players_to_clan_sets(players)

        clan_of = self._index_memberships(clans)
        squad_of = self._index_memberships(squads)

        clan_groups: dict[int, _GroupBuilder] = {}
        squad_groups: dict[int, _GroupBuilder] = {}
        individuals: list[_GroupBuilder] = []

        for player in players:
            rating = self.rater.rate(player.player_id)
            clan_index = clan_of.get(player.player_id)
            squad_index = squad_of.get(player.player_id)

            if clan_index is not None:
                builder = clan_groups.get(clan_index)
                if builder is None:
                    builder = clan_groups[clan_index] = _GroupBuilder(GROUP_KIND_CLAN, str(clan_index))
            elif squad_index is not None:
                builder = squad_groups.get(squad_index)
                if builder is None:
                    builder = squad_groups[squad_index] = _GroupBuilder(GROUP_KIND_SQUAD, str(squad_index))
            else:
                builder = _GroupBuilder(GROUP_KIND_INDIVIDUAL, player.player_id)
                individuals.append(builder)

            builder.add(player, rating)

        builders = [*clan_groups.values(), *squad_groups.values(), *individuals]
        return [builder.build() for builder in builders]

    @staticmethod
    def _index_memberships(sets: Iterable[Iterable[str]]) -> dict[str, int]:
        """Map player id to the index of the first set listing it."""
        index: dict[str, int] = {}
        for i, members in enumerate(sets):
            for player_id in members:
                index.setdefault(player_id, i)
        return index
