"""
Pytest fixtures for tests.

This module provides centralized roster builders and rater fixtures so test
modules do not each hand-roll players and ratings.
"""

import random

import pytest

from balancer import TeamBalancer
from domain.models.player import Player, PlayerStats, Side
from rating_system import EloRater, LogisticRegressionRater, RandomRater
from services.balance_service import BalanceService


# =============================================================================
# CENTRALIZED CONSTANTS
# =============================================================================

TEST_MATCH_ID = 12345
"""Standard match ID for single-match tests."""

TEST_MATCH_ID_SECONDARY = 67890
"""Secondary match ID for multi-match isolation tests."""


# =============================================================================
# ROSTER BUILDERS
# =============================================================================


def make_roster(count: int, side_a: int | None = None, prefix: str = "p") -> list[Player]:
    """
    Build a roster of untagged players.

    The first ``side_a`` players (default: half, rounded up) are on side A,
    the rest on side B.
    """
    if side_a is None:
        side_a = (count + 1) // 2
    return [
        Player(player_id=f"{prefix}{i}", side=Side.A if i < side_a else Side.B)
        for i in range(count)
    ]


def make_elo_rater(players: list[Player], ratings: list[float]) -> EloRater:
    """EloRater with the given ratings assigned to players in order."""
    return EloRater({p.player_id: r for p, r in zip(players, ratings)})


# =============================================================================
# ROSTER FIXTURES
# =============================================================================


@pytest.fixture
def twenty_players():
    """Twenty untagged players split 10/10."""
    return make_roster(20)


@pytest.fixture
def squad_roster():
    """
    Twenty players: a tagged squad of 6 on side A plus 14 untagged players.

    Four untagged players are on side A, ten on side B.
    """
    squad = [Player(f"s{i}", side=Side.A, squad_id="1") for i in range(6)]
    solo = [Player(f"u{i}", side=Side.A if i < 4 else Side.B) for i in range(14)]
    return squad + solo


@pytest.fixture
def stacked_roster():
    """Twenty players where side A holds every strong player."""
    return make_roster(20)


# =============================================================================
# RATER FIXTURES
# =============================================================================


@pytest.fixture
def equal_rater(twenty_players):
    """EloRater where every player of twenty_players is rated 1500."""
    return make_elo_rater(twenty_players, [1500.0] * 20)


@pytest.fixture
def stacked_rater(stacked_roster):
    """EloRater rating side A of stacked_roster at 2000 and side B at 1000."""
    return make_elo_rater(stacked_roster, [2000.0] * 10 + [1000.0] * 10)


@pytest.fixture
def random_rater():
    """Seeded RandomRater so runs are reproducible."""
    return RandomRater(random.Random(0))


@pytest.fixture
def logistic_rater():
    """LogisticRegressionRater over a small stats table."""
    stats = {
        "strong": PlayerStats(kdr=3.0, play_time=500_000.0, total_score=60_000.0),
        "average": PlayerStats(kdr=1.0, play_time=200_000.0, total_score=20_000.0),
        "weak": PlayerStats(kdr=0.5, play_time=50_000.0, total_score=5_000.0),
    }
    return LogisticRegressionRater(stats)


# =============================================================================
# SERVICE FIXTURES
# =============================================================================


@pytest.fixture
def balancer(stacked_rater):
    """TeamBalancer over stacked_rater with explicit settings."""
    return TeamBalancer(
        stacked_rater,
        max_exact_groups=20,
        split_groups=False,
        iteration_factor=1.5,
        preserve_clans=True,
        preserve_squads=True,
        verbose=False,
    )


@pytest.fixture
def balance_service(balancer):
    """BalanceService with a player threshold low enough for the test rosters."""
    return BalanceService(balancer, player_threshold=10, timeout_seconds=5.0)


@pytest.fixture
def match_id():
    """Standard match ID for single-match tests."""
    return TEST_MATCH_ID


@pytest.fixture
def secondary_match_id():
    """Secondary match ID for multi-match isolation tests."""
    return TEST_MATCH_ID_SECONDARY
