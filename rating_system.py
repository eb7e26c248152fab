"""
Rating models used to value players and estimate win probability.
"""

import logging
import math
import random
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from config import (
    BASE_ELO_RATING,
    FALLBACK_SKILL_RATING,
    LOGISTIC_COEFFICIENTS,
    MAX_ELO_RATING,
    MIN_ELO_RATING,
)
from domain.models.player import PlayerStats

logger = logging.getLogger("squad_balancer.rating")


class Rater(ABC):
    """
    Scores players and groups and estimates win probability between rosters.

    The search only ever works with the numbers returned by ``rate`` and the
    tolerance returned by ``probability_to_rating_gap``, so alternative rating
    models can be plugged in without touching it.
    """

    @abstractmethod
    def rate(self, player_id: str) -> float:
        """Rating of one player. Never raises for unknown players."""
        ...

    @abstractmethod
    def rate_group(self, player_ids: Iterable[str]) -> float:
        """Aggregate score of a set of players, used for heuristic ordering."""
        ...

    @abstractmethod
    def win_probability(self, side_a: Iterable[str], side_b: Iterable[str]) -> float:
        """Probability that side_a beats side_b, symmetric in its arguments."""
        ...

    @abstractmethod
    def probability_to_rating_gap(self, probability: float) -> float:
        """Translate an acceptable win probability into a per-player rating gap."""
        ...


class RandomRater(Rater):
    """Baseline rater with random scores, for exercising the search logic."""

    def __init__(self, rng: random.Random | None = None):
        self.rng = rng or random.Random()

    def rate(self, player_id: str) -> float:
        return self.rng.random()

    def rate_group(self, player_ids: Iterable[str]) -> float:
        return self.rng.random()

    def win_probability(self, side_a: Iterable[str], side_b: Iterable[str]) -> float:
        return 0.5

    def probability_to_rating_gap(self, probability: float) -> float:
        return 0.0005


@dataclass
class _StatVector:
    kdr: float = 0.0
    play_time: float = 0.0
    score: float = 0.0
    count: int = 0


class LogisticRegressionRater(Rater):
    """
    Logistic regression model fitted on historical match statistics.

    A roster is summarised by its mean KDR, play time and score; the win
    probability is a logistic function of the difference between two rosters.
    A player's rating is the player's win probability against the server average.
    """

    def __init__(
        self,
        player_stats: Mapping[str, PlayerStats],
        fallback_rating: float | None = None,
        coefficients: Mapping[str, float] | None = None,
    ):
        """
        Initialize the rater.

        Args:
            player_stats: Stats per player id, for the players with data
            fallback_rating: Rating for players without stats (default FALLBACK_SKILL_RATING)
            coefficients: Weights for kdr, play_time and score differences
        """
        self.player_stats = dict(player_stats)
        self.fallback_rating = (
            fallback_rating if fallback_rating is not None else FALLBACK_SKILL_RATING
        )
        self.coefficients = dict(coefficients or LOGISTIC_COEFFICIENTS)
        self.server_average = self._average_stats(self.player_stats.keys(), _StatVector())

    def rate(self, player_id: str) -> float:
        stats = self.player_stats.get(player_id)
        if stats is None:
            logger.debug(f"Missing stats for {player_id}, using fallback rating {self.fallback_rating}")
            return self.fallback_rating
        vector = _StatVector(stats.kdr, stats.play_time, stats.total_score, 1)
        return self._logistic(vector, self.server_average)

    def rate_group(self, player_ids: Iterable[str]) -> float:
        return self._logistic(self._average_stats(player_ids, self.server_average), self.server_average)

    def win_probability(self, side_a: Iterable[str], side_b: Iterable[str]) -> float:
        return self._logistic(
            self._average_stats(side_a, self.server_average),
            self._average_stats(side_b, self.server_average),
        )

    def probability_to_rating_gap(self, probability: float) -> float:
        # Ratings are already win probabilities against the average player
        return probability - 0.5

    def _logistic(self, stats_a: _StatVector, stats_b: _StatVector) -> float:
        z = (
            self.coefficients["kdr"] * (stats_a.kdr - stats_b.kdr)
            + self.coefficients["play_time"] * (stats_a.play_time - stats_b.play_time)
            + self.coefficients["score"] * (stats_a.score - stats_b.score)
        )
        return 1.0 / (1.0 + math.exp(-z))

    def _average_stats(self, player_ids: Iterable[str], default: _StatVector) -> _StatVector:
        """
        Mean stat vector of the players with data.

        Players without stats are skipped; a roster with no data at all is
        represented by ``default``.
        """
        total = _StatVector()
        for player_id in player_ids:
            stats = self.player_stats.get(player_id)
            if stats is None:
                continue
            total.kdr += stats.kdr
            total.play_time += stats.play_time
            total.score += stats.total_score
            total.count += 1

        if total.count == 0:
            return default

        return _StatVector(
            kdr=total.kdr / total.count,
            play_time=total.play_time / total.count,
            score=total.score / total.count,
            count=total.count,
        )


# Piecewise points per unit above/below the average, by bracket
_WIN_RATE_BRACKETS = [(50.0, 10.0), (60.0, 10.0), (70.0, 15.0), (80.0, 25.0), (math.inf, 40.0)]
_KDR_BRACKETS = [(1.0, 200.0), (2.0, 200.0), (3.0, 300.0), (4.0, 400.0), (math.inf, 500.0)]
_KILLSTREAK_POINTS = [(30, 250), (25, 200), (20, 150), (15, 0), (12, -50), (8, -100), (6, -150)]


def _piecewise_points(value: float, pivot: float, brackets: list[tuple[float, float]]) -> float:
    """Accumulate points bracket by bracket above the pivot, linearly below it."""
    below_weight = brackets[0][1]
    if value < pivot:
        return (value - pivot) * below_weight

    points = 0.0
    lower = pivot
    for upper, weight in brackets[1:]:
        if value <= upper:
            return points + (value - lower) * weight
        points += (upper - lower) * weight
        lower = upper
    return points


def stats_to_elo(
    stats: PlayerStats | None,
    base_rating: float | None = None,
    min_rating: float | None = None,
    max_rating: float | None = None,
) -> float:
    """
    Estimate an Elo-scale rating from aggregate stats.

    An average player (50% win rate, 1.0 KDR) sits at the base rating. Win rate,
    KDR and highest killstreak each add or subtract points; the result is
    clamped to [min_rating, max_rating].
    """
    base = base_rating if base_rating is not None else BASE_ELO_RATING
    low = min_rating if min_rating is not None else MIN_ELO_RATING
    high = max_rating if max_rating is not None else MAX_ELO_RATING
    if stats is None:
        return base

    win_rate = stats.win_rate or 50.0
    kdr = stats.kdr or 1.0
    rating = (
        base
        + _piecewise_points(win_rate, 50.0, _WIN_RATE_BRACKETS)
        + _piecewise_points(kdr, 1.0, _KDR_BRACKETS)
    )

    if stats.highest_killstreak:
        streak_points = -200
        for threshold, points in _KILLSTREAK_POINTS:
            if stats.highest_killstreak >= threshold:
                streak_points = points
                break
        rating += streak_points

    return float(round(max(low, min(high, rating))))


class EloRater(Rater):
    """
    Rater over precomputed Elo-scale ratings.

    Win probability uses the standard base-10 logistic curve on the difference
    of the two sides' average ratings.
    """

    ELO_SCALE = 400.0

    def __init__(self, ratings: Mapping[str, float], fallback_rating: float | None = None):
        self.ratings = dict(ratings)
        self.fallback_rating = fallback_rating if fallback_rating is not None else BASE_ELO_RATING

    @classmethod
    def from_stats(cls, player_stats: Mapping[str, PlayerStats], **kwargs) -> "EloRater":
        """Build a rater from raw stats using ``stats_to_elo``."""
        return cls({pid: stats_to_elo(stats) for pid, stats in player_stats.items()}, **kwargs)

    def rate(self, player_id: str) -> float:
        rating = self.ratings.get(player_id)
        if rating is None:
            logger.debug(f"Missing Elo rating for {player_id}, using fallback {self.fallback_rating}")
            return self.fallback_rating
        return rating

    def rate_group(self, player_ids: Iterable[str]) -> float:
        ratings = [self.rate(pid) for pid in player_ids]
        if not ratings:
            return self.fallback_rating
        return sum(ratings) / len(ratings)

    def win_probability(self, side_a: Iterable[str], side_b: Iterable[str]) -> float:
        diff = self.rate_group(side_a) - self.rate_group(side_b)
        return 1.0 / (1.0 + 10 ** (-diff / self.ELO_SCALE))

    def probability_to_rating_gap(self, probability: float) -> float:
        """
        Per-player rating gap for a win probability.

        The Elo difference between the sides is halved: the search measures one
        side against the roster average, which is half way between the sides.
        """
        if probability >= 1.0:
            return math.inf
        side_difference = self.ELO_SCALE * math.log10(probability / (1.0 - probability))
        return max(0.0, side_difference / 2)
