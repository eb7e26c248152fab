"""
OpenSkill Plackett-Luce rater.

Alternative rating model for servers that keep OpenSkill (mu, sigma) ratings
instead of raw statistics. Ratings are the players' mu; win probability comes
from the Plackett-Luce model's predict_win.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping
from statistics import NormalDist
from typing import TYPE_CHECKING

from openskill.models import PlackettLuce

from rating_system import Rater

if TYPE_CHECKING:
    from openskill.models import PlackettLuceRating

logger = logging.getLogger("squad_balancer.openskill")


class OpenSkillRater(Rater):
    """
    Rates players by OpenSkill mu.

    Missing players get a fresh default rating (mu 25, sigma ~8.333), so a
    roster with no rating data at all still balances on size.
    """

    DEFAULT_MU = 25.0
    DEFAULT_SIGMA = 25.0 / 3.0  # ~8.333
    DEFAULT_BETA = 25.0 / 6.0

    def __init__(
        self,
        ratings: Mapping[str, tuple[float, float]],
        reference_team_size: int = 1,
    ):
        """
        Initialize the rater.

        Args:
            ratings: (mu, sigma) per player id
            reference_team_size: Side size assumed when converting a win
                probability into a per-player mu gap
        """
        if reference_team_size < 1:
            raise ValueError("reference_team_size must be at least 1")
        self.ratings = dict(ratings)
        self.reference_team_size = reference_team_size
        self.model = PlackettLuce(
            mu=self.DEFAULT_MU,
            sigma=self.DEFAULT_SIGMA,
            beta=self.DEFAULT_BETA,
        )

    def create_rating(self, player_id: str) -> PlackettLuceRating:
        """Create the model rating for a player, or a default one if unrated."""
        mu, sigma = self.ratings.get(player_id, (self.DEFAULT_MU, self.DEFAULT_SIGMA))
        return self.model.create_rating([mu, sigma], name=player_id)

    def rate(self, player_id: str) -> float:
        rating = self.ratings.get(player_id)
        if rating is None:
            logger.debug(f"Missing OpenSkill rating for {player_id}, using default mu")
            return self.DEFAULT_MU
        return rating[0]

    def rate_group(self, player_ids: Iterable[str]) -> float:
        mus = [self.rate(pid) for pid in player_ids]
        if not mus:
            return self.DEFAULT_MU
        return sum(mus) / len(mus)

    def win_probability(self, side_a: Iterable[str], side_b: Iterable[str]) -> float:
        team_a = [self.create_rating(pid) for pid in side_a]
        team_b = [self.create_rating(pid) for pid in side_b]
        if not team_a or not team_b:
            return 0.5
        probabilities = self.model.predict_win([team_a, team_b])
        return probabilities[0]

    def probability_to_rating_gap(self, probability: float) -> float:
        """
        Per-player mu gap for a win probability.

        For two sides of n default-sigma players, predict_win is
        Phi(diff / sqrt(2n * (beta^2 + sigma^2))) where diff is the difference
        of the team mu sums. A side's distance from the balanced target is half
        that difference, spread over n players.
        """
        if probability >= 1.0:
            return math.inf
        if probability <= 0.5:
            return 0.0
        n = self.reference_team_size
        spread = math.sqrt(2 * n * (self.DEFAULT_BETA**2 + self.DEFAULT_SIGMA**2))
        side_difference = NormalDist().inv_cdf(probability) * spread
        return side_difference / (2 * n)
