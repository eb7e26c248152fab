"""
Centralized configuration for the squad team balancer.
"""

from __future__ import annotations

import os
from typing import Any

from dotenv import load_dotenv

load_dotenv()


def _parse_int(env_var: str, default: int) -> int:
    raw = os.getenv(env_var)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _parse_float(env_var: str, default: float) -> float:
    raw = os.getenv(env_var)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _parse_bool(env_var: str, default: bool) -> bool:
    raw = os.getenv(env_var)
    if raw is None:
        return default
    return raw.lower() in {"1", "true", "yes", "on"}


# Win probability the favoured side may reach before a match counts as unbalanced
BALANCE_WIN_PROBABILITY_THRESHOLD = _parse_float("BALANCE_WIN_PROBABILITY_THRESHOLD", 0.75)
BALANCE_MIN_MOVES = _parse_bool("BALANCE_MIN_MOVES", False)

# Above this many groups the exact search (2^n states) is replaced by the heuristic
EXACT_SEARCH_MAX_GROUPS = _parse_int("EXACT_SEARCH_MAX_GROUPS", 20)
HEURISTIC_ITERATION_FACTOR = _parse_float("HEURISTIC_ITERATION_FACTOR", 1.5)

BALANCER_SETTINGS: dict[str, Any] = {
    "max_exact_groups": EXACT_SEARCH_MAX_GROUPS,
    "iteration_factor": HEURISTIC_ITERATION_FACTOR,
    # Every player becomes its own group (squads and clans are ignored)
    "split_groups": _parse_bool("BALANCE_SPLIT_GROUPS", False),
    "preserve_clans": _parse_bool("BALANCE_PRESERVE_CLANS", True),
    "preserve_squads": _parse_bool("BALANCE_PRESERVE_SQUADS", True),
    "verbose": _parse_bool("BALANCE_VERBOSE_LOGGING", False),
}

# Rating fallbacks for players without stats
FALLBACK_SKILL_RATING = _parse_float("FALLBACK_SKILL_RATING", 0.5)  # logistic scale
BASE_ELO_RATING = _parse_float("BASE_ELO_RATING", 1500.0)
MIN_ELO_RATING = _parse_float("MIN_ELO_RATING", 500.0)
MAX_ELO_RATING = _parse_float("MAX_ELO_RATING", 4000.0)

# Logistic regression fitted on historical match results:
# (Intercept) diff_avg_kdr diff_avg_playtime diff_avg_score
# 1.071732e-02 4.181450e+00 9.575052e-07 7.053987e-05
# The intercept is not applied so that P(A beats B) == 1 - P(B beats A).
LOGISTIC_COEFFICIENTS: dict[str, float] = {
    "kdr": 4.181450e00,
    "play_time": 9.575052e-07,
    "score": 7.053987e-05,
}

# Minimum number of players before skill-based balancing is attempted
BALANCE_PLAYER_THRESHOLD = _parse_int("BALANCE_PLAYER_THRESHOLD", 20)
# Deadline for a single balancing run before falling back to the heuristic
BALANCE_TIMEOUT_SECONDS = _parse_float("BALANCE_TIMEOUT_SECONDS", 5.0)
# Share of each side's squads moved by a full shuffle (percent)
FULL_SHUFFLE_PERCENTAGE = _parse_float("FULL_SHUFFLE_PERCENTAGE", 40.0)
