"""
Domain models - pure data structures representing balancing entities.
"""

from domain.models.balance_plan import BalancePlan, PartitionResult
from domain.models.group import Group, PartitionTargets
from domain.models.player import Player, PlayerStats, Side

__all__ = ["BalancePlan", "PartitionResult", "Group", "PartitionTargets", "Player", "PlayerStats", "Side"]
