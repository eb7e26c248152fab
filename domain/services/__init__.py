"""
Domain services containing pure balancing logic.
"""

from domain.services.group_formation_service import GroupFormationService
from domain.services.heuristic_partition_service import HeuristicPartitioner
from domain.services.partition_search_service import ExactPartitionSearch
from domain.services.team_balancing_service import TeamBalancingService

__all__ = ["ExactPartitionSearch", "GroupFormationService", "HeuristicPartitioner", "TeamBalancingService"]
