"""
Application services layer.

Services wrap the balancing engine for the host plugin.
"""

from services.balance_service import BalanceService

# Result type for consistent error handling
from services.result import Result

__all__ = ["BalanceService", "Result"]
