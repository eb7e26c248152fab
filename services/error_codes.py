"""
Standard error codes for the service layer.

These error codes let the host plugin react to specific balancing failures
(relax constraints, fall back to a size-only balance, give up for the match)
without parsing error message text. Engine errors carry the same strings in
their ``code`` attribute.

Usage:
    from services.error_codes import BALANCE_IN_PROGRESS
    from services.result import Result

    if lock.locked():
        return Result.fail("Balance already running for this match", code=BALANCE_IN_PROGRESS)
"""

# General errors
VALIDATION_ERROR = "validation_error"

# Engine errors (see domain.errors)
BALANCE_ERROR = "balance_error"
INFEASIBLE_TOLERANCE = "infeasible_tolerance"
IMPOSSIBLE_SIZE_CONSTRAINT = "impossible_size_constraint"
ITERATION_LIMIT_EXCEEDED = "iteration_limit_exceeded"
INVALID_CONFIGURATION = "invalid_configuration"

# Service errors
BALANCE_IN_PROGRESS = "balance_in_progress"
INSUFFICIENT_PLAYERS = "insufficient_players"
