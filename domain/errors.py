"""
Balancing errors.

Every error is terminal for the current balancing run. The ``code`` attribute
is a stable machine-readable identifier that the service layer passes through
to ``Result.fail``.
"""


class BalanceError(Exception):
    """Base class for errors raised by the balancing engine."""

    code = "balance_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InfeasibleToleranceError(BalanceError):
    """
    The search finished but the best side found is outside the allowed gap.

    Usually a single clan or squad dominates one side.
    """

    code = "infeasible_tolerance"

    def __init__(self, message: str, best_gap: float | None = None, allowable_gap: float | None = None):
        super().__init__(message)
        self.best_gap = best_gap
        self.allowable_gap = allowable_gap


class ImpossibleSizeConstraintError(BalanceError):
    """A group is too large for the remaining capacity of either side."""

    code = "impossible_size_constraint"


class IterationLimitExceededError(ImpossibleSizeConstraintError):
    """The heuristic did not converge within its iteration bound."""

    code = "iteration_limit_exceeded"


class InvalidConfigurationError(BalanceError, ValueError):
    """Threshold out of range, or an objective the chosen strategy cannot serve."""

    code = "invalid_configuration"
