"""
Carrots Exception Hierarchy

All exceptions inherit from CarrotsError for easy catching.
"""


class CarrotsError(Exception):
    """Base exception for all Carrots errors"""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class ValidationError(CarrotsError):
    """Raised when a commitment, condition or promise is malformed"""
    pass


class SnapshotError(CarrotsError):
    """Raised when a group snapshot document cannot be read"""
    pass


class ConfigurationError(CarrotsError):
    """Raised when engine configuration is invalid"""
    pass


class ComputationError(CarrotsError):
    """Raised when a liability computation fails"""
    pass


class NonConvergenceError(ComputationError):
    """
    Raised when the fixed-point iteration hits its bound without settling.

    The commitment graph is oscillating or otherwise inconsistent.
    No partial liabilities are ever returned alongside this error.
    """

    def __init__(
        self,
        iterations: int,
        max_iterations: int,
        tolerance: float,
        max_delta: float,
        group_id: str = None,
    ):
        details = {
            "iterations": iterations,
            "tolerance": tolerance,
            "max_delta": round(max_delta, 6),
        }
        if group_id is not None:
            details["group_id"] = group_id
        super().__init__(
            f"Liability calculation did not converge after {iterations} iterations",
            details,
        )
        self.iterations = iterations
        self.max_iterations = max_iterations
        self.tolerance = tolerance
        self.max_delta = max_delta
        self.group_id = group_id
