from typing import Optional


class ExporterException(Exception):
    """Base exception for all exporter-related errors."""
    pass

class ConfigurationException(ExporterException):
    """Raised when the environment does not describe a usable exporter."""
    pass

class UnknownTargetException(ExporterException):
    """Raised when the metric cache is asked about a target it was not built with."""
    def __init__(self, target_id: str):
        self.target_id = target_id
        super().__init__(f"Unknown target: {target_id}")

class WouldExceedBudget(ExporterException):
    """Raised by the rate budget tracker instead of issuing a call doomed to be rejected."""
    def __init__(self, reset_at: Optional[float], cost: int = 1):
        self.reset_at = reset_at
        self.cost = cost
        super().__init__(f"Rate budget exhausted for cost {cost}. Resets at: {reset_at}")


class FetchError(ExporterException):
    """Base class for failures of one fetch cycle."""
    retryable = False

    @property
    def kind(self) -> str:
        return type(self).__name__

class NotFound(FetchError):
    """The target was renamed or deleted."""
    pass

class AuthError(FetchError):
    """The credential was rejected or lacks permission."""
    pass

class Transient(FetchError):
    """5xx, timeout, connection failure or an unparseable payload."""
    retryable = True

class RateLimited(FetchError):
    """GitHub (or the local budget) refuses calls until reset_at."""
    def __init__(self, reset_at: Optional[float], message: str = "GitHub API rate limit exceeded."):
        self.reset_at = reset_at
        super().__init__(f"{message} Resets at: {reset_at}")
