import logging
import threading
from typing import Optional, Tuple

from github_exporter.domain.exceptions import WouldExceedBudget
from github_exporter.domain.models import Permit
from github_exporter.infrastructure.clock import Clock, SYSTEM_CLOCK

logger = logging.getLogger(__name__)


class RateBudget:
    """
    The one GitHub call quota shared by every fetcher of the process.

    GitHub enforces a single budget per credential, so this is a single counter
    behind a single lock. ``remaining`` of ``None`` means unknown: either no
    response has been seen yet, or the last known reset instant has passed and
    GitHub has refilled the budget.
    """

    def __init__(self, clock: Clock = SYSTEM_CLOCK):
        self._clock = clock
        self._lock = threading.Lock()
        self._remaining: Optional[int] = None
        self._reset_at: Optional[float] = None

    def reserve(self, cost: int = 1) -> Permit:
        """
        Grants ``cost`` calls or raises WouldExceedBudget.

        Args:
            cost (int): Number of API calls about to be issued.

        Returns:
            Permit: Proof of the reservation.
        """
        if cost < 1:
            raise ValueError("cost must be at least 1")

        with self._lock:
            now = self._clock.time()
            if self._reset_at is not None and now >= self._reset_at:
                # GitHub refills atomically at the reset instant
                self._remaining = None
                self._reset_at = None

            if self._remaining is not None:
                if self._remaining < cost:
                    raise WouldExceedBudget(reset_at=self._reset_at, cost=cost)
                self._remaining -= cost

            return Permit(cost=cost, granted_at=now)

    def record_response(self, remaining: int, reset_at: float) -> None:
        """Overwrites local bookkeeping with the server's authoritative headers."""
        with self._lock:
            self._remaining = max(int(remaining), 0)
            self._reset_at = float(reset_at)

        if remaining == 0:
            logger.warning(f"GitHub rate budget exhausted until {reset_at:.0f}.")

    def view(self) -> Tuple[Optional[int], Optional[float]]:
        """Returns (remaining, reset_at) as currently known."""
        with self._lock:
            return self._remaining, self._reset_at
