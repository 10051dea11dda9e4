import asyncio
import time


class Clock:
    """
    Source of time for everything that waits or timestamps.
    Injected so that backoff and scheduling can be exercised without real timers.
    """

    def time(self) -> float:
        """Wall-clock epoch seconds, comparable with GitHub's reset instants."""
        return time.time()

    def monotonic(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(seconds, 0))


SYSTEM_CLOCK = Clock()
