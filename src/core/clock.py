"""Wall clock and delay primitive used for request timestamps and polling."""
from __future__ import annotations
import asyncio
import time


def time_now_ms() -> int:
    return int(time.time() * 1000)


class Clock:
    """Real time. Tests swap in a fake with the same two methods."""

    def now_ms(self) -> int:
        return time_now_ms()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)
