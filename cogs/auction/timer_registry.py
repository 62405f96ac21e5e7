# cogs/auction/timer_registry.py
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from utils.auction_data import Auction
from utils.utilities import utcnow

logger = logging.getLogger("auction_bot")


@dataclass
class AuctionTimer:
    task: asyncio.Task
    fire_at: datetime


class AuctionTimerRegistry:
    """One precise, cancellable end-of-auction timer per auction.

    Timers live only in this process. They are rebuilt from the store on
    startup, and anything they miss is left to the sweep.
    """

    def __init__(
        self,
        on_fire: Callable[[int], Awaitable[object]],
        clock: Callable[[], datetime] = utcnow,
    ):
        self.on_fire = on_fire
        self.clock = clock
        self._timers: Dict[int, AuctionTimer] = {}

    def __len__(self):
        return len(self._timers)

    def is_scheduled(self, auction_id: int) -> bool:
        return auction_id in self._timers

    def fire_time(self, auction_id: int) -> Optional[datetime]:
        timer = self._timers.get(auction_id)
        return timer.fire_at if timer else None

    def schedule(self, auction_id: int, end_time: datetime) -> bool:
        """Arrange for the auction to be finalized at end_time, replacing any earlier timer."""
        delay = (end_time - self.clock()).total_seconds()
        if delay <= 0:
            # Already due, the sweep picks it up
            return False

        self.cancel(auction_id)
        task = asyncio.create_task(self._run_timer(auction_id, end_time))
        self._timers[auction_id] = AuctionTimer(task=task, fire_at=end_time)
        logger.info(f"Scheduled end of auction {auction_id} in {round(delay)} seconds")
        return True

    def cancel(self, auction_id: int):
        timer = self._timers.pop(auction_id, None)
        if timer and not timer.task.done():
            timer.task.cancel()
            logger.info(f"Cancelled timer for auction {auction_id}")

    def cancel_all(self):
        for auction_id in list(self._timers):
            self.cancel(auction_id)

    async def _run_timer(self, auction_id: int, fire_at: datetime):
        # The loop may wake slightly early, so wait until the clock has reached fire_at
        while (remaining := (fire_at - self.clock()).total_seconds()) > 0:
            await asyncio.sleep(remaining)
        logger.info(f"Timer firing for auction {auction_id}")
        # Drop the entry before finalizing so a late cancel or reschedule can't touch this run
        timer = self._timers.get(auction_id)
        if timer and timer.task is asyncio.current_task():
            del self._timers[auction_id]
        try:
            await self.on_fire(auction_id)
        except Exception:
            logger.exception(f"Timer for auction {auction_id} failed to finalize it")

    async def rebuild(self, session_factory: async_sessionmaker) -> int:
        """Schedule every open auction from the store; returns how many timers were created."""
        try:
            async with session_factory() as session:
                result = await session.execute(
                    select(Auction.id, Auction.end_time).where(Auction.is_active.is_(True))
                )
                rows = result.all()
        except Exception:
            logger.exception("Failed to schedule timers on startup")
            return 0

        scheduled = sum(1 for auction_id, end_time in rows if self.schedule(auction_id, end_time))
        logger.info(f"Scheduled {scheduled} one-time timers on startup")
        return scheduled
