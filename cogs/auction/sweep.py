# cogs/auction/sweep.py
import logging
from datetime import datetime
from typing import Callable, List, Optional

from discord.ext import tasks
from sqlalchemy import update
from sqlalchemy.ext.asyncio import async_sessionmaker

from utils.auction_data import Auction
from utils.database import record_error
from utils.utilities import utcnow
from .finalization import AuctionOutcome, Finalizer
from .notifications import NotificationDispatch
from .timer_registry import AuctionTimerRegistry

logger = logging.getLogger("auction_bot")


class SweepReconciler:
    """Periodic safety net that closes every auction whose end time has passed.

    It catches auctions whose timer was lost to a restart, never scheduled, or
    failed to finalize. It is also the retry path for failed closings.
    """

    DEFAULT_INTERVAL_HOURS = 24

    def __init__(
        self,
        session_factory: async_sessionmaker,
        finalizer: Finalizer,
        dispatch: NotificationDispatch,
        timers: Optional[AuctionTimerRegistry] = None,
        clock: Callable[[], datetime] = utcnow,
        interval_hours: float = DEFAULT_INTERVAL_HOURS,
    ):
        self.session_factory = session_factory
        self.finalizer = finalizer
        self.dispatch = dispatch
        self.timers = timers
        self.clock = clock
        self.interval_hours = interval_hours
        self._loop = tasks.loop(hours=interval_hours)(self.sweep_expired_auctions)

    def start(self):
        """Start the recurring sweep; the first pass runs immediately as a startup catch-up."""
        if not self._loop.is_running():
            self._loop.start()
            logger.info(f"Sweep scheduled every {self.interval_hours} hours")

    def stop(self):
        self._loop.cancel()

    @property
    def is_running(self) -> bool:
        return self._loop.is_running()

    async def sweep_expired_auctions(self) -> List[AuctionOutcome]:
        """Bulk-close expired auctions and record each outcome. Never raises.

        Each result is written under its own savepoint. An auction whose result
        cannot be written is reopened so the next sweep retries it, and the rest
        are still committed.
        """
        now = self.clock()
        outcomes = []
        failures = []
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    result = await session.execute(
                        update(Auction)
                        .where(Auction.is_active.is_(True), Auction.end_time <= now)
                        .values(is_active=False, updated_at=now)
                        .returning(Auction.id)
                        .execution_options(synchronize_session=False)
                    )
                    closed_ids = list(result.scalars().all())
                    for auction_id in closed_ids:
                        try:
                            async with session.begin_nested():
                                outcomes.append(
                                    await self.finalizer.record_outcome(session, auction_id, now)
                                )
                        except Exception as err:
                            logger.exception(f"Sweep could not record the result of auction {auction_id}")
                            failures.append((auction_id, err))
                            await self._reopen(session, auction_id)
        except Exception as err:
            logger.exception("Sweep error")
            await record_error(self.session_factory, err, "sweep_expired_auctions")
            return []

        # Logged once the sweep transaction has released the store
        for auction_id, err in failures:
            await record_error(self.session_factory, err, f"sweep_expired_auctions:{auction_id}")

        if not outcomes:
            return outcomes

        logger.info(f"Sweep processed {len(outcomes)} expired auctions at {now.isoformat()}")
        for outcome in outcomes:
            if self.timers is not None:
                self.timers.cancel(outcome.auction_id)
            await self.dispatch.auction_finalized(outcome)
        return outcomes

    async def _reopen(self, session, auction_id: int):
        await session.execute(
            update(Auction)
            .where(Auction.id == auction_id)
            .values(is_active=True)
            .execution_options(synchronize_session=False)
        )
