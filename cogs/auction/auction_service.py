# cogs/auction/auction_service.py
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import async_sessionmaker

from utils.auction_data import Auction, Bid, ClosedReason, NotificationType
from utils.utilities import utcnow
from .bid_ledger import BidLedger
from .errors import (
    AuctionClosed,
    AuctionError,
    AuctionNotFound,
    BidRejected,
    BuyNowUnavailable,
    PurchaseFailed,
)
from .extension_policy import extended_end_time
from .finalization import AuctionOutcome, Finalizer
from .notifications import (
    NotificationDispatch,
    add_notification,
    all_notifications,
    mark_all_read,
    unread_notifications,
)
from .timer_registry import AuctionTimerRegistry

logger = logging.getLogger("auction_bot")


@dataclass
class BidPlacement:
    bid: Bid
    outbid_user_id: Optional[int] = None
    new_end_time: Optional[datetime] = None


class AuctionService:
    """Auction creation, bid placement and buy it now workflows."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        ledger: BidLedger,
        finalizer: Finalizer,
        timers: AuctionTimerRegistry,
        dispatch: NotificationDispatch,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session_factory = session_factory
        self.ledger = ledger
        self.finalizer = finalizer
        self.timers = timers
        self.dispatch = dispatch
        self.clock = clock

    async def get_auction(self, auction_id: int) -> Optional[Auction]:
        async with self.session_factory() as session:
            return await session.get(Auction, auction_id)

    async def active_auctions(self) -> List[Auction]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Auction).where(Auction.is_active.is_(True)).order_by(Auction.end_time.asc())
            )
            return list(result.scalars().all())

    async def bids_for_auction(self, auction_id: int) -> List[Bid]:
        async with self.session_factory() as session:
            return await self.ledger.bids_for_auction(session, auction_id)

    async def highest_bid(self, auction_id: int) -> Optional[Bid]:
        async with self.session_factory() as session:
            return await self.ledger.highest_bid(session, auction_id)

    async def unread_notifications(self, user_id: int):
        async with self.session_factory() as session:
            return await unread_notifications(session, user_id)

    async def all_notifications(self, user_id: int):
        async with self.session_factory() as session:
            return await all_notifications(session, user_id)

    async def mark_notifications_read(self, user_id: int) -> int:
        async with self.session_factory() as session:
            async with session.begin():
                return await mark_all_read(session, user_id)

    async def create_auction(
        self,
        title: str,
        start_price: Decimal,
        duration: timedelta,
        creator_id: int,
        buy_now_price: Optional[Decimal] = None,
        description: Optional[str] = None,
    ) -> Auction:
        now = self.clock()
        auction = Auction(
            title=title,
            description=description,
            start_price=start_price,
            buy_now_price=buy_now_price,
            current_bid=start_price,
            start_time=now,
            end_time=now + duration,
            is_active=True,
            creator_id=creator_id,
            created_at=now,
            updated_at=now,
        )
        async with self.session_factory() as session:
            async with session.begin():
                session.add(auction)

        logger.info(f"Auction {auction.id} created for {title!r}, ending {auction.end_time.isoformat()}")
        self.timers.schedule(auction.id, auction.end_time)
        await self.dispatch.auction_created(auction)
        return auction

    async def place_bid(self, auction_id: int, bidder_id: int, amount: Decimal) -> BidPlacement:
        """Place a bid, notify the previous leader and apply snipe protection.

        The auction row is written first, conditional on it still being open,
        so the store serializes this bid against a competing finalization:
        either the bid commits before the close (and is seen by it) or the
        close wins and the bid is rejected.
        """
        now = self.clock()
        async with self.session_factory() as session:
            async with session.begin():
                claimed = await session.execute(
                    update(Auction)
                    .where(
                        Auction.id == auction_id,
                        Auction.is_active.is_(True),
                        Auction.end_time > now,
                    )
                    .values(updated_at=now)
                    .execution_options(synchronize_session=False)
                )
                if claimed.rowcount == 0:
                    if await session.get(Auction, auction_id) is None:
                        raise AuctionNotFound(auction_id)
                    raise AuctionClosed(auction_id)

                auction = await session.get(Auction, auction_id)
                previous = await self.ledger.highest_bid(session, auction_id)
                if previous is None and amount < auction.start_price:
                    raise BidRejected(auction_id, amount, auction.start_price, below_start_price=True)
                bid = await self.ledger.place_bid(session, auction_id, bidder_id, amount, now)

                placement = BidPlacement(bid=bid)
                if previous is not None and previous.user_id != bidder_id:
                    placement.outbid_user_id = previous.user_id
                    await add_notification(
                        session, previous.user_id, auction_id, NotificationType.OUTBID, now
                    )

                values = {"current_bid": amount}
                placement.new_end_time = extended_end_time(auction.end_time, now)
                if placement.new_end_time is not None:
                    values["end_time"] = placement.new_end_time
                await session.execute(
                    update(Auction)
                    .where(Auction.id == auction_id)
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )

        logger.info(f"Bid of {amount} placed on auction {auction_id} by {bidder_id}")
        if placement.new_end_time is not None:
            logger.info(
                f"Auction {auction_id} extended to {placement.new_end_time.isoformat()} by a late bid"
            )
            try:
                self.timers.schedule(auction_id, placement.new_end_time)
            except Exception:
                logger.exception(f"Failed to reschedule timer for auction {auction_id}")
            await self.dispatch.auction_extended(auction_id, placement.new_end_time)

        await self.dispatch.bid_placed(auction_id, bidder_id, amount)
        if placement.outbid_user_id is not None:
            await self.dispatch.user_outbid(placement.outbid_user_id, auction_id, amount)
        return placement

    async def buy_it_now(self, auction_id: int, buyer_id: int) -> AuctionOutcome:
        """Buy the auction outright, closing it in the same transaction as the purchase bid."""
        auction = await self.get_auction(auction_id)
        if auction is None:
            raise AuctionNotFound(auction_id)
        if not auction.is_active:
            raise AuctionClosed(auction_id)
        if auction.buy_now_price is None:
            raise BuyNowUnavailable(auction_id)

        price = auction.buy_now_price
        now = self.clock()
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    await self.ledger.append(session, auction_id, buyer_id, price, now)
                    if not await self.finalizer.close(
                        session, auction_id, now, require_expired=False
                    ):
                        # Another trigger closed it after the precondition check
                        raise AuctionClosed(auction_id)
                    outcome = await self.finalizer.record_outcome(
                        session,
                        auction_id,
                        now,
                        closed_reason=ClosedReason.BUY_NOW,
                        winner_id=buyer_id,
                        final_bid=price,
                    )
        except AuctionError:
            raise
        except Exception as err:
            logger.exception(f"Buy it now failed for auction {auction_id} by {buyer_id}")
            raise PurchaseFailed(auction_id) from err

        logger.info(f"Auction {auction_id} bought outright by {buyer_id} for {price}")
        self.timers.cancel(auction_id)
        await self.dispatch.auction_finalized(outcome)
        return outcome
