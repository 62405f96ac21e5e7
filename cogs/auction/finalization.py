# cogs/auction/finalization.py
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from utils.auction_data import Auction, AuctionResult, ClosedReason, NotificationType
from utils.database import record_error
from utils.utilities import utcnow
from .bid_ledger import BidLedger
from .messaging import MessageStore
from .notifications import NotificationDispatch, add_notification

logger = logging.getLogger("auction_bot")


@dataclass
class AuctionOutcome:
    auction_id: int
    auction_title: Optional[str]
    winner_id: Optional[int]
    final_bid: Optional[Decimal]
    closed_reason: ClosedReason
    closed_at: datetime
    conversation_id: Optional[int] = None
    message_id: Optional[int] = None


class Finalizer:
    """Closes auctions and records their outcome.

    The close is a conditional UPDATE whose affected-row count decides which
    trigger wins: the timer, the sweep and buy it now may all race for the same
    auction, and only the one that flips ``is_active`` records a result. The
    others see zero rows and do nothing.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        ledger: BidLedger,
        messaging: MessageStore,
        dispatch: NotificationDispatch,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session_factory = session_factory
        self.ledger = ledger
        self.messaging = messaging
        self.dispatch = dispatch
        self.clock = clock

    async def close(
        self,
        session: AsyncSession,
        auction_id: int,
        now: datetime,
        require_expired: bool = True,
    ) -> bool:
        """Mark the auction inactive if it is still active; True if this call closed it."""
        criteria = [Auction.id == auction_id, Auction.is_active.is_(True)]
        if require_expired:
            criteria.append(Auction.end_time <= now)
        result = await session.execute(
            update(Auction)
            .where(*criteria)
            .values(is_active=False, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    async def record_outcome(
        self,
        session: AsyncSession,
        auction_id: int,
        now: datetime,
        closed_reason: ClosedReason = ClosedReason.EXPIRED,
        winner_id: Optional[int] = None,
        final_bid: Optional[Decimal] = None,
    ) -> AuctionOutcome:
        """Write the result row, the winner's notification and message for a closed auction.

        Must only be called after ``close`` (or the sweep's bulk close) flipped
        the auction in the same transaction. Without an explicit winner the
        highest bid decides.
        """
        auction = await session.get(Auction, auction_id)
        if winner_id is None:
            highest = await self.ledger.highest_bid(session, auction_id)
            if highest is not None:
                winner_id, final_bid = highest.user_id, highest.bid_amount

        session.add(
            AuctionResult(
                auction_id=auction_id,
                winner_id=winner_id,
                final_bid=final_bid,
                closed_reason=closed_reason,
                closed_at=now,
            )
        )
        outcome = AuctionOutcome(
            auction_id=auction_id,
            auction_title=auction.title if auction else None,
            winner_id=winner_id,
            final_bid=final_bid,
            closed_reason=closed_reason,
            closed_at=now,
        )

        if winner_id is not None:
            await add_notification(session, winner_id, auction_id, NotificationType.WON, now)
            conversation_id = await self.messaging.get_conversation_id_for_user(session, winner_id)
            message = await self.messaging.insert_system_message(
                session,
                winner_id,
                self._winner_message(outcome),
                conversation_id,
                now=now,
            )
            outcome.conversation_id = message.conversation_id
            outcome.message_id = message.id

        await session.flush()
        return outcome

    def _winner_message(self, outcome: AuctionOutcome) -> str:
        if outcome.closed_reason == ClosedReason.BUY_NOW:
            opening = f'Thank you for buying "{outcome.auction_title}" for ${outcome.final_bid}!'
        else:
            opening = (
                f'Congratulations! You won the auction for "{outcome.auction_title}" '
                f"with a final bid of ${outcome.final_bid}."
            )
        return f"{opening} Reply here to arrange payment and shipping."

    async def complete_auction(self, auction_id: int) -> Optional[AuctionOutcome]:
        """Finalize an expired auction. Safe to call any number of times, from any trigger."""
        now = self.clock()
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    if not await self.close(session, auction_id, now):
                        logger.info(f"Auction {auction_id} is already closed or not due yet")
                        return None
                    outcome = await self.record_outcome(session, auction_id, now)
        except Exception as err:
            logger.exception(f"Error completing auction {auction_id}")
            await record_error(self.session_factory, err, f"complete_auction:{auction_id}")
            return None

        logger.info(
            f"Ended auction {auction_id} at {now.isoformat()}, winner: {outcome.winner_id}"
        )
        await self.dispatch.auction_finalized(outcome)
        return outcome
