# cogs/auction/bid_ledger.py
import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from utils.auction_data import Bid
from .errors import BidRejected

logger = logging.getLogger("auction_bot")


class BidLedger:
    """Append-only bid storage.

    Every method runs on the caller's session so that bids take part in the
    caller's transaction. The ledger does not check whether the auction is
    still open; that is the job of the bid-placement workflow.
    """

    @staticmethod
    def _ordered(auction_id: int):
        # Highest amount first, the earliest bid wins a tie
        return (
            select(Bid)
            .where(Bid.auction_id == auction_id)
            .order_by(Bid.bid_amount.desc(), Bid.created_at.asc(), Bid.id.asc())
        )

    async def highest_bid(self, session: AsyncSession, auction_id: int) -> Optional[Bid]:
        result = await session.execute(self._ordered(auction_id).limit(1))
        return result.scalars().first()

    async def bids_for_auction(self, session: AsyncSession, auction_id: int) -> List[Bid]:
        result = await session.execute(self._ordered(auction_id))
        return list(result.scalars().all())

    async def append(
        self,
        session: AsyncSession,
        auction_id: int,
        bidder_id: int,
        amount: Decimal,
        now: datetime,
    ) -> Bid:
        """Insert a bid without comparing it to the current highest."""
        bid = Bid(auction_id=auction_id, user_id=bidder_id, bid_amount=amount, created_at=now)
        session.add(bid)
        await session.flush()
        return bid

    async def place_bid(
        self,
        session: AsyncSession,
        auction_id: int,
        bidder_id: int,
        amount: Decimal,
        now: datetime,
    ) -> Bid:
        """Append a bid if it is strictly higher than the current highest, else raise BidRejected."""
        highest = await self.highest_bid(session, auction_id)
        if highest is not None and amount <= highest.bid_amount:
            logger.info(
                f"Rejected bid of {amount} by {bidder_id} on auction {auction_id}; "
                f"highest is {highest.bid_amount}"
            )
            raise BidRejected(auction_id, amount, highest.bid_amount)
        return await self.append(session, auction_id, bidder_id, amount, now)
