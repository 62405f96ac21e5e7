from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal

import pytest_asyncio

from cogs.auction.auction_service import AuctionService
from cogs.auction.bid_ledger import BidLedger
from cogs.auction.finalization import Finalizer
from cogs.auction.messaging import MessageStore
from cogs.auction.notifications import NotificationDispatch
from cogs.auction.sweep import SweepReconciler
from cogs.auction.timer_registry import AuctionTimerRegistry
from utils.auction_data import Auction, Bid
from utils.database import create_engine, create_session_factory, init_models
from utils.utilities import utcnow


class RecordingEvents:
    def __init__(self):
        self.published = []

    async def publish(self, name, payload):
        self.published.append((None, name, payload))

    async def publish_to_user(self, user_id, name, payload):
        self.published.append((user_id, name, payload))

    def names(self, user_id=None):
        return [name for target, name, _ in self.published if target == user_id]


class FailingMessageStore(MessageStore):
    async def insert_system_message(self, session, user_id, content, conversation_id=None, now=None):
        raise RuntimeError("message store unavailable")


@dataclass
class AuctionHarness:
    session_factory: object
    events: RecordingEvents
    ledger: BidLedger
    finalizer: Finalizer
    timers: AuctionTimerRegistry
    service: AuctionService
    sweeper: SweepReconciler

    async def add_auction(self, ends_in: timedelta, buy_now_price=Decimal("200"), is_active=True):
        now = utcnow()
        auction = Auction(
            title="Ocean Twist Spoon",
            description="Hand-blown glass",
            start_price=Decimal("10"),
            buy_now_price=buy_now_price,
            current_bid=Decimal("10"),
            start_time=now - timedelta(hours=1),
            end_time=now + ends_in,
            is_active=is_active,
            creator_id=1,
        )
        async with self.session_factory() as session:
            async with session.begin():
                session.add(auction)
        return auction

    async def add_bid(self, auction_id, user_id, amount, created_at):
        async with self.session_factory() as session:
            async with session.begin():
                session.add(
                    Bid(
                        auction_id=auction_id,
                        user_id=user_id,
                        bid_amount=Decimal(amount),
                        created_at=created_at,
                    )
                )

    async def reload(self, model, key):
        async with self.session_factory() as session:
            return await session.get(model, key)


def build_harness(session_factory, messaging=None):
    events = RecordingEvents()
    dispatch = NotificationDispatch(events)
    ledger = BidLedger()
    finalizer = Finalizer(session_factory, ledger, messaging or MessageStore(), dispatch)
    timers = AuctionTimerRegistry(finalizer.complete_auction)
    service = AuctionService(session_factory, ledger, finalizer, timers, dispatch)
    sweeper = SweepReconciler(session_factory, finalizer, dispatch, timers=timers)
    return AuctionHarness(session_factory, events, ledger, finalizer, timers, service, sweeper)


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'auctions.db'}")
    await init_models(engine)
    yield create_session_factory(engine)
    await engine.dispose()


@pytest_asyncio.fixture
async def harness(session_factory):
    auctions = build_harness(session_factory)
    yield auctions
    auctions.timers.cancel_all()
