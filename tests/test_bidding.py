import logging
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from cogs.auction.errors import AuctionClosed, AuctionNotFound, BidRejected
from cogs.auction.extension_policy import EXTENSION, WINDOW, extended_end_time
from conftest import RecordingEvents, build_harness
from utils.auction_data import Auction, NotificationType


def test_extension_policy_window() -> None:
    end = datetime(2025, 10, 11, 18, 0, 0)

    assert WINDOW == timedelta(minutes=1)
    assert extended_end_time(end, end - timedelta(seconds=30)) == end + EXTENSION
    assert extended_end_time(end, end - WINDOW) == end + timedelta(minutes=5)
    assert extended_end_time(end, end - timedelta(minutes=2)) is None
    assert extended_end_time(end, end) is None
    assert extended_end_time(end, end + timedelta(seconds=1)) is None


@pytest.mark.asyncio
async def test_create_auction_schedules_timer(harness) -> None:
    auction = await harness.service.create_auction(
        title="Galaxy Pendant",
        start_price=Decimal("60"),
        duration=timedelta(hours=2),
        creator_id=7,
        buy_now_price=Decimal("120"),
    )

    assert auction.id is not None
    assert harness.timers.fire_time(auction.id) == auction.end_time
    assert harness.events.names() == ["auction-created"]
    assert [a.id for a in await harness.service.active_auctions()] == [auction.id]


@pytest.mark.asyncio
async def test_only_strictly_higher_bids_are_accepted(harness) -> None:
    auction = await harness.add_auction(ends_in=timedelta(hours=1))

    await harness.service.place_bid(auction.id, 1, Decimal("50"))

    with pytest.raises(BidRejected) as equal:
        await harness.service.place_bid(auction.id, 2, Decimal("50"))
    assert equal.value.current_highest == Decimal("50")
    assert not equal.value.below_start_price

    with pytest.raises(BidRejected):
        await harness.service.place_bid(auction.id, 2, Decimal("40"))

    placement = await harness.service.place_bid(auction.id, 2, Decimal("50.01"))
    highest = await harness.service.highest_bid(auction.id)

    assert placement.bid.id == highest.id
    assert highest.user_id == 2
    assert highest.bid_amount == Decimal("50.01")
    assert len(await harness.service.bids_for_auction(auction.id)) == 2
    assert (await harness.reload(Auction, auction.id)).current_bid == Decimal("50.01")


@pytest.mark.asyncio
async def test_first_bid_must_meet_starting_price(harness) -> None:
    auction = await harness.add_auction(ends_in=timedelta(hours=1))

    with pytest.raises(BidRejected) as rejected:
        await harness.service.place_bid(auction.id, 1, Decimal("5"))

    assert rejected.value.current_highest == Decimal("10")
    assert rejected.value.below_start_price
    assert "must be at least 10" in str(rejected.value)
    assert await harness.service.bids_for_auction(auction.id) == []

    placement = await harness.service.place_bid(auction.id, 1, Decimal("10"))
    assert placement.bid.bid_amount == Decimal("10")


@pytest.mark.asyncio
async def test_outbid_user_is_notified(harness) -> None:
    auction = await harness.add_auction(ends_in=timedelta(hours=1))

    await harness.service.place_bid(auction.id, 1, Decimal("150"))
    await harness.service.place_bid(auction.id, 1, Decimal("160"))
    placement = await harness.service.place_bid(auction.id, 2, Decimal("200"))

    assert placement.outbid_user_id == 1
    notifications = await harness.service.unread_notifications(1)
    assert [(n.auction_id, n.type) for n in notifications] == [(auction.id, NotificationType.OUTBID)]
    assert harness.events.names(user_id=1) == ["user-outbid"]
    assert harness.events.names().count("bid-placed") == 3

    assert await harness.service.mark_notifications_read(1) == 1
    assert await harness.service.unread_notifications(1) == []
    history = await harness.service.all_notifications(1)
    assert [(n.auction_id, n.is_read) for n in history] == [(auction.id, True)]
    assert await harness.service.all_notifications(2) == []


@pytest.mark.asyncio
async def test_bids_on_closed_or_expired_auctions_are_rejected(harness) -> None:
    closed = await harness.add_auction(ends_in=timedelta(hours=1), is_active=False)
    expired = await harness.add_auction(ends_in=timedelta(seconds=-1))

    with pytest.raises(AuctionClosed):
        await harness.service.place_bid(closed.id, 1, Decimal("50"))
    with pytest.raises(AuctionClosed):
        await harness.service.place_bid(expired.id, 1, Decimal("50"))
    with pytest.raises(AuctionNotFound):
        await harness.service.place_bid(9999, 1, Decimal("50"))

    assert await harness.service.bids_for_auction(expired.id) == []


@pytest.mark.asyncio
async def test_bid_after_finalization_is_rejected(harness) -> None:
    auction = await harness.add_auction(ends_in=timedelta(minutes=-1))
    await harness.finalizer.complete_auction(auction.id)

    with pytest.raises(AuctionClosed):
        await harness.service.place_bid(auction.id, 1, Decimal("500"))


@pytest.mark.asyncio
async def test_late_bid_extends_auction_and_reschedules_timer(harness) -> None:
    auction = await harness.add_auction(ends_in=timedelta(seconds=30))
    assert harness.timers.schedule(auction.id, auction.end_time)

    placement = await harness.service.place_bid(auction.id, 1, Decimal("50"))

    stored = await harness.reload(Auction, auction.id)
    assert placement.new_end_time == auction.end_time + timedelta(minutes=5)
    assert stored.end_time == placement.new_end_time
    assert harness.timers.fire_time(auction.id) == placement.new_end_time
    assert len(harness.timers) == 1
    assert "auction-extended" in harness.events.names()


@pytest.mark.asyncio
async def test_early_bid_leaves_end_time_alone(harness) -> None:
    auction = await harness.add_auction(ends_in=timedelta(hours=2))
    harness.timers.schedule(auction.id, auction.end_time)

    placement = await harness.service.place_bid(auction.id, 1, Decimal("50"))

    assert placement.new_end_time is None
    assert (await harness.reload(Auction, auction.id)).end_time == auction.end_time
    assert harness.timers.fire_time(auction.id) == auction.end_time
    assert "auction-extended" not in harness.events.names()



class ExtensionRejectingEvents(RecordingEvents):
    async def publish(self, name, payload):
        if name == "auction-extended":
            raise ConnectionError("announcement channel unreachable")
        await super().publish(name, payload)


@pytest.mark.asyncio
async def test_late_bid_survives_a_failed_reschedule(harness, monkeypatch, caplog) -> None:
    auction = await harness.add_auction(ends_in=timedelta(seconds=30))
    caplog.set_level(logging.ERROR, logger="auction_bot")

    def broken_schedule(auction_id, end_time):
        raise RuntimeError("event loop is closing")

    monkeypatch.setattr(harness.timers, "schedule", broken_schedule)

    placement = await harness.service.place_bid(auction.id, 1, Decimal("50"))

    assert placement.new_end_time == auction.end_time + EXTENSION
    assert (await harness.reload(Auction, auction.id)).end_time == placement.new_end_time
    assert f"Failed to reschedule timer for auction {auction.id}" in caplog.text
    assert "auction-extended" in harness.events.names()


@pytest.mark.asyncio
async def test_late_bid_survives_a_failed_extension_event(session_factory, caplog) -> None:
    auctions = build_harness(session_factory)
    auctions.events = ExtensionRejectingEvents()
    auctions.service.dispatch.events = auctions.events
    auction = await auctions.add_auction(ends_in=timedelta(seconds=30))
    caplog.set_level(logging.ERROR, logger="auction_bot")

    try:
        placement = await auctions.service.place_bid(auction.id, 1, Decimal("50"))
    finally:
        auctions.timers.cancel_all()

    assert (await auctions.reload(Auction, auction.id)).end_time == placement.new_end_time
    assert f"Failed to publish live event auction-extended for auction {auction.id}" in caplog.text
    assert auctions.events.names() == ["bid-placed"]
