# cogs/auction/notifications.py
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

import discord
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from utils.auction_data import AuctionNotification, ClosedReason, NotificationType

logger = logging.getLogger("auction_bot")


async def add_notification(
    session: AsyncSession,
    user_id: int,
    auction_id: int,
    notification_type: NotificationType,
    now: datetime,
) -> AuctionNotification:
    notification = AuctionNotification(
        user_id=user_id, auction_id=auction_id, type=notification_type, created_at=now
    )
    session.add(notification)
    await session.flush()
    return notification


async def unread_notifications(session: AsyncSession, user_id: int) -> List[AuctionNotification]:
    result = await session.execute(
        select(AuctionNotification)
        .where(AuctionNotification.user_id == user_id, AuctionNotification.is_read.is_(False))
        .order_by(AuctionNotification.created_at.desc(), AuctionNotification.id.desc())
    )
    return list(result.scalars().all())


async def all_notifications(session: AsyncSession, user_id: int) -> List[AuctionNotification]:
    """Every notification of the user, read or not, newest first."""
    result = await session.execute(
        select(AuctionNotification)
        .where(AuctionNotification.user_id == user_id)
        .order_by(AuctionNotification.created_at.desc(), AuctionNotification.id.desc())
    )
    return list(result.scalars().all())


async def mark_all_read(session: AsyncSession, user_id: int) -> int:
    """Mark every notification of the user as read and return how many changed."""
    result = await session.execute(
        update(AuctionNotification)
        .where(AuctionNotification.user_id == user_id, AuctionNotification.is_read.is_(False))
        .values(is_read=True)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


class LiveEvents(Protocol):
    async def publish(self, name: str, payload: Dict[str, Any]) -> None: ...

    async def publish_to_user(self, user_id: int, name: str, payload: Dict[str, Any]) -> None: ...


class NullLiveEvents:
    """Publisher used when there is nowhere to deliver live events."""

    async def publish(self, name, payload):
        logger.debug(f"Dropped live event {name}: {payload}")

    async def publish_to_user(self, user_id, name, payload):
        logger.debug(f"Dropped live event {name} for user {user_id}: {payload}")


class DiscordLiveEvents:
    """Delivers global events to an announcement channel and targeted ones by DM."""

    EVENT_TITLES = {
        "auction-created": ("Auction Started", discord.Color.green()),
        "auction-ended": ("Auction Ended", discord.Color.blue()),
        "auction-extended": ("Auction Extended", discord.Color.orange()),
        "auction-BIN": ("Auction Bought Outright", discord.Color.gold()),
        "bid-placed": ("New Bid", discord.Color.blurple()),
        "user-won": ("You Won!", discord.Color.green()),
        "user-outbid": ("You Were Outbid", discord.Color.red()),
        "new-message": ("New Message", discord.Color.light_grey()),
    }

    def __init__(self, bot, channel_id: int):
        self.bot = bot
        self.channel_id = channel_id

    def _build_embed(self, name: str, payload: Dict[str, Any]) -> discord.Embed:
        title, color = self.EVENT_TITLES.get(name, (name, discord.Color.default()))
        embed = discord.Embed(title=title, color=color)
        for key, value in payload.items():
            if key == "auction_id":
                continue
            embed.add_field(name=key.replace("_", " ").title(), value=str(value), inline=True)
        if "auction_id" in payload:
            embed.set_footer(text=f"Auction ID: {payload['auction_id']}")
        return embed

    async def publish(self, name, payload):
        channel = self.bot.get_channel(self.channel_id)
        if channel is None:
            logger.error(f"Channel {self.channel_id} not found for live event {name}.")
            return
        await channel.send(embed=self._build_embed(name, payload))

    async def publish_to_user(self, user_id, name, payload):
        user = self.bot.get_user(user_id) or await self.bot.fetch_user(user_id)
        await user.send(embed=self._build_embed(name, payload))


class NotificationDispatch:
    """Fans auction events out to live subscribers.

    Live events are not part of the durability contract, so every publish is
    best-effort: failures are logged and never reach the caller.
    """

    def __init__(self, events: LiveEvents):
        self.events = events

    async def _publish(self, name: str, payload: Dict[str, Any], user_id: Optional[int] = None):
        try:
            if user_id is None:
                await self.events.publish(name, payload)
            else:
                await self.events.publish_to_user(user_id, name, payload)
        except Exception:
            logger.exception(f"Failed to publish live event {name} for auction {payload.get('auction_id')}")

    async def auction_created(self, auction):
        await self._publish(
            "auction-created",
            {"auction_id": auction.id, "title": auction.title, "ends_at": auction.end_time.isoformat()},
        )

    async def bid_placed(self, auction_id: int, bidder_id: int, amount):
        await self._publish(
            "bid-placed", {"auction_id": auction_id, "bidder_id": bidder_id, "amount": str(amount)}
        )

    async def user_outbid(self, user_id: int, auction_id: int, amount):
        await self._publish(
            "user-outbid", {"auction_id": auction_id, "amount": str(amount)}, user_id=user_id
        )

    async def auction_extended(self, auction_id: int, new_end_time: datetime):
        await self._publish(
            "auction-extended", {"auction_id": auction_id, "ends_at": new_end_time.isoformat()}
        )

    async def auction_finalized(self, outcome):
        """Announce a closed auction, its winner, and hand the winner's message over."""
        if outcome.closed_reason == ClosedReason.BUY_NOW:
            await self._publish("auction-BIN", {"auction_id": outcome.auction_id})
        await self._publish("auction-ended", {"auction_id": outcome.auction_id})

        if outcome.winner_id is None:
            return
        await self._publish(
            "user-won",
            {
                "auction_id": outcome.auction_id,
                "title": outcome.auction_title,
                "final_bid": str(outcome.final_bid),
            },
            user_id=outcome.winner_id,
        )
        if outcome.closed_reason == ClosedReason.EXPIRED and outcome.message_id is not None:
            await self._publish(
                "new-message",
                {
                    "auction_id": outcome.auction_id,
                    "conversation_id": outcome.conversation_id,
                    "message_id": outcome.message_id,
                },
                user_id=outcome.winner_id,
            )
