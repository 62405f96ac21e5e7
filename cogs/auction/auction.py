#cogs/auction/auction.py
from discord.ext import commands
import logging
from .auction_helpers import AuctionHelpers
from .auction_commands import AuctionCommands
from .auction_service import AuctionService
from .bid_ledger import BidLedger
from .finalization import Finalizer
from .messaging import MessageStore
from .notifications import DiscordLiveEvents, NotificationDispatch, NullLiveEvents
from .sweep import SweepReconciler
from .timer_registry import AuctionTimerRegistry

# Configure logger for the cog
logger = logging.getLogger("auction_bot")


class Auction(commands.Cog, AuctionCommands, AuctionHelpers):
    MAX_ACTIVE_AUCTIONS = 25  # Limit the number of concurrent auctions
    MIN_AUCTION_DURATION = 3 * 60  # Minimum duration for an auction in seconds
    BID_EMOJI_TOGGLE = True  # Toggle to enable/disable bid emoji reactions

    def __init__(self, bot: commands.Bot, settings, session_factory):
        self.bot = bot
        self.session_factory = session_factory

        if settings.auction_channel_id:
            events = DiscordLiveEvents(bot, settings.auction_channel_id)
        else:
            logger.warning("AUCTION_CHANNEL_ID is not set; live auction events are dropped")
            events = NullLiveEvents()
        dispatch = NotificationDispatch(events)
        ledger = BidLedger()
        finalizer = Finalizer(session_factory, ledger, MessageStore(), dispatch)

        self.timers = AuctionTimerRegistry(finalizer.complete_auction)
        self.sweeper = SweepReconciler(
            session_factory,
            finalizer,
            dispatch,
            timers=self.timers,
            interval_hours=settings.sweep_interval_hours,
        )
        self.service = AuctionService(session_factory, ledger, finalizer, self.timers, dispatch)
        AuctionCommands.__init__(self, bot)
        AuctionHelpers.__init__(self, bot)

    async def cog_load(self):
        # Timers are process-local, so they are rebuilt from the store on every start
        await self.timers.rebuild(self.session_factory)
        self.sweeper.start()

    async def cog_unload(self):
        self.sweeper.stop()
        self.timers.cancel_all()


async def setup(bot: commands.Bot):
    """Sets up the Auction cog."""
    await bot.add_cog(Auction(bot, bot.settings, bot.session_factory))
    logger.info("Auction cog loaded")
