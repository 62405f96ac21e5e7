# cogs/auction/auction_commands.py
import discord
from discord.ext import commands
from utils.utilities import parse_duration
from .errors import AuctionError, BidRejected
import logging


logger = logging.getLogger("auction_bot")


class AuctionCommands:
    def __init__(self, bot):
        self.bot = bot

    @commands.command(name="startauction", aliases=["sa", "beginauction", "start"], help = "Starts an auction with the given item, starting price, buy it now price (or 'none'), and duration.")
    async def start_auction(
        self,
        ctx: commands.Context,
        item: str,
        starting_price_str: str,
        buy_now_str: str,
        *duration_parts: str,
    ):
        """Starts a new auction with the provided item, prices and duration."""
        logger.info(f"{ctx.author} invoked the start_auction command")

        if not self._is_in_guild_context(ctx):
            await self._send_error_message(ctx, "This command can only be used in a server.")
            return

        starting_price = self.parse_amount(starting_price_str)
        if buy_now_str.lower() in ("none", "-", "no"):
            buy_now_str = None
        buy_now_price = self.parse_amount(buy_now_str) if buy_now_str else None
        if not await self._validate_prices(ctx, starting_price, buy_now_price, buy_now_str):
            return

        duration = parse_duration(" ".join(duration_parts))
        if not await self._validate_duration(ctx, duration):
            return

        if len(await self.service.active_auctions()) >= self.MAX_ACTIVE_AUCTIONS:
            await self._send_error_message(
                ctx, "The maximum number of concurrent auctions has been reached."
            )
            return

        auction = await self.service.create_auction(
            title=item,
            start_price=starting_price,
            duration=duration,
            creator_id=ctx.author.id,
            buy_now_price=buy_now_price,
        )
        await ctx.send(embed=self._build_auction_embed(auction))

    @commands.command(name="bid", aliases=["placebid", "b"], help = "Places a bid on the auction with the given ID.")
    async def place_bid(self, ctx: commands.Context, auction_id: int, bid_amount_str: str):
        """Places a bid on an active auction with the given auction ID and bid amount."""
        logger.info(f"{ctx.author} attempted to bid {bid_amount_str} on auction {auction_id}")

        bid_amount = self.parse_amount(bid_amount_str)
        if bid_amount is None:
            await self._send_error_message(
                ctx, "Invalid bid format. Please enter a number or use formats like '1k', '1m', etc."
            )
            return

        try:
            placement = await self.service.place_bid(auction_id, ctx.author.id, bid_amount)
        except BidRejected as error:
            if error.below_start_price:
                message = f"Your bid must be at least the starting price of {self.format_amount(error.current_highest)}."
            else:
                message = f"Your bid must be higher than the current bid of {self.format_amount(error.current_highest)}."
            await self._send_error_message(ctx, message)
            return
        except AuctionError as error:
            await self._send_error_message(ctx, str(error))
            return

        if self.BID_EMOJI_TOGGLE and placement.new_end_time is None:
            await ctx.message.add_reaction("✅")
        else:
            embed = discord.Embed(
                title="Bid Placed Successfully",
                description=f"Current highest bid: {self.format_amount(bid_amount)} by {ctx.author.display_name}",
                color=discord.Color.blue(),
            )
            if placement.new_end_time is not None:
                embed.add_field(name="Auction Extended", value="A late bid added 5 minutes to the clock.")
            embed.set_footer(text=f"Auction ID: {auction_id}")
            await ctx.send(embed=embed)

    @commands.command(name="buynow", aliases=["bin", "buy"], help = "Buys the auction with the given ID at its buy it now price.")
    async def buy_now(self, ctx: commands.Context, auction_id: int):
        """Buys an auction outright, closing it immediately."""
        logger.info(f"{ctx.author} invoked buy it now on auction {auction_id}")

        try:
            outcome = await self.service.buy_it_now(auction_id, ctx.author.id)
        except AuctionError as error:
            await self._send_error_message(ctx, str(error))
            return

        await ctx.send(
            embed=discord.Embed(
                title="Auction Purchased",
                description=f"{ctx.author.display_name} bought {outcome.auction_title} for {self.format_amount(outcome.final_bid)}.",
                color=discord.Color.gold(),
            ).set_footer(text=f"Auction ID: {auction_id}")
        )

    @commands.command(
        name="ongoingauctions",
        aliases=["currentauctions", "activeauctions", "active", "ongoing", "current"],
        help = "Lists all ongoing auctions.",
    )
    async def check_ongoing_auctions(self, ctx: commands.Context):
        """Lists all ongoing auctions."""
        auctions = await self.service.active_auctions()
        if not auctions:
            await self._send_error_message(ctx, "There are no ongoing auctions.")
            return

        for auction in auctions:
            highest_bid = await self.service.highest_bid(auction.id)
            await ctx.send(embed=self._build_auction_embed(auction, highest_bid))

    @commands.command(name="notifications", aliases=["inbox", "notifs"], help = "Shows your unread auction notifications and marks them as read. Use 'all' to see read ones too.")
    async def show_notifications(self, ctx: commands.Context, scope: str = "unread"):
        """Shows the author's auction notifications, unread only unless 'all' is given."""
        show_all = scope.lower() == "all"
        if show_all:
            notifications = await self.service.all_notifications(ctx.author.id)
        else:
            notifications = await self.service.unread_notifications(ctx.author.id)
        if not notifications:
            await ctx.send(f"You have no {'' if show_all else 'unread '}auction notifications.")
            return

        lines = [
            f"{'You won' if n.type.value == 'won' else 'You were outbid on'} auction {n.auction_id}"
            + ("" if n.is_read else " (new)")
            for n in notifications
        ]
        await ctx.send(
            embed=discord.Embed(
                title="Auction Notifications",
                description="\n".join(lines),
                color=discord.Color.blue(),
            )
        )
        await self.service.mark_notifications_read(ctx.author.id)

    @commands.Cog.listener()
    async def on_command_error(
        self, ctx: commands.Context, error: commands.CommandError
    ):
        if getattr(ctx, "handled", False):
            return

        error_handlers = {
            commands.CommandNotFound: self._handle_command_not_found,
            commands.MissingRequiredArgument: self._handle_missing_required_argument,
            commands.BadArgument: self._handle_bad_argument,
            commands.CommandOnCooldown: self._handle_command_on_cooldown,
        }

        for error_type, handler in error_handlers.items():
            if isinstance(error, error_type):
                await handler(ctx, error)
                return

        logger.error(f"An unexpected error occurred: {error}")
