# cogs/auction/auction_helpers.py

import discord
from discord.ext import commands
from utils.auction_data import Auction, Bid
from utils.utilities import format_time_remaining, utcnow
from decimal import Decimal, InvalidOperation
from typing import Optional
import logging

logger = logging.getLogger("auction_bot")


class AuctionHelpers:
    def __init__(self, bot):
        self.bot = bot

    def _is_in_guild_context(self, ctx: commands.Context) -> bool:
        """Check if the command is invoked in a guild (server) context."""
        return ctx.guild is not None

    def _get_remaining_time(self, auction: Auction) -> float:
        """Calculate the remaining time for an auction."""
        remaining_time = (auction.end_time - utcnow()).total_seconds()
        return max(remaining_time, 0)

    async def _send_error_message(self, ctx: commands.Context, message: str):
        """Send an error message embedded in the Discord channel."""
        embed = discord.Embed(
            title="Error", description=message, color=discord.Color.red()
        )
        await ctx.send(embed=embed)

    def _build_auction_embed(
        self, auction: Auction, highest_bid: Optional[Bid] = None
    ) -> discord.Embed:
        """Build an embed describing an auction and its leading bid."""
        description = (
            f"**Item:** {auction.title}\n"
            f"**Starting Price:** {self.format_amount(auction.start_price)}\n"
        )
        if auction.buy_now_price is not None:
            description += f"**Buy It Now:** {self.format_amount(auction.buy_now_price)}\n"
        if highest_bid is not None:
            description += (
                f"**Highest Bid:** {self.format_amount(highest_bid.bid_amount)} "
                f"by <@{highest_bid.user_id}>\n"
            )
        if auction.is_active:
            formatted_time = format_time_remaining(self._get_remaining_time(auction))
            description += f"**Time Remaining:** {formatted_time}"
        else:
            description += "**Auction Ended**"

        embed_color = discord.Color.green() if auction.is_active else discord.Color.blue()
        embed = discord.Embed(
            title=f"Auction: {auction.title}", description=description, color=embed_color
        )
        embed.set_footer(text=f"Auction ID: {auction.id}")
        return embed

    def parse_amount(self, amount_str: str) -> Optional[Decimal]:
        """
        Parses an amount string into a Decimal.
        Accepts formats like '1k', '1m', '1b', and their uppercase equivalents,
        including decimal values like '1.5k'.
        Returns None if the format is incorrect.
        """
        shorthand_multipliers = {
            "k": 1_000,
            "m": 1_000_000,
            "b": 1_000_000_000,
        }

        amount_str = amount_str.strip().lstrip("$")
        if not amount_str:
            return None
        multiplier = shorthand_multipliers.get(amount_str[-1].lower())
        if multiplier:
            amount_str = amount_str[:-1]
        try:
            amount = Decimal(amount_str) * (multiplier or 1)
        except InvalidOperation:
            return None
        if not amount.is_finite() or amount <= 0:
            return None
        return amount.quantize(Decimal("0.01"))

    def format_amount(self, amount) -> str:
        """
        Formats an amount into shorthand notation.
        Examples:
        - 1500 -> '1.5K'
        - 2500000 -> '2.5M'
        - 80.50 -> '80.5'
        """
        amount = Decimal(str(amount))
        units = ["", "K", "M", "B"]
        idx = 0

        while amount >= 1000 and idx < len(units) - 1:
            amount /= 1000
            idx += 1

        formatted_amount = f"{amount:f}"
        if "." in formatted_amount:
            formatted_amount = formatted_amount.rstrip("0").rstrip(".")
        return formatted_amount + units[idx]

    async def _validate_duration(self, ctx, duration):
        if duration is None or duration.total_seconds() < self.MIN_AUCTION_DURATION:
            await self._send_error_message(
                ctx,
                "Invalid or too short duration format. Please use formats like '1d 2h 30m'.",
            )
            return False
        return True

    async def _validate_prices(self, ctx, start_price, buy_now_price, buy_now_str):
        if start_price is None:
            await self._send_error_message(
                ctx, "Invalid starting price. Please enter a number or use formats like '1k'."
            )
            return False
        if buy_now_str is not None and buy_now_price is None:
            await self._send_error_message(
                ctx, "Invalid buy it now price. Please enter a number, or 'none'."
            )
            return False
        if buy_now_price is not None and buy_now_price <= start_price:
            await self._send_error_message(
                ctx, "The buy it now price must be higher than the starting price."
            )
            return False
        return True

    async def _handle_command_not_found(self, ctx, error):
        logger.info(f"Command not found: {ctx.message.content}")

    async def _handle_missing_required_argument(self, ctx, error):
        await ctx.send(f"Missing a required argument: {error.param.name}")
        await ctx.send_help(ctx.command)

    async def _handle_bad_argument(self, ctx, error):
        await ctx.send("One or more arguments are invalid. Please check your input.")
        await ctx.send_help(ctx.command)

    async def _handle_command_on_cooldown(self, ctx, error):
        await ctx.send(
            f"This command is on cooldown. Try again after {error.retry_after:.2f} seconds."
        )
