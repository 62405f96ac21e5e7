# cogs/auction/errors.py
from decimal import Decimal
from typing import Optional


class AuctionError(Exception):
    """Base class for rejections a user can be told about."""


class AuctionNotFound(AuctionError):
    def __init__(self, auction_id: int):
        super().__init__(f"Auction {auction_id} does not exist.")
        self.auction_id = auction_id


class AuctionClosed(AuctionError):
    def __init__(self, auction_id: int):
        super().__init__(f"Auction {auction_id} is no longer accepting bids.")
        self.auction_id = auction_id


class BidRejected(AuctionError):
    """The bid did not beat the current highest bid, or fell short of the starting price."""

    def __init__(
        self,
        auction_id: int,
        amount: Decimal,
        current_highest: Optional[Decimal],
        below_start_price: bool = False,
    ):
        requirement = "at least" if below_start_price else "higher than"
        super().__init__(
            f"A bid of {amount} on auction {auction_id} must be {requirement} {current_highest}."
        )
        self.auction_id = auction_id
        self.amount = amount
        self.current_highest = current_highest
        self.below_start_price = below_start_price


class BuyNowUnavailable(AuctionError):
    def __init__(self, auction_id: int):
        super().__init__(f"Auction {auction_id} has no buy it now price.")
        self.auction_id = auction_id


class PurchaseFailed(AuctionError):
    def __init__(self, auction_id: int):
        super().__init__(f"The purchase of auction {auction_id} could not be completed.")
        self.auction_id = auction_id
