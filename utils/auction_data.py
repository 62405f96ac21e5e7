# utils/auction_data.py
import enum

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    BigInteger,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base, relationship

from utils.utilities import utcnow

Base = declarative_base()

# Amounts are kept as exact decimals with cents precision
Money = Numeric(12, 2)


class ClosedReason(str, enum.Enum):
    EXPIRED = "expired"
    BUY_NOW = "buy_now"


class NotificationType(str, enum.Enum):
    OUTBID = "outbid"
    WON = "won"


class Auction(Base):
    __tablename__ = "auctions"

    id = Column(Integer, primary_key=True)
    title = Column(String(200), nullable=False)
    description = Column(Text)
    start_price = Column(Money, nullable=False)
    buy_now_price = Column(Money)  # None means the auction cannot be bought outright
    current_bid = Column(Money)  # Advisory only, the bid ledger is authoritative
    start_time = Column(DateTime, nullable=False, default=utcnow)
    end_time = Column(DateTime, nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    creator_id = Column(BigInteger, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)

    bids = relationship(
        "Bid", back_populates="auction", cascade="all, delete-orphan", passive_deletes=True
    )
    result = relationship(
        "AuctionResult",
        back_populates="auction",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self):
        return (
            f"Auction(id={self.id!r}, title={self.title!r}, end_time={self.end_time!r}, "
            f"is_active={self.is_active!r})"
        )


class Bid(Base):
    __tablename__ = "bids"

    id = Column(Integer, primary_key=True)
    auction_id = Column(
        Integer, ForeignKey("auctions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(BigInteger, nullable=False, index=True)
    bid_amount = Column(Money, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    auction = relationship("Auction", back_populates="bids")

    def __repr__(self):
        return (
            f"Bid(id={self.id!r}, auction_id={self.auction_id!r}, user_id={self.user_id!r}, "
            f"bid_amount={self.bid_amount!r})"
        )


class AuctionResult(Base):
    __tablename__ = "auction_results"

    id = Column(Integer, primary_key=True)
    auction_id = Column(
        Integer, ForeignKey("auctions.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    winner_id = Column(BigInteger)  # None when the auction closed without bids
    final_bid = Column(Money)
    closed_reason = Column(
        Enum(ClosedReason, values_callable=lambda reasons: [r.value for r in reasons]),
        nullable=False,
    )
    closed_at = Column(DateTime, nullable=False, default=utcnow)
    # Maintained by the payment/shipping admin flows
    is_paid = Column(Boolean, nullable=False, default=False)
    tracking_number = Column(String(100))

    auction = relationship("Auction", back_populates="result")

    def __repr__(self):
        return (
            f"AuctionResult(auction_id={self.auction_id!r}, winner_id={self.winner_id!r}, "
            f"final_bid={self.final_bid!r}, closed_reason={self.closed_reason!r})"
        )


class AuctionNotification(Base):
    __tablename__ = "auction_notifications"

    id = Column(Integer, primary_key=True)
    user_id = Column(BigInteger, nullable=False, index=True)
    auction_id = Column(
        Integer, ForeignKey("auctions.id", ondelete="CASCADE"), nullable=False
    )
    type = Column(
        Enum(NotificationType, values_callable=lambda types: [t.value for t in types]),
        nullable=False,
    )
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class Message(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True)
    conversation_id = Column(Integer, nullable=False, index=True)
    user_id = Column(BigInteger, nullable=False, index=True)
    message_content = Column(Text, nullable=False)
    is_from_admin = Column(Boolean, nullable=False, default=False)
    is_read = Column(Boolean, nullable=False, default=False)
    sent_at = Column(DateTime, nullable=False, default=utcnow)


class ErrorLog(Base):
    __tablename__ = "error_logs"

    id = Column(Integer, primary_key=True)
    error = Column(Text, nullable=False)
    context = Column(String(200))
    created_at = Column(DateTime, nullable=False, default=utcnow)
