from datetime import timedelta
from decimal import Decimal

from cogs.auction.auction_helpers import AuctionHelpers
from utils.config import Settings
from utils.utilities import format_time_remaining, parse_duration


def test_parse_duration() -> None:
    assert parse_duration("1d 2h 30m") == timedelta(days=1, hours=2, minutes=30)
    assert parse_duration("2 hours 15 minutes") == timedelta(hours=2, minutes=15)
    assert parse_duration("1 week") == timedelta(days=7)
    assert parse_duration("3hr 90s") == timedelta(hours=3, seconds=90)
    assert parse_duration("soon") == timedelta()


def test_format_time_remaining() -> None:
    assert format_time_remaining(30) == "less than a minute"
    assert format_time_remaining(10 * 60) == "10 minutes"
    assert format_time_remaining(2 * 3600 + 5 * 60) == "2 hours 5 minutes"
    assert format_time_remaining(3 * 86400 + 4 * 3600) == "3 days 4 hours"
    assert format_time_remaining(86400 - 10) == "1 days 0 hours"


def test_amount_parsing_and_formatting() -> None:
    helpers = AuctionHelpers(bot=None)

    assert helpers.parse_amount("80") == Decimal("80.00")
    assert helpers.parse_amount("$1.5k") == Decimal("1500.00")
    assert helpers.parse_amount("2M") == Decimal("2000000.00")
    assert helpers.parse_amount("abc") is None
    assert helpers.parse_amount("-5") is None

    assert helpers.format_amount(Decimal("80.00")) == "80"
    assert helpers.format_amount(Decimal("80.50")) == "80.5"
    assert helpers.format_amount(Decimal("1500")) == "1.5K"


def test_settings_from_env(monkeypatch) -> None:
    monkeypatch.setenv("DISCORD_TOKEN", "token")
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///test.db")
    monkeypatch.setenv("AUCTION_CHANNEL_ID", "1200435807920591008")
    monkeypatch.setenv("SWEEP_INTERVAL_HOURS", "6")
    monkeypatch.delenv("COMMAND_PREFIX", raising=False)

    settings = Settings.from_env()

    assert settings.discord_token == "token"
    assert settings.database_url == "sqlite+aiosqlite:///test.db"
    assert settings.auction_channel_id == 1200435807920591008
    assert settings.sweep_interval_hours == 6
    assert settings.command_prefix == "P."
