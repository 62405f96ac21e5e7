# utils/config.py
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


@dataclass
class Settings:
    discord_token: Optional[str]
    database_url: str = "sqlite+aiosqlite:///auctions.db"
    auction_channel_id: Optional[int] = None
    sweep_interval_hours: float = 24
    command_prefix: str = "P."
    log_file: str = "auction_bot.log"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment, loading a .env file first."""
        load_dotenv()
        channel_id = os.getenv("AUCTION_CHANNEL_ID")
        return cls(
            discord_token=os.getenv("DISCORD_TOKEN"),
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            auction_channel_id=int(channel_id) if channel_id else None,
            sweep_interval_hours=float(
                os.getenv("SWEEP_INTERVAL_HOURS", cls.sweep_interval_hours)
            ),
            command_prefix=os.getenv("COMMAND_PREFIX", cls.command_prefix),
            log_file=os.getenv("LOG_FILE", cls.log_file),
        )
