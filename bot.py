import logging
import discord
from discord.ext import commands
import asyncio

from utils.config import Settings
from utils.database import create_engine, create_session_factory, init_models

# Load settings from the environment and the .env file
settings = Settings.from_env()

# Configure logging to output to a file and the console with a specific format
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger('auction_bot')
logger.setLevel(logging.INFO)
handler = logging.FileHandler(filename=settings.log_file, encoding='utf-8', mode='a')
handler.setFormatter(logging.Formatter('%(asctime)s:%(levelname)s:%(name)s: %(message)s'))
logger.addHandler(handler)

# Define the intents for the bot (e.g., server messages, reactions)
intents = discord.Intents.default()
intents.message_content = True  # Enable message content intent

# Create an instance of the bot with a specific command prefix and the defined intents
bot = commands.Bot(command_prefix=settings.command_prefix, intents=intents)

# Event listener for when the bot successfully connects to Discord
@bot.event
async def on_ready():
    logger.info(f'{bot.user.name} has connected to Discord!')

# Main coroutine that prepares the database, loads the auction cog and starts the bot
async def main():
    if not settings.discord_token:
        raise RuntimeError('DISCORD_TOKEN must be set in the environment or the .env file.')

    engine = create_engine(settings.database_url)
    await init_models(engine)
    # The cog reads these when it is set up
    bot.settings = settings
    bot.session_factory = create_session_factory(engine)

    try:
        async with bot:
            await bot.load_extension('cogs.auction.auction')
            await bot.start(settings.discord_token)
    finally:
        await engine.dispose()

# Entry point for the script
if __name__ == '__main__':
    # Start the event loop and run the main coroutine
    asyncio.run(main())
