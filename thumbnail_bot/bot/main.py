"""Main bot file."""

import asyncio
import logging
import sys

from aiogram import Bot, Dispatcher
from dotenv import load_dotenv

from thumbnail_bot.bot.handlers import result, start, wizard
from thumbnail_bot.bot.middleware import ErrorHandlerMiddleware, LoggingMiddleware
from thumbnail_bot.bot.sessions import SessionRegistry
from thumbnail_bot.config import get_config
from thumbnail_bot.services.generation_client import get_generation_client

# Load environment variables
load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s · %(levelname)s · %(name)s · %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

logger = logging.getLogger(__name__)


async def main() -> None:
    """Main entry point."""
    try:
        # Load configuration
        config = get_config()

        # Set logging level from config
        log_level = getattr(logging, config.logging.level.upper(), logging.INFO)
        logging.getLogger().setLevel(log_level)

        logger.info("Starting Thumbnail Chat Bot...")

        # Initialize bot and dispatcher
        bot = Bot(token=config.telegram.bot_token)
        dp = Dispatcher()
        dp["sessions"] = SessionRegistry(bot, get_generation_client(), config.conversation)

        # Register middleware (order matters!)
        for observer in (dp.message, dp.callback_query):
            observer.middleware(LoggingMiddleware())
            observer.middleware(ErrorHandlerMiddleware())  # Error handling last

        # Register routers
        dp.include_router(start.router)
        dp.include_router(result.router)  # Download before generic option buttons
        dp.include_router(wizard.router)

        logger.info("Bot initialized successfully")

        # Start polling
        await dp.start_polling(bot, allowed_updates=dp.resolve_used_update_types())

    except KeyboardInterrupt:
        logger.info("Bot stopped by user")
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)
    finally:
        logger.info("Shutting down...")


if __name__ == "__main__":
    asyncio.run(main())
