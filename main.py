# main.py
# Sends a handful of sample log records to the configured Telegram chat.

import asyncio
import logging

from config import config, ConfigurationError
from telelog.context import bind_metadata, context_metadata_provider
from telelog.setup import create_bot, setup_telegram_logging

# 1. --- Basic Logging Configuration ---
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - [%(levelname)s] - %(message)s"
)
logging.getLogger("TeleBot").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


async def main():
    config.require_telegram()

    bot = create_bot(config.BOT_TOKEN)
    processor, handler = setup_telegram_logging(
        bot,
        config.CHAT_ID,
        metadata={"app": "telelog-demo"},
        metadata_provider=context_metadata_provider,
    )
    processor_task = asyncio.create_task(processor.run())

    try:
        logger.info("Log shipping to Telegram started\\.")
        with bind_metadata(job="nightly-report"):
            logger.warning(
                "Report generation is *slow*\\.",
                extra={"metadata": {"duration_s": 42.5, "rows": 120000}},
            )
        try:
            1 / 0
        except ZeroDivisionError:
            logger.exception("Report totals could not be computed\\.")

        # Give the processor one schedule tick before shutting down.
        await asyncio.sleep(config.LOG_SCHEDULE_DELAY)
    finally:
        await processor.shutdown()
        if not processor_task.done():
            processor_task.cancel()
            try:
                await processor_task
            except asyncio.CancelledError:
                pass
        logging.getLogger().removeHandler(handler)
        await bot.close_session()
        logger.info("Telegram log shipping has stopped.")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except ConfigurationError as e:
        logger.error(f"{e}. Set them in the environment or a .env file.")
    except KeyboardInterrupt:
        print("\nShutting down.")
