#!/usr/bin/env python3
"""
Warden - Entry Point
====================

Loads .env, validates the process configuration and runs the bot until
it is interrupted.
"""

import asyncio
import sys

from dotenv import load_dotenv

from warden.core.logger import logger


async def main() -> None:
    """
    Main entry point for Warden.

    Handles the complete bot lifecycle:
    1. Loads environment configuration
    2. Validates required settings
    3. Connects to Discord
    4. Shuts down cleanly on interruption

    Raises:
        SystemExit: If configuration is invalid or the bot fails to start
    """
    load_dotenv()

    from warden.core.config import ConfigValidationError, get_config, validate_and_log_config

    try:
        validate_and_log_config()
    except ConfigValidationError as e:
        logger.error("Configuration Invalid", [("Error", str(e))])
        sys.exit(1)

    logger.tree("WARDEN STARTING", [
        ("Python", sys.version.split()[0]),
    ], emoji="🛡️")

    from warden.bot import WardenBot

    bot = WardenBot()
    async with bot:
        await bot.start(get_config().discord_token)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Bot stopped by user (Ctrl+C)")
    except Exception as e:
        logger.critical(f"Fatal error: {type(e).__name__}: {str(e)[:200]}")
        sys.exit(1)
