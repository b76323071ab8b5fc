"""Entry point for running bot as module."""

import asyncio

from thumbnail_bot.bot.main import main


def run() -> None:
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
