#!/usr/bin/env python3
"""
Funding Alert Bot launcher.
Puts the project root on sys.path so `python run.py` works from any directory.
"""
import asyncio
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent.resolve()

if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


def launch():
    """Run the bot until interrupted."""
    from main import logger, main

    logger.info(f"Launching Funding Alert Bot from {PROJECT_ROOT}")
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Bot stopped by user")


if __name__ == "__main__":
    launch()
