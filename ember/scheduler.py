"""
Scheduled feed generation
Can be run as a standalone service or via cron/systemd
"""

import argparse
import asyncio
import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from dotenv import load_dotenv

from .config.settings import Settings, get_settings
from .generator import GenerationResult, generate_feed
from .utils.logger import setup_logging

logger = logging.getLogger(__name__)

# Load environment
load_dotenv()


async def regenerate(settings: Settings) -> GenerationResult:
    """Regenerate both snapshots once"""
    logger.info("Starting scheduled feed generation...")

    result = await generate_feed(settings, persist=True)

    if result.success:
        logger.info(
            f"Feed generated: {len(result.articles)} articles, {len(result.users)} users "
            f"in {result.duration_ms}ms"
        )
        if result.failed_sources:
            logger.warning(f"{len(result.failed_sources)} sources failed: {', '.join(result.failed_sources)}")
    else:
        logger.error(f"Feed generation failed: {result.error}")

    return result


def build_scheduler(settings: Settings) -> AsyncIOScheduler:
    """Create a scheduler with the regeneration job registered"""
    scheduler = AsyncIOScheduler(timezone="UTC")

    scheduler.add_job(
        regenerate,
        CronTrigger.from_crontab(settings.schedule_cron, timezone="UTC"),
        args=[settings],
        id="generate_feed",
        name="Feed Snapshot Generation",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    logger.info(f"Scheduled feed generation with cron '{settings.schedule_cron}' (UTC)")
    return scheduler


async def run_scheduler(settings: Settings):
    """Run the scheduled feed generator until interrupted"""
    scheduler = build_scheduler(settings)
    scheduler.start()

    # Keep running
    try:
        while True:
            await asyncio.sleep(3600)
    except (KeyboardInterrupt, SystemExit, asyncio.CancelledError):
        logger.info("Shutting down scheduler...")
        scheduler.shutdown()


def main(argv: Optional[list[str]] = None) -> int:
    """CLI entry point"""
    parser = argparse.ArgumentParser(description="Ember feed generation scheduler")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run once and exit (don't start scheduler)",
    )
    parser.add_argument(
        "--cron",
        help="Crontab expression overriding SCHEDULE_CRON",
    )
    args = parser.parse_args(argv)

    settings = get_settings()
    if args.cron:
        settings = settings.model_copy(update={"schedule_cron": args.cron})

    setup_logging(json_log_path=settings.log_json_path)

    if args.once:
        result = asyncio.run(regenerate(settings))
        return 0 if result.success else 1

    try:
        asyncio.run(run_scheduler(settings))
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
