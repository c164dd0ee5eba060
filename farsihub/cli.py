"""
Command-line interface for Farsi Hub.
"""
import sys
import argparse
import logging
import asyncio
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import tqdm
from dotenv import load_dotenv

from farsihub.config import Config, get_settings
from farsihub.core.cache import KeyValueStore
from farsihub.core.client import GenerationClient
from farsihub.core.logbook import CycleLog
from farsihub.core.orchestrator import CycleOrchestrator
from farsihub.core.scheduler import GenerationScheduler
from farsihub.core.store import ArticleStore, StatsStore
from farsihub.errors import FarsiHubError
from farsihub.utils.html import html_to_text

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False, log_dir: Optional[str] = None) -> None:
    """
    Configure logging to a dated file and the console.

    Args:
        verbose: Log at DEBUG instead of INFO
        log_dir: Directory for the log file; the working directory if omitted
    """
    log_path = Path(log_dir or '.') / f"farsihub_{datetime.now().strftime('%Y%m%d')}.log"
    log_path.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_path, encoding='utf-8'),
            logging.StreamHandler()
        ]
    )


@dataclass
class Pipeline:
    """Everything a command needs, wired from one configuration."""
    config: Config
    store: ArticleStore
    stats: StatsStore
    log: CycleLog
    client: GenerationClient
    orchestrator: CycleOrchestrator

    def scheduler(self, max_cycles: Optional[int] = None, cooldown: Optional[float] = None) -> GenerationScheduler:
        return GenerationScheduler(
            self.orchestrator,
            self.log,
            cooldown=cooldown if cooldown is not None else self.config.get('generation.cooldown_seconds', 30),
            max_cycles=max_cycles,
        )


def build_pipeline(config: Config, client: Optional[GenerationClient] = None) -> Pipeline:
    """
    Wire storage, the generation client and the orchestrator.

    Args:
        config: Loaded configuration
        client: Generation client to use instead of the Gemini-backed one

    Returns:
        Pipeline
    """
    kv = KeyValueStore(config.get('storage.database'))
    store = ArticleStore(kv, snapshot_path=config.get('storage.snapshot'))
    stats = StatsStore(kv, revenue_per_view=config.get('stats.revenue_per_view', 0.02))
    log = CycleLog(capacity=config.get('log.capacity', 100))
    client = client or GenerationClient.from_config(config)
    orchestrator = CycleOrchestrator.from_config(config, client, store, stats, log)
    return Pipeline(config, store, stats, log, client, orchestrator)


def parse_args(argv: Optional[List[str]] = None):
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(description="Farsi Hub - Autonomous Content Generator")
    parser.add_argument("--config", help="Path to a YAML or JSON config file")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    autopilot = sub.add_parser("autopilot", help="Generate posts continuously with a cooldown")
    autopilot.add_argument("--cycles", type=int, help="Stop after this many cycles")
    autopilot.add_argument("--cooldown", type=float, help="Seconds between cycles")

    generate = sub.add_parser("generate", help="Run generation cycles back to back")
    generate.add_argument("--count", type=int, default=1, help="Number of cycles")

    sub.add_parser("list", help="List stored posts")

    show = sub.add_parser("show", help="Print a post and count a view")
    show.add_argument("post_id")

    delete = sub.add_parser("delete", help="Delete a post")
    delete.add_argument("post_id")

    export = sub.add_parser("export", help="Write all posts to a JSON backup")
    export.add_argument("path", nargs="?", help="Output file")

    restore = sub.add_parser("import", help="Replace all posts with a JSON backup")
    restore.add_argument("path")

    sitemap = sub.add_parser("sitemap", help="Write sitemap.xml")
    sitemap.add_argument("--base-url", required=True)
    sitemap.add_argument("--output", default="sitemap.xml")

    sub.add_parser("stats", help="Show site counters")
    return parser.parse_args(argv)


async def run_autopilot(pipeline: Pipeline, cycles: Optional[int] = None,
                        cooldown: Optional[float] = None) -> int:
    """
    Run the scheduler until it stops by itself or is interrupted.

    Returns:
        Exit code
    """
    scheduler = pipeline.scheduler(max_cycles=cycles, cooldown=cooldown)
    scheduler.start()
    try:
        await scheduler.wait_stopped()
    except asyncio.CancelledError:
        logger.info("Auto-pilot interrupted, letting the current cycle finish")
        await scheduler.shutdown()
        raise
    finally:
        await pipeline.client.close()

    logger.info(
        f"Auto-pilot finished: {scheduler.cycles_run} cycle(s), {scheduler.cycles_failed} failed, "
        f"{pipeline.stats.posts_generated} posts generated in total"
    )
    return 0 if scheduler.cycles_failed < scheduler.cycles_run else 1


async def run_generate(pipeline: Pipeline, count: int) -> int:
    """
    Run a fixed number of cycles without cooldown.

    Returns:
        Exit code: 0 if at least one post was published
    """
    published = 0
    try:
        with tqdm.tqdm(total=count, desc="Generating posts") as pbar:
            for _ in range(count):
                try:
                    record = await pipeline.orchestrator.run_cycle()
                    published += 1
                    logger.info(f"Published {record.id}: {record.title}")
                except FarsiHubError as e:
                    logger.error(f"Cycle failed: {e}")
                finally:
                    pbar.update(1)
    finally:
        await pipeline.client.close()

    logger.info(f"Published {published}/{count} posts")
    return 0 if published else 1


def run_command(args, pipeline: Pipeline) -> int:
    """
    Handle the storage and reporting commands.

    Returns:
        Exit code
    """
    store = pipeline.store

    if args.command == "list":
        for record in store.list_articles():
            print(f"{record.id}\t{record.published_date_label}\t{record.category.name}\t"
                  f"{record.view_count}\t{record.title}")
        return 0

    if args.command == "show":
        record = store.record_view(args.post_id)
        if record is None:
            logger.error(f"No post with id {args.post_id}")
            return 1
        pipeline.stats.record_view()
        print(record.title)
        print(f"{record.author.name} - {record.published_date_label} - {record.read_time_label}")
        print()
        print(html_to_text(record.content_html))
        for url in record.citations:
            print(f"  {url}")
        return 0

    if args.command == "delete":
        if not store.remove_article(args.post_id):
            logger.error(f"No post with id {args.post_id}")
            return 1
        logger.warning(f"🗑️ Post deleted manually: {args.post_id}")
        return 0

    if args.command == "export":
        path = args.path or f"farsihub-backup-{datetime.now().strftime('%Y-%m-%d')}.json"
        written = store.export_file(path)
        logger.info(f"Exported {len(store)} posts to {written}")
        return 0

    if args.command == "import":
        count = store.import_file(args.path)
        logger.info(f"📥 Database imported successfully: {count} posts loaded.")
        return 0

    if args.command == "sitemap":
        Path(args.output).write_text(store.sitemap(args.base_url), encoding='utf-8')
        logger.info(f"Wrote sitemap with {len(store)} URLs to {args.output}")
        return 0

    if args.command == "stats":
        stats = pipeline.stats.snapshot()
        print(f"Posts:           {len(store)}")
        print(f"Posts generated: {stats.posts_generated}")
        print(f"Total views:     {stats.total_views}")
        print(f"Total revenue:   ${stats.total_revenue:.2f}")
        return 0

    raise ValueError(f"Unknown command: {args.command}")


async def async_main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the application.
    """
    # Explicitly reload environment variables from .env file
    load_dotenv(override=True)

    args = parse_args(argv)
    setup_logging(args.verbose)

    config = Config(args.config) if args.config else get_settings()
    pipeline = build_pipeline(config)
    logger.debug(f"Loaded {len(pipeline.store)} posts from {pipeline.store.source}")

    if args.command == "autopilot":
        return await run_autopilot(pipeline, cycles=args.cycles, cooldown=args.cooldown)
    if args.command == "generate":
        return await run_generate(pipeline, args.count)
    return run_command(args, pipeline)


def main():
    """
    Entry point for the command-line script.
    """
    try:
        return asyncio.run(async_main())
    except KeyboardInterrupt:
        logger.info("Process interrupted by user")
        return 1
    except FarsiHubError as e:
        logger.error(str(e))
        return 1
    except Exception as e:
        logger.exception(f"An error occurred: {e}")
        return 1

if __name__ == "__main__":
    sys.exit(main())
