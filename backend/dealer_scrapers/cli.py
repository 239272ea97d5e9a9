#!/usr/bin/env python3
"""
Command-line entry point for the dealer scraping engine.

Usage:
    cd backend
    python -m dealer_scrapers.cli                      # Full run, built-in dealers
    python -m dealer_scrapers.cli --list               # List known site profiles
    python -m dealer_scrapers.cli --groups template-cms component-framework
    python -m dealer_scrapers.cli --config dealers.json
    python -m dealer_scrapers.cli --url https://example.com/usados/
"""

import argparse
import asyncio
import json
import logging
import re
import signal
import sys
from typing import List, Optional

from .base import Colors, TechnologyGroup
from .config import get_site_summary
from .crawlers import CrawlerStartupError
from .dealers import default_run_config, load_run_config
from .manager import Orchestrator
from .settings import settings

logger = logging.getLogger(__name__)


class ColorStripFormatter(logging.Formatter):
    """Formatter that strips ANSI color codes from log messages."""
    ansi_escape = re.compile(r'\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])')

    def format(self, record):
        message = super().format(record)
        return self.ansi_escape.sub('', message)


def setup_logging(verbose: bool = False):
    """Colored console output, color-stripped log file."""
    level = logging.DEBUG if verbose else getattr(logging, settings.log_level.upper())

    handlers = []
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(settings.log_format))
    handlers.append(console_handler)

    try:
        settings.log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(settings.log_file, encoding='utf-8')
        file_handler.setFormatter(ColorStripFormatter(settings.log_format))
        handlers.append(file_handler)
    except OSError as e:
        print(f"Warning: file logging disabled ({e})", file=sys.stderr)

    logging.basicConfig(level=level, handlers=handlers, force=True)

    # Quiet down noisy libraries
    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('playwright').setLevel(logging.WARNING)


def print_sites():
    sites = get_site_summary()
    print(f"\n{'='*60}")
    print(f"Known site profiles ({len(sites)})")
    print(f"{'='*60}\n")

    for group in TechnologyGroup:
        members = [s for s in sites if s['group'] == group.value]
        if not members:
            continue
        print(Colors.bold(group.value))
        for site in members:
            print(f"  {site['domain']:<32} {site['name'] or ''}")
        print()


def parse_groups(values: Optional[List[str]]) -> Optional[List[TechnologyGroup]]:
    if not values:
        return None
    try:
        return [TechnologyGroup(v) for v in values]
    except ValueError:
        valid = ', '.join(g.value for g in TechnologyGroup)
        raise argparse.ArgumentTypeError(f"Unknown group in {values}. Valid groups: {valid}")


async def run_full(args) -> int:
    run_config = load_run_config(args.config) if args.config else default_run_config()
    groups = parse_groups(args.groups)
    if groups:
        run_config = run_config.only(groups)

    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel_event.set)
    except (NotImplementedError, RuntimeError):
        # Not supported on this platform; Ctrl+C will interrupt instead
        pass

    summary = await Orchestrator().run(run_config, cancel_event=cancel_event)
    return 0 if not summary.aborted else 1


async def run_single(url: str) -> int:
    try:
        result = await Orchestrator().scrape_url(url)
    except CrawlerStartupError as e:
        logger.error(Colors.red(str(e)))
        return 1

    print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False, default=str))
    return 0 if result.success else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Scrape vehicle listings from dealer websites')
    parser.add_argument('--list', action='store_true', help='List known site profiles')
    parser.add_argument('--config', help='Path to a run configuration JSON file')
    parser.add_argument('--groups', nargs='+', metavar='GROUP',
                        help='Only run these technology groups')
    parser.add_argument('--url', help='Scrape a single URL and print the result')
    parser.add_argument('--no-save', action='store_true', help="Don't write the run artifact")
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.list:
        print_sites()
        return 0

    try:
        parse_groups(args.groups)
    except argparse.ArgumentTypeError as e:
        parser.error(str(e))

    setup_logging(args.verbose)
    if args.no_save:
        settings.save_results = False

    if args.url:
        return asyncio.run(run_single(args.url))
    return asyncio.run(run_full(args))


if __name__ == '__main__':
    sys.exit(main())
