"""Main application entry point for f1-recaps."""

import argparse
import asyncio
import logging
import sys
from datetime import datetime, timezone
from typing import List, Optional

from recap_builder import RecapBuilder
from services.artifact_store import ArtifactStore
from services.calendar_service import CalendarService, should_run
from utils.config import setup_logging, load_config
from utils.retry import ConfigurationError, QuotaExhaustedError, APIRequestError, RetryableError

logger = logging.getLogger(__name__)

VIDEO_COMMANDS = ('videos', 'archive', 'calendar-archive')


class RecapApp:
    """Main application class for f1-recaps."""

    def __init__(self, config: Optional[dict] = None):
        self.config = config or load_config()
        self.builder: Optional[RecapBuilder] = None

    async def run(self, command: str) -> int:
        """Run one command and return the process exit code."""
        if command == 'should-run':
            return self.should_run()
        if command == 'validate-calendar':
            return self.validate_calendar()

        try:
            self.builder = RecapBuilder(self.config, require_youtube=command in VIDEO_COMMANDS)
        except ConfigurationError as e:
            logger.error(str(e))
            return 1

        try:
            if command == 'videos':
                await self.builder.build_current_feed()
            elif command == 'archive':
                await self.builder.build_season_archive()
            elif command == 'calendar-archive':
                await self.builder.build_calendar_archive()
            elif command == 'standings':
                return 0 if await self.builder.update_standings() else 1
            else:
                logger.error(f"Unknown command: {command}")
                return 2

        except ConfigurationError as e:
            logger.error(str(e))
            return 1
        except QuotaExhaustedError as e:
            logger.error(f"{e}. Try again after the daily quota resets.")
            return 1
        except APIRequestError as e:
            logger.error(f"YouTube API request failed: {e}")
            return 1
        except RetryableError as e:
            logger.error(f"Giving up after retries: {e}")
            return 1

        return 0

    def should_run(self) -> int:
        """Schedule gate; always succeeds so the workflow can branch on its output."""
        store = ArtifactStore(self.config['data_dir'])
        year = self.config['target_year']
        calendar = CalendarService(store).load(year)
        today = datetime.now(timezone.utc).date()

        decision = should_run(
            calendar,
            today,
            force_run=self.config.get('force_run', False),
            manual_run=self.config.get('manual_run', False),
        )
        logger.info(f"Fetch gate: run={decision.run} ({decision.reason})")

        github_output = self.config.get('github_output')
        if github_output:
            try:
                with open(github_output, 'a', encoding='utf-8') as f:
                    f.write('\n'.join(decision.output_lines()) + '\n')
            except OSError as e:
                logger.warning(f"Could not write GITHUB_OUTPUT: {e}")
        return 0

    def validate_calendar(self) -> int:
        store = ArtifactStore(self.config['data_dir'])
        try:
            CalendarService(store).validate_ics_files()
        except ValueError as e:
            logger.error(f"Calendar validation failed: {e}")
            return 1
        return 0


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog='f1recaps',
        description='Fetch Formula 1 highlight videos and standings into the site data directory.',
    )
    parser.add_argument(
        'command',
        choices=['videos', 'archive', 'calendar-archive', 'standings', 'should-run', 'validate-calendar'],
        help='Build step to run',
    )
    parser.add_argument('--year', type=int, help='Season year (overrides TARGET_YEAR)')
    parser.add_argument('--missing-only', action='store_true',
                        help='Archive: only search weekends with no videos yet')
    parser.add_argument('--log-level', help='Logging level (overrides LOG_LEVEL)')
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    args = parse_args(argv)
    try:
        config = load_config()
    except ConfigurationError as e:
        setup_logging(args.log_level or 'INFO')
        logger.error(f"Configuration error: {e}")
        sys.exit(1)
    if args.year:
        config['target_year'] = args.year
    if args.missing_only:
        config['missing_only'] = True

    setup_logging(args.log_level or config.get('log_level', 'INFO'), config.get('log_file'))
    logger.info(f"Starting f1-recaps {args.command} for {config['target_year']}...")

    app = RecapApp(config)

    try:
        exit_code = asyncio.run(app.run(args.command))
    except KeyboardInterrupt:
        logger.info("Application interrupted by user")
        sys.exit(130)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
