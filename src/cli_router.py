#!/usr/bin/env python3
"""
CLI Router for Mood Pulse.

Modular command architecture for the news-to-mood pipeline.
"""

import argparse
import logging
import sys
from typing import Optional, List

# Load environment variables first
import core.env_loader  # Auto-loads .env file

from commands import get_command, COMMANDS
from core.config import get_config_manager
from core.exceptions import ConfigError

logger = logging.getLogger(__name__)


class CLIRouter:
    """
    CLI router for mood pipeline commands.

    Command structure:
    - python run.py pulse run --entities KR US --no-pacing
    - python run.py pulse slot --now 2026-10-18T13:47:00+09:00
    - python run.py store show
    - python run.py store history --entity KR
    - python run.py health check
    """

    def __init__(self, container=None):
        """Initialize CLI router."""
        self.parser = self._create_parser()
        self._container = container

    def _create_parser(self) -> argparse.ArgumentParser:
        """Create the main argument parser."""
        parser = argparse.ArgumentParser(
            description="Mood Pulse: news headlines to per-entity mood records",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog=self._get_examples_text()
        )

        subparsers = parser.add_subparsers(
            dest='command',
            help='Available commands',
            metavar='{command}'
        )

        self._add_pulse_parser(subparsers)
        self._add_store_parser(subparsers)
        self._add_health_parser(subparsers)

        return parser

    def _add_pulse_parser(self, subparsers):
        """Add pulse command parser."""
        pulse_parser = subparsers.add_parser(
            'pulse',
            help='Run the mood pipeline'
        )

        pulse_subparsers = pulse_parser.add_subparsers(
            dest='subcommand',
            help='Pulse operations',
            metavar='{run,slot}'
        )

        # Run subcommand
        run_parser = pulse_subparsers.add_parser('run', help='Fetch, analyze and persist every tracked entity')
        run_parser.add_argument('--entities', nargs='+', metavar='ID', help='Only process these entity ids (others keep prior data)')
        run_parser.add_argument('--output-dir', default=None, help='Output directory (default: PULSE_OUTPUT_DIR or public/data)')
        run_parser.add_argument('--no-pacing', action='store_true', help='Skip the delay between analysis calls (quota permitting)')
        run_parser.add_argument('--now', default=None, help='ISO-8601 override for the current time')
        run_parser.add_argument('--verbose', action='store_true', help='Verbose output')

        # Slot subcommand
        slot_parser = pulse_subparsers.add_parser('slot', help='Show the aligned timestamp for now')
        slot_parser.add_argument('--now', default=None, help='ISO-8601 override for the current time')

    def _add_store_parser(self, subparsers):
        """Add store command parser."""
        store_parser = subparsers.add_parser(
            'store',
            help='Inspect persisted mood data'
        )

        store_subparsers = store_parser.add_subparsers(
            dest='subcommand',
            help='Store operations',
            metavar='{show,history}'
        )

        show_parser = store_subparsers.add_parser('show', help='Show the combined store')
        show_parser.add_argument('--output-dir', default=None, help='Output directory to read')
        show_parser.add_argument('--json', action='store_true', help='Print raw JSON')

        history_parser = store_subparsers.add_parser('history', help='List historical snapshots for an entity')
        history_parser.add_argument('--entity', required=True, help='Entity id')
        history_parser.add_argument('--output-dir', default=None, help='Output directory to read')
        history_parser.add_argument('--limit', type=int, default=None, help='Show only the most recent N snapshots')

    def _add_health_parser(self, subparsers):
        """Add health command parser."""
        health_parser = subparsers.add_parser(
            'health',
            help='Pipeline health checks'
        )

        health_subparsers = health_parser.add_subparsers(
            dest='subcommand',
            help='Health operations',
            metavar='{check}'
        )

        check_parser = health_subparsers.add_parser('check', help='Check credential, entities and output directory')
        check_parser.add_argument('--output-dir', default=None, help='Output directory to check')
        check_parser.add_argument('--test', action='store_true', help='Make one live call to the analysis API')

    def _get_examples_text(self) -> str:
        """Get examples text for help."""
        return """
Examples:
  # Scheduled run (all tracked entities, paced for the API quota)
  python run.py pulse run

  # Manual runs
  python run.py pulse run --entities KR US --no-pacing --verbose
  python run.py pulse slot --now 2026-10-18T13:47:00+09:00

  # Inspect output
  python run.py store show
  python run.py store history --entity KR
  python run.py health check
"""

    def route_command(self, args: Optional[List[str]] = None) -> int:
        """
        Route command to appropriate handler.

        Args:
            args: Command line arguments (uses sys.argv if None)

        Returns:
            Exit code
        """
        try:
            if args is None:
                args = sys.argv[1:]

            parsed_args = self.parser.parse_args(args)

            if not parsed_args.command:
                self.parser.print_help()
                return 1

            return self._handle_command(parsed_args)

        except SystemExit as e:
            # argparse calls sys.exit() on error or help
            return e.code if e.code is not None else 0
        except Exception as e:
            logger.error(f"CLI routing error: {e}", exc_info=True)
            return 1

    def _handle_command(self, args: argparse.Namespace) -> int:
        """Handle command structure."""
        logger.debug(f"Handling command: {args.command}")

        if args.command not in COMMANDS:
            available = ', '.join(COMMANDS.keys())
            logger.error(f"Unknown command '{args.command}'. Available: {available}")
            return 1

        subcommand = getattr(args, 'subcommand', None)
        if not subcommand:
            logger.error(f"No subcommand specified for '{args.command}' (see: {args.command} --help)")
            return 1

        try:
            command = get_command(args.command, self._container)
            return command.execute(subcommand, args)
        except Exception as e:
            logger.error(f"Error executing {args.command} {subcommand}: {e}", exc_info=True)
            return 1


def main(args: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        args: Command line arguments (uses sys.argv if None)

    Returns:
        Exit code
    """
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    argv = sys.argv[1:] if args is None else args
    try:
        get_config_manager().update_logging(verbose='--verbose' in argv)
    except ConfigError as e:
        logger.error(str(e))
        return 2

    router = CLIRouter()
    return router.route_command(argv)


if __name__ == '__main__':
    exit_code = main()
    sys.exit(exit_code)
