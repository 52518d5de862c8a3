#!/usr/bin/env python3
"""
Command line entry point.

Usage:
    storylinker tables PROJECT --chapters 3
    storylinker build PROJECT --chapters 3 [--no-assets]
    storylinker check-atlas PROJECT
"""

import sys
import argparse
import logging
from pathlib import Path

from storylinker.config import LOG_LEVEL, LinkerConfig
from storylinker.errors import LinkerError
from storylinker.pipeline import LinkerRun

logger = logging.getLogger(__name__)

# Exit codes
EXIT_SUCCESS = 0
EXIT_VALIDATION = 1
EXIT_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='storylinker',
        description='Convert a narrative export into chaptered, localized game bundles',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Generate translation tables for the first 3 chapters
  %(prog)s tables books/Pirates --chapters 3

  # Build Temp/ for the first 3 chapters
  %(prog)s build books/Pirates --chapters 3

  # Check that every character sprite is packed
  %(prog)s check-atlas books/Pirates

Exit codes:
  0 - Success
  1 - Validation errors (see the report)
  2 - Fatal error
        """
    )
    subparsers = parser.add_subparsers(dest='command', required=True)

    tables = subparsers.add_parser('tables', help='Generate base-language localization tables')
    tables.add_argument('project', type=Path, help='Book project directory')
    tables.add_argument('--chapters', type=int, help='Number of chapters to include')

    build = subparsers.add_parser('build', help='Build the Temp/ output bundle')
    build.add_argument('project', type=Path, help='Book project directory')
    build.add_argument('--chapters', type=int, help='Number of chapters to include')
    build.add_argument('--no-assets', action='store_true', help='Skip copying art and audio')

    check = subparsers.add_parser('check-atlas', help='Check character atlases for missing sprites')
    check.add_argument('project', type=Path, help='Book project directory')

    for sub in (tables, build, check):
        sub.add_argument('--base-language', help='Override the detected base language')
        sub.add_argument('-v', '--verbose', action='store_true', help='Debug logging')

    return parser


def main(argv=None) -> int:
    """Main entry point for CLI usage."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else getattr(logging, LOG_LEVEL.upper(), logging.INFO),
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    if not args.project.is_dir():
        print(f"Error: {args.project} is not a directory", file=sys.stderr)
        return EXIT_ERROR

    try:
        config = LinkerConfig.load(
            args.project,
            chapters=getattr(args, 'chapters', None),
            base_language=args.base_language,
            copy_assets=False if getattr(args, 'no_assets', False) else None,
        )
        run = LinkerRun(args.project, config)

        if args.command == 'tables':
            report = run.generate_tables()
            print(f"✓ Tables written to {run.layout.base_tables}", file=sys.stderr)
            print(f"✓ Word count: {report.total_words}", file=sys.stderr)
        elif args.command == 'build':
            report = run.build_bundle()
            print(f"✓ Bundle written to {run.layout.temp} ({len(report.written)} files)", file=sys.stderr)
        else:
            report = run.check_atlases()
    except (LinkerError, ValueError) as e:
        logger.error(str(e))
        print(f"✗ {e}", file=sys.stderr)
        return EXIT_ERROR

    for entry in report.warnings:
        print(f"  warning [{entry.group}] {entry.message}", file=sys.stderr)
    if not report.ok:
        for entry in report.errors:
            print(f"✗ [{entry.group}] {entry.message}", file=sys.stderr)
        return EXIT_VALIDATION

    print(f"✓ {args.command} completed", file=sys.stderr)
    return EXIT_SUCCESS


if __name__ == '__main__':
    sys.exit(main())
