# WORKFLOW: Command-line loader for the NationStates regions dump.
# Used by: Operators, cron jobs, local development
# Functions:
# 1. parse_args() - Read source, destination and record policy options
# 2. build_settings() - Overlay command-line options on environment settings
# 3. main() - Run the ingestion and print a summary
#
# Loader flow: --file or --url -> load_regions_*() -> regions table -> summary
# Exit status is 0 when the run completes and 1 on any fatal ingestion error.

"""
Load regions.xml.gz into the regions table.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from core.config import Settings  # noqa: E402
from core.errors import IngestError  # noqa: E402
from etl.load_regions import IngestRun, load_regions_from_file, load_regions_from_url  # noqa: E402

logger = logging.getLogger("load_regions")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description='Load the NationStates regions dump into a database')
    source = parser.add_mutually_exclusive_group()
    source.add_argument('--file', type=Path, help='Local regions.xml.gz file')
    source.add_argument('--url', help='Dump URL (default: settings.regions_dump_url)')
    parser.add_argument('--database-url', help='SQLAlchemy database URL')
    parser.add_argument('--skip-invalid', action='store_true',
                        help='Skip regions that fail validation instead of aborting')
    parser.add_argument('--carry-over-fields', action='store_true',
                        help='Keep the previous region\'s value for fields missing from a region')
    parser.add_argument('--show-issues', type=int, default=10,
                        help='Number of parse issues to print (default: 10)')
    return parser.parse_args(argv)


def build_settings(args: argparse.Namespace) -> Settings:
    overrides = {}
    if args.database_url:
        overrides['database_url'] = args.database_url
    if args.skip_invalid:
        overrides['skip_invalid_records'] = True
    if args.carry_over_fields:
        overrides['carry_over_fields'] = True
    return Settings(**overrides)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    config = build_settings(args)

    logging.basicConfig(
        level=config.log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )

    run = IngestRun()
    try:
        if args.file:
            load_regions_from_file(args.file, config, run=run)
        else:
            load_regions_from_url(args.url, config, run=run)
    except IngestError as e:
        logger.error(f"Regions load failed: {e}")
        return 1

    print(f"Loaded {run.records_loaded} regions "
          f"({run.records_skipped} skipped, {len(run.errors)} parse issues)")
    for issue in run.issues[:args.show_issues]:
        print(f"  {issue}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
