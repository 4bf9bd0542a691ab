# WORKFLOW: Regions dump ingestion pipeline.
# Used by: CLI (scripts/load_regions.py), tests
# Functions:
# 1. IngestRun - Per-run state: started/completed flags, row count, error sink
# 2. run_ingest() - decompress -> tokenize -> accumulate -> write, in one pass
# 3. load_regions() - Prepare the destination and run the pipeline on a stream
# 4. load_regions_from_file() / load_regions_from_url() - Own the input stream too
#
# Ingestion flow: regions.xml.gz -> gzip -> lxml events -> RegionAccumulator
# -> RegionWriter -> regions table
# Recoverable markup errors end up in IngestRun.errors; fatal errors propagate as
# IngestError subclasses after every resource is released.

"""
Streaming loader for the NationStates regions dump.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Optional, Tuple, Union

from sqlalchemy.engine import Engine

from core.config import Settings, settings as default_settings
from core.errors import IngestError
from db.session import get_engine
from etl.region_parser import RecordCompleted, RegionAccumulator
from etl.region_source import fetch_dump, open_decompressed, open_dump_file
from etl.region_writer import RegionWriter
from etl.xml_events import ErrorSink, ParseIssue, iter_xml_events

logger = logging.getLogger(__name__)


@dataclass
class IngestRun:
    """State owned by one ingestion run."""
    started: bool = False
    completed: bool = False
    records_loaded: int = 0
    records_skipped: int = 0
    errors: ErrorSink = field(default_factory=ErrorSink)

    @property
    def issues(self) -> Tuple[ParseIssue, ...]:
        return self.errors.issues

    @property
    def issues_truncated(self) -> bool:
        """True when the XML parser stopped reporting markup errors."""
        return self.errors.truncated


def run_ingest(stream: BinaryIO, writer: RegionWriter, config: Optional[Settings] = None,
               run: Optional[IngestRun] = None) -> IngestRun:
    """
    Load every region of a gzip-compressed dump through an open writer.

    Args:
        stream: Readable stream of gzip-compressed regions XML
        writer: Open RegionWriter (destination already prepared)
        config: Settings for chunk size and record policy
        run: Run state to fill in; a new one is created when omitted

    Returns:
        The completed IngestRun

    Raises:
        IngestError: On a stream, validation or storage failure
    """
    config = config or default_settings
    run = run or IngestRun()
    accumulator = RegionAccumulator(
        carry_over_fields=config.carry_over_fields,
        skip_invalid_records=config.skip_invalid_records,
        report_unknown_elements=config.report_unknown_elements,
    )

    run.started = True
    try:
        with open_decompressed(stream) as xml_stream:
            for event in iter_xml_events(xml_stream, run.errors, config.read_chunk_size):
                for result in accumulator.feed(event):
                    if isinstance(result, RecordCompleted):
                        writer.write(result.record)
                        run.records_loaded += 1
                    else:
                        run.errors.add(result.issue)
        writer.finish()
    except IngestError as e:
        logger.error(f"Regions ingestion aborted after {run.records_loaded} rows: {e}")
        raise
    finally:
        run.records_skipped = accumulator.records_skipped
        run.completed = True

    if len(run.errors):
        logger.warning(f"Regions ingestion collected {len(run.errors)} recoverable issues")
    logger.info(f"Regions ingestion finished: {run.records_loaded} rows loaded")
    return run


def load_regions(stream: BinaryIO, config: Optional[Settings] = None,
                 engine: Optional[Engine] = None, run: Optional[IngestRun] = None) -> IngestRun:
    """
    Recreate the regions table and load a dump stream into it.

    The caller keeps ownership of ``stream``. An engine is created for the run
    (and disposed afterwards) unless one is passed in.
    """
    config = config or default_settings
    own_engine = engine is None
    engine = engine or get_engine(config.database_url, config.database_echo)
    run = run or IngestRun()

    try:
        with RegionWriter(engine, commit_every=config.commit_every) as writer:
            run.started = True
            writer.prepare_destination()
            return run_ingest(stream, writer, config, run)
    finally:
        run.completed = True
        if own_engine:
            engine.dispose()


def load_regions_from_file(path: Union[str, Path], config: Optional[Settings] = None,
                           engine: Optional[Engine] = None, run: Optional[IngestRun] = None) -> IngestRun:
    """Load a local regions.xml.gz file."""
    with open_dump_file(path) as stream:
        return load_regions(stream, config, engine, run)


def load_regions_from_url(url: Optional[str] = None, config: Optional[Settings] = None,
                          engine: Optional[Engine] = None, run: Optional[IngestRun] = None) -> IngestRun:
    """Download and load the regions dump in a single streaming pass."""
    config = config or default_settings
    with fetch_dump(url or config.regions_dump_url, config.user_agent, config.request_timeout,
                    config.read_chunk_size) as stream:
        return load_regions(stream, config, engine, run)


if __name__ == "__main__":
    import sys

    if len(sys.argv) != 2:
        print("Usage: python -m etl.load_regions <regions.xml.gz>")
        sys.exit(1)

    logging.basicConfig(level=default_settings.log_level)
    result = load_regions_from_file(sys.argv[1])
    print(f"Loaded {result.records_loaded} regions ({len(result.errors)} parse issues)")
