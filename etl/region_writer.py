# WORKFLOW: Record writer persisting finalized regions into the regions table.
# Used by: Regions pipeline (etl/load_regions.py)
# Operations:
# 1. prepare_destination() - Drop/create the regions table and its name index
# 2. write() - Insert one RegionRecord, keeping its update_order verbatim
# 3. finish() - Commit outstanding rows
#
# Write flow: RegionRecord -> Region row -> flush -> commit every N rows -> finish()
# A failed insert or commit rolls back and raises StorageError; rows are never dropped.

"""
SQLAlchemy-backed record writer for region rows.
"""

import logging
from contextlib import ExitStack
from typing import Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.errors import StorageError
from db.models import Region
from db.session import prepare_regions_table, session_scope
from etl.region_parser import RegionRecord

logger = logging.getLogger(__name__)


class RegionWriter:
    """Writes region records through a single session per run."""

    def __init__(self, engine: Engine, commit_every: int = 1000):
        self.engine = engine
        self.commit_every = max(1, commit_every)
        self.rows_written = 0
        self._uncommitted = 0
        self._session: Optional[Session] = None
        self._stack: Optional[ExitStack] = None

    def __enter__(self) -> "RegionWriter":
        self._stack = ExitStack()
        self._session = self._stack.enter_context(session_scope(self.engine))
        return self

    def __exit__(self, *exc_info) -> None:
        stack, self._stack, self._session = self._stack, None, None
        if stack is not None:
            stack.__exit__(*exc_info)

    def prepare_destination(self) -> None:
        """Drop and recreate the regions table. Runs once, before any write."""
        try:
            prepare_regions_table(self.engine)
        except SQLAlchemyError as e:
            logger.error(f"Failed to prepare regions table: {e}")
            raise StorageError(f"Cannot prepare regions table: {e}") from e

    def write(self, record: RegionRecord) -> None:
        """Persist one record; its update_order is stored as given."""
        session = self._require_session()
        try:
            session.add(Region(**record.model_dump()))
            session.flush()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Failed to write region {record.name} (update_order {record.update_order}): {e}")
            raise StorageError(f"Cannot write region {record.name}: {e}") from e

        self.rows_written += 1
        self._uncommitted += 1
        if self._uncommitted >= self.commit_every:
            self._commit()

    def finish(self) -> None:
        """Commit every row written so far."""
        self._commit()
        logger.info(f"Committed {self.rows_written} region rows")

    def _commit(self) -> None:
        session = self._require_session()
        try:
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Failed to commit region rows: {e}")
            raise StorageError(f"Cannot commit region rows: {e}") from e
        self._uncommitted = 0
        # committed objects are not needed again
        session.expunge_all()

    def _require_session(self) -> Session:
        if self._session is None:
            raise StorageError("RegionWriter is not open; use it as a context manager")
        return self._session
