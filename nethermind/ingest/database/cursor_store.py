import logging
import time
from typing import Callable

from sqlalchemy import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from nethermind.ingest.exceptions import DatabaseError
from nethermind.ingest.types.block import CursorCheckpoint, CursorKey

from .models.internal import IndexerCursor
from .utils import dialect_insert

root_logger = logging.getLogger("nethermind")
logger = root_logger.getChild("ingest").getChild("db").getChild("cursors")


def upsert_cursor(
    db_session: Session,
    key: CursorKey,
    height: int,
    block_hash: str | None,
    updated_at: int,
):
    """
    Upserts a cursor checkpoint within an existing session.  Does not commit.

    The main cursor is expected to only move forwards, and the backfill cursor to only move backwards.  Moves in the
    unexpected direction are still written, since re-indexing a range is a valid operator action, but are logged.
    """
    existing = db_session.get(IndexerCursor, key.value)
    if existing is not None:
        if key == CursorKey.main and height < existing.height:
            logger.warning(f"Main cursor moving backwards from block {existing.height} to {height}")
        elif key == CursorKey.backfill and height > existing.height:
            logger.warning(f"Backfill cursor moving forwards from block {existing.height} to {height}")

    statement = dialect_insert(db_session, IndexerCursor).values(
        key=key.value, height=height, block_hash=block_hash, updated_at=updated_at
    )
    db_session.execute(
        statement.on_conflict_do_update(
            index_elements=["key"],
            set_={
                "height": statement.excluded.height,
                "block_hash": statement.excluded.block_hash,
                "updated_at": statement.excluded.updated_at,
            },
        )
    )
    # The upsert bypasses the ORM, so drop any stale copy loaded above
    if existing is not None:
        db_session.expire(existing)


class CursorStore:
    """
    Persists indexing progress for the two traversal directions.  The ``main`` cursor tracks the highest block
    indexed towards the chain tip, and the ``backfill`` cursor tracks the lowest block indexed towards genesis.
    The two cursors are fully independent.
    """

    def __init__(self, db_engine: Engine, clock: Callable[[], float] = time.time):
        self.db_engine = db_engine
        self.session_factory = sessionmaker(db_engine)
        self.clock = clock

    def get_checkpoint(self, key: CursorKey) -> CursorCheckpoint | None:
        """Returns the stored checkpoint for a cursor, or None if the cursor has never been set"""
        with self.session_factory() as db_session:
            cursor = db_session.get(IndexerCursor, key.value)
            if cursor is None:
                return None
            return CursorCheckpoint(
                key=key,
                height=cursor.height,
                block_hash=cursor.block_hash,
                updated_at=cursor.updated_at,
            )

    def get_cursor(self, key: CursorKey) -> int | None:
        """
        Returns the last indexed block height for a cursor.  An unset main cursor returns 0 (start from genesis),
        while an unset backfill cursor returns None (backfill has not started).
        """
        checkpoint = self.get_checkpoint(key)
        if checkpoint is not None:
            return checkpoint.height
        return 0 if key == CursorKey.main else None

    def set_cursor(self, key: CursorKey, height: int, block_hash: str | None = None):
        try:
            with self.session_factory() as db_session, db_session.begin():
                upsert_cursor(db_session, key, height, block_hash, int(self.clock()))
        except SQLAlchemyError as exc:
            logger.error(f"Failed to set {key.value} cursor to block {height}: {exc}")
            raise DatabaseError(f"Failed to set {key.value} cursor to block {height}") from exc

        logger.debug(f"Set {key.value} cursor to block {height}")
