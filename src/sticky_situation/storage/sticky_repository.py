"""Repository for sticky storage and full-text search."""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from sticky_situation.exceptions import ErrorCode, StorageError
from sticky_situation.models.db_models import (
    DBAttachment,
    DBSticky,
    get_session_factory,
    init_db,
)
from sticky_situation.models.schema import DEFAULT_COLOR, Attachment, StickyRecord
from sticky_situation.observability import timed_operation
from sticky_situation.storage.fts_index import FtsIndex

logger = logging.getLogger(__name__)


class StickyRepository:
    """SQLite store of stickies, their attachments and an FTS5 shadow index.

    Every write goes through ``upsert``, which replaces the primary row,
    its attachment rows and its index row in one transaction, so a search
    can never see text the record no longer holds.
    """

    def __init__(self, engine: Engine, database_path: Optional[Path] = None):
        """Wrap an engine whose schema has already been initialised.

        Use ``StickyRepository.create`` to open a database file.
        """
        self.engine = engine
        self.database_path = database_path
        self.session_factory = get_session_factory(engine)
        self._fts = FtsIndex(engine, self.session_factory)

    @classmethod
    def create(cls, location: Union[str, Path]) -> "StickyRepository":
        """Open (or create) the store at ``location`` and ensure its schema.

        Raises:
            StorageError: If the file cannot be opened or initialised.
        """
        database_path = Path(location)
        try:
            engine = init_db(database_path)
        except SQLAlchemyError as e:
            raise StorageError(
                f"Failed to open database at {database_path}",
                operation="create",
                path=str(database_path),
                code=ErrorCode.STORAGE_CONNECTION_FAILED,
                original_error=e,
            ) from e
        logger.info(f"StickyRepository opened: {database_path}")
        return cls(engine, database_path=database_path)

    def close(self) -> None:
        """Release pooled connections."""
        self.engine.dispose()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upsert(self, record: StickyRecord) -> None:
        """Insert or replace a sticky and its index entry atomically.

        Within one transaction: the old index row is removed, the primary
        row and its attachments are inserted or replaced, then a fresh index
        row is inserted from ``record.plain_text``.

        Raises:
            StorageError: If the backend fails; the transaction is rolled
                back and the previous state is left intact.
        """
        with timed_operation("upsert", sticky_id=record.id):
            with self.session_factory() as session:
                try:
                    self._fts.remove(session, record.id)

                    db_sticky = session.get(DBSticky, record.id)
                    if db_sticky is None:
                        db_sticky = DBSticky(uuid=record.id)
                        session.add(db_sticky)

                    db_sticky.content_text = record.plain_text
                    db_sticky.rtf_data = record.rich_text
                    db_sticky.plist_metadata = record.metadata
                    db_sticky.color = record.appearance_tag
                    db_sticky.modified_at = record.modified_at
                    db_sticky.created_at = record.created_at
                    db_sticky.source_machine = record.origin_host
                    db_sticky.attachments = [
                        DBAttachment(filename=a.filename, content=a.content)
                        for a in record.attachments
                    ]
                    session.flush()

                    self._fts.add(session, record.id, record.plain_text)
                    session.commit()
                except SQLAlchemyError as e:
                    session.rollback()
                    raise StorageError(
                        f"Failed to store sticky {record.id}",
                        operation="upsert",
                        code=ErrorCode.STORAGE_WRITE_FAILED,
                        original_error=e,
                    ) from e

        logger.debug(
            f"Upserted sticky {record.id} ({len(record.attachments)} attachment(s))"
        )

    def rebuild_fts(self) -> int:
        """Repopulate the full-text index from the stickies table."""
        try:
            return self._fts.rebuild()
        except SQLAlchemyError as e:
            raise StorageError(
                "Failed to rebuild the full-text index",
                operation="rebuild_fts",
                code=ErrorCode.STORAGE_WRITE_FAILED,
                original_error=e,
            ) from e

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, id: str) -> Optional[StickyRecord]:
        """Get a sticky by ID, or None when it is not stored."""
        try:
            with self.session_factory() as session:
                db_sticky = session.scalar(
                    select(DBSticky)
                    .options(selectinload(DBSticky.attachments))
                    .where(DBSticky.uuid == id)
                )
                if db_sticky is None:
                    return None
                return self._db_sticky_to_model(db_sticky)
        except SQLAlchemyError as e:
            raise self._read_error("get", e) from e

    def all_ids(self) -> List[str]:
        """IDs of every stored sticky, in no particular order."""
        try:
            with self.session_factory() as session:
                return list(session.scalars(select(DBSticky.uuid)))
        except SQLAlchemyError as e:
            raise self._read_error("all_ids", e) from e

    def modification_times(self) -> Dict[str, int]:
        """Map every stored ID to its ``modified_at`` in a single query."""
        try:
            with self.session_factory() as session:
                rows = session.execute(select(DBSticky.uuid, DBSticky.modified_at))
                return {uuid: modified_at or 0 for uuid, modified_at in rows}
        except SQLAlchemyError as e:
            raise self._read_error("modification_times", e) from e

    def get_all(self, color: Optional[str] = None) -> List[StickyRecord]:
        """All stickies, most recently modified first, optionally by color."""
        stmt = (
            select(DBSticky)
            .options(selectinload(DBSticky.attachments))
            .order_by(DBSticky.modified_at.desc())
        )
        if color:
            stmt = stmt.where(DBSticky.color == color.lower())
        try:
            with self.session_factory() as session:
                return [self._db_sticky_to_model(s) for s in session.scalars(stmt)]
        except SQLAlchemyError as e:
            raise self._read_error("get_all", e) from e

    def search(self, query: str, limit: Optional[int] = None) -> List[StickyRecord]:
        """Full-text search over the extracted text, best match first.

        Matching is token based (FTS5), not substring based. No match, or an
        empty query, gives an empty list.
        """
        with timed_operation("search", query=query[:50]) as op:
            try:
                ids = self._fts.search_ids(query, limit=limit)
                if not ids:
                    op["result_count"] = 0
                    return []
                with self.session_factory() as session:
                    stickies = session.scalars(
                        select(DBSticky)
                        .options(selectinload(DBSticky.attachments))
                        .where(DBSticky.uuid.in_(ids))
                    )
                    by_id = {s.uuid: self._db_sticky_to_model(s) for s in stickies}
            except SQLAlchemyError as e:
                raise self._read_error("search", e) from e

            results = [by_id[i] for i in ids if i in by_id]
            op["result_count"] = len(results)
            return results

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _db_sticky_to_model(db_sticky: DBSticky) -> StickyRecord:
        return StickyRecord(
            id=db_sticky.uuid,
            plain_text=db_sticky.content_text or "",
            rich_text=db_sticky.rtf_data or b"",
            metadata=db_sticky.plist_metadata or b"",
            appearance_tag=db_sticky.color or DEFAULT_COLOR,
            created_at=db_sticky.created_at or 0,
            modified_at=db_sticky.modified_at or 0,
            origin_host=db_sticky.source_machine or "unknown",
            attachments=[
                Attachment(filename=a.filename, content=a.content or b"")
                for a in db_sticky.attachments
            ],
        )

    def _read_error(self, operation: str, error: Exception) -> StorageError:
        return StorageError(
            f"Failed to read stickies ({operation})",
            operation=operation,
            path=str(self.database_path) if self.database_path else None,
            code=ErrorCode.STORAGE_READ_FAILED,
            original_error=error,
        )
