"""FTS5 full-text shadow index for stickies.

Encapsulates FTS5 querying, query escaping and index row maintenance.
Extracted from StickyRepository for cohesion.
"""
import logging
import re
from typing import Any, Callable, List, Optional

from sqlalchemy import text
from sqlalchemy.exc import OperationalError as SQLAlchemyOperationalError
from sqlalchemy.orm import Session

from sticky_situation.models.db_models import rebuild_fts_index

logger = logging.getLogger(__name__)


class FtsIndex:
    """FTS5 index keyed by sticky UUID.

    Args:
        engine: SQLAlchemy engine used for database access.
        session_factory: Callable returning a context-manager session.
    """

    def __init__(
        self,
        engine: Any,
        session_factory: Callable,
    ) -> None:
        self.engine = engine
        self._session_factory = session_factory

    # ------------------------------------------------------------------
    # Row maintenance (caller owns the transaction)
    # ------------------------------------------------------------------

    @staticmethod
    def remove(session: Session, sticky_id: str) -> None:
        """Delete every index row for ``sticky_id``."""
        session.execute(
            text("DELETE FROM stickies_fts WHERE uuid = :uuid"), {"uuid": sticky_id}
        )

    @staticmethod
    def add(session: Session, sticky_id: str, plain_text: str) -> None:
        """Insert the index row for ``sticky_id``."""
        session.execute(
            text("INSERT INTO stickies_fts(uuid, content_text) VALUES (:uuid, :content)"),
            {"uuid": sticky_id, "content": plain_text},
        )

    # ------------------------------------------------------------------
    # Public query API
    # ------------------------------------------------------------------

    def search_ids(
        self,
        query: str,
        limit: Optional[int] = None,
        literal: Optional[bool] = None,
    ) -> List[str]:
        """Return the IDs whose indexed text matches ``query``, best match first.

        Args:
            query: Search query (supports FTS5 syntax).
            limit: Maximum results, or None for all.
            literal: None = auto-detect, True = escape, False = preserve syntax.

        Raises:
            sqlalchemy.exc.SQLAlchemyError: For failures other than a query
                SQLite refuses to parse.
        """
        if not query or not query.strip():
            return []

        if literal is None:
            literal = self._should_escape(query)

        safe_query = self._escape_query(query) if literal else query

        try:
            return self._run_match(safe_query, limit)
        except SQLAlchemyOperationalError as e:
            if literal:
                raise
            logger.warning(
                f"FTS5 rejected query '{query}': {e}. Retrying as a literal phrase."
            )
            return self._run_match(self._escape_query(query), limit)

    def rebuild(self) -> int:
        """Rebuild the FTS5 index from the stickies table."""
        count = rebuild_fts_index(self.engine)
        logger.info(f"FTS5 index rebuilt with {count} stickies")
        return count

    def _run_match(self, match_query: str, limit: Optional[int]) -> List[str]:
        sql = """
            SELECT uuid
            FROM stickies_fts
            WHERE stickies_fts MATCH :query
            ORDER BY bm25(stickies_fts)
        """
        params: dict = {"query": match_query}
        if limit is not None:
            sql += " LIMIT :limit"
            params["limit"] = limit

        with self._session_factory() as session:
            rows = session.execute(text(sql), params).fetchall()
        return [row[0] for row in rows]

    # ------------------------------------------------------------------
    # Query escaping helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _should_escape(query: str) -> bool:
        """Auto-detect whether a query needs FTS5 escaping."""
        FTS5_KEYWORDS = {"AND", "OR", "NOT", "NEAR"}
        words = query.split()
        if any(kw in words for kw in FTS5_KEYWORDS):
            return False
        if query.count('"') >= 2:
            return False
        if re.search(r"\b\w+\*", query):
            return False
        if re.search(r"\b\w+:", query):
            return False
        return True

    @staticmethod
    def _escape_query(query: str) -> str:
        """Escape query for FTS5 literal matching (quoted phrase)."""
        result = query.replace('"', '""')
        result = re.sub(r"[*^]", "", result)
        return f'"{result}"'
