"""SQLAlchemy database models for sticky-situation."""
from pathlib import Path
from typing import Union

from sqlalchemy import (Column, ForeignKey, Integer, LargeBinary, Text,
                        create_engine, event, text)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, relationship, sessionmaker

# Create base class for SQLAlchemy models
Base = declarative_base()


class DBSticky(Base):
    """Database model for a sticky."""
    __tablename__ = "stickies"
    uuid = Column(Text, primary_key=True)
    content_text = Column(Text)
    rtf_data = Column(LargeBinary)
    plist_metadata = Column(LargeBinary)
    color = Column(Text)
    modified_at = Column(Integer)
    created_at = Column(Integer)
    source_machine = Column(Text)

    # Relationships
    attachments = relationship(
        "DBAttachment",
        back_populates="sticky",
        cascade="all, delete-orphan",
        order_by="DBAttachment.id",
    )

    def __repr__(self) -> str:
        """Return string representation of sticky."""
        return f"<Sticky(uuid='{self.uuid}', color='{self.color}')>"


class DBAttachment(Base):
    """Database model for a file stored inside a sticky's bundle."""
    __tablename__ = "attachments"
    id = Column(Integer, primary_key=True, autoincrement=True)
    sticky_uuid = Column(Text, ForeignKey("stickies.uuid"))
    filename = Column(Text)
    content = Column(LargeBinary)

    # Relationships
    sticky = relationship("DBSticky", back_populates="attachments")

    def __repr__(self) -> str:
        """Return string representation of attachment."""
        return f"<Attachment(sticky='{self.sticky_uuid}', filename='{self.filename}')>"


def init_db(database_path: Union[str, Path]) -> Engine:
    """Open the database file and make sure every table exists.

    Applies SQLite settings for crash resilience on every connection:
    - WAL (Write-Ahead Logging) mode for atomic writes
    - NORMAL synchronous mode (good balance of safety vs speed)

    The parent directory is not created; callers decide where stores live.
    """
    engine = create_engine(f"sqlite:///{database_path}")

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.close()

    Base.metadata.create_all(engine)
    init_fts5(engine)

    return engine


def init_fts5(engine: Engine) -> None:
    """Initialize the FTS5 shadow index.

    The index is a standalone FTS5 table keyed by the (unindexed) uuid
    column rather than an external-content table, so rows are maintained
    explicitly inside the upsert transaction instead of by triggers.
    """
    with engine.connect() as conn:
        conn.execute(text("""
            CREATE VIRTUAL TABLE IF NOT EXISTS stickies_fts USING fts5(
                uuid UNINDEXED,
                content_text
            )
        """))
        conn.commit()


def rebuild_fts_index(engine: Engine) -> int:
    """Rebuild the FTS5 index from the stickies table.

    Returns:
        Number of stickies indexed.
    """
    with engine.connect() as conn:
        conn.execute(text("DELETE FROM stickies_fts"))
        conn.execute(text("""
            INSERT INTO stickies_fts(uuid, content_text)
            SELECT uuid, COALESCE(content_text, '') FROM stickies
        """))
        conn.commit()

        count = conn.execute(text("SELECT COUNT(*) FROM stickies_fts")).scalar()

    return count


def get_session_factory(engine: Engine):
    """Get a session factory for the database."""
    return sessionmaker(bind=engine)
