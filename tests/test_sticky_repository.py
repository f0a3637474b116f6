"""Tests for the SQLite sticky store and its full-text index."""
from unittest.mock import patch

import pytest
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from sticky_situation.exceptions import ErrorCode, StorageError
from sticky_situation.models.schema import Attachment, StickyRecord
from sticky_situation.storage.sticky_repository import StickyRepository


def make_record(sticky_id, plain_text="", modified_at=1000, **kwargs):
    return StickyRecord(
        id=sticky_id,
        plain_text=plain_text,
        rich_text=("{\\rtf1 " + plain_text + "}").encode("utf-8"),
        created_at=kwargs.pop("created_at", modified_at),
        modified_at=modified_at,
        **kwargs,
    )


class TestCreate:
    """Tests for opening a store."""

    def test_unopenable_location(self, tmp_path):
        with pytest.raises(StorageError) as exc_info:
            StickyRepository.create(tmp_path / "missing" / "dir" / "stickies.db")
        assert exc_info.value.code == ErrorCode.STORAGE_CONNECTION_FAILED

    def test_reopen_keeps_data(self, tmp_path):
        path = tmp_path / "stickies.db"
        repo = StickyRepository.create(path)
        repo.upsert(make_record("a", "persistent note"))
        repo.close()

        reopened = StickyRepository.create(path)
        try:
            assert reopened.get("a").plain_text == "persistent note"
            assert [r.id for r in reopened.search("persistent")] == ["a"]
        finally:
            reopened.close()


class TestUpsertAndGet:
    """Tests for writes and point reads."""

    def test_roundtrip(self, repository):
        record = make_record(
            "ABC-1",
            "shopping list",
            modified_at=2000,
            created_at=1500,
            metadata=b"bplist00blob",
            appearance_tag="green",
            origin_host="laptop",
            attachments=[
                Attachment(filename="a.png", content=b"1"),
                Attachment(filename="b.png", content=b"2"),
            ],
        )
        repository.upsert(record)

        assert repository.get("ABC-1") == record

    def test_get_missing_is_none(self, repository):
        assert repository.get("nope") is None

    def test_upsert_is_idempotent(self, repository):
        record = make_record("a", "same text")
        repository.upsert(record)
        repository.upsert(record)

        assert repository.all_ids() == ["a"]
        assert [r.id for r in repository.search("same")] == ["a"]

    def test_replacement_updates_index_and_attachments(self, repository):
        repository.upsert(
            make_record(
                "a",
                "old words",
                attachments=[
                    Attachment(filename="x.png", content=b"1"),
                    Attachment(filename="y.png", content=b"2"),
                ],
            )
        )
        repository.upsert(
            make_record(
                "a",
                "new words",
                modified_at=2000,
                attachments=[Attachment(filename="z.png", content=b"3")],
            )
        )

        assert repository.search("old") == []
        assert [r.id for r in repository.search("new")] == ["a"]
        stored = repository.get("a")
        assert [a.filename for a in stored.attachments] == ["z.png"]
        with repository.engine.connect() as conn:
            count = conn.execute(text("SELECT COUNT(*) FROM attachments")).scalar()
        assert count == 1

    def test_failed_upsert_leaves_previous_state(self, repository):
        repository.upsert(make_record("a", "original text"))

        with patch.object(repository._fts, "add", side_effect=SQLAlchemyError("boom")):
            with pytest.raises(StorageError) as exc_info:
                repository.upsert(make_record("a", "replacement text", modified_at=5000))

        assert exc_info.value.code == ErrorCode.STORAGE_WRITE_FAILED
        assert repository.get("a").plain_text == "original text"
        assert repository.get("a").modified_at == 1000
        assert [r.id for r in repository.search("original")] == ["a"]

    def test_all_ids_and_modification_times(self, repository):
        repository.upsert(make_record("a", modified_at=10))
        repository.upsert(make_record("b", modified_at=20))

        assert sorted(repository.all_ids()) == ["a", "b"]
        assert repository.modification_times() == {"a": 10, "b": 20}

    def test_get_all_newest_first_and_by_color(self, repository):
        repository.upsert(make_record("old", modified_at=10, appearance_tag="pink"))
        repository.upsert(make_record("new", modified_at=30, appearance_tag="yellow"))
        repository.upsert(make_record("mid", modified_at=20, appearance_tag="pink"))

        assert [r.id for r in repository.get_all()] == ["new", "mid", "old"]
        assert [r.id for r in repository.get_all(color="PINK")] == ["mid", "old"]
        assert repository.get_all(color="gray") == []


class TestSearch:
    """Tests for full-text search."""

    @pytest.fixture
    def populated(self, repository):
        repository.upsert(make_record("groceries", "buy groceries and milk today"))
        repository.upsert(make_record("work", "finish the quarterly report"))
        repository.upsert(make_record("code", "learn C++ and rust: ownership"))
        return repository

    def test_token_match(self, populated):
        assert [r.id for r in populated.search("milk")] == ["groceries"]

    def test_not_a_substring_match(self, populated):
        assert populated.search("grocer") == []

    def test_prefix_syntax(self, populated):
        assert [r.id for r in populated.search("grocer*")] == ["groceries"]

    def test_boolean_syntax(self, populated):
        assert {r.id for r in populated.search("milk OR report")} == {"groceries", "work"}

    def test_no_match(self, populated):
        assert populated.search("nothing-here") == []

    @pytest.mark.parametrize("query", ["", "   "])
    def test_blank_query(self, populated, query):
        assert populated.search(query) == []

    @pytest.mark.parametrize(
        "query", ['milk "2%', "C++", "rust: ownership", "(unbalanced", "a^b"]
    )
    def test_special_characters_do_not_raise(self, populated, query):
        assert isinstance(populated.search(query), list)

    def test_limit(self, repository):
        for i in range(5):
            repository.upsert(make_record(f"n{i}", "repeated word"))
        assert len(repository.search("repeated", limit=2)) == 2

    def test_rebuild_restores_index(self, populated):
        with populated.engine.connect() as conn:
            conn.execute(text("DELETE FROM stickies_fts"))
            conn.commit()
        assert populated.search("milk") == []

        assert populated.rebuild_fts() == 3
        assert [r.id for r in populated.search("milk")] == ["groceries"]
