"""Tests for sync action classification."""
import pytest

from sticky_situation.services.reconciler import ActionKind, SyncAction, classify


def _kinds(actions):
    return {a.sticky_id: a.kind for a in actions}


class TestClassify:
    """Tests for the last-write-wins classification."""

    def test_mixed_scenario_yields_one_action_per_id(self):
        """Each of the five outcomes shows up exactly once."""
        actions = classify(
            ["a", "b", "c", "d"],
            {"b": 1000, "c": 3000, "d": 2000, "e": 4000},
            {"a": 1500, "b": 2000, "c": 2000, "d": 2000},
        )
        assert actions == [
            SyncAction(ActionKind.NEW_ON_FILESYSTEM, "a"),
            SyncAction(ActionKind.UPDATE_DATABASE, "b"),
            SyncAction(ActionKind.UPDATE_FILESYSTEM, "c"),
            SyncAction(ActionKind.NO_CHANGE, "d"),
            SyncAction(ActionKind.NEW_IN_DATABASE, "e"),
        ]

    def test_empty_inputs(self):
        assert classify([], {}, {}) == []

    def test_partition_is_total_and_exclusive(self):
        """Every ID from either side appears exactly once."""
        fs_ids = ["x1", "x2", "x3", "shared1", "shared2"]
        db_times = {"shared1": 10, "shared2": 20, "y1": 5, "y2": 6}
        fs_times = {"x1": 1, "x2": 2, "x3": 3, "shared1": 10, "shared2": 30}

        actions = classify(fs_ids, db_times, fs_times)
        ids = [a.sticky_id for a in actions]

        assert len(ids) == len(set(ids))
        assert set(ids) == set(fs_ids) | set(db_times)

    def test_equal_timestamps_mean_no_change(self):
        actions = classify(["n"], {"n": 42}, {"n": 42})
        assert actions == [SyncAction(ActionKind.NO_CHANGE, "n")]

    def test_missing_fs_time_counts_as_zero(self):
        """A sticky on disk without a recorded time behaves as time 0."""
        assert _kinds(classify(["n"], {"n": 0}, {})) == {"n": ActionKind.NO_CHANGE}
        assert _kinds(classify(["n"], {"n": 5}, {})) == {
            "n": ActionKind.UPDATE_FILESYSTEM
        }

    def test_duplicate_fs_ids_are_classified_once(self):
        actions = classify(["a", "a"], {}, {"a": 1})
        assert actions == [SyncAction(ActionKind.NEW_ON_FILESYSTEM, "a")]

    def test_database_only_ids_are_sorted(self):
        actions = classify([], {"c": 1, "a": 1, "b": 1}, {})
        assert [a.sticky_id for a in actions] == ["a", "b", "c"]
        assert all(a.kind is ActionKind.NEW_IN_DATABASE for a in actions)

    def test_inputs_are_not_modified(self):
        fs_ids = ["a", "b"]
        db_times = {"b": 1, "c": 2}
        fs_times = {"a": 1, "b": 3}

        classify(fs_ids, db_times, fs_times)

        assert fs_ids == ["a", "b"]
        assert db_times == {"b": 1, "c": 2}
        assert fs_times == {"a": 1, "b": 3}


class TestSyncAction:
    """Tests for the direction helpers on SyncAction."""

    @pytest.mark.parametrize(
        "kind,writes_db,writes_fs",
        [
            (ActionKind.NEW_ON_FILESYSTEM, True, False),
            (ActionKind.UPDATE_DATABASE, True, False),
            (ActionKind.NEW_IN_DATABASE, False, True),
            (ActionKind.UPDATE_FILESYSTEM, False, True),
            (ActionKind.NO_CHANGE, False, False),
        ],
    )
    def test_direction(self, kind, writes_db, writes_fs):
        action = SyncAction(kind, "id")
        assert action.writes_database is writes_db
        assert action.writes_filesystem is writes_fs

    def test_kind_values_are_strings(self):
        assert ActionKind.UPDATE_DATABASE == "update_database"
