"""Classification of sync actions between the Stickies folder and the store.

The policy is last-write-wins on whole-second modification times. Equal
times mean there is nothing to do, even though two edits inside the same
second cannot be told apart.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Mapping


class ActionKind(str, Enum):
    """What a sync pass has to do for one sticky."""

    NEW_ON_FILESYSTEM = "new_on_filesystem"  # Only on disk: insert into the store
    NEW_IN_DATABASE = "new_in_database"  # Only in the store: write to disk
    UPDATE_FILESYSTEM = "update_filesystem"  # Store is newer: rewrite the bundle
    UPDATE_DATABASE = "update_database"  # Disk is newer: update the store
    NO_CHANGE = "no_change"  # Same timestamp on both sides


@dataclass(frozen=True)
class SyncAction:
    """One classified sticky."""

    kind: ActionKind
    sticky_id: str

    @property
    def writes_database(self) -> bool:
        return self.kind in (ActionKind.NEW_ON_FILESYSTEM, ActionKind.UPDATE_DATABASE)

    @property
    def writes_filesystem(self) -> bool:
        return self.kind in (ActionKind.NEW_IN_DATABASE, ActionKind.UPDATE_FILESYSTEM)


def classify(
    fs_ids: Iterable[str],
    db_times: Mapping[str, int],
    fs_times: Mapping[str, int],
) -> List[SyncAction]:
    """Decide what to do for every sticky known to either side.

    Every ID in ``fs_ids`` or ``db_times`` gets exactly one action. IDs seen
    on disk come first, in input order; IDs only in the store follow, sorted.
    A sticky on disk without an entry in ``fs_times`` counts as time 0.

    Args:
        fs_ids: IDs of the stickies present on disk.
        db_times: Stored ``modified_at`` per ID.
        fs_times: On-disk modification time per ID.

    Returns:
        The list of actions. Pure: no I/O, inputs are not modified.
    """
    actions: List[SyncAction] = []
    seen = set()

    for sticky_id in fs_ids:
        if sticky_id in seen:
            continue
        seen.add(sticky_id)

        if sticky_id not in db_times:
            actions.append(SyncAction(ActionKind.NEW_ON_FILESYSTEM, sticky_id))
            continue

        fs_time = fs_times.get(sticky_id, 0)
        db_time = db_times[sticky_id]
        if fs_time > db_time:
            kind = ActionKind.UPDATE_DATABASE
        elif db_time > fs_time:
            kind = ActionKind.UPDATE_FILESYSTEM
        else:
            kind = ActionKind.NO_CHANGE
        actions.append(SyncAction(kind, sticky_id))

    for sticky_id in sorted(set(db_times) - seen):
        actions.append(SyncAction(ActionKind.NEW_IN_DATABASE, sticky_id))

    return actions
