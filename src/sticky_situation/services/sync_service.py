"""Sync service: one reconciliation pass between Stickies.app and the store.

A pass scans the Stickies folder and the store, classifies every sticky
with last-write-wins, and applies the resulting actions in order:

* disk is authoritative (new on disk, or disk newer): the bundle is read,
  its text extracted and the record upserted;
* the store is authoritative (only in the store, or store newer): the
  bundle is rewritten from the record, its TXT.rtf stamped with the
  record's ``modified_at`` so the next pass sees no change, and the state
  plist entry for that sticky updated in place.

Failures stop the pass by default. Because every action is idempotent and
the classification is recomputed from fresh timestamps, rerunning a pass
after a failure picks up where the previous one stopped.
"""

import logging
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Set, Union

from sticky_situation.exceptions import ErrorCode, NotFoundError, StickyError
from sticky_situation.models.schema import (
    AppearanceMetadata,
    RtfdBundle,
    StickyRecord,
    color_index_for,
    epoch_now,
)
from sticky_situation.observability import timed_operation
from sticky_situation.services.placement import next_placement
from sticky_situation.services.reconciler import ActionKind, SyncAction, classify
from sticky_situation.services.stickies_app import StickiesApp
from sticky_situation.storage import rtfd_bundle
from sticky_situation.storage.plist_metadata import (
    decode_metadata_blob,
    encode_metadata,
    read_frames,
    read_stickies_state,
    write_metadata_entry,
)
from sticky_situation.storage.rtf_text import extract_text_from_bytes
from sticky_situation.storage.sticky_repository import StickyRepository

logger = logging.getLogger(__name__)

BUNDLE_SUFFIX = ".rtfd"
DEFAULT_STATE_FILE = ".SavedStickiesState"


@dataclass
class SyncFailure:
    """An action that could not be applied (continue-on-error mode only)."""

    action: SyncAction
    error: str


@dataclass
class SyncReport:
    """Outcome of one sync pass."""

    dry_run: bool
    actions: List[SyncAction] = field(default_factory=list)
    applied: List[SyncAction] = field(default_factory=list)
    failures: List[SyncFailure] = field(default_factory=list)
    app_restarted: bool = False

    def count(self, kind: ActionKind) -> int:
        return sum(1 for a in self.actions if a.kind is kind)

    @property
    def counts(self) -> Dict[str, int]:
        return {kind.value: self.count(kind) for kind in ActionKind}

    @property
    def filesystem_written(self) -> bool:
        return any(a.writes_filesystem for a in self.applied)


@dataclass
class _Snapshot:
    """Filesystem state read at the start of a pass."""

    metadata: Dict[str, AppearanceMetadata]
    bundles: Dict[str, Path]
    fs_ids: List[str]
    fs_times: Dict[str, int]


class SyncService:
    """Runs reconciliation passes for one Stickies folder and one store."""

    def __init__(
        self,
        stickies_dir: Union[str, Path],
        repository: StickyRepository,
        state_file: Optional[Union[str, Path]] = None,
        origin_host: str = "unknown",
        app: Optional[StickiesApp] = None,
        conflict_logger: Optional[logging.Logger] = None,
    ) -> None:
        self.stickies_dir = Path(stickies_dir)
        self.repository = repository
        self.state_file = (
            Path(state_file) if state_file else self.stickies_dir / DEFAULT_STATE_FILE
        )
        self.origin_host = origin_host
        self._app = app
        self._conflict_logger = conflict_logger

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def run(
        self,
        dry_run: bool = False,
        fail_fast: bool = True,
        reload_app: bool = False,
    ) -> SyncReport:
        """Run one pass.

        Args:
            dry_run: Classify only; nothing is written.
            fail_fast: Stop at the first failing action and re-raise it.
                When False, failures are logged, recorded in the report and
                the remaining actions still run.
            reload_app: Restart Stickies.app afterwards if any bundle was
                written and an app controller is configured.

        Raises:
            NotFoundError: If the Stickies folder does not exist.
            FormatError: If the state plist exists but is malformed.
            StorageError: If the store cannot be read (or written, in
                fail-fast mode).
        """
        with timed_operation("sync_pass", dry_run=dry_run) as op:
            db_times = self.repository.modification_times()
            snapshot = self._scan_filesystem(db_times)
            actions = classify(snapshot.fs_ids, db_times, snapshot.fs_times)

            report = SyncReport(dry_run=dry_run, actions=actions)
            logger.info(
                f"Sync pass over {len(actions)} stickies: "
                + ", ".join(f"{k}={v}" for k, v in report.counts.items() if v)
            )
            if dry_run:
                op["result_count"] = len(actions)
                return report

            for action in actions:
                if action.kind is ActionKind.NO_CHANGE:
                    continue
                try:
                    self._apply(action, snapshot, db_times)
                except (StickyError, OSError) as e:
                    if fail_fast:
                        logger.error(
                            f"Sync stopped at {action.kind.value} {action.sticky_id}: {e}"
                        )
                        raise
                    logger.error(
                        f"Skipping {action.kind.value} {action.sticky_id}: {e}"
                    )
                    report.failures.append(SyncFailure(action=action, error=str(e)))
                    continue
                report.applied.append(action)

            if reload_app and self._app is not None and report.filesystem_written:
                self._app.restart()
                report.app_restarted = True

            op["result_count"] = len(report.applied)
            logger.info(
                f"Sync pass complete: {len(report.applied)} applied, "
                f"{len(report.failures)} failed"
            )
            return report

    def create_sticky(self, text: str, color_index: int = 0) -> StickyRecord:
        """Create a new sticky on disk and in the store.

        The bundle gets a minimal RTF document, the state plist a new entry
        placed by cascading, and the store a record with identical
        timestamps on both sides so the next pass reports no change.
        """
        self._require_stickies_dir()

        # Lowercase, as the array-shaped state file reports IDs that way
        sticky_id = str(uuid.uuid4())
        bundle = rtfd_bundle.create_minimal(text)
        path = self.stickies_dir / f"{sticky_id}{BUNDLE_SUFFIX}"
        now = epoch_now()

        rtfd_bundle.write(bundle, path)
        rtfd_bundle.set_modified_time(path, now)

        appearance = AppearanceMetadata(
            color_index=color_index,
            frame=next_placement(read_frames(self.state_file).values()),
        )
        write_metadata_entry(self.state_file, sticky_id, appearance)

        record = StickyRecord(
            id=sticky_id,
            plain_text=text,
            rich_text=bundle.rtf_data,
            metadata=encode_metadata(appearance),
            appearance_tag=appearance.color_name,
            created_at=now,
            modified_at=now,
            origin_host=self.origin_host,
        )
        self.repository.upsert(record)
        logger.info(f"Created sticky {sticky_id}")

        if self._app is not None:
            self._app.restart()
        return record

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------

    def _require_stickies_dir(self) -> None:
        if not self.stickies_dir.is_dir():
            raise NotFoundError(
                "Stickies directory not found. Have you launched Stickies.app?",
                path=str(self.stickies_dir),
                code=ErrorCode.STICKIES_DIR_NOT_FOUND,
            )

    def _scan_filesystem(self, stored_ids: Iterable[str] = ()) -> _Snapshot:
        """Read the state plist and the modification time of every bundle.

        A sticky counts as present on disk when it has a state entry and its
        bundle directory exists. Bundle names are matched without regard to
        case, since the state file does not preserve it. State entries are
        keyed by the stored ID they match case-insensitively, so both sides
        of the pass name a sticky the same way.
        """
        self._require_stickies_dir()

        canonical = {sticky_id.lower(): sticky_id for sticky_id in stored_ids}
        state = read_stickies_state(self.state_file)
        bundles = {
            p.name[: -len(BUNDLE_SUFFIX)].lower(): p
            for p in self.stickies_dir.iterdir()
            if p.is_dir() and p.name.lower().endswith(BUNDLE_SUFFIX)
        }

        metadata: Dict[str, AppearanceMetadata] = {}
        seen: Set[str] = set()
        fs_ids: List[str] = []
        fs_times: Dict[str, int] = {}
        for state_id, appearance in state.items():
            key = state_id.lower()
            if key in seen:
                logger.warning(f"Duplicate state entry {state_id}, keeping the first one")
                continue
            seen.add(key)
            sticky_id = canonical.get(key, state_id)
            metadata[sticky_id] = appearance

            path = bundles.get(key)
            if path is None:
                logger.debug(f"State entry {state_id} has no bundle, ignoring it")
                continue
            fs_ids.append(sticky_id)
            fs_times[sticky_id] = rtfd_bundle.modified_time(path)

        logger.debug(f"Found {len(fs_ids)} stickies in {self.stickies_dir}")
        return _Snapshot(metadata=metadata, bundles=bundles, fs_ids=fs_ids, fs_times=fs_times)

    def _bundle_path(self, sticky_id: str, snapshot: _Snapshot) -> Path:
        return snapshot.bundles.get(
            sticky_id.lower(), self.stickies_dir / f"{sticky_id}{BUNDLE_SUFFIX}"
        )

    # ------------------------------------------------------------------
    # Applying actions
    # ------------------------------------------------------------------

    def _apply(
        self, action: SyncAction, snapshot: _Snapshot, db_times: Mapping[str, int]
    ) -> None:
        with timed_operation(action.kind.value, sticky_id=action.sticky_id):
            if action.writes_database:
                self._import_from_filesystem(action, snapshot)
            else:
                self._export_to_filesystem(action, snapshot)

        if action.kind is ActionKind.UPDATE_DATABASE:
            self._log_conflict(
                action.sticky_id,
                winner="filesystem",
                winner_time=snapshot.fs_times.get(action.sticky_id, 0),
                loser_time=db_times.get(action.sticky_id, 0),
            )
        elif action.kind is ActionKind.UPDATE_FILESYSTEM:
            self._log_conflict(
                action.sticky_id,
                winner="database",
                winner_time=db_times.get(action.sticky_id, 0),
                loser_time=snapshot.fs_times.get(action.sticky_id, 0),
            )

    def _import_from_filesystem(self, action: SyncAction, snapshot: _Snapshot) -> None:
        sticky_id = action.sticky_id
        bundle = rtfd_bundle.read(self._bundle_path(sticky_id, snapshot))
        appearance = snapshot.metadata.get(sticky_id, AppearanceMetadata())
        fs_time = snapshot.fs_times.get(sticky_id, 0)

        created_at = fs_time
        if action.kind is ActionKind.UPDATE_DATABASE:
            existing = self.repository.get(sticky_id)
            if existing is not None:
                created_at = existing.created_at

        self.repository.upsert(
            StickyRecord(
                id=sticky_id,
                plain_text=extract_text_from_bytes(bundle.rtf_data),
                rich_text=bundle.rtf_data,
                metadata=encode_metadata(appearance),
                appearance_tag=appearance.color_name,
                created_at=created_at,
                modified_at=fs_time,
                origin_host=self.origin_host,
                attachments=bundle.attachments,
            )
        )
        logger.debug(f"{action.kind.value}: stored {sticky_id}")

    def _export_to_filesystem(self, action: SyncAction, snapshot: _Snapshot) -> None:
        sticky_id = action.sticky_id
        record = self.repository.get(sticky_id)
        if record is None:
            raise NotFoundError(
                f"Sticky {sticky_id} disappeared from the store during sync",
                sticky_id=sticky_id,
                code=ErrorCode.STICKY_NOT_FOUND,
            )

        path = self._bundle_path(sticky_id, snapshot)
        rtfd_bundle.write(
            RtfdBundle(rtf_data=record.rich_text, attachments=list(record.attachments)),
            path,
        )
        rtfd_bundle.set_modified_time(path, record.modified_at)
        snapshot.bundles[sticky_id.lower()] = path

        appearance = self._appearance_for_export(record, snapshot.metadata)
        write_metadata_entry(self.state_file, sticky_id, appearance)
        snapshot.metadata[sticky_id] = appearance
        logger.debug(f"{action.kind.value}: wrote {path.name}")

    @staticmethod
    def _appearance_for_export(
        record: StickyRecord, metadata: Mapping[str, AppearanceMetadata]
    ) -> AppearanceMetadata:
        """Appearance to write for a record leaving the store.

        The stored blob wins. Records without one keep the window the state
        file already has for them (or get a cascaded position when they have
        none) and take their color from the appearance tag.
        """
        stored = decode_metadata_blob(record.metadata)
        if stored is not None:
            return stored

        wanted = record.id.lower()
        current = next((m for k, m in metadata.items() if k.lower() == wanted), None)
        if current is not None:
            frame, floating = current.frame, current.is_floating
        else:
            frame = next_placement(m.frame for m in metadata.values())
            floating = False

        return AppearanceMetadata(
            color_index=color_index_for(record.appearance_tag),
            frame=frame,
            is_floating=floating,
        )

    def _log_conflict(
        self, sticky_id: str, winner: str, winner_time: int, loser_time: int
    ) -> None:
        if self._conflict_logger is None:
            return
        loser = "database" if winner == "filesystem" else "filesystem"
        self._conflict_logger.info(
            f"{sticky_id}: {winner} version ({winner_time}) overwrote "
            f"{loser} version ({loser_time})"
        )

