"""Reading and writing the Stickies window-state plist.

Stickies has stored window state in two shapes over time:

* ``.SavedStickiesState``: a top-level array of records, each carrying its
  own ``UUID`` field. The app is inconsistent about UUID case, so keys are
  lowercased.
* ``StickiesState.plist``: a top-level dictionary keyed by UUID. Keys are
  used as they appear.

Both are resolved here into one ``{id: AppearanceMetadata}`` mapping so that
callers never look at the shape. Writing preserves whichever shape, plist
format and unrelated entries the file already has.
"""
import logging
import os
import plistlib
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Union
from xml.parsers.expat import ExpatError

from sticky_situation.exceptions import FormatError
from sticky_situation.models.schema import AppearanceMetadata

logger = logging.getLogger(__name__)

UUID_KEY = "UUID"

_BINARY_MAGIC = b"bplist00"

# Errors plistlib raises for bytes that are not a plist at all
_PARSE_ERRORS = (
    plistlib.InvalidFileException,
    ExpatError,
    ValueError,
    TypeError,
    OverflowError,
)


def _load_plist(data: bytes, path: Optional[str] = None) -> Any:
    try:
        return plistlib.loads(data)
    except _PARSE_ERRORS as e:
        raise FormatError(
            "Stickies state is not a readable property list",
            path=path,
            original_error=e,
        ) from e


def decode(
    data: Optional[bytes], path: Optional[str] = None
) -> Dict[str, AppearanceMetadata]:
    """Decode state plist bytes into a mapping of sticky ID to metadata.

    Args:
        data: Raw plist bytes (XML or binary), or None when there is no file.
        path: Optional source path, used only for error details.

    Returns:
        Mapping from sticky ID to its appearance. Empty for None input.

    Raises:
        FormatError: If the bytes are not a plist, or the top level is
            neither an array nor a dictionary.
    """
    if data is None:
        return {}

    value = _load_plist(data, path)

    result: Dict[str, AppearanceMetadata] = {}

    if isinstance(value, list):
        for entry in value:
            if not isinstance(entry, dict):
                continue
            sticky_id = entry.get(UUID_KEY)
            if not isinstance(sticky_id, str):
                continue
            result[sticky_id.lower()] = AppearanceMetadata.from_plist_dict(entry)
        return result

    if isinstance(value, dict):
        for sticky_id, record in value.items():
            if isinstance(record, dict):
                result[sticky_id] = AppearanceMetadata.from_plist_dict(record)
        return result

    raise FormatError(
        f"Unsupported Stickies state layout: top level is {type(value).__name__}",
        path=path,
    )


def read_stickies_state(path: Union[str, Path]) -> Dict[str, AppearanceMetadata]:
    """Read the state file at ``path``; a missing file yields an empty mapping."""
    state_path = Path(path)
    if not state_path.exists():
        logger.debug(f"No Stickies state file at {state_path}")
        return {}
    metadata = decode(state_path.read_bytes(), path=str(state_path))
    logger.debug(f"Read metadata for {len(metadata)} stickies from {state_path.name}")
    return metadata


def encode_metadata(metadata: AppearanceMetadata) -> bytes:
    """Serialize one sticky's appearance as a binary plist for the store."""
    return plistlib.dumps(metadata.to_plist_dict(), fmt=plistlib.FMT_BINARY)


def decode_metadata_blob(blob: Optional[bytes]) -> Optional[AppearanceMetadata]:
    """Inverse of encode_metadata; empty or unreadable blobs give None."""
    if not blob:
        return None
    try:
        value = _load_plist(blob)
    except FormatError:
        logger.warning("Stored appearance metadata is unreadable, ignoring it")
        return None
    if not isinstance(value, dict):
        return None
    return AppearanceMetadata.from_plist_dict(value)


def read_frames(path: Union[str, Path]) -> Dict[str, str]:
    """Frames of every sticky in the state file, keyed by ID."""
    return {k: v.frame for k, v in read_stickies_state(path).items()}


def write_metadata_entry(
    path: Union[str, Path],
    sticky_id: str,
    metadata: AppearanceMetadata,
) -> None:
    """Insert or update one sticky's entry in the state file.

    Only the ``Color``, ``Frame`` and ``Floating`` keys of the matching entry
    are touched; every other entry, and every other key of the matching
    entry, is written back unchanged. A missing file is created as a binary
    array-shaped plist.

    Raises:
        FormatError: If the existing file cannot be parsed or has an
            unsupported shape. The file is left untouched.
    """
    state_path = Path(path)
    fields = metadata.to_plist_dict()

    if state_path.exists():
        raw = state_path.read_bytes()
        fmt = plistlib.FMT_BINARY if raw.startswith(_BINARY_MAGIC) else plistlib.FMT_XML
        value = _load_plist(raw, str(state_path))
    else:
        fmt = plistlib.FMT_BINARY
        value = []

    wanted = sticky_id.lower()

    if isinstance(value, list):
        for entry in value:
            if (
                isinstance(entry, dict)
                and isinstance(entry.get(UUID_KEY), str)
                and entry[UUID_KEY].lower() == wanted
            ):
                entry.update(fields)
                break
        else:
            value.append({UUID_KEY: sticky_id, **fields})
    elif isinstance(value, dict):
        key = next((k for k in value if k.lower() == wanted), sticky_id)
        entry = value.get(key)
        if isinstance(entry, dict):
            entry.update(fields)
        else:
            value[key] = dict(fields)
    else:
        raise FormatError(
            f"Unsupported Stickies state layout: top level is {type(value).__name__}",
            path=str(state_path),
        )

    _atomic_write(state_path, plistlib.dumps(value, fmt=fmt))
    logger.debug(f"Wrote state entry for {sticky_id} to {state_path.name}")


def _atomic_write(path: Path, data: bytes) -> None:
    """Write via a temporary sibling and rename it over the target."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise
