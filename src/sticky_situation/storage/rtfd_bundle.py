"""Reader and writer for ``.rtfd`` bundles.

A bundle is a directory holding exactly one primary document, ``TXT.rtf``,
next to any number of attachment files (images pasted into the sticky and
whatever else the app decides to keep there). Every file other than the
primary document is an attachment, hidden files included, so nothing the
app stored is dropped on the way to the database.
"""
import logging
import os
from pathlib import Path
from typing import Union

from sticky_situation.exceptions import ErrorCode, NotFoundError, ValidationError
from sticky_situation.models.schema import Attachment, RtfdBundle

logger = logging.getLogger(__name__)

PRIMARY_DOCUMENT = "TXT.rtf"

_MINIMAL_RTF_HEADER = (
    "{\\rtf1\\ansi\\ansicpg1252\\cocoartf2820\n"
    "{\\fonttbl\\f0\\fswiss\\fcharset0 Helvetica;}\n"
    "{\\colortbl;\\red255\\green255\\blue255;}\n"
    "\\pard\\tx560\\tx1120\\tx1680\\tx2240\\tx2800\\tx3360\\tx3920\\tx4480"
    "\\tx5040\\tx5600\\tx6160\\tx6720\\pardirnatural\\partightenfactor0\n"
    "\\f0\\fs24 \\cf0 "
)


def read(rtfd_path: Union[str, Path]) -> RtfdBundle:
    """Read a bundle from disk.

    Raises:
        NotFoundError: If ``rtfd_path`` is not a directory.
        OSError: If TXT.rtf is missing or unreadable, or an attachment
            cannot be read.
    """
    path = Path(rtfd_path)
    if not path.is_dir():
        raise NotFoundError(
            "RTFD bundle not found",
            path=str(path),
            code=ErrorCode.BUNDLE_NOT_FOUND,
        )

    rtf_data = (path / PRIMARY_DOCUMENT).read_bytes()

    attachments = []
    for entry in sorted(path.iterdir(), key=lambda p: p.name):
        if entry.name == PRIMARY_DOCUMENT or not entry.is_file():
            continue
        attachments.append(Attachment(filename=entry.name, content=entry.read_bytes()))

    logger.debug(f"Read bundle {path.name} with {len(attachments)} attachment(s)")
    return RtfdBundle(rtf_data=rtf_data, attachments=attachments)


def write(bundle: RtfdBundle, rtfd_path: Union[str, Path]) -> None:
    """Write a bundle, creating the directory (and parents) if needed.

    Same-named files are overwritten. Files already in the directory that
    the bundle does not mention are left as they are.

    Raises:
        ValidationError: If an attachment name would escape the bundle or
            clobber the primary document. Nothing is written in that case.
        OSError: On any filesystem failure.
    """
    for attachment in bundle.attachments:
        _validate_attachment_name(attachment.filename)

    path = Path(rtfd_path)
    path.mkdir(parents=True, exist_ok=True)

    (path / PRIMARY_DOCUMENT).write_bytes(bundle.rtf_data)
    for attachment in bundle.attachments:
        (path / attachment.filename).write_bytes(attachment.content)

    logger.debug(f"Wrote bundle {path.name} with {len(bundle.attachments)} attachment(s)")


def modified_time(rtfd_path: Union[str, Path]) -> int:
    """Modification time of TXT.rtf in whole seconds since the epoch.

    Only the primary document counts; the directory and attachments are
    ignored.

    Raises:
        OSError: If TXT.rtf does not exist.
    """
    return int((Path(rtfd_path) / PRIMARY_DOCUMENT).stat().st_mtime)


def set_modified_time(rtfd_path: Union[str, Path], timestamp: int) -> None:
    """Stamp TXT.rtf with ``timestamp`` (access and modification time)."""
    os.utime(Path(rtfd_path) / PRIMARY_DOCUMENT, (timestamp, timestamp))


def create_minimal(text: str) -> RtfdBundle:
    """Build a bundle whose document renders ``text`` in the default style."""
    rtf = _MINIMAL_RTF_HEADER + escape_rtf(text) + "}"
    return RtfdBundle(rtf_data=rtf.encode("ascii"))


def escape_rtf(text: str) -> str:
    """Escape plain text for an RTF body.

    Backslashes and braces are escaped, newlines become RTF line breaks and
    anything outside ASCII is written as a ``\\uN?`` escape (UTF-16 code
    units, signed, as RTF requires).
    """
    out = []
    for ch in text:
        if ch in "\\{}":
            out.append("\\" + ch)
        elif ch == "\n":
            out.append("\\\n")
        elif ord(ch) < 128:
            out.append(ch)
        else:
            encoded = ch.encode("utf-16-be")
            for i in range(0, len(encoded), 2):
                unit = int.from_bytes(encoded[i:i + 2], "big")
                if unit > 32767:
                    unit -= 65536
                out.append(f"\\u{unit}?")
    return "".join(out)


def _validate_attachment_name(filename: str) -> None:
    if (
        not filename
        or filename in (".", "..", PRIMARY_DOCUMENT)
        or "/" in filename
        or "\\" in filename
        or "\x00" in filename
    ):
        raise ValidationError(
            "Attachment name is not a plain file name inside the bundle",
            field="filename",
            value=filename,
            code=ErrorCode.PATH_TRAVERSAL_DETECTED,
        )
