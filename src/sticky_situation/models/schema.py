"""Data models for sticky-situation."""

import datetime
from dataclasses import dataclass, field
from datetime import timezone
from typing import Any, List, Mapping

from pydantic import BaseModel, Field, field_validator

# Frame used when the state plist carries none (Cocoa NSRect string form)
DEFAULT_FRAME = "{{100, 100}, {250, 250}}"

# Stickies color indices, in the order the app stores them
COLOR_NAMES = ("yellow", "blue", "green", "pink", "purple", "gray")
DEFAULT_COLOR = COLOR_NAMES[0]


def color_name(color_index: int) -> str:
    """Map a Stickies color index to its name; unknown indices are yellow."""
    if 0 <= color_index < len(COLOR_NAMES):
        return COLOR_NAMES[color_index]
    return DEFAULT_COLOR


def color_index_for(name: str) -> int:
    """Inverse of color_name; unknown names map to 0."""
    try:
        return COLOR_NAMES.index(name.lower())
    except ValueError:
        return 0


def epoch_now() -> int:
    """Current time as whole seconds since the epoch."""
    return int(datetime.datetime.now(timezone.utc).timestamp())


class AppearanceMetadata(BaseModel):
    """Window appearance of one sticky, as recorded in the state plist."""

    color_index: int = Field(default=0, description="Stickies color index")
    frame: str = Field(default=DEFAULT_FRAME, description="NSRect string of the window")
    is_floating: bool = Field(default=False, description="Window floats on top")

    model_config = {"frozen": True}

    @classmethod
    def from_plist_dict(cls, record: Mapping[str, Any]) -> "AppearanceMetadata":
        """Build metadata from one plist record, defaulting whatever is unusable.

        Only plist integers are accepted as colors; reals (NaN and infinities
        included) and booleans, although ``bool`` is an ``int`` subclass,
        fall back to 0.
        """
        color = record.get("Color")
        if isinstance(color, int) and not isinstance(color, bool):
            color_index = color
        else:
            color_index = 0

        frame = record.get("Frame")
        if not isinstance(frame, str):
            frame = DEFAULT_FRAME

        floating = record.get("Floating")
        is_floating = floating if isinstance(floating, bool) else False

        return cls(color_index=color_index, frame=frame, is_floating=is_floating)

    def to_plist_dict(self) -> dict:
        """Fields as they are spelled in the state plist."""
        return {
            "Color": self.color_index,
            "Frame": self.frame,
            "Floating": self.is_floating,
        }

    @property
    def color_name(self) -> str:
        return color_name(self.color_index)


class Attachment(BaseModel):
    """A file stored next to TXT.rtf inside a bundle (images and the like)."""

    filename: str = Field(..., description="File name inside the bundle")
    content: bytes = Field(default=b"", description="Raw file content")

    model_config = {"frozen": True}


@dataclass
class RtfdBundle:
    """In-memory form of an ``.rtfd`` directory.

    Attributes:
        rtf_data: Bytes of the primary ``TXT.rtf`` document.
        attachments: Every other file found in the directory.
    """

    rtf_data: bytes
    attachments: List[Attachment] = field(default_factory=list)


class StickyRecord(BaseModel):
    """A sticky as persisted in the store."""

    id: str = Field(..., description="Stickies UUID")
    plain_text: str = Field(default="", description="Text extracted for search")
    rich_text: bytes = Field(default=b"", description="Raw RTF document")
    metadata: bytes = Field(default=b"", description="Appearance as a binary plist")
    appearance_tag: str = Field(default=DEFAULT_COLOR, description="Color name")
    created_at: int = Field(default_factory=epoch_now, description="Epoch seconds")
    modified_at: int = Field(default_factory=epoch_now, description="Epoch seconds")
    origin_host: str = Field(default="unknown", description="Machine that wrote it")
    attachments: List[Attachment] = Field(default_factory=list)

    model_config = {"validate_assignment": True, "extra": "forbid"}

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Reject empty identifiers."""
        if not v or not v.strip():
            raise ValueError("Sticky ID cannot be empty")
        return v
