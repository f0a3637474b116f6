"""Cascading window placement for stickies created outside the app."""
import re
from typing import Iterable, Optional, Set, Tuple

CASCADE_ORIGIN = 100
CASCADE_STEP = 30
CASCADE_SLOTS = 10
DEFAULT_SIZE = (250, 250)

_FRAME_RE = re.compile(
    r"^\s*\{\{\s*(-?\d+(?:\.\d+)?)\s*,\s*(-?\d+(?:\.\d+)?)\s*\}\s*,"
    r"\s*\{\s*(-?\d+(?:\.\d+)?)\s*,\s*(-?\d+(?:\.\d+)?)\s*\}\}\s*$"
)


def parse_frame(frame: str) -> Optional[Tuple[float, float, float, float]]:
    """Parse ``{{x, y}, {w, h}}`` into a tuple, or None if it is not one."""
    match = _FRAME_RE.match(frame)
    if not match:
        return None
    x, y, w, h = (float(g) for g in match.groups())
    return x, y, w, h


def format_frame(x: int, y: int, width: int, height: int) -> str:
    return f"{{{{{x}, {y}}}, {{{width}, {height}}}}}"


def next_placement(existing_frames: Iterable[str]) -> str:
    """Pick a frame for a new sticky that does not sit on top of another.

    There are ten cascade slots; slot ``k`` has its origin at
    ``(100 + 30k, 100 + 30k)`` and a 250x250 size. The first slot whose
    origin no existing frame uses is returned. When all ten are taken the
    slot wraps around to ``len(existing_frames) % 10``. Frames that cannot
    be parsed still count towards the wrap-around but occupy no slot.
    """
    frames = list(existing_frames)
    used: Set[Tuple[float, float]] = set()
    for frame in frames:
        parsed = parse_frame(frame)
        if parsed is not None:
            used.add((parsed[0], parsed[1]))

    for slot in range(CASCADE_SLOTS):
        origin = CASCADE_ORIGIN + CASCADE_STEP * slot
        if (origin, origin) not in used:
            return format_frame(origin, origin, *DEFAULT_SIZE)

    slot = len(frames) % CASCADE_SLOTS
    origin = CASCADE_ORIGIN + CASCADE_STEP * slot
    return format_frame(origin, origin, *DEFAULT_SIZE)
