"""
sticky-situation - keeps macOS Stickies in sync with a searchable SQLite store.

Each sticky lives on disk as an ``.rtfd`` bundle plus an entry in the
Stickies state plist; the store mirrors them with a full-text index so notes
can be searched and carried between machines. Reconciliation runs as a single
batch pass using last-write-wins on modification timestamps.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("sticky-situation")
except PackageNotFoundError:
    __version__ = "0.3.0"
