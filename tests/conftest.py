"""Common test fixtures for sticky-situation."""

import plistlib
from pathlib import Path

import pytest

from sticky_situation import config as config_module
from sticky_situation.config import config
from sticky_situation.models.schema import Attachment, RtfdBundle
from sticky_situation.observability import metrics
from sticky_situation.storage import rtfd_bundle
from sticky_situation.storage.sticky_repository import StickyRepository

def rtf_for(text: str) -> bytes:
    """A small RTF document whose extracted text is ``text``."""
    return ("{\\rtf1\\ansi\\f0\\fs24 " + text + "}").encode("utf-8")


@pytest.fixture
def temp_dirs(tmp_path):
    """Create temporary directories for the Stickies folder and app data."""
    stickies_dir = tmp_path / "Stickies"
    data_dir = tmp_path / "data"
    stickies_dir.mkdir()
    data_dir.mkdir()
    return stickies_dir, data_dir


@pytest.fixture
def stickies_dir(temp_dirs):
    return temp_dirs[0]


@pytest.fixture
def state_file(stickies_dir):
    return stickies_dir / ".SavedStickiesState"


@pytest.fixture
def test_config(temp_dirs, monkeypatch):
    """Point the global config at temporary paths (auto-restored)."""
    stickies_dir, data_dir = temp_dirs
    monkeypatch.setattr(config, "stickies_dir", stickies_dir)
    monkeypatch.setattr(config, "database_path", data_dir / "stickies.db")
    monkeypatch.setattr(config, "conflict_log_path", data_dir / "conflicts.log")
    monkeypatch.setattr(config, "log_dir", data_dir / "logs")
    monkeypatch.setattr(config, "origin_host", "test-host")
    monkeypatch.setattr(config, "log_conflicts", True)
    monkeypatch.setattr(config, "fail_fast", True)
    monkeypatch.setattr(config, "reload_after_sync", False)
    monkeypatch.setattr(config_module, "CONFIG_DIR", data_dir / "config")
    monkeypatch.setattr(config_module, "CONFIG_FILE", data_dir / "config" / ".env")
    yield config


@pytest.fixture
def repository(temp_dirs):
    """Create a store in a temporary directory."""
    repo = StickyRepository.create(temp_dirs[1] / "stickies.db")
    yield repo
    repo.close()


@pytest.fixture(autouse=True)
def _reset_metrics():
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def make_bundle(stickies_dir):
    """Write ``<id>.rtfd`` into the Stickies folder with a fixed mtime."""

    def _make(sticky_id, text="hello", mtime=1_700_000_000, attachments=None, rtf=None):
        path = stickies_dir / f"{sticky_id}.rtfd"
        rtfd_bundle.write(
            RtfdBundle(
                rtf_data=rtf if rtf is not None else rtf_for(text),
                attachments=[
                    Attachment(filename=name, content=content)
                    for name, content in (attachments or {}).items()
                ],
            ),
            path,
        )
        rtfd_bundle.set_modified_time(path, mtime)
        return path

    return _make


@pytest.fixture
def write_state(state_file):
    """Write the state plist from a list (array shape) or dict (mapping shape)."""

    def _write(value, fmt=plistlib.FMT_BINARY, path=None):
        target = Path(path) if path else state_file
        target.write_bytes(plistlib.dumps(value, fmt=fmt))
        return target

    return _write


@pytest.fixture
def read_state(state_file):
    """Load the raw state plist back."""

    def _read(path=None):
        return plistlib.loads((Path(path) if path else state_file).read_bytes())

    return _read
