"""
Tests for the on-disk command cache.

Run with: pytest tests/test_cache.py -v
"""

import json
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from cache import CACHE_MAX_AGE_MS, CommandCacheStore, sf_version
from conftest import COMMAND_LISTING, SF_VERSION_OUTPUT, FakeRunner, ok
from discovery import parse_command_listing
from models import CacheStatus

NOW = 1_700_000_000_000


class Clock:
    def __init__(self, now: int = NOW):
        self.now = now

    def __call__(self) -> int:
        return self.now


@pytest.fixture
def commands():
    return parse_command_listing(COMMAND_LISTING)


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def version():
    return {"current": "2.56.7"}


@pytest.fixture
def store(tmp_path, clock, version):
    return CommandCacheStore(
        tmp_path / "sf-mcp" / "command-cache.json",
        version_probe=lambda: version["current"],
        clock=clock,
    )


class TestRoundTrip:
    def test_save_then_load_returns_equal_commands(self, store, commands):
        store.save(commands)
        assert store.load() == commands

    def test_save_creates_directory_and_stamps(self, store, commands):
        store.save(commands)
        data = json.loads(store.path.read_text(encoding="utf-8"))
        assert data["version"] == "2.56.7"
        assert data["timestamp"] == NOW
        assert data["commands"][0]["fullCommand"] == "apex log get"

    def test_save_leaves_no_temporary_files(self, store, commands):
        store.save(commands)
        store.save(commands)
        assert [p.name for p in store.path.parent.iterdir()] == ["command-cache.json"]

    def test_load_within_max_age(self, store, clock, commands):
        store.save(commands)
        clock.now += CACHE_MAX_AGE_MS
        assert store.load() == commands


class TestInvalidation:
    def test_missing_file(self, store):
        assert store.check() == (CacheStatus.MISSING, None)
        assert store.load() is None

    def test_version_mismatch(self, store, version, commands):
        store.save(commands)
        version["current"] = "2.60.0"
        assert store.check()[0] is CacheStatus.VERSION_MISMATCH
        assert store.load() is None

    def test_expired(self, store, clock, commands):
        store.save(commands)
        clock.now += CACHE_MAX_AGE_MS + 1
        assert store.check()[0] is CacheStatus.EXPIRED
        assert store.load() is None

    @pytest.mark.parametrize("missing", ["version", "timestamp", "commands"])
    def test_missing_fields(self, store, commands, missing):
        store.save(commands)
        data = json.loads(store.path.read_text(encoding="utf-8"))
        del data[missing]
        store.path.write_text(json.dumps(data), encoding="utf-8")
        assert store.check()[0] is CacheStatus.INVALID
        assert store.load() is None

    def test_wrong_shape(self, store):
        store.path.parent.mkdir(parents=True)
        store.path.write_text(json.dumps({"version": "2.56.7", "timestamp": NOW, "commands": [{"id": 1}]}))
        assert store.check()[0] is CacheStatus.INVALID

    def test_full_command_must_match_id(self, store, commands):
        store.save(commands)
        data = json.loads(store.path.read_text(encoding="utf-8"))
        data["commands"][0]["fullCommand"] = "apex log list"
        store.path.write_text(json.dumps(data), encoding="utf-8")
        assert store.check()[0] is CacheStatus.INVALID
        assert store.load() is None

    def test_torn_write(self, store, commands):
        store.save(commands)
        text = store.path.read_text(encoding="utf-8")
        store.path.write_text(text[: len(text) // 2], encoding="utf-8")
        assert store.check()[0] is CacheStatus.CORRUPT
        assert store.load() is None


class TestClearAndRefresh:
    def test_clear_reports_whether_file_existed(self, store, commands):
        assert store.clear() is False
        store.save(commands)
        assert store.clear() is True
        assert not store.path.exists()

    def test_refresh_ignores_valid_cache(self, store, commands):
        store.save(commands[:1])
        calls = []

        def discover():
            calls.append(True)
            return commands

        assert store.refresh(discover) == commands
        assert calls == [True]
        assert store.load() == commands


class TestVersionProbe:
    def test_parses_cli_version(self):
        runner = FakeRunner({"--version": ok(SF_VERSION_OUTPUT)})
        assert sf_version(runner) == "2.56.7"

    def test_unknown_when_unparsable(self):
        runner = FakeRunner({"--version": ok("something else")})
        assert sf_version(runner) == "unknown"

    def test_unknown_when_binary_missing(self):
        runner = FakeRunner({"--version": FileNotFoundError("sf")})
        assert sf_version(runner) == "unknown"
