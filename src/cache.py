"""On-disk cache of discovered sf commands, keyed by sf version and age."""

import json
import logging
import os
import re
import tempfile
import time
from pathlib import Path
from typing import Callable, Optional

from pydantic import ValidationError

from executor import Runner
from models import CacheStatus, CommandCache, CommandDescriptor

logger = logging.getLogger(__name__)

CACHE_MAX_AGE_MS = 7 * 24 * 60 * 60 * 1000  # 1 week

_VERSION = re.compile(r"(?:sf|cli)/(\d+\.\d+\.\d+)")


def sf_version(runner: Runner) -> str:
    """Version reported by `sf --version`, or 'unknown'."""
    try:
        run = runner.run(["--version"])
    except OSError as e:
        logger.error(f"Error getting sf version: {e}")
        return "unknown"
    match = _VERSION.search(run.stdout)
    return match.group(1) if match else "unknown"


def now_ms() -> int:
    return int(time.time() * 1000)


class CommandCacheStore:
    """
    Persist discovered commands between server runs.

    A cache is only used while it is younger than max_age_ms and was written
    by the same sf version that is installed now. There is no locking:
    concurrent writers race and the last one wins.
    """

    def __init__(
        self,
        path: Path,
        version_probe: Callable[[], str],
        max_age_ms: int = CACHE_MAX_AGE_MS,
        clock: Callable[[], int] = now_ms,
    ):
        self.path = Path(path)
        self.version_probe = version_probe
        self.max_age_ms = max_age_ms
        self.clock = clock

    def check(self) -> tuple[CacheStatus, Optional[list[CommandDescriptor]]]:
        """Inspect the cache file and report why it is or isn't usable."""
        if not self.path.exists():
            return CacheStatus.MISSING, None

        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Unreadable command cache {self.path}: {e}")
            return CacheStatus.CORRUPT, None

        try:
            cache = CommandCache.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Invalid command cache structure: {e.error_count()} errors")
            return CacheStatus.INVALID, None

        if self.clock() - cache.timestamp > self.max_age_ms:
            return CacheStatus.EXPIRED, None

        current = self.version_probe()
        if cache.version != current:
            logger.info(f"Cache version mismatch. Cache: {cache.version}, Current: {current}")
            return CacheStatus.VERSION_MISMATCH, None

        return CacheStatus.OK, cache.commands

    def load(self) -> Optional[list[CommandDescriptor]]:
        """Cached commands, or None when there is no usable cache."""
        status, commands = self.check()
        if status is not CacheStatus.OK:
            logger.info(f"Command cache not used: {status.value}")
            return None
        logger.info(f"Using {len(commands)} commands from cache {self.path}")
        return commands

    def save(self, commands: list[CommandDescriptor]) -> CommandCache:
        """
        Write commands stamped with the current sf version and time.

        The file is written next to the target and renamed over it, so a
        reader sees either the old cache or the complete new one.
        """
        cache = CommandCache(version=self.version_probe(), timestamp=self.clock(), commands=commands)
        self.path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".command-cache-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(cache.model_dump_json(by_alias=True, indent=2))
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

        logger.info(f"Command cache saved to {self.path} (sf version: {cache.version})")
        return cache

    def clear(self) -> bool:
        """Delete the cache file; True if there was one."""
        try:
            self.path.unlink()
        except FileNotFoundError:
            logger.info(f"Cache file does not exist: {self.path}")
            return False
        logger.info(f"Removed cache file: {self.path}")
        return True

    def refresh(self, discover: Callable[[], list[CommandDescriptor]]) -> list[CommandDescriptor]:
        """Rediscover and rewrite the cache regardless of its current state."""
        self.clear()
        commands = discover()
        logger.info(f"Found {len(commands)} commands for cache refresh")
        self.save(commands)
        return commands
