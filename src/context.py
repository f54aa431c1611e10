"""The objects one server instance works with, built once and passed around."""

from dataclasses import dataclass
from typing import Optional

from cache import CommandCacheStore, sf_version
from config import Settings, resolve_sf_binary, settings as default_settings
from discovery import discover_commands
from executor import CommandExecutor, Runner, SubprocessRunner
from models import CommandDescriptor
from roots import ProjectRootManager


@dataclass
class SfContext:
    settings: Settings
    runner: Runner
    roots: ProjectRootManager
    cache: CommandCacheStore
    executor: CommandExecutor

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, runner: Optional[Runner] = None) -> "SfContext":
        settings = settings or default_settings
        if runner is None:
            runner = SubprocessRunner(resolve_sf_binary(settings.sf_binary), settings.max_output_bytes)
        roots = ProjectRootManager(settings.project_marker)
        cache = CommandCacheStore(
            settings.cache_path,
            version_probe=lambda: sf_version(runner),
            max_age_ms=settings.cache_max_age_ms,
        )
        return cls(
            settings=settings,
            runner=runner,
            roots=roots,
            cache=cache,
            executor=CommandExecutor(runner, roots),
        )

    def discover(self) -> list[CommandDescriptor]:
        return discover_commands(
            self.runner,
            help_fallback=self.settings.help_fallback,
            fallback_command_ids=self.settings.fallback_command_ids,
        )
