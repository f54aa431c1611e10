"""
Configuration for the Salesforce CLI MCP server.
"""

import os
import shutil
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


# Places the sf binary commonly lands when it is not on PATH
SF_BINARY_CANDIDATES = [
    "/usr/local/bin/sf",
    "/usr/bin/sf",
    "/opt/homebrew/bin/sf",
    "~/.volta/bin/sf",
    "~/.npm/bin/sf",
    "~/bin/sf",
]


class Settings(BaseSettings):
    """
    MCP server configuration loaded from environment variables.

    Environment variables:
        SF_BINARY: Path to the sf executable. Located automatically if unset.
        SF_MCP_CACHE_DIR: Directory for the command cache.
                          Defaults to ~/.sf-mcp
        CACHE_MAX_AGE: Command cache max age in seconds. Default: 604800 (1 week)
        MAX_OUTPUT_BYTES: Ceiling for captured stdout/stderr of one sf invocation.
        LOG_LEVEL: Logging level written to stderr. Default: INFO
        HELP_FALLBACK: Build commands from `--help` output when `sf commands --json` fails.
        FALLBACK_COMMANDS: Comma-separated command ids used by the help fallback
                           (e.g., "org:list,apex:run")
        PROJECT_MARKER: File that marks a directory as a Salesforce project.
    """

    sf_binary: Optional[str] = Field(
        default=None,
        alias="SF_BINARY",
        description="Path to the sf executable"
    )

    cache_dir: Path = Field(
        default=Path.home() / ".sf-mcp",
        alias="SF_MCP_CACHE_DIR",
        description="Directory for the discovered command cache"
    )

    cache_max_age: int = Field(
        default=604800,  # 1 week
        alias="CACHE_MAX_AGE",
        description="Command cache max age in seconds"
    )

    max_output_bytes: int = Field(
        default=10 * 1024 * 1024,
        alias="MAX_OUTPUT_BYTES",
        description="Ceiling for captured output of a single sf invocation"
    )

    log_level: str = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level"
    )

    help_fallback: bool = Field(
        default=False,
        alias="HELP_FALLBACK",
        description="Parse `--help` output when the JSON command listing is unavailable"
    )

    fallback_commands: Optional[str] = Field(
        default=None,
        alias="FALLBACK_COMMANDS",
        description="Comma-separated command ids for the help-text fallback"
    )

    project_marker: str = Field(
        default="sfdx-project.json",
        alias="PROJECT_MARKER",
        description="Project descriptor file required directly under a project root"
    )

    @property
    def fallback_command_ids(self) -> list[str]:
        """Parse fallback_commands into a list of command ids."""
        if self.fallback_commands is None:
            return []
        return [c.strip() for c in self.fallback_commands.split(",") if c.strip()]

    @property
    def cache_max_age_ms(self) -> int:
        return self.cache_max_age * 1000

    @property
    def cache_path(self) -> Path:
        """Path to the command cache file."""
        return self.cache_dir / "command-cache.json"


# Global settings instance
settings = Settings()


def resolve_sf_binary(configured: Optional[str] = None) -> str:
    """
    Locate the sf executable.

    Order: explicit setting, PATH lookup, well-known install locations,
    and finally the bare name so the OS gets the last word.
    """
    if configured:
        return configured

    found = shutil.which("sf")
    if found:
        return found

    for candidate in SF_BINARY_CANDIDATES:
        path = Path(candidate).expanduser()
        if path.is_file() and os.access(path, os.X_OK):
            return str(path)

    return "sf"
