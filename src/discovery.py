"""
Command discovery: enumerate sf commands and normalize them into
CommandDescriptor records.
"""

import json
import logging
from typing import Any, Iterable, Optional, Protocol

from pydantic import ValidationError

from executor import Runner
from models import CommandDescriptor, FlagDescriptor
from parsers import parse_help_text

logger = logging.getLogger(__name__)

# Meta commands that are not useful as tools
IGNORED_TOPICS = ["help", "which", "whatsnew", "alias"]

SEPARATOR = ":"


class CommandSource(Protocol):
    def list_commands(self) -> list[CommandDescriptor]: ...


def is_ignored(command_id: str) -> bool:
    """Check the topic (or the bare id of a top-level command) against IGNORED_TOPICS."""
    head = command_id.split(SEPARATOR, 1)[0]
    return head.lower() in IGNORED_TOPICS


def split_command_id(command_id: str) -> tuple[str, Optional[str]]:
    """Split 'apex:log:get' into ('get', 'apex:log'); top-level ids have no topic."""
    parts = command_id.split(SEPARATOR)
    if len(parts) == 1:
        return command_id, None
    return parts[-1], SEPARATOR.join(parts[:-1])


def full_command_for(command_id: str) -> str:
    return command_id.replace(SEPARATOR, " ")


def _flag_from_entry(name: str, details: Any) -> FlagDescriptor:
    details = details if isinstance(details, dict) else {}
    options = details.get("options")
    default = details.get("default")
    # sf reports computed defaults as objects; only plain values are kept
    if not isinstance(default, (bool, int, float, str)) and not (
        isinstance(default, list) and all(isinstance(d, str) for d in default)
    ):
        default = None

    return FlagDescriptor(
        name=name,
        char=details.get("char"),
        description=details.get("description") or details.get("summary") or "",
        required=bool(details.get("required")),
        type=str(details.get("type") or "string"),
        options=[str(o) for o in options] if isinstance(options, list) and options else None,
        default=default,
    )


def command_from_entry(entry: dict) -> CommandDescriptor:
    """Normalize one entry of `sf commands --json`."""
    command_id = entry["id"]
    name, topic = split_command_id(command_id)
    flags = entry.get("flags")
    if not isinstance(flags, dict):
        if flags:
            logger.warning(f"Ignoring malformed flags of {command_id}: expected an object")
        flags = {}
    return CommandDescriptor(
        id=command_id,
        name=name,
        topic=topic,
        description=entry.get("summary") or entry.get("description") or command_id,
        full_command=full_command_for(command_id),
        flags=[_flag_from_entry(flag_name, details) for flag_name, details in flags.items()],
    )


def parse_command_listing(entries: Any) -> list[CommandDescriptor]:
    """Filter and normalize the raw listing; malformed entries are skipped."""
    if not isinstance(entries, list):
        raise ValueError(f"Expected a JSON array of commands, got {type(entries).__name__}")

    commands = []
    seen: set[str] = set()
    for entry in entries:
        if not isinstance(entry, dict) or not isinstance(entry.get("id"), str) or not entry["id"]:
            continue
        if is_ignored(entry["id"]) or entry["id"] in seen:
            continue
        try:
            commands.append(command_from_entry(entry))
        except ValidationError as e:
            logger.warning(f"Skipping command {entry['id']}: {e}")
            continue
        seen.add(entry["id"])
    return commands


class JsonListingSource:
    """Commands from the machine-readable listing, `sf commands --json`."""

    def __init__(self, runner: Runner):
        self.runner = runner

    def list_commands(self) -> list[CommandDescriptor]:
        logger.info("Fetching all sf commands via 'sf commands --json'")
        try:
            run = self.runner.run(["commands", "--json"])
            commands = parse_command_listing(json.loads(run.stdout))
        except (OSError, ValueError) as e:
            logger.error(f"Error getting sf commands: {e}")
            return []

        logger.info(f"Discovered {len(commands)} commands after filtering")
        return commands


class HelpTextSource:
    """Commands rebuilt from `sf <command> --help` for a fixed list of ids."""

    def __init__(self, runner: Runner, command_ids: Iterable[str]):
        self.runner = runner
        self.command_ids = list(command_ids)

    def describe(self, command_id: str) -> Optional[CommandDescriptor]:
        try:
            run = self.runner.run([*command_id.split(SEPARATOR), "--help"])
        except OSError as e:
            logger.error(f"Error reading help for {command_id}: {e}")
            return None

        if run.returncode != 0 or not run.stdout.strip():
            logger.warning(f"No help output for {command_id}")
            return None

        info = parse_help_text(run.stdout)
        if info.misses:
            logger.debug(f"{len(info.misses)} unparsed flag lines in help for {command_id}")

        name, topic = split_command_id(command_id)
        return CommandDescriptor(
            id=command_id,
            name=name,
            topic=topic,
            description=info.description or command_id,
            full_command=full_command_for(command_id),
            flags=list(info.flags.values()),
        )

    def list_commands(self) -> list[CommandDescriptor]:
        commands = []
        for command_id in self.command_ids:
            if is_ignored(command_id):
                continue
            command = self.describe(command_id)
            if command:
                commands.append(command)
        logger.info(f"Built {len(commands)} commands from help text")
        return commands


def discover_commands(
    runner: Runner,
    help_fallback: bool = False,
    fallback_command_ids: Iterable[str] = (),
) -> list[CommandDescriptor]:
    """
    Discover every sf command, never raising.

    The JSON listing is authoritative. Only when it yields nothing and the
    help fallback is enabled are the configured ids described from `--help`.
    """
    commands = JsonListingSource(runner).list_commands()
    if commands or not help_fallback:
        return commands

    logger.info("JSON command listing unavailable, falling back to help text")
    return HelpTextSource(runner, fallback_command_ids).list_commands()
