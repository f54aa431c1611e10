"""
Tool naming: derive MCP-safe tool names for sf commands and resolve
collisions before anything is registered.
"""

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional

from models import CommandDescriptor

logger = logging.getLogger(__name__)

TOOL_PREFIX = "sf_"
MAX_TOOL_NAME_LENGTH = 64

# Utility tools defined by the server itself
RESERVED_TOOL_NAMES = frozenset(
    {
        "sf_cache_clear",
        "sf_cache_refresh",
        "sf_set_project_directory",
        "sf_detect_project_directory",
        "sf_list_roots",
    }
)

_UNSAFE = re.compile(r"[^a-zA-Z0-9_-]")


def sanitize_tool_name(name: str) -> str:
    """Replace characters outside [A-Za-z0-9_-] and cap the length at 64."""
    return _UNSAFE.sub("_", name)[:MAX_TOOL_NAME_LENGTH]


def canonical_tool_name(command: CommandDescriptor) -> str:
    """sf_<topic_with_underscores>_<name>, or sf_<name> for top-level commands."""
    if command.topic:
        raw = f"{TOOL_PREFIX}{command.topic.replace(':', '_')}_{command.name}"
    else:
        raw = f"{TOOL_PREFIX}{command.name}"
    return sanitize_tool_name(raw)


def alias_tool_name(command: CommandDescriptor) -> Optional[str]:
    """
    Short alias (sf_<name>) for commands nested at least three levels deep.

    'apex:log:get' gets 'sf_get'; 'org:list' and 'org:list:xy' get none.
    """
    if command.topic and ":" in command.topic and len(command.name) > 2:
        return sanitize_tool_name(f"{TOOL_PREFIX}{command.name.lower()}")
    return None


@dataclass(frozen=True)
class ToolNamePlan:
    """Naming decision for one command."""
    command: CommandDescriptor
    tool_name: Optional[str]
    alias: Optional[str] = None
    skip_reason: Optional[str] = None


def plan_tool_names(
    commands: Iterable[CommandDescriptor],
    reserved: Iterable[str] = RESERVED_TOOL_NAMES,
) -> list[ToolNamePlan]:
    """
    Decide the tool name and alias of every command.

    Commands are taken in order. A canonical name already taken by a reserved
    tool or an earlier command skips the command. Canonical names of all
    commands are known before aliases are handed out, so an alias never
    shadows a later command's canonical name; a clashing alias is dropped.
    """
    commands = list(commands)
    taken = set(reserved)
    canonical: list[Optional[str]] = []

    for command in commands:
        name = canonical_tool_name(command)
        if name in taken:
            logger.warning(f"Skipping {command.id}: tool name {name} is already registered")
            canonical.append(None)
            continue
        taken.add(name)
        canonical.append(name)

    plans = []
    for command, name in zip(commands, canonical):
        if name is None:
            plans.append(ToolNamePlan(command, None, skip_reason="name collision"))
            continue

        alias = alias_tool_name(command)
        if alias is not None:
            if alias in taken:
                logger.debug(f"No alias for {name}: {alias} is already taken")
                alias = None
            else:
                taken.add(alias)

        plans.append(ToolNamePlan(command, name, alias))

    return plans
