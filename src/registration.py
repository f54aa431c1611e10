"""
Registration: load (or discover) the sf commands and expose each one as an
MCP tool, plus a short alias for deeply nested commands.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from mcp.server.fastmcp import FastMCP
from mcp.shared.exceptions import McpError
from mcp.types import ErrorData
from pydantic import BaseModel

from context import SfContext
from executor import CommandExecutor
from models import CommandDescriptor, ExecutionStatus, RegisteredEndpoint
from naming import RESERVED_TOOL_NAMES, plan_tool_names
from schema import build_arguments_model, build_tool_signature
from utils import format_flags

logger = logging.getLogger(__name__)


@dataclass
class RegistrationReport:
    endpoints: list[RegisteredEndpoint] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def command_count(self) -> int:
        return sum(1 for e in self.endpoints if not e.is_alias)

    @property
    def alias_count(self) -> int:
        return sum(1 for e in self.endpoints if e.is_alias)

    @property
    def total(self) -> int:
        return len(self.endpoints)


def load_or_discover(context: SfContext) -> list[CommandDescriptor]:
    """Commands from the cache, or freshly discovered and cached."""
    commands = context.cache.load()
    if commands is not None:
        return commands

    logger.info("Cache not available or invalid, fetching commands directly")
    commands = context.discover()
    if not commands:
        # Empty means discovery failed
        logger.warning("No sf commands discovered, not writing the cache")
        return commands

    try:
        context.cache.save(commands)
    except OSError as e:
        logger.error(f"Error saving command cache: {e}")
    return commands


def make_command_handler(
    command: CommandDescriptor,
    executor: CommandExecutor,
    tool_name: str,
    arguments_model: Optional[type[BaseModel]] = None,
) -> Callable[..., str]:
    """
    Build the function FastMCP calls for a command tool.

    Its signature carries the synthesized flag schema; arguments come back
    keyed by parameter name or flag alias and are mapped to sf flags.
    """
    signature, flag_names = build_tool_signature(command, arguments_model)

    def handler(**arguments) -> str:
        flags = {flag_names.get(key, key): value for key, value in arguments.items()}
        command_line = f"{command.full_command} {format_flags(flags)}".strip()
        result = executor.execute(command_line)
        if result.status is ExecutionStatus.FAILED and not result.stdout:
            raise McpError(ErrorData(code=-32603, message=result.output))
        return result.output

    handler.__name__ = tool_name
    handler.__doc__ = command.description
    handler.__signature__ = signature
    return handler


def _describe(command: CommandDescriptor, alias_of: Optional[str] = None) -> str:
    text = f"{command.description}\n\nRuns: sf {command.full_command}"
    if alias_of:
        text += f"\nAlias of {alias_of}."
    return text


def register_endpoint(
    mcp: FastMCP,
    context: SfContext,
    command: CommandDescriptor,
    tool_name: str,
    alias_of: Optional[str] = None,
) -> RegisteredEndpoint:
    arguments_model = build_arguments_model(command)
    handler = make_command_handler(command, context.executor, tool_name, arguments_model)
    endpoint = RegisteredEndpoint(
        tool_name=tool_name,
        command=command,
        arguments_model=arguments_model,
        handler=handler,
        is_alias=alias_of is not None,
        alias_of=alias_of,
    )
    mcp.add_tool(handler, name=tool_name, description=_describe(command, alias_of))
    return endpoint


def register_commands(
    mcp: FastMCP,
    context: SfContext,
    commands: Optional[list[CommandDescriptor]] = None,
    reserved: Iterable[str] = RESERVED_TOOL_NAMES,
) -> RegistrationReport:
    """
    Register every command as a tool and return what was registered.

    Name collisions and per-command failures skip that command only.
    """
    if commands is None:
        commands = load_or_discover(context)

    report = RegistrationReport()
    for plan in plan_tool_names(commands, reserved):
        if plan.tool_name is None:
            report.skipped.append(plan.command.id)
            continue

        try:
            report.endpoints.append(register_endpoint(mcp, context, plan.command, plan.tool_name))
        except Exception:
            logger.exception(f"Error registering tool for command {plan.command.id}")
            report.skipped.append(plan.command.id)
            continue

        if plan.alias:
            try:
                report.endpoints.append(
                    register_endpoint(mcp, context, plan.command, plan.alias, alias_of=plan.tool_name)
                )
                logger.debug(f"Registered alias {plan.alias} for {plan.tool_name}")
            except Exception:
                logger.exception(f"Error registering alias {plan.alias}")

    logger.info(
        f"Registration complete. Registered {report.total} tools "
        f"({report.command_count} commands and {report.alias_count} aliases)"
    )
    return report
