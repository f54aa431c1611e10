#!/usr/bin/env python3
"""
sf-mcp: The Salesforce CLI MCP Server

Exposes every command of the installed Salesforce CLI (sf) as an MCP tool,
discovered at startup and cached per sf version.

Usage:
    python src/main.py [--refresh-cache] [PROJECT_DIR ...]

Each PROJECT_DIR must contain sfdx-project.json; the first becomes the
default project root.

Environment variables:
    SF_BINARY: Path to the sf executable
    SF_MCP_CACHE_DIR: Command cache directory (default: ~/.sf-mcp)
    CACHE_MAX_AGE: Command cache max age in seconds (default: 604800)
    LOG_LEVEL: Log level for stderr logging (default: INFO)
"""

import argparse
import logging
from typing import Annotated, Optional

from mcp.server.fastmcp import FastMCP
from mcp.shared.exceptions import McpError
from mcp.types import ErrorData
from pydantic import Field

from config import settings
from context import SfContext
from models import ProjectRoot
from naming import RESERVED_TOOL_NAMES
from registration import register_commands
from roots import RootValidationError
from utils import extract_project_directory_from_message, setup_logging

logger = logging.getLogger(__name__)

INSTRUCTIONS = """Salesforce CLI MCP Server - Run sf commands as tools.

Every sf command is a tool named sf_<topic>_<command> (e.g., sf_org_list for `sf org list`).
Deeply nested commands also get a short alias (e.g., sf_get for `sf apex log get`).
Flags are tool arguments; pass target-org "default" to use the default org.

Utility tools:
- sf_set_project_directory(directory, name?, description?, is_default?) → Register a project root
- sf_detect_project_directory(message?) → Find a project path in a message and register it
- sf_list_roots() → Show configured project roots
- sf_cache_clear() / sf_cache_refresh() → Manage the discovered command cache"""


def _format_root(root: ProjectRoot) -> str:
    line = f"- {root.name}{' (default)' if root.is_default else ''}: {root.path}"
    if root.description:
        line += f"\n  Description: {root.description}"
    return line


def create_server(context: SfContext) -> FastMCP:
    """Build the MCP server with its utility tools and resources."""
    mcp = FastMCP("sf-mcp", instructions=INSTRUCTIONS)

    def run_text(command_line: str, root: Optional[str] = None) -> str:
        return context.executor.execute(command_line, root_name=root).output

    # --- Tools ---

    @mcp.tool()
    def sf_cache_clear() -> str:
        """Delete the cached list of sf commands."""
        if context.cache.clear():
            return "Command cache cleared successfully."
        return "Command cache did not exist."

    @mcp.tool()
    def sf_cache_refresh() -> str:
        """Rediscover all sf commands and rewrite the command cache."""
        try:
            commands = context.cache.refresh(context.discover)
        except OSError as e:
            raise McpError(ErrorData(code=-32603, message=f"Failed to refresh command cache: {e}"))
        return (
            f"Command cache refreshed with {len(commands)} commands. "
            "Restart the server to use the new cache."
        )

    @mcp.tool()
    def sf_set_project_directory(
        directory: Annotated[str, Field(description="Absolute path to a directory containing sfdx-project.json")],
        name: Annotated[Optional[str], Field(description="Optional name for this project root")] = None,
        description: Annotated[Optional[str], Field(description="Optional description for this project root")] = None,
        is_default: Annotated[
            Optional[bool], Field(description="Use this root as the default for command execution")
        ] = None,
    ) -> str:
        """Register a Salesforce project directory (root) that commands can run in."""
        try:
            root = context.roots.set_root(directory, name=name, description=description, is_default=is_default)
        except RootValidationError as e:
            raise McpError(ErrorData(code=-32602, message=f"Failed to set project directory. {e}"))

        return f"Successfully set Salesforce project root: {root.path} with name \"{root.name}\"" + (
            " (default)" if root.is_default else ""
        )

    @mcp.tool()
    def sf_detect_project_directory(
        message: Annotated[Optional[str], Field(description="Text that may mention a project path")] = None,
    ) -> str:
        """Find a project path in phrases like "Execute in /path/to/project" and register it."""
        directory = extract_project_directory_from_message(message)
        if not directory:
            return (
                "To set a project directory, use sf_set_project_directory with the path to your "
                "Salesforce project, or pass a message such as \"Execute in /path/to/project\" "
                "or \"Use project in /path/to/project\"."
            )

        try:
            root = context.roots.set_root(directory)
        except RootValidationError as e:
            raise McpError(ErrorData(code=-32602, message=f"Found '{directory}' but cannot use it. {e}"))
        return f"Detected and set Salesforce project root: {root.path} (name \"{root.name}\")"

    @mcp.tool()
    def sf_list_roots() -> str:
        """List configured Salesforce project roots."""
        roots = context.roots.list_roots()
        if not roots:
            return "No project roots configured. Use sf_set_project_directory to add a project root."
        return "Configured Salesforce project roots:\n\n" + "\n\n".join(_format_root(r) for r in roots)

    # --- Resources ---

    @mcp.resource("sf://help")
    def sf_help() -> str:
        """Main sf CLI help."""
        return run_text("-h")

    @mcp.resource("sf://version")
    def sf_version() -> str:
        """Installed sf CLI version."""
        return run_text("--version")

    @mcp.resource("sf://roots")
    def sf_roots() -> str:
        """Configured project roots."""
        roots = context.roots.list_roots()
        if not roots:
            return "No project roots configured. Use sf_set_project_directory to add a project root."
        return "\n".join(
            f"{r.name}{' (default)' if r.is_default else ''}: {r.path}"
            + (f" - {r.description}" if r.description else "")
            for r in roots
        )

    @mcp.resource("sf://topics/{topic}/help")
    def topic_help(topic: str) -> str:
        """Help for an sf topic (e.g., 'org')."""
        return run_text(f"{topic.replace(':', ' ')} -h")

    @mcp.resource("sf://commands/{command}/help")
    def command_help(command: str) -> str:
        """Help for an sf command id (e.g., 'org:list')."""
        return run_text(f"{command.replace(':', ' ')} -h")

    @mcp.resource("sf://topics/{topic}/commands/{command}/help")
    def topic_command_help(topic: str, command: str) -> str:
        """Help for a command within a topic."""
        return run_text(f"{topic.replace(':', ' ')} {command} -h")

    @mcp.resource("sf://roots/{root}/commands/{command}")
    def root_command(root: str, command: str) -> str:
        """Run a command line in a named project root."""
        return run_text(command, root=root)

    return mcp


# --- Startup ---


def looks_like_path(arg: str) -> bool:
    return arg.startswith(("/", "./", "../", "~/")) or "/" in arg or "\\" in arg


def configure_roots(context: SfContext, paths: list[str]) -> None:
    """Register project roots given on the command line; the first is the default."""
    root_paths = [p for p in paths if looks_like_path(p)]
    for ignored in set(paths) - set(root_paths):
        logger.warning(f"Ignoring argument that does not look like a path: {ignored}")

    if not root_paths:
        logger.info("No project roots identified in CLI arguments")
        return

    logger.info(f"Configuring {len(root_paths)} project roots from CLI arguments")
    for i, path in enumerate(root_paths, start=1):
        try:
            context.roots.set_root(
                path,
                name=f"root{i}",
                description=f"CLI-configured root #{i}",
                is_default=i == 1,
            )
        except RootValidationError as e:
            logger.error(f"Failed to configure project root #{i}: {e}")


def refresh_cache(context: SfContext) -> None:
    """Rediscover commands and rewrite the cache; a failed write is logged, not fatal."""
    try:
        context.cache.refresh(context.discover)
    except OSError as e:
        logger.error(f"Error refreshing command cache: {e}")


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="sf-mcp", description="MCP server for the Salesforce CLI")
    parser.add_argument("roots", nargs="*", help="Salesforce project directories (first one is the default)")
    parser.add_argument("--refresh-cache", action="store_true", help="Rediscover commands before starting")
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> None:
    args = parse_args(argv)
    setup_logging(settings.log_level)

    context = SfContext.from_settings(settings)
    mcp = create_server(context)
    configure_roots(context, args.roots)

    if args.refresh_cache:
        refresh_cache(context)

    report = register_commands(mcp, context)
    logger.info(
        f"Total registered tools: {report.total + len(RESERVED_TOOL_NAMES)} "
        f"({report.total} sf CLI tools + {len(RESERVED_TOOL_NAMES)} utility tools)"
    )

    logger.info("Starting Salesforce CLI MCP Server")
    mcp.run()


if __name__ == "__main__":
    main()
