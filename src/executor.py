"""
Running sf commands: the subprocess runner and the executor that resolves
default orgs, project directories and failures before and after a run.
"""

import json
import logging
import os
import re
import shlex
import subprocess
from typing import Optional, Protocol

from models import ExecutionResult, ExecutionStatus, RunOutput
from roots import ProjectRootManager

logger = logging.getLogger(__name__)

# Commands that only make sense inside a Salesforce project (sfdx-project.json)
PROJECT_CONTEXT_PREFIXES = [
    "project deploy",
    "project retrieve",
    "project delete",
    "project convert",
    "package version create",
    "package1 version create",
    "source",
    "mdapi",
    "apex",
    "lightning",
    "schema generate",
]

DEFAULT_SENTINEL = "default"

# flag -> (org list key marking the default, org list buckets to scan in order)
SENTINEL_FLAGS = {
    "target-org": ("isDefaultUsername", ["nonScratchOrgs", "scratchOrgs", "sandboxes"]),
    "target-dev-hub": ("isDefaultDevHubUsername", ["devHubs", "nonScratchOrgs", "sandboxes"]),
}

PROJECT_CONTEXT_MESSAGE = """This command requires a Salesforce project context (sfdx-project.json).
Please specify a project directory using the format:
"Execute in <directory_path>" or "Use project in <directory_path>"
or register one with the sf_set_project_directory tool."""


class Runner(Protocol):
    def run(self, args: list[str], cwd: Optional[str] = None) -> RunOutput: ...


class SubprocessRunner:
    """Run the sf binary and capture its output."""

    def __init__(self, binary: str = "sf", max_output_bytes: int = 10 * 1024 * 1024):
        self.binary = binary
        self.max_output_bytes = max_output_bytes

    def run(self, args: list[str], cwd: Optional[str] = None) -> RunOutput:
        """
        Run `sf <args>` in cwd with the inherited environment.

        Blocks until the process exits. Raises OSError when the binary
        cannot be started.
        """
        completed = subprocess.run(
            [self.binary, *args],
            cwd=cwd,
            env=os.environ.copy(),
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
        return RunOutput(
            returncode=completed.returncode,
            stdout=self._limit(completed.stdout or "", "stdout"),
            stderr=self._limit(completed.stderr or "", "stderr"),
        )

    def _limit(self, text: str, stream: str) -> str:
        if len(text) > self.max_output_bytes:
            logger.warning(f"Truncating {stream} of {len(text)} characters to {self.max_output_bytes}")
            return text[: self.max_output_bytes]
        return text


def requires_project_context(command_line: str) -> bool:
    """Check if a command line starts with a project-only command."""
    command = command_line.strip()
    return any(command.startswith(prefix) for prefix in PROJECT_CONTEXT_PREFIXES)


def find_default_username(org_list: dict, marker: str, buckets: list[str]) -> Optional[str]:
    """First username flagged as default, scanning buckets in order."""
    result = org_list.get("result") or {}
    for bucket in buckets:
        for org in result.get(bucket) or []:
            if isinstance(org, dict) and org.get(marker) and org.get("username"):
                return org["username"]
    return None


class CommandExecutor:
    """
    Run sf command lines on behalf of tool calls.

    `execute` turns every ordinary failure into an ExecutionResult, so
    callers always have text to relay and a status to branch on.
    """

    def __init__(self, runner: Runner, roots: ProjectRootManager):
        self.runner = runner
        self.roots = roots

    def execute(self, command_line: str, root_name: Optional[str] = None) -> ExecutionResult:
        command_line = self.resolve_default_orgs(command_line.strip())

        root = self.roots.resolve(root_name)
        cwd = root.path if root else None

        if cwd is None and requires_project_context(command_line):
            logger.info(f"Refusing to run '{command_line}' without a project directory")
            return ExecutionResult(
                status=ExecutionStatus.NEEDS_PROJECT,
                output=PROJECT_CONTEXT_MESSAGE,
                command_line=command_line,
            )

        logger.info(f"Executing: sf {command_line}" + (f" (in {cwd})" if cwd else ""))
        try:
            run = self.runner.run(shlex.split(command_line), cwd=cwd)
        except (OSError, ValueError) as e:
            logger.error(f"Error executing sf {command_line}: {e}")
            return ExecutionResult(
                status=ExecutionStatus.FAILED,
                output=f"Error executing command: {e}",
                command_line=command_line,
                message=str(e),
                cwd=cwd,
            )

        if run.returncode == 0:
            return ExecutionResult(
                status=ExecutionStatus.OK,
                output=run.stdout,
                command_line=command_line,
                stdout=run.stdout,
                stderr=run.stderr,
                returncode=0,
                cwd=cwd,
            )

        logger.warning(f"sf {command_line} exited with code {run.returncode}")
        message = f"Command failed with exit code {run.returncode}"
        return ExecutionResult(
            status=ExecutionStatus.FAILED,
            output=run.stdout or run.stderr or message,
            command_line=command_line,
            stdout=run.stdout,
            stderr=run.stderr,
            message=message,
            returncode=run.returncode,
            cwd=cwd,
        )

    def resolve_default_orgs(self, command_line: str) -> str:
        """
        Replace `--target-org default` with the username of the default org.

        The org list is only fetched when a sentinel is present. Without a
        default org the command line is returned unchanged.
        """
        org_list = None
        for flag, (marker, buckets) in SENTINEL_FLAGS.items():
            pattern = re.compile(rf"--{flag}[= ]{DEFAULT_SENTINEL}(?=\s|$)")
            if not pattern.search(command_line):
                continue

            if org_list is None:
                org_list = self._org_list()
            username = find_default_username(org_list, marker, buckets)
            if not username:
                logger.info(f"No default org found for --{flag}, leaving it as written")
                continue

            command_line = pattern.sub(f"--{flag} {shlex.quote(username)}", command_line)
            logger.info(f"Using default org for --{flag}: {username}")

        return command_line

    def _org_list(self) -> dict:
        try:
            run = self.runner.run(["org", "list", "--json"])
            data = json.loads(run.stdout)
        except (OSError, ValueError) as e:
            logger.warning(f"Could not list orgs: {e}")
            return {}
        return data if isinstance(data, dict) else {}
