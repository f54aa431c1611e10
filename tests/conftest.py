"""Shared fixtures: a scripted sf runner and throwaway project directories."""

import json
import sys
from pathlib import Path
from typing import Optional, Union

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from config import Settings
from context import SfContext
from models import RunOutput


class FakeRunner:
    """Stands in for the sf binary; responses are keyed by the joined argument list."""

    def __init__(self, responses: Optional[dict[str, Union[RunOutput, Exception]]] = None):
        self.responses = dict(responses or {})
        self.calls: list[tuple[list[str], Optional[str]]] = []

    def run(self, args: list[str], cwd: Optional[str] = None) -> RunOutput:
        self.calls.append((list(args), cwd))
        response = self.responses.get(" ".join(args), RunOutput(returncode=0))
        if isinstance(response, Exception):
            raise response
        return response

    def called(self, command: str) -> bool:
        return any(" ".join(args) == command for args, _ in self.calls)


def ok(stdout: str = "", stderr: str = "") -> RunOutput:
    return RunOutput(returncode=0, stdout=stdout, stderr=stderr)


def ok_json(data) -> RunOutput:
    return ok(json.dumps(data))


SF_VERSION_OUTPUT = "@salesforce/cli/2.56.7 darwin-arm64 node-v20.11.0"

COMMAND_LISTING = [
    {
        "id": "apex:log:get",
        "summary": "Fetch the specified log or given number of most recent logs from the org.",
        "flags": {
            "target-org": {"type": "option", "char": "o", "required": True, "description": "Username or alias"},
            "log-id": {"type": "option", "char": "i", "description": "ID of the specific log to display."},
            "number": {"type": "integer", "char": "n"},
            "json": {"type": "boolean", "description": "Format output as json."},
        },
    },
    {
        "id": "org:list",
        "description": "List all orgs you've created or authenticated to.",
        "flags": {
            "all": {"type": "boolean", "description": "Include expired, deleted, and unknown-status scratch orgs."},
            "skip-connection-status": {"type": "boolean"},
        },
    },
    {"id": "project:deploy:start", "summary": "Deploy metadata to an org from your local project.", "flags": {}},
    {"id": "help", "summary": "Display help for sf."},
    {"id": "alias:set", "summary": "Set one or more aliases."},
    {"id": "version", "summary": "Display the CLI version."},
]


@pytest.fixture
def runner():
    return FakeRunner(
        {
            "--version": ok(SF_VERSION_OUTPUT),
            "commands --json": ok_json(COMMAND_LISTING),
        }
    )


@pytest.fixture
def make_project(tmp_path):
    """Create a directory holding sfdx-project.json."""

    def make(name: str) -> Path:
        project = tmp_path / name
        project.mkdir()
        (project / "sfdx-project.json").write_text("{}", encoding="utf-8")
        return project

    return make


@pytest.fixture
def context(tmp_path, runner):
    settings = Settings(SF_MCP_CACHE_DIR=str(tmp_path / "cache"))
    return SfContext.from_settings(settings, runner=runner)
