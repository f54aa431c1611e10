"""
Data models for the Salesforce CLI MCP server.
"""

from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


FlagDefault = Union[bool, int, float, str, list[str]]


# --- Command Models ---

class FlagDescriptor(BaseModel):
    """One flag of an sf command."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Long flag name without dashes (e.g., 'target-org')")
    char: Optional[str] = Field(default=None, description="Single-letter alias (e.g., 'o')")
    description: str = Field(default="")
    required: bool = Field(default=False)
    type: str = Field(default="string", description="Free-form type reported by sf (e.g., 'option', 'boolean')")
    options: Optional[list[str]] = Field(default=None, description="Closed set of accepted values")
    default: Optional[FlagDefault] = Field(default=None)


class CommandDescriptor(BaseModel):
    """One leaf command of the sf CLI (e.g., 'apex:log:get')."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(description="Colon-delimited command id as reported by sf")
    name: str = Field(description="Final segment of the id")
    description: str
    full_command: str = Field(alias="fullCommand", description="The id with colons replaced by spaces")
    flags: list[FlagDescriptor] = Field(default_factory=list)
    topic: Optional[str] = Field(default=None, description="Colon-delimited prefix, absent for top-level commands")

    @model_validator(mode="after")
    def check_full_command(self) -> "CommandDescriptor":
        if self.full_command != self.id.replace(":", " "):
            raise ValueError(f"fullCommand '{self.full_command}' does not match id '{self.id}'")
        return self


class CommandCache(BaseModel):
    """On-disk snapshot of discovered commands."""
    version: str = Field(min_length=1, description="sf version at capture time")
    timestamp: int = Field(gt=0, description="Capture instant in epoch milliseconds")
    commands: list[CommandDescriptor]


class CacheStatus(str, Enum):
    """Outcome of inspecting the command cache."""
    OK = "ok"
    MISSING = "missing"
    CORRUPT = "corrupt"
    INVALID = "invalid"
    EXPIRED = "expired"
    VERSION_MISMATCH = "version_mismatch"


# --- Project Roots ---

class ProjectRoot(BaseModel):
    """A named Salesforce project directory."""
    model_config = ConfigDict(populate_by_name=True)

    path: str
    name: str
    description: Optional[str] = None
    is_default: bool = Field(default=False, alias="isDefault")


# --- Execution ---

class RunOutput(BaseModel):
    """Captured result of one sf process."""
    returncode: int
    stdout: str = ""
    stderr: str = ""


class ExecutionStatus(str, Enum):
    OK = "ok"
    FAILED = "failed"
    NEEDS_PROJECT = "needs_project"


class ExecutionResult(BaseModel):
    """What a command invocation produced, with the text to show the caller."""
    status: ExecutionStatus
    output: str
    command_line: str
    stdout: str = ""
    stderr: str = ""
    message: Optional[str] = None
    returncode: Optional[int] = None
    cwd: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.status is not ExecutionStatus.OK


# --- Registration ---

class RegisteredEndpoint(BaseModel):
    """A tool bound to an sf command for the lifetime of the server."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    tool_name: str = Field(max_length=64, pattern=r"^[A-Za-z0-9_-]+$")
    command: CommandDescriptor
    arguments_model: Any = Field(description="Pydantic model validating the tool arguments")
    handler: Any = Field(repr=False)
    is_alias: bool = False
    alias_of: Optional[str] = None


# --- Help Text ---

class HelpInfo(BaseModel):
    """Structured information recovered from `sf <command> --help` output."""
    description: str = ""
    examples: list[str] = Field(default_factory=list)
    flags: dict[str, FlagDescriptor] = Field(default_factory=dict)
    misses: list[str] = Field(default_factory=list, description="Flag-looking lines no rule matched")
