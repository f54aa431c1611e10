"""
Helpers shared by the server modules: logging setup, flag formatting
and project directory extraction from free text.
"""

import json
import logging
import re
import shlex
import sys
from typing import Any, Optional


def setup_logging(level: str = "INFO", format_string: Optional[str] = None) -> logging.Logger:
    """
    Configure the root logger to write to stderr.

    stdout is reserved for the MCP stdio transport, so nothing may log there.
    """
    if format_string is None:
        format_string = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logger = logging.getLogger()
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Remove existing handlers to avoid duplicates
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(format_string))
    logger.addHandler(handler)

    return logger


# --- Flag Formatting ---


def format_flags(flags: Optional[dict[str, Any]]) -> str:
    """
    Render tool arguments as sf command-line flags.

    None and False are dropped, True becomes a bare `--name`, lists repeat
    the flag once per value and dicts are passed as JSON.
    """
    if not flags:
        return ""

    parts = []
    for key, value in flags.items():
        if value is None:
            continue

        if isinstance(value, bool):
            if value:
                parts.append(f"--{key}")
            continue

        if isinstance(value, (list, tuple)):
            parts.extend(f"--{key}={shlex.quote(str(v))}" for v in value)
            continue

        if isinstance(value, dict):
            parts.append(f"--{key}={shlex.quote(json.dumps(value))}")
            continue

        parts.append(f"--{key}={shlex.quote(str(value))}")

    return " ".join(parts)


# --- Project Directory Detection ---

_PATH = r"(['\"]?)([/~][^\n'\"]+?)\1"

PROJECT_DIRECTORY_PATTERNS = [
    # "Execute in /path/to/project"
    re.compile(rf"[Ee]xecute\s+(?:in|from)\s+{_PATH}(?=[\s.,;!?]*$|['\"\s])"),
    # "Run in /path/to/project"
    re.compile(rf"[Rr]un\s+(?:in|from)\s+{_PATH}(?=[\s.,;!?]*$|['\"\s])"),
    # "Use project in /path/to/project"
    re.compile(rf"[Uu]se\s+project\s+(?:in|from|at)\s+{_PATH}(?=[\s.,;!?]*$|['\"\s])"),
    # "Set project directory to /path/to/project"
    re.compile(rf"[Ss]et\s+project\s+directory\s+(?:to|as)\s+{_PATH}(?=[\s.,;!?]*$|['\"\s])"),
    # "Project is at /path/to/project"
    re.compile(rf"[Pp]roject\s+(?:is|located)\s+(?:at|in)\s+{_PATH}(?=[\s.,;!?]*$|['\"\s])"),
    # "/path/to/project is my project"
    re.compile(rf"{_PATH}\s+is\s+my\s+(?:project|directory)"),
]


def extract_project_directory_from_message(message: Optional[str]) -> Optional[str]:
    """Find a project path in phrases like "Execute in /path/to/project"."""
    if not message:
        return None

    for pattern in PROJECT_DIRECTORY_PATTERNS:
        match = pattern.search(message)
        if match:
            return match.group(2).strip().rstrip(".,;!?")

    return None
