"""Best-effort parsing of `sf <command> --help` output."""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from models import FlagDescriptor, HelpInfo

logger = logging.getLogger(__name__)

# Section headers are upper-case lines at column 0 (USAGE, FLAGS, GLOBAL FLAGS, ...)
_HEADER = re.compile(r"^[A-Z][A-Z ]*[A-Z]$")

EXAMPLE_SECTIONS = re.compile(r"EXAMPLES?|USAGE", re.IGNORECASE)
FLAG_SECTIONS = re.compile(r"FLAGS|OPTIONS|PARAMETERS|ARGUMENTS", re.IGNORECASE)

_PLACEHOLDER = r"[\w\-\[\]|]+"
# "=value", "=<value>" or " <value>"; a bare word after a space is description text
_TYPE = rf"(?:=<?(?P<type>{_PLACEHOLDER})>?|\s<(?P<type2>{_PLACEHOLDER})>)?"

REQUIRED_MARKERS = re.compile(r"\(required\)|\[required\]|required\s*:|required\s+-", re.IGNORECASE)
_OPTIONS = re.compile(r"<options:\s*([^>]+)>")


@dataclass(frozen=True)
class FlagRule:
    """One flag-line grammar; `lines` is how many lines it consumes."""
    name: str
    pattern: re.Pattern
    lines: int = 1


# Tried in order, strictest first
FLAG_RULES = [
    # -o, --target-org=<value>  Username or alias of the target org.
    FlagRule(
        "long",
        re.compile(
            rf"^\s*(?:-(?P<char>[a-zA-Z]),\s*)?--(?P<name>[a-zA-Z][a-zA-Z0-9-]*)"
            rf"{_TYPE}\s+(?P<description>\S.*)$"
        ),
    ),
    # -f, --file=<value>
    #       Path to the file, wrapped onto the next line.
    FlagRule(
        "two-line",
        re.compile(
            rf"^\s*(?:-(?P<char>[a-zA-Z]),\s*)?--(?P<name>[a-zA-Z][a-zA-Z0-9-]*)"
            rf"{_TYPE}\s*\n\s+(?P<description>[^-\s].*)$"
        ),
        lines=2,
    ),
    # -v <value>  Short flag without a long name.
    FlagRule(
        "short",
        re.compile(
            rf"^\s*-(?P<char>[a-zA-Z]){_TYPE}\s+(?P<description>\S.*)$"
        ),
    ),
]


def normalize_flag_type(placeholder: Optional[str]) -> str:
    """Map a help placeholder like 'value' or 'number' to a flag type."""
    if not placeholder:
        return "boolean"
    placeholder = placeholder.lower()
    if "number" in placeholder or "int" in placeholder:
        return "number"
    if "boolean" in placeholder or placeholder == "flag":
        return "boolean"
    if "array" in placeholder or "[]" in placeholder:
        return "array"
    if "json" in placeholder or "object" in placeholder:
        return "json"
    return "string"


def split_sections(help_text: str) -> list[tuple[Optional[str], str]]:
    """
    Split help text on blank lines into (header, body) sections.

    Blocks without a header of their own belong to the section above them,
    so an EXAMPLES section keeps the indented examples that follow it.
    """
    sections: list[tuple[Optional[str], list[str]]] = []
    for chunk in re.split(r"\n\s*\n", help_text.strip()):
        lines = chunk.splitlines()
        if not lines:
            continue
        if _HEADER.match(lines[0].rstrip()):
            sections.append((lines[0].strip(), lines[1:]))
        elif sections and sections[-1][0] is not None:
            sections[-1][1].extend(["", *lines])
        else:
            sections.append((None, lines))

    return [(header, "\n".join(body).strip("\n")) for header, body in sections]


def _parse_description(sections: list[tuple[Optional[str], str]]) -> str:
    if not sections:
        return ""

    header, body = sections[0]
    first = _dedent(body) if header is None or header.upper() == "DESCRIPTION" else ""

    if len(first) < 10 or "USAGE" in first.upper() or first.lstrip().startswith("$"):
        for header, body in sections:
            if header and header.upper() == "DESCRIPTION" and body.strip():
                return _dedent(body)
    return first


def _dedent(text: str) -> str:
    return "\n".join(line.strip() for line in text.splitlines()).strip()


def _parse_examples(sections: list[tuple[Optional[str], str]], tool_name: str) -> list[str]:
    examples = []
    numbered = re.compile(rf"^\d+\.\s+(?=\$|{re.escape(tool_name)}\s)")
    for header, body in sections:
        if not header or not EXAMPLE_SECTIONS.search(header):
            continue
        for line in body.splitlines():
            text = numbered.sub("", line.strip())
            if text.startswith("$"):
                examples.append(text.lstrip("$ ").strip())
            elif text.startswith(f"{tool_name} "):
                examples.append(text)
    return examples


def _flag_from_match(match: re.Match) -> FlagDescriptor:
    groups = match.groupdict()
    raw = groups["description"].strip()
    required = bool(REQUIRED_MARKERS.search(raw))
    description = re.sub(r"\s{2,}", " ", REQUIRED_MARKERS.sub("", raw)).strip()
    options = _OPTIONS.search(raw)

    return FlagDescriptor(
        name=groups.get("name") or groups["char"],
        char=groups.get("char"),
        description=description,
        required=required,
        type=normalize_flag_type(groups.get("type") or groups.get("type2")),
        options=[o.strip() for o in options.group(1).split("|") if o.strip()] if options else None,
    )


def _parse_flags(body: str, info: HelpInfo) -> None:
    lines = body.splitlines()
    i = 0
    while i < len(lines):
        line = lines[i]
        matched = False
        for rule in FLAG_RULES:
            if i + rule.lines > len(lines):
                continue
            match = rule.pattern.match("\n".join(lines[i : i + rule.lines]))
            if match:
                flag = _flag_from_match(match)
                info.flags[flag.name] = flag
                i += rule.lines
                matched = True
                break

        if matched:
            continue

        if "--" in line or line.strip().startswith("-"):
            logger.debug(f"No pattern matched for potential flag line: {line.strip()!r}")
            info.misses.append(line.strip())
        i += 1


def parse_help_text(help_text: str, tool_name: str = "sf") -> HelpInfo:
    """
    Extract description, examples and flags from help output.

    Unfamiliar lines are skipped; flag-looking ones are reported in `misses`.
    """
    sections = split_sections(help_text or "")
    info = HelpInfo(
        description=_parse_description(sections),
        examples=_parse_examples(sections, tool_name),
    )

    for header, body in sections:
        if header and FLAG_SECTIONS.search(header):
            _parse_flags(body, info)

    return info
