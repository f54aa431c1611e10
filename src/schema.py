"""
Flag schema synthesis: turn loosely-typed sf flag metadata into pydantic
field definitions, argument models and tool signatures.
"""

import inspect
import keyword
import re
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field, create_model
from pydantic.fields import FieldInfo

from models import CommandDescriptor, FlagDescriptor

NUMERIC_TYPES = {"number", "integer", "int"}
BOOLEAN_TYPES = {"boolean", "flag"}
ARRAY_TYPES = {"array", "string[]"}
JSON_TYPES = {"json", "object"}


def flag_annotation(flag: FlagDescriptor) -> Any:
    """
    Map a flag to the python type its values must satisfy.

    Non-empty options always produce an enumeration, even for flags
    reported as numeric or boolean.
    """
    if flag.options:
        choices = Literal[tuple(flag.options)]
        if flag.type in ARRAY_TYPES:
            return list[choices]
        return choices

    if flag.type in NUMERIC_TYPES:
        return Union[int, float]
    if flag.type in BOOLEAN_TYPES:
        return bool
    if flag.type in ARRAY_TYPES:
        return list[str]
    if flag.type in JSON_TYPES:
        return Union[str, dict[str, Any]]

    # file, directory, path, email, url, date, datetime, id and anything unknown
    return str


def _field_kwargs(flag: FlagDescriptor, alias: Optional[str]) -> dict[str, Any]:
    kwargs: dict[str, Any] = {}
    if flag.description:
        kwargs["description"] = flag.description
    if alias:
        kwargs["alias"] = alias
    return kwargs


def flag_to_field(flag: FlagDescriptor, alias: Optional[str] = None) -> tuple[Any, FieldInfo]:
    """Build the (annotation, FieldInfo) pair validating one flag."""
    annotation = flag_annotation(flag)
    kwargs = _field_kwargs(flag, alias)

    if flag.required:
        return annotation, Field(**kwargs)
    return Optional[annotation], Field(default=None, **kwargs)


# --- Parameter Names ---

_RESERVED = set(dir(BaseModel))


def _safe_param_name(flag_name: str) -> str:
    """Turn a flag name like 'target-org' into a usable python identifier."""
    name = re.sub(r"\W", "_", flag_name)
    if not name or name[0].isdigit() or name.startswith("_"):
        name = f"flag_{name.lstrip('_')}"
    if keyword.iskeyword(name) or name in _RESERVED:
        name = f"{name}_"
    return name


def param_names(command: CommandDescriptor) -> dict[str, str]:
    """Map each flag of a command to a unique python parameter name."""
    mapping: dict[str, str] = {}
    taken: set[str] = set()
    for flag in command.flags:
        base = _safe_param_name(flag.name)
        name = base
        n = 2
        while name in taken:
            name = f"{base}_{n}"
            n += 1
        taken.add(name)
        mapping[flag.name] = name
    return mapping


# --- Models and Signatures ---


def build_arguments_model(command: CommandDescriptor) -> type[BaseModel]:
    """Create a pydantic model accepting a command's flags by their sf names."""
    names = param_names(command)
    fields = {}
    for flag in command.flags:
        param = names[flag.name]
        fields[param] = flag_to_field(flag, alias=flag.name if param != flag.name else None)

    model_name = re.sub(r"\W", "_", command.id.title()) + "Arguments"
    return create_model(model_name, **fields)


def build_tool_signature(
    command: CommandDescriptor,
    arguments_model: Optional[type[BaseModel]] = None,
) -> tuple[inspect.Signature, dict[str, str]]:
    """
    Build the signature FastMCP derives a tool's input schema from.

    The parameters are read off the arguments model's fields, so the model
    and the published schema cannot disagree. Returns the signature and a
    map from parameter name back to flag name. Flags whose names are not
    python identifiers keep their sf name as the field alias so the
    published schema still says e.g. 'target-org'.
    """
    if arguments_model is None:
        arguments_model = build_arguments_model(command)

    parameters = []
    flag_names = {}
    for param, field in arguments_model.model_fields.items():
        annotation = field.annotation
        kwargs = {}
        if field.description:
            kwargs["description"] = field.description
        if field.alias:
            kwargs["alias"] = field.alias
        if kwargs:
            annotation = Annotated[annotation, Field(**kwargs)]

        parameters.append(
            inspect.Parameter(
                param,
                inspect.Parameter.KEYWORD_ONLY,
                default=inspect.Parameter.empty if field.is_required() else field.default,
                annotation=annotation,
            )
        )
        flag_names[param] = field.alias or param

    signature = inspect.Signature(parameters, return_annotation=str)
    return signature, flag_names
