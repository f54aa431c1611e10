"""Parsers for sf CLI output."""

from parsers.help_text import (
    FLAG_RULES,
    normalize_flag_type,
    parse_help_text,
    split_sections,
)

__all__ = [
    # Help text parsing
    "parse_help_text",
    "split_sections",
    "normalize_flag_type",
    "FLAG_RULES",
]
