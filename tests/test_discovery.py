"""
Tests for command discovery from `sf commands --json` and the help-text fallback.

Run with: pytest tests/test_discovery.py -v
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from conftest import COMMAND_LISTING, FakeRunner, ok, ok_json
from discovery import (
    HelpTextSource,
    JsonListingSource,
    discover_commands,
    is_ignored,
    parse_command_listing,
    split_command_id,
)


class TestCommandIds:
    def test_split_nested_id(self):
        assert split_command_id("apex:log:get") == ("get", "apex:log")

    def test_split_top_level_id(self):
        assert split_command_id("version") == ("version", None)

    def test_ignored_topics_case_insensitive(self):
        assert is_ignored("help")
        assert is_ignored("Alias:set")
        assert is_ignored("WHATSNEW")
        assert not is_ignored("org:list")
        assert not is_ignored("helpful:thing")


class TestParseCommandListing:
    def test_filters_ignored_topics(self):
        ids = [c.id for c in parse_command_listing(COMMAND_LISTING)]
        assert ids == ["apex:log:get", "org:list", "project:deploy:start", "version"]

    def test_full_command_replaces_every_separator(self):
        for command in parse_command_listing(COMMAND_LISTING):
            assert command.full_command == command.id.replace(":", " ")
            assert ":" not in command.full_command

    def test_name_and_topic(self):
        commands = {c.id: c for c in parse_command_listing(COMMAND_LISTING)}
        assert commands["apex:log:get"].name == "get"
        assert commands["apex:log:get"].topic == "apex:log"
        assert commands["version"].topic is None

    def test_description_fallbacks(self):
        commands = parse_command_listing(
            [
                {"id": "a:one", "summary": "Summary", "description": "Long"},
                {"id": "a:two", "description": "Long"},
                {"id": "a:three"},
            ]
        )
        assert [c.description for c in commands] == ["Summary", "Long", "a:three"]

    def test_flag_defaults(self):
        command = parse_command_listing(
            [{"id": "x:y", "flags": {"plain": {}, "pick": {"type": "option", "options": ["a", "b"], "char": "p", "default": "a"}}}]
        )[0]
        plain, pick = command.flags
        assert plain.type == "string"
        assert plain.required is False
        assert plain.description == ""
        assert pick.options == ["a", "b"]
        assert pick.char == "p"
        assert pick.default == "a"

    def test_skips_malformed_entries(self):
        commands = parse_command_listing([{"summary": "no id"}, {"id": 42}, "junk", {"id": "ok:cmd"}])
        assert [c.id for c in commands] == ["ok:cmd"]

    def test_malformed_flags_are_dropped(self):
        commands = parse_command_listing(
            [{"id": "org:open", "flags": ["target-org"]}, {"id": "org:list", "flags": "all"}]
        )
        assert [c.id for c in commands] == ["org:open", "org:list"]
        assert all(c.flags == [] for c in commands)

    def test_malformed_flags_do_not_abort_discovery(self):
        runner = FakeRunner(
            {"commands --json": ok_json([{"id": "org:list", "flags": {}}, {"id": "org:open", "flags": ["target-org"]}])}
        )
        assert [c.id for c in discover_commands(runner)] == ["org:list", "org:open"]

    def test_drops_duplicate_ids(self):
        commands = parse_command_listing([{"id": "a:b", "summary": "first"}, {"id": "a:b", "summary": "second"}])
        assert len(commands) == 1
        assert commands[0].description == "first"


class TestJsonListingSource:
    def test_runs_listing_once(self, runner):
        commands = JsonListingSource(runner).list_commands()
        assert len(commands) == 4
        assert runner.calls == [(["commands", "--json"], None)]

    def test_spawn_failure_yields_empty_list(self):
        runner = FakeRunner({"commands --json": FileNotFoundError("sf")})
        assert JsonListingSource(runner).list_commands() == []

    def test_unparsable_output_yields_empty_list(self):
        runner = FakeRunner({"commands --json": ok("Warning: something broke")})
        assert JsonListingSource(runner).list_commands() == []

    def test_non_array_output_yields_empty_list(self):
        runner = FakeRunner({"commands --json": ok_json({"status": 1, "message": "error"})})
        assert JsonListingSource(runner).list_commands() == []


HELP_ORG_LIST = """List all orgs you've created or authenticated to.

USAGE
  $ sf org list [--json] [--all]

FLAGS
  --all    Include expired, deleted, and unknown-status scratch orgs.
"""


class TestHelpFallback:
    def test_help_source_builds_commands(self):
        runner = FakeRunner({"org list --help": ok(HELP_ORG_LIST)})
        commands = HelpTextSource(runner, ["org:list"]).list_commands()
        assert len(commands) == 1
        command = commands[0]
        assert command.full_command == "org list"
        assert command.description == "List all orgs you've created or authenticated to."
        assert [f.name for f in command.flags] == ["all"]
        assert command.flags[0].type == "boolean"

    def test_help_source_skips_commands_without_help(self):
        runner = FakeRunner({"org list --help": ok(HELP_ORG_LIST)})
        commands = HelpTextSource(runner, ["org:list", "nope:cmd", "help"]).list_commands()
        assert [c.id for c in commands] == ["org:list"]

    def test_fallback_disabled_by_default(self):
        runner = FakeRunner({"commands --json": ok("not json"), "org list --help": ok(HELP_ORG_LIST)})
        assert discover_commands(runner, fallback_command_ids=["org:list"]) == []
        assert not runner.called("org list --help")

    def test_fallback_used_when_listing_fails(self):
        runner = FakeRunner({"commands --json": ok("not json"), "org list --help": ok(HELP_ORG_LIST)})
        commands = discover_commands(runner, help_fallback=True, fallback_command_ids=["org:list"])
        assert [c.id for c in commands] == ["org:list"]

    def test_listing_wins_over_fallback(self, runner):
        commands = discover_commands(runner, help_fallback=True, fallback_command_ids=["org:list"])
        assert len(commands) == 4
        assert not runner.called("org list --help")
