from cmdkernel.definition_loader import definitions_from_dicts
from cmdkernel.models import PRESENT, ValueFlag
from cmdkernel.parser import ParseSchema, base_command, parse, tokenize
from cmdkernel.registry import CommandRegistry

TOOL = {
    "command": "tool",
    "global_options": [
        {"short": "v", "long": "verbose"},
        {"short": "d", "long": "delete"},
        {"short": "l", "long": "list"},
        {"short": "c", "long": "color"},
        {"short": "n", "long": "count", "arguments": "N"},
    ],
    "subcommands": [
        {
            "name": "job",
            "subcommands": [
                {"name": "logs", "options": [{"short": "t", "long": "tail", "arguments": "LINES"}]},
                {"name": "list"},
            ],
        },
        {"name": "status"},
    ],
}
FLAT = {"command": "flat", "global_options": [{"short": "q", "long": "quiet"}]}


def _registry() -> CommandRegistry:
    return CommandRegistry(definitions_from_dicts([TOOL, FLAT]))


def _schema(tool: str = "tool") -> ParseSchema:
    schema = _registry().get_parse_schema(tool)
    assert schema is not None
    return schema


def test_tokenize_groups_quotes() -> None:
    tokens, pipe = tokenize("echo \"hello world\" 'a b'")
    assert tokens == ["echo", "hello world", "a b"]
    assert pipe is None


def test_tokenize_escapes_and_unterminated_quote() -> None:
    assert tokenize(r"say \"hi\"")[0] == ["say", '"hi"']
    assert tokenize(r"grep a\|b")[0] == ["grep", "a|b"]
    assert tokenize('grep "abc')[0] == ["grep", "abc"]


def test_pipe_segment_is_kept_verbatim() -> None:
    parsed = parse("nvidia-smi -q | grep  Temp")
    assert parsed.flags == {"q": PRESENT}
    assert parsed.pipe_segment == "grep  Temp"
    assert parsed.raw_args == ("-q", "|", "grep  Temp")
    assert parsed.raw == "nvidia-smi -q | grep  Temp"


def test_quoted_pipe_is_not_a_pipe() -> None:
    parsed = parse('echo "a|b"')
    assert parsed.pipe_segment is None
    assert parsed.subcommands == ("a|b",)


def test_heuristic_without_schema() -> None:
    parsed = parse("sinfo -p gpu -l")
    assert parsed.flags == {"p": ValueFlag("gpu"), "l": PRESENT}
    assert parse("x -a -b").flags == {"a": PRESENT, "b": PRESENT}
    assert parse("x --format=csv").flags == {"format": ValueFlag("csv")}


def test_schema_boolean_flags_never_consume_next_token() -> None:
    schema = _schema()
    for spelling, canonical in [("v", "verbose"), ("d", "delete"), ("l", "list"), ("color", "color")]:
        flag = f"-{spelling}" if len(spelling) == 1 else f"--{spelling}"
        parsed = parse(f"tool {flag} target", schema)
        assert parsed.flags == {canonical: PRESENT}
        assert parsed.positional_args == ("target",)


def test_schema_value_flags_consume_next_token() -> None:
    schema = _schema()
    assert parse("tool -n 5", schema).flags == {"count": ValueFlag("5")}
    assert parse("tool --count=7", schema).flags == {"count": ValueFlag("7")}
    assert parse("tool -n -3", schema).flags == {"count": ValueFlag("-3")}


def test_short_and_long_spellings_share_one_key() -> None:
    parsed = parse("tool -v --verbose", _schema())
    assert list(parsed.flags) == ["verbose"]


def test_bundled_boolean_short_flags_expand() -> None:
    schema = _schema()
    assert parse("tool -lc", schema).flags == {"list": PRESENT, "color": PRESENT}
    # A value-taking letter prevents expansion.
    assert parse("tool -ln 3", schema).flags == {"ln": ValueFlag("3")}


def test_double_dash_stops_flag_parsing() -> None:
    parsed = parse("tool -- -v file", _schema())
    assert parsed.flags == {}
    assert parsed.positional_args == ("-v", "file")


def test_nested_subcommands_are_matched_recursively() -> None:
    parsed = parse("tool job logs 42 -t 10", _schema())
    assert parsed.subcommands == ("job", "logs")
    assert parsed.positional_args == ("42",)
    assert parsed.flags == {"tail": ValueFlag("10")}
    assert parsed.command_path == "tool job logs"


def test_unknown_first_subcommand_is_kept_for_validation() -> None:
    parsed = parse("tool jbo list", _schema())
    assert parsed.subcommands == ("jbo",)
    assert parsed.positional_args == ("list",)


def test_unknown_nested_subcommand_is_kept_for_validation() -> None:
    parsed = parse("tool job lgs 42", _schema())
    assert parsed.subcommands == ("job", "lgs")
    assert parsed.positional_args == ("42",)
    # Leaf levels keep word arguments as positionals.
    assert parse("tool job logs web-01", _schema()).positional_args == ("web-01",)


def test_tool_without_subcommands_has_only_positionals() -> None:
    parsed = parse("flat foo bar -q", _schema("flat"))
    assert parsed.subcommands == ()
    assert parsed.positional_args == ("foo", "bar")
    assert parsed.flags == {"quiet": PRESENT}


def test_numbers_and_assignments_end_subcommand_run_without_schema() -> None:
    parsed = parse("scontrol show job 42")
    assert parsed.subcommands == ("show", "job")
    assert parsed.positional_args == ("42",)
    assert parse("scontrol update State=DRAIN").positional_args == ("State=DRAIN",)


def test_parsing_is_idempotent() -> None:
    schema = _schema()
    for line in ["tool job logs 7 -t 3", "tool -lc -n 2 x", "tool status | wc -l", "other -a b --c=d"]:
        assert parse(line, schema) == parse(line, schema)
        assert parse(line) == parse(line)


def test_boolean_flags_round_trip_through_argument_list() -> None:
    schema = _schema()
    parsed = parse("tool status -v -l --color", schema)
    rebuilt = " ".join(["tool", *parsed.to_args()])
    assert rebuilt == "tool status --verbose --list --color"
    again = parse(rebuilt, schema)
    assert again.flags == parsed.flags
    assert again.subcommands == parsed.subcommands


def test_parse_never_raises_on_malformed_input() -> None:
    schema = _schema()
    for line in ["", "   ", '"', "-", "--", "| grep x", "tool ---x", "tool 'unterminated", "tool -"]:
        parse(line, schema)
        parse(line)
    assert parse("").base_command == ""
    assert parse("| grep x").pipe_segment == "grep x"


def test_base_command_and_describe() -> None:
    assert base_command("  nvidia-smi -q") == "nvidia-smi"
    assert base_command("") == ""
    text = parse("tool job logs 42 -t 10", _schema()).describe()
    assert "Base command: tool" in text
    assert "Subcommands: job -> logs" in text
    assert "--tail=10" in text
