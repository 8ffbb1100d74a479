from cmdkernel import results
from cmdkernel.formatters import ANSI
from cmdkernel.models import PRESENT, ParsedCommand, ValueFlag


def _plain(text: str) -> str:
    for code in (ANSI.RED, ANSI.RESET):
        text = text.replace(code, "")
    return text


def _parsed(**flags: object) -> ParsedCommand:
    return ParsedCommand(base_command="tool", flags=flags)


def test_envelopes_and_exit_codes() -> None:
    assert results.success("ok").exit_code == 0
    assert results.error("boom").exit_code == 1
    assert results.error("boom").output == f"{ANSI.RED}boom{ANSI.RESET}"

    denied = results.permission_error("nvidia-smi", "option 'power-limit'")
    assert denied.exit_code == 13
    assert _plain(denied.output) == "nvidia-smi: Permission denied: option 'power-limit' requires root privileges"

    missing = results.device_not_found_error("nvidia-smi", "9")
    assert missing.exit_code == 2
    assert _plain(missing.output) == "nvidia-smi: Error: Device not found: 9"

    invalid = results.invalid_flag_error("sinfo", "-z")
    assert invalid.exit_code == 2
    assert "invalid option -- 'z'" in invalid.output

    argument = results.missing_argument_error("bcm", "job-id")
    assert argument.exit_code == 1
    assert "missing required argument: job-id" in argument.output


def test_flag_suggestion_error_text() -> None:
    one = results.flag_suggestion_error("dcgmi", "queryx", ["query"])
    assert one.exit_code == 2
    assert _plain(one.output) == (
        "dcgmi: unrecognized option '--queryx'\nDid you mean '--query'?\nTry 'dcgmi --help' for more information."
    )

    many = results.flag_suggestion_error("tool", "z", ["a", "bb"])
    assert "Did you mean one of: '-a', '--bb'?" in many.output

    none = results.flag_suggestion_error("tool", "zzz")
    assert "Did you mean" not in none.output


def test_subcommand_suggestion_error_text() -> None:
    one = results.subcommand_suggestion_error("bcm", "jbo", ["job"])
    assert one.exit_code == 1
    assert _plain(one.output) == "bcm: 'jbo' is not a bcm command.\nDid you mean 'job'?\nSee 'bcm --help'."
    many = results.subcommand_suggestion_error("bcm", "lgs", ["logs", "list"])
    assert "Similar commands: logs, list" in many.output


def test_internal_error() -> None:
    result = results.internal_error(RuntimeError("disk on fire"))
    assert result.exit_code == 1
    assert _plain(result.output) == "Internal error: disk on fire"


def test_require_flags_accepts_any_spelling() -> None:
    parsed = _parsed(group=ValueFlag("1"))
    assert results.require_flags(parsed, ("g", "group")) is None
    missing = results.require_flags(parsed, ("g", "group"), ("r", "run"))
    assert missing is not None
    assert _plain(missing.output) == "Missing required flag: -r/--run"


def test_flag_getters() -> None:
    parsed = _parsed(lines=ValueFlag("50"), ratio=ValueFlag("0.5"), follow=PRESENT, mode=ValueFlag("off"))
    assert results.get_flag(parsed, ["n", "lines"]) == ValueFlag("50")
    assert results.get_flag(parsed, "missing", PRESENT) is PRESENT
    assert results.get_flag_string(parsed, "lines") == "50"
    assert results.get_flag_string(parsed, "follow", "x") == "x"
    assert results.get_flag_number(parsed, ["n", "lines"]) == 50
    assert isinstance(results.get_flag_number(parsed, "lines"), int)
    assert results.get_flag_number(parsed, "ratio") == 0.5
    assert results.get_flag_number(parsed, "follow", 7) == 7
    assert results.get_flag_bool(parsed, "follow")
    assert not results.get_flag_bool(parsed, "mode", True)
    assert results.get_flag_bool(parsed, "missing", True)


def test_field_checks() -> None:
    assert results.validate_positive_int("5", "lines").value == 5
    assert results.validate_positive_int("abc", "lines").error == "Invalid number: 'abc'"
    assert results.validate_positive_int("0", "lines").error == "lines must be positive: 0"
    assert results.validate_in_set("3", ["1", "2", "3"], "level").valid
    check = results.validate_in_set("9", ["1", "2", "3"], "level")
    assert check.error == "Invalid level: '9'. Valid options: 1, 2, 3"


def test_format_table() -> None:
    assert results.format_table(["A", "Name"], [["1", "x"]]) == (
        "+---+------+\n| A | Name |\n+---+------+\n| 1 | x    |\n+---+------+"
    )
    assert results.format_table(["A"], [], widths=[3]) == "+-----+\n| A   |\n+-----+\n+-----+"
