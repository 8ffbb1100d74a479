from cmdkernel.models import PrerequisiteRule
from cmdkernel.prerequisites import check_prerequisites, rule_matches, rule_requires_root

POWER = PrerequisiteRule("nvidia-smi", frozenset({"power-limit", "gpu-reset"}))
FAILOVER = PrerequisiteRule("bcm ha failover")
ADVISORY = PrerequisiteRule("ipmitool", requires_root=False)


def test_rule_matching_forms() -> None:
    assert rule_matches(FAILOVER, "bcm ha failover")
    assert rule_matches(POWER, "nvidia-smi nvlink")
    assert not rule_matches(POWER, "nvidia-smix")
    assert not rule_matches(FAILOVER, "bcm ha")
    assert rule_matches(PrerequisiteRule("bcm job *"), "bcm job cancel")


def test_root_caller_is_never_denied() -> None:
    assert check_prerequisites("bcm ha failover", [], True, [FAILOVER]) is None
    assert check_prerequisites("nvidia-smi", ["power-limit"], True, [POWER]) is None


def test_unconditional_rule_denies_non_root() -> None:
    denial = check_prerequisites("bcm ha failover", [], False, [FAILOVER])
    assert denial is not None
    assert denial.rule == FAILOVER
    assert denial.operation == "this operation"


def test_flag_rule_needs_a_listed_flag() -> None:
    assert check_prerequisites("nvidia-smi", ["query"], False, [POWER]) is None
    denial = check_prerequisites("nvidia-smi", ["--power-limit", "id"], False, [POWER])
    assert denial is not None
    assert denial.flags == ("power-limit",)
    assert denial.operation == "option 'power-limit'"

    both = check_prerequisites("nvidia-smi", ["power-limit", "gpu-reset"], False, [POWER])
    assert both is not None
    assert both.operation == "options 'gpu-reset', 'power-limit'"


def test_rules_not_requiring_root_are_ignored() -> None:
    assert check_prerequisites("ipmitool sensor", [], False, [ADVISORY]) is None


def test_first_matching_rule_wins() -> None:
    denial = check_prerequisites("bcm ha failover", [], False, [ADVISORY, FAILOVER, PrerequisiteRule("bcm")])
    assert denial is not None
    assert denial.rule == FAILOVER


def test_rule_requires_root_for_flag() -> None:
    rules = [POWER, FAILOVER]
    assert rule_requires_root("nvidia-smi", "--power-limit", rules)
    assert not rule_requires_root("nvidia-smi", "query", rules)
    assert rule_requires_root("bcm ha failover", "json", rules)
    assert not rule_requires_root("ipmitool", "v", [ADVISORY])
