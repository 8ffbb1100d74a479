from cmdkernel.suggestions import distance_threshold, levenshtein, suggest


def test_levenshtein_and_threshold() -> None:
    assert levenshtein("kitten", "sitting") == 3
    assert levenshtein("", "abc") == 3
    assert levenshtein("same", "same") == 0
    assert distance_threshold("abc") == 2
    assert distance_threshold("abcdef") == 3
    assert distance_threshold("a-very-long-flag-name") == 3


def test_close_flag_is_suggested() -> None:
    assert suggest("queryx", ["query", "list", "quit"]) == ["query"]
    assert suggest("--queryx", ["--query"]) == ["query"]


def test_at_most_three_suggestions_in_vocabulary_order_on_ties() -> None:
    assert suggest("aaa", ["aab", "aac", "aad", "aae", "aaf"]) == ["aab", "aac", "aad"]


def test_exact_candidate_is_never_returned() -> None:
    assert suggest("list", ["list", "lost"]) == ["lost"]
    for candidate in ["status", "stat", "s", "logs"]:
        vocabulary = ["status", "stats", "start", "logs", "list", "s"]
        assert candidate not in suggest(candidate, vocabulary)
        assert len(suggest(candidate, vocabulary)) <= 3


def test_prefix_ranks_ahead_of_equal_distance() -> None:
    assert suggest("stat", ["start", "stats"]) == ["stats", "start"]


def test_one_letter_candidates_need_a_prefix() -> None:
    assert suggest("l", ["list", "all", "loop"]) == ["list", "loop"]
    assert suggest("l", ["a", "b", "L"]) == ["L"]


def test_two_letter_candidates_allow_one_edit() -> None:
    assert suggest("pk", ["pl", "pm", "power-limit"]) == ["pl", "pm"]
    assert suggest("pl", ["power-limit", "apply", "pm"]) == ["pm", "apply"]
    assert suggest("po", ["pm", "power-limit"]) == ["power-limit", "pm"]


def test_no_suggestions_for_distant_or_empty_input() -> None:
    assert suggest("zzzzzz", ["query", "list"]) == []
    assert suggest("", ["query"]) == []
    assert suggest("query", ["querx"], limit=0) == []


def test_suggestions_are_deterministic() -> None:
    vocabulary = ["discovery", "diag", "health", "group", "stats", "policy"]
    first = suggest("dag", vocabulary)
    assert first == suggest("dag", vocabulary)
    assert first[0] == "diag"
