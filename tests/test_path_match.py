import pytest

from miclaw.tools.path_match import match_path_pattern


@pytest.mark.parametrize("target", ["a.go", "sub/a.go", "x/y/z.go"])
def test_pattern_without_slash_matches_base_name(target):
    assert match_path_pattern("*.go", target) is True


def test_pattern_without_slash_rejects_other_extension():
    assert match_path_pattern("*.go", "c.txt") is False


@pytest.mark.parametrize("target", ["a.txt", "sub/b.txt", "x/y/z.txt"])
def test_double_star_spans_zero_or_more_directories(target):
    assert match_path_pattern("**/*.txt", target) is True


def test_double_star_still_checks_last_segment():
    assert match_path_pattern("**/*.txt", "sub/b.md") is False


@pytest.mark.parametrize("target", ["a", "a/b", "a/b/c.txt"])
def test_trailing_double_star_matches_everything(target):
    assert match_path_pattern("**", target) is True
    assert match_path_pattern("a/**", target) is True


def test_star_does_not_cross_directories():
    assert match_path_pattern("sub/*.txt", "sub/b.txt") is True
    assert match_path_pattern("sub/*.txt", "sub/deep/b.txt") is False
    assert match_path_pattern("sub/*.txt", "a.txt") is False


@pytest.mark.parametrize("target", ["sub/b.txt", "sub/deep/b.txt", "a.txt"])
def test_dot_slash_prefix_and_trailing_slash_are_ignored(target):
    plain = match_path_pattern("sub/*.txt", target)
    assert match_path_pattern("./sub/*.txt", target) == plain
    assert match_path_pattern("sub/*.txt", "./" + target) == plain
    assert match_path_pattern("sub/*.txt/", target) == plain


def test_question_mark_matches_exactly_one_character():
    assert match_path_pattern("a?c", "abc") is True
    assert match_path_pattern("a?c", "ac") is False


def test_character_classes():
    assert match_path_pattern("[a-c].txt", "b.txt") is True
    assert match_path_pattern("[a-c].txt", "d.txt") is False
    assert match_path_pattern("[^a].txt", "a.txt") is False
    assert match_path_pattern("[^a].txt", "b.txt") is True


def test_escaped_star_is_literal():
    assert match_path_pattern("\\*.txt", "*.txt") is True
    assert match_path_pattern("\\*.txt", "a.txt") is False


@pytest.mark.parametrize("pattern", ["[", "[]", "a[b", "x\\"])
def test_malformed_pattern_never_matches(pattern):
    assert match_path_pattern(pattern, "a") is False
    assert match_path_pattern(pattern, pattern) is False