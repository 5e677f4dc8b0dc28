import pytest

from linkshield.core.keywords import KeywordScorer
from linkshield.core.normalizer import default_normalizer


@pytest.fixture
def keyword_scorer():
    return KeywordScorer()


def score_of(keyword_scorer, url):
    return keyword_scorer.score(default_normalizer.parse(url))


@pytest.mark.parametrize("url,expected", [
    ("https://evil.com/login-verify", 20),       # two high-weight, capped
    ("https://evil.com/support-service", 10),    # two low-weight
    ("https://evil.com/login-support", 20),      # 15 + 5
    ("https://secure-login.com/", 20),           # host labels count too
    ("https://evil.com/promo/bonus/hadiah", 10), # low tier capped
])
def test_tiered_scores(keyword_scorer, url, expected):
    score, reason = score_of(keyword_scorer, url)

    assert score == expected
    assert reason.startswith("Contains suspicious keywords: ")


def test_single_keyword_is_not_enough(keyword_scorer):
    assert score_of(keyword_scorer, "https://evil.com/login") == (0, None)


def test_repeated_keyword_counts_once(keyword_scorer):
    assert score_of(keyword_scorer, "https://evil.com/account/account")[0] == 0


def test_query_and_fragment_are_ignored(keyword_scorer):
    url = "https://evil.com/page?action=login&step=verify#secure-account"
    assert score_of(keyword_scorer, url) == (0, None)


def test_reason_lists_matched_keywords(keyword_scorer):
    _, reason = score_of(keyword_scorer, "https://evil.com/verify/password")
    assert reason == "Contains suspicious keywords: password, verify"
