"""Unit tests for near-duplicate grouping."""

from types import SimpleNamespace

import pytest

from ideation_system.collect.dedup import deduplicate, exclude_known, record_similarity
from ideation_system.text.url_canon import canonical_url


def rec(title, content="", url=None, id=None):
    return SimpleNamespace(id=id or title, title=title, content=content, url=url)


def test_same_url_different_titles_form_one_group():
    a = rec("Payments startups raise record rounds", "body one", url="https://news.example.com/a?utm_source=x")
    b = rec("Completely different headline here", "other text", url="https://NEWS.example.com/a/")
    result = deduplicate([a, b])

    assert result.uniques == [a]
    assert len(result.groups) == 1
    assert result.groups[0].similarities == [pytest.approx(0.95)]
    assert result.groups[0].size == 2
    assert result.groups[0].mean_similarity == pytest.approx(0.95)
    assert result.reduction_rate == pytest.approx(0.5)


def test_near_duplicate_titles_grouped():
    a = rec("Japan fintech startups raise record funding in 2024", "Investors poured money into payments")
    b = rec("Japan fintech startups raise record funding in 2024", "Investors poured money into payments apps")
    c = rec("Factory automation adoption stalls", "Manufacturers delay robot purchases")
    result = deduplicate([a, b, c])

    assert result.uniques == [a, c]
    assert result.removed_count == 1
    assert result.groups[0].representative is a


def test_deduplicate_is_idempotent():
    records = [
        rec("Alpha launch", "x y z"),
        rec("Alpha launch", "x y z"),
        rec("Beta growth story", "a b c"),
    ]
    once = deduplicate(records).uniques
    twice = deduplicate(once).uniques
    assert once == twice


def test_first_match_grouping_is_not_transitive():
    # b is close to a and to c, but a and c are not close to each other
    a = rec("one two three four five six")
    b = rec("one two three four five six seven eight")
    c = rec("three four five six seven eight nine")
    assert record_similarity(a, b) >= 0.4
    assert record_similarity(b, c) >= 0.4
    assert record_similarity(a, c) < 0.4
    result = deduplicate([a, b, c], threshold=0.4)
    assert a in result.uniques
    assert b not in result.uniques
    assert c in result.uniques


def test_empty_input():
    result = deduplicate([])
    assert result.uniques == []
    assert result.reduction_rate == 0.0


@pytest.mark.parametrize("threshold", [0, -0.1, 1.5])
def test_invalid_threshold(threshold):
    with pytest.raises(ValueError):
        deduplicate([rec("a")], threshold=threshold)


def test_exclude_known_drops_previously_accepted():
    known = [rec("Robotics funding surges", "series b rounds", url="https://a.example/1")]
    fresh = [
        rec("Another headline", "", url="https://a.example/1#comments"),
        rec("Quantum networking pilots", "telecom trials"),
    ]
    kept = exclude_known(fresh, known)
    assert [r.title for r in kept] == ["Quantum networking pilots"]


def test_canonical_url_normalization():
    assert canonical_url("HTTPS://Example.com/Path?b=2&a=1&utm_campaign=z#frag") == "https://example.com/Path?a=1&b=2"
    assert canonical_url("") == ""
