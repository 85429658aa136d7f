import os
import sys

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'src')))

from similarity import edit_distance, find_best_candidate, score, similarity, tokenize


def test_edit_distance_classic():
    assert edit_distance("kitten", "sitting") == 3
    assert edit_distance("Такси", "такси") == 0


@pytest.mark.parametrize("a,b", [
    ("такси", "такса"),
    ("Рестораны", "рестарны"),
    ("", "Аптеки"),
    ("Сбер", "Сбербанк"),
])
def test_distance_and_similarity_are_symmetric(a, b):
    assert edit_distance(a, b) == edit_distance(b, a)
    assert similarity(a, b) == similarity(b, a)


def test_similarity_percent():
    assert similarity("", "") == 100.0
    assert similarity("abcd", "abce") == 75.0
    assert similarity("Такси", "такси") == 100.0


def test_tokenize_drops_stop_words_and_short_words():
    assert tokenize("Кафе и рестораны в городе") == ["кафе", "рестораны"]
    assert tokenize("АЗС/Топливо") == ["азс", "топливо"]
    assert tokenize("a 5 %") == []


@pytest.mark.parametrize("text", ["Такси", "Кафе и рестораны", "АЗС", "a", "", "  Такси  ", "Все покупки"])
def test_identical_string_scores_100(text):
    result = score(text, [text])
    assert result.score == 100
    assert result.distance == 0


@pytest.mark.parametrize("query,candidate,expected", [
    ("a", "abc", 33.333),
    ("Я", "Яндекс Такси", 8.333),
    ("!!", "Такси", 0.0),
    ("в", "Все покупки", 9.091),
])
def test_query_without_words_is_compared_whole(query, candidate, expected):
    result = score(query, [candidate])
    assert result.candidate == candidate
    assert result.score == pytest.approx(expected, abs=0.01)
    assert result.score == pytest.approx(similarity(query, candidate))
    assert result.distance == edit_distance(query, candidate)


def test_empty_candidates_returns_none():
    assert score("Такси", []) is None
    assert find_best_candidate("Такси", [None]) is None


def test_exact_category_wins():
    result = score("Такси", ["Такси", "Таксопарк"])
    assert result.candidate == "Такси"
    assert result.score == 100
    assert result.distance == 0


def test_exact_name_beats_earlier_containing_name():
    result = score("Альфа", ["Альфа-Банк", "Альфа"])
    assert result.candidate == "Альфа"


def test_bank_typo_finds_bank():
    result = score("Тинькоф", ["Тинькофф", "Сбер"])
    assert result.candidate == "Тинькофф"
    assert result.score > 60


def test_single_typo_scores_by_similarity():
    result = score("Такса", ["Такси"])
    assert result.score == pytest.approx(80.0)
    assert result.distance == 1


def test_multi_word_scores_are_averaged():
    result = score("такси мосва", ["Такси Москва"])
    assert result.score == pytest.approx(91.667, abs=0.01)
    assert result.distance == 1


def test_all_words_exact_scores_full():
    result = score("такси москва", ["Такси Москва Сити"])
    assert result.score == 100


def test_word_order_does_not_matter():
    candidates = ["Рестораны и кафе", "Кинотеатры"]
    assert score("кафе рестораны", candidates) == score("рестораны кафе", candidates)


def test_ties_go_to_earlier_candidate():
    assert score("abc", ["abd", "abe"]).candidate == "abd"
    assert score("такс", ["Таксопарк", "Такси"]).candidate == "Таксопарк"


def test_duplicates_are_scored_once():
    assert score("такси", ["Такси", "Такси"]).candidate == "Такси"
