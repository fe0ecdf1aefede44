from __future__ import annotations

import itertools

import pytest

from edit_distance import edit_distance

WORDS = ["", "a", "kitten", "sitting", "saturday", "sunday", "flaw", "lawn", "hola", "hello world"]


def test_known_distances() -> None:
    assert edit_distance("kitten", "sitting") == 3
    assert edit_distance("saturday", "sunday") == 3
    assert edit_distance("flaw", "lawn") == 2


@pytest.mark.parametrize("word", WORDS)
def test_distance_to_self_is_zero(word: str) -> None:
    assert edit_distance(word, word) == 0


@pytest.mark.parametrize("word", WORDS)
def test_distance_from_empty_is_length(word: str) -> None:
    assert edit_distance("", word) == len(word)
    assert edit_distance(word, "") == len(word)


@pytest.mark.parametrize("a,b", list(itertools.combinations(WORDS, 2)))
def test_symmetric(a: str, b: str) -> None:
    assert edit_distance(a, b) == edit_distance(b, a)


@pytest.mark.parametrize("a,b,c", list(itertools.permutations(WORDS[:7], 3)))
def test_triangle_inequality(a: str, b: str, c: str) -> None:
    assert edit_distance(a, c) <= edit_distance(a, b) + edit_distance(b, c)


def test_long_inputs() -> None:
    a = "ab" * 500
    b = "ba" * 500
    assert edit_distance(a, b) == 2
    assert edit_distance(a, a + "c") == 1
