"""Unit tests for page selection."""

import pytest

from invpa.extraction.selection import MAX_ANALYSIS_PAGES, select_pages_for_analysis


@pytest.mark.parametrize(
    ("ordinals", "expected"),
    [
        ([0], [0]),
        ([0, 1, 2], [0, 1, 2]),
        ([3, 4, 5, 6], [3, 4, 5, 6]),
        ([0, 1, 2, 3, 4], [0, 1, 3, 4]),
        (list(range(12)), [0, 1, 10, 11]),
    ],
)
def test_select_head_and_tail(ordinals: list[int], expected: list[int]) -> None:
    assert select_pages_for_analysis(ordinals) == expected


def test_unordered_input_is_sorted() -> None:
    assert select_pages_for_analysis([9, 2, 5, 0, 7]) == [0, 2, 7, 9]


def test_duplicates_are_ignored() -> None:
    """Test that a page listed twice does not count twice."""
    assert select_pages_for_analysis([0, 0, 1, 1, 2]) == [0, 1, 2]


def test_empty_group() -> None:
    assert select_pages_for_analysis([]) == []


@pytest.mark.parametrize("size", range(1, 15))
def test_selection_bounds(size: int) -> None:
    """Test that the result is a sorted subset of at most four pages."""
    ordinals = list(range(size))

    selected = select_pages_for_analysis(ordinals)

    assert len(selected) == min(size, MAX_ANALYSIS_PAGES)
    assert selected == sorted(selected)
    assert set(selected) <= set(ordinals)
    assert selected[0] == 0
    assert selected[-1] == size - 1
