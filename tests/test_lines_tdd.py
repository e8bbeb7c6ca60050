from __future__ import annotations

import pytest
from hypothesis import given, strategies as st

from bingopedia.lines import detect_winning_lines, enumerate_lines, winning_cells


def row(r: int, n: int = 5):
    return [r * n + c for c in range(n)]


def test_standard_board_has_twelve_lines():
    lines = dict(enumerate_lines(5))
    assert len(lines) == 12
    assert lines["row-0"] == (0, 1, 2, 3, 4)
    assert lines["col-4"] == (4, 9, 14, 19, 24)
    assert lines["diag-main"] == (0, 6, 12, 18, 24)
    assert lines["diag-anti"] == (4, 8, 12, 16, 20)


def test_full_row_three_yields_exactly_row_three():
    assert detect_winning_lines(row(3), 5) == {"row-3"}


def test_four_of_five_is_not_a_win():
    assert detect_winning_lines(row(3)[:4], 5) == set()
    assert detect_winning_lines([0, 6, 12, 18], 5) == set()


def test_single_match_can_complete_row_and_diagonal():
    # 0 is the only cell missing from both row-0 and the main diagonal
    matched = {1, 2, 3, 4, 6, 12, 18, 24}
    assert detect_winning_lines(matched, 5) == set()
    matched.add(0)
    assert detect_winning_lines(matched, 5) == {"row-0", "diag-main"}


def test_empty_matched_set():
    assert detect_winning_lines([], 5) == set()


@given(n=st.integers(min_value=2, max_value=9), data=st.data())
def test_any_full_row_or_column_detected_for_any_size(n, data):
    r = data.draw(st.integers(min_value=0, max_value=n - 1))
    assert detect_winning_lines(row(r, n), n) == {f"row-{r}"}
    column = [i * n + r for i in range(n)]
    assert detect_winning_lines(column, n) == {f"col-{r}"}


@given(n=st.integers(min_value=1, max_value=9))
def test_line_count_and_bounds(n):
    lines = enumerate_lines(n)
    assert len(lines) == 2 * n + 2
    for _line_id, indices in lines:
        assert len(indices) == n
        assert all(0 <= i < n * n for i in indices)


def test_winning_cells_union_sorted():
    assert winning_cells({"row-0", "col-0"}, 5) == [0, 1, 2, 3, 4, 5, 10, 15, 20]


def test_invalid_size():
    with pytest.raises(ValueError):
        enumerate_lines(0)
