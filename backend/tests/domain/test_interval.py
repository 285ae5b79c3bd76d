from datetime import datetime, timedelta, timezone

import pytest
from scheduling.domain.errors import InvalidWindowError
from scheduling.domain.interval import (
    TimeWindow,
    clip,
    intersect,
    intersect_all,
    join_adjacent,
    merge_overlapping,
    subtract,
    subtract_all,
)

DAY = datetime(2024, 5, 6, tzinfo=timezone.utc)


def w(start_h: float, end_h: float) -> TimeWindow:
    return TimeWindow(DAY + timedelta(hours=start_h), DAY + timedelta(hours=end_h))


def test_rejects_empty_and_inverted_windows() -> None:
    with pytest.raises(InvalidWindowError):
        w(9, 9)
    with pytest.raises(InvalidWindowError):
        w(10, 9)


def test_rejects_naive_bounds() -> None:
    with pytest.raises(InvalidWindowError):
        TimeWindow(datetime(2024, 5, 6, 9), datetime(2024, 5, 6, 10))


def test_invalid_window_is_a_value_error() -> None:
    with pytest.raises(ValueError):
        w(11, 10)


def test_bounds_are_normalized_to_utc() -> None:
    tokyo = timezone(timedelta(hours=9))
    window = TimeWindow(datetime(2024, 5, 6, 18, tzinfo=tokyo), datetime(2024, 5, 6, 19, tzinfo=tokyo))
    assert window == w(9, 10)
    assert window.start.tzinfo == timezone.utc


def test_intersect_overlapping_and_touching() -> None:
    assert intersect(w(9, 11), w(10, 12)) == w(10, 11)
    assert intersect(w(9, 10), w(10, 11)) is None
    assert intersect(w(9, 10), w(12, 13)) is None


def test_subtract_yields_zero_one_or_two_pieces() -> None:
    assert subtract(w(9, 12), w(10, 11)) == [w(9, 10), w(11, 12)]
    assert subtract(w(9, 12), w(8, 10)) == [w(10, 12)]
    assert subtract(w(9, 12), w(8, 13)) == []
    assert subtract(w(9, 10), w(10, 11)) == [w(9, 10)]


def test_subtract_then_reunion_reconstructs_original() -> None:
    a = w(9, 13)
    for b in (w(10, 11), w(8, 10), w(12, 14), w(9, 13)):
        common = intersect(a, b)
        assert common is not None
        assert join_adjacent(subtract(a, b) + [common]) == [a]


def test_merge_overlapping_sorts_and_joins() -> None:
    merged = merge_overlapping([w(12, 13), w(9, 10.5), w(10, 11)])
    assert merged == [w(9, 11), w(12, 13)]


def test_merge_keeps_touching_windows_apart() -> None:
    assert merge_overlapping([w(10, 11), w(9, 10)]) == [w(9, 10), w(10, 11)]


def test_merge_is_idempotent_on_merged_input() -> None:
    merged = [w(8, 9), w(9, 10), w(11, 12.5), w(14, 15)]
    assert merge_overlapping(merged) == merged
    assert merge_overlapping(merge_overlapping(merged)) == merged


def test_merge_swallows_contained_windows() -> None:
    assert merge_overlapping([w(9, 17), w(10, 11), w(16, 17)]) == [w(9, 17)]


def test_join_adjacent_joins_touching_windows() -> None:
    assert join_adjacent([w(10, 11), w(9, 10), w(12, 13)]) == [w(9, 11), w(12, 13)]


def test_intersect_all_of_two_lists() -> None:
    xs = [w(9, 12), w(14, 18)]
    ys = [w(10, 15), w(17, 19)]
    assert intersect_all(xs, ys) == [w(10, 12), w(14, 15), w(17, 18)]


def test_subtract_all_removes_every_hole() -> None:
    result = subtract_all([w(9, 17)], [w(10, 11), w(10.5, 12), w(16, 18)])
    assert result == [w(9, 10), w(12, 16)]


def test_clip_drops_windows_outside_bounds() -> None:
    assert clip([w(7, 9), w(8, 10), w(11, 12)], w(9, 11.5)) == [w(9, 10), w(11, 11.5)]


def test_padded_widens_window_and_rejects_negative_padding() -> None:
    assert w(10, 11).padded(timedelta(minutes=30), timedelta(hours=1)) == w(9.5, 12)
    with pytest.raises(InvalidWindowError):
        w(10, 11).padded(timedelta(minutes=-5))
