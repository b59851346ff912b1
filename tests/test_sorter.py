from datetime import timedelta

import pytest

from core.errors import ParseError, SortInvariantViolation, UnsupportedUnitError
from core.models import Item, ParsedItem
from core.sorter import finalize, sort_items, validate_order


def _item(id_, title, label):
    return Item(id=id_, title=title, relative_time_label=label)


def _assert_sorted(batch, tie_break="title"):
    for prev, cur in zip(batch.items, batch.items[1:]):
        assert prev.absolute_time > cur.absolute_time or (
            prev.absolute_time == cur.absolute_time
            and (prev.title <= cur.title if tie_break == "title" else prev.position < cur.position)
        )


def test_sorts_newest_first(now):
    items = [
        _item("1", "Old", "3 days ago"),
        _item("2", "Fresh", "just now"),
        _item("3", "Middle", "5 hours ago"),
    ]

    batch = finalize(items, now)

    assert [p.title for p in batch] == ["Fresh", "Middle", "Old"]
    assert batch.newest.absolute_time == now
    assert batch.oldest.absolute_time == now - timedelta(days=3)
    assert batch.time_span == timedelta(days=3)
    _assert_sorted(batch)


def test_equal_times_break_ties_by_title(now):
    items = [
        _item("1", "Banana", "2 hours ago"),
        _item("2", "Apple", "2 hours ago"),
        _item("3", "Cherry", "1 hour ago"),
    ]

    batch = finalize(items, now)

    assert [p.title for p in batch] == ["Cherry", "Apple", "Banana"]


def test_title_tie_break_uses_codepoint_order(now):
    items = [_item("1", "apple", "1 hour ago"), _item("2", "Zebra", "1 hour ago")]

    batch = finalize(items, now)

    assert [p.title for p in batch] == ["Zebra", "apple"]


def test_arrival_tie_break_keeps_page_order(now):
    items = [
        _item("1", "Banana", "2 hours ago"),
        _item("2", "Apple", "2 hours ago"),
        _item("3", "Cherry", "just now"),
    ]

    batch = finalize(items, now, tie_break="arrival")

    assert [p.title for p in batch] == ["Cherry", "Banana", "Apple"]
    assert batch.tie_break == "arrival"
    _assert_sorted(batch, "arrival")


def test_finalize_is_idempotent(now):
    items = [
        _item(str(i), f"Story {i % 7}", f"{i % 5} hours ago" if i % 5 else "just now")
        for i in range(30)
    ]
    by_id = {item.id: item for item in items}

    first = finalize(items, now)
    second = finalize([by_id[p.id] for p in first], now)

    assert [p.id for p in second] == [p.id for p in first]
    assert [p.absolute_time for p in second] == [p.absolute_time for p in first]


def test_parse_failure_names_the_item(now):
    items = [_item("1", "Good", "1 hour ago"), _item("2", "Broken story", "bogus")]

    with pytest.raises(ParseError) as excinfo:
        finalize(items, now)

    assert excinfo.value.title == "Broken story"
    assert excinfo.value.label == "bogus"
    assert "Broken story" in str(excinfo.value)


def test_unsupported_unit_names_the_item(now):
    items = [_item("1", "Odd", "5 fortnights ago")]

    with pytest.raises(UnsupportedUnitError) as excinfo:
        finalize(items, now)

    assert excinfo.value.context() == {
        "label": "5 fortnights ago",
        "title": "Odd",
        "unit": "fortnight",
    }


def test_missing_label_is_a_parse_error(now):
    with pytest.raises(ParseError):
        finalize([_item("1", "No age", None)], now)


def test_validate_order_reports_first_violation(now):
    items = [
        ParsedItem(id="1", title="A", absolute_time=now, position=0),
        ParsedItem(id="2", title="B", absolute_time=now - timedelta(hours=1), position=1),
        ParsedItem(id="3", title="C", absolute_time=now, position=2),
    ]

    with pytest.raises(SortInvariantViolation) as excinfo:
        validate_order(items)

    err = excinfo.value
    assert err.index == 2
    assert err.previous_title == "B"
    assert err.current_title == "C"
    assert err.current_time == now


def test_validate_order_catches_bad_tie_break(now):
    items = [
        ParsedItem(id="1", title="Banana", absolute_time=now, position=0),
        ParsedItem(id="2", title="Apple", absolute_time=now, position=1),
    ]

    with pytest.raises(SortInvariantViolation):
        validate_order(items, "title")
    validate_order(items, "arrival")


def test_sort_items_matches_validation(now):
    items = [
        ParsedItem(id=str(i), title=f"T{(i * 7) % 11}", absolute_time=now - timedelta(minutes=i % 4), position=i)
        for i in range(40)
    ]
    for tie_break in ("title", "arrival"):
        validate_order(sort_items(items, tie_break), tie_break)


def test_unknown_tie_break_is_rejected(now):
    with pytest.raises(ValueError):
        finalize([], now, tie_break="random")
