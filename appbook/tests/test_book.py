from __future__ import annotations

import datetime as dt

import pytest

from appbook.book import (
    AppointmentNotFoundError,
    Book,
    DateQuery,
    DescriptionQuery,
    EditStatus,
    for_date,
    for_description,
    overlaps,
)
from appbook.domain import (
    Appointment,
    DateParseError,
    DurationFormatError,
    InvalidDurationError,
    InvalidFieldError,
)

LINES = [
    "24-12-2018 | 09-13 | 127 | Gun De Ambrosi         | 64277 Pleasure Pass",
    "03-02-2019 | 08-57 | 123 | Kirbie Sterman         | 3 Scofield Way",
    "05-12-2018 | 05-55 | 54  | Fredra Robilart        | 1622 Marcy Center",
    "27-01-2019 | 17-48 | 54  | Trip Dameisele         | 061 Westerfield Lane",
    "30-12-2018 | 05-04 | 167 | Essa Cranshaw          | 5884 Esker Plaza",
]


def _a(date: str, time: str, duration: int, description: str = "X", place: str = "Y") -> Appointment:
    return Appointment.create(date, time, duration, description, place)


@pytest.fixture
def book() -> Book:
    b = Book("agenda.csv")
    for line in LINES:
        assert b.add(Appointment.parse_line(line)) is None
    return b


def test_new_book_is_empty_and_bound_to_path() -> None:
    b = Book()
    assert len(b) == 0
    assert list(b) == []
    assert b.path == "book.csv"

    b.path = "other.csv"
    assert b.path == "other.csv"


def test_changing_path_keeps_contents(book: Book) -> None:
    before = book.appointments
    book.path = "elsewhere.csv"
    assert book.appointments == before


def test_overlap_scenario_from_empty_book() -> None:
    b = Book()
    first = _a("24-12-2018", "09-13", 127, "Gun", "64277 Pleasure Pass")
    assert b.add(first) is None

    # 10:00 starts before 09:13 + 127 min = 11:20.
    assert b.add(_a("24-12-2018", "10-00", 30)) == first
    assert len(b) == 1

    # Touching at 11:20 is allowed.
    assert b.add(_a("24-12-2018", "11-20", 30)) is None
    assert len(b) == 2


def test_touching_intervals_do_not_overlap() -> None:
    a = _a("24-12-2018", "09-00", 60)
    b = _a("24-12-2018", "10-00", 60)
    assert overlaps(a, b) is False
    assert overlaps(b, a) is False


def test_touching_across_midnight() -> None:
    a = _a("24-12-2018", "23-00", 60)
    b = _a("25-12-2018", "00-00", 60)
    c = _a("25-12-2018", "00-00", 1)
    assert not overlaps(a, b)
    assert overlaps(b, c)


def test_identical_intervals_overlap_even_with_different_text() -> None:
    a = _a("24-12-2018", "09-00", 60, "Alice", "Office")
    b = _a("24-12-2018", "09-00", 60, "Bob", "Home")
    assert overlaps(a, b)
    assert overlaps(a, a)


@pytest.mark.parametrize(
    "x, y, expected",
    [
        (("24-12-2018", "09-00", 60), ("24-12-2018", "09-30", 60), True),
        (("24-12-2018", "09-00", 120), ("24-12-2018", "09-30", 10), True),
        (("24-12-2018", "09-00", 60), ("24-12-2018", "09-00", 30), True),
        (("24-12-2018", "09-00", 60), ("24-12-2018", "10-01", 10), False),
        (("24-12-2018", "09-00", 60), ("23-12-2018", "09-00", 60), False),
    ],
)
def test_overlap_is_symmetric(x: tuple, y: tuple, expected: bool) -> None:
    a, b = _a(*x), _a(*y)
    assert overlaps(a, b) is expected
    assert overlaps(b, a) is expected


def test_end_is_wall_clock_start_plus_duration_on_dst_change() -> None:
    # Europe/Rome falls back at 03:00 on 28-10-2018: 02:00-03:00 happens twice.
    # 01-30 + 120 min (wall clock) ends at 03-30 local.
    long_night = _a("28-10-2018", "01-30", 120)
    early = _a("28-10-2018", "03-30", 30)
    assert long_night.end_instant == dt.datetime(2018, 10, 28, 2, 30, tzinfo=dt.timezone.utc)
    assert not overlaps(long_night, early)


def test_readding_equal_appointment_is_rejected(book: Book) -> None:
    existing = Appointment.parse_line(LINES[0])
    assert book.add(existing) == existing
    assert len(book) == len(LINES)


def test_find_overlap_returns_first_in_collection_order() -> None:
    b = Book()
    late = _a("24-12-2018", "10-00", 60, "late")
    early = _a("24-12-2018", "09-00", 60, "early")
    assert b.add(late) is None
    assert b.add(early) is None

    spanning = _a("24-12-2018", "09-30", 60)
    # ``late`` was inserted first, even though ``early`` sorts first.
    assert b.find_overlap(spanning) == late
    assert b.find_overlap(_a("24-12-2018", "11-00", 5)) is None


def test_add_fields_validates_input() -> None:
    b = Book()
    assert b.add_fields("24-12-2018", "09-13", 127, "Gun", "Home") is None
    with pytest.raises(DateParseError):
        b.add_fields("31-02-2018", "09-13", 127, "Gun", "Home")
    with pytest.raises(InvalidDurationError):
        b.add_fields("24-12-2019", "09-13", 0, "Gun", "Home")
    assert len(b) == 1


def test_delete_uses_structural_equality(book: Book) -> None:
    target = Appointment.parse_line(LINES[2])
    assert book.delete(target) is True
    assert target not in book
    assert book.delete(target) is False
    assert len(book) == len(LINES) - 1


def test_delete_every_appointment(book: Book) -> None:
    for appointment in book:
        assert book.delete(appointment)
    assert book.sorted_view() == []


def test_edit_without_changes_returns_none_and_keeps_book(book: Book) -> None:
    old = Appointment.parse_line(LINES[0])
    before = book.appointments

    assert book.edit(old) is None
    assert book.edit(old, date="24-12-2018", duration="127") is None
    assert book.appointments == before
    assert book.apply_edit(old).status is EditStatus.UNCHANGED


def test_edit_duration_extension_succeeds_when_free(book: Book) -> None:
    old = Appointment.parse_line(LINES[0])
    assert book.edit(old, duration="180") is None

    new = Appointment.create("24-12-2018", "09-13", 180, "Gun De Ambrosi", "64277 Pleasure Pass")
    assert new in book
    assert old not in book
    # The replacement keeps the position of the edited entry.
    assert book.appointments[0] == new
    assert len(book) == len(LINES)


def test_edit_duration_extension_rolls_back_on_conflict(book: Book) -> None:
    blocker = _a("24-12-2018", "11-30", 30, "Lunch", "Bar")
    assert book.add(blocker) is None
    old = Appointment.parse_line(LINES[0])
    before = book.appointments

    assert book.edit(old, duration="180") == blocker
    assert book.appointments == before
    assert old in book

    result = book.apply_edit(old, duration="180")
    assert result.status is EditStatus.CONFLICT
    assert result.conflict == blocker
    assert book.appointments == before


def test_edit_can_move_within_own_interval(book: Book) -> None:
    old = Appointment.parse_line(LINES[0])
    result = book.apply_edit(old, start_time="09-30", description="Gun")
    assert result.status is EditStatus.UPDATED
    assert result.conflict is None
    assert result.appointment == Appointment.create("24-12-2018", "09-30", 127, "Gun", "64277 Pleasure Pass")


def test_edit_propagates_validation_errors(book: Book) -> None:
    old = Appointment.parse_line(LINES[0])
    before = book.appointments

    with pytest.raises(DurationFormatError):
        book.edit(old, duration="two hours")
    with pytest.raises(DateParseError):
        book.edit(old, date="30-02-2019")
    with pytest.raises(InvalidFieldError):
        book.edit(old, place="a|b")
    assert book.appointments == before


def test_edit_unknown_appointment_raises(book: Book) -> None:
    stranger = _a("01-01-2020", "10-00", 10)
    with pytest.raises(AppointmentNotFoundError):
        book.edit(stranger, duration="20")


def test_search_by_date_keeps_collection_order() -> None:
    b = Book()
    late = _a("24-12-2018", "18-00", 30, "late")
    early = _a("24-12-2018", "08-00", 30, "early")
    other_day = _a("25-12-2018", "08-00", 30, "other")
    for a in (late, other_day, early):
        assert b.add(a) is None

    assert b.search(for_date("24-12-2018")) == [late, early]
    assert b.search(for_date("01-01-2000")) == []


def test_search_by_date_rejects_invalid_date() -> None:
    with pytest.raises(DateParseError):
        for_date("30-02-2018")


def test_search_by_description_is_case_insensitive(book: Book) -> None:
    result = book.search(for_description("STERMAN"))
    assert [a.description for a in result] == ["Kirbie Sterman"]

    result = book.search(for_description("RA"))
    assert [a.description for a in result] == ["Fredra Robilart", "Essa Cranshaw"]


@pytest.mark.parametrize("text", ["", "a|b"])
def test_search_by_description_validates_query(text: str) -> None:
    with pytest.raises(InvalidFieldError):
        for_description(text)


def test_query_kinds_carry_their_payload() -> None:
    assert for_date("05-12-2018") == DateQuery(dt.date(2018, 12, 5))
    assert for_description("gun") == DescriptionQuery("gun")


def test_search_accepts_any_predicate(book: Book) -> None:
    assert len(book.search(lambda a: a.duration == 54)) == 2


def test_sorted_view_does_not_touch_collection(book: Book) -> None:
    before = book.appointments
    view = book.sorted_view()

    assert [a.date for a in view] == sorted(a.date for a in before)
    assert view[0].description == "Fredra Robilart"
    assert view[-1].description == "Kirbie Sterman"
    assert book.appointments == before

    view.clear()
    assert len(book) == len(LINES)


def test_sorted_view_ignores_insertion_order() -> None:
    b = Book()
    first = _a("24-12-2018", "09-00", 30, "first")
    second = _a("24-12-2018", "10-00", 30, "second")
    assert b.add(second) is None
    assert b.add(first) is None
    assert b.sorted_view() == [first, second]
    assert b.appointments == [second, first]


def test_iteration_is_a_snapshot(book: Book) -> None:
    for appointment in book:
        book.delete(appointment)
    assert len(book) == 0


def test_add_fields_rejects_end_out_of_range_on_non_empty_book(book: Book) -> None:
    before = book.appointments
    with pytest.raises(InvalidDurationError):
        book.add_fields("31-12-9999", "23-00", 120, "X", "Y")
    with pytest.raises(InvalidDurationError):
        book.add_fields("25-12-2018", "09-00", 9999999999, "X", "Y")
    assert book.appointments == before
