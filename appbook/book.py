from __future__ import annotations

import datetime as dt
import enum
import logging
from dataclasses import dataclass
from typing import Callable, Iterator

from appbook.book_file import LoadReport, load_book, save_book
from appbook.domain import (
    Appointment,
    check_field,
    format_date,
    format_time,
    parse_date,
    parse_duration,
)

logger = logging.getLogger(__name__)

DEFAULT_FILE = "book.csv"

Predicate = Callable[[Appointment], bool]


def overlaps(current: Appointment, other: Appointment) -> bool:
    """True when the two intervals are identical or genuinely intersect.

    Intervals are half-open: an appointment ending at 11:20 and another
    starting at 11:20 do not overlap.
    """
    c_start, c_end = current.start_instant, current.end_instant
    o_start, o_end = other.start_instant, other.end_instant
    if c_start == o_start and c_end == o_end:
        return True
    return c_start < o_end and o_start < c_end


class AppointmentNotFoundError(LookupError):
    """The appointment to edit is not stored in the book."""


@dataclass(frozen=True)
class DateQuery:
    """Matches appointments held on a given day."""

    date: dt.date

    def __call__(self, appointment: Appointment) -> bool:
        return appointment.date == self.date


@dataclass(frozen=True)
class DescriptionQuery:
    """Case-insensitive substring match on the description."""

    text: str

    def __post_init__(self) -> None:
        check_field(self.text, "Description")

    def __call__(self, appointment: Appointment) -> bool:
        return self.text.lower() in appointment.description.lower()


def for_date(date: str) -> DateQuery:
    # Invalid dates raise DateParseError instead of matching nothing.
    return DateQuery(parse_date(date))


def for_description(description: str) -> DescriptionQuery:
    return DescriptionQuery(description)


class EditStatus(enum.Enum):
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    CONFLICT = "conflict"


@dataclass(frozen=True)
class EditResult:
    status: EditStatus
    # UPDATED: the stored replacement; UNCHANGED: the old appointment;
    # CONFLICT: the stored appointment that blocked the edit.
    appointment: Appointment

    @property
    def conflict(self) -> Appointment | None:
        return self.appointment if self.status is EditStatus.CONFLICT else None


class Book:
    """An ordered collection of appointments that never overlap each other.

    Iteration follows the collection order (insertion order, edits keep the
    position of the edited entry). Use ``sorted_view()`` for chronological
    order.
    """

    def __init__(self, path: str = DEFAULT_FILE) -> None:
        self.path = path
        self._appointments: list[Appointment] = []

    def __iter__(self) -> Iterator[Appointment]:
        return iter(list(self._appointments))

    def __len__(self) -> int:
        return len(self._appointments)

    def __contains__(self, appointment: object) -> bool:
        return appointment in self._appointments

    def __repr__(self) -> str:
        return f"Book(path={self.path!r}, appointments={len(self._appointments)})"

    @property
    def appointments(self) -> list[Appointment]:
        """A copy of the collection in its current order."""
        return list(self._appointments)

    def find_overlap(self, candidate: Appointment) -> Appointment | None:
        """First stored appointment (collection order) that overlaps ``candidate``."""
        for current in self._appointments:
            if overlaps(current, candidate):
                return current
        return None

    def add(self, appointment: Appointment) -> Appointment | None:
        """Append ``appointment`` unless it overlaps; return the conflict if any."""
        overlapped = self.find_overlap(appointment)
        if overlapped is not None:
            logger.debug("Rejected %s: overlaps %s", appointment, overlapped)
            return overlapped
        self._appointments.append(appointment)
        logger.debug("Added %s", appointment)
        return None

    def add_fields(
        self,
        date: str,
        start_time: str,
        duration: int,
        description: str,
        place: str,
    ) -> Appointment | None:
        return self.add(Appointment.create(date, start_time, duration, description, place))

    def delete(self, appointment: Appointment) -> bool:
        try:
            self._appointments.remove(appointment)
        except ValueError:
            return False
        logger.debug("Deleted %s", appointment)
        return True

    def apply_edit(
        self,
        old: Appointment,
        date: str = "",
        start_time: str = "",
        duration: str = "",
        description: str = "",
        place: str = "",
    ) -> EditResult:
        """Replace ``old`` by a copy carrying the non-empty overrides.

        On conflict the book is left exactly as it was and the blocking
        appointment is reported.
        """
        new = Appointment.create(
            date or format_date(old.date),
            start_time or format_time(old.start_time),
            parse_duration(duration) if duration else old.duration,
            description or old.description,
            place or old.place,
        )
        if new == old:
            return EditResult(EditStatus.UNCHANGED, old)

        try:
            index = self._appointments.index(old)
        except ValueError:
            raise AppointmentNotFoundError(f"Appointment not in book: {old}") from None

        # Remove first so that ``old`` does not block its own replacement.
        del self._appointments[index]
        overlapped = self.find_overlap(new)
        if overlapped is not None:
            self._appointments.insert(index, old)
            logger.debug("Edit of %s rolled back: %s overlaps %s", old, new, overlapped)
            return EditResult(EditStatus.CONFLICT, overlapped)

        self._appointments.insert(index, new)
        logger.debug("Edited %s -> %s", old, new)
        return EditResult(EditStatus.UPDATED, new)

    def edit(
        self,
        old: Appointment,
        date: str = "",
        start_time: str = "",
        duration: str = "",
        description: str = "",
        place: str = "",
    ) -> Appointment | None:
        """Same as ``apply_edit`` but only returns the conflicting appointment, if any."""
        return self.apply_edit(old, date, start_time, duration, description, place).conflict

    def search(self, predicate: Predicate) -> list[Appointment]:
        return [a for a in self._appointments if predicate(a)]

    def sorted_view(self) -> list[Appointment]:
        return sorted(self._appointments, key=lambda a: a.sort_key)

    def load_from_file(self, path: str | None = None) -> LoadReport:
        return load_book(self, path or self.path)

    def save_to_file(self, path: str | None = None) -> None:
        save_book(self, path or self.path)
