from __future__ import annotations

import datetime as dt
import re
from dataclasses import dataclass
from zoneinfo import ZoneInfo

SEPARATOR = "|"

TIME_FORMAT = "%H-%M"  # hh-mm

ZONE_NAME = "Europe/Rome"
ZONE = ZoneInfo(ZONE_NAME)

FIELD_COUNT = 5

_DATE_RE = re.compile(r"([0-9]{2})-([0-9]{2})-([0-9]{4})")
_TIME_RE = re.compile(r"([0-9]{2})-([0-9]{2})")
_DURATION_RE = re.compile(r"[+-]?[0-9]+")
# The separator plus any spaces/tabs around it.
_SPLIT_RE = re.compile(r"[ \t]*" + re.escape(SEPARATOR) + r"[ \t]*")


class AppointmentError(ValueError):
    """Base class for every validation/parse failure of an appointment."""


class ParseError(AppointmentError):
    pass


class DateParseError(ParseError):
    pass


class TimeParseError(ParseError):
    pass


class MultiLineError(ParseError):
    pass


class FieldCountError(ParseError):
    pass


class DurationFormatError(ParseError):
    pass


class InvalidFieldError(AppointmentError):
    pass


class InvalidDurationError(AppointmentError):
    pass


def parse_date(text: str) -> dt.date:
    """Strict dd-mm-yyyy. Invalid calendar dates are rejected, never rolled over."""
    m = _DATE_RE.fullmatch(text)
    if not m:
        raise DateParseError(f"Text {text!r} could not be parsed as a date (expected dd-mm-yyyy)")
    day, month, year = (int(g) for g in m.groups())
    try:
        return dt.date(year, month, day)
    except ValueError as e:
        raise DateParseError(f"Text {text!r} could not be parsed as a date: {e}") from e


def parse_time(text: str) -> dt.time:
    """Strict hh-mm, 24-hour clock. 24-00 is not a valid time."""
    m = _TIME_RE.fullmatch(text)
    if not m:
        raise TimeParseError(f"Text {text!r} could not be parsed as a time (expected hh-mm)")
    hour, minute = (int(g) for g in m.groups())
    try:
        return dt.time(hour, minute)
    except ValueError as e:
        raise TimeParseError(f"Text {text!r} could not be parsed as a time: {e}") from e


def parse_duration(text: str) -> int:
    if not _DURATION_RE.fullmatch(text.strip()):
        raise DurationFormatError(f"Duration {text!r} is not an integer number of minutes")
    return int(text)


def check_field(value: str, field_name: str) -> None:
    if not value:
        raise InvalidFieldError(f"{field_name} must not be empty")
    if SEPARATOR in value:
        raise InvalidFieldError(f"{field_name} field must not contain a SEPARATOR char ({SEPARATOR})")
    if "\n" in value or "\r" in value:
        raise InvalidFieldError(f"{field_name} field must not contain line breaks")


def format_date(value: dt.date) -> str:
    # strftime("%Y") does not zero-pad years below 1000 on every platform.
    return f"{value.day:02d}-{value.month:02d}-{value.year:04d}"


def format_time(value: dt.time) -> str:
    return value.strftime(TIME_FORMAT)


@dataclass(frozen=True)
class Appointment:
    """A single entry of the book: the interval [start, start + duration).

    Equality is structural over all five fields. Ordering only looks at
    (date, start_time), so two appointments can sort as equal without being
    equal.
    """

    date: dt.date
    start_time: dt.time
    duration: int  # minutes
    description: str
    place: str

    def __post_init__(self) -> None:
        if not isinstance(self.date, dt.date) or isinstance(self.date, dt.datetime):
            raise DateParseError(f"Expected a calendar date, got {self.date!r}")
        if not isinstance(self.start_time, dt.time):
            raise TimeParseError(f"Expected a time of day, got {self.start_time!r}")
        if self.start_time.second or self.start_time.microsecond or self.start_time.tzinfo is not None:
            raise TimeParseError(f"Start time must be a naive time with minute resolution, got {self.start_time!r}")
        if isinstance(self.duration, bool) or not isinstance(self.duration, int) or self.duration <= 0:
            raise InvalidDurationError(
                f"Sorry, {self.duration} is an invalid duration. Please enter only minutes (>0)."
            )
        for value, field_name in ((self.description, "Description"), (self.place, "Place")):
            check_field(value, field_name)
            # Surrounding whitespace would not survive a save/load cycle.
            if value != value.strip():
                raise InvalidFieldError(f"{field_name} must not start or end with whitespace")

        # Both ends of the interval must be representable as instants.
        try:
            self.start_instant
        except OverflowError as e:
            raise DateParseError(f"Date {format_date(self.date)} is out of the supported range") from e
        try:
            self.end_instant
        except OverflowError as e:
            raise InvalidDurationError(
                f"Sorry, {self.duration} is an invalid duration: the appointment would end out of the supported range."
            ) from e

    @classmethod
    def create(cls, date: str, start_time: str, duration: int, description: str, place: str) -> Appointment:
        """Build an appointment from the raw strings typed by the user."""
        return cls(
            date=parse_date(date),
            start_time=parse_time(start_time),
            duration=duration,
            description=description,
            place=place,
        )

    @classmethod
    def parse_line(cls, line: str) -> Appointment:
        """Parse one serialized line, e.g. ``24-12-2018 | 09-13 | 127 | Gun | 64277 Pleasure Pass``."""
        if "\n" in line or "\r" in line:
            raise MultiLineError("Two or more lines detected")

        values = _SPLIT_RE.split(line.strip(" \t"))
        if len(values) != FIELD_COUNT:
            raise FieldCountError(f"Illegal parsing: expected {FIELD_COUNT} fields, got {len(values)}")

        date, start_time, duration, description, place = values
        return cls.create(date, start_time, parse_duration(duration), description, place)

    def serialize(self) -> str:
        return SEPARATOR.join(
            [
                format_date(self.date),
                format_time(self.start_time),
                str(self.duration),
                self.description,
                self.place,
            ]
        )

    def __str__(self) -> str:
        return self.serialize()

    @property
    def starts_at(self) -> dt.datetime:
        """Naive local date-time of the start."""
        return dt.datetime.combine(self.date, self.start_time)

    @property
    def start_instant(self) -> dt.datetime:
        return self.starts_at.replace(tzinfo=ZONE).astimezone(dt.timezone.utc)

    @property
    def end_instant(self) -> dt.datetime:
        # Wall-clock arithmetic first, then the zone: same as the start.
        end_local = self.starts_at + dt.timedelta(minutes=self.duration)
        return end_local.replace(tzinfo=ZONE).astimezone(dt.timezone.utc)

    @property
    def sort_key(self) -> tuple[dt.date, dt.time]:
        return (self.date, self.start_time)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Appointment):
            return NotImplemented
        return self.sort_key < other.sort_key

    def __le__(self, other: object) -> bool:
        if not isinstance(other, Appointment):
            return NotImplemented
        return self.sort_key <= other.sort_key

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, Appointment):
            return NotImplemented
        return self.sort_key > other.sort_key

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, Appointment):
            return NotImplemented
        return self.sort_key >= other.sort_key


def compare(a: Appointment, b: Appointment) -> int:
    """-1, 0 or 1 by (date, start_time)."""
    if a.sort_key < b.sort_key:
        return -1
    if a.sort_key > b.sort_key:
        return 1
    return 0
