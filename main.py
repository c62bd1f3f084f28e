from __future__ import annotations

import argparse
import logging
from typing import Iterable

from appbook.book import Book, EditStatus, for_date, for_description
from appbook.config import load_settings
from appbook.domain import Appointment, AppointmentError, format_date, format_time, parse_duration

logger = logging.getLogger(__name__)


def _setup_logging(level: int = logging.INFO) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )


def _format_appointment(a: Appointment) -> str:
    return f"{format_date(a.date)} {format_time(a.start_time)} ({a.duration} min) {a.description} @ {a.place}"


def _print_appointments(appointments: Iterable[Appointment]) -> None:
    rows = list(appointments)
    if not rows:
        print("No appointments.")
        return
    for i, a in enumerate(rows, start=1):
        print(f"{i:>3}. {_format_appointment(a)}")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="appbook: personal appointment book")
    parser.add_argument("--file", help="Book file (default: BOOK_FILE or book.csv)")

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="Show all appointments in chronological order")
    sub.add_parser("load", help="Load the book file and report rejected lines")

    add = sub.add_parser("add", help="Add an appointment")
    add.add_argument("date", help="dd-mm-yyyy")
    add.add_argument("time", help="hh-mm")
    add.add_argument("duration", help="minutes (>0)")
    add.add_argument("description")
    add.add_argument("place")

    edit = sub.add_parser("edit", help="Edit the appointment at INDEX of the listing")
    edit.add_argument("index", type=int)
    edit.add_argument("--date", default="")
    edit.add_argument("--time", default="")
    edit.add_argument("--duration", default="")
    edit.add_argument("--description", default="")
    edit.add_argument("--place", default="")

    delete = sub.add_parser("delete", help="Delete the appointment at INDEX of the listing")
    delete.add_argument("index", type=int)

    search = sub.add_parser("search", help="Search appointments")
    group = search.add_mutually_exclusive_group(required=True)
    group.add_argument("--date", help="dd-mm-yyyy")
    group.add_argument("--description", help="text contained in the description")

    return parser


def _open_book(path: str) -> Book:
    book = Book(path)
    try:
        report = book.load_from_file()
    except FileNotFoundError:
        logger.info("Book file %s not found, starting with an empty book", path)
        return book

    for rejected, existing in report.collisions.items():
        print(f"Skipped {_format_appointment(rejected)}: overlaps {_format_appointment(existing)}")
    for diagnostic in report.diagnostics:
        print(f"Skipped {diagnostic}")
    return book


def _pick(book: Book, index: int) -> Appointment:
    listing = book.sorted_view()
    if not 1 <= index <= len(listing):
        raise IndexError(f"No appointment at position {index} (book has {len(listing)})")
    return listing[index - 1]


def _save(book: Book) -> int:
    try:
        book.save_to_file()
    except OSError as e:
        logger.error("Failed to save %s (%s: %s)", book.path, type(e).__name__, e)
        print(f"Could not save to {book.path}: {e}. Retry with --file PATH.")
        return 1
    return 0


def _run(args: argparse.Namespace, book_file: str) -> int:
    book = _open_book(book_file)

    if args.command == "load":
        print(f"{len(book)} appointments loaded from {book.path}")
        return 0

    if args.command == "list":
        _print_appointments(book.sorted_view())
        return 0

    if args.command == "search":
        query = for_date(args.date) if args.date is not None else for_description(args.description)
        _print_appointments(book.search(query))
        return 0

    if args.command == "add":
        overlapped = book.add_fields(args.date, args.time, parse_duration(args.duration), args.description, args.place)
        if overlapped is not None:
            print(f"Not added: overlaps {_format_appointment(overlapped)}")
            return 3
        print("Appointment added.")
        return _save(book)

    if args.command == "delete":
        target = _pick(book, args.index)
        book.delete(target)
        print(f"Deleted {_format_appointment(target)}")
        return _save(book)

    if args.command == "edit":
        old = _pick(book, args.index)
        result = book.apply_edit(old, args.date, args.time, args.duration, args.description, args.place)
        if result.status is EditStatus.UNCHANGED:
            print("Nothing to change.")
            return 0
        if result.status is EditStatus.CONFLICT:
            print(f"Not changed: overlaps {_format_appointment(result.appointment)}")
            return 3
        print(f"Updated {_format_appointment(result.appointment)}")
        return _save(book)

    raise ValueError(f"Unknown command: {args.command}")


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    settings = load_settings()
    _setup_logging(settings.log_level)

    try:
        return _run(args, args.file or settings.book_file)
    except AppointmentError as e:
        print(f"{type(e).__name__}: {e}")
        return 2
    except IndexError as e:
        print(str(e))
        return 2
    except OSError as e:
        logger.error("I/O error (%s: %s)", type(e).__name__, e)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
