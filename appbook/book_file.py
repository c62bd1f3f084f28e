from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from appbook.domain import Appointment, AppointmentError, DurationFormatError

if TYPE_CHECKING:
    from appbook.book import Book

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LineDiagnostic:
    line_number: int  # 1-based
    reason: str

    def __str__(self) -> str:
        return f"Line {self.line_number}: {self.reason}"


@dataclass
class LoadReport:
    # rejected appointment -> stored appointment that blocked it
    collisions: dict[Appointment, Appointment] = field(default_factory=dict)
    accepted: int = 0
    diagnostics: list[LineDiagnostic] = field(default_factory=list)


def load_book(book: Book, path: str) -> LoadReport:
    """Read ``path`` line by line and add every appointment to ``book``.

    A malformed line is skipped and reported; it never aborts the load.
    Appointments that overlap an already stored one are reported as
    collisions. I/O errors (missing file, permissions...) propagate.
    """
    report = LoadReport()

    # Binary mode: a line with bad bytes must not abort the whole load.
    with open(path, "rb") as f:
        for line_number, raw in enumerate(f, start=1):
            try:
                line = raw.decode("utf-8").rstrip("\r\n")
            except UnicodeDecodeError:
                _skip(report, line_number, "line is not valid UTF-8")
                continue
            try:
                current = Appointment.parse_line(line)
            except DurationFormatError:
                _skip(report, line_number, "duration is not a positive integer")
                continue
            except AppointmentError as e:
                _skip(report, line_number, str(e))
                continue

            overlapped = book.add(current)
            if overlapped is not None:
                logger.warning("Line %d: %s overlaps %s", line_number, current, overlapped)
                report.collisions[current] = overlapped
                continue
            report.accepted += 1

    logger.info(
        "Loaded %s: accepted=%d collisions=%d skipped=%d",
        path,
        report.accepted,
        len(report.collisions),
        len(report.diagnostics),
    )
    return report


def _skip(report: LoadReport, line_number: int, reason: str) -> None:
    diagnostic = LineDiagnostic(line_number=line_number, reason=reason)
    logger.warning("%s", diagnostic)
    report.diagnostics.append(diagnostic)


def _target_mode(path: str) -> int:
    try:
        return os.stat(path).st_mode & 0o777
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


def save_book(book: Book, path: str) -> None:
    """Overwrite ``path`` with one serialized appointment per line, in book order.

    The parent directory must already exist.
    """
    folder = os.path.dirname(os.path.abspath(path))

    # Atomic write
    with tempfile.NamedTemporaryFile(
        "w", delete=False, encoding="utf-8", newline="\n", dir=folder, suffix=".tmp"
    ) as tf:
        tmp_name = tf.name
        try:
            for appointment in book:
                tf.write(appointment.serialize())
                tf.write("\n")
        except BaseException:
            tf.close()
            os.unlink(tmp_name)
            raise

    try:
        # NamedTemporaryFile is created 0600; keep the mode the book file had.
        os.chmod(tmp_name, _target_mode(path))
        os.replace(tmp_name, path)
    except OSError:
        os.unlink(tmp_name)
        raise

    logger.info("Saved %d appointments to %s", len(book), path)
