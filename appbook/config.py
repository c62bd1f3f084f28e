from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

from appbook.book import DEFAULT_FILE


def _parse_log_level(raw: str) -> int:
    name = raw.strip().upper()
    level = logging.getLevelName(name)
    # getLevelName() returns "Level <name>" for unknown names.
    if not isinstance(level, int):
        raise RuntimeError(f"Invalid LOG_LEVEL value: {raw!r}. Expected DEBUG, INFO, WARNING, ERROR or CRITICAL.")
    return level


@dataclass(frozen=True)
class Settings:
    # Where the book is read from and saved to unless --file is given
    book_file: str = DEFAULT_FILE

    log_level: int = logging.INFO


def load_settings(dotenv_path: str | None = None) -> Settings:
    # Prefer .env in repo root; dotenv_path allows overriding in tests.
    load_dotenv(dotenv_path=dotenv_path, override=False)

    book_file = os.getenv("BOOK_FILE", DEFAULT_FILE).strip()
    if not book_file:
        raise RuntimeError("BOOK_FILE is empty. Provide a path or unset it.")

    return Settings(
        book_file=book_file,
        log_level=_parse_log_level(os.getenv("LOG_LEVEL", "INFO")),
    )
