"""
Source providers: where input items come from.

`list()` is called once per run and returns every item eagerly. `fetch()`
is called per item; its failures are per-item and never abort the run.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
import logging
from pathlib import Path
from typing import Iterable, List, Optional
from urllib.parse import unquote, urlparse

import requests
from sqlalchemy import column, select, table
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .errors import FetchError, NotFoundError, SourceUnavailableError
from .models import Item

logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png"})
_MISSING_STATUSES = {404, 410}


def _read_local(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except FileNotFoundError as exc:
        raise NotFoundError(f"File not found: {path}") from exc
    except IsADirectoryError as exc:
        raise NotFoundError(f"Not a file: {path}") from exc
    except OSError as exc:
        raise FetchError(f"Could not read {path}: {exc}") from exc


class SourceProvider(ABC):
    @abstractmethod
    def list(self) -> List[Item]:
        """Return all items for this run, in processing order."""

    @abstractmethod
    def fetch(self, locator: str) -> bytes:
        """Return the raw bytes behind `locator`."""


class DatabaseListing(SourceProvider):
    """Items come from rows of a record table; bytes are downloaded over HTTP."""

    def __init__(
        self,
        engine: Engine,
        table_name: str = "images",
        id_column: str = "id",
        locator_column: str = "image_url",
        session: Optional[requests.Session] = None,
        timeout_seconds: float = 30,
    ):
        self.engine = engine
        self.table_name = table_name
        self.id_column = id_column
        self.locator_column = locator_column
        self.session = session or requests.Session()
        self.timeout_seconds = timeout_seconds

    def list(self) -> List[Item]:
        ident = column(self.id_column)
        locator = column(self.locator_column)
        query = select(ident, locator).select_from(table(self.table_name, ident, locator)).order_by(ident)
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(query).all()
        except SQLAlchemyError as exc:
            raise SourceUnavailableError(f"Could not list {self.table_name}: {exc}") from exc

        items = [Item(identifier=row[0], locator=row[1]) for row in rows if row[1]]
        skipped = len(rows) - len(items)
        if skipped:
            logger.warning("Skipped %d %s rows with an empty %s", skipped, self.table_name, self.locator_column)
        logger.info("Fetched %d image URLs from %s.", len(items), self.table_name)
        return items

    def fetch(self, locator: str) -> bytes:
        parsed = urlparse(locator)
        if parsed.scheme == "file":
            return _read_local(Path(unquote(parsed.path)))
        if parsed.scheme not in {"http", "https"}:
            return _read_local(Path(locator))

        logger.info("Fetching image from: %s", locator)
        try:
            resp = self.session.get(locator, timeout=(5, self.timeout_seconds))
        except requests.RequestException as exc:
            raise FetchError(f"Could not download {locator}: {exc}") from exc
        if resp.status_code in _MISSING_STATUSES:
            raise NotFoundError(f"{locator} returned HTTP {resp.status_code}")
        try:
            resp.raise_for_status()
        except requests.HTTPError as exc:
            raise FetchError(f"Could not download {locator}: {exc}") from exc
        return resp.content


class DirectoryListing(SourceProvider):
    """Items are the image files in one local directory, sorted by name."""

    def __init__(self, directory: Path, extensions: Iterable[str] = DEFAULT_EXTENSIONS):
        self.directory = Path(directory)
        self.extensions = frozenset(ext.lower() for ext in extensions)

    def list(self) -> List[Item]:
        if not self.directory.is_dir():
            raise SourceUnavailableError(f"Input directory not found: {self.directory}")
        try:
            entries = sorted(self.directory.iterdir(), key=lambda p: p.name)
        except OSError as exc:
            raise SourceUnavailableError(f"Could not list {self.directory}: {exc}") from exc

        items = [
            Item(identifier=entry.name, locator=str(entry))
            for entry in entries
            if entry.suffix.lower() in self.extensions and entry.is_file()
        ]
        logger.info("Found %d images in %s.", len(items), self.directory)
        return items

    def fetch(self, locator: str) -> bytes:
        return _read_local(Path(locator))
