"""Record stores: optional write-back of the new locator after a successful store."""

from __future__ import annotations

from abc import ABC, abstractmethod
import logging
from typing import Any

from sqlalchemy import column, table, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .errors import RecordUpdateError

logger = logging.getLogger(__name__)


class RecordStore(ABC):
    @abstractmethod
    def update(self, identifier: Any, new_locator: str) -> None:
        """Point the record for `identifier` at `new_locator`."""


class NullRecordStore(RecordStore):
    def update(self, identifier: Any, new_locator: str) -> None:
        return None


class DatabaseRecordStore(RecordStore):
    """Updates the locator column of the record table in its own transaction."""

    def __init__(
        self,
        engine: Engine,
        table_name: str = "images",
        id_column: str = "id",
        locator_column: str = "image_url",
    ):
        self.engine = engine
        self.table_name = table_name
        self.id_column = id_column
        self.locator_column = locator_column

    def update(self, identifier: Any, new_locator: str) -> None:
        ident = column(self.id_column)
        locator = column(self.locator_column)
        stmt = (
            update(table(self.table_name, ident, locator))
            .where(ident == identifier)
            .values({self.locator_column: new_locator})
        )
        try:
            with self.engine.begin() as conn:
                result = conn.execute(stmt)
        except SQLAlchemyError as exc:
            raise RecordUpdateError(f"Could not update {self.table_name} id={identifier}: {exc}", identifier) from exc
        if result.rowcount == 0:
            raise RecordUpdateError(f"No {self.table_name} row with id={identifier}", identifier)
        logger.info("Updated %s with new URL for ID %s: %s", self.table_name, identifier, new_locator)
