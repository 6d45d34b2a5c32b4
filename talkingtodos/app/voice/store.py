"""
Store boundary for lists and todos.

The voice pipeline never reaches for ambient store state; a ``Store`` is
handed to each component that reads or writes. ``InMemoryStore`` is the
reference implementation used by the HTTP surface and the tests.

Contract:
- ``read_tables()`` returns copies; callers cannot mutate the store through them
- ``insert_batch()`` is all-or-nothing; readers see either none or all of a batch
"""

from __future__ import annotations

import asyncio
import copy
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Sequence, Tuple

TABLES = ("lists", "todos")


class StoreWriteError(Exception):
    """Raised when a batch is rejected; nothing from the batch was applied."""


@dataclass(frozen=True)
class BatchRow:
    table: str
    row: Mapping[str, Any]


class Store(ABC):
    @abstractmethod
    async def read_tables(self) -> Tuple[Dict[str, Dict[str, Any]], Dict[str, Dict[str, Any]]]:
        """Return ``(lists, todos)`` as id-keyed copies."""

    @abstractmethod
    async def insert_batch(self, rows: Sequence[BatchRow]) -> List[str]:
        """Insert every row in one transaction and return the new row ids in order.

        Raises:
            StoreWriteError: If any row is invalid; no row is applied
        """


class InMemoryStore(Store):
    def __init__(self, id_factory: Callable[[], str] | None = None) -> None:
        self._tables: Dict[str, Dict[str, Dict[str, Any]]] = {table: {} for table in TABLES}
        self._lock = asyncio.Lock()
        self._id_factory = id_factory or (lambda: uuid.uuid4().hex)

    # Seeding helpers (synchronous, for fixtures and startup)
    def set_list(self, list_id: str, row: Mapping[str, Any]) -> None:
        self._tables["lists"][list_id] = dict(row)

    def set_todo(self, todo_id: str, row: Mapping[str, Any]) -> None:
        self._tables["todos"][todo_id] = dict(row)

    def table(self, name: str) -> Dict[str, Dict[str, Any]]:
        return copy.deepcopy(self._tables[name])

    async def read_tables(self) -> Tuple[Dict[str, Dict[str, Any]], Dict[str, Dict[str, Any]]]:
        async with self._lock:
            return copy.deepcopy(self._tables["lists"]), copy.deepcopy(self._tables["todos"])

    @staticmethod
    def _check_shape(rows: Sequence[BatchRow]) -> None:
        if not rows:
            raise StoreWriteError("empty batch")
        for index, item in enumerate(rows):
            if item.table not in TABLES:
                raise StoreWriteError(f"row {index}: unknown table {item.table!r}")
            if not isinstance(item.row, Mapping):
                raise StoreWriteError(f"row {index}: row must be a mapping")

    async def insert_batch(self, rows: Sequence[BatchRow]) -> List[str]:
        self._check_shape(rows)
        async with self._lock:
            staged = copy.deepcopy(self._tables)
            new_ids: List[str] = []
            for index, item in enumerate(rows):
                if item.table == "todos" and item.row.get("list") not in staged["lists"]:
                    raise StoreWriteError(f"row {index}: todo references unknown list")
                row_id = self._id_factory()
                staged[item.table][row_id] = dict(item.row)
                new_ids.append(row_id)
            # Single swap: readers never see part of a batch
            self._tables = staged
            return new_ids


__all__ = ["BatchRow", "InMemoryStore", "Store", "StoreWriteError", "TABLES"]
