"""
Context snapshot: an immutable copy of the user's lists and todos, and its
XML rendering used to ground the oracle.

Output shape:

    <lists>
    <list id="L1"><name>Groceries</name> <purpose>Food</purpose>
    <todo id="T1"><text>Milk</text> <done>false</done></todo></list>
    </lists>

Empty-string and missing values are left out. Todos pointing at a list that is
not in the snapshot are skipped (the store keeps them).
"""

from __future__ import annotations

import copy
import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Tuple

EMPTY_CONTEXT = "<lists></lists>"

# Large free-text list fields that never go to the oracle
EXCLUDED_LIST_FIELDS = frozenset({"code"})
# Structural todo fields rendered as attributes / implied by nesting
EXCLUDED_TODO_FIELDS = frozenset({"id", "list"})

# Keys that are not valid element names are left out of the context
_ELEMENT_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_.-]*\Z")

_ESCAPES = {
    "<": "&lt;",
    ">": "&gt;",
    "&": "&amp;",
    "'": "&apos;",
    '"': "&quot;",
}


def xml_escape(value: Any) -> str:
    text = format_value(value)
    return "".join(_ESCAPES.get(ch, ch) for ch in text)


def format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _freeze(value: Any) -> Any:
    if isinstance(value, Mapping):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    return copy.deepcopy(value)


@dataclass(frozen=True)
class ContextSnapshot:
    lists: Mapping[str, Mapping[str, Any]]
    todos: Mapping[str, Mapping[str, Any]]

    def has_list(self, list_id: str | None) -> bool:
        return bool(list_id) and list_id in self.lists

    def list_for_todo(self, todo_id: str | None) -> str | None:
        """Owning list of a grounded todo, or None."""
        if not todo_id or todo_id not in self.todos:
            return None
        list_id = self.todos[todo_id].get("list")
        return list_id if self.has_list(list_id) else None

    def todos_for_list(self, list_id: str) -> List[Tuple[str, Mapping[str, Any]]]:
        return [(todo_id, todo) for todo_id, todo in self.todos.items() if todo.get("list") == list_id]


def build_snapshot(lists: Mapping[str, Mapping[str, Any]] | None, todos: Mapping[str, Mapping[str, Any]] | None) -> ContextSnapshot:
    """Copy the given rows into a read-only snapshot. The inputs are not retained."""
    return ContextSnapshot(
        lists=_freeze(dict(lists or {})),
        todos=_freeze(dict(todos or {})),
    )


def _fields_xml(row: Mapping[str, Any], excluded: Iterable[str]) -> str:
    skip = set(excluded)
    return " ".join(
        f"<{key}>{xml_escape(value)}</{key}>"
        for key, value in row.items()
        if key not in skip and value is not None and value != ""
        and isinstance(key, str) and _ELEMENT_NAME.match(key)
    )


def serialize_snapshot(snapshot: ContextSnapshot) -> str:
    if not snapshot.lists:
        return EMPTY_CONTEXT

    todos_by_list: Dict[str, List[str]] = {}
    for todo_id, todo in snapshot.todos.items():
        list_id = todo.get("list")
        if not snapshot.has_list(list_id):
            continue
        todo_xml = f'<todo id="{xml_escape(todo_id)}">{_fields_xml(todo, EXCLUDED_TODO_FIELDS)}</todo>'
        todos_by_list.setdefault(list_id, []).append(todo_xml)

    rendered: List[str] = []
    for list_id, list_row in snapshot.lists.items():
        fields = _fields_xml(list_row, EXCLUDED_LIST_FIELDS | {"id"})
        todos_xml = "\n".join(todos_by_list.get(list_id, []))
        body = f"{fields}\n{todos_xml}" if todos_xml else fields
        rendered.append(f'<list id="{xml_escape(list_id)}">{body}</list>')

    return "<lists>\n" + "\n".join(rendered) + "\n</lists>"


def build_context(lists: Mapping[str, Mapping[str, Any]] | None, todos: Mapping[str, Mapping[str, Any]] | None) -> str:
    return serialize_snapshot(build_snapshot(lists, todos))


__all__ = [
    "ContextSnapshot",
    "EMPTY_CONTEXT",
    "EXCLUDED_LIST_FIELDS",
    "build_context",
    "build_snapshot",
    "serialize_snapshot",
    "xml_escape",
]
