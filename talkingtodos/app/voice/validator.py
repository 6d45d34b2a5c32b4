from __future__ import annotations

import json
import logging
from typing import Any, Dict, Mapping, Optional

from .errors import ErrorKind, Result
from .schemas import NUMERIC_FIELDS, Action, ActionType, coerce_number
from .session import DeskContext
from .snapshot import ContextSnapshot

logger = logging.getLogger(__name__)

_TRUE_STRINGS = {"true", "yes", "1", "done"}


def repair_data(data: Any) -> Dict[str, Any]:
    """Turn whatever the oracle sent as ``data`` into a mapping.

    The wire schema declares ``data`` as a string, so a JSON object encoded as
    text is the common case. A bare phrase becomes ``{"text": phrase}``.
    """
    if data is None:
        return {}
    if isinstance(data, Mapping):
        return dict(data)
    if isinstance(data, str):
        text = data.strip()
        if not text:
            return {}
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError:
            return {"text": text}
        if isinstance(parsed, Mapping):
            return dict(parsed)
        if isinstance(parsed, list):
            return {"texts": parsed}
        return {"text": text}
    if isinstance(data, list):
        return {"texts": data}
    return {}


def coerce_data(data: Dict[str, Any]) -> Dict[str, Any]:
    coerced = dict(data)
    for key in NUMERIC_FIELDS:
        if key in coerced:
            coerced[key] = coerce_number(coerced[key])
    if "done" in coerced and not isinstance(coerced["done"], bool):
        coerced["done"] = str(coerced["done"]).strip().lower() in _TRUE_STRINGS
    if isinstance(coerced.get("texts"), str):
        coerced["texts"] = [coerced["texts"]]
    return coerced


class ActionValidator:
    """Type-checks a raw oracle action and resolves its target against a snapshot."""

    def validate(
        self,
        raw: Any,
        snapshot: ContextSnapshot,
        desk: Optional[DeskContext] = None,
    ) -> Result[Action]:
        try:
            return self._validate(raw, snapshot, desk or DeskContext())
        except Exception as exc:  # noqa: BLE001
            logger.error("[VALIDATE] unexpected failure", exc_info=exc)
            return Result.fail(ErrorKind.MALFORMED_RESPONSE, exc)

    def _validate(self, raw: Any, snapshot: ContextSnapshot, desk: DeskContext) -> Result[Action]:
        if not isinstance(raw, Mapping):
            return Result.fail(ErrorKind.MALFORMED_RESPONSE, "action is not an object")

        type_value = raw.get("type")
        try:
            action_type = ActionType(str(type_value).strip().lower())
        except ValueError:
            return Result.fail(ErrorKind.UNSUPPORTED_ACTION_TYPE, f"unsupported action type {str(type_value)[:40]!r}")

        target_value = raw.get("target")
        target = target_value.strip() if isinstance(target_value, str) else ""
        data = coerce_data(repair_data(raw.get("data")))

        if action_type is ActionType.NAVIGATE:
            if not target:
                return Result.fail(ErrorKind.UNRESOLVED_TARGET, "navigate without target")
            return Result.success(Action(type=action_type, target=target, data=data))

        if action_type is ActionType.SHOW_LIST:
            if not snapshot.has_list(target):
                return Result.fail(ErrorKind.UNRESOLVED_TARGET, f"unknown list {target[:40]!r}")
            return Result.success(Action(type=action_type, target=target, data=data))

        if action_type is ActionType.SHOW_TODO:
            if snapshot.has_list(target):
                return Result.success(Action(type=action_type, target=target, data=data))
            owning_list = snapshot.list_for_todo(target)
            if owning_list is None:
                return Result.fail(ErrorKind.UNRESOLVED_TARGET, f"unknown todo or list {target[:40]!r}")
            return Result.success(Action(type=action_type, target=owning_list, data={**data, "todoId": target}))

        if action_type is ActionType.CREATE_TODO:
            candidate = Action(type=action_type, target=target or desk.primary_list_id, data=data)
            if not candidate.phrases:
                return Result.fail(ErrorKind.EMPTY_CREATE_REQUEST, "create_todo without texts")
            if not snapshot.has_list(candidate.target):
                return Result.fail(ErrorKind.UNRESOLVED_TARGET, f"unknown list {str(candidate.target)[:40]!r}")
            return Result.success(candidate)

        # Declared in the grammar; the executor acknowledges them as not implemented
        return Result.success(Action(type=action_type, target=target or None, data=data))


__all__ = ["ActionValidator", "coerce_data", "repair_data"]
