from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from talkingtodos.app.observability import structured_log

from .errors import ErrorKind, Result
from .schemas import Action, ActionType, ListDescriptor
from .session import VoiceSession
from .store import BatchRow, Store, StoreWriteError
from .synthesizer import TodoSynthesizer

logger = logging.getLogger(__name__)

NOT_IMPLEMENTED_MESSAGES = {
    ActionType.UPDATE_TODO: "I heard you, but editing todos by voice isn't supported yet.",
    ActionType.DELETE_TODO: "I heard you, but deleting todos by voice isn't supported yet.",
    ActionType.CREATE_LIST: "I heard you, but creating lists by voice isn't supported yet.",
    ActionType.ADD_TODO: "I heard you, but adding todos that way isn't supported yet. Try asking me to create them.",
}


def list_route(list_id: str) -> str:
    return f"/lists/{list_id}"


@dataclass(frozen=True)
class ExecutionResult:
    action_type: ActionType
    mutated_count: int = 0
    destination: Optional[str] = None
    created_ids: Tuple[str, ...] = ()
    extras: Dict[str, Any] = field(default_factory=dict)


class ActionExecutor:
    """Applies a validated action. Only ``create_todo`` writes to the store."""

    def __init__(self, store: Store, synthesizer: TodoSynthesizer, *, sample_size: int = 5) -> None:
        self.store = store
        self.synthesizer = synthesizer
        self.sample_size = sample_size

    async def execute(self, action: Action, session: VoiceSession) -> Result[ExecutionResult]:
        if action.type is ActionType.NAVIGATE:
            return Result.success(ExecutionResult(action_type=action.type, destination=action.target))

        if action.type in (ActionType.SHOW_LIST, ActionType.SHOW_TODO):
            extras: Dict[str, Any] = {}
            if session.desk.secondary_list_id and session.desk.secondary_list_id != action.target:
                extras["linkedList"] = list_route(session.desk.secondary_list_id)
            if "todoId" in action.data:
                extras["todoId"] = action.data["todoId"]
            return Result.success(
                ExecutionResult(action_type=action.type, destination=list_route(action.target), extras=extras)
            )

        if action.type is ActionType.CREATE_TODO:
            return await self._create_todos(action, session)

        return Result.fail(ErrorKind.NOT_IMPLEMENTED, f"{action.type.value} has no executor", user_message=NOT_IMPLEMENTED_MESSAGES[action.type])

    async def _descriptor(self, list_id: str) -> Tuple[ListDescriptor, List[Mapping[str, Any]]]:
        lists, todos = await self.store.read_tables()
        row = lists.get(list_id)
        if row is None:
            raise KeyError(list_id)
        descriptor = ListDescriptor(
            id=list_id,
            name=str(row.get("name") or ""),
            purpose=str(row.get("purpose") or ""),
            template=str(row.get("template") or ""),
            systemPrompt=str(row.get("systemPrompt") or ""),
        )
        samples = [todo for todo in todos.values() if todo.get("list") == list_id][: self.sample_size]
        return descriptor, samples

    async def _create_todos(self, action: Action, session: VoiceSession) -> Result[ExecutionResult]:
        list_id = action.target or ""
        try:
            descriptor, samples = await self._descriptor(list_id)
        except KeyError:
            return Result.fail(ErrorKind.UNRESOLVED_TARGET, "target list disappeared before execution")

        synthesized = await self.synthesizer.synthesize(action.phrases, descriptor, samples)
        if not synthesized.ok:
            return Result.from_failure(synthesized.failure)

        if not session.is_live:
            logger.info("[EXEC] session no longer live; discarding synthesized todos")
            return Result.success(ExecutionResult(action_type=action.type))

        rows = [BatchRow(table="todos", row=record.to_row(list_id)) for record in synthesized.value]
        try:
            created = await self.store.insert_batch(rows)
        except StoreWriteError as exc:
            return Result.fail(ErrorKind.STORE_WRITE_FAILURE, exc)

        structured_log(
            {
                "event": "voice_todos_created",
                "session_id": session.session_id,
                "count": len(created),
            }
        )
        return Result.success(
            ExecutionResult(
                action_type=action.type,
                mutated_count=len(created),
                destination=list_route(list_id),
                created_ids=tuple(created),
            )
        )


__all__ = ["ActionExecutor", "ExecutionResult", "NOT_IMPLEMENTED_MESSAGES", "list_route"]
