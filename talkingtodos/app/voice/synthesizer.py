"""Todo synthesis: short phrases in, fully typed todo records out.

A second, independent oracle call. The list's name, purpose and a few of its
existing todos are passed as style examples; those examples must never come
back as new records.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import AbstractSet, Any, List, Mapping, Optional, Sequence

from pydantic import ValidationError

from talkingtodos.app.config import Settings, get_settings
from talkingtodos.app.providers import InlinePart, OracleProvider, OracleRequest

from .errors import ErrorKind, Result
from .oracle import encode_payload, invoke_structured
from .schemas import SYNTHESIS_RESPONSE_SCHEMA, ListDescriptor, SynthesisPayload, TodoRecord

logger = logging.getLogger(__name__)

SYNTHESIS_INSTRUCTIONS = """You are a helpful assistant generating todos for a list.

List Information:
- List Name: "{name}"
- List Purpose: "{purpose}"
- List Template: "{template}"
- Special Instructions: "{system_prompt}"

To help you understand the schema of a todo for this list, here are some current todos: {examples}

Generated todos match the style and purpose of the list.
Only provide the new todos, never the existing todos provided for context.
Every todo has "done": false."""


PHOTO_INSTRUCTIONS = """Analyze the attached photo and create todo items based on what it shows.
Generate relevant, specific and contextual todos; how many is up to you."""


def _normalized(text: Any) -> str:
    return " ".join(str(text or "").split()).casefold()


class TodoSynthesizer:
    """Turns spoken phrases, or a photo, into todo records styled after the target list."""

    def __init__(
        self,
        provider: OracleProvider,
        *,
        settings: Optional[Settings] = None,
        timeout_ms: Optional[int] = None,
    ) -> None:
        s = settings or get_settings()
        self.provider = provider
        self.model = s.synthesis_model
        self.temperature = s.oracle_temperature
        self.max_output_tokens = max(2048, s.oracle_max_output_tokens)
        self.timeout_ms = timeout_ms if timeout_ms is not None else s.synthesis_timeout_ms
        self.photo_timeout_ms = s.photo_timeout_ms

    def _instructions(self, descriptor: ListDescriptor, sample_todos: Sequence[Mapping[str, Any]]) -> str:
        examples = [{k: v for k, v in todo.items() if k not in ("list", "id")} for todo in sample_todos]
        return SYNTHESIS_INSTRUCTIONS.format(
            name=descriptor.name,
            purpose=descriptor.purpose,
            template=descriptor.template,
            system_prompt=descriptor.system_prompt,
            examples=json.dumps(examples, ensure_ascii=False, default=str),
        )

    def build_request(
        self,
        phrases: Sequence[str],
        descriptor: ListDescriptor,
        sample_todos: Sequence[Mapping[str, Any]],
    ) -> OracleRequest:
        return OracleRequest(
            model=self.model,
            system_instruction=self._instructions(descriptor, sample_todos),
            texts=["Create exactly one todo per requested item:\n" + "\n".join(f"- {p}" for p in phrases)],
            response_schema=SYNTHESIS_RESPONSE_SCHEMA,
            schema_name="todos",
            temperature=self.temperature,
            max_output_tokens=self.max_output_tokens,
        )

    def build_photo_request(
        self,
        encoded_image: str,
        mime_type: str,
        descriptor: ListDescriptor,
        sample_todos: Sequence[Mapping[str, Any]],
    ) -> OracleRequest:
        return OracleRequest(
            model=self.model,
            system_instruction=self._instructions(descriptor, sample_todos),
            texts=[PHOTO_INSTRUCTIONS],
            inline_parts=[InlinePart(mime_type=mime_type, data=encoded_image)],
            response_schema=SYNTHESIS_RESPONSE_SCHEMA,
            schema_name="todos",
            temperature=self.temperature,
            max_output_tokens=self.max_output_tokens,
        )

    async def synthesize(
        self,
        phrases: Sequence[str],
        descriptor: ListDescriptor,
        sample_todos: Sequence[Mapping[str, Any]] = (),
    ) -> Result[List[TodoRecord]]:
        wanted = [p.strip() for p in phrases if isinstance(p, str) and p.strip()]
        if not wanted:
            return Result.fail(ErrorKind.SYNTHESIS_FAILURE, "no phrases to synthesize")

        raw = await invoke_structured(
            self.provider,
            self.build_request(wanted, descriptor, sample_todos),
            timeout_ms=self.timeout_ms,
            call_site="synthesis",
        )
        parsed = self._records(raw, sample_todos, keep={_normalized(p) for p in wanted})
        if not parsed.ok:
            return parsed

        records = parsed.value
        if len(records) < len(wanted):
            return Result.fail(
                ErrorKind.SYNTHESIS_FAILURE,
                f"expected {len(wanted)} todos, got {len(records)}",
            )
        return Result.success(records[: len(wanted)])

    async def synthesize_from_photo(
        self,
        image: bytes,
        mime_type: str,
        descriptor: ListDescriptor,
        sample_todos: Sequence[Mapping[str, Any]] = (),
    ) -> Result[List[TodoRecord]]:
        """One oracle call with the photo inline; at least one new record or SynthesisFailure."""
        encoded = await asyncio.to_thread(encode_payload, image)
        raw = await invoke_structured(
            self.provider,
            self.build_photo_request(encoded, mime_type, descriptor, sample_todos),
            timeout_ms=self.photo_timeout_ms,
            call_site="photo_synthesis",
        )
        if not raw.ok:
            return Result.from_failure(raw.failure)
        parsed = self._records(raw, sample_todos)
        if parsed.ok and not parsed.value:
            return Result.fail(ErrorKind.SYNTHESIS_FAILURE, "photo produced no new todos")
        return parsed

    def _records(
        self,
        raw: Result[Any],
        sample_todos: Sequence[Mapping[str, Any]],
        keep: AbstractSet[str] = frozenset(),
    ) -> Result[List[TodoRecord]]:
        if not raw.ok:
            return Result.fail(ErrorKind.SYNTHESIS_FAILURE, f"{raw.failure.kind.value}: {raw.failure.detail}")

        try:
            payload = SynthesisPayload.model_validate(raw.value)
        except ValidationError as exc:
            return Result.fail(ErrorKind.SYNTHESIS_FAILURE, f"synthesis reply failed schema validation: {exc.error_count()} errors")

        existing = {_normalized(todo.get("text")) for todo in sample_todos}
        records: List[TodoRecord] = []
        for item in payload.todos:
            try:
                record = TodoRecord.model_validate(item)
            except ValidationError as exc:
                return Result.fail(ErrorKind.SYNTHESIS_FAILURE, f"invalid todo record: {exc.error_count()} errors")
            text = _normalized(record.text)
            if text in existing and text not in keep:
                logger.info("[SYNTH] dropped echoed example todo")
                continue
            records.append(record)
        return Result.success(records)


__all__ = ["PHOTO_INSTRUCTIONS", "SYNTHESIS_INSTRUCTIONS", "TodoSynthesizer"]
