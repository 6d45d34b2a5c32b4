"""Photo-to-template suggestion: one oracle call that matches an image against the catalog."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional, Sequence

from pydantic import ValidationError

from talkingtodos.app.config import Settings, get_settings
from talkingtodos.app.providers import InlinePart, OracleProvider, OracleRequest

from .errors import ErrorKind, Result
from .oracle import encode_payload, invoke_structured
from .schemas import TEMPLATE_RESPONSE_SCHEMA, TemplateInfo, TemplateSuggestion, TemplateSuggestions

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 3

TEMPLATE_INSTRUCTIONS = """You analyze photos to suggest the best template for creating a structured list.

Work out what the photo shows (recipe, document, collection, menu, etc.) and suggest the most \
appropriate templates from the available options, matching on content type, intended use and \
organization needs.

AVAILABLE TEMPLATES:
{catalog}

Reply with JSON: "analysis" (a brief description of the photo) and "suggestedTemplates", each with \
"templateId" (an exact id from the list), "confidence" (0-100), "reasoning", "suggestedName" and \
"suggestedIcon". Favour templates that would actually help organize what was photographed."""


def published_templates(catalog: Sequence[TemplateInfo]) -> Dict[str, TemplateInfo]:
    return {t.template: t for t in catalog if t.published}


class TemplateSuggester:
    def __init__(
        self,
        provider: OracleProvider,
        *,
        settings: Optional[Settings] = None,
        timeout_ms: Optional[int] = None,
    ) -> None:
        s = settings or get_settings()
        self.provider = provider
        self.model = s.oracle_model
        self.temperature = s.oracle_temperature
        self.max_output_tokens = s.oracle_max_output_tokens
        self.timeout_ms = timeout_ms if timeout_ms is not None else s.template_timeout_ms

    def build_request(self, encoded_image: str, mime_type: str, templates: Sequence[TemplateInfo]) -> OracleRequest:
        catalog = "\n".join(f"{t.template}: {t.name} - {t.purpose} (Type: {t.type})" for t in templates)
        return OracleRequest(
            model=self.model,
            system_instruction=TEMPLATE_INSTRUCTIONS.format(catalog=catalog),
            texts=["Suggest templates for this photo."],
            inline_parts=[InlinePart(mime_type=mime_type, data=encoded_image)],
            response_schema=TEMPLATE_RESPONSE_SCHEMA,
            schema_name="template_suggestions",
            temperature=self.temperature,
            max_output_tokens=self.max_output_tokens,
        )

    async def suggest(
        self,
        image: bytes,
        mime_type: str,
        catalog: Sequence[TemplateInfo],
    ) -> Result[TemplateSuggestions]:
        available = published_templates(catalog)
        if not available:
            return Result.success(TemplateSuggestions(analysis="", suggested_templates=[]))

        encoded = await asyncio.to_thread(encode_payload, image)
        raw = await invoke_structured(
            self.provider,
            self.build_request(encoded, mime_type, list(available.values())),
            timeout_ms=self.timeout_ms,
            call_site="template",
        )
        if not raw.ok:
            return Result.from_failure(raw.failure)

        try:
            parsed = TemplateSuggestions.model_validate(raw.value)
        except ValidationError as exc:
            return Result.fail(ErrorKind.MALFORMED_RESPONSE, f"template reply failed schema validation: {exc.error_count()} errors")

        kept: List[TemplateSuggestion] = []
        for suggestion in parsed.suggested_templates:
            template = available.get(suggestion.template_id)
            if template is None:
                logger.info("[TEMPLATE] dropped suggestion for unknown template")
                continue
            kept.append(suggestion.model_copy(update={"template_data": template}))
            if len(kept) == MAX_SUGGESTIONS:
                break

        return Result.success(TemplateSuggestions(analysis=parsed.analysis, suggested_templates=kept))


__all__ = ["MAX_SUGGESTIONS", "TEMPLATE_INSTRUCTIONS", "TemplateSuggester", "published_templates"]
