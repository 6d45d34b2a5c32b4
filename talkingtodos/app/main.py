from __future__ import annotations

import base64
import binascii
import functools
import logging
import time
from logging.config import dictConfig
from typing import Any, Dict, List, Optional, Sequence, Union

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from talkingtodos.app.config import get_settings, safe_dict, validate_for_env
from talkingtodos.app.config.settings import Settings
from talkingtodos.app.middleware import RequestIdMiddleware
from talkingtodos.app.observability import get_request_id, hash_subject, structured_log
from talkingtodos.app.providers import OracleProvider, OracleProviderError, create_provider
from talkingtodos.app.voice import (
    ActionType,
    ActionValidator,
    DeskContext,
    ErrorKind,
    IntentOracleClient,
    ListDescriptor,
    TemplateInfo,
    TemplateSuggester,
    TodoSynthesizer,
    VoiceFailure,
    build_failure,
    build_snapshot,
)
from talkingtodos.app.voice.errors import CAPTURE_ERRORS, VALIDATION_ERRORS


LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
        }
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "default",
        }
    },
    "root": {
        "level": "INFO",
        "handlers": ["console"],
    },
}


_settings = get_settings()
LOGGING_CONFIG["root"]["level"] = (_settings.log_level or "INFO").upper()
dictConfig(LOGGING_CONFIG)
logger = logging.getLogger(__name__)

APP_VERSION = "1.4.0"
_start_time = time.monotonic()

app = FastAPI(title="Talking Todos")
app.add_middleware(RequestIdMiddleware, header_name=_settings.request_id_header)

_settings_summary = validate_for_env(_settings)
logger.info(
    "[CFG] loaded",
    extra={
        "env": _settings_summary.get("env"),
        "provider": _settings_summary.get("oracle_provider"),
        "model": _settings_summary.get("oracle_model"),
        "timeouts": _settings_summary.get("timeouts_ms"),
        "issues": _settings_summary.get("issues"),
    },
)


# ---------------------------
# Dependencies (overridable in tests)
# ---------------------------
def get_app_settings() -> Settings:
    return get_settings()


@functools.lru_cache(maxsize=1)
def _cached_provider() -> OracleProvider:
    s = get_settings()
    return create_provider(s, timeout_seconds=max(s.voice_timeout_ms, s.synthesis_timeout_ms) / 1000)


def get_oracle_provider() -> OracleProvider:
    return _cached_provider()


def get_template_catalog() -> Sequence[TemplateInfo]:
    """Catalog content ships with the client; deployments may override this."""
    return ()


# ---------------------------
# Request / response models
# ---------------------------
class ContextData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    lists: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    todos: Dict[str, Dict[str, Any]] = Field(default_factory=dict)


class VoiceRequest(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    audio: str
    mime_type: str = Field("audio/m4a", alias="mimeType")
    context_data: ContextData = Field(default_factory=ContextData, alias="contextData")
    primary_list_id: Optional[str] = Field(None, alias="primaryListId")
    secondary_list_id: Optional[str] = Field(None, alias="secondaryListId")


class ListInfo(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = ""
    name: str = ""
    purpose: str = ""
    template: str = ""
    system_prompt: str = Field("", alias="systemPrompt")


class GenerateTodosRequest(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    prompt: Union[str, List[str]]
    list_info: ListInfo = Field(default_factory=ListInfo, alias="listInfo")
    current_todos: List[Dict[str, Any]] = Field(default_factory=list, alias="currentTodos")

    def phrases(self) -> List[str]:
        items = [self.prompt] if isinstance(self.prompt, str) else list(self.prompt)
        return [p.strip() for p in items if isinstance(p, str) and p.strip()]


class PhotoTodosRequest(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    image: str
    mime_type: str = Field(alias="mimeType")
    list_info: ListInfo = Field(default_factory=ListInfo, alias="listInfo")
    current_todos: List[Dict[str, Any]] = Field(default_factory=list, alias="currentTodos")


class DetectTemplateRequest(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    image: str
    mime_type: str = Field(alias="mimeType")
    catalog: List[TemplateInfo] = Field(default_factory=list)


# ---------------------------
# Helpers
# ---------------------------
def status_for(kind: ErrorKind) -> int:
    if kind in CAPTURE_ERRORS:
        return 400
    if kind in VALIDATION_ERRORS:
        return 422
    if kind is ErrorKind.TIMEOUT:
        return 504
    return 502


def _failure_response(failure: VoiceFailure, request_id: str, extra: Optional[Dict[str, Any]] = None) -> JSONResponse:
    content: Dict[str, Any] = {"ok": False, "error": failure.kind.value, "message": failure.user_message}
    if extra:
        content.update(extra)
    return _with_request_id(JSONResponse(status_code=status_for(failure.kind), content=content), request_id)


def _with_request_id(response: JSONResponse, request_id: str) -> JSONResponse:
    response.headers.setdefault("X-Request-Id", request_id)
    return response


def _decode(payload: str) -> bytes:
    return base64.b64decode(payload, validate=True)


def _descriptor(info: ListInfo) -> ListDescriptor:
    return ListDescriptor(
        id=info.id,
        name=info.name,
        purpose=info.purpose,
        template=info.template,
        system_prompt=info.system_prompt,
    )


def _capture_failure(size: int, settings: Settings) -> Optional[VoiceFailure]:
    if size > settings.max_audio_bytes:
        return build_failure(ErrorKind.PAYLOAD_TOO_LARGE, f"payload is {size} bytes")
    if size < settings.min_audio_bytes:
        return build_failure(ErrorKind.CORRUPT_CAPTURE, f"payload is {size} bytes")
    return None


# ---------------------------
# Routes
# ---------------------------
@app.get("/health")
async def health() -> Dict[str, Any]:
    return {
        "status": "ok",
        "version": APP_VERSION,
        "uptime_seconds": int(time.monotonic() - _start_time),
    }


@app.post("/api/voice")
async def post_voice(
    request: Request,
    payload: VoiceRequest,
    settings: Settings = Depends(get_app_settings),
    provider: OracleProvider = Depends(get_oracle_provider),
) -> JSONResponse:
    rid = get_request_id(request)
    try:
        audio = _decode(payload.audio)
    except (binascii.Error, ValueError):
        return _failure_response(build_failure(ErrorKind.CORRUPT_CAPTURE, "audio is not valid base64"), rid)

    failure = _capture_failure(len(audio), settings)
    if failure is not None:
        return _failure_response(failure, rid)

    logger.info(
        "[API] voice request",
        extra=safe_dict(
            {
                "request_id": rid,
                "client": hash_subject(request.client.host if request.client else None),
                "bytes": len(audio),
                "lists": len(payload.context_data.lists),
            }
        ),
    )

    snapshot = build_snapshot(payload.context_data.lists, payload.context_data.todos)
    resolved = await IntentOracleClient(provider, settings=settings).resolve(audio, payload.mime_type, snapshot)
    if not resolved.ok:
        structured_log({"event": "api_voice", "request_id": rid, "outcome": resolved.failure.kind.value})
        return _failure_response(resolved.failure, rid)

    reply = resolved.value
    body: Dict[str, Any] = {
        "ok": True,
        "transcription": reply.transcription,
        "message": reply.message,
        "action": None,
        "requiresConfirmation": False,
    }
    if reply.raw_action is not None:
        desk = DeskContext(primary_list_id=payload.primary_list_id, secondary_list_id=payload.secondary_list_id)
        validated = ActionValidator().validate(reply.raw_action, snapshot, desk)
        if not validated.ok:
            structured_log({"event": "api_voice", "request_id": rid, "outcome": validated.failure.kind.value})
            return _failure_response(
                validated.failure,
                rid,
                extra={"transcription": reply.transcription, "reply": reply.message},
            )
        action = validated.value
        body["action"] = action.model_dump(mode="json")
        body["requiresConfirmation"] = action.type is ActionType.CREATE_TODO

    structured_log({"event": "api_voice", "request_id": rid, "outcome": "ok"})
    return _with_request_id(JSONResponse(status_code=200, content=body), rid)


@app.post("/api/generate-todos")
async def post_generate_todos(
    request: Request,
    payload: GenerateTodosRequest,
    settings: Settings = Depends(get_app_settings),
    provider: OracleProvider = Depends(get_oracle_provider),
) -> JSONResponse:
    rid = get_request_id(request)
    phrases = payload.phrases()
    if not phrases:
        return _failure_response(build_failure(ErrorKind.EMPTY_CREATE_REQUEST, "no prompt phrases"), rid)

    descriptor = _descriptor(payload.list_info)
    samples = payload.current_todos[: settings.synthesis_sample_size]
    synthesized = await TodoSynthesizer(provider, settings=settings).synthesize(phrases, descriptor, samples)
    if not synthesized.ok:
        return _failure_response(synthesized.failure, rid)

    todos = [record.model_dump(by_alias=True, exclude_none=True) for record in synthesized.value]
    return _with_request_id(JSONResponse(status_code=200, content={"ok": True, "todos": todos}), rid)


@app.post("/api/photo-todos")
async def post_photo_todos(
    request: Request,
    payload: PhotoTodosRequest,
    settings: Settings = Depends(get_app_settings),
    provider: OracleProvider = Depends(get_oracle_provider),
) -> JSONResponse:
    rid = get_request_id(request)
    try:
        image = _decode(payload.image)
    except (binascii.Error, ValueError):
        return _failure_response(build_failure(ErrorKind.CORRUPT_CAPTURE, "image is not valid base64"), rid)
    if len(image) > settings.max_audio_bytes:
        return _failure_response(build_failure(ErrorKind.PAYLOAD_TOO_LARGE, f"image is {len(image)} bytes"), rid)

    samples = payload.current_todos[: settings.synthesis_sample_size]
    synthesizer = TodoSynthesizer(provider, settings=settings)
    synthesized = await synthesizer.synthesize_from_photo(image, payload.mime_type, _descriptor(payload.list_info), samples)
    if not synthesized.ok:
        structured_log({"event": "api_photo_todos", "request_id": rid, "outcome": synthesized.failure.kind.value})
        return _failure_response(synthesized.failure, rid)

    todos = [record.model_dump(by_alias=True, exclude_none=True) for record in synthesized.value]
    structured_log({"event": "api_photo_todos", "request_id": rid, "outcome": "ok", "count": len(todos)})
    return _with_request_id(JSONResponse(status_code=200, content={"ok": True, "todos": todos}), rid)


@app.post("/api/detect-template")
async def post_detect_template(
    request: Request,
    payload: DetectTemplateRequest,
    settings: Settings = Depends(get_app_settings),
    provider: OracleProvider = Depends(get_oracle_provider),
    catalog: Sequence[TemplateInfo] = Depends(get_template_catalog),
) -> JSONResponse:
    rid = get_request_id(request)
    try:
        image = _decode(payload.image)
    except (binascii.Error, ValueError):
        return _failure_response(build_failure(ErrorKind.CORRUPT_CAPTURE, "image is not valid base64"), rid)
    if len(image) > settings.max_audio_bytes:
        return _failure_response(build_failure(ErrorKind.PAYLOAD_TOO_LARGE, f"image is {len(image)} bytes"), rid)

    templates = payload.catalog or list(catalog)
    suggested = await TemplateSuggester(provider, settings=settings).suggest(image, payload.mime_type, templates)
    if not suggested.ok:
        return _failure_response(suggested.failure, rid)

    content = suggested.value.model_dump(by_alias=True, mode="json")
    content["ok"] = True
    return _with_request_id(JSONResponse(status_code=200, content=content), rid)


@app.exception_handler(OracleProviderError)
async def handle_provider_error(request: Request, exc: OracleProviderError) -> JSONResponse:
    logger.warning("[API] oracle provider unavailable", extra={"provider": exc.provider})
    return _failure_response(build_failure(ErrorKind.UPSTREAM_ERROR, exc), get_request_id(request))


@app.exception_handler(Exception)
async def handle_unhandled_exception(request: Request, exc: Exception) -> JSONResponse:  # noqa: BLE001
    logger.exception("Unhandled error in request")
    content = {"ok": False, "error": "internal_error", "message": "Internal server error"}
    return JSONResponse(status_code=500, content=content)
