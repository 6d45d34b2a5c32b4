from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


TODO_TYPES = ("A", "B", "C", "D", "E")
NUMERIC_FIELDS = ("number", "amount", "fiveStarRating")


def coerce_number(value: Any) -> float | int:
    """Parse numeric-looking input; anything else becomes 0. Never raises."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        text = value.strip().replace(",", "")
        try:
            number = float(text)
        except ValueError:
            return 0
        if number != number or number in (float("inf"), float("-inf")):
            return 0
        return int(number) if number.is_integer() else number
    return 0


class ActionType(str, Enum):
    NAVIGATE = "navigate"
    SHOW_LIST = "show_list"
    SHOW_TODO = "show_todo"
    CREATE_TODO = "create_todo"
    UPDATE_TODO = "update_todo"
    DELETE_TODO = "delete_todo"
    CREATE_LIST = "create_list"
    ADD_TODO = "add_todo"


# ---------------------------
# Oracle wire contract
# ---------------------------
class OracleActionPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: str
    target: str
    data: Optional[Any] = None


class OracleVoicePayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    transcription: str
    message: str
    action: Optional[OracleActionPayload] = None


VOICE_RESPONSE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "transcription": {"type": "string", "description": "What the user said, verbatim"},
        "message": {"type": "string", "description": "The reply to display to the user"},
        "action": {
            "type": "object",
            "properties": {
                "type": {
                    "type": "string",
                    "enum": [t.value for t in ActionType],
                    "description": "The action to take",
                },
                "target": {"type": "string", "description": "List id, todo id or route path"},
                "data": {"type": "string", "description": "JSON object with action-specific fields"},
            },
            "required": ["type", "target"],
        },
    },
    "required": ["transcription", "message"],
}


# ---------------------------
# Validated action
# ---------------------------
class Action(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: ActionType
    target: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)

    @property
    def phrases(self) -> List[str]:
        """Non-empty creation phrases across ``data.texts`` and ``data.text``."""
        found: List[str] = []
        texts = self.data.get("texts")
        if isinstance(texts, (list, tuple)):
            found.extend(t.strip() for t in texts if isinstance(t, str) and t.strip())
        text = self.data.get("text")
        if isinstance(text, str) and text.strip():
            found.append(text.strip())
        return found


class VoiceReply(BaseModel):
    """What the session shows the user: the oracle's words plus the validated action."""

    model_config = ConfigDict(frozen=True)

    message: str
    action: Optional[Action] = None


# ---------------------------
# Todo synthesis contract
# ---------------------------
class TodoRecord(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    text: str = Field(min_length=1)
    done: bool = False
    notes: Optional[str] = None
    emoji: Optional[str] = None
    category: Optional[str] = None
    type: Optional[Literal["A", "B", "C", "D", "E"]] = None
    date: Optional[str] = None
    time: Optional[str] = None
    url: Optional[str] = None
    email: Optional[str] = None
    street_address: Optional[str] = Field(None, alias="streetAddress")
    number: Optional[float] = None
    amount: Optional[float] = None
    five_star_rating: Optional[int] = Field(None, alias="fiveStarRating")

    @field_validator("text", mode="before")
    @classmethod
    def strip_text(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("done", mode="before")
    @classmethod
    def force_not_done(cls, v: Any) -> bool:
        # New records are never created completed
        return False

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, v: Any) -> Optional[str]:
        if isinstance(v, str):
            letter = v.strip()[:1].upper()
            return letter if letter in TODO_TYPES else None
        return None

    @field_validator("number", "amount", mode="before")
    @classmethod
    def parse_numeric(cls, v: Any) -> Optional[float]:
        if v is None or v == "":
            return None
        return coerce_number(v)

    @field_validator("five_star_rating", mode="before")
    @classmethod
    def clamp_rating(cls, v: Any) -> Optional[int]:
        if v is None or v == "":
            return None
        rating = int(coerce_number(v))
        return rating if 1 <= rating <= 5 else None

    @field_validator(
        "notes", "emoji", "category", "date", "time", "url", "email", "street_address", mode="before"
    )
    @classmethod
    def blank_to_none(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        text = str(v).strip()
        return text or None

    def to_row(self, list_id: str) -> Dict[str, Any]:
        row = self.model_dump(by_alias=True, exclude_none=True)
        row["list"] = list_id
        return row


class SynthesisPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    todos: List[Dict[str, Any]]


TODO_PROPERTIES: Dict[str, Any] = {
    "text": {"type": "string", "description": "The main text/title of the todo item"},
    "notes": {"type": "string", "description": "Additional notes or details"},
    "emoji": {"type": "string", "description": "A relevant emoji"},
    "category": {"type": "string", "description": "The category or grouping"},
    "type": {"type": "string", "description": "Priority: A (critical) to E (someday)"},
    "done": {"type": "boolean", "description": "Always false for new todos"},
    "date": {"type": "string", "description": "Due date as YYYY-MM-DD if applicable"},
    "time": {"type": "string", "description": "Due time as HH:MM if applicable"},
    "url": {"type": "string"},
    "email": {"type": "string"},
    "streetAddress": {"type": "string"},
    "number": {"type": "number"},
    "amount": {"type": "number"},
    "fiveStarRating": {"type": "integer", "description": "1 to 5"},
}

SYNTHESIS_RESPONSE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "todos": {
            "type": "array",
            "items": {"type": "object", "properties": TODO_PROPERTIES, "required": ["text", "done"]},
        }
    },
    "required": ["todos"],
}


class ListDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    name: str = ""
    purpose: str = ""
    template: str = ""
    system_prompt: str = Field("", alias="systemPrompt")


# ---------------------------
# Template suggestion contract
# ---------------------------
class TemplateInfo(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    template: str
    name: str
    purpose: str = ""
    type: str = "Info"
    icon: str = ""
    background_colour: str = Field("blue", alias="backgroundColour")
    published: bool = True


class TemplateSuggestion(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    template_id: str = Field(alias="templateId")
    confidence: float = 0.0
    reasoning: str = ""
    suggested_name: str = Field("", alias="suggestedName")
    suggested_icon: str = Field("", alias="suggestedIcon")
    template_data: Optional[TemplateInfo] = Field(None, alias="templateData")

    @field_validator("confidence", mode="before")
    @classmethod
    def parse_confidence(cls, v: Any) -> float:
        return float(coerce_number(v))


class TemplateSuggestions(BaseModel):
    analysis: str = ""
    suggested_templates: List[TemplateSuggestion] = Field(default_factory=list, alias="suggestedTemplates")

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


TEMPLATE_RESPONSE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "analysis": {"type": "string", "description": "Brief description of the photo"},
        "suggestedTemplates": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "templateId": {"type": "string"},
                    "confidence": {"type": "number"},
                    "reasoning": {"type": "string"},
                    "suggestedName": {"type": "string"},
                    "suggestedIcon": {"type": "string"},
                },
                "required": ["templateId"],
            },
        },
    },
    "required": ["analysis", "suggestedTemplates"],
}


__all__ = [
    "Action",
    "ActionType",
    "ListDescriptor",
    "NUMERIC_FIELDS",
    "OracleActionPayload",
    "OracleVoicePayload",
    "SynthesisPayload",
    "SYNTHESIS_RESPONSE_SCHEMA",
    "TEMPLATE_RESPONSE_SCHEMA",
    "TemplateInfo",
    "TemplateSuggestion",
    "TemplateSuggestions",
    "TodoRecord",
    "VOICE_RESPONSE_SCHEMA",
    "VoiceReply",
    "coerce_number",
]
