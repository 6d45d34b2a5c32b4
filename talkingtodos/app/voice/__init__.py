from .assistant import SessionActiveError, VoiceAssistant
from .capture import AudioRecorder, CapturedAudio, GrantedPermissions, PermissionGate
from .errors import ErrorKind, Result, VoiceFailure, build_failure
from .executor import ActionExecutor, ExecutionResult
from .oracle import IntentOracleClient, OracleReply
from .pipeline import VoicePipeline
from .schemas import Action, ActionType, ListDescriptor, TemplateInfo, TemplateSuggestions, TodoRecord, VoiceReply
from .session import DeskContext, InvalidTransitionError, PendingCreate, SessionState, VoiceSession
from .snapshot import ContextSnapshot, build_context, build_snapshot, serialize_snapshot
from .store import BatchRow, InMemoryStore, Store, StoreWriteError
from .synthesizer import TodoSynthesizer
from .templates import TemplateSuggester
from .validator import ActionValidator

__all__ = [
    "Action",
    "ActionExecutor",
    "ActionType",
    "ActionValidator",
    "AudioRecorder",
    "BatchRow",
    "CapturedAudio",
    "ContextSnapshot",
    "DeskContext",
    "ErrorKind",
    "ExecutionResult",
    "GrantedPermissions",
    "InMemoryStore",
    "IntentOracleClient",
    "InvalidTransitionError",
    "ListDescriptor",
    "OracleReply",
    "PendingCreate",
    "PermissionGate",
    "Result",
    "SessionActiveError",
    "SessionState",
    "Store",
    "StoreWriteError",
    "TemplateInfo",
    "TemplateSuggester",
    "TemplateSuggestions",
    "TodoRecord",
    "TodoSynthesizer",
    "VoiceAssistant",
    "VoiceFailure",
    "VoicePipeline",
    "VoiceReply",
    "VoiceSession",
    "build_context",
    "build_failure",
    "build_snapshot",
    "serialize_snapshot",
]
