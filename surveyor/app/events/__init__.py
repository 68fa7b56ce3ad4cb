from .models import SurveyEvent, SurveyEventType, TERMINAL_EVENT_TYPES
from .emitter import SurveyEventEmitter, NullEventEmitter
from .memory_emitter import MemoryQueueEventEmitter

__all__ = [
    "SurveyEvent",
    "SurveyEventType",
    "TERMINAL_EVENT_TYPES",
    "SurveyEventEmitter",
    "NullEventEmitter",
    "MemoryQueueEventEmitter",
]
