from .models import AuthorizationEvent, AuthorizationEventType
from .emitter import AuthorizationEventEmitter, NullEventEmitter
from .memory_emitter import MemoryQueueEventEmitter

__all__ = [
    "AuthorizationEvent",
    "AuthorizationEventType",
    "AuthorizationEventEmitter",
    "NullEventEmitter",
    "MemoryQueueEventEmitter",
]
