from __future__ import annotations

from gchat.models.ai import (
    AdjustFormalityInput,
    BatchExtractionResult,
    CulturalContextInput,
    CulturalContextResult,
    DetectLanguageInput,
    EntityType,
    ExtractBatchInput,
    ExtractDataInput,
    ExtractedEntity,
    ExtractionResult,
    FormalityLevel,
    FormalityResult,
    GenerateSmartRepliesInput,
    LanguageDetectionResult,
    ReplySet,
    SmartReply,
    SmartReplyCategory,
    TranslateMessageInput,
    TranslationResult,
    UserCommunicationStyle,
)
from gchat.models.cache import CacheEntry
from gchat.models.directory import (
    ChatMessage,
    Conversation,
    ConversationType,
    MessageType,
    ReactionPreview,
    UserRecord,
)
from gchat.models.events import MessageCreatedEvent, MessageSnapshot, ReactionUpdatedEvent
from gchat.models.notifications import (
    DispatchReceipt,
    DispatchState,
    NotificationTask,
    PayloadKind,
    ReactionDelta,
    SendResult,
)
from gchat.models.ratelimit import RateLimitWindow

__all__ = [
    # cache / rate limit
    "CacheEntry",
    "RateLimitWindow",
    # directory
    "UserRecord",
    "Conversation",
    "ConversationType",
    "ChatMessage",
    "MessageType",
    "ReactionPreview",
    # events
    "MessageCreatedEvent",
    "MessageSnapshot",
    "ReactionUpdatedEvent",
    # notifications
    "NotificationTask",
    "PayloadKind",
    "DispatchState",
    "DispatchReceipt",
    "ReactionDelta",
    "SendResult",
    # ai
    "TranslateMessageInput",
    "TranslationResult",
    "DetectLanguageInput",
    "LanguageDetectionResult",
    "GenerateSmartRepliesInput",
    "SmartReply",
    "SmartReplyCategory",
    "ReplySet",
    "UserCommunicationStyle",
    "CulturalContextInput",
    "CulturalContextResult",
    "AdjustFormalityInput",
    "FormalityLevel",
    "FormalityResult",
    "ExtractDataInput",
    "ExtractBatchInput",
    "EntityType",
    "ExtractedEntity",
    "ExtractionResult",
    "BatchExtractionResult",
]
