from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

MAX_TRANSLATION_CHARS = 10_000
DEFAULT_REPLY_CONFIDENCE = 0.9
MAX_SMART_REPLIES = 3
MAX_BATCH_MESSAGES = 50


class _CamelModel(BaseModel):
    # Callable payloads use the client's camelCase field names
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Callable inputs
# ---------------------------------------------------------------------------


class _TextInput(_CamelModel):
    text: str = Field(min_length=1, max_length=MAX_TRANSLATION_CHARS)

    @field_validator("text")
    @classmethod
    def validate_text(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("text must not be blank")
        return v


class TranslateMessageInput(_TextInput):
    source_language: str | None = None
    target_language: str = Field(min_length=1)


class DetectLanguageInput(_TextInput):
    pass


class GenerateSmartRepliesInput(_CamelModel):
    conversation_id: str = Field(min_length=1)
    incoming_message_id: str = Field(min_length=1)
    target_language: str = Field(min_length=1)


class CulturalContextInput(_TextInput):
    language: str = Field(min_length=1)


class FormalityLevel(StrEnum):
    CASUAL = "casual"
    NEUTRAL = "neutral"
    FORMAL = "formal"


class AdjustFormalityInput(_TextInput):
    source_language: str | None = None
    # Older clients send ``language`` and ``targetFormality``
    target_language: str = Field(
        min_length=1, validation_alias=AliasChoices("targetLanguage", "language")
    )
    formality_level: FormalityLevel = Field(
        validation_alias=AliasChoices("formalityLevel", "targetFormality")
    )

    @field_validator("formality_level", mode="before")
    @classmethod
    def validate_formality_level(cls, v: Any) -> Any:
        return v.lower() if isinstance(v, str) else v


class ExtractDataInput(_TextInput):
    message_id: str | None = None
    conversation_id: str | None = None


class BatchMessage(BaseModel):
    """One entry of a batch extraction request. Invalid entries are skipped, not rejected."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)
    text: str = Field(min_length=1, max_length=MAX_TRANSLATION_CHARS)

    @field_validator("text")
    @classmethod
    def validate_text(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("text must not be blank")
        return v


class ExtractBatchInput(_CamelModel):
    messages: list[Any] = Field(min_length=1, max_length=MAX_BATCH_MESSAGES)
    conversation_id: str = Field(min_length=1)


# ---------------------------------------------------------------------------
# Gateway results
# ---------------------------------------------------------------------------


class TranslationResult(_CamelModel):
    translated_text: str
    source_language: str
    target_language: str
    cached: bool = False


class LanguageDetectionResult(_CamelModel):
    language_code: str
    cached: bool = False


class SmartReplyCategory(StrEnum):
    AFFIRMATIVE = "AFFIRMATIVE"
    NEGATIVE = "NEGATIVE"
    QUESTION = "QUESTION"
    NEUTRAL = "NEUTRAL"


class SmartReply(_CamelModel):
    reply_text: str
    confidence: float = DEFAULT_REPLY_CONFIDENCE
    category: SmartReplyCategory = SmartReplyCategory.NEUTRAL


class EmojiUsage(StrEnum):
    FREQUENT = "FREQUENT"
    OCCASIONAL = "OCCASIONAL"
    RARE = "RARE"


class Tone(StrEnum):
    CASUAL = "CASUAL"
    CONVERSATIONAL = "CONVERSATIONAL"
    FORMAL = "FORMAL"


class UserCommunicationStyle(_CamelModel):
    avg_message_length: int = 10  # words
    emoji_usage: EmojiUsage = EmojiUsage.OCCASIONAL
    tone: Tone = Tone.CONVERSATIONAL
    common_phrases: list[str] = []
    uses_contractions: bool = True
    punctuation_style: str = "standard"  # "minimal" | "standard" | "expressive"


class ReplySet(_CamelModel):
    replies: list[SmartReply]
    user_style: UserCommunicationStyle | None = None
    cached: bool = False


class CulturalInsight(_CamelModel):
    phrase: str
    literal_translation: str | None = None
    actual_meaning: str | None = None
    context: str | None = None
    formality: str | None = None  # "formal" | "casual" | "slang"


class CulturalContextResult(_CamelModel):
    text: str
    language: str
    insights: list[CulturalInsight]
    has_insights: bool
    cached: bool = False


class FormalityResult(_CamelModel):
    original_text: str
    adjusted_text: str
    source_language: str
    target_language: str
    formality_level: FormalityLevel
    cached: bool = False


class EntityType(StrEnum):
    ACTION_ITEM = "ACTION_ITEM"
    DATE_TIME = "DATE_TIME"
    CONTACT = "CONTACT"
    LOCATION = "LOCATION"


class ExtractedEntity(_CamelModel):
    type: EntityType
    text: str
    confidence: float = 0.0
    metadata: dict[str, Any] = {}


class EntitySet(_CamelModel):
    """Cached form of one extraction; request identifiers are not part of it."""

    entities: list[ExtractedEntity]
    cached: bool = False


class ExtractionResult(_CamelModel):
    entities: list[ExtractedEntity]
    message_id: str | None = None
    conversation_id: str | None = None
    extracted_at: int  # epoch ms
    cached: bool = False


class BatchExtractionItem(_CamelModel):
    message_id: str
    entities: list[ExtractedEntity]


class BatchExtractionResult(_CamelModel):
    results: list[BatchExtractionItem]
    conversation_id: str
    total_entities: int
    extracted_at: int  # epoch ms


# ---------------------------------------------------------------------------
# Provider response decoding
# ---------------------------------------------------------------------------


class ProviderReplyItem(BaseModel):
    """One reply as emitted by the model. Every field is optional on the wire.

    Defaults: confidence 0.9 when missing or outside [0, 1]; category NEUTRAL
    when missing or unknown. ``reply_text`` is None when the item carries
    neither ``text`` nor ``replyText``; such items are dropped by the caller.
    """

    model_config = ConfigDict(extra="ignore")

    text: str | None = None
    reply_text: str | None = Field(default=None, alias="replyText")
    confidence: float = DEFAULT_REPLY_CONFIDENCE
    category: SmartReplyCategory = SmartReplyCategory.NEUTRAL

    @field_validator("text", "reply_text", mode="before")
    @classmethod
    def validate_text(cls, v: Any) -> str | None:
        if not isinstance(v, str) or not v.strip():
            return None
        return v.strip()

    @field_validator("confidence", mode="before")
    @classmethod
    def validate_confidence(cls, v: Any) -> float:
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            return DEFAULT_REPLY_CONFIDENCE
        if not 0.0 <= v <= 1.0:
            return DEFAULT_REPLY_CONFIDENCE
        return float(v)

    @field_validator("category", mode="before")
    @classmethod
    def validate_category(cls, v: Any) -> SmartReplyCategory:
        if isinstance(v, str) and v.upper() in SmartReplyCategory.__members__:
            return SmartReplyCategory(v.upper())
        return SmartReplyCategory.NEUTRAL

    def to_reply(self) -> SmartReply | None:
        body = self.text or self.reply_text
        if body is None:
            return None
        return SmartReply(reply_text=body, confidence=self.confidence, category=self.category)


class ProviderReplyList(BaseModel):
    model_config = ConfigDict(extra="ignore")

    replies: list[Any] = []

    @field_validator("replies", mode="before")
    @classmethod
    def validate_replies(cls, v: Any) -> list[Any]:
        return v if isinstance(v, list) else []


class ProviderInsightItem(BaseModel):
    """One cultural insight as emitted by the model. Items without a phrase are dropped."""

    model_config = ConfigDict(extra="ignore", alias_generator=to_camel, populate_by_name=True)

    phrase: str | None = None
    literal_translation: str | None = None
    actual_meaning: str | None = None
    context: str | None = None
    formality: str | None = None

    @field_validator("*", mode="before")
    @classmethod
    def validate_strings(cls, v: Any) -> str | None:
        if not isinstance(v, str) or not v.strip():
            return None
        return v.strip()

    def to_insight(self) -> CulturalInsight | None:
        if self.phrase is None:
            return None
        return CulturalInsight(**self.model_dump())


class ProviderInsightList(BaseModel):
    model_config = ConfigDict(extra="ignore")

    insights: list[Any] = []

    @field_validator("insights", mode="before")
    @classmethod
    def validate_insights(cls, v: Any) -> list[Any]:
        return v if isinstance(v, list) else []


class ProviderEntityItem(BaseModel):
    """One extracted entity as emitted by the model.

    Items with an unknown type or no text are dropped. Confidence is 0.0 when
    missing or outside [0, 1]; metadata is empty when not an object.
    """

    model_config = ConfigDict(extra="ignore")

    type: EntityType | None = None
    text: str | None = None
    confidence: float = 0.0
    metadata: dict[str, Any] = {}

    @field_validator("type", mode="before")
    @classmethod
    def validate_type(cls, v: Any) -> EntityType | None:
        if isinstance(v, str) and v.upper() in EntityType.__members__:
            return EntityType(v.upper())
        return None

    @field_validator("text", mode="before")
    @classmethod
    def validate_text(cls, v: Any) -> str | None:
        if not isinstance(v, str) or not v.strip():
            return None
        return v.strip()

    @field_validator("confidence", mode="before")
    @classmethod
    def validate_confidence(cls, v: Any) -> float:
        if isinstance(v, bool) or not isinstance(v, (int, float)) or not 0.0 <= v <= 1.0:
            return 0.0
        return float(v)

    @field_validator("metadata", mode="before")
    @classmethod
    def validate_metadata(cls, v: Any) -> dict[str, Any]:
        return v if isinstance(v, dict) else {}

    def to_entity(self) -> ExtractedEntity | None:
        if self.type is None or self.text is None:
            return None
        return ExtractedEntity(
            type=self.type, text=self.text, confidence=self.confidence, metadata=self.metadata
        )


class ProviderEntityList(BaseModel):
    model_config = ConfigDict(extra="ignore")

    entities: list[Any] = []

    @field_validator("entities", mode="before")
    @classmethod
    def validate_entities(cls, v: Any) -> list[Any]:
        return v if isinstance(v, list) else []
