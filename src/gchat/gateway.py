"""AI gateway: rate limit, then cache, then provider.

Every operation follows the same path: enforce the caller's rate limit for
the feature, derive the cache key from the normalised inputs, return a cached
result on a hit (bumping its hit count), otherwise call the provider with the
feature's fixed configuration and cache the successful result. Provider
failures propagate as ProviderFailure and are never cached.
"""

from __future__ import annotations

import json
import time
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from gchat import prompts
from gchat.cache import generate_cache_key
from gchat.errors import (
    ConversationNotFound,
    InvalidArgument,
    MalformedProviderResponse,
    MessageNotFound,
    PermissionDenied,
    ProviderFailure,
)
from gchat.models.ai import (
    MAX_SMART_REPLIES,
    BatchExtractionItem,
    BatchExtractionResult,
    BatchMessage,
    CulturalContextResult,
    CulturalInsight,
    EntitySet,
    ExtractedEntity,
    ExtractionResult,
    FormalityLevel,
    FormalityResult,
    LanguageDetectionResult,
    ProviderEntityItem,
    ProviderEntityList,
    ProviderInsightItem,
    ProviderInsightList,
    ProviderReplyItem,
    ProviderReplyList,
    ReplySet,
    SmartReply,
    TranslationResult,
)
from gchat.models.directory import MessageType
from gchat.provider import (
    BATCH_DATA_EXTRACTION,
    CULTURAL_CONTEXT,
    DATA_EXTRACTION,
    FORMALITY_ADJUSTMENT,
    LANGUAGE_DETECTION,
    SMART_REPLY,
    TRANSLATION,
)
from gchat.style import analyze_user_style

if TYPE_CHECKING:
    from pydantic import BaseModel

    from gchat.protocols import (
        CacheProtocol,
        DirectoryProtocol,
        ProviderSourceProtocol,
        RateLimiterProtocol,
    )

log = structlog.get_logger()

DEFAULT_LANGUAGE_CODE = "en"
CONTEXT_MESSAGE_LIMIT = 30
HISTORY_MESSAGE_LIMIT = 50


def parse_smart_replies(raw: str) -> list[SmartReply]:
    """Decode the provider's JSON reply list.

    Items missing reply text (or not objects at all) are dropped; other
    fields fall back to their documented defaults. Raises
    MalformedProviderResponse if the body is not JSON or nothing usable
    remains.
    """
    try:
        envelope = ProviderReplyList.model_validate(json.loads(raw))
    except (ValueError, ValidationError) as exc:
        raise MalformedProviderResponse("Smart reply response is not a JSON object") from exc

    replies: list[SmartReply] = []
    dropped = 0
    for item in envelope.replies:
        try:
            reply = ProviderReplyItem.model_validate(item).to_reply()
        except ValidationError:
            reply = None
        if reply is None:
            dropped += 1
            continue
        replies.append(reply)

    if dropped:
        log.warning("smart_reply_items_dropped", dropped=dropped, kept=len(replies))
    if not replies:
        raise MalformedProviderResponse("Smart reply generation produced no usable replies")
    return replies[:MAX_SMART_REPLIES]


def _load_json(raw: str, what: str) -> Any:
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise MalformedProviderResponse(f"{what} response is not JSON") from exc


def parse_cultural_insights(raw: str) -> list[CulturalInsight]:
    """Decode the provider's insight list. An empty list is a valid answer.

    Accepts either ``{"insights": [...]}`` or a bare array. Items without a
    phrase are dropped.
    """
    body = _load_json(raw, "Cultural context")
    if isinstance(body, list):
        body = {"insights": body}
    if not isinstance(body, dict):
        raise MalformedProviderResponse("Cultural context response is not a JSON object")
    envelope = ProviderInsightList.model_validate(body)

    insights: list[CulturalInsight] = []
    for item in envelope.insights:
        try:
            insight = ProviderInsightItem.model_validate(item).to_insight()
        except ValidationError:
            insight = None
        if insight is not None:
            insights.append(insight)
    return insights


def parse_entities(raw: str) -> list[ExtractedEntity]:
    """Decode the provider's entity list. An empty list is a valid answer."""
    body = _load_json(raw, "Data extraction")
    if not isinstance(body, dict):
        raise MalformedProviderResponse("Data extraction response is not a JSON object")
    envelope = ProviderEntityList.model_validate(body)

    entities: list[ExtractedEntity] = []
    dropped = 0
    for item in envelope.entities:
        try:
            entity = ProviderEntityItem.model_validate(item).to_entity()
        except ValidationError:
            entity = None
        if entity is None:
            dropped += 1
            continue
        entities.append(entity)
    if dropped:
        log.warning("entities_dropped", dropped=dropped, kept=len(entities))
    return entities


class AIGateway:
    """Cache-first, rate-limited access to the language-model provider."""

    def __init__(
        self,
        cache: CacheProtocol,
        rate_limiter: RateLimiterProtocol,
        providers: ProviderSourceProtocol,
        directory: DirectoryProtocol,
    ) -> None:
        self._cache = cache
        self._rate_limiter = rate_limiter
        self._providers = providers
        self._directory = directory

    async def _cached(self, key: str, model: type[BaseModel]) -> Any:
        """Return the cached result as ``model`` with ``cached=True``, or None on miss."""
        entry = await self._cache.get(key)
        if entry is None:
            return None
        try:
            result = model.model_validate({**entry.result, "cached": True})
        except ValidationError:
            log.warning("cache_entry_invalid", key=key)
            return None
        await self._cache.touch_hit(key)
        log.info("cache_hit", key=key, hit_count=entry.hit_count + 1)
        return result

    async def _store(
        self, key: str, original_input: str, result: BaseModel, user_id: str
    ) -> None:
        payload: dict[str, Any] = result.model_dump(
            mode="json", by_alias=True, exclude={"cached"}
        )
        await self._cache.put(key, original_input, payload, owner_user_id=user_id)

    # ------------------------------------------------------------------
    # Translation
    # ------------------------------------------------------------------

    async def translate(
        self,
        text: str,
        source_language: str | None,
        target_language: str,
        user_id: str,
    ) -> TranslationResult:
        await self._rate_limiter.enforce(user_id, TRANSLATION)

        key = generate_cache_key(text, TRANSLATION, target_language)
        cached = await self._cached(key, TranslationResult)
        if cached is not None:
            return cached

        log.info("cache_miss", feature=TRANSLATION, key=key)
        provider = self._providers.get()
        content = await provider.complete(
            TRANSLATION, prompts.translation_messages(text, source_language, target_language)
        )
        translated = content.strip()
        if not translated:
            raise MalformedProviderResponse("Translation response was empty")

        result = TranslationResult(
            translated_text=translated,
            source_language=source_language or "auto",
            target_language=target_language,
            cached=False,
        )
        await self._store(key, text, result, user_id)
        return result

    async def detect_language(self, text: str, user_id: str) -> LanguageDetectionResult:
        await self._rate_limiter.enforce(user_id, LANGUAGE_DETECTION)

        key = generate_cache_key(text, LANGUAGE_DETECTION)
        cached = await self._cached(key, LanguageDetectionResult)
        if cached is not None:
            return cached

        log.info("cache_miss", feature=LANGUAGE_DETECTION, key=key)
        provider = self._providers.get()
        content = await provider.complete(
            LANGUAGE_DETECTION, prompts.language_detection_messages(text)
        )
        code = content.strip().strip(".\"'").lower() or DEFAULT_LANGUAGE_CODE

        result = LanguageDetectionResult(language_code=code, cached=False)
        await self._store(key, text, result, user_id)
        return result

    # ------------------------------------------------------------------
    # Smart replies
    # ------------------------------------------------------------------

    async def generate_smart_replies(
        self,
        conversation_id: str,
        incoming_message_id: str,
        target_language: str,
        user_id: str,
    ) -> ReplySet:
        await self._rate_limiter.enforce(user_id, SMART_REPLY)

        conversation = await self._directory.get_conversation(conversation_id)
        if conversation is None:
            raise ConversationNotFound(conversation_id)
        if user_id not in conversation.participants:
            raise PermissionDenied("User is not a participant in this conversation")

        incoming = await self._directory.get_message(conversation_id, incoming_message_id)
        if incoming is None:
            raise MessageNotFound(conversation_id, incoming_message_id)
        if incoming.type is not MessageType.TEXT or not incoming.text:
            raise InvalidArgument("Can only generate replies for text messages")

        key = generate_cache_key(
            incoming.text,
            SMART_REPLY,
            conversation_id,
            incoming_message_id,
            target_language,
            user_id,
        )
        cached = await self._cached(key, ReplySet)
        if cached is not None:
            return cached

        log.info("cache_miss", feature=SMART_REPLY, key=key)
        history = await self._directory.recent_text_messages(
            conversation_id, limit=HISTORY_MESSAGE_LIMIT
        )
        style = analyze_user_style(
            [m.text for m in history if m.sender_id == user_id and m.text]
        )
        context = "\n".join(
            f"{'You' if m.sender_id == user_id else 'Other'}: {m.text}"
            for m in history[-CONTEXT_MESSAGE_LIMIT:]
        )

        provider = self._providers.get()
        content = await provider.complete(
            SMART_REPLY,
            prompts.smart_reply_messages(style, target_language, context, incoming.text),
        )
        replies = parse_smart_replies(content)
        if len(replies) < MAX_SMART_REPLIES:
            log.warning("smart_reply_count_low", count=len(replies), expected=MAX_SMART_REPLIES)

        result = ReplySet(replies=replies, user_style=style, cached=False)
        await self._store(key, incoming.text, result, user_id)
        log.info("smart_replies_generated", conversation_id=conversation_id, count=len(replies))
        return result

    # ------------------------------------------------------------------
    # Cultural context and formality
    # ------------------------------------------------------------------

    async def get_cultural_context(
        self, text: str, language: str, user_id: str
    ) -> CulturalContextResult:
        await self._rate_limiter.enforce(user_id, CULTURAL_CONTEXT)

        key = generate_cache_key(text, CULTURAL_CONTEXT, language)
        cached = await self._cached(key, CulturalContextResult)
        if cached is not None:
            return cached

        log.info("cache_miss", feature=CULTURAL_CONTEXT, key=key)
        provider = self._providers.get()
        content = await provider.complete(
            CULTURAL_CONTEXT, prompts.cultural_context_messages(text, language)
        )
        insights = parse_cultural_insights(content)

        result = CulturalContextResult(
            text=text,
            language=language,
            insights=insights,
            has_insights=bool(insights),
            cached=False,
        )
        await self._store(key, text, result, user_id)
        return result

    async def adjust_formality(
        self,
        text: str,
        source_language: str | None,
        target_language: str,
        level: FormalityLevel,
        user_id: str,
    ) -> FormalityResult:
        await self._rate_limiter.enforce(user_id, FORMALITY_ADJUSTMENT)

        source = source_language or "auto"
        key = generate_cache_key(
            text, FORMALITY_ADJUSTMENT, source, target_language, level.value
        )
        cached = await self._cached(key, FormalityResult)
        if cached is not None:
            return cached

        log.info("cache_miss", feature=FORMALITY_ADJUSTMENT, key=key)
        provider = self._providers.get()
        content = await provider.complete(
            FORMALITY_ADJUSTMENT,
            prompts.formality_messages(text, source_language, target_language, level),
        )
        adjusted = content.strip()
        if not adjusted:
            raise MalformedProviderResponse("Formality adjustment response was empty")

        result = FormalityResult(
            original_text=text,
            adjusted_text=adjusted,
            source_language=source,
            target_language=target_language,
            formality_level=level,
            cached=False,
        )
        await self._store(key, text, result, user_id)
        return result

    # ------------------------------------------------------------------
    # Data extraction
    # ------------------------------------------------------------------

    async def _extract_entities(self, text: str, user_id: str) -> EntitySet:
        key = generate_cache_key(text, DATA_EXTRACTION)
        cached = await self._cached(key, EntitySet)
        if cached is not None:
            return cached

        log.info("cache_miss", feature=DATA_EXTRACTION, key=key)
        provider = self._providers.get()
        content = await provider.complete(
            DATA_EXTRACTION, prompts.data_extraction_messages(text)
        )
        result = EntitySet(entities=parse_entities(content), cached=False)
        await self._store(key, text, result, user_id)
        return result

    async def extract_data(
        self,
        text: str,
        message_id: str | None,
        conversation_id: str | None,
        user_id: str,
    ) -> ExtractionResult:
        await self._rate_limiter.enforce(user_id, DATA_EXTRACTION)

        entity_set = await self._extract_entities(text, user_id)
        log.info("entities_extracted", count=len(entity_set.entities), cached=entity_set.cached)
        return ExtractionResult(
            entities=entity_set.entities,
            message_id=message_id,
            conversation_id=conversation_id,
            extracted_at=int(time.time() * 1000),
            cached=entity_set.cached,
        )

    async def extract_batch(
        self, messages: list[Any], conversation_id: str, user_id: str
    ) -> BatchExtractionResult:
        """Extract entities from each message in turn.

        The batch counts once against its own limit. Malformed entries and
        per-message provider failures are logged and skipped; only messages
        that yielded entities appear in the result.
        """
        await self._rate_limiter.enforce(user_id, BATCH_DATA_EXTRACTION)

        results: list[BatchExtractionItem] = []
        for index, raw in enumerate(messages):
            try:
                message = BatchMessage.model_validate(raw)
            except ValidationError:
                log.warning("batch_message_invalid", index=index)
                continue
            try:
                entity_set = await self._extract_entities(message.text, user_id)
            except ProviderFailure as exc:
                log.warning("batch_message_failed", message_id=message.id, error=exc.message)
                continue
            if entity_set.entities:
                results.append(
                    BatchExtractionItem(message_id=message.id, entities=entity_set.entities)
                )

        total = sum(len(item.entities) for item in results)
        log.info(
            "batch_extraction_complete",
            conversation_id=conversation_id,
            messages=len(results),
            total_entities=total,
        )
        return BatchExtractionResult(
            results=results,
            conversation_id=conversation_id,
            total_entities=total,
            extracted_at=int(time.time() * 1000),
        )
