"""Push notification fan-out for message and reaction events.

Each trigger firing walks RESOLVING_RECIPIENTS → SENDING → CLEANUP → DONE,
or stops at SKIPPED when nobody is eligible. Recipients without a delivery
token are dropped silently. Tokens the transport reports as failed are
cleared from their owner's record so later dispatches skip them. A failed
token never fails the dispatch; a missing conversation aborts it with
ConversationNotFound.

Firings are independent and not deduplicated: a platform retry may
duplicate a push, which is acceptable for notifications.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING

import structlog

from gchat.errors import ConversationNotFound
from gchat.models.directory import ConversationType, MessageType, ReactionPreview
from gchat.models.notifications import (
    DispatchReceipt,
    DispatchState,
    NotificationTask,
    PayloadKind,
    ReactionDelta,
    SendResult,
)

if TYPE_CHECKING:
    from gchat.models.directory import Conversation
    from gchat.models.events import MessageCreatedEvent, ReactionUpdatedEvent
    from gchat.protocols import DirectoryProtocol, PushTransportProtocol

DEFAULT_SENDER_NAME = "Someone"
DEFAULT_GROUP_LABEL = "Group chat"
DEFAULT_MESSAGE_BODY = "New message"
IMAGE_MESSAGE_BODY = "📷 Sent an image"
AUDIO_MESSAGE_BODY = "🎤 Voice message"
MAX_PREVIEW_CHARS = 100


def compute_reaction_deltas(
    before: dict[str, list[str]], after: dict[str, list[str]]
) -> list[ReactionDelta]:
    """Reactions added between two snapshots, per emoji, in ``after`` order.

    Removed reactions produce nothing.
    """
    deltas: list[ReactionDelta] = []
    for emoji, user_ids in after.items():
        previous = set(before.get(emoji, []))
        seen: set[str] = set()
        for user_id in user_ids:
            if user_id in previous or user_id in seen:
                continue
            seen.add(user_id)
            deltas.append(ReactionDelta(emoji=emoji, user_id=user_id))
    return deltas


def truncate(text: str, limit: int = MAX_PREVIEW_CHARS) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 1].rstrip() + "…"


def message_title(conversation: Conversation, sender_name: str) -> str:
    if conversation.type is ConversationType.GROUP:
        return f"{sender_name} in {conversation.name or DEFAULT_GROUP_LABEL}"
    return sender_name


def message_body(message_type: MessageType, text: str | None) -> str:
    if message_type is MessageType.IMAGE:
        return IMAGE_MESSAGE_BODY
    if message_type is MessageType.AUDIO:
        return AUDIO_MESSAGE_BODY
    return text or DEFAULT_MESSAGE_BODY


class NotificationDispatcher:
    """Resolves recipients, sends pushes, and prunes dead tokens."""

    def __init__(self, directory: DirectoryProtocol, transport: PushTransportProtocol) -> None:
        self._directory = directory
        self._transport = transport

    # ------------------------------------------------------------------
    # Message created
    # ------------------------------------------------------------------

    async def on_message_created(self, event: MessageCreatedEvent) -> DispatchReceipt:
        log = structlog.get_logger().bind(
            trigger="message_created",
            conversation_id=event.conversation_id,
            message_id=event.message_id,
        )
        log.info("dispatch_state", state=DispatchState.RESOLVING_RECIPIENTS)

        conversation = await self._directory.get_conversation(event.conversation_id)
        if conversation is None:
            raise ConversationNotFound(event.conversation_id)

        # A new message supersedes any reaction preview lines
        await self._directory.clear_reaction_previews(event.conversation_id)

        recipient_ids = [uid for uid in conversation.participants if uid != event.sender_id]
        if not recipient_ids:
            return _skipped(log, PayloadKind.NEW_MESSAGE, reason="no_recipients")

        owners: dict[str, list[str]] = {}  # token → user ids holding it
        for user_id in recipient_ids:
            token = await self._directory.get_delivery_token(user_id)
            if token is None:
                log.debug("recipient_without_token", user_id=user_id)
                continue
            owners.setdefault(token, []).append(user_id)

        if not owners:
            return _skipped(
                log, PayloadKind.NEW_MESSAGE, reason="no_tokens", recipients=len(recipient_ids)
            )

        sender = await self._directory.get_user(event.sender_id)
        sender_name = (sender.display_name if sender else None) or DEFAULT_SENDER_NAME
        body = message_body(event.type, event.text)
        task_data = {
            "type": PayloadKind.NEW_MESSAGE.value,
            "conversationId": event.conversation_id,
            "messageId": event.message_id,
            "senderId": event.sender_id,
            "senderName": sender_name,
            "title": message_title(conversation, sender_name),
            "messageText": body,
            "isGroup": "true" if conversation.type is ConversationType.GROUP else "false",
            "groupName": conversation.name or "",
        }
        tasks = [
            NotificationTask(
                target_token=token, payload_kind=PayloadKind.NEW_MESSAGE, data=task_data
            )
            for token in owners
        ]

        log.info("dispatch_state", state=DispatchState.SENDING, tokens=len(tasks))
        results = await self._transport.send_multicast(
            [task.target_token for task in tasks], task_data
        )

        cleared = await self._cleanup(log, results, owners)
        return _done(log, PayloadKind.NEW_MESSAGE, len(recipient_ids), results, cleared)

    # ------------------------------------------------------------------
    # Reaction updated
    # ------------------------------------------------------------------

    async def on_reaction_updated(self, event: ReactionUpdatedEvent) -> DispatchReceipt:
        log = structlog.get_logger().bind(
            trigger="reaction_updated",
            conversation_id=event.conversation_id,
            message_id=event.message_id,
        )
        log.info("dispatch_state", state=DispatchState.RESOLVING_RECIPIENTS)

        owner_id = event.owner_id
        if owner_id is None:
            return _skipped(log, PayloadKind.REACTION, reason="no_message_owner")

        deltas = [
            delta
            for delta in compute_reaction_deltas(event.before.reactions, event.after.reactions)
            if delta.user_id != owner_id
        ]
        if not deltas:
            return _skipped(log, PayloadKind.REACTION, reason="no_new_reactions")

        conversation = await self._directory.get_conversation(event.conversation_id)
        if conversation is None:
            raise ConversationNotFound(event.conversation_id)

        token = await self._directory.get_delivery_token(owner_id)
        if token is None:
            log.info("recipient_without_token", user_id=owner_id)

        log.info("dispatch_state", state=DispatchState.SENDING, reactions=len(deltas))
        outcomes = await asyncio.gather(
            *(
                self._notify_reaction(event, conversation, owner_id, token, delta)
                for delta in deltas
            ),
            return_exceptions=True,
        )
        results: list[SendResult] = []
        for delta, outcome in zip(deltas, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                # Failed deltas are logged and skipped
                log.warning(
                    "reaction_delta_failed",
                    reactor_id=delta.user_id,
                    emoji=delta.emoji,
                    error=str(outcome),
                    exc_info=outcome,
                )
            elif outcome is not None:
                results.append(outcome)

        cleared = await self._cleanup(log, results, {token: [owner_id]} if token else {})
        return _done(log, PayloadKind.REACTION, 1, results, cleared)

    async def _notify_reaction(
        self,
        event: ReactionUpdatedEvent,
        conversation: Conversation,
        owner_id: str,
        token: str | None,
        delta: ReactionDelta,
    ) -> SendResult | None:
        reactor = await self._directory.get_user(delta.user_id)
        reactor_name = (reactor.display_name if reactor else None) or DEFAULT_SENDER_NAME
        display_name = conversation.nicknames.get(delta.user_id) or reactor_name

        result: SendResult | None = None
        if token is not None:
            task = NotificationTask(
                target_token=token,
                payload_kind=PayloadKind.REACTION,
                data={
                    "type": PayloadKind.REACTION.value,
                    "conversationId": event.conversation_id,
                    "messageId": event.message_id,
                    "reactorId": delta.user_id,
                    "reactorName": display_name,
                    "emoji": delta.emoji,
                    "messageText": truncate(event.after.text or ""),
                },
            )
            result = await self._transport.send(task.target_token, task.data)

        # The preview is updated even when no push could be sent
        await self._directory.set_reaction_preview(
            event.conversation_id,
            owner_id,
            ReactionPreview(
                text=f"{delta.emoji} {display_name} reacted to your message",
                timestamp=int(time.time() * 1000),
                message_id=event.message_id,
                reactor_id=delta.user_id,
            ),
        )
        return result

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    async def _cleanup(
        self,
        log: structlog.typing.FilteringBoundLogger,
        results: list[SendResult],
        owners: dict[str, list[str]],
    ) -> int:
        failed = {r.token for r in results if not r.success}
        if not failed:
            return 0

        log.info("dispatch_state", state=DispatchState.CLEANUP, failed_tokens=len(failed))
        cleared = 0
        for token in failed:
            for user_id in owners.get(token, []):
                if await self._directory.clear_delivery_token(user_id, token):
                    cleared += 1
                    log.info("token_cleared", user_id=user_id, token_prefix=token[:20])
        return cleared


def _skipped(
    log: structlog.typing.FilteringBoundLogger,
    kind: PayloadKind,
    *,
    reason: str,
    recipients: int = 0,
) -> DispatchReceipt:
    log.info("dispatch_state", state=DispatchState.SKIPPED, reason=reason)
    return DispatchReceipt(event=kind, state=DispatchState.SKIPPED, recipients=recipients)


def _done(
    log: structlog.typing.FilteringBoundLogger,
    kind: PayloadKind,
    recipients: int,
    results: list[SendResult],
    cleared: int,
) -> DispatchReceipt:
    receipt = DispatchReceipt(
        event=kind,
        state=DispatchState.DONE,
        recipients=recipients,
        sent=sum(r.success for r in results),
        failed=sum(not r.success for r in results),
        cleared_tokens=cleared,
    )
    log.info(
        "dispatch_state",
        state=DispatchState.DONE,
        sent=receipt.sent,
        failed=receipt.failed,
        cleared_tokens=cleared,
    )
    return receipt
