"""
One chat turn: store the user message, run the pipeline on Temporal, store the reply.

The user's message is always kept. If the dispatch fails, the error text is
recorded as the assistant message so the conversation stays continuous.
"""

import logging
from dataclasses import dataclass

from app.core.config import DEFAULT_TITLE, TITLE_MAX_CHARS
from app.core.errors import ConversationNotFoundError
from app.schemas.conversation import Message
from app.services.commands import CommandOptions
from app.services.dispatcher import ChatResult, WorkflowDispatcher
from app.store.conversation_store import ConversationStore

logger = logging.getLogger(__name__)

FALLBACK_REPLY = (
    "Sorry, I could not generate a response. "
    "Check that Temporal and your LLM/RAG workers are running."
)


@dataclass
class ChatTurnResult:
    message: Message
    pipeline_id: str | None
    rag_tag: str | None


def assistant_content(result: ChatResult) -> str:
    if result.success and result.reply:
        return result.reply
    if result.error:
        return f"[Pipeline error: {result.error}]"
    return FALLBACK_REPLY


def title_from(content: str) -> str:
    """First line of the message, at most TITLE_MAX_CHARS characters."""
    return content.split("\n")[0][:TITLE_MAX_CHARS] or DEFAULT_TITLE


async def handle_chat_turn(
    store: ConversationStore,
    dispatcher: WorkflowDispatcher,
    conversation_id: str,
    content: str,
    options: CommandOptions | None = None,
) -> ChatTurnResult:
    """
    Run one conversation turn end to end.

    Raises:
        ValueError: If content is blank.
        ConversationNotFoundError: If the conversation does not exist.
    """
    user_content = str(content or "").strip()
    if not user_content:
        raise ValueError("conversationId and content required")

    conv = await store.get_conversation(conversation_id)
    if conv is None:
        raise ConversationNotFoundError(conversation_id)

    logger.info("[chat:turn] IN  conversation_id=%s pipeline_id=%s rag_tag=%s", conv.id, conv.pipeline_id, conv.rag_tag)
    if await store.add_message(conv.id, "user", user_content) is None:
        raise ConversationNotFoundError(conversation_id)

    history = await store.get_messages(conv.id)
    messages_for_llm = [{"role": m.role, "content": m.content} for m in history]

    result = await dispatcher.dispatch_chat(conv.pipeline_id, conv.rag_tag, messages_for_llm, options)
    reply = assistant_content(result)
    message = await store.add_message(conv.id, "assistant", reply)
    if message is None:
        # Deleted mid-turn; still hand the reply back to the caller
        message = Message(role="assistant", content=reply)

    if conv.title == DEFAULT_TITLE and len(history) == 1:
        await store.update_conversation_title(conv.id, title_from(user_content))

    logger.info("[chat:turn] OUT success=%s timed_out=%s reply_len=%d", result.success, result.timed_out, len(reply))
    return ChatTurnResult(message=message, pipeline_id=conv.pipeline_id, rag_tag=conv.rag_tag)
