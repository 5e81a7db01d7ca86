import uuid
from datetime import datetime, timedelta
from typing import Dict, List, Optional

import pytz
from sqlalchemy.orm import Session

from db.models import ChatMessage
from db.repositories import ChatRepository, ProductRepository
from interfaces.chatModels import ChatHistoryResponse, ChatMessageResponse, Sender
from logger_manager import log_error, log_info, log_warning
from services.llm_client import CompletionClient
from services.prompt_builder import build_chat_prompt
from utils.analysis_utils import as_utc
from utils.exceptions import PromptTooLargeError, TransportError

EMPTY_MESSAGE_ERROR = "Please enter a message before sending"
FAILED_REPLY = "Failed to generate a reply."
PENDING_PLACEHOLDER_ID = "pending"

# assistant replies in flight, keyed by send id; never persisted
_pending_replies: Dict[str, datetime] = {}


def is_reply_pending() -> bool:
    return bool(_pending_replies)


def _pending_since() -> Optional[datetime]:
    if not _pending_replies:
        return None
    return min(_pending_replies.values())


def _next_timestamp(repo: ChatRepository) -> datetime:
    # timestamps are strictly increasing within the conversation
    now = datetime.now(tz=pytz.utc)
    last = repo.last_message()
    if last is not None:
        last_timestamp = as_utc(last.timestamp)
        if now <= last_timestamp:
            now = last_timestamp + timedelta(microseconds=1)
    return now


def add_chat_message(db: Session, content: str, sender: Sender) -> ChatMessage:
    repo = ChatRepository(db)
    return repo.add_message(content=content, sender=sender.value, timestamp=_next_timestamp(repo))


def get_chat_messages(db: Session) -> List[ChatMessage]:
    return ChatRepository(db).list_messages()


def get_chat_history(db: Session) -> ChatHistoryResponse:
    """Stored conversation, with the pending placeholder appended while any reply is in flight."""
    messages = [ChatMessageResponse.model_validate(message) for message in get_chat_messages(db)]
    for message in messages:
        message.timestamp = as_utc(message.timestamp)
    pending_since = _pending_since()
    if pending_since is not None:
        messages.append(ChatMessageResponse(
            id=PENDING_PLACEHOLDER_ID,
            content="",
            sender=Sender.ASSISTANT,
            timestamp=pending_since,
            pending=True,
        ))
    return ChatHistoryResponse(messages=messages, pending=pending_since is not None)


def clear_chat_history(db: Session) -> int:
    deleted = ChatRepository(db).delete_all()
    log_info(f"Cleared {deleted} chat messages")
    return deleted


async def send_chat_message(db: Session, client: CompletionClient, content: str) -> ChatMessage:
    """
    Store the user's message, ask the model for a reply grounded in the scan
    history and store the reply. A failed completion stores a failure reply
    instead of raising.
    """
    if not content or not content.strip():
        raise ValueError(EMPTY_MESSAGE_ERROR)

    content = content.strip()
    add_chat_message(db, content, Sender.USER)
    send_id = uuid.uuid4().hex
    _pending_replies[send_id] = datetime.now(tz=pytz.utc)
    try:
        products = ProductRepository(db).list_products()
        try:
            prompt = build_chat_prompt(content, products)
            reply = (await client.complete(prompt.user, system_prompt=prompt.system)).strip()
            if not reply:
                log_warning("Chat model returned an empty reply")
                reply = FAILED_REPLY
        except (TransportError, PromptTooLargeError) as e:
            log_error(f"Error generating chat reply: {e}", e)
            reply = FAILED_REPLY
        return add_chat_message(db, reply, Sender.ASSISTANT)
    finally:
        _pending_replies.pop(send_id, None)
