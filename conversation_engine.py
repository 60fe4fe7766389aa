import logging
from typing import Dict, Iterable, List, Optional

from storage import Storage
from schemas import Message, MessageCreate, ConversationSummary, ConversationThread
from exceptions import NotFoundError, ValidationError
from auth import require_authenticated
from user_engine import UserEngine

logger = logging.getLogger(__name__)


def summarize_conversations(user_id: int, messages: Iterable[Message]) -> List[ConversationSummary]:
    """
    Folds a user's flat message history into one summary per counterpart.

    Single pass over the messages, in any order:
    1. **Last message**: keep the newest message seen so far with each
       counterpart, in either direction (ties go to the higher id).
    2. **Unread count**: separately count incoming messages still unread,
       across the whole history with that counterpart.

    Summaries come back newest conversation first.
    """
    latest: Dict[int, Message] = {}
    unread: Dict[int, int] = {}

    for message in messages:
        is_incoming = message.receiver_id == user_id
        counterpart = message.sender_id if is_incoming else message.receiver_id

        current = latest.get(counterpart)
        if current is None or (message.created_at, message.id) > (current.created_at, current.id):
            latest[counterpart] = message

        unread.setdefault(counterpart, 0)
        if is_incoming and not message.is_read:
            unread[counterpart] += 1

    summaries = [
        ConversationSummary(
            user_id=counterpart,
            last_message=message.content,
            last_message_date=message.created_at,
            unread_count=unread[counterpart],
        )
        for counterpart, message in latest.items()
    ]
    summaries.sort(
        key=lambda s: (s.last_message_date, latest[s.user_id].id), reverse=True
    )
    return summaries


class ConversationEngine:
    def __init__(self, storage: Storage):
        self.storage = storage
        self.users = UserEngine(storage)

    async def list_conversations(self, user_id: Optional[int]) -> List[ConversationSummary]:
        user_id = require_authenticated(user_id)
        messages = await self.storage.get_messages_by_user(user_id)
        summaries = summarize_conversations(user_id, messages)

        cards = await self.users.summaries(s.user_id for s in summaries)
        for summary in summaries:
            summary.user = cards[summary.user_id]
        return summaries

    async def get_conversation(self, user_id: Optional[int], counterpart_id: int) -> ConversationThread:
        """
        Opens the thread with ``counterpart_id`` as ``user_id``.

        Every unread message addressed to the opener is marked read before the
        thread is fetched again, so the response shows the post-read state.
        Opening an already-read thread changes nothing.
        """
        user_id = require_authenticated(user_id)
        counterpart = await self.users.summary(counterpart_id)
        if counterpart is None:
            raise NotFoundError("User not found")

        marked = 0
        for message in await self.storage.get_conversation(user_id, counterpart_id):
            if message.receiver_id == user_id and not message.is_read:
                await self.storage.mark_message_as_read(message.id)
                marked += 1
        if marked:
            logger.info("User %s read %d message(s) from user %s", user_id, marked, counterpart_id)

        messages = await self.storage.get_conversation(user_id, counterpart_id)
        return ConversationThread(messages=messages, user=counterpart)

    async def send_message(self, sender_id: Optional[int], data: MessageCreate) -> Message:
        sender_id = require_authenticated(sender_id)
        if not data.content.strip():
            raise ValidationError("Message content cannot be empty")
        if await self.storage.get_user(data.receiver_id) is None:
            raise NotFoundError("Receiver not found")

        message = await self.storage.create_message({
            "sender_id": sender_id,
            "receiver_id": data.receiver_id,
            "content": data.content,
            "is_read": False,
        })
        logger.info("Message %s sent from user %s to user %s", message.id, sender_id, data.receiver_id)
        return message
