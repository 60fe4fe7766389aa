from fastapi import APIRouter, Depends, status
from typing import List

from auth import get_current_user_id
from storage import Storage, get_storage
from schemas import Message, MessageCreate, ConversationSummary, ConversationThread
from conversation_engine import ConversationEngine

router = APIRouter(prefix="/messages", tags=["messages"])

@router.get("", response_model=List[ConversationSummary])
async def list_conversations(
    user_id: int = Depends(get_current_user_id),
    storage: Storage = Depends(get_storage),
):
    return await ConversationEngine(storage).list_conversations(user_id)

@router.get("/{counterpart_id}", response_model=ConversationThread)
async def open_conversation(
    counterpart_id: int,
    user_id: int = Depends(get_current_user_id),
    storage: Storage = Depends(get_storage),
):
    """Returns the thread and marks the caller's unread incoming messages read."""
    return await ConversationEngine(storage).get_conversation(user_id, counterpart_id)

@router.post("", response_model=Message, status_code=status.HTTP_201_CREATED)
async def send_message(
    payload: MessageCreate,
    user_id: int = Depends(get_current_user_id),
    storage: Storage = Depends(get_storage),
):
    return await ConversationEngine(storage).send_message(user_id, payload)
