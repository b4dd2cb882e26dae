"""
Service chat message endpoints.

Customers and providers exchange messages per service; a conversation
is identified by its chat room id.  Listing every conversation is
reserved for administrators.
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status

from shopki_api.app.core.security import require_admin
from shopki_api.app.schemas.chat import ChatMessageCreate, ChatMessageRead, ChatRoomRead, MarkReadRequest
from shopki_api.app.services.chat_service import ChatService


router = APIRouter()


@router.post("/messages", response_model=ChatMessageRead, status_code=status.HTTP_201_CREATED)
async def send_message(message: ChatMessageCreate) -> dict:
    return await ChatService.send_message(message)


@router.delete("/messages/{message_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_message(message_id: str) -> None:
    try:
        await ChatService.delete_message(message_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return None


@router.get("/rooms/{room_id}/messages", response_model=List[ChatMessageRead])
async def get_messages(room_id: str) -> List[dict]:
    """Messages of a conversation, oldest first."""
    return await ChatService.get_messages(room_id)


@router.post("/rooms/{room_id}/read")
async def mark_as_read(room_id: str, request: MarkReadRequest) -> dict:
    updated = await ChatService.mark_as_read(room_id, request.user_id)
    return {"success": True, "updated": updated}


@router.get("/rooms/{room_id}/unread")
async def unread_count(room_id: str, user_id: str = Query(..., min_length=1)) -> dict:
    return {"chatRoomId": room_id, "count": await ChatService.unread_count(room_id, user_id)}


@router.get("/provider/{provider_id}", response_model=List[ChatRoomRead])
async def provider_chats(provider_id: str) -> List[dict]:
    return await ChatService.get_provider_chats(provider_id)


@router.get("/customer/{customer_id}", response_model=List[ChatRoomRead])
async def customer_chats(customer_id: str) -> List[dict]:
    return await ChatService.get_customer_chats(customer_id)


@router.get("", response_model=List[ChatRoomRead])
async def all_chats(admin: dict = Depends(require_admin)) -> List[dict]:
    return await ChatService.get_all_chats()
