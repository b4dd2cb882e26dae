"""
Pydantic models for service chats and chat notifications.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class ChatMessageCreate(BaseModel):
    service_id: str = Field(..., min_length=1)
    provider_id: str = Field(..., min_length=1)
    customer_id: str = Field(..., min_length=1)
    sender_id: str = Field(..., min_length=1)
    sender_name: Optional[str] = None
    sender_email: Optional[str] = None
    sender_type: Literal["customer", "provider", "admin"] = "customer"
    receiver_id: Optional[str] = None
    message: str = Field(..., min_length=1)
    chat_room_id: Optional[str] = None


class ChatMessageRead(BaseModel):
    id: str
    chat_room_id: str
    service_id: str
    provider_id: str
    customer_id: str
    sender_id: str
    sender_name: Optional[str] = None
    sender_email: Optional[str] = None
    sender_type: str
    receiver_id: Optional[str] = None
    message: str
    read: bool = False
    created_at: str


class ChatRoomRead(BaseModel):
    """A conversation grouped by room with its latest message first."""

    chatRoomId: str
    serviceId: str
    providerId: str
    customerId: str
    lastMessage: str
    lastMessageTime: str
    unreadCount: int = 0
    messages: List[ChatMessageRead]


class MarkReadRequest(BaseModel):
    user_id: str = Field(..., min_length=1)


class _Notification(BaseModel):
    model_config = {"populate_by_name": True}


class NotifyProviderRequest(_Notification):
    provider_email: str = Field(..., alias="providerEmail", min_length=1)
    provider_name: Optional[str] = Field(None, alias="providerName")
    sender_name: str = Field(..., alias="senderName", min_length=1)
    sender_email: Optional[str] = Field(None, alias="senderEmail")
    message: str = Field(..., min_length=1)
    service_id: Optional[str] = Field(None, alias="serviceId")
    service_name: str = Field(..., alias="serviceName", min_length=1)


class NotifyChatCustomerRequest(_Notification):
    customer_email: str = Field(..., alias="customerEmail", min_length=1)
    customer_name: Optional[str] = Field(None, alias="customerName")
    provider_name: str = Field(..., alias="providerName", min_length=1)
    message: str = Field(..., min_length=1)
    service_name: str = Field(..., alias="serviceName", min_length=1)
