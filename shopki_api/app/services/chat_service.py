"""
Service chats between customers and service providers.

Messages live in a single ``service_chats`` table; a conversation is the
set of messages sharing a ``chat_room_id``, by default
``service_{service_id}_customer_{customer_id}``.  Listing helpers group
messages by room and report the latest message of each room.
"""

import logging
import sqlite3
from typing import Any, Dict, List, Optional

from shopki_api.app.core.db import get_connection, new_id, now_iso
from shopki_api.app.schemas.chat import ChatMessageCreate


logger = logging.getLogger(__name__)


def chat_room_id(service_id: str, customer_id: str) -> str:
    return f"service_{service_id}_customer_{customer_id}"


def _row_to_message(row: sqlite3.Row) -> Dict[str, Any]:
    message = dict(row)
    message["read"] = bool(message["read"])
    return message


def _group_by_room(messages: List[Dict[str, Any]], viewer_id: Optional[str] = None) -> List[Dict[str, Any]]:
    """Group messages (newest first) into rooms ordered by latest activity."""
    rooms: Dict[str, Dict[str, Any]] = {}
    for message in messages:
        room_id = message["chat_room_id"]
        room = rooms.get(room_id)
        if room is None:
            room = rooms[room_id] = {
                "chatRoomId": room_id,
                "serviceId": message["service_id"],
                "providerId": message["provider_id"],
                "customerId": message["customer_id"],
                "lastMessage": message["message"],
                "lastMessageTime": message["created_at"],
                "unreadCount": 0,
                "messages": [],
            }
        room["messages"].append(message)
        if viewer_id and not message["read"] and message["sender_id"] != viewer_id:
            room["unreadCount"] += 1
    return list(rooms.values())


class ChatService:
    """Store and query chat messages."""

    @classmethod
    async def send_message(cls, data: ChatMessageCreate) -> Dict[str, Any]:
        message_id = new_id()
        room_id = data.chat_room_id or chat_room_id(data.service_id, data.customer_id)
        receiver_id = data.receiver_id
        if receiver_id is None:
            receiver_id = data.customer_id if data.sender_id == data.provider_id else data.provider_id
        conn = get_connection()
        try:
            conn.execute(
                """
                INSERT INTO service_chats (
                    id, chat_room_id, service_id, provider_id, customer_id, sender_id, sender_name,
                    sender_email, sender_type, receiver_id, message, read, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 0, ?)
                """,
                (
                    message_id,
                    room_id,
                    data.service_id,
                    data.provider_id,
                    data.customer_id,
                    data.sender_id,
                    data.sender_name,
                    data.sender_email,
                    data.sender_type,
                    receiver_id,
                    data.message,
                    now_iso(),
                ),
            )
            conn.commit()
            row = conn.execute("SELECT * FROM service_chats WHERE id = ?", (message_id,)).fetchone()
        finally:
            conn.close()
        logger.debug("Chat message %s stored in room %s", message_id, room_id)
        return _row_to_message(row)

    @classmethod
    async def get_messages(cls, room_id: str) -> List[Dict[str, Any]]:
        """Messages of a room, oldest first."""
        conn = get_connection()
        try:
            rows = conn.execute(
                "SELECT * FROM service_chats WHERE chat_room_id = ? ORDER BY created_at ASC, rowid ASC",
                (room_id,),
            ).fetchall()
            return [_row_to_message(row) for row in rows]
        finally:
            conn.close()

    @classmethod
    async def _rooms(cls, where: str = "", params: tuple = (), viewer_id: Optional[str] = None) -> List[Dict[str, Any]]:
        query = "SELECT * FROM service_chats"
        if where:
            query += f" WHERE {where}"
        query += " ORDER BY created_at DESC, rowid DESC"
        conn = get_connection()
        try:
            messages = [_row_to_message(row) for row in conn.execute(query, params).fetchall()]
        finally:
            conn.close()
        return _group_by_room(messages, viewer_id)

    @classmethod
    async def get_provider_chats(cls, provider_id: str) -> List[Dict[str, Any]]:
        return await cls._rooms("provider_id = ?", (provider_id,), viewer_id=provider_id)

    @classmethod
    async def get_customer_chats(cls, customer_id: str) -> List[Dict[str, Any]]:
        return await cls._rooms("customer_id = ?", (customer_id,), viewer_id=customer_id)

    @classmethod
    async def get_all_chats(cls) -> List[Dict[str, Any]]:
        return await cls._rooms()

    @classmethod
    async def mark_as_read(cls, room_id: str, user_id: str) -> int:
        """Mark the messages other participants sent to ``user_id`` as read.

        Returns the number of messages updated.
        """
        conn = get_connection()
        try:
            cursor = conn.execute(
                "UPDATE service_chats SET read = 1 WHERE chat_room_id = ? AND sender_id != ? AND read = 0",
                (room_id, user_id),
            )
            conn.commit()
            return cursor.rowcount
        finally:
            conn.close()

    @classmethod
    async def unread_count(cls, room_id: str, user_id: str) -> int:
        conn = get_connection()
        try:
            return conn.execute(
                "SELECT COUNT(*) FROM service_chats WHERE chat_room_id = ? AND sender_id != ? AND read = 0",
                (room_id, user_id),
            ).fetchone()[0]
        finally:
            conn.close()

    @classmethod
    async def delete_message(cls, message_id: str) -> None:
        conn = get_connection()
        try:
            cursor = conn.execute("DELETE FROM service_chats WHERE id = ?", (message_id,))
            conn.commit()
            if cursor.rowcount == 0:
                raise LookupError(f"Message {message_id} not found")
        finally:
            conn.close()
