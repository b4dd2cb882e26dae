ROOM = "service_svc-1_customer_cust-1"


def send(client, sender_id, text, sender_type="customer"):
    response = client.post(
        "/api/chats/messages",
        json={
            "service_id": "svc-1",
            "provider_id": "prov-1",
            "customer_id": "cust-1",
            "sender_id": sender_id,
            "sender_type": sender_type,
            "message": text,
        },
    )
    assert response.status_code == 201
    return response.json()


def test_send_message_derives_room_and_receiver(client):
    message = send(client, "cust-1", "Hello, is Saturday free?")

    assert message["chat_room_id"] == ROOM
    assert message["receiver_id"] == "prov-1"
    assert message["read"] is False

    reply = send(client, "prov-1", "Yes it is", sender_type="provider")
    assert reply["receiver_id"] == "cust-1"


def test_messages_in_order(client):
    send(client, "cust-1", "first")
    send(client, "prov-1", "second", sender_type="provider")

    messages = client.get(f"/api/chats/rooms/{ROOM}/messages").json()
    assert [m["message"] for m in messages] == ["first", "second"]


def test_rooms_and_unread_counts(client):
    send(client, "cust-1", "first")
    send(client, "cust-1", "second")
    send(client, "prov-1", "reply", sender_type="provider")

    rooms = client.get("/api/chats/provider/prov-1").json()
    assert len(rooms) == 1
    assert rooms[0]["chatRoomId"] == ROOM
    assert rooms[0]["lastMessage"] == "reply"
    assert rooms[0]["unreadCount"] == 2

    assert client.get(f"/api/chats/rooms/{ROOM}/unread", params={"user_id": "prov-1"}).json() == {
        "chatRoomId": ROOM,
        "count": 2,
    }

    response = client.post(f"/api/chats/rooms/{ROOM}/read", json={"user_id": "prov-1"})
    assert response.json() == {"success": True, "updated": 2}
    assert client.get(f"/api/chats/rooms/{ROOM}/unread", params={"user_id": "prov-1"}).json()["count"] == 0

    customer_rooms = client.get("/api/chats/customer/cust-1").json()
    assert customer_rooms[0]["unreadCount"] == 1


def test_all_chats_requires_admin(client, admin_headers):
    send(client, "cust-1", "hello")

    assert client.get("/api/chats").status_code == 401
    assert len(client.get("/api/chats", headers=admin_headers).json()) == 1


def test_delete_message(client):
    message = send(client, "cust-1", "oops")

    assert client.delete(f"/api/chats/messages/{message['id']}").status_code == 204
    assert client.get(f"/api/chats/rooms/{ROOM}/messages").json() == []
    assert client.delete(f"/api/chats/messages/{message['id']}").status_code == 404
