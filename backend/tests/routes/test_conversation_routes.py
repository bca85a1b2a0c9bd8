"""
HTTP surface tests for /api/v1/conversations.

Setup goes through committed factories; assertions go through the API so
the test session never holds a transaction while the app is working.
"""

import pytest

from creatorlink.core.enums import RoleName

pytestmark = pytest.mark.integration

BASE = "/api/v1/conversations"


def _initiate(client, headers, campaign, creator, initial_message=None):
    body = {"campaign_id": campaign.id, "creator_id": creator.id}
    if initial_message is not None:
        body["initial_message"] = initial_message
    return client.post(BASE, json=body, headers=headers)


class TestAuthentication:
    def test_missing_token(self, client):
        response = client.get(BASE)

        assert response.status_code == 401
        body = response.json()
        assert body["code"] == "NOT_AUTHENTICATED"
        assert body["status"] == 401
        assert body["instance"] == BASE

    def test_unknown_token(self, client):
        response = client.get(BASE, headers={"Authorization": "Bearer nope"})

        assert response.status_code == 401
        assert response.json()["code"] == "INVALID_CREDENTIALS"

    def test_token_for_deleted_identity(self, client, verifier):
        token = verifier.issue("01HZZZZZZZZZZZZZZZZZZZZZZZ")

        response = client.get(BASE, headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.json()["code"] == "UNKNOWN_IDENTITY"


class TestInitiate:
    def test_initiate_then_repeat(self, client, auth_headers, brand, creator, campaign):
        headers = auth_headers(brand)

        created = _initiate(client, headers, campaign, creator, "Hi Jane!")
        repeated = _initiate(client, headers, campaign, creator)

        assert created.status_code == 201
        body = created.json()
        assert body["created"] is True
        conversation = body["conversation"]
        assert conversation["connection_status"] == "active"
        assert conversation["recruitment_status"] == "discussing"
        assert conversation["other_participant"]["id"] == creator.id
        assert conversation["other_participant"]["is_online"] is False
        assert [m["kind"] for m in body["messages"]] == ["system", "text"]
        assert body["messages"][0]["payload"] == {"kind": "system", "system_kind": "chat_started"}
        assert conversation["last_message_id"] == body["messages"][1]["id"]

        assert repeated.status_code == 200
        assert repeated.json()["created"] is False
        assert repeated.json()["conversation"]["id"] == conversation["id"]

    def test_wrong_owner(self, client, auth_headers, make_user, creator, campaign):
        other = make_user(RoleName.BRAND, label="Other Co")

        response = _initiate(client, auth_headers(other), campaign, creator)

        assert response.status_code == 403
        assert response.json()["code"] == "NOT_CAMPAIGN_OWNER"

    def test_creator_not_applied(self, client, auth_headers, make_user, brand, campaign):
        outsider = make_user(RoleName.CREATOR, label="outsider")

        response = _initiate(client, auth_headers(brand), campaign, outsider)

        assert response.status_code == 422
        assert response.json()["code"] == "CREATOR_NOT_APPLIED"

    def test_malformed_ids_are_validation_errors(self, client, auth_headers, brand):
        response = client.post(
            BASE,
            json={"campaign_id": "not-a-ulid", "creator_id": "also-bad"},
            headers=auth_headers(brand),
        )

        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "validation_error"
        assert body["errors"]


class TestInboxAndDetails:
    def test_inbox_and_detail(self, client, auth_headers, brand, creator, campaign):
        conversation_id = _initiate(client, auth_headers(brand), campaign, creator).json()[
            "conversation"
        ]["id"]

        inbox = client.get(BASE, headers=auth_headers(creator))
        detail = client.get(f"{BASE}/{conversation_id}", headers=auth_headers(creator))

        assert inbox.status_code == 200
        body = inbox.json()
        assert [c["id"] for c in body["conversations"]] == [conversation_id]
        assert body["conversations"][0]["unread_count"] == 1
        assert body["conversations"][0]["other_participant"]["display_label"] == "Acme Studio"
        assert body["pagination"] == {
            "current_page": 1,
            "total_pages": 1,
            "total_items": 1,
            "items_per_page": 20,
            "has_next_page": False,
            "has_previous_page": False,
        }
        assert detail.status_code == 200
        assert detail.json()["last_message"]["kind"] == "system"

    def test_inbox_status_filter_validation(self, client, auth_headers, brand):
        response = client.get(f"{BASE}?status=deleted", headers=auth_headers(brand))

        assert response.status_code == 400

    def test_outsider_cannot_view(self, client, auth_headers, make_user, brand, creator, campaign):
        conversation_id = _initiate(client, auth_headers(brand), campaign, creator).json()[
            "conversation"
        ]["id"]
        outsider = make_user(RoleName.CREATOR, label="outsider")

        response = client.get(f"{BASE}/{conversation_id}", headers=auth_headers(outsider))

        assert response.status_code == 403
        assert response.json()["code"] == "NOT_PARTICIPANT"

    def test_unknown_conversation(self, client, auth_headers, brand):
        response = client.get(f"{BASE}/01HZZZZZZZZZZZZZZZZZZZZZZZ", headers=auth_headers(brand))

        assert response.status_code == 404

    def test_stats(self, client, auth_headers, brand, creator, campaign):
        _initiate(client, auth_headers(brand), campaign, creator, "hello")

        response = client.get(f"{BASE}/stats/overview", headers=auth_headers(creator))

        assert response.status_code == 200
        assert response.json() == {
            "total": 1,
            "active": 1,
            "archived": 0,
            "blocked": 0,
            "unread_messages": 2,
        }


class TestMessages:
    @pytest.fixture
    def conversation_id(self, client, auth_headers, brand, creator, campaign):
        response = _initiate(client, auth_headers(brand), campaign, creator)
        return response.json()["conversation"]["id"]

    def test_send_and_list(self, client, auth_headers, brand, creator, conversation_id):
        sent = client.post(
            f"{BASE}/{conversation_id}/messages",
            json={"content": "Thanks for reaching out!"},
            headers=auth_headers(creator),
        )
        listed = client.get(f"{BASE}/{conversation_id}/messages", headers=auth_headers(brand))

        assert sent.status_code == 201
        message = sent.json()
        assert message["sender_id"] == creator.id
        assert message["delivery_status"] == "sent"
        assert message["payload"] == {"kind": "text"}

        assert listed.status_code == 200
        body = listed.json()
        assert [m["sequence"] for m in body["messages"]] == [1, 2]
        assert body["messages"][1]["delivery_status"] == "delivered"
        assert body["unread_count"] == 1
        assert body["pagination"]["total_items"] == 2

    def test_send_offer(self, client, auth_headers, brand, conversation_id):
        response = client.post(
            f"{BASE}/{conversation_id}/messages",
            json={
                "content": "Our offer",
                "kind": "offer",
                "offer": {"amount": "750.00", "description": "2 posts"},
            },
            headers=auth_headers(brand),
        )

        assert response.status_code == 201
        payload = response.json()["payload"]
        assert payload["kind"] == "offer"
        assert payload["currency"] == "USD"
        assert payload["description"] == "2 posts"

    def test_empty_message_rejected(self, client, auth_headers, brand, conversation_id):
        response = client.post(
            f"{BASE}/{conversation_id}/messages",
            json={"content": "   "},
            headers=auth_headers(brand),
        )

        assert response.status_code == 400
        assert response.json()["code"] == "EMPTY_CONTENT"

    def test_mark_read_and_read_all(self, client, auth_headers, brand, creator, conversation_id):
        first = client.post(
            f"{BASE}/{conversation_id}/messages",
            json={"content": "one"},
            headers=auth_headers(brand),
        ).json()
        client.post(
            f"{BASE}/{conversation_id}/messages",
            json={"content": "two"},
            headers=auth_headers(brand),
        )

        read = client.patch(
            f"{BASE}/{conversation_id}/messages/{first['id']}/read",
            headers=auth_headers(creator),
        )
        again = client.patch(
            f"{BASE}/{conversation_id}/messages/{first['id']}/read",
            headers=auth_headers(creator),
        )
        read_all = client.patch(f"{BASE}/{conversation_id}/read-all", headers=auth_headers(creator))
        own = client.patch(
            f"{BASE}/{conversation_id}/messages/{first['id']}/read",
            headers=auth_headers(brand),
        )

        assert read.status_code == 200
        assert read.json()["newly_read"] is True
        assert again.json()["newly_read"] is False
        assert again.json()["read_at"] == read.json()["read_at"]
        assert read_all.json()["marked_count"] == 2
        assert own.status_code == 403

        stats = client.get(f"{BASE}/stats/overview", headers=auth_headers(creator)).json()
        assert stats["unread_messages"] == 0

    def test_status_update_blocks_sending(self, client, auth_headers, brand, creator, conversation_id):
        update = client.patch(
            f"{BASE}/{conversation_id}/status",
            json={"status": "blocked", "recruitment_status": "offer_sent"},
            headers=auth_headers(creator),
        )
        send = client.post(
            f"{BASE}/{conversation_id}/messages",
            json={"content": "hello?"},
            headers=auth_headers(brand),
        )
        history = client.get(f"{BASE}/{conversation_id}/messages", headers=auth_headers(brand))

        assert update.status_code == 200
        assert update.json()["connection_status"] == "blocked"
        assert update.json()["recruitment_status"] == "offer_sent"
        assert send.status_code == 422
        assert send.json()["code"] == "CONVERSATION_NOT_ACTIVE"
        assert history.status_code == 200

    def test_status_update_requires_a_field(self, client, auth_headers, brand, conversation_id):
        response = client.patch(
            f"{BASE}/{conversation_id}/status", json={}, headers=auth_headers(brand)
        )

        assert response.status_code == 400
        assert response.json()["code"] == "NO_STATUS_SUPPLIED"

    def test_status_update_rejects_unknown_value(self, client, auth_headers, brand, conversation_id):
        response = client.patch(
            f"{BASE}/{conversation_id}/status",
            json={"recruitment_status": "hired"},
            headers=auth_headers(brand),
        )

        assert response.status_code == 400
        assert response.json()["code"] == "validation_error"


class TestMetrics:
    def test_metrics_endpoint(self, client):
        response = client.get("/metrics?refresh=1")

        assert response.status_code == 200
        assert "text/plain" in response.headers["content-type"]
