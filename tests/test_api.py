import pytest
from fastapi.testclient import TestClient

from squabble.api.server import SendMessageIn, create_app
from squabble.transport.local import LocalConversation, LocalTransport

SECRET = "s3cret"


class ExplodingConversation(LocalConversation):
    async def send(self, text: str) -> str:
        raise RuntimeError("network down")


@pytest.fixture
def transport():
    t = LocalTransport(identity="bot")
    t.add_conversation("c1")
    return t


def _client(transport, secret=SECRET):
    return TestClient(create_app(transport, secret))


def test_send_message_success(transport):
    resp = _client(transport).post(
        "/api/send-message",
        headers={"x-agent-secret": SECRET},
        json={"conversationId": "c1", "message": "Game starts in 1 minute"},
    )

    assert resp.status_code == 200
    assert resp.json() == {
        "success": True,
        "message": "Message sent successfully",
        "conversationId": "c1",
        "sentMessage": "Game starts in 1 minute",
    }
    assert transport.conversations["c1"].texts == ["Game starts in 1 minute"]


@pytest.mark.parametrize("headers", [{}, {"x-agent-secret": "wrong"}])
def test_send_message_rejects_bad_secret(transport, headers):
    resp = _client(transport).post("/api/send-message", headers=headers, json={"conversationId": "c1", "message": "x"})
    assert resp.status_code == 401
    assert transport.conversations["c1"].texts == []


def test_send_message_without_configured_secret(transport):
    resp = _client(transport, secret="").post(
        "/api/send-message", headers={"x-agent-secret": "anything"}, json={"conversationId": "c1", "message": "x"}
    )
    assert resp.status_code == 500


@pytest.mark.parametrize("body", [{}, {"conversationId": "c1"}, {"message": "hi"}, {"conversationId": "", "message": "hi"}])
def test_send_message_requires_fields(transport, body):
    resp = _client(transport).post("/api/send-message", headers={"x-agent-secret": SECRET}, json=body)
    assert resp.status_code == 400


def test_send_message_unknown_conversation(transport):
    resp = _client(transport).post(
        "/api/send-message", headers={"x-agent-secret": SECRET}, json={"conversationId": "nope", "message": "x"}
    )
    assert resp.status_code == 404


def test_send_message_send_failure(transport):
    transport.conversations["c1"] = ExplodingConversation("c1")
    resp = _client(transport).post(
        "/api/send-message", headers={"x-agent-secret": SECRET}, json={"conversationId": "c1", "message": "x"}
    )
    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to send message"}


def test_health(transport):
    assert _client(transport).get("/health").json() == {"status": "ok"}


def test_send_message_non_ascii_secret_is_unauthorized(transport):
    resp = _client(transport).post(
        "/api/send-message",
        headers={"x-agent-secret": "sécret".encode("utf-8")},
        json={"conversationId": "c1", "message": "x"},
    )
    assert resp.status_code == 401
    assert transport.conversations["c1"].texts == []


def test_send_message_without_body_is_bad_request(transport):
    resp = _client(transport).post("/api/send-message", headers={"x-agent-secret": SECRET})
    assert resp.status_code == 400
    assert resp.json() == {"error": "conversationId and message are required"}


def test_send_message_in_accepts_camel_and_snake_case():
    assert SendMessageIn.model_validate({"conversationId": "c1", "message": "hi"}).conversation_id == "c1"
    assert SendMessageIn(conversation_id="c2").conversation_id == "c2"
    assert SendMessageIn().message is None
