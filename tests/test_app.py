import json
import logging
from unittest.mock import patch

from fastapi.testclient import TestClient

from app import create_app
from config import DispatchMode
from stubs import StubSender


def test_root_banner(client):
    response = client.get("/")
    assert response.status_code == 200
    assert "Running Successfully" in response.text


def test_health_check(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_unknown_route_returns_fixed_404(client):
    response = client.get("/does-not-exist")
    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Route not found."}


def test_empty_recipient_list_rejected(client, stub_sender, newsletter_payload):
    response = client.post("/send-newsletter", json={**newsletter_payload, "emails": []})
    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "No recipient emails provided."}
    assert stub_sender.calls == []


def test_missing_recipients_rejected(client, stub_sender):
    response = client.post("/send-newsletter", json={"subject": "Hi", "message": "Body"})
    assert response.status_code == 400
    assert stub_sender.calls == []


def test_missing_subject_rejected(client, stub_sender, newsletter_payload):
    del newsletter_payload["subject"]
    response = client.post("/send-newsletter", json=newsletter_payload)
    assert response.status_code == 400
    assert response.json()["message"] == "Subject and message are required."
    assert stub_sender.calls == []


def test_missing_message_rejected(client, stub_sender, newsletter_payload):
    newsletter_payload["message"] = "   "
    response = client.post("/send-newsletter", json=newsletter_payload)
    assert response.status_code == 400
    assert stub_sender.calls == []


def test_malformed_body_rejected(client, stub_sender):
    response = client.post("/send-newsletter", json={"emails": "not-a-list", "subject": "s", "message": "m"})
    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Invalid request body."}
    assert stub_sender.calls == []


def test_sends_one_email_per_recipient(client, stub_sender, newsletter_payload):
    response = client.post("/send-newsletter", json=newsletter_payload)

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Emails sent successfully!", "count": 3}
    assert [c["to_email"] for c in stub_sender.calls] == newsletter_payload["emails"]
    for call in stub_sender.calls:
        assert call["subject"] == "October News"
        assert call["from_email"] == "news@example.com"
        assert call["from_name"] == "Test Co"
        assert "Hello readers,<br>" in call["html_body"]


def test_accepts_recipients_and_body_field_names(client, stub_sender):
    response = client.post("/send-newsletter", json={
        "recipients": ["x@example.com"],
        "subject": "Hi",
        "body": "Body",
        "links": ["https://example.com/post"],
    })
    assert response.status_code == 200
    assert response.json()["count"] == 1
    assert 'href="https://example.com/post"' in stub_sender.calls[0]["html_body"]


def test_duplicate_recipients_are_not_deduplicated(client, stub_sender):
    response = client.post("/send-newsletter", json={
        "emails": ["dup@example.com", "dup@example.com"], "subject": "s", "message": "m",
    })
    assert response.status_code == 200
    assert response.json()["count"] == 2
    assert len(stub_sender.calls) == 2


def test_failure_on_second_send_aborts_batch(make_client, newsletter_payload):
    sender = StubSender(fail_on={2})
    client = make_client(sender)

    response = client.post("/send-newsletter", json=newsletter_payload)

    assert response.status_code == 500
    assert response.json() == {"success": False, "message": "Internal Server Error. Failed to send emails."}
    assert [c["to_email"] for c in sender.calls] == ["a@example.com", "b@example.com"]


def test_independent_mode_reports_each_outcome(make_client, newsletter_payload):
    sender = StubSender(fail_on={2})
    client = make_client(sender, mode=DispatchMode.INDEPENDENT)

    response = client.post("/send-newsletter", json=newsletter_payload)

    assert response.status_code == 500
    data = response.json()
    assert data["success"] is False
    assert data["count"] == 2
    assert [r["sent"] for r in data["results"]] == [True, False, True]
    assert data["results"][1]["recipient"] == "b@example.com"
    assert len(sender.calls) == 3


def test_independent_mode_success(make_client, newsletter_payload):
    sender = StubSender()
    client = make_client(sender, mode=DispatchMode.INDEPENDENT, concurrency=2)

    response = client.post("/send-newsletter", json=newsletter_payload)

    assert response.status_code == 200
    assert response.json()["count"] == 3
    assert all(r["sent"] for r in response.json()["results"])


def test_upload_delivers_attachments_to_every_recipient(client, stub_sender):
    response = client.post(
        "/send-newsletter/upload",
        data={
            "emails": json.dumps(["a@example.com", "b@example.com"]),
            "subject": "With files",
            "message": "See attached",
        },
        files=[
            ("attachments", ("report.pdf", b"%PDF-1.4 data", "application/pdf")),
            ("attachments", ("notes.txt", b"plain notes", "text/plain")),
        ],
    )

    assert response.status_code == 200
    assert response.json()["count"] == 2
    for call in stub_sender.calls:
        names = [a.filename for a in call["attachments"]]
        assert names == ["report.pdf", "notes.txt"]
        assert call["attachments"][0].content == b"%PDF-1.4 data"


def test_upload_accepts_comma_separated_recipients(client, stub_sender):
    response = client.post(
        "/send-newsletter/upload",
        data={"emails": "a@example.com, b@example.com", "subject": "s", "message": "m"},
    )
    assert response.status_code == 200
    assert [c["to_email"] for c in stub_sender.calls] == ["a@example.com", "b@example.com"]


def test_upload_without_recipients_rejected(client, stub_sender):
    response = client.post("/send-newsletter/upload", data={"subject": "s", "message": "m"})
    assert response.status_code == 400
    assert response.json()["message"] == "No recipient emails provided."
    assert stub_sender.calls == []


def test_upload_rejects_non_string_json_recipient(client, stub_sender):
    response = client.post(
        "/send-newsletter/upload",
        data={"emails": json.dumps(["a@example.com", None]), "subject": "s", "message": "m"},
    )
    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Invalid request body."}
    assert stub_sender.calls == []


def test_unexpected_render_error_returns_generic_500(client, stub_sender, newsletter_payload):
    renderer = client.app.state.dispatcher.renderer
    with patch.object(renderer, "render", side_effect=ValueError("Template rendering failed: boom")):
        response = client.post("/send-newsletter", json=newsletter_payload)

    assert response.status_code == 500
    assert response.json() == {"success": False, "message": "Internal Server Error. Failed to send emails."}
    assert stub_sender.calls == []


# --- CORS Tests ---
def _preflight(client, origin):
    return client.options("/send-newsletter", headers={
        "Origin": origin,
        "Access-Control-Request-Method": "POST",
        "Access-Control-Request-Headers": "Content-Type",
    })


def test_cors_allows_configured_origin(settings, stub_sender):
    settings.cors_origins = ["https://a.example"]
    client = TestClient(create_app(settings, sender=stub_sender))

    response = _preflight(client, "https://a.example")
    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "https://a.example"

    response = client.get("/health", headers={"Origin": "https://a.example"})
    assert response.headers["access-control-allow-origin"] == "https://a.example"


def test_cors_rejects_foreign_origin(settings, stub_sender):
    settings.cors_origins = ["https://a.example"]
    client = TestClient(create_app(settings, sender=stub_sender))

    response = _preflight(client, "https://evil.example")
    assert response.status_code == 400
    assert "access-control-allow-origin" not in response.headers


# --- Logging Tests ---
def test_requests_are_logged_without_credentials(client, settings, newsletter_payload, caplog):
    caplog.set_level(logging.DEBUG, logger="newsletter_service")

    client.post("/send-newsletter", json=newsletter_payload)
    client.get("/missing")

    messages = [record.getMessage() for record in caplog.records]
    assert any(m.startswith("POST /send-newsletter -> 200") for m in messages)
    assert any(m.startswith("GET /missing -> 404") for m in messages)
    assert all(settings.relay.password not in m for m in messages)
