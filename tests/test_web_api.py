import pytest
from aiohttp.test_utils import TestClient, TestServer

from newsletter_studio.web.app import create_app


@pytest.fixture
async def client(studio):
    async with TestClient(TestServer(create_app(studio))) as client:
        yield client


async def test_health(client) -> None:
    response = await client.get("/health")

    assert response.status == 200
    assert await response.json() == {"status": "ok", "gmailConfigured": True}


async def test_subscribe_created_then_already_subscribed(client) -> None:
    first = await client.post("/api/subscribe", json={"email": "ann@example.com"})
    second = await client.post("/api/subscribe", json={"email": "ann@example.com"})

    assert first.status == 201
    assert second.status == 200
    assert (await second.json())["message"] == "You are already subscribed!"


async def test_subscribe_invalid_email(client) -> None:
    response = await client.post("/api/subscribe", json={"email": "nope"})

    assert response.status == 400
    assert (await response.json())["error"] == "Valid email is required."


async def test_malformed_json_body(client) -> None:
    response = await client.post(
        "/api/subscribe", data="{not json", headers={"Content-Type": "application/json"}
    )

    assert response.status == 400


async def test_summarize(client, ai_client) -> None:
    ai_client.chat.completions.responses.append('{"title": "Rocket day", "summary": "Acme flew."}')

    response = await client.post(
        "/api/summarize", json={"url": "https://news.example/rocket", "apiKey": "sk-test"}
    )

    assert response.status == 200
    assert await response.json() == {
        "title": "Rocket day",
        "summary": "Acme flew.",
        "imageUrl": "https://news.example/img/rocket.png",
    }


async def test_summarize_missing_key(client) -> None:
    response = await client.post("/api/summarize", json={"url": "https://news.example/rocket"})

    assert response.status == 400


async def test_summarize_unparseable_ai_response(client, ai_client) -> None:
    ai_client.chat.completions.responses.append("I'd rather not.")

    response = await client.post(
        "/api/summarize", json={"url": "https://news.example/rocket", "apiKey": "sk-test"}
    )

    assert response.status == 502
    assert (await response.json())["code"] == "AI_FORMAT_ERROR"


async def test_redesign(client, ai_client) -> None:
    ai_client.chat.completions.responses.append('{"card": "bg-gray-900", "footer": "bg-gray-950"}')

    response = await client.post("/api/redesign", json={"designPrompt": "dark", "apiKey": "sk-test"})

    assert await response.json() == {"card": "bg-gray-900", "footer": "bg-gray-950"}


async def test_render_returns_html(client, draft_payload) -> None:
    response = await client.post(
        "/api/render", json={"newsletterData": draft_payload, "aiStyles": {"card": "bg-gray-900"}}
    )

    assert response.status == 200
    assert response.content_type == "text/html"
    body = await response.text()
    assert "bg-gray-900" in body
    assert "Rockets, revisited" in body


async def test_render_rejects_non_object_styles(client, draft_payload) -> None:
    response = await client.post("/api/render", json={"newsletterData": draft_payload, "aiStyles": "dark"})

    assert response.status == 400
    assert (await response.json())["error"] == "aiStyles must be an object."


async def test_render_incomplete_draft(client) -> None:
    response = await client.post("/api/render", json={"newsletterData": {"articles": []}})

    assert response.status == 400
    assert (await response.json())["error"] == "Newsletter data is incomplete."


async def test_send_newsletter(client, mail_sender) -> None:
    response = await client.post(
        "/api/send-newsletter",
        json={"to": "ann@example.com", "subject": "Hi", "htmlContent": "<p>Hi</p>"},
    )

    assert response.status == 200
    assert (await response.json())["message"] == "Email sent successfully!"
    assert mail_sender.sent[0].to == "ann@example.com"


async def test_send_bulk_with_partial_failure(client, mail_sender, draft_payload) -> None:
    for email in ("ann@example.com", "bob@example.com"):
        await client.post("/api/subscribe", json={"email": email})
    mail_sender.fail_for.add("bob@example.com")

    response = await client.post(
        "/api/send-bulk-newsletter", json={"newsletterData": draft_payload, "aiStyles": {}}
    )

    assert response.status == 200
    data = await response.json()
    assert data["sentCount"] == 1
    assert data["failedCount"] == 1
    assert data["failedEmails"] == ["bob@example.com"]
    assert "warning" in data


async def test_send_bulk_without_subscribers(client, mail_sender, draft_payload) -> None:
    response = await client.post("/api/send-bulk-newsletter", json={"newsletterData": draft_payload})

    data = await response.json()
    assert data["sentCount"] == 0
    assert data["message"] == "No active subscribers found to send the newsletter to."
    assert mail_sender.attempts == []


async def test_saved_newsletter_crud(client, draft_payload) -> None:
    created = await client.post("/api/newsletters", json=draft_payload)
    assert created.status == 201
    newsletter_id = (await created.json())["id"]

    listed = await (await client.get("/api/newsletters")).json()
    assert [item["id"] for item in listed] == [newsletter_id]

    draft_payload["newsletterTitle"] = "Renamed"
    updated = await client.put(f"/api/newsletters/{newsletter_id}", json=draft_payload)
    assert (await updated.json())["newsletterTitle"] == "Renamed"

    fetched = await client.get(f"/api/newsletters/{newsletter_id}")
    assert (await fetched.json())["newsletterTitle"] == "Renamed"

    deleted = await client.delete(f"/api/newsletters/{newsletter_id}")
    assert deleted.status == 204

    missing = await client.get(f"/api/newsletters/{newsletter_id}")
    assert missing.status == 404


async def test_update_unknown_newsletter(client, draft_payload) -> None:
    response = await client.put("/api/newsletters/unknown", json=draft_payload)

    assert response.status == 404


async def test_unexpected_errors_become_500(client, studio) -> None:
    async def explode():
        raise RuntimeError("kaboom")

    studio.list_newsletters = explode

    response = await client.get("/api/newsletters")

    assert response.status == 500
    assert await response.json() == {"error": "An unexpected error occurred."}


async def test_request_id_is_echoed(client) -> None:
    response = await client.get("/health", headers={"X-Request-ID": "abc123"})

    assert response.headers["X-Request-ID"] == "abc123"


async def test_request_id_is_generated(client) -> None:
    response = await client.get("/health")

    assert response.headers["X-Request-ID"]
