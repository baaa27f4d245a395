from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from lyria_backend.lyria import LyriaError
from lyria_backend.routers.sessions import INSPIRATION_ONLY_PROMPT
from lyria_backend.services.session_store import DEFAULT_SESSION_TITLE


@pytest.fixture
def client(app_factory, fake_lyria) -> TestClient:
    return TestClient(app_factory(fake_lyria))


def _create(client: TestClient, title: str | None = None) -> dict:
    payload = {"title": title} if title is not None else None
    response = client.post("/api/sessions", json=payload)
    assert response.status_code == 201
    return response.json()


def test_create_session_defaults(client: TestClient) -> None:
    session = _create(client)

    assert session["title"] == DEFAULT_SESSION_TITLE
    assert session["messages"] == []
    assert session["totalCost"] == 0
    assert "createdAt" in session


def test_list_sessions_newest_first(client: TestClient) -> None:
    first = _create(client, "first")
    second = _create(client, "second")

    listed = client.get("/api/sessions").json()

    assert [item["id"] for item in listed] == [second["id"], first["id"]]
    assert listed[0]["messageCount"] == 0


def test_unknown_session_is_not_found(client: TestClient) -> None:
    assert client.get("/api/sessions/missing").status_code == 404
    response = client.post("/api/sessions/missing/generate", data={"prompt": "x"})
    assert response.status_code == 404


def test_delete_is_idempotent(client: TestClient) -> None:
    session = _create(client)

    assert client.delete(f"/api/sessions/{session['id']}").status_code == 204
    assert client.delete(f"/api/sessions/{session['id']}").status_code == 204
    assert client.get(f"/api/sessions/{session['id']}").status_code == 404


def test_generate_records_user_and_assistant_messages(client: TestClient) -> None:
    session = _create(client)

    response = client.post(
        f"/api/sessions/{session['id']}/generate",
        data={"prompt": "bossa nova guitar", "duration": "60"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["result"]["success"] is True
    messages = body["session"]["messages"]
    assert [m["role"] for m in messages] == ["user", "assistant", "assistant"]
    assert messages[0]["content"] == "bossa nova guitar"
    assert messages[1]["content"] == "Generated 60s of music! Cost: $0.160"
    assert messages[1]["musicUrl"].startswith("data:audio/wav;base64,")
    assert messages[1]["metadata"]["version"] == 1
    assert messages[2]["content"].startswith("Suggestions for improvement:")
    assert body["session"]["totalCost"] == pytest.approx(0.16)


def test_blank_prompt_is_recorded_as_inspiration_request(client: TestClient) -> None:
    session = _create(client)

    response = client.post(
        f"/api/sessions/{session['id']}/generate",
        data={"prompt": "   "},
        files={"inspirationAudio": ("clip.wav", b"RIFF", "audio/wav")},
    )

    assert response.json()["session"]["messages"][0]["content"] == INSPIRATION_ONLY_PROMPT


def test_failed_generation_records_error_message(app_factory, lyria_factory) -> None:
    client = TestClient(app_factory(lyria_factory(error=LyriaError(429, "rate limit"))))
    session = _create(client)

    response = client.post(
        f"/api/sessions/{session['id']}/generate", data={"prompt": "trap beat"}
    )

    assert response.status_code == 503
    body = response.json()
    assert body["result"]["errorType"] == "SERVICE_UNAVAILABLE"
    failure_message = body["session"]["messages"][-1]
    assert failure_message["content"].startswith("Generation failed: ")
    assert failure_message["metadata"]["cost"] == 0
    assert body["session"]["totalCost"] == 0


def test_variation_versions_parent_track(client: TestClient, fake_lyria) -> None:
    session = _create(client)
    generated = client.post(
        f"/api/sessions/{session['id']}/generate",
        data={"prompt": "piano etude", "duration": "30", "seed": "9"},
    ).json()
    parent = generated["session"]["messages"][1]

    response = client.post(
        f"/api/sessions/{session['id']}/messages/{parent['id']}/variations",
        json={"instructions": "in a minor key"},
    )

    assert response.status_code == 200
    body = response.json()
    metadata = body["result"]["metadata"]
    assert metadata["version"] == 2
    assert metadata["parentId"] == parent["id"]
    assert metadata["cost"] == pytest.approx(0.03)
    assert metadata["prompt"] == "piano etude. in a minor key"
    assert fake_lyria.calls[-1]["seed"] == 10
    messages = body["session"]["messages"]
    assert messages[-2]["content"] == "Create a variation: in a minor key"
    assert messages[-1]["content"].startswith("Variation created: in a minor key")
    assert body["session"]["totalCost"] == pytest.approx(0.08 + 0.03)


def test_variation_of_unknown_or_plain_message(client: TestClient) -> None:
    session = _create(client)
    generated = client.post(
        f"/api/sessions/{session['id']}/generate", data={"prompt": "harp"}
    ).json()
    user_message = generated["session"]["messages"][0]
    base = f"/api/sessions/{session['id']}/messages"

    missing = client.post(f"{base}/nope/variations", json={"instructions": "x"})
    plain = client.post(f"{base}/{user_message['id']}/variations", json={"instructions": "x"})
    empty = client.post(f"{base}/{user_message['id']}/variations", json={"instructions": ""})

    assert missing.status_code == 404
    assert plain.status_code == 422
    assert empty.status_code == 422
