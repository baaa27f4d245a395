from __future__ import annotations

import base64

from fastapi.testclient import TestClient

from lyria_backend.lyria import LyriaError


def test_generate_returns_stitched_audio(app_factory, fake_lyria) -> None:
    app = app_factory(fake_lyria)

    with TestClient(app) as client:
        response = client.post(
            "/generate",
            data={"prompt": "jazz trio", "duration": "45", "seed": "5", "temperature": "0.4"},
        )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["fullAudioUrl"].startswith("data:audio/wav;base64,")
    audio = base64.b64decode(body["fullAudioUrl"].split(",", 1)[1])
    assert len(audio) == 44 + 32
    assert [segment["startTime"] for segment in body["audioSegments"]] == [0, 30]
    assert [segment["endTime"] for segment in body["audioSegments"]] == [30, 45]
    assert body["audioSegments"][1]["seamlessTransition"] is True
    metadata = body["metadata"]
    assert metadata["duration"] == 45
    assert metadata["segments"] == 2
    assert metadata["segmentDuration"] == 30
    assert metadata["concatenated"] is True
    assert metadata["totalSize"] == len(audio)
    assert metadata["version"] == 1
    assert metadata["seed"] == 5
    assert body["suggestions"]
    assert body["continuationPrompts"]
    assert [call["seed"] for call in fake_lyria.calls] == [5, 6]
    assert fake_lyria.closed


def test_duration_is_clamped_to_maximum(app_factory, fake_lyria) -> None:
    client = TestClient(app_factory(fake_lyria))

    response = client.post("/generate", data={"prompt": "drone", "duration": "9999"})

    assert response.status_code == 200
    assert response.json()["metadata"]["duration"] == 300
    assert len(fake_lyria.calls) == 10


def test_missing_duration_uses_default(app_factory, fake_lyria) -> None:
    client = TestClient(app_factory(fake_lyria, default_duration=20))

    response = client.post("/generate", data={"prompt": "drone", "duration": "abc"})

    assert response.status_code == 200
    assert response.json()["metadata"]["duration"] == 20
    assert fake_lyria.calls[0]["duration"] == 20


def test_legacy_path_and_inspiration_upload(app_factory, fake_lyria) -> None:
    client = TestClient(app_factory(fake_lyria))

    response = client.post(
        "/api/generate-music",
        data={"prompt": "ambient pads", "negativePrompt": "drums"},
        files={"inspirationAudio": ("clip.wav", b"RIFF....", "audio/wav")},
    )

    assert response.status_code == 200
    assert fake_lyria.calls[0]["negative_prompt"] == "drums"


def test_prompt_is_required(app_factory, fake_lyria) -> None:
    client = TestClient(app_factory(fake_lyria))

    response = client.post("/generate", data={"duration": "30"})

    assert response.status_code == 422
    assert fake_lyria.calls == []


def test_content_block_maps_to_bad_request(app_factory, lyria_factory) -> None:
    lyria = lyria_factory(error=LyriaError(400, "Responses blocked by recitation checks"))
    client = TestClient(app_factory(lyria))

    response = client.post("/generate", data={"prompt": "epic orchestral piece"})

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["errorType"] == "CONTENT_BLOCKED"
    assert body["userPrompt"] == "epic orchestral piece"
    assert body["suggestions"]


def test_quota_error_maps_to_service_unavailable(app_factory, lyria_factory) -> None:
    lyria = lyria_factory(error=LyriaError(429, "Quota exceeded"), fail_at=1)
    client = TestClient(app_factory(lyria))

    response = client.post("/generate", data={"prompt": "lofi", "duration": "60"})

    assert response.status_code == 503
    body = response.json()
    assert body["errorType"] == "SERVICE_UNAVAILABLE"
    assert "suggestions" not in body
    assert len(lyria.calls) == 2


def test_unexpected_error_maps_to_server_error(app_factory, lyria_factory) -> None:
    lyria = lyria_factory(error=RuntimeError("socket closed"))
    client = TestClient(app_factory(lyria))

    response = client.post("/generate", data={"prompt": "lofi"})

    assert response.status_code == 500
    body = response.json()
    assert body["errorType"] == "UNEXPECTED_ERROR"
    assert "socket closed" not in body["message"]
    assert "internal server error" in body["message"]


def test_large_integer_seed_is_not_rounded(app_factory, fake_lyria) -> None:
    seed = 2**53 + 1
    client = TestClient(app_factory(fake_lyria))

    response = client.post("/generate", data={"prompt": "drone", "seed": str(seed)})

    assert response.status_code == 200
    assert fake_lyria.calls[0]["seed"] == seed
    assert response.json()["metadata"]["seed"] == seed


def test_decimal_and_junk_seeds(app_factory, fake_lyria) -> None:
    client = TestClient(app_factory(fake_lyria))

    client.post("/generate", data={"prompt": "drone", "seed": "42.0"})
    client.post("/generate", data={"prompt": "drone", "seed": "abc"})

    assert [call["seed"] for call in fake_lyria.calls] == [42, None]


def test_single_segment_is_not_reported_as_concatenated(app_factory, fake_lyria) -> None:
    client = TestClient(app_factory(fake_lyria))

    response = client.post("/generate", data={"prompt": "drone", "duration": "20"})

    metadata = response.json()["metadata"]
    assert metadata["segments"] == 1
    assert metadata["concatenated"] is False
