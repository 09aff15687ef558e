import base64
import json
from pathlib import Path
from typing import Any

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from tracker_api.db import get_engine
from tracker_api.models import JobRecord
from tracker_api.streaming import END_MARKER

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-image"


def _frames(body: bytes) -> list[dict[str, Any]]:
    assert body.endswith(END_MARKER)
    return [json.loads(part) for part in body.split(END_MARKER) if part.strip()]


def _create(client: TestClient, **overrides: Any) -> dict[str, Any]:
    payload = {"position": "Eng", "company": "Acme", "url": "http://x", "status": "applied"}
    payload.update(overrides)
    response = client.post("/jobs", json=payload)
    assert response.status_code == 201
    return _frames(response.content)[-1]


def test_create_streams_one_frame_with_initial_status(client: TestClient) -> None:
    response = client.post(
        "/jobs",
        json={
            "position": "Eng",
            "company": "Acme",
            "url": "http://x",
            "status": "applied",
            "notes": "referral",
        },
    )

    assert response.status_code == 201
    frames = _frames(response.content)
    assert len(frames) == 1
    frame = frames[0]
    assert frame["position"] == "Eng"
    assert frame["notes"] == "referral"
    assert [status["status"] for status in frame["statuses"]] == ["applied"]
    assert "updated_at" not in frame
    assert "image_url" not in frame

    with Session(get_engine()) as session:
        job = session.get(JobRecord, frame["id"])
        assert job is not None
        assert job.user_id == "user-1"


def test_create_with_image_streams_second_frame(client: TestClient, tmp_path: Path) -> None:
    image = "data:image/png;base64," + base64.b64encode(PNG_BYTES).decode("ascii")

    response = client.post(
        "/jobs",
        json={"position": "Eng", "company": "Acme", "url": "http://x", "status": "applied", "image": image},
    )

    frames = _frames(response.content)
    assert len(frames) == 2
    first, second = frames
    assert first["id"] == second["id"]
    assert "image_url" not in first
    assert second["image_filename"] == f"{first['id']}.png"
    assert second["image_url"] == f"http://testserver/images/{first['id']}.png"
    assert (tmp_path / "images" / f"{first['id']}.png").read_bytes() == PNG_BYTES

    image_response = client.get(f"/images/{first['id']}.png")
    assert image_response.status_code == 200
    assert image_response.content == PNG_BYTES


def test_create_rejects_invalid_image(client: TestClient) -> None:
    response = client.post(
        "/jobs",
        json={"position": "Eng", "company": "Acme", "url": "http://x", "status": "applied", "image": "%%%"},
    )

    assert response.status_code == 422
    assert response.json() == {"detail": "image is not valid base64"}


def test_create_rejects_unknown_fields(client: TestClient) -> None:
    response = client.post(
        "/jobs",
        json={"position": "Eng", "company": "Acme", "url": "http://x", "status": "applied", "salary": 1},
    )

    assert response.status_code == 422


def test_requests_without_bearer_token_are_unauthorized(client: TestClient) -> None:
    response = client.get("/jobs", headers={"Authorization": ""})

    assert response.status_code == 401
    assert response.json() == {"detail": "missing bearer token"}


def test_list_returns_envelope_of_callers_jobs(client: TestClient) -> None:
    first = _create(client, position="First")
    second = _create(client, position="Second")
    client.post(
        "/jobs",
        json={"position": "Other", "company": "Acme", "url": "http://x", "status": "applied"},
        headers={"Authorization": "Bearer user-2"},
    )

    response = client.get("/jobs")

    assert response.status_code == 200
    assert [job["id"] for job in response.json()["jobs"]] == [first["id"], second["id"]]


def test_get_job_hides_other_users_jobs(client: TestClient) -> None:
    job = _create(client)

    assert client.get(f"/jobs/{job['id']}").json()["id"] == job["id"]
    response = client.get(f"/jobs/{job['id']}", headers={"Authorization": "Bearer user-2"})
    assert response.status_code == 404
    assert response.json() == {"detail": "job not found"}


def test_patch_appends_status_and_sets_updated_at(client: TestClient) -> None:
    job = _create(client)

    response = client.patch(
        f"/jobs/{job['id']}",
        json={"id": job["id"], "status": "interview", "notes": "call on monday"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["notes"] == "call on monday"
    assert body["updated_at"] is not None
    assert [status["status"] for status in body["statuses"]] == ["applied", "interview"]


def test_patch_with_unchanged_status_keeps_history(client: TestClient) -> None:
    job = _create(client)

    body = client.patch(f"/jobs/{job['id']}", json={"status": "applied", "company": "Acme Corp"}).json()

    assert body["company"] == "Acme Corp"
    assert [status["status"] for status in body["statuses"]] == ["applied"]


def test_delete_removes_job_and_image(client: TestClient, tmp_path: Path) -> None:
    image = base64.b64encode(PNG_BYTES).decode("ascii")
    job = _create(client, image=image)
    image_path = tmp_path / "images" / job["image_filename"]
    assert image_path.exists()

    response = client.delete(f"/jobs/{job['id']}")

    assert response.status_code == 204
    assert response.content == b""
    assert client.get(f"/jobs/{job['id']}").status_code == 404
    assert not image_path.exists()


def test_delete_unknown_job_is_not_found(client: TestClient) -> None:
    assert client.delete("/jobs/missing").status_code == 404
