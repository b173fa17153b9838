from __future__ import annotations

from typing import Callable

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from backend.roundtrack.main import create_app

ADMIN_EMAIL = "admin@roundtrack.test"
ADMIN_PASSWORD = "admin-password-1"
CANDIDATE_PASSWORD = "candidate-password-1"


def build_process_payload(*, status: str = "published") -> dict:
    # Listed out of order on purpose; "order" decides the sequence.
    return {
        "title": "Backend Engineer",
        "description": "Three round hiring process",
        "status": status,
        "rounds": [
            {
                "id": "rnd_code",
                "order": 2,
                "title": "Coding Task",
                "type": "form",
                "fields": [
                    {"id": "fld_solution", "question": "Paste your solution", "subType": "codeEditor"},
                    {"id": "fld_repo", "question": "Upload your archive", "subType": "fileUpload"},
                ],
            },
            {
                "id": "rnd_intro",
                "order": 1,
                "title": "Introduction",
                "type": "form",
                "fields": [
                    {"id": "fld_name", "question": "Your name", "subType": "shortText"},
                    {"id": "fld_bio", "question": "Tell us about you", "subType": "longText"},
                    {
                        "id": "fld_level",
                        "question": "Seniority",
                        "subType": "singleChoice",
                        "options": ["Junior", "Senior"],
                    },
                ],
            },
            {
                "id": "rnd_voice",
                "order": 3,
                "title": "Voice Note",
                "type": "hybrid",
                "fields": [
                    {"id": "fld_audio", "question": "Record an answer", "subType": "audioResponse"},
                ],
            },
        ],
    }


def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def app(monkeypatch: pytest.MonkeyPatch, tmp_path) -> FastAPI:
    monkeypatch.setenv("PERSISTENCE_ENABLED", "false")
    monkeypatch.setenv("JWT_SECRET", "test-secret")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    monkeypatch.setenv("STORAGE_LOCAL_DIR", str(tmp_path / "uploads"))
    monkeypatch.setenv("STORAGE_PUBLIC_BASE_URL", "https://files.roundtrack.test")
    return create_app()


@pytest.fixture()
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


@pytest.fixture()
def admin_headers(app: FastAPI, client: TestClient) -> dict[str, str]:
    app.state.store.create_admin(name="Hiring Admin", email=ADMIN_EMAIL, password=ADMIN_PASSWORD)
    response = client.post(
        "/auth/admin/login",
        json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD},
    )
    assert response.status_code == 200
    return auth_headers(response.json()["token"])


@pytest.fixture()
def register_candidate(client: TestClient) -> Callable[[str], tuple[str, dict[str, str]]]:
    def _register(email: str) -> tuple[str, dict[str, str]]:
        created = client.post(
            "/auth/candidate/register",
            json={"name": "Asha Rao", "email": email, "password": CANDIDATE_PASSWORD},
        )
        assert created.status_code == 201
        login = client.post(
            "/auth/candidate/login",
            json={"email": email, "password": CANDIDATE_PASSWORD},
        )
        assert login.status_code == 200
        return created.json()["candidateId"], auth_headers(login.json()["token"])

    return _register


@pytest.fixture()
def process_id(client: TestClient, admin_headers: dict[str, str]) -> str:
    response = client.post("/admin/processes", headers=admin_headers, json=build_process_payload())
    assert response.status_code == 201
    return response.json()["processId"]


@pytest.fixture()
def started_application(
    client: TestClient,
    process_id: str,
    register_candidate,
) -> tuple[str, dict[str, str]]:
    _, headers = register_candidate("asha@example.com")
    response = client.post(f"/processes/{process_id}/apply", headers=headers)
    assert response.status_code == 201
    return response.json()["applicationId"], headers
