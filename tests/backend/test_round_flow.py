from __future__ import annotations

import json
import threading

from fastapi.testclient import TestClient

from backend.roundtrack.services.uploads import StorageError


def test_candidate_walks_rounds_in_process_order(client, started_application) -> None:
    application_id, headers = started_application

    detail = client.get(f"/applications/{application_id}", headers=headers)
    assert detail.status_code == 200
    assert detail.json()["application"]["currentRoundTitle"] == "Introduction"
    assert detail.json()["application"]["status"] == "applied"

    first = client.post(
        f"/applications/{application_id}/round/rnd_intro",
        headers=headers,
        json={"answers": [{"fieldId": "fld_name", "answer": "Asha"}]},
    )
    assert first.status_code == 200
    assert first.json() == {"success": True, "nextRoundIndex": 1}

    second = client.post(
        f"/applications/{application_id}/round/rnd_code",
        headers=headers,
        json={"answers": [{"fieldId": "fld_solution", "answer": "print(1)"}]},
    )
    assert second.json()["nextRoundIndex"] == 2

    last = client.post(
        f"/applications/{application_id}/round/rnd_voice",
        headers=headers,
        json={"answers": []},
    )
    assert last.status_code == 200
    assert last.json()["nextRoundIndex"] is None

    final = client.get(f"/applications/{application_id}", headers=headers).json()
    assert final["application"]["status"] == "completed"
    assert final["roundProgress"] == {"current": 3, "total": 3, "percentage": 100}


def test_empty_body_submits_round_without_answers(client, started_application) -> None:
    application_id, headers = started_application

    response = client.post(f"/applications/{application_id}/round/rnd_intro", headers=headers)

    assert response.status_code == 200
    assert response.json()["nextRoundIndex"] == 1


def test_unknown_round_returns_404(client, started_application) -> None:
    application_id, headers = started_application
    response = client.post(
        f"/applications/{application_id}/round/rnd_missing",
        headers=headers,
        json={"answers": []},
    )
    assert response.status_code == 404


def test_answer_for_foreign_field_returns_400(client, started_application) -> None:
    application_id, headers = started_application
    response = client.post(
        f"/applications/{application_id}/round/rnd_intro",
        headers=headers,
        json={"answers": [{"fieldId": "fld_audio", "answer": "x"}]},
    )
    assert response.status_code == 400


def test_other_candidate_cannot_touch_application(client, started_application, register_candidate) -> None:
    application_id, _ = started_application
    _, intruder_headers = register_candidate("intruder@example.com")

    response = client.patch(
        f"/applications/{application_id}/round/rnd_intro",
        headers=intruder_headers,
        json={"answers": [{"fieldId": "fld_name", "answer": "mine now"}]},
    )
    assert response.status_code == 404


def test_autosave_merges_partial_answers(client, app, started_application) -> None:
    application_id, headers = started_application

    first = client.patch(
        f"/applications/{application_id}/round/rnd_intro",
        headers=headers,
        json={"answers": [{"fieldId": "fld_name", "answer": "Asha"}]},
    )
    assert first.json() == {"success": True, "savedFields": 1}
    second = client.patch(
        f"/applications/{application_id}/round/rnd_intro",
        headers=headers,
        json={"answers": [{"fieldId": "fld_bio", "answer": "Backend dev"}]},
    )
    assert second.json()["savedFields"] == 2

    stored = app.state.store.get_application(application_id)
    intro = next(progress for progress in stored.rounds if progress.round_id == "rnd_intro")
    assert intro.status.value == "in-progress"
    assert {answer.field_id for answer in intro.answers} == {"fld_name", "fld_bio"}
    assert stored.status.value == "in-progress"


def test_multipart_submit_uploads_files(client, started_application) -> None:
    application_id, headers = started_application
    client.post(f"/applications/{application_id}/round/rnd_intro", headers=headers, json={"answers": []})

    response = client.post(
        f"/applications/{application_id}/round/rnd_code",
        headers=headers,
        data={"answers": json.dumps([{"fieldId": "fld_solution", "answer": "see archive"}])},
        files={"file_fld_repo": ("solution.zip", b"PK\x03\x04", "application/zip")},
    )

    assert response.status_code == 200
    detail = client.get(f"/applications/{application_id}", headers=headers).json()
    code_round = next(
        progress for progress in detail["application"]["rounds"] if progress["roundId"] == "rnd_code"
    )
    answers = {answer["fieldId"]: answer["answer"] for answer in code_round["answers"]}
    assert answers["fld_solution"] == "see archive"
    assert answers["fld_repo"].startswith("https://files.roundtrack.test/file/")
    assert answers["fld_repo"].endswith("_solution.zip")


def test_failed_upload_commits_nothing(client, app, started_application) -> None:
    application_id, headers = started_application

    class BrokenStorage:
        def upload(self, data, *, filename, content_type, kind):
            raise StorageError("bucket offline")

    app.state.storage = BrokenStorage()
    response = client.post(
        f"/applications/{application_id}/round/rnd_voice",
        headers=headers,
        data={"answers": "[]"},
        files={"file_fld_audio": ("take1.webm", b"audio", "audio/webm")},
    )

    assert response.status_code == 502
    body = response.json()
    assert body["error"] == "upload_failed"
    assert body["file"] == "take1.webm"
    assert body["fieldId"] == "fld_audio"
    assert "bucket offline" not in body["message"]
    stored = app.state.store.get_application(application_id)
    assert stored.rounds == []
    assert "upload_failed" in client.get("/metrics").text


def test_timeline_is_set_on_open_round(client, started_application) -> None:
    application_id, headers = started_application

    response = client.put(
        f"/applications/{application_id}/round/rnd_intro/timeline",
        headers=headers,
        json={"hours": 36},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["roundId"] == "rnd_intro"
    assert body["timeline"].endswith("UTC")


def test_timeline_hours_are_bounded(client, started_application) -> None:
    application_id, headers = started_application
    response = client.put(
        f"/applications/{application_id}/round/rnd_intro/timeline",
        headers=headers,
        json={"hours": 0},
    )
    assert response.status_code == 400


def test_apply_is_idempotent_and_requires_published_process(
    client, admin_headers, process_id, register_candidate
) -> None:
    _, headers = register_candidate("repeat@example.com")
    first = client.post(f"/processes/{process_id}/apply", headers=headers)
    second = client.post(f"/processes/{process_id}/apply", headers=headers)
    assert first.json()["applicationId"] == second.json()["applicationId"]

    draft = client.post(
        "/admin/processes",
        headers=admin_headers,
        json={"title": "Draft role", "status": "draft", "rounds": []},
    )
    draft_id = draft.json()["processId"]
    assert client.post(f"/processes/{draft_id}/apply", headers=headers).status_code == 409
    assert client.get(f"/processes/{draft_id}", headers=headers).status_code == 404
    assert client.get(f"/processes/{process_id}", headers=headers).status_code == 200


def test_other_requests_are_served_while_an_upload_is_in_flight(app, client, started_application) -> None:
    application_id, headers = started_application
    client.post(f"/applications/{application_id}/round/rnd_intro", headers=headers, json={"answers": []})
    entered = threading.Event()
    release = threading.Event()
    finished = threading.Event()

    class SlowStorage:
        def upload(self, data, *, filename, content_type, kind):
            entered.set()
            release.wait(timeout=10)
            finished.set()
            return f"https://files.roundtrack.test/file/{filename}"

    app.state.storage = SlowStorage()
    results = {}
    with TestClient(app) as shared:

        def submit() -> None:
            results["submit"] = shared.post(
                f"/applications/{application_id}/round/rnd_code",
                headers=headers,
                data={"answers": "[]"},
                files={"file_fld_repo": ("slow.zip", b"PK", "application/zip")},
            )

        worker = threading.Thread(target=submit)
        worker.start()
        assert entered.wait(timeout=5)
        health = shared.get("/health")
        upload_still_running = not finished.is_set()
        release.set()
        worker.join(timeout=10)

    assert health.status_code == 200
    assert upload_still_running
    assert results["submit"].status_code == 200
