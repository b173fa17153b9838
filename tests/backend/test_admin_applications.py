from __future__ import annotations

from datetime import timedelta

from backend.roundtrack.models import utc_now


def test_listing_reports_progress_and_timeline(client, admin_headers, process_id, started_application) -> None:
    application_id, headers = started_application
    client.post(f"/applications/{application_id}/round/rnd_intro", headers=headers, json={"answers": []})
    client.put(
        f"/applications/{application_id}/round/rnd_code/timeline",
        headers=headers,
        json={"hours": 30},
    )

    response = client.get(f"/admin/processes/{process_id}/applications", headers=admin_headers)

    assert response.status_code == 200
    items = response.json()
    assert len(items) == 1
    item = items[0]
    assert item["applicationId"] == application_id
    assert item["candidate"]["email"] == "asha@example.com"
    assert item["currentRoundTitle"] == "Coding Task"
    assert item["roundProgress"] == {"current": 1, "total": 3, "percentage": 33}
    assert item["timelineDate"] is not None
    assert item["timeRemaining"]["days"] == 1
    assert item["timeRemaining"]["expired"] is False


def test_listing_filters_by_status(client, admin_headers, process_id, started_application) -> None:
    response = client.get(
        f"/admin/processes/{process_id}/applications",
        headers=admin_headers,
        params={"status_filter": "completed"},
    )
    assert response.status_code == 200
    assert response.json() == []


def test_block_and_unblock_through_admin_action(client, admin_headers, started_application) -> None:
    application_id, headers = started_application

    blocked = client.patch(
        f"/admin/applications/{application_id}",
        headers=admin_headers,
        json={"action": "blockCandidate", "durationHours": 12, "reason": "Missed deadline"},
    )
    assert blocked.status_code == 200
    body = blocked.json()
    assert body["success"] is True
    assert body["status"] == "blocked"
    assert body["blockedUntil"] is not None

    denied = client.patch(
        f"/applications/{application_id}/round/rnd_intro",
        headers=headers,
        json={"answers": [{"fieldId": "fld_name", "answer": "x"}]},
    )
    assert denied.status_code == 403
    assert denied.json()["error"] == "account_blocked"
    assert denied.json()["reason"] == "Missed deadline"

    unblocked = client.patch(
        f"/admin/applications/{application_id}",
        headers=admin_headers,
        json={"action": "unblockCandidate"},
    )
    assert unblocked.status_code == 200
    assert unblocked.json()["status"] == "in-progress"

    allowed = client.patch(
        f"/applications/{application_id}/round/rnd_intro",
        headers=headers,
        json={"answers": [{"fieldId": "fld_name", "answer": "x"}]},
    )
    assert allowed.status_code == 200


def test_block_uses_default_duration_and_legacy_field(client, admin_headers, started_application) -> None:
    application_id, _ = started_application

    defaulted = client.patch(
        f"/admin/applications/{application_id}",
        headers=admin_headers,
        json={"action": "blockCandidate"},
    )
    assert defaulted.status_code == 200

    legacy = client.patch(
        f"/admin/applications/{application_id}",
        headers=admin_headers,
        json={"action": "blockCandidate", "blockDurationHours": 2},
    )
    assert legacy.status_code == 200


def test_block_duration_out_of_range_is_rejected(client, admin_headers, started_application) -> None:
    application_id, _ = started_application
    for hours in (0, -3, 721):
        response = client.patch(
            f"/admin/applications/{application_id}",
            headers=admin_headers,
            json={"action": "blockCandidate", "durationHours": hours},
        )
        assert response.status_code == 400


def test_choice_field_needs_two_options(client, admin_headers) -> None:
    response = client.post(
        "/admin/processes",
        headers=admin_headers,
        json={
            "title": "Bad choices",
            "rounds": [
                {
                    "title": "Only",
                    "fields": [
                        {"question": "Pick", "subType": "singleChoice", "options": ["Yes", " "]}
                    ],
                }
            ],
        },
    )
    assert response.status_code == 400


def test_unknown_action_is_rejected(client, admin_headers, started_application) -> None:
    application_id, _ = started_application
    response = client.patch(
        f"/admin/applications/{application_id}",
        headers=admin_headers,
        json={"action": "promoteCandidate"},
    )
    assert response.status_code == 400


def test_status_override(client, admin_headers, started_application) -> None:
    application_id, headers = started_application

    rejected = client.patch(
        f"/admin/applications/{application_id}",
        headers=admin_headers,
        json={"action": "updateStatus", "status": "rejected"},
    )
    assert rejected.status_code == 200
    assert rejected.json()["status"] == "rejected"

    locked = client.post(
        f"/applications/{application_id}/round/rnd_intro",
        headers=headers,
        json={"answers": []},
    )
    assert locked.status_code == 409

    via_status = client.patch(
        f"/admin/applications/{application_id}",
        headers=admin_headers,
        json={"action": "updateStatus", "status": "blocked"},
    )
    assert via_status.status_code == 409


def test_blocked_login_returns_contacts(client, admin_headers, started_application) -> None:
    application_id, _ = started_application
    client.put(
        "/admin/community",
        headers=admin_headers,
        json={
            "groupLink": "https://chat.example.com/join/abc",
            "admins": [{"name": "Ravi", "email": "ravi@example.com"}],
        },
    )
    client.patch(
        f"/admin/applications/{application_id}",
        headers=admin_headers,
        json={"action": "blockCandidate", "durationHours": 5},
    )

    response = client.post(
        "/auth/candidate/login",
        json={"email": "asha@example.com", "password": "candidate-password-1"},
    )

    assert response.status_code == 403
    body = response.json()
    assert body["error"] == "account_blocked"
    assert body["adminContacts"] == [{"name": "Ravi", "email": "ravi@example.com", "phone": None}]
    assert body["timeRemaining"]["hours"] in {4, 5}
    assert "login_blocked\"} 1" in client.get("/metrics").text


def test_expired_block_heals_on_login(client, app, admin_headers, started_application) -> None:
    application_id, _ = started_application
    client.patch(
        f"/admin/applications/{application_id}",
        headers=admin_headers,
        json={"action": "blockCandidate", "durationHours": 1},
    )
    store = app.state.store
    application = store.get_application(application_id)
    past = utc_now() - timedelta(minutes=1)
    store.applications[application_id] = application.model_copy(update={"blocked_until": past})
    candidate = store.get_candidate(application.candidate_id)
    store.candidates[candidate.id] = candidate.model_copy(update={"blocked_until": past})

    response = client.post(
        "/auth/candidate/login",
        json={"email": "asha@example.com", "password": "candidate-password-1"},
    )

    assert response.status_code == 200
    assert store.get_application(application_id).status.value == "in-progress"
    assert store.get_candidate(candidate.id).is_blocked is False


def test_archive_removes_application(client, app, admin_headers, started_application) -> None:
    application_id, headers = started_application

    response = client.delete(f"/admin/applications/{application_id}", headers=admin_headers)

    assert response.status_code == 200
    assert client.get(f"/admin/applications/{application_id}", headers=admin_headers).status_code == 404
    assert client.get(f"/applications/{application_id}", headers=headers).status_code == 404
    assert application_id in app.state.store.archived_applications


def test_application_detail_includes_process(client, admin_headers, started_application) -> None:
    application_id, _ = started_application

    response = client.get(f"/admin/applications/{application_id}", headers=admin_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["process"]["title"] == "Backend Engineer"
    assert body["candidate"]["isBlocked"] is False
    assert body["roundProgress"]["total"] == 3


def test_clone_process_creates_draft_copy(client, admin_headers, process_id) -> None:
    response = client.post(f"/admin/processes/{process_id}/clone", headers=admin_headers, json={})

    assert response.status_code == 201
    body = response.json()
    assert body["processId"] != process_id
    assert body["title"] == "Backend Engineer (Copy)"
    assert body["status"] == "draft"


def test_community_link_requires_completed_application(
    client, admin_headers, started_application
) -> None:
    application_id, headers = started_application
    assert client.get("/candidate/community", headers=headers).status_code == 403

    for round_id in ("rnd_intro", "rnd_code", "rnd_voice"):
        client.post(f"/applications/{application_id}/round/{round_id}", headers=headers, json={})
    assert client.get("/candidate/community", headers=headers).status_code == 404

    client.put(
        "/admin/community",
        headers=admin_headers,
        json={"groupLink": "https://chat.example.com/join/xyz", "admins": []},
    )
    response = client.get("/candidate/community", headers=headers)
    assert response.json() == {"groupLink": "https://chat.example.com/join/xyz"}


def test_nan_block_duration_is_rejected(client, admin_headers, started_application) -> None:
    application_id, _ = started_application

    response = client.patch(
        f"/admin/applications/{application_id}",
        headers={**admin_headers, "Content-Type": "application/json"},
        content='{"action": "blockCandidate", "durationHours": NaN}',
    )

    assert response.status_code == 400
    detail = client.get(f"/admin/applications/{application_id}", headers=admin_headers).json()
    assert detail["candidate"]["isBlocked"] is False
