from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

from backend.roundtrack.models import AnswerInput, CandidateRegisterRequest, ProcessCreateRequest
from backend.roundtrack.store import InMemoryStore

FIELD_COUNT = 40


def _seed() -> tuple[InMemoryStore, str, str]:
    store = InMemoryStore()
    candidate = store.register_candidate(
        CandidateRegisterRequest(name="Race Tester", email="race@example.com", password="race-pass-1")
    )
    process = store.create_process(
        "adm_1",
        ProcessCreateRequest.model_validate(
            {
                "title": "Concurrency role",
                "status": "published",
                "rounds": [
                    {
                        "id": "R1",
                        "order": 1,
                        "title": "Many fields",
                        "fields": [
                            {"id": f"f{index}", "question": f"Q{index}", "subType": "shortText"}
                            for index in range(FIELD_COUNT)
                        ],
                    },
                    {"id": "R2", "order": 2, "title": "Second", "fields": []},
                ],
            }
        ),
    )
    application = store.start_application(process.id, candidate.id)
    return store, application.id, candidate.id


def test_concurrent_autosaves_on_distinct_fields_are_all_kept() -> None:
    store, application_id, candidate_id = _seed()

    def autosave(index: int) -> None:
        store.autosave_round(
            application_id=application_id,
            candidate_id=candidate_id,
            round_id="R1",
            answers=[AnswerInput(field_id=f"f{index}", answer=f"value {index}")],
        )

    with ThreadPoolExecutor(max_workers=8) as executor:
        for future in [executor.submit(autosave, index) for index in range(FIELD_COUNT)]:
            future.result()

    progress = store.get_application(application_id).rounds
    assert len(progress) == 1
    assert {answer.field_id for answer in progress[0].answers} == {f"f{i}" for i in range(FIELD_COUNT)}


def test_concurrent_submits_of_same_round_leave_one_entry() -> None:
    store, application_id, candidate_id = _seed()

    def submit(_: int) -> None:
        store.submit_round(
            application_id=application_id,
            candidate_id=candidate_id,
            round_id="R1",
            answers=[],
        )

    def reader() -> None:
        for _ in range(200):
            store.list_process_applications(store.get_application(application_id).process_id)

    with ThreadPoolExecutor(max_workers=8) as executor:
        futures = [executor.submit(submit, index) for index in range(20)]
        futures.extend(executor.submit(reader) for _ in range(2))
        for future in futures:
            future.result()

    application = store.get_application(application_id)
    round_ids = [progress.round_id for progress in application.rounds]
    assert sorted(round_ids) == ["R1", "R2"]
    assert application.current_round_index == 1
