"""Round progression for a single application.

These functions mutate the application record they are given and never touch
storage. The store runs each of them on a private copy of the document while
holding its lock, then swaps the copy in, so every call is one atomic update
of the application.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from backend.roundtrack.errors import (
    RequestValidationFailure,
    StoreConflictError,
    StoreNotFoundError,
)
from backend.roundtrack.models import (
    AnswerInput,
    AnswerRecord,
    ApplicationRecord,
    ApplicationStatus,
    ProcessRecord,
    RoundProgressRecord,
    RoundProgressStatus,
    RoundProgressSummary,
    RoundRecord,
    TimeRemaining,
)
from backend.roundtrack.services.workflow import WORKABLE_STATUSES, promote_on_activity

logger = logging.getLogger("roundtrack.progression")


def sorted_rounds(process: ProcessRecord) -> list[RoundRecord]:
    return sorted(process.rounds, key=lambda round_record: round_record.order)


def find_round(process: ProcessRecord, round_id: str) -> tuple[int, RoundRecord]:
    for index, round_record in enumerate(sorted_rounds(process)):
        if round_record.id == round_id:
            return index, round_record
    logger.warning("round_not_in_process process_id=%s round_id=%s", process.id, round_id)
    raise StoreNotFoundError(f"round not found in process {process.id}: {round_id}")


def progress_by_round(application: ApplicationRecord) -> dict[str, RoundProgressRecord]:
    return {progress.round_id: progress for progress in application.rounds}


def _ensure_workable(application: ApplicationRecord) -> None:
    if application.status not in WORKABLE_STATUSES:
        raise StoreConflictError(
            f"application {application.id} is {application.status.value}; rounds are locked"
        )


def _normalize_answers(round_record: RoundRecord, answers: list[AnswerInput]) -> list[AnswerRecord]:
    known_fields = {field.id for field in round_record.fields}
    by_field: dict[str, AnswerRecord] = {}
    for item in answers:
        if item.field_id not in known_fields:
            raise RequestValidationFailure(
                f"field {item.field_id} does not belong to round {round_record.id}"
            )
        # Later entries for the same field win.
        by_field.pop(item.field_id, None)
        by_field[item.field_id] = AnswerRecord(field_id=item.field_id, answer=item.answer)
    return list(by_field.values())


def check_answers(process: ProcessRecord, round_id: str, answers: list[AnswerInput]) -> None:
    _, round_record = find_round(process, round_id)
    _normalize_answers(round_record, answers)


def submit_round(
    application: ApplicationRecord,
    process: ProcessRecord,
    round_id: str,
    answers: list[AnswerInput],
) -> Optional[int]:
    """Mark a round submitted and move the application to its next round.

    Returns the index (in process order) of the next unsubmitted round, or
    ``None`` when every round of the process has been submitted.
    """
    _ensure_workable(application)
    _, round_record = find_round(process, round_id)
    normalized = _normalize_answers(round_record, answers)

    progress_map = progress_by_round(application)
    existing = progress_map.get(round_id)
    if existing:
        existing.answers = normalized
        existing.status = RoundProgressStatus.submitted
    else:
        application.rounds.append(
            RoundProgressRecord(
                round_id=round_id,
                status=RoundProgressStatus.submitted,
                answers=normalized,
            )
        )
        progress_map = progress_by_round(application)

    ordered = sorted_rounds(process)
    submitted_ids = {
        progress.round_id
        for progress in application.rounds
        if progress.status == RoundProgressStatus.submitted
    }
    submitted_count = sum(1 for round_record in ordered if round_record.id in submitted_ids)
    if submitted_count == len(ordered):
        application.status = ApplicationStatus.completed
        application.current_round_index = None
        application.current_round_title = None
        return None

    next_index, next_round = next(
        (index, round_record)
        for index, round_record in enumerate(ordered)
        if round_record.id not in submitted_ids
    )
    next_progress = progress_map.get(next_round.id)
    if next_progress is None:
        application.rounds.append(
            RoundProgressRecord(round_id=next_round.id, status=RoundProgressStatus.in_progress)
        )
    application.current_round_index = next_index
    application.current_round_title = next_round.title
    application.status = promote_on_activity(application.status)
    return next_index


def autosave_round(
    application: ApplicationRecord,
    process: ProcessRecord,
    round_id: str,
    answers: list[AnswerInput],
) -> int:
    """Merge partial answers into a round without submitting it.

    Answers are merged per field: incoming fields replace stored ones, stored
    fields missing from the batch are kept. Returns the number of stored
    answers for the round after the merge.
    """
    _ensure_workable(application)
    _, round_record = find_round(process, round_id)
    incoming = _normalize_answers(round_record, answers)

    progress = progress_by_round(application).get(round_id)
    if progress is None:
        progress = RoundProgressRecord(round_id=round_id, status=RoundProgressStatus.in_progress)
        application.rounds.append(progress)

    incoming_ids = {answer.field_id for answer in incoming}
    progress.answers = [
        answer for answer in progress.answers if answer.field_id not in incoming_ids
    ] + incoming
    application.status = promote_on_activity(application.status)
    return len(progress.answers)


def set_round_timeline(
    application: ApplicationRecord,
    process: ProcessRecord,
    round_id: str,
    hours: int,
    now: datetime,
) -> RoundProgressRecord:
    _ensure_workable(application)
    find_round(process, round_id)
    progress = progress_by_round(application).get(round_id)
    if progress is None:
        progress = RoundProgressRecord(round_id=round_id, status=RoundProgressStatus.in_progress)
        application.rounds.append(progress)
    if progress.status == RoundProgressStatus.submitted:
        raise StoreConflictError(f"round {round_id} is already submitted")
    deadline = now + timedelta(hours=hours)
    progress.timeline_date = deadline
    progress.timeline = deadline.strftime("%d %b %Y, %I:%M %p UTC")
    application.status = promote_on_activity(application.status)
    return progress


def current_round_progress(
    application: ApplicationRecord, process: ProcessRecord
) -> Optional[RoundProgressRecord]:
    index = application.current_round_index
    ordered = sorted_rounds(process)
    if index is None or index < 0 or index >= len(ordered):
        return None
    return progress_by_round(application).get(ordered[index].id)


def clear_current_round_timeline(
    application: ApplicationRecord, process: ProcessRecord
) -> Optional[str]:
    progress = current_round_progress(application, process)
    if progress is None:
        return None
    progress.timeline = None
    progress.timeline_date = None
    return progress.round_id


def compute_progress(application: ApplicationRecord, process: ProcessRecord) -> RoundProgressSummary:
    total = len(process.rounds)
    submitted_ids = {
        progress.round_id
        for progress in application.rounds
        if progress.status == RoundProgressStatus.submitted
    }
    current = sum(1 for round_record in process.rounds if round_record.id in submitted_ids)
    percentage = round((current / total) * 100) if total else 0
    return RoundProgressSummary(current=current, total=total, percentage=percentage)


def time_remaining(deadline: datetime, now: datetime) -> TimeRemaining:
    seconds = int((deadline - now).total_seconds())
    if seconds <= 0:
        return TimeRemaining(days=0, hours=0, minutes=0, expired=True)
    return TimeRemaining(
        days=seconds // 86400,
        hours=(seconds % 86400) // 3600,
        minutes=(seconds % 3600) // 60,
    )
