from __future__ import annotations

import math
from datetime import datetime, timedelta
from typing import Optional

from backend.roundtrack.errors import AccountBlockedError, RequestValidationFailure
from backend.roundtrack.models import (
    ApplicationRecord,
    ApplicationStatus,
    CandidateRecord,
    ProcessRecord,
)
from backend.roundtrack.services.progression import clear_current_round_timeline, time_remaining

DEFAULT_BLOCK_REASON = "Missed self-defined timeline deadline"


def validate_block_duration(duration_hours: float, *, max_hours: int) -> float:
    if not math.isfinite(duration_hours) or duration_hours <= 0 or duration_hours > max_hours:
        raise RequestValidationFailure(
            f"block duration must be greater than 0 and at most {max_hours} hours"
        )
    return duration_hours


def block_expiry(now: datetime, duration_hours: float) -> datetime:
    return now + timedelta(hours=duration_hours)


def is_block_active(
    *, is_blocked: bool, blocked_until: Optional[datetime], now: datetime
) -> bool:
    if not is_blocked:
        return False
    # No expiry recorded means the block holds until an admin lifts it.
    return blocked_until is None or blocked_until > now


def _blocked_error(
    *, reason: Optional[str], blocked_until: Optional[datetime], now: datetime
) -> AccountBlockedError:
    if blocked_until:
        message = (
            "Your account has been temporarily blocked until "
            f"{blocked_until.strftime('%d %b %Y, %I:%M %p')} UTC"
        )
        remaining = time_remaining(blocked_until, now)
    else:
        message = "Your account has been blocked. Please contact an administrator."
        remaining = None
    return AccountBlockedError(
        message,
        reason=reason,
        blocked_until=blocked_until,
        time_remaining=remaining,
    )


def check_login_gate(candidate: CandidateRecord, now: datetime) -> bool:
    """Raise ``AccountBlockedError`` while the candidate's block is active.

    Returns True when the candidate still carries an expired block that the
    caller may clear.
    """
    if is_block_active(
        is_blocked=candidate.is_blocked, blocked_until=candidate.blocked_until, now=now
    ):
        raise _blocked_error(
            reason=candidate.blocked_reason, blocked_until=candidate.blocked_until, now=now
        )
    return candidate.is_blocked


def check_application_gate(application: ApplicationRecord, now: datetime) -> None:
    if application.status != ApplicationStatus.blocked:
        return
    if is_block_active(is_blocked=True, blocked_until=application.blocked_until, now=now):
        raise _blocked_error(
            reason=application.block_reason, blocked_until=application.blocked_until, now=now
        )


def blocked_candidate(
    candidate: CandidateRecord,
    *,
    blocked_until: datetime,
    reason: str,
    admin_id: str,
    now: datetime,
) -> CandidateRecord:
    return candidate.model_copy(
        update={
            "is_blocked": True,
            "blocked_until": blocked_until,
            "blocked_reason": reason,
            "blocked_by": admin_id,
            "blocked_at": now,
            "updated_at_utc": now,
        }
    )


def blocked_application(
    application: ApplicationRecord,
    process: ProcessRecord,
    *,
    blocked_until: datetime,
    reason: str,
    admin_id: str,
    now: datetime,
) -> ApplicationRecord:
    updated = application.model_copy(deep=True)
    clear_current_round_timeline(updated, process)
    updated.status = ApplicationStatus.blocked
    updated.blocked_until = blocked_until
    updated.block_reason = reason
    updated.blocked_by = admin_id
    updated.blocked_at = now
    updated.updated_at_utc = now
    return updated


def unblocked_candidate(candidate: CandidateRecord, *, now: datetime) -> CandidateRecord:
    return candidate.model_copy(
        update={
            "is_blocked": False,
            "blocked_until": None,
            "blocked_reason": None,
            "blocked_by": None,
            "blocked_at": None,
            "updated_at_utc": now,
        }
    )


def unblocked_application(application: ApplicationRecord, *, now: datetime) -> ApplicationRecord:
    # Unblocking never restores the status held before the block.
    return application.model_copy(
        update={
            "status": ApplicationStatus.in_progress,
            "blocked_until": None,
            "block_reason": None,
            "blocked_by": None,
            "blocked_at": None,
            "updated_at_utc": now,
        },
        deep=True,
    )
