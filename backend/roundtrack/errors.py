from __future__ import annotations

from datetime import datetime
from typing import Optional

from backend.roundtrack.models import TimeRemaining


class StoreConflictError(Exception):
    pass


class StoreNotFoundError(Exception):
    pass


class InvalidCredentialsError(Exception):
    pass


class RequestValidationFailure(Exception):
    """Malformed input caught at the boundary, reported as 400."""


class AccountBlockedError(Exception):
    def __init__(
        self,
        message: str,
        *,
        reason: Optional[str],
        blocked_until: Optional[datetime],
        time_remaining: Optional[TimeRemaining],
    ) -> None:
        super().__init__(message)
        self.message = message
        self.reason = reason
        self.blocked_until = blocked_until
        self.time_remaining = time_remaining


class UploadFailedError(Exception):
    def __init__(self, message: str, *, filename: str, field_id: str) -> None:
        super().__init__(message)
        self.filename = filename
        self.field_id = field_id


class BlockWriteInconsistencyError(Exception):
    """Only one of the candidate and application records took a block change.

    The two records disagree about the block until the caller retries the
    same action.
    """

    def __init__(self, message: str, *, application_id: str, candidate_id: str) -> None:
        super().__init__(message)
        self.application_id = application_id
        self.candidate_id = candidate_id
