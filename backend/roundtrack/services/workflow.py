from __future__ import annotations

from backend.roundtrack.models import ApplicationStatus

# Statuses in which the candidate may still work on rounds.
WORKABLE_STATUSES = {
    ApplicationStatus.applied,
    ApplicationStatus.in_progress,
    ApplicationStatus.completed,
}

# Statuses an admin may set directly. "blocked" goes through the block action
# so the candidate record is updated alongside the application.
ADMIN_OVERRIDE_STATUSES = {
    ApplicationStatus.applied,
    ApplicationStatus.in_progress,
    ApplicationStatus.completed,
    ApplicationStatus.expired,
    ApplicationStatus.rejected,
}


def promote_on_activity(status: ApplicationStatus) -> ApplicationStatus:
    if status == ApplicationStatus.applied:
        return ApplicationStatus.in_progress
    return status
