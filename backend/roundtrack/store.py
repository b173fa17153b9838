from __future__ import annotations

import logging
from datetime import datetime
from threading import RLock
from typing import TYPE_CHECKING, Callable, Optional, TypeVar
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError

from backend.roundtrack.errors import (
    BlockWriteInconsistencyError,
    InvalidCredentialsError,
    RequestValidationFailure,
    StoreConflictError,
    StoreNotFoundError,
)
from backend.roundtrack.models import (
    AdminRecord,
    AnswerInput,
    ApplicationRecord,
    ApplicationStatus,
    ArchivedApplicationRecord,
    CandidateRecord,
    CandidateRegisterRequest,
    CommunitySettings,
    CommunityUpdateRequest,
    FieldRecord,
    ProcessCreateRequest,
    ProcessRecord,
    ProcessStatus,
    RoundProgressRecord,
    RoundRecord,
    utc_now,
)
from backend.roundtrack.services import progression
from backend.roundtrack.services.blocking import (
    DEFAULT_BLOCK_REASON,
    block_expiry,
    blocked_application,
    blocked_candidate,
    check_application_gate,
    check_login_gate,
    is_block_active,
    unblocked_application,
    unblocked_candidate,
)
from backend.roundtrack.services.dedupe import find_account_by_email, normalize_email
from backend.roundtrack.services.passwords import hash_password, verify_password
from backend.roundtrack.services.workflow import ADMIN_OVERRIDE_STATUSES

if TYPE_CHECKING:
    from backend.roundtrack.persistence import SqlitePersistence

logger = logging.getLogger("roundtrack.store")

T = TypeVar("T")


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid4().hex[:10]}"


class InMemoryStore:
    def __init__(self, persistence: Optional["SqlitePersistence"] = None) -> None:
        self._lock = RLock()
        self.persistence = persistence
        self.processes: dict[str, ProcessRecord] = {}
        self.applications: dict[str, ApplicationRecord] = {}
        self.candidates: dict[str, CandidateRecord] = {}
        self.admins: dict[str, AdminRecord] = {}
        self.archived_applications: dict[str, ArchivedApplicationRecord] = {}
        self.community = CommunitySettings()

        if self.persistence:
            snapshot = self.persistence.load_snapshot()
            if snapshot:
                self._hydrate_from_snapshot(snapshot)
            for archived in self.persistence.list_archived_applications(limit=500):
                self.archived_applications[archived.id] = archived

    # Accounts

    def create_admin(
        self, *, name: str, email: str, password: str, phone: Optional[str] = None
    ) -> AdminRecord:
        with self._lock:
            if find_account_by_email(self.admins.values(), email):
                raise StoreConflictError(f"admin already exists: {normalize_email(email)}")
            admin = AdminRecord(
                id=new_id("adm"),
                name=name.strip(),
                email=normalize_email(email),
                phone=phone,
                password_hash=hash_password(password),
                created_at_utc=utc_now(),
            )
            self.admins[admin.id] = admin
            self._persist_state()
            return admin

    def get_admin(self, admin_id: str) -> AdminRecord:
        admin = self.admins.get(admin_id)
        if not admin:
            raise StoreNotFoundError(f"admin not found: {admin_id}")
        return admin

    def authenticate_admin(self, email: str, password: str) -> AdminRecord:
        admin = find_account_by_email(self.admins.values(), email)
        if not admin or not verify_password(password, admin.password_hash):
            raise InvalidCredentialsError("invalid email or password")
        return admin

    def register_candidate(self, request: CandidateRegisterRequest) -> CandidateRecord:
        with self._lock:
            if find_account_by_email(self.candidates.values(), request.email):
                raise StoreConflictError("an account with this email already exists")
            now = utc_now()
            candidate = CandidateRecord(
                id=new_id("cand"),
                name=request.name.strip(),
                email=normalize_email(request.email),
                password_hash=hash_password(request.password),
                created_at_utc=now,
                updated_at_utc=now,
            )
            self.candidates[candidate.id] = candidate
            self._persist_state()
            return candidate

    def get_candidate(self, candidate_id: str) -> CandidateRecord:
        candidate = self.candidates.get(candidate_id)
        if not candidate:
            raise StoreNotFoundError(f"candidate not found: {candidate_id}")
        return candidate

    def authenticate_candidate(
        self, email: str, password: str, *, auto_heal: bool
    ) -> tuple[CandidateRecord, bool]:
        with self._lock:
            candidate = find_account_by_email(self.candidates.values(), email)
            if not candidate or not verify_password(password, candidate.password_hash):
                raise InvalidCredentialsError("invalid email or password")
            now = utc_now()
            has_expired_block = check_login_gate(candidate, now)
            if has_expired_block and auto_heal:
                return self._heal_expired_block(candidate, now), True
            return candidate, False

    # Processes

    def create_process(self, admin_id: str, request: ProcessCreateRequest) -> ProcessRecord:
        rounds: list[RoundRecord] = []
        seen_round_ids: set[str] = set()
        for position, definition in enumerate(request.rounds):
            round_id = definition.id or new_id("rnd")
            if round_id in seen_round_ids:
                raise RequestValidationFailure(f"duplicate round id: {round_id}")
            seen_round_ids.add(round_id)
            seen_field_ids: set[str] = set()
            fields: list[FieldRecord] = []
            for field in definition.fields:
                field_id = field.id or new_id("fld")
                if field_id in seen_field_ids:
                    raise RequestValidationFailure(f"duplicate field id in round {round_id}")
                seen_field_ids.add(field_id)
                fields.append(
                    FieldRecord(
                        id=field_id,
                        question=field.question.strip(),
                        sub_type=field.sub_type,
                        options=field.options,
                        description=field.description,
                    )
                )
            rounds.append(
                RoundRecord(
                    id=round_id,
                    order=definition.order if definition.order is not None else position + 1,
                    title=definition.title.strip(),
                    type=definition.type,
                    fields=fields,
                    instruction=definition.instruction,
                    intro_video=definition.intro_video,
                )
            )
        with self._lock:
            now = utc_now()
            process = ProcessRecord(
                id=new_id("proc"),
                admin_id=admin_id,
                title=request.title.strip(),
                description=request.description,
                status=request.status,
                rounds=rounds,
                intro_video=request.intro_video,
                created_at_utc=now,
                updated_at_utc=now,
            )
            self.processes[process.id] = process
            self._persist_state()
            return process

    def clone_process(
        self, process_id: str, *, admin_id: str, title: Optional[str] = None
    ) -> ProcessRecord:
        with self._lock:
            original = self.get_process(process_id)
            now = utc_now()
            clone = original.model_copy(
                update={
                    "id": new_id("proc"),
                    "admin_id": admin_id,
                    "title": (title or "").strip() or f"{original.title} (Copy)",
                    "status": ProcessStatus.draft,
                    "cloned_from": original.id,
                    "created_at_utc": now,
                    "updated_at_utc": now,
                },
                deep=True,
            )
            self.processes[clone.id] = clone
            self._persist_state()
            return clone

    def get_process(self, process_id: str) -> ProcessRecord:
        process = self.processes.get(process_id)
        if not process:
            raise StoreNotFoundError(f"process not found: {process_id}")
        return process.model_copy(deep=True)

    # Applications

    def start_application(self, process_id: str, candidate_id: str) -> ApplicationRecord:
        with self._lock:
            process = self.get_process(process_id)
            candidate = self.get_candidate(candidate_id)
            for application in self.applications.values():
                if application.process_id == process_id and application.candidate_id == candidate_id:
                    return application
            if process.status != ProcessStatus.published:
                raise StoreConflictError(f"process is not open for applications: {process_id}")
            now = utc_now()
            check_login_gate(candidate, now)
            ordered = progression.sorted_rounds(process)
            application = ApplicationRecord(
                id=new_id("app"),
                process_id=process_id,
                candidate_id=candidate_id,
                status=ApplicationStatus.applied,
                current_round_index=0 if ordered else None,
                current_round_title=ordered[0].title if ordered else None,
                created_at_utc=now,
                updated_at_utc=now,
            )
            self.applications[application.id] = application
            self._persist_state()
            logger.info(
                "application_created application_id=%s process_id=%s candidate_id=%s",
                application.id,
                process_id,
                candidate_id,
            )
            return application

    def get_application(self, application_id: str) -> ApplicationRecord:
        application = self.applications.get(application_id)
        if not application:
            raise StoreNotFoundError(f"application not found: {application_id}")
        return application

    def get_candidate_application(
        self, application_id: str, candidate_id: str
    ) -> ApplicationRecord:
        application = self.applications.get(application_id)
        if not application or application.candidate_id != candidate_id:
            raise StoreNotFoundError(f"application not found: {application_id}")
        return application

    def list_process_applications(self, process_id: str) -> list[ApplicationRecord]:
        with self._lock:
            items = [
                application
                for application in self.applications.values()
                if application.process_id == process_id
            ]
        return sorted(items, key=lambda item: item.created_at_utc, reverse=True)

    def list_candidate_applications(self, candidate_id: str) -> list[ApplicationRecord]:
        with self._lock:
            return [
                application
                for application in self.applications.values()
                if application.candidate_id == candidate_id
            ]

    def submit_round(
        self,
        *,
        application_id: str,
        candidate_id: str,
        round_id: str,
        answers: list[AnswerInput],
    ) -> tuple[ApplicationRecord, Optional[int]]:
        application, next_index = self._update_candidate_application(
            application_id,
            candidate_id,
            lambda working, process: progression.submit_round(working, process, round_id, answers),
        )
        logger.info(
            "round_submitted application_id=%s round_id=%s next_round_index=%s status=%s",
            application_id,
            round_id,
            next_index,
            application.status.value,
        )
        return application, next_index

    def autosave_round(
        self,
        *,
        application_id: str,
        candidate_id: str,
        round_id: str,
        answers: list[AnswerInput],
    ) -> tuple[ApplicationRecord, int]:
        return self._update_candidate_application(
            application_id,
            candidate_id,
            lambda working, process: progression.autosave_round(
                working, process, round_id, answers
            ),
        )

    def set_round_timeline(
        self,
        *,
        application_id: str,
        candidate_id: str,
        round_id: str,
        hours: int,
    ) -> RoundProgressRecord:
        now = utc_now()
        _, progress = self._update_candidate_application(
            application_id,
            candidate_id,
            lambda working, process: progression.set_round_timeline(
                working, process, round_id, hours, now
            ),
        )
        return progress.model_copy()

    def update_application_status(
        self, application_id: str, status: ApplicationStatus
    ) -> ApplicationRecord:
        with self._lock:
            application = self.get_application(application_id)
            if status not in ADMIN_OVERRIDE_STATUSES:
                raise StoreConflictError(
                    f"status {status.value} must be set through the block action"
                )
            if application.status == ApplicationStatus.blocked:
                raise StoreConflictError("application is blocked; unblock the candidate first")
            updated = application.model_copy(update={"status": status, "updated_at_utc": utc_now()})
            self._save_application(updated)
            logger.info(
                "application_status_override application_id=%s from=%s to=%s",
                application_id,
                application.status.value,
                status.value,
            )
            return updated

    def archive_application(
        self, application_id: str, *, admin_id: str, reason: str = "admin_removal"
    ) -> ArchivedApplicationRecord:
        with self._lock:
            application = self.get_application(application_id)
            archived = ArchivedApplicationRecord(
                **application.model_dump(),
                archived_at_utc=utc_now(),
                archived_by=admin_id,
                archived_reason=reason,
            )
            if self.persistence:
                self.persistence.insert_archived_application(archived)
            self.archived_applications[archived.id] = archived
            del self.applications[application_id]
            self._persist_state()
            logger.info("application_archived application_id=%s admin_id=%s", application_id, admin_id)
            return archived

    # Blocking

    def block_candidate(
        self,
        application_id: str,
        *,
        duration_hours: float,
        reason: Optional[str],
        admin_id: str,
    ) -> datetime:
        with self._lock:
            application = self.get_application(application_id)
            candidate = self.get_candidate(application.candidate_id)
            process = self.get_process(application.process_id)
            now = utc_now()
            blocked_until = block_expiry(now, duration_hours)
            block_reason = (reason or "").strip() or DEFAULT_BLOCK_REASON

            # Candidate first: a failure in between leaves the login gate closed.
            self._save_candidate(
                blocked_candidate(
                    candidate,
                    blocked_until=blocked_until,
                    reason=block_reason,
                    admin_id=admin_id,
                    now=now,
                )
            )
            try:
                self._save_application(
                    blocked_application(
                        application,
                        process,
                        blocked_until=blocked_until,
                        reason=block_reason,
                        admin_id=admin_id,
                        now=now,
                    )
                )
            except SQLAlchemyError as exc:
                logger.error(
                    "block_write_incomplete application_id=%s candidate_id=%s step=application",
                    application_id,
                    candidate.id,
                )
                raise BlockWriteInconsistencyError(
                    "candidate was blocked but the application update failed; retry the block",
                    application_id=application_id,
                    candidate_id=candidate.id,
                ) from exc
            logger.info(
                "candidate_blocked application_id=%s candidate_id=%s admin_id=%s blocked_until=%s",
                application_id,
                candidate.id,
                admin_id,
                blocked_until.isoformat(),
            )
            return blocked_until

    def unblock_candidate(self, application_id: str) -> ApplicationRecord:
        with self._lock:
            application = self.get_application(application_id)
            candidate = self.get_candidate(application.candidate_id)
            now = utc_now()

            # Application first: the candidate stays locked out until the last write lands.
            updated = unblocked_application(application, now=now)
            self._save_application(updated)
            try:
                self._save_candidate(unblocked_candidate(candidate, now=now))
            except SQLAlchemyError as exc:
                logger.error(
                    "block_write_incomplete application_id=%s candidate_id=%s step=candidate",
                    application_id,
                    candidate.id,
                )
                raise BlockWriteInconsistencyError(
                    "application was unblocked but the candidate update failed; retry the unblock",
                    application_id=application_id,
                    candidate_id=candidate.id,
                ) from exc
            logger.info(
                "candidate_unblocked application_id=%s candidate_id=%s",
                application_id,
                candidate.id,
            )
            return updated

    # Community contacts

    def set_community(self, request: CommunityUpdateRequest) -> CommunitySettings:
        with self._lock:
            self.community = CommunitySettings(
                group_link=(request.group_link or "").strip() or None,
                admins=request.admins,
            )
            self._persist_state()
            return self.community

    def get_community(self) -> CommunitySettings:
        return self.community

    # Internals

    def _update_candidate_application(
        self,
        application_id: str,
        candidate_id: str,
        mutation: Callable[[ApplicationRecord, ProcessRecord], T],
    ) -> tuple[ApplicationRecord, T]:
        with self._lock:
            application = self.get_candidate_application(application_id, candidate_id)
            candidate = self.get_candidate(candidate_id)
            now = utc_now()
            check_login_gate(candidate, now)
            process = self.get_process(application.process_id)

            check_application_gate(application, now)

            working = application.model_copy(deep=True)
            if working.status == ApplicationStatus.blocked:
                # The gate let the candidate through, so this block has lapsed.
                working = unblocked_application(working, now=now)
            result = mutation(working, process)
            working.updated_at_utc = now
            stored = ApplicationRecord.model_validate(working.model_dump())
            self._save_application(stored)
            return stored, result

    def _heal_expired_block(self, candidate: CandidateRecord, now: datetime) -> CandidateRecord:
        for application in list(self.applications.values()):
            if application.candidate_id != candidate.id:
                continue
            if application.status != ApplicationStatus.blocked:
                continue
            if is_block_active(is_blocked=True, blocked_until=application.blocked_until, now=now):
                continue
            self._save_application(unblocked_application(application, now=now))
        healed = unblocked_candidate(candidate, now=now)
        self._save_candidate(healed)
        logger.info("block_auto_healed candidate_id=%s", candidate.id)
        return healed

    def _save_application(self, record: ApplicationRecord) -> None:
        self.applications[record.id] = record
        self._persist_state()

    def _save_candidate(self, record: CandidateRecord) -> None:
        self.candidates[record.id] = record
        self._persist_state()

    def _persist_state(self) -> None:
        if not self.persistence:
            return
        with self._lock:
            self.persistence.save_snapshot(self._snapshot_data())

    def _snapshot_data(self) -> dict:
        return {
            "processes": [record.model_dump(mode="json") for record in self.processes.values()],
            "applications": [
                record.model_dump(mode="json") for record in self.applications.values()
            ],
            "candidates": [record.model_dump(mode="json") for record in self.candidates.values()],
            "admins": [record.model_dump(mode="json") for record in self.admins.values()],
            "community": self.community.model_dump(mode="json"),
        }

    def _hydrate_from_snapshot(self, snapshot: dict) -> None:
        self.processes = {
            record["id"]: ProcessRecord.model_validate(record)
            for record in snapshot.get("processes", [])
        }
        self.applications = {
            record["id"]: ApplicationRecord.model_validate(record)
            for record in snapshot.get("applications", [])
        }
        self.candidates = {
            record["id"]: CandidateRecord.model_validate(record)
            for record in snapshot.get("candidates", [])
        }
        self.admins = {
            record["id"]: AdminRecord.model_validate(record)
            for record in snapshot.get("admins", [])
        }
        self.community = CommunitySettings.model_validate(snapshot.get("community") or {})
