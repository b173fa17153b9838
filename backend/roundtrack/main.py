from __future__ import annotations

import json
from typing import Any, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import TypeAdapter
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from backend.roundtrack.auth import (
    ROLE_ADMIN,
    ROLE_CANDIDATE,
    AuthContext,
    issue_token,
    require_roles,
)
from backend.roundtrack.errors import (
    AccountBlockedError,
    BlockWriteInconsistencyError,
    InvalidCredentialsError,
    RequestValidationFailure,
    StoreConflictError,
    StoreNotFoundError,
    UploadFailedError,
)
from backend.roundtrack.models import (
    AccountBlockedResponse,
    AdminActionResponse,
    AdminApplicationAction,
    AnswerInput,
    ApplicationDetailResponse,
    ApplicationListItem,
    ApplicationRecord,
    ApplicationStartResponse,
    ApplicationStatus,
    AutosaveResponse,
    BlockCandidateAction,
    CandidateApplicationResponse,
    CandidateRecord,
    CandidateRegisterRequest,
    CandidateRegisterResponse,
    CandidateSummary,
    CommunityLinkResponse,
    CommunitySettings,
    CommunityUpdateRequest,
    LoginRequest,
    LoginResponse,
    ProcessCloneRequest,
    ProcessCreateRequest,
    ProcessCreateResponse,
    ProcessRecord,
    ProcessStatus,
    RoundAnswersRequest,
    RoundSubmitResponse,
    TimelineSetRequest,
    TimelineSetResponse,
    UnblockCandidateAction,
    utc_now,
)
from backend.roundtrack.observability import MetricsRegistry, configure_logging, observe_request
from backend.roundtrack.persistence import SqlitePersistence
from backend.roundtrack.services.blocking import (
    check_application_gate,
    check_login_gate,
    validate_block_duration,
)
from backend.roundtrack.services.progression import (
    check_answers,
    compute_progress,
    current_round_progress,
    time_remaining,
)
from backend.roundtrack.services.uploads import (
    Attachment,
    BlobStorage,
    build_storage,
    resolve_attachments,
)
from backend.roundtrack.settings import Settings, load_settings
from backend.roundtrack.store import InMemoryStore

ADMIN_ACTION_ADAPTER = TypeAdapter(AdminApplicationAction)
ANSWER_LIST_ADAPTER = TypeAdapter(list[AnswerInput])
FILE_PART_PREFIX = "file_"


def create_app() -> FastAPI:
    app = FastAPI(title="Roundtrack Recruitment API", version="0.1.0")
    configure_logging()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    settings = load_settings()
    persistence = SqlitePersistence(settings.database_url) if settings.persistence_enabled else None
    app.state.store = InMemoryStore(persistence=persistence)
    app.state.settings = settings
    app.state.metrics = MetricsRegistry()
    app.state.storage = build_storage(settings)

    @app.middleware("http")
    async def observability_middleware(request: Request, call_next):
        return await observe_request(request, call_next, metrics=app.state.metrics)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": jsonable_encoder(exc.errors())},
        )

    app.include_router(build_router())
    return app


def get_store(request: Request) -> InMemoryStore:
    return request.app.state.store


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_metrics(request: Request) -> MetricsRegistry:
    return request.app.state.metrics


def get_storage(request: Request) -> BlobStorage:
    return request.app.state.storage


def require_admin_account(
    request: Request,
    context: AuthContext = Depends(require_roles(ROLE_ADMIN)),
) -> AuthContext:
    try:
        get_store(request).get_admin(context.user_id)
    except StoreNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="admin account not found",
        ) from exc
    return context


def account_blocked_response(
    exc: AccountBlockedError, community: CommunitySettings
) -> JSONResponse:
    body = AccountBlockedResponse(
        message=exc.message,
        reason=exc.reason,
        blocked_until=exc.blocked_until,
        time_remaining=exc.time_remaining,
        admin_contacts=community.admins,
    )
    return JSONResponse(
        status_code=status.HTTP_403_FORBIDDEN,
        content=body.model_dump(mode="json", by_alias=True),
    )


def upload_failed_response(exc: UploadFailedError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={
            "error": "upload_failed",
            "message": f"Failed to upload {exc.filename}. Please try again.",
            "file": exc.filename,
            "fieldId": exc.field_id,
        },
    )


def block_inconsistent_response(exc: BlockWriteInconsistencyError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "block_state_inconsistent",
            "message": str(exc),
            "retryRequired": True,
            "applicationId": exc.application_id,
            "candidateId": exc.candidate_id,
        },
    )


def candidate_summary(candidate: CandidateRecord) -> CandidateSummary:
    return CandidateSummary(
        candidate_id=candidate.id,
        name=candidate.name,
        email=candidate.email,
        is_blocked=candidate.is_blocked,
    )


def application_list_item(
    application: ApplicationRecord,
    process: ProcessRecord,
    candidate: CandidateRecord,
) -> ApplicationListItem:
    now = utc_now()
    current = current_round_progress(application, process)
    timeline_date = current.timeline_date if current else None
    return ApplicationListItem(
        application_id=application.id,
        candidate=candidate_summary(candidate),
        status=application.status,
        current_round_index=application.current_round_index,
        current_round_title=application.current_round_title,
        round_progress=compute_progress(application, process),
        timeline_date=timeline_date,
        time_remaining=time_remaining(timeline_date, now) if timeline_date else None,
        blocked_until=application.blocked_until,
        created_at_utc=application.created_at_utc,
    )


def parse_json_body(raw_body: bytes) -> Any:
    if not raw_body.strip():
        return {}
    try:
        return json.loads(raw_body.decode("utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise RequestValidationFailure("invalid json payload") from exc


def parse_answer_list(raw: Any) -> list[AnswerInput]:
    if raw is None or raw == "":
        return []
    if not isinstance(raw, str):
        raise RequestValidationFailure("answers must be a json encoded list")
    try:
        return ANSWER_LIST_ADAPTER.validate_python(json.loads(raw))
    except (json.JSONDecodeError, ValueError) as exc:
        raise RequestValidationFailure("answers must be a json encoded list") from exc


async def read_round_answers(request: Request) -> tuple[list[AnswerInput], list[Attachment]]:
    """Read round answers from a json body or a multipart form.

    Multipart requests carry the answers as a json string in the ``answers``
    part and one ``file_<fieldId>`` part per uploaded file.
    """
    content_type = request.headers.get("content-type", "")
    if not content_type.startswith("multipart/form-data"):
        payload = parse_json_body(await request.body())
        try:
            return RoundAnswersRequest.model_validate(payload).answers, []
        except ValueError as exc:
            raise RequestValidationFailure("invalid answers payload") from exc

    form = await request.form()
    answers = parse_answer_list(form.get("answers"))
    answered = {answer.field_id for answer in answers}
    attachments: list[Attachment] = []
    for key, value in form.multi_items():
        if not key.startswith(FILE_PART_PREFIX) or not isinstance(value, UploadFile):
            continue
        field_id = key[len(FILE_PART_PREFIX):]
        if not field_id:
            continue
        attachments.append(
            Attachment(
                field_id=field_id,
                filename=value.filename or "upload",
                content_type=value.content_type or "application/octet-stream",
                data=await value.read(),
            )
        )
        if field_id not in answered:
            answers.append(AnswerInput(field_id=field_id, answer=None))
            answered.add(field_id)
    return answers, attachments


def commit_round_submission(
    store: InMemoryStore,
    storage: BlobStorage,
    *,
    application_id: str,
    candidate_id: str,
    round_id: str,
    answers: list[AnswerInput],
    attachments: list[Attachment],
    max_upload_bytes: int,
) -> tuple[ApplicationRecord, Optional[int]]:
    """Check the gates and answers, upload files, then commit the round.

    Uploads and storage writes block, so async routes run this in a worker
    thread.
    """
    application = store.get_candidate_application(application_id, candidate_id)
    now = utc_now()
    check_login_gate(store.get_candidate(candidate_id), now)
    check_application_gate(application, now)
    check_answers(store.get_process(application.process_id), round_id, answers)
    if attachments:
        answers = resolve_attachments(answers, attachments, storage, max_bytes=max_upload_bytes)
    return store.submit_round(
        application_id=application_id,
        candidate_id=candidate_id,
        round_id=round_id,
        answers=answers,
    )


def run_admin_action(
    store: InMemoryStore,
    settings: Settings,
    metrics_registry: MetricsRegistry,
    application_id: str,
    action: AdminApplicationAction,
    admin_id: str,
) -> AdminActionResponse:
    if isinstance(action, BlockCandidateAction):
        duration = (
            action.duration_hours
            if action.duration_hours is not None
            else settings.default_block_hours
        )
        validate_block_duration(duration, max_hours=settings.max_block_hours)
        blocked_until = store.block_candidate(
            application_id,
            duration_hours=duration,
            reason=action.reason,
            admin_id=admin_id,
        )
        metrics_registry.increment("candidate_blocked")
        return AdminActionResponse(
            message=f"Candidate blocked until {blocked_until.isoformat()}",
            blocked_until=blocked_until,
            status=ApplicationStatus.blocked,
        )
    if isinstance(action, UnblockCandidateAction):
        updated = store.unblock_candidate(application_id)
        metrics_registry.increment("candidate_unblocked")
        return AdminActionResponse(message="Candidate unblocked", status=updated.status)
    updated = store.update_application_status(application_id, action.status)
    return AdminActionResponse(
        message=f"Application status updated to {updated.status.value}",
        status=updated.status,
    )


def build_router() -> APIRouter:
    router = APIRouter()

    @router.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @router.get("/health/ready")
    def readiness(request: Request) -> dict[str, str]:
        settings = get_settings(request)
        persistence = getattr(request.app.state.store, "persistence", None)
        if settings.persistence_enabled and persistence and not persistence.ping():
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="database unavailable",
            )
        return {"status": "ready"}

    @router.get("/metrics", response_class=PlainTextResponse)
    def metrics(request: Request) -> Response:
        registry = get_metrics(request)
        return PlainTextResponse(registry.to_prometheus())

    # Identity

    @router.post(
        "/auth/candidate/register",
        response_model=CandidateRegisterResponse,
        status_code=status.HTTP_201_CREATED,
    )
    def register_candidate(
        payload: CandidateRegisterRequest,
        request: Request,
    ) -> CandidateRegisterResponse:
        store = get_store(request)
        try:
            candidate = store.register_candidate(payload)
        except StoreConflictError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
        return CandidateRegisterResponse(candidate_id=candidate.id)

    @router.post("/auth/candidate/login", response_model=LoginResponse)
    def candidate_login(payload: LoginRequest, request: Request):
        store = get_store(request)
        settings = get_settings(request)
        try:
            candidate, healed = store.authenticate_candidate(
                payload.email, payload.password, auto_heal=settings.block_auto_heal
            )
        except InvalidCredentialsError as exc:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
        except AccountBlockedError as exc:
            get_metrics(request).increment("login_blocked")
            return account_blocked_response(exc, store.get_community())
        if healed:
            get_metrics(request).increment("block_auto_healed")
        return LoginResponse(
            token=issue_token(settings, subject=candidate.id, roles=[ROLE_CANDIDATE]),
            subject_id=candidate.id,
            role=ROLE_CANDIDATE,
        )

    @router.post("/auth/admin/login", response_model=LoginResponse)
    def admin_login(payload: LoginRequest, request: Request) -> LoginResponse:
        store = get_store(request)
        try:
            admin = store.authenticate_admin(payload.email, payload.password)
        except InvalidCredentialsError as exc:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
        return LoginResponse(
            token=issue_token(get_settings(request), subject=admin.id, roles=[ROLE_ADMIN]),
            subject_id=admin.id,
            role=ROLE_ADMIN,
        )

    # Process authoring

    @router.post(
        "/admin/processes",
        response_model=ProcessCreateResponse,
        status_code=status.HTTP_201_CREATED,
    )
    def create_process(
        payload: ProcessCreateRequest,
        request: Request,
        context: AuthContext = Depends(require_admin_account),
    ) -> ProcessCreateResponse:
        store = get_store(request)
        try:
            process = store.create_process(context.user_id, payload)
        except RequestValidationFailure as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
        return ProcessCreateResponse(
            process_id=process.id, title=process.title, status=process.status
        )

    @router.post(
        "/admin/processes/{process_id}/clone",
        response_model=ProcessCreateResponse,
        status_code=status.HTTP_201_CREATED,
    )
    def clone_process(
        process_id: str,
        payload: ProcessCloneRequest,
        request: Request,
        context: AuthContext = Depends(require_admin_account),
    ) -> ProcessCreateResponse:
        store = get_store(request)
        try:
            clone = store.clone_process(process_id, admin_id=context.user_id, title=payload.title)
        except StoreNotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        return ProcessCreateResponse(process_id=clone.id, title=clone.title, status=clone.status)

    @router.get("/processes/{process_id}", response_model=ProcessRecord)
    def get_published_process(
        process_id: str,
        request: Request,
        _: AuthContext = Depends(require_roles(ROLE_CANDIDATE, ROLE_ADMIN)),
    ) -> ProcessRecord:
        store = get_store(request)
        try:
            process = store.get_process(process_id)
        except StoreNotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        if process.status != ProcessStatus.published:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"process not found: {process_id}",
            )
        return process

    # Candidate progression

    @router.post(
        "/processes/{process_id}/apply",
        response_model=ApplicationStartResponse,
        status_code=status.HTTP_201_CREATED,
    )
    def start_application(
        process_id: str,
        request: Request,
        context: AuthContext = Depends(require_roles(ROLE_CANDIDATE)),
    ):
        store = get_store(request)
        try:
            application = store.start_application(process_id, context.user_id)
        except StoreNotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        except StoreConflictError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
        except AccountBlockedError as exc:
            return account_blocked_response(exc, store.get_community())
        return ApplicationStartResponse(
            application_id=application.id,
            status=application.status,
            current_round_index=application.current_round_index,
            current_round_title=application.current_round_title,
        )

    @router.get("/applications/{application_id}", response_model=CandidateApplicationResponse)
    def get_own_application(
        application_id: str,
        request: Request,
        context: AuthContext = Depends(require_roles(ROLE_CANDIDATE)),
    ) -> CandidateApplicationResponse:
        store = get_store(request)
        try:
            application = store.get_candidate_application(application_id, context.user_id)
            process = store.get_process(application.process_id)
        except StoreNotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        return CandidateApplicationResponse(
            application=application,
            round_progress=compute_progress(application, process),
        )

    @router.post(
        "/applications/{application_id}/round/{round_id}",
        response_model=RoundSubmitResponse,
    )
    async def submit_round(
        application_id: str,
        round_id: str,
        request: Request,
        context: AuthContext = Depends(require_roles(ROLE_CANDIDATE)),
    ):
        store = get_store(request)
        settings = get_settings(request)
        metrics_registry = get_metrics(request)
        try:
            answers, attachments = await read_round_answers(request)
            updated, next_index = await run_in_threadpool(
                commit_round_submission,
                store,
                get_storage(request),
                application_id=application_id,
                candidate_id=context.user_id,
                round_id=round_id,
                answers=answers,
                attachments=attachments,
                max_upload_bytes=settings.max_upload_bytes,
            )
        except RequestValidationFailure as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
        except StoreNotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        except StoreConflictError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
        except AccountBlockedError as exc:
            return account_blocked_response(exc, store.get_community())
        except UploadFailedError as exc:
            metrics_registry.increment("upload_failed")
            return upload_failed_response(exc)
        metrics_registry.increment("round_submitted")
        if updated.status == ApplicationStatus.completed:
            metrics_registry.increment("application_completed")
        return RoundSubmitResponse(next_round_index=next_index)

    @router.patch(
        "/applications/{application_id}/round/{round_id}",
        response_model=AutosaveResponse,
    )
    async def autosave_round(
        application_id: str,
        round_id: str,
        request: Request,
        context: AuthContext = Depends(require_roles(ROLE_CANDIDATE)),
    ):
        store = get_store(request)
        try:
            payload = parse_json_body(await request.body())
            try:
                answers = RoundAnswersRequest.model_validate(payload).answers
            except ValueError as exc:
                raise RequestValidationFailure("invalid answers payload") from exc
            _, saved = await run_in_threadpool(
                store.autosave_round,
                application_id=application_id,
                candidate_id=context.user_id,
                round_id=round_id,
                answers=answers,
            )
        except RequestValidationFailure as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
        except StoreNotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        except StoreConflictError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
        except AccountBlockedError as exc:
            return account_blocked_response(exc, store.get_community())
        get_metrics(request).increment("round_autosaved")
        return AutosaveResponse(saved_fields=saved)

    @router.put(
        "/applications/{application_id}/round/{round_id}/timeline",
        response_model=TimelineSetResponse,
    )
    def set_round_timeline(
        application_id: str,
        round_id: str,
        payload: TimelineSetRequest,
        request: Request,
        context: AuthContext = Depends(require_roles(ROLE_CANDIDATE)),
    ):
        store = get_store(request)
        try:
            progress = store.set_round_timeline(
                application_id=application_id,
                candidate_id=context.user_id,
                round_id=round_id,
                hours=payload.hours,
            )
        except StoreNotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        except StoreConflictError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
        except AccountBlockedError as exc:
            return account_blocked_response(exc, store.get_community())
        return TimelineSetResponse(
            round_id=progress.round_id,
            timeline=progress.timeline or "",
            timeline_date=progress.timeline_date,
        )

    @router.get("/candidate/community", response_model=CommunityLinkResponse)
    def candidate_community(
        request: Request,
        context: AuthContext = Depends(require_roles(ROLE_CANDIDATE)),
    ) -> CommunityLinkResponse:
        store = get_store(request)
        if not any(
            application.status == ApplicationStatus.completed
            for application in store.list_candidate_applications(context.user_id)
        ):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="community access opens after completing an application",
            )
        community = store.get_community()
        if not community.group_link:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="community group link is not configured",
            )
        return CommunityLinkResponse(group_link=community.group_link)

    # Admin surfaces

    @router.get(
        "/admin/processes/{process_id}/applications",
        response_model=list[ApplicationListItem],
    )
    def list_process_applications(
        process_id: str,
        request: Request,
        status_filter: Optional[ApplicationStatus] = None,
        _: AuthContext = Depends(require_admin_account),
    ) -> list[ApplicationListItem]:
        store = get_store(request)
        try:
            process = store.get_process(process_id)
        except StoreNotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        items: list[ApplicationListItem] = []
        for application in store.list_process_applications(process_id):
            if status_filter and application.status != status_filter:
                continue
            try:
                candidate = store.get_candidate(application.candidate_id)
            except StoreNotFoundError:
                continue
            items.append(application_list_item(application, process, candidate))
        return items

    @router.get("/admin/applications/{application_id}", response_model=ApplicationDetailResponse)
    def get_application_detail(
        application_id: str,
        request: Request,
        _: AuthContext = Depends(require_admin_account),
    ) -> ApplicationDetailResponse:
        store = get_store(request)
        try:
            application = store.get_application(application_id)
            candidate = store.get_candidate(application.candidate_id)
            process = store.get_process(application.process_id)
        except StoreNotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        return ApplicationDetailResponse(
            application=application,
            candidate=candidate_summary(candidate),
            process=process,
            round_progress=compute_progress(application, process),
        )

    @router.patch("/admin/applications/{application_id}", response_model=AdminActionResponse)
    async def apply_admin_action(
        application_id: str,
        request: Request,
        context: AuthContext = Depends(require_admin_account),
    ):
        store = get_store(request)
        settings = get_settings(request)
        metrics_registry = get_metrics(request)
        try:
            action = ADMIN_ACTION_ADAPTER.validate_python(parse_json_body(await request.body()))
        except (RequestValidationFailure, ValueError) as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="invalid admin action payload",
            ) from exc

        try:
            return await run_in_threadpool(
                run_admin_action,
                store,
                settings,
                metrics_registry,
                application_id,
                action,
                context.user_id,
            )
        except RequestValidationFailure as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
        except StoreNotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        except StoreConflictError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
        except BlockWriteInconsistencyError as exc:
            return block_inconsistent_response(exc)

    @router.delete("/admin/applications/{application_id}", response_model=AdminActionResponse)
    def archive_application(
        application_id: str,
        request: Request,
        context: AuthContext = Depends(require_admin_account),
    ) -> AdminActionResponse:
        store = get_store(request)
        try:
            store.archive_application(application_id, admin_id=context.user_id)
        except StoreNotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        return AdminActionResponse(message="Application archived")

    @router.put("/admin/community", response_model=CommunitySettings)
    def update_community(
        payload: CommunityUpdateRequest,
        request: Request,
        _: AuthContext = Depends(require_admin_account),
    ) -> CommunitySettings:
        return get_store(request).set_community(payload)

    return router


app = create_app()
