from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    return datetime.utcnow()


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ProcessStatus(str, Enum):
    draft = "draft"
    published = "published"


class RoundType(str, Enum):
    form = "form"
    instruction = "instruction"
    hybrid = "hybrid"


class FieldSubType(str, Enum):
    short_text = "shortText"
    long_text = "longText"
    code_editor = "codeEditor"
    audio_response = "audioResponse"
    file_upload = "fileUpload"
    single_choice = "singleChoice"
    multiple_choice = "multipleChoice"


CHOICE_SUB_TYPES = {FieldSubType.single_choice, FieldSubType.multiple_choice}


class ApplicationStatus(str, Enum):
    applied = "applied"
    in_progress = "in-progress"
    completed = "completed"
    expired = "expired"
    rejected = "rejected"
    blocked = "blocked"


class RoundProgressStatus(str, Enum):
    in_progress = "in-progress"
    submitted = "submitted"


# Process definition


class FieldRecord(WireModel):
    id: str
    question: str = Field(min_length=1, max_length=2000)
    sub_type: FieldSubType
    options: list[str] = Field(default_factory=list)
    description: Optional[Any] = None

    @model_validator(mode="after")
    def validate_options(self) -> "FieldRecord":
        self.options = [option.strip() for option in self.options if option.strip()]
        if self.sub_type in CHOICE_SUB_TYPES and len(self.options) < 2:
            raise ValueError("at least 2 options are required for choice fields")
        return self


class IntroVideo(WireModel):
    enabled: bool = False
    video_url: str = ""
    video_title: str = ""
    video_description: str = ""
    is_mandatory: bool = False
    video_duration: Optional[str] = None


class RoundRecord(WireModel):
    id: str
    order: int
    title: str = Field(min_length=1, max_length=200)
    type: RoundType = RoundType.form
    fields: list[FieldRecord] = Field(default_factory=list)
    instruction: Optional[Any] = None
    intro_video: Optional[IntroVideo] = None


class ProcessRecord(WireModel):
    id: str
    admin_id: str
    title: str
    description: str = ""
    status: ProcessStatus = ProcessStatus.draft
    rounds: list[RoundRecord] = Field(default_factory=list)
    intro_video: Optional[IntroVideo] = None
    cloned_from: Optional[str] = None
    created_at_utc: datetime
    updated_at_utc: datetime


# Application progress


class AnswerRecord(WireModel):
    field_id: str = Field(min_length=1)
    answer: Any = None


class RoundProgressRecord(WireModel):
    round_id: str
    status: RoundProgressStatus = RoundProgressStatus.in_progress
    answers: list[AnswerRecord] = Field(default_factory=list)
    timeline: Optional[str] = None
    timeline_date: Optional[datetime] = None


class ApplicationRecord(WireModel):
    id: str
    process_id: str
    candidate_id: str
    status: ApplicationStatus = ApplicationStatus.applied
    current_round_index: Optional[int] = None
    current_round_title: Optional[str] = None
    rounds: list[RoundProgressRecord] = Field(default_factory=list)
    blocked_until: Optional[datetime] = None
    block_reason: Optional[str] = None
    blocked_by: Optional[str] = None
    blocked_at: Optional[datetime] = None
    created_at_utc: datetime
    updated_at_utc: datetime

    @model_validator(mode="after")
    def validate_unique_rounds(self) -> "ApplicationRecord":
        seen: set[str] = set()
        for progress in self.rounds:
            if progress.round_id in seen:
                raise ValueError(f"duplicate round progress for round: {progress.round_id}")
            seen.add(progress.round_id)
        return self


class ArchivedApplicationRecord(ApplicationRecord):
    archived_at_utc: datetime
    archived_by: str
    archived_reason: str = "admin_removal"


# Accounts


class CandidateRecord(WireModel):
    id: str
    name: str
    email: str
    password_hash: str
    is_blocked: bool = False
    blocked_until: Optional[datetime] = None
    blocked_reason: Optional[str] = None
    blocked_by: Optional[str] = None
    blocked_at: Optional[datetime] = None
    created_at_utc: datetime
    updated_at_utc: datetime


class AdminRecord(WireModel):
    id: str
    name: str
    email: str
    phone: Optional[str] = None
    password_hash: str
    created_at_utc: datetime


class SupportContact(WireModel):
    name: str = Field(min_length=1, max_length=120)
    email: Optional[str] = None
    phone: Optional[str] = None


class CommunitySettings(WireModel):
    group_link: Optional[str] = None
    admins: list[SupportContact] = Field(default_factory=list)


# Requests and responses


class CandidateRegisterRequest(WireModel):
    name: str = Field(min_length=2, max_length=120)
    email: str = Field(min_length=3, max_length=254, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(min_length=8, max_length=72)


class CandidateRegisterResponse(WireModel):
    candidate_id: str


class LoginRequest(WireModel):
    email: str = Field(min_length=3, max_length=254)
    password: str = Field(min_length=1, max_length=256)


class LoginResponse(WireModel):
    token: str
    subject_id: str
    role: str


class TimeRemaining(WireModel):
    days: int
    hours: int
    minutes: int
    expired: bool = False


class AccountBlockedResponse(WireModel):
    error: Literal["account_blocked"] = "account_blocked"
    message: str
    reason: Optional[str]
    blocked_until: Optional[datetime]
    time_remaining: Optional[TimeRemaining]
    admin_contacts: list[SupportContact]


class FieldDefinition(WireModel):
    id: Optional[str] = None
    question: str = Field(min_length=1, max_length=2000)
    sub_type: FieldSubType
    options: list[str] = Field(default_factory=list)
    description: Optional[Any] = None

    @model_validator(mode="after")
    def validate_options(self) -> "FieldDefinition":
        if self.sub_type in CHOICE_SUB_TYPES:
            if len([option for option in self.options if option.strip()]) < 2:
                raise ValueError("at least 2 options are required for choice fields")
        return self


class RoundDefinition(WireModel):
    id: Optional[str] = None
    order: Optional[int] = None
    title: str = Field(min_length=1, max_length=200)
    type: RoundType = RoundType.form
    fields: list[FieldDefinition] = Field(default_factory=list)
    instruction: Optional[Any] = None
    intro_video: Optional[IntroVideo] = None


class ProcessCreateRequest(WireModel):
    title: str = Field(min_length=2, max_length=200)
    description: str = Field(default="", max_length=5000)
    status: ProcessStatus = ProcessStatus.draft
    rounds: list[RoundDefinition] = Field(default_factory=list)
    intro_video: Optional[IntroVideo] = None


class ProcessCloneRequest(WireModel):
    title: Optional[str] = Field(default=None, max_length=200)


class ProcessCreateResponse(WireModel):
    process_id: str
    title: str
    status: ProcessStatus


class AnswerInput(WireModel):
    field_id: str = Field(min_length=1)
    answer: Any = None


class RoundAnswersRequest(WireModel):
    answers: list[AnswerInput] = Field(default_factory=list)


class RoundSubmitResponse(WireModel):
    success: bool = True
    next_round_index: Optional[int]


class AutosaveResponse(WireModel):
    success: bool = True
    saved_fields: int


class TimelineSetRequest(WireModel):
    hours: int = Field(ge=1, le=720)


class TimelineSetResponse(WireModel):
    round_id: str
    timeline: str
    timeline_date: datetime


class ApplicationStartResponse(WireModel):
    application_id: str
    status: ApplicationStatus
    current_round_index: Optional[int]
    current_round_title: Optional[str]


class RoundProgressSummary(WireModel):
    current: int
    total: int
    percentage: int


class BlockCandidateAction(WireModel):
    action: Literal["blockCandidate"]
    duration_hours: Optional[float] = Field(
        default=None,
        allow_inf_nan=False,
        validation_alias=AliasChoices("durationHours", "blockDurationHours", "duration_hours"),
    )
    reason: Optional[str] = Field(default=None, max_length=500)


class UnblockCandidateAction(WireModel):
    action: Literal["unblockCandidate"]


class StatusUpdateAction(WireModel):
    action: Literal["updateStatus"]
    status: ApplicationStatus


AdminApplicationAction = Annotated[
    Union[BlockCandidateAction, UnblockCandidateAction, StatusUpdateAction],
    Field(discriminator="action"),
]


class AdminActionResponse(WireModel):
    success: bool = True
    message: str
    blocked_until: Optional[datetime] = None
    status: Optional[ApplicationStatus] = None


class CandidateSummary(WireModel):
    candidate_id: str
    name: str
    email: str
    is_blocked: bool


class ApplicationListItem(WireModel):
    application_id: str
    candidate: CandidateSummary
    status: ApplicationStatus
    current_round_index: Optional[int]
    current_round_title: Optional[str]
    round_progress: RoundProgressSummary
    timeline_date: Optional[datetime]
    time_remaining: Optional[TimeRemaining]
    blocked_until: Optional[datetime]
    created_at_utc: datetime


class CandidateApplicationResponse(WireModel):
    application: ApplicationRecord
    round_progress: RoundProgressSummary


class ApplicationDetailResponse(WireModel):
    application: ApplicationRecord
    candidate: CandidateSummary
    process: ProcessRecord
    round_progress: RoundProgressSummary


class CommunityUpdateRequest(WireModel):
    group_link: Optional[str] = Field(default=None, max_length=500)
    admins: list[SupportContact] = Field(default_factory=list)


class CommunityLinkResponse(WireModel):
    group_link: str
