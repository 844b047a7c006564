"""Pydantic schemas for API. Wire format is camelCase; Python attributes are snake_case."""
from datetime import datetime
from pydantic import AliasChoices, BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Any, Optional, List


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


# =============================================================================
# Users / profiles
# =============================================================================


class UserUpsertRequest(CamelModel):
    email: str = Field(min_length=1)
    name: Optional[str] = None
    picture: Optional[str] = None


class UserResponse(CamelModel):
    email: str
    name: Optional[str] = None
    picture: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ExperienceItem(CamelModel):
    role: str = ""
    company: str = ""
    duration: str = ""
    description: str = ""


class EducationItem(CamelModel):
    degree: str = ""
    school: str = ""
    year: str = ""


class ProfileData(CamelModel):
    """A full profile as edited by the user (or returned to the UI)."""
    name: Optional[str] = None
    location: Optional[str] = None
    about_me: Optional[str] = None
    skills: List[str] = []
    experience: List[ExperienceItem] = []
    education: List[EducationItem] = []
    contact_email: Optional[str] = Field(default=None, alias="email")
    phone: Optional[str] = None
    linkedin: Optional[str] = None
    github: Optional[str] = None
    portfolio: Optional[str] = None
    resume_data: Optional[str] = None
    resume_mime_type: Optional[str] = None
    resume_name: Optional[str] = None


class ProfileSaveRequest(CamelModel):
    email: str = Field(min_length=1)
    profile: ProfileData


class ResumeUploadRequest(CamelModel):
    resume_data: str = Field(min_length=1)
    mime_type: str = Field(min_length=1)
    file_name: Optional[str] = None
    # False keeps scalar fields the user already filled in
    override: bool = True


# =============================================================================
# Emails
# =============================================================================


class RawMessageIn(CamelModel):
    """A mailbox message as fetched, before classification."""
    external_id: str = Field(min_length=1, validation_alias=AliasChoices("id", "externalId", "external_id"))
    sender: str = ""
    subject: str = ""
    body: str = ""
    provider_date: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("date", "providerDate", "provider_date")
    )

    @field_validator("sender", "subject", "body", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v


class EmailSyncRequest(CamelModel):
    email: str = Field(min_length=1)
    emails: List[RawMessageIn] = []


class EmailResponse(CamelModel):
    id: str
    sender: Optional[str] = None
    subject: Optional[str] = None
    body: Optional[str] = None
    date: datetime
    is_read: bool = False
    category: str = "unclassified"
    priority: str = "MEDIUM"
    summary: Optional[str] = None
    suggested_action: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row) -> "EmailResponse":
        return cls(
            id=row.external_id,
            sender=row.sender,
            subject=row.subject,
            body=row.body,
            date=row.date,
            is_read=bool(row.is_read),
            category=row.category or "unclassified",
            priority=row.priority or "MEDIUM",
            summary=row.summary,
            suggested_action=row.suggested_action,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )


class EmailSyncResponse(CamelModel):
    success: bool = True
    count: int
    emails: List[EmailResponse]
    classified: int = 0
    classification_error: Optional[str] = None
    last_sync: Optional[datetime] = None


class LastSyncResponse(CamelModel):
    last_sync: Optional[datetime] = None
    status: str = "idle"
    error: Optional[str] = None


class DeleteResponse(CamelModel):
    success: bool = True
    message: str
    count: int = 0


class AutopilotItem(CamelModel):
    id: str
    subject: Optional[str] = None
    success: bool
    error: Optional[str] = None


class AutopilotResponse(CamelModel):
    attempted: int
    sent: int
    failed: int
    results: List[AutopilotItem]


# =============================================================================
# AI proxy
# =============================================================================


class ParseResumeRequest(CamelModel):
    base64_data: str = Field(min_length=1)
    mime_type: str = Field(min_length=1)
    user_email: Optional[str] = None


class ProfileRequest(CamelModel):
    profile: ProfileData
    user_email: Optional[str] = None


class GenerateEmailRequest(CamelModel):
    profile: ProfileData
    job_description: str = Field(min_length=1)
    type: str = "cover_letter"  # cover_letter, cold_email
    user_email: Optional[str] = None

    @field_validator("type")
    @classmethod
    def _known_type(cls, v: str) -> str:
        if v not in ("cover_letter", "cold_email"):
            raise ValueError("type must be cover_letter or cold_email")
        return v


class TailorResumeRequest(CamelModel):
    profile: ProfileData
    job_description: str = Field(min_length=1)
    user_email: Optional[str] = None


class AnalyzeEmailsRequest(CamelModel):
    emails: List[dict]
    user_email: Optional[str] = None


class SmartReplyRequest(CamelModel):
    email: dict
    profile: ProfileData
    user_email: Optional[str] = None


class TextResponse(CamelModel):
    text: str


class SearchJobsResponse(CamelModel):
    text: str
    grounding_metadata: Optional[dict] = None


# =============================================================================
# AI usage ledger
# =============================================================================


class OperationTypeStats(BaseModel):
    operation_type: str
    count: int
    total_tokens: int


class UsageRecordResponse(BaseModel):
    operation_type: str
    input_tokens: int
    output_tokens: int
    total_tokens: int
    model_used: Optional[str] = None
    success: bool
    error_message: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class UsageStatsResponse(BaseModel):
    total_operations: int
    total_tokens: int
    total_input_tokens: int
    total_output_tokens: int
    operations_by_type: List[OperationTypeStats]
    recent_usage: List[UsageRecordResponse]


class UserUsageTotals(BaseModel):
    user_email: str
    total_operations: int
    total_tokens: int


class PruneResponse(BaseModel):
    deleted: int
    retention_days: int


# =============================================================================
# Gmail connection
# =============================================================================


class GmailStatusResponse(CamelModel):
    is_connected: bool = False
    connected_gmail: Optional[str] = None
    token_expiry: Optional[datetime] = None
    last_sync: Optional[datetime] = None
    mode: str
