"""Staging API request/response schemas"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..domain.staging.models import FailureReason, RejectionReason
from ..domain.staging.staging_status import StagingStatus
from .service import SuggestionField


class CategoryRefResponse(BaseModel):
    """Category snapshot held by a staging record"""
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str


class CategoryResponse(BaseModel):
    """File category from the canonical store"""
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: str
    required: bool
    order: int


class SuggestionResponse(BaseModel):
    """Classification suggestion computed after analysis"""
    model_config = ConfigDict(from_attributes=True)

    suggested_name: str
    suggested_description: str
    suggested_category: CategoryRefResponse
    confidence: float = Field(..., ge=0.0, le=1.0)


class StagingRecordResponse(BaseModel):
    """A staged file"""
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="Staging record id")
    project_id: str = Field(..., description="Owning project")
    original_file_name: str = Field(..., description="Uploaded file name")
    size_bytes: int = Field(..., description="File size in bytes")
    mime_type: str = Field(..., description="Uploaded MIME type")
    name: str = Field(..., description="Editable display name")
    description: str = Field(..., description="Editable description")
    category: Optional[CategoryRefResponse] = Field(None, description="Selected category")
    status: StagingStatus = Field(..., description="Lifecycle status")
    progress_percent: int = Field(..., ge=0, le=100, description="Upload progress")
    error: Optional[str] = Field(None, description="Failure reason when status is failed")
    suggestions: Optional[SuggestionResponse] = Field(None, description="Analysis suggestions")
    created_at: datetime
    updated_at: datetime


class FailedUploadResponse(BaseModel):
    """Response for a rejected upload"""
    file_name: str = Field(..., description="Original filename")
    reason: RejectionReason = Field(..., description="Rejection code")
    error: str = Field(..., description="Error message")


class UploadResponse(BaseModel):
    """Response for the staging upload endpoint"""
    accepted: List[StagingRecordResponse] = Field(..., description="Admitted files")
    rejected: List[FailedUploadResponse] = Field(..., description="Rejected files")


class StagingUpdateRequest(BaseModel):
    """Operator edit; omitted fields are left unchanged, category_id=null clears the category"""
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    category_id: Optional[str] = None

    @field_validator("name", "description")
    @classmethod
    def reject_null(cls, v: Optional[str]) -> str:
        """name and description may be omitted or empty, but never null"""
        if v is None:
            raise ValueError("must be a string, not null")
        return v


class BatchUpdateRequest(BaseModel):
    ids: List[str] = Field(..., min_length=1, description="Staging record ids")
    patch: StagingUpdateRequest


class BatchUpdateResponse(BaseModel):
    updated: List[str]
    not_found: List[str]


class BatchDeleteRequest(BaseModel):
    ids: List[str] = Field(..., min_length=1, description="Staging record ids")


class ApplySuggestionRequest(BaseModel):
    field: SuggestionField = Field(..., description="Field to copy from the suggestions")


class ConfirmRequest(BaseModel):
    staging_file_ids: List[str] = Field(..., description="Staging records to confirm")


class ConfirmResponse(BaseModel):
    committed_count: int
    committed_ids: List[str]


class ValidationFailureResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    record_id: Optional[str]
    reason: FailureReason
    message: str
    file_name: Optional[str] = None
    field: Optional[str] = None


class ConfirmFailureResponse(BaseModel):
    error: str = "validation_failed"
    message: str
    failures: List[ValidationFailureResponse]


class StagingStatsResponse(BaseModel):
    total: int
    counts: Dict[str, int] = Field(..., description="Record count per status")
