"""Staging area API endpoints

Upload candidates into a project's staging area, inspect and edit staged
files, apply suggestions, and confirm batches into the canonical store.
"""

import logging
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, UploadFile, status
from fastapi.responses import JSONResponse, Response

from ..domain.staging.errors import (
    BatchTooLarge,
    CommitError,
    NoSuggestions,
    NotFound,
    UnknownCategory,
)
from ..domain.staging.models import UploadCandidate
from ..domain.staging.query import StagingQuery
from ..domain.staging.staging_status import StagingStatus, StateTransitionError
from .schemas import (
    ApplySuggestionRequest,
    BatchDeleteRequest,
    BatchUpdateRequest,
    BatchUpdateResponse,
    CategoryResponse,
    ConfirmFailureResponse,
    ConfirmRequest,
    ConfirmResponse,
    FailedUploadResponse,
    StagingRecordResponse,
    StagingStatsResponse,
    StagingUpdateRequest,
    UploadResponse,
    ValidationFailureResponse,
)
from .service import StagingService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Staging"])


def get_staging_service(request: Request) -> StagingService:
    """Dependency returning the application's staging service."""
    return request.app.state.staging_service


StagingServiceDep = Annotated[StagingService, Depends(get_staging_service)]


def _not_found(e: NotFound) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post(
    "/projects/{project_id}/staging",
    response_model=UploadResponse,
    status_code=status.HTTP_201_CREATED,
)
async def upload_staging_files(
    project_id: str,
    files: Annotated[List[UploadFile], File(...)],
    service: StagingServiceDep,
):
    """Upload one or more files into a project's staging area

    Each file is judged independently (max 50MB; PDF, JPEG, PNG, GIF, Word,
    Excel). Accepted files start uploading and analysis in the background.

    Example:
        curl -X POST http://localhost:8000/api/v1/projects/project-001/staging \\
             -F "files=@检测报告_2024_001.pdf"
    """
    candidates = []
    for upload in files:
        size = upload.size
        if size is None:
            size = len(await upload.read())
        candidates.append(UploadCandidate(
            file_name=upload.filename or "",
            size_bytes=size,
            mime_type=upload.content_type or "",
        ))

    try:
        result = await service.upload_batch(project_id, candidates)
    except BatchTooLarge as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return UploadResponse(
        accepted=[StagingRecordResponse.model_validate(r) for r in result.accepted],
        rejected=[
            FailedUploadResponse(file_name=r.file_name, reason=r.reason, error=r.message)
            for r in result.rejected
        ],
    )


@router.get("/projects/{project_id}/staging", response_model=List[StagingRecordResponse])
async def list_staging_files(
    project_id: str,
    service: StagingServiceDep,
    status_in: Annotated[Optional[List[StagingStatus]], Query(alias="status")] = None,
    category_in: Annotated[Optional[List[str]], Query(alias="category")] = None,
    keyword: Annotated[Optional[str], Query(max_length=200)] = None,
    limit: Annotated[Optional[int], Query(ge=1, le=200)] = None,
    offset: Annotated[int, Query(ge=0)] = 0,
):
    """List a project's staged files, newest first

    Filters are combined with AND; ``keyword`` matches name, description and
    original file name case-insensitively.
    """
    query = StagingQuery(
        status_in=status_in,
        category_in=category_in,
        keyword=keyword,
        limit=limit,
        offset=offset,
    )
    records = service.list_staging(project_id, query)
    return [StagingRecordResponse.model_validate(r) for r in records]


@router.get("/projects/{project_id}/staging/stats", response_model=StagingStatsResponse)
async def get_staging_stats(project_id: str, service: StagingServiceDep):
    """Count a project's staged files per status"""
    stats = service.project_stats(project_id)
    total = stats.pop("total")
    return StagingStatsResponse(total=total, counts=stats)


@router.delete("/projects/{project_id}/staging", status_code=status.HTTP_204_NO_CONTENT)
async def clear_staging_area(project_id: str, service: StagingServiceDep):
    """Remove every staged file of a project regardless of status"""
    await service.clear_project(project_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/projects/{project_id}/staging/confirm",
    response_model=ConfirmResponse,
    responses={422: {"model": ConfirmFailureResponse}},
)
async def confirm_staging_files(project_id: str, body: ConfirmRequest, service: StagingServiceDep):
    """Move ready, complete staged files into the project's file record

    All or nothing: if any selected file is missing, not ready, or lacks a
    name, category or description, nothing is committed and every failure
    is returned. A 502 means the file store failed and staging is unchanged.
    """
    try:
        result = await service.confirm(project_id, body.staging_file_ids)
    except CommitError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))

    if not result.ok:
        payload = ConfirmFailureResponse(
            message=f"{len(result.failures)} validation failure(s); no files were confirmed",
            failures=[ValidationFailureResponse.model_validate(f) for f in result.failures],
        )
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=payload.model_dump(mode="json"),
        )

    return ConfirmResponse(
        committed_count=result.committed_count,
        committed_ids=result.committed_ids,
    )


@router.get("/staging/{record_id}", response_model=StagingRecordResponse)
async def get_staging_file(record_id: str, service: StagingServiceDep):
    try:
        return StagingRecordResponse.model_validate(service.get(record_id))
    except NotFound as e:
        raise _not_found(e)


@router.patch("/staging/{record_id}", response_model=StagingRecordResponse)
async def update_staging_file(record_id: str, body: StagingUpdateRequest, service: StagingServiceDep):
    """Edit name, description or category of a staged file"""
    try:
        record = await service.update(record_id, body.model_dump(exclude_unset=True))
    except NotFound as e:
        raise _not_found(e)
    except (UnknownCategory, ValueError) as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    return StagingRecordResponse.model_validate(record)


@router.post("/staging/batch-update", response_model=BatchUpdateResponse)
async def batch_update_staging_files(body: BatchUpdateRequest, service: StagingServiceDep):
    """Apply the same edit to several staged files"""
    try:
        result = await service.batch_update(body.ids, body.patch.model_dump(exclude_unset=True))
    except (UnknownCategory, ValueError) as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    return BatchUpdateResponse(updated=result.updated, not_found=result.not_found)


@router.post("/staging/batch-delete", status_code=status.HTTP_204_NO_CONTENT)
async def batch_delete_staging_files(body: BatchDeleteRequest, service: StagingServiceDep):
    await service.delete_many(body.ids)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/staging/{record_id}/apply-suggestion", response_model=StagingRecordResponse)
async def apply_staging_suggestion(
    record_id: str,
    body: ApplySuggestionRequest,
    service: StagingServiceDep,
):
    """Copy a suggested name, description or category into the editable field"""
    try:
        record = await service.apply_suggestion(record_id, body.field)
    except NotFound as e:
        raise _not_found(e)
    except NoSuggestions as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return StagingRecordResponse.model_validate(record)


@router.post("/staging/{record_id}/cancel", response_model=StagingRecordResponse)
async def cancel_staging_upload(record_id: str, service: StagingServiceDep):
    """Cancel a pending or uploading file"""
    try:
        record = await service.cancel(record_id)
    except NotFound as e:
        raise _not_found(e)
    except StateTransitionError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return StagingRecordResponse.model_validate(record)


@router.delete("/staging/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_staging_file(record_id: str, service: StagingServiceDep):
    """Delete a staged file (idempotent)"""
    await service.delete(record_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/categories", response_model=List[CategoryResponse])
async def list_categories(service: StagingServiceDep):
    categories = await service.list_categories()
    return [CategoryResponse.model_validate(c) for c in categories]
