# crosspost/routers/post_router.py
import json
import uuid
from typing import Dict, Optional

import structlog
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status

from crosspost.dependencies.auth import get_current_user
from crosspost.dependencies.services import get_publish_orchestrator, get_storage
from crosspost.infrastructure.storage import MediaStorage, StorageError
from crosspost.schemas.post_schema import (
    PostJobRead,
    PostJobResponse,
    PostJobResultRead,
    PublishFromMediaRequest,
)
from crosspost.services.publish_service import (
    PostJobWithResults,
    PublishOrchestrator,
    PublishPreconditionError,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/posts", tags=["posts"])

_PRECONDITION_STATUS = {
    "NO_CONNECTIONS": status.HTTP_400_BAD_REQUEST,
    "MEDIA_ITEM_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "USER_NOT_FOUND": status.HTTP_404_NOT_FOUND,
}


def _to_response(outcome: PostJobWithResults) -> PostJobResponse:
    return PostJobResponse(
        post_job=PostJobRead.model_validate(outcome.post_job),
        results=[PostJobResultRead.model_validate(r) for r in outcome.results],
    )


def _precondition_http_error(exc: PublishPreconditionError) -> HTTPException:
    return HTTPException(
        status_code=_PRECONDITION_STATUS.get(exc.code, status.HTTP_400_BAD_REQUEST),
        detail={"code": exc.code, "message": exc.message},
    )


def _parse_overrides(raw: Optional[str]) -> Optional[Dict[str, str]]:
    if not raw or not raw.strip():
        return None
    try:
        parsed = json.loads(raw)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid perPlatformOverrides JSON")
    if not isinstance(parsed, dict) or not all(isinstance(v, str) for v in parsed.values()):
        raise HTTPException(status_code=400, detail="perPlatformOverrides must map platform names to captions")
    return parsed


@router.post("", response_model=PostJobResponse, status_code=status.HTTP_201_CREATED)
async def create_post(
    file: UploadFile = File(...),
    base_caption: str = Form(..., alias="baseCaption"),
    location: Optional[str] = Form(None),
    per_platform_overrides: Optional[str] = Form(None, alias="perPlatformOverrides"),
    current_user=Depends(get_current_user),
    storage: MediaStorage = Depends(get_storage),
    orchestrator: PublishOrchestrator = Depends(get_publish_orchestrator),
):
    if not base_caption.strip():
        raise HTTPException(status_code=400, detail="baseCaption is required")
    overrides = _parse_overrides(per_platform_overrides)

    try:
        saved = await storage.save(str(current_user.id), file.filename, file.content_type, await file.read())
    except StorageError:
        raise HTTPException(status_code=500, detail="Failed to store upload")

    try:
        outcome = await orchestrator.create_and_run(
            current_user.id,
            saved,
            base_caption,
            location=(location or "").strip() or None,
            per_platform_overrides=overrides,
        )
    except PublishPreconditionError as exc:
        raise _precondition_http_error(exc)
    except Exception as exc:
        logger.exception("create_post_failed", error=str(exc))
        raise HTTPException(status_code=500, detail="Failed to create post")
    return _to_response(outcome)


@router.post("/from-media", response_model=PostJobResponse, status_code=status.HTTP_201_CREATED)
async def create_post_from_media(
    payload: PublishFromMediaRequest,
    current_user=Depends(get_current_user),
    orchestrator: PublishOrchestrator = Depends(get_publish_orchestrator),
):
    if not payload.base_caption.strip():
        raise HTTPException(status_code=400, detail="baseCaption is required")
    try:
        outcome = await orchestrator.run_for_existing_media(
            current_user.id,
            payload.media_item_id,
            payload.base_caption,
            location=(payload.location or "").strip() or None,
            per_platform_overrides=payload.per_platform_overrides,
        )
    except PublishPreconditionError as exc:
        raise _precondition_http_error(exc)
    except Exception as exc:
        logger.exception("create_post_failed", error=str(exc))
        raise HTTPException(status_code=500, detail="Failed to create post")
    return _to_response(outcome)


@router.get("/{job_id}", response_model=PostJobResponse)
async def get_post_job(
    job_id: uuid.UUID,
    current_user=Depends(get_current_user),
    orchestrator: PublishOrchestrator = Depends(get_publish_orchestrator),
):
    outcome = await orchestrator.get_job(current_user.id, job_id)
    if outcome is None:
        raise HTTPException(status_code=404, detail="Post job not found")
    return _to_response(outcome)
