"""Milestone evidence upload and submission (fundraiser side)."""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from traceaid.core.dependencies import get_current_principal, get_db
from traceaid.core.permissions import Principal
from traceaid.schemas.campaign import MilestoneResponse
from traceaid.schemas.common import Envelope
from traceaid.schemas.milestone import (
    EvidenceResponse,
    EvidenceSubmit,
    EvidenceSubmitted,
    UploadUrlRequest,
    UploadUrlResponse,
)
from traceaid.services import milestone_ledger

router = APIRouter()


@router.post("/{milestone_id}/upload-urls", response_model=Envelope[list[UploadUrlResponse]])
async def create_upload_urls(
    milestone_id: uuid.UUID,
    body: UploadUrlRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> Envelope[list[UploadUrlResponse]]:
    """Presigned PUT URLs; upload the files, then submit their storage keys as evidence."""
    milestone = await milestone_ledger.get_milestone(db, milestone_id)
    urls = milestone_ledger.create_upload_urls(
        principal, milestone, [f.model_dump() for f in body.files]
    )
    return Envelope(
        message="Upload URLs created",
        data=[UploadUrlResponse(**u) for u in urls],
    )


@router.post(
    "/{milestone_id}/evidence", response_model=Envelope[EvidenceSubmitted], status_code=201
)
async def submit_evidence(
    milestone_id: uuid.UUID,
    body: EvidenceSubmit,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> Envelope[EvidenceSubmitted]:
    evidence, milestone = await milestone_ledger.submit_evidence(
        db,
        principal,
        milestone_id,
        body.description,
        [u.model_dump() for u in body.uploads],
    )
    return Envelope(
        status_text="Created",
        message="Evidence submitted for review",
        data=EvidenceSubmitted(
            evidence=EvidenceResponse.model_validate(evidence),
            milestone=MilestoneResponse.model_validate(milestone),
        ),
    )
