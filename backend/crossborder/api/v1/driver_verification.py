# backend/crossborder/api/v1/driver_verification.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from crossborder.api.deps import require_driver_profile
from crossborder.core.errors import bad_request
from crossborder.db.session import get_db
from crossborder.models import DocumentStatus, DriverProfile, NotificationType, VerificationDocType, VerificationDocument
from crossborder.services.formatting import as_aware_utc
from crossborder.services.notifications import admin_user_ids, notify_many
from crossborder.services.verification import (
    ALLOWED_MIME_TYPES,
    MAX_FILE_SIZE,
    REQUIRED_DOCS,
    check_upload,
    document_to_dict,
    documents_by_type,
    verification_status,
)

logger = logging.getLogger("crossborder")

router = APIRouter(prefix="/drivers/verification", tags=["drivers"])


class DocumentUpload(BaseModel):
    """
    Upload metadata. The file itself goes to object storage first; this
    records where it landed.
    """

    document_type: VerificationDocType
    file_url: str = Field(..., min_length=1, max_length=1024)
    file_name: str = Field(..., min_length=1, max_length=255)
    file_size: int = Field(..., gt=0)
    mime_type: str = Field(..., min_length=1, max_length=64)
    expiry_date: Optional[datetime] = None


@router.get("")
def get_verification(
    driver: DriverProfile = Depends(require_driver_profile),
    db: Session = Depends(get_db),
) -> dict:
    docs = db.query(VerificationDocument).filter(VerificationDocument.driver_id == driver.id).all()
    grouped = documents_by_type(docs)
    return {
        "documents": {doc_type: [document_to_dict(d) for d in versions] for doc_type, versions in grouped.items()},
        "verification_status": verification_status(docs).as_dict(),
        "required_documents": REQUIRED_DOCS,
        "max_file_size": MAX_FILE_SIZE,
        "allowed_mime_types": sorted(ALLOWED_MIME_TYPES),
    }


@router.post("", status_code=status.HTTP_201_CREATED)
def upload_document(
    payload: DocumentUpload,
    driver: DriverProfile = Depends(require_driver_profile),
    db: Session = Depends(get_db),
) -> dict:
    problem = check_upload(payload.file_size, payload.mime_type)
    if problem:
        raise bad_request(problem)

    doc = VerificationDocument(
        driver_id=driver.id,
        document_type=payload.document_type.value,
        file_url=payload.file_url,
        file_name=payload.file_name,
        file_size=payload.file_size,
        mime_type=payload.mime_type,
        status=DocumentStatus.PENDING.value,
        expiry_date=as_aware_utc(payload.expiry_date),
    )
    db.add(doc)
    db.flush()

    label = payload.document_type.value.replace("_", " ").lower()
    notify_many(
        db,
        admin_user_ids(db),
        NotificationType.DOCUMENT_UPLOADED,
        "New Document Uploaded",
        f"{driver.user.name} uploaded a new {label} document for verification",
        {"driver_id": driver.id, "document_id": doc.id, "document_type": doc.document_type},
    )

    db.commit()
    db.refresh(doc)

    logger.info(
        "verification_document_uploaded doc_id=%s driver_id=%s type=%s",
        doc.id,
        driver.id,
        doc.document_type,
    )
    return {"message": "Document uploaded successfully", "document": document_to_dict(doc)}
