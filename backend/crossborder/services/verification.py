# backend/crossborder/services/verification.py
from __future__ import annotations

from dataclasses import dataclass, field, asdict
from typing import Dict, Iterable, List, Optional

from crossborder.models import DocumentStatus, VerificationDocType, VerificationDocument
from crossborder.services.formatting import as_aware_utc

MAX_FILE_SIZE = 10 * 1024 * 1024
ALLOWED_MIME_TYPES = {"image/jpeg", "image/png", "image/jpg", "application/pdf"}

REQUIRED_DOCS = [
    VerificationDocType.DRIVING_LICENSE.value,
    VerificationDocType.VEHICLE_REGISTRATION.value,
    VerificationDocType.INSURANCE_HK.value,
    VerificationDocType.INSURANCE_CHINA.value,
    VerificationDocType.ID_CARD.value,
]


def check_upload(file_size: int, mime_type: str) -> Optional[str]:
    if file_size > MAX_FILE_SIZE:
        return "File size too large. Maximum 10MB allowed."
    if mime_type not in ALLOWED_MIME_TYPES:
        return "Invalid file type. Only JPEG, PNG, and PDF files allowed."
    return None


@dataclass
class VerificationStatus:
    is_complete: bool = False
    completed_docs: int = 0
    total_required: int = len(REQUIRED_DOCS)
    missing_docs: List[str] = field(default_factory=list)
    pending_docs: List[str] = field(default_factory=list)
    approved_docs: List[str] = field(default_factory=list)
    rejected_docs: List[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return asdict(self)


def _newest_first(docs: Iterable[VerificationDocument]) -> List[VerificationDocument]:
    return sorted(docs, key=lambda d: (as_aware_utc(d.uploaded_at), d.id or 0), reverse=True)


def documents_by_type(docs: Iterable[VerificationDocument]) -> Dict[str, List[VerificationDocument]]:
    grouped: Dict[str, List[VerificationDocument]] = {}
    for doc in _newest_first(docs):
        grouped.setdefault(doc.document_type, []).append(doc)
    return grouped


def verification_status(docs: Iterable[VerificationDocument]) -> VerificationStatus:
    """
    Judged on the most recent upload of each required type; older uploads
    of the same type are history.
    """
    grouped = documents_by_type(docs)
    result = VerificationStatus()

    for doc_type in REQUIRED_DOCS:
        versions = grouped.get(doc_type)
        if not versions:
            result.missing_docs.append(doc_type)
            continue

        latest = versions[0].status
        if latest == DocumentStatus.APPROVED.value:
            result.approved_docs.append(doc_type)
            result.completed_docs += 1
        elif latest == DocumentStatus.PENDING.value:
            result.pending_docs.append(doc_type)
        elif latest == DocumentStatus.REJECTED.value:
            result.rejected_docs.append(doc_type)

    result.is_complete = result.completed_docs == result.total_required
    return result


def document_to_dict(doc: VerificationDocument) -> dict:
    return {
        "id": doc.id,
        "document_type": doc.document_type,
        "file_url": doc.file_url,
        "file_name": doc.file_name,
        "file_size": doc.file_size,
        "mime_type": doc.mime_type,
        "status": doc.status,
        "admin_notes": doc.admin_notes,
        "uploaded_at": as_aware_utc(doc.uploaded_at).isoformat() if doc.uploaded_at else None,
        "reviewed_at": as_aware_utc(doc.reviewed_at).isoformat() if doc.reviewed_at else None,
        "expiry_date": as_aware_utc(doc.expiry_date).isoformat() if doc.expiry_date else None,
    }
