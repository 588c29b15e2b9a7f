# Overview: Service-layer operations for document numbering.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import ConcurrencyConflictError
from ..models import DocumentSequence


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def next_document_number(
    *,
    store_id: int,
    document_type: str,
    prefix: str,
    pad: int = 6,
) -> str:
    """
    Allocate the next document number for a store/type inside the caller's
    transaction (e.g. "KF-001-000042").

    The increment is a single UPDATE, so two concurrent settlements never
    receive the same number. When the sequence row does not exist yet and
    another transaction creates it first, a ConcurrencyConflictError is
    raised and run_with_retry replays the whole unit of work.
    """
    if not store_id:
        raise DocumentSequenceError("store_id is required")
    if not document_type:
        raise DocumentSequenceError("document_type is required")

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.store_id == store_id,
            DocumentSequence.document_type == document_type,
        )
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(store_id=store_id, document_type=document_type)
            .scalar()
        )
        next_num = current - 1
    else:
        seq = DocumentSequence(store_id=store_id, document_type=document_type, next_number=2)
        db.session.add(seq)
        try:
            db.session.flush()
        except IntegrityError as exc:
            raise ConcurrencyConflictError(
                "Document sequence created concurrently",
                details={"store_id": store_id, "document_type": document_type},
            ) from exc
        next_num = 1

    return f"{prefix}-{store_id:03d}-{next_num:0{pad}d}"
