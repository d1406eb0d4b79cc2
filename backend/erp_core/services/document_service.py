# Overview: Atomic allocation of human-readable document numbers.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..errors import ConcurrencyConflict
from ..extensions import db
from ..models import DocumentSequence


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


# document_type -> printed prefix
PREFIXES = {
    "purchase_order": "PO",
    "sales_order": "SO",
    "sales_invoice": "INV",
    "purchase_invoice": "PINV",
    "production_order": "MO",
}


def next_document_number(document_type: str, *, pad: int = 4) -> str:
    """
    Allocate the next number for a document type, e.g. "PO0001".

    Runs inside the caller's unit of work (no commit). The UPDATE takes a
    write lock on the sequence row, so two concurrent callers can never
    observe the same value; the losing transaction waits or is retried by
    the caller's run_with_retry.
    """
    prefix = PREFIXES.get(document_type)
    if not prefix:
        raise DocumentSequenceError(f"Unknown document type: {document_type}")

    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.document_type == document_type)
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(document_type=document_type)
            .scalar()
        )
        next_num = current - 1
    else:
        seq = DocumentSequence(document_type=document_type, next_number=2)
        db.session.add(seq)
        try:
            db.session.flush()
        except IntegrityError as exc:
            # Another transaction created the row first; the whole unit of work must re-run
            raise ConcurrencyConflict() from exc
        next_num = 1

    return f"{prefix}{next_num:0{pad}d}"
