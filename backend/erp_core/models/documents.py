from __future__ import annotations

from ..extensions import db


class DocumentSequence(db.Model):
    """
    Per-document-type counter backing human-readable numbers
    (PO0001, SO0001, INV0001, PINV0001, MO0001).

    next_number is the number the NEXT allocation will hand out.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("document_type", name="uq_document_sequences_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_type = db.Column(db.String(32), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)

    def __repr__(self) -> str:
        return f"<DocumentSequence {self.document_type} next={self.next_number}>"
