from __future__ import annotations

from ..extensions import db


class Document(db.Model):
    """
    One record of a remote collection (users, locales, products, sales, tasks).

    WHY: The sync layer mirrors whole collections, so every entity is stored
    as an opaque JSON body keyed by (collection, doc_id). The JSON column is
    always reassigned, never mutated in place.
    """
    __tablename__ = "documents"
    __table_args__ = (
        db.UniqueConstraint("collection", "doc_id", name="uq_documents_collection_doc"),
        db.Index("ix_documents_collection", "collection"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    collection = db.Column(db.String(32), nullable=False)
    doc_id = db.Column(db.String(128), nullable=False)
    data = db.Column(db.JSON, nullable=False, default=dict)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    # Optimistic locking: concurrent writers of the same row raise StaleDataError
    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}
