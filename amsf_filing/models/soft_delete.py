"""
Soft delete support for compliance records.

Clients and transactions are never physically removed: AMSF retention rules
require five years of history. A discarded record keeps its row and gets a
``deleted_at`` timestamp; every survey calculation filters on ``kept``.

Usage:
    class Client(SoftDeleteMixin, db.Model):
        ...

    client.discard()
    db.session.commit()

    Client.query_kept().filter_by(organization_id=org.id)
    select(Transaction).where(Transaction.kept())   # inside joins
"""

from datetime import datetime, timezone

from amsf_filing.models import db


class SoftDeleteMixin:
    """Adds ``deleted_at`` plus discard / kept helpers to a model."""

    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True, default=None, index=True)

    def discard(self):
        """Mark this record as deleted."""
        self.deleted_at = datetime.now(timezone.utc)

    def undiscard(self):
        self.deleted_at = None

    @property
    def is_discarded(self):
        return self.deleted_at is not None

    @classmethod
    def kept(cls):
        """SQL criterion selecting non-discarded rows (usable in joins)."""
        return cls.deleted_at.is_(None)

    @classmethod
    def query_kept(cls):
        """Return a query that excludes discarded records."""
        return cls.query.filter(cls.kept())

    @classmethod
    def query_discarded(cls):
        return cls.query.filter(cls.deleted_at.isnot(None))
