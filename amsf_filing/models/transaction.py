"""
AMSF Survey Filer
Real-estate transaction model.

Direction:
    BY_CLIENT    the client is the transacting principal
    WITH_CLIENT  the agency acted for a counterparty of the client

For RENTAL rows ``transaction_value`` is the monthly rent and
``rental_duration_months`` the length of the lease. AMSF counts a qualifying
rental (monthly rent ≥ €10,000) once per month of lease.
"""

from datetime import date, datetime, timezone
from decimal import Decimal

from amsf_filing.models import db
from amsf_filing.models.soft_delete import SoftDeleteMixin


# ── Constants ────────────────────────────────────────────────────────────────

TRANSACTION_TYPES = {"PURCHASE", "SALE", "RENTAL"}

PURCHASE_SALE_TYPES = ("PURCHASE", "SALE")

DIRECTIONS = {"BY_CLIENT", "WITH_CLIENT"}

PAYMENT_METHODS = {"WIRE", "CASH", "CHECK", "CRYPTO", "MIXED"}

AGENCY_ROLES = {"BUYER_AGENT", "SELLER_AGENT", "DUAL_AGENT"}

PURCHASE_PURPOSES = {"RESIDENCE", "INVESTMENT"}

RENTAL_THRESHOLD_EUR = Decimal("10000")


def year_bounds(year):
    """Return (Jan 1, Dec 31) of ``year``."""
    return date(year, 1, 1), date(year, 12, 31)


class Transaction(SoftDeleteMixin, db.Model):
    """One purchase, sale or rental handled by the agency."""

    __tablename__ = "transactions"

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(
        db.Integer, db.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    client_id = db.Column(
        db.Integer, db.ForeignKey("clients.id", ondelete="RESTRICT"),
        nullable=False, index=True,
    )
    reference = db.Column(db.String(50), nullable=True)
    transaction_type = db.Column(db.String(10), nullable=False)
    direction = db.Column(db.String(15), nullable=True)
    transaction_date = db.Column(db.Date, nullable=False, index=True)
    transaction_value = db.Column(
        db.Numeric(15, 2), nullable=True,
        comment="Price for purchases/sales; monthly rent for rentals",
    )
    rental_duration_months = db.Column(db.Integer, nullable=True)
    payment_method = db.Column(db.String(10), nullable=True)
    cash_amount = db.Column(db.Numeric(15, 2), nullable=True)
    agency_role = db.Column(db.String(15), nullable=True)
    purchase_purpose = db.Column(db.String(15), nullable=True)
    property_country = db.Column(db.String(2), default="MC")

    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.CheckConstraint(
            "transaction_type IN ('PURCHASE','SALE','RENTAL')",
            name="ck_transaction_type",
        ),
        db.CheckConstraint(
            "direction IS NULL OR direction IN ('BY_CLIENT','WITH_CLIENT')",
            name="ck_transaction_direction",
        ),
        db.CheckConstraint(
            "payment_method IS NULL OR payment_method IN ('WIRE','CASH','CHECK','CRYPTO','MIXED')",
            name="ck_transaction_payment_method",
        ),
        db.CheckConstraint(
            "transaction_value IS NULL OR transaction_value >= 0",
            name="ck_transaction_value_positive",
        ),
    )

    @property
    def is_rental(self):
        return self.transaction_type == "RENTAL"

    @property
    def is_purchase_or_sale(self):
        return self.transaction_type in PURCHASE_SALE_TYPES

    @property
    def count_units(self):
        """AMSF count contribution: 1 per purchase/sale, 1 per month of a qualifying rental."""
        if not self.is_rental:
            return 1
        if self.transaction_value is None or Decimal(self.transaction_value) < RENTAL_THRESHOLD_EUR:
            return 0
        return self.rental_duration_months or 1

    def to_dict(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "client_id": self.client_id,
            "reference": self.reference,
            "transaction_type": self.transaction_type,
            "direction": self.direction,
            "transaction_date": self.transaction_date.isoformat() if self.transaction_date else None,
            "transaction_value": (
                str(self.transaction_value) if self.transaction_value is not None else None
            ),
            "rental_duration_months": self.rental_duration_months,
            "payment_method": self.payment_method,
            "agency_role": self.agency_role,
        }

    def __repr__(self):
        return f"<Transaction {self.id}: {self.transaction_type} {self.transaction_date}>"
