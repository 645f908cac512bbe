"""
AMSF Survey Filer
Managed property model (gestion locative).

Property management contracts are the agency's recurring revenue and feed the
"agent for rentals" section (aIR234 / aIR2313 / aIR2316) and the management
revenue figure (a3804).
"""

import math
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from amsf_filing.models import db
from amsf_filing.models.transaction import RENTAL_THRESHOLD_EUR


# ── Constants ────────────────────────────────────────────────────────────────

PROPERTY_TYPES = {"RESIDENTIAL", "COMMERCIAL", "PARKING", "OTHER"}

TENANT_TYPES = {"NATURAL_PERSON", "LEGAL_ENTITY"}


class ManagedProperty(db.Model):
    """A property the agency manages on behalf of a landlord client."""

    __tablename__ = "managed_properties"

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(
        db.Integer, db.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    client_id = db.Column(
        db.Integer, db.ForeignKey("clients.id", ondelete="RESTRICT"),
        nullable=False, index=True, comment="Landlord",
    )
    property_address = db.Column(db.String(300), nullable=False)
    property_type = db.Column(db.String(20), default="RESIDENTIAL")
    management_start_date = db.Column(db.Date, nullable=False)
    management_end_date = db.Column(db.Date, nullable=True)
    monthly_rent = db.Column(db.Numeric(15, 2), nullable=True)
    management_fee_percent = db.Column(db.Numeric(5, 2), nullable=True)
    management_fee_fixed = db.Column(db.Numeric(15, 2), nullable=True)
    tenant_type = db.Column(db.String(20), nullable=True)
    tenant_country = db.Column(db.String(2), nullable=True)
    tenant_is_pep = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.CheckConstraint(
            "management_fee_percent IS NULL OR "
            "(management_fee_percent >= 0 AND management_fee_percent <= 100)",
            name="ck_managed_property_fee_percent",
        ),
    )

    client = db.relationship("Client")

    def active_in_year(self, year):
        """True if the management window overlaps the calendar year."""
        if self.management_start_date > date(year, 12, 31):
            return False
        return self.management_end_date is None or self.management_end_date >= date(year, 1, 1)

    @property
    def is_high_rent(self):
        return self.monthly_rent is not None and Decimal(self.monthly_rent) >= RENTAL_THRESHOLD_EUR

    @property
    def monthly_fee(self):
        """Fixed fee when set, otherwise rent × percent / 100 (2 dp)."""
        if self.management_fee_fixed is not None:
            return Decimal(self.management_fee_fixed)
        if self.monthly_rent is None or self.management_fee_percent is None:
            return Decimal("0")
        fee = Decimal(self.monthly_rent) * Decimal(self.management_fee_percent) / Decimal(100)
        return fee.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

    def months_active_in_year(self, year):
        """Managed months within ``year``: ceil(days / 30), clamped to 1..12; 0 if inactive."""
        if not self.active_in_year(year):
            return 0
        start = max(self.management_start_date, date(year, 1, 1))
        end = min(self.management_end_date or date(year, 12, 31), date(year, 12, 31))
        days = (end - start).days + 1
        return max(1, min(12, math.ceil(days / 30)))

    def annual_revenue(self, year):
        return self.monthly_fee * self.months_active_in_year(year)

    def to_dict(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "client_id": self.client_id,
            "property_address": self.property_address,
            "management_start_date": self.management_start_date.isoformat(),
            "management_end_date": (
                self.management_end_date.isoformat() if self.management_end_date else None
            ),
            "monthly_rent": str(self.monthly_rent) if self.monthly_rent is not None else None,
        }

    def __repr__(self):
        return f"<ManagedProperty {self.id}: {self.property_address}>"
