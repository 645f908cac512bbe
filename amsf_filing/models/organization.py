"""
AMSF Survey Filer
Organization and organization settings.

Models:
    - Organization:  the reporting real-estate agency (one RCI registry number)
    - Setting:       key/value answers the agency maintains itself (policies,
                     staffing, free-text comments). Read fresh by every survey
                     calculation; optionally mapped 1:1 onto a taxonomy element.

Architecture:
    Organization ──1:N──▶ Setting
    Organization ──1:N──▶ Client / Transaction / ManagedProperty / Submission
"""

import re
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation

from amsf_filing.models import db


# ── Constants ────────────────────────────────────────────────────────────────

RCI_NUMBER_PATTERN = re.compile(r"^[A-Za-z0-9]{3,20}$")

SETTING_CATEGORIES = {
    "entity_info", "kyc_procedures", "compliance_policies", "training", "controls",
}

SETTING_VALUE_TYPES = {"boolean", "integer", "decimal", "string", "date", "enum"}

_TRUTHY = {"true", "1", "yes", "oui"}


def valid_rci_number(value):
    """Return True if ``value`` is an alphanumeric RCI number of 3–20 chars."""
    return bool(value) and bool(RCI_NUMBER_PATTERN.match(value))


def cast_value(raw, value_type):
    """Cast a raw setting string; None when blank or unparseable."""
    if raw is None or str(raw).strip() == "":
        return None
    raw = str(raw).strip()
    if value_type == "boolean":
        return raw.lower() in _TRUTHY
    if value_type == "integer":
        try:
            return int(Decimal(raw))
        except (InvalidOperation, ValueError, OverflowError):
            return None
    if value_type == "decimal":
        try:
            return Decimal(raw)
        except InvalidOperation:
            return None
    if value_type == "date":
        try:
            return date.fromisoformat(raw)
        except ValueError:
            return None
    return raw


# ═════════════════════════════════════════════════════════════════════════════
# 1. Organization
# ═════════════════════════════════════════════════════════════════════════════


class Organization(db.Model):
    """A reporting entity. ``rci_number`` is the XBRL entity identifier."""

    __tablename__ = "organizations"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    rci_number = db.Column(
        db.String(20), unique=True, nullable=False,
        comment="Monaco trade registry number (Répertoire du Commerce et de l'Industrie)",
    )
    country = db.Column(db.String(2), default="MC")

    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    settings = db.relationship(
        "Setting", backref="organization", lazy="dynamic",
        cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "rci_number": self.rci_number,
            "country": self.country,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Organization {self.id}: {self.rci_number}>"


# ═════════════════════════════════════════════════════════════════════════════
# 2. Setting
# ═════════════════════════════════════════════════════════════════════════════


class Setting(db.Model):
    """
    Organization-level answer maintained outside the CRM.

    ``xbrl_element`` is set when the setting answers a taxonomy element
    verbatim; the calculation engine then writes it as a ``from_settings``
    SubmissionValue.
    """

    __tablename__ = "settings"

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(
        db.Integer, db.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    key = db.Column(db.String(100), nullable=False)
    value = db.Column(db.Text, nullable=True)
    value_type = db.Column(db.String(20), nullable=False, default="string")
    category = db.Column(db.String(30), nullable=False, default="entity_info")
    xbrl_element = db.Column(
        db.String(50), nullable=True,
        comment="Taxonomy element code this setting answers directly",
    )

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
        db.UniqueConstraint("organization_id", "key", name="uq_setting_org_key"),
        db.CheckConstraint(
            "value_type IN ('boolean','integer','decimal','string','date','enum')",
            name="ck_setting_value_type",
        ),
        db.CheckConstraint(
            "category IN ('entity_info','kyc_procedures','compliance_policies',"
            "'training','controls')",
            name="ck_setting_category",
        ),
    )

    @property
    def typed_value(self):
        """Cast ``value`` according to ``value_type``; None when blank or unparseable."""
        return cast_value(self.value, self.value_type)

    def to_dict(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "key": self.key,
            "value": self.value,
            "value_type": self.value_type,
            "category": self.category,
            "xbrl_element": self.xbrl_element,
        }

    def __repr__(self):
        return f"<Setting {self.key}={self.value!r}>"
