"""
AMSF Survey Filer
Client domain models (owned by the CRM; read-only for survey calculation).

Models:
    - Client:           natural person, legal entity or trust the agency serves
    - BeneficialOwner:  natural person behind a legal entity or trust client

Architecture:
    Organization ──1:N──▶ Client ──1:N──▶ BeneficialOwner
                          Client ──1:N──▶ Transaction
"""

from datetime import datetime, timezone
from decimal import Decimal

from amsf_filing.models import db
from amsf_filing.models.soft_delete import SoftDeleteMixin


# ── Constants ────────────────────────────────────────────────────────────────

CLIENT_TYPES = {"NATURAL_PERSON", "LEGAL_ENTITY", "TRUST"}

RESIDENCE_STATUSES = {"RESIDENT", "NON_RESIDENT"}

RISK_LEVELS = {"LOW", "MEDIUM", "HIGH"}

PEP_TYPES = {"DOMESTIC", "FOREIGN", "INTL_ORG"}

VASP_TYPES = {"CUSTODIAN", "EXCHANGE", "ICO", "OTHER"}

LEGAL_ENTITY_TYPES = {"SCI", "SARL", "SAM", "SNC", "SA", "OTHER"}

DUE_DILIGENCE_LEVELS = {"SIMPLIFIED", "STANDARD", "REINFORCED"}

REJECTION_REASONS = {"AML_CFT", "OTHER"}

RELATIONSHIP_END_REASONS = {"AML_CONCERN", "BUSINESS_DECISION", "CLIENT_REQUEST", "OTHER"}

THIRD_PARTY_CDD_TYPES = {"LOCAL", "FOREIGN"}

CONTROL_TYPES = {"DIRECT", "INDIRECT", "REPRESENTATIVE"}

# Business sectors surveyed for Monegasque clients (section 1.11)
BUSINESS_SECTORS = (
    "LEGAL_SERVICES", "ACCOUNTING", "NOMINEE_SHAREHOLDER", "BEARER_INSTRUMENTS",
    "REAL_ESTATE", "NMPPP", "TCSP", "MULTI_FAMILY_OFFICE", "SINGLE_FAMILY_OFFICE",
    "COMPLEX_STRUCTURES", "CASH_INTENSIVE", "PREPAID_CARDS", "ART_ANTIQUITIES",
    "IMPORT_EXPORT", "HIGH_VALUE_GOODS", "NPO", "GAMBLING", "CONSTRUCTION",
    "EXTRACTIVE", "DEFENSE_WEAPONS", "YACHTING", "SPORTS_AGENTS", "FUND_MANAGEMENT",
    "HOLDING_COMPANY", "AUCTIONEERS", "CAR_DEALERS", "GOVERNMENT", "AIRCRAFT_JETS",
    "TRANSPORT",
)

# Net-worth tiers (strictly greater than)
HNWI_THRESHOLD = Decimal("5000000")
UHNWI_THRESHOLD = Decimal("50000000")


# ═════════════════════════════════════════════════════════════════════════════
# 1. Client
# ═════════════════════════════════════════════════════════════════════════════


class Client(SoftDeleteMixin, db.Model):
    """
    A client of the agency.

    ``jurisdiction`` is the single country key used by dimensional survey
    fields: nationality for natural persons, incorporation country for legal
    entities and trusts.
    """

    __tablename__ = "clients"

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(
        db.Integer, db.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    name = db.Column(db.String(200), nullable=False)
    client_type = db.Column(db.String(20), nullable=False, default="NATURAL_PERSON")

    # Identity / jurisdiction (ISO 3166-1 alpha-2)
    nationality = db.Column(db.String(2), nullable=True)
    second_nationality = db.Column(db.String(2), nullable=True)
    incorporation_country = db.Column(db.String(2), nullable=True)
    residence_status = db.Column(db.String(20), nullable=True)
    residence_country = db.Column(db.String(2), nullable=True)
    legal_entity_type = db.Column(db.String(10), nullable=True)
    business_sector = db.Column(db.String(40), nullable=True)

    # Risk flags
    risk_level = db.Column(db.String(10), nullable=True)
    is_pep = db.Column(db.Boolean, nullable=False, default=False)
    pep_type = db.Column(db.String(20), nullable=True)
    is_vasp = db.Column(db.Boolean, nullable=False, default=False)
    vasp_type = db.Column(db.String(20), nullable=True)
    due_diligence_level = db.Column(db.String(20), nullable=True)

    # Trust specifics
    is_professional_trustee = db.Column(db.Boolean, nullable=False, default=False)
    trustee_nationality = db.Column(db.String(2), nullable=True)

    # Relationship lifecycle
    became_client_at = db.Column(
        db.DateTime(timezone=True), nullable=True,
        comment="Onboarding date; drives 'new client' counts (not created_at)",
    )
    relationship_ended_at = db.Column(db.DateTime(timezone=True), nullable=True)
    relationship_end_reason = db.Column(db.String(30), nullable=True)
    rejection_reason = db.Column(
        db.String(20), nullable=True,
        comment="Set when the prospect was refused at onboarding",
    )

    # Distribution channel
    non_face_to_face = db.Column(db.Boolean, nullable=False, default=False)
    introduced_by_third_party = db.Column(db.Boolean, nullable=False, default=False)
    introducer_country = db.Column(db.String(2), nullable=True)
    third_party_cdd = db.Column(db.Boolean, nullable=False, default=False)
    third_party_cdd_type = db.Column(db.String(10), nullable=True)
    third_party_cdd_country = db.Column(db.String(2), nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # ── Constraints ──────────────────────────────────────────────────────
    __table_args__ = (
        db.CheckConstraint(
            "client_type IN ('NATURAL_PERSON','LEGAL_ENTITY','TRUST')",
            name="ck_client_type",
        ),
        db.CheckConstraint(
            "risk_level IS NULL OR risk_level IN ('LOW','MEDIUM','HIGH')",
            name="ck_client_risk_level",
        ),
        db.CheckConstraint(
            "vasp_type IS NULL OR vasp_type IN ('CUSTODIAN','EXCHANGE','ICO','OTHER')",
            name="ck_client_vasp_type",
        ),
        db.CheckConstraint(
            "due_diligence_level IS NULL OR "
            "due_diligence_level IN ('SIMPLIFIED','STANDARD','REINFORCED')",
            name="ck_client_due_diligence_level",
        ),
    )

    # ── Relationships ────────────────────────────────────────────────────
    beneficial_owners = db.relationship(
        "BeneficialOwner", backref="client", lazy="dynamic",
        cascade="all, delete-orphan",
    )
    transactions = db.relationship("Transaction", backref="client", lazy="dynamic")

    @property
    def is_natural_person(self):
        return self.client_type == "NATURAL_PERSON"

    @property
    def is_legal_entity(self):
        return self.client_type == "LEGAL_ENTITY"

    @property
    def is_trust(self):
        return self.client_type == "TRUST"

    @property
    def jurisdiction(self):
        """Country key for dimensional breakdowns."""
        if self.is_natural_person:
            return self.nationality
        return self.incorporation_country

    def to_dict(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "name": self.name,
            "client_type": self.client_type,
            "nationality": self.nationality,
            "incorporation_country": self.incorporation_country,
            "residence_status": self.residence_status,
            "risk_level": self.risk_level,
            "is_pep": self.is_pep,
            "is_vasp": self.is_vasp,
            "became_client_at": self.became_client_at.isoformat() if self.became_client_at else None,
            "deleted_at": self.deleted_at.isoformat() if self.deleted_at else None,
        }

    def __repr__(self):
        return f"<Client {self.id}: {self.client_type} {self.name}>"


# ═════════════════════════════════════════════════════════════════════════════
# 2. BeneficialOwner
# ═════════════════════════════════════════════════════════════════════════════


class BeneficialOwner(db.Model):
    """Ultimate beneficial owner of a legal entity or trust client."""

    __tablename__ = "beneficial_owners"

    id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(
        db.Integer, db.ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    name = db.Column(db.String(200), nullable=False)
    ownership_percentage = db.Column(db.Numeric(5, 2), nullable=True)
    control_type = db.Column(db.String(20), nullable=True)
    is_pep = db.Column(db.Boolean, nullable=False, default=False)
    pep_type = db.Column(db.String(20), nullable=True)
    nationality = db.Column(db.String(2), nullable=True)
    residence_country = db.Column(db.String(2), nullable=True)
    net_worth_eur = db.Column(db.Numeric(15, 2), nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.CheckConstraint(
            "ownership_percentage IS NULL OR "
            "(ownership_percentage >= 0 AND ownership_percentage <= 100)",
            name="ck_bo_ownership_percentage",
        ),
        db.CheckConstraint(
            "control_type IS NULL OR control_type IN ('DIRECT','INDIRECT','REPRESENTATIVE')",
            name="ck_bo_control_type",
        ),
    )

    @property
    def is_hnwi(self):
        return self.net_worth_eur is not None and Decimal(self.net_worth_eur) > HNWI_THRESHOLD

    @property
    def is_uhnwi(self):
        return self.net_worth_eur is not None and Decimal(self.net_worth_eur) > UHNWI_THRESHOLD

    def to_dict(self):
        return {
            "id": self.id,
            "client_id": self.client_id,
            "name": self.name,
            "ownership_percentage": (
                float(self.ownership_percentage) if self.ownership_percentage is not None else None
            ),
            "control_type": self.control_type,
            "is_pep": self.is_pep,
            "nationality": self.nationality,
            "residence_country": self.residence_country,
        }

    def __repr__(self):
        return f"<BeneficialOwner {self.id}: {self.name}>"
