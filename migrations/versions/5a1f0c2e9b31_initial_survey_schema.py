"""initial_survey_schema

Creates the survey filer tables:
  - organizations, settings              — reporting entity and its questionnaire settings
  - clients, beneficial_owners           — customer records (clients soft-deletable)
  - transactions, managed_properties     — purchase / sale / rental activity
  - str_reports, trainings               — compliance inputs
  - submissions, submission_values, answers — the annual survey itself

Tables created conditionally (IF NOT EXISTS semantics) to support idempotent
execution against databases that already received these tables via db.create_all()
in a development environment.

Revision ID: 5a1f0c2e9b31
Revises:
Create Date: 2026-10-19 09:12:44.318220
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = '5a1f0c2e9b31'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(with_updated=True):
    cols = [sa.Column("created_at", sa.DateTime(timezone=True), nullable=True)]
    if with_updated:
        cols.append(sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True))
    return cols


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing = set(inspector.get_table_names())

    # ── Organization ──────────────────────────────────────────────────────
    if "organizations" not in existing:
        op.create_table(
            "organizations",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column(
                "rci_number", sa.String(length=20), nullable=False,
                comment="Monaco trade registry number (Répertoire du Commerce et de l'Industrie)",
            ),
            sa.Column("country", sa.String(length=2), nullable=True),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("rci_number"),
        )

    # ── Setting ───────────────────────────────────────────────────────────
    if "settings" not in existing:
        op.create_table(
            "settings",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("organization_id", sa.Integer(), nullable=False),
            sa.Column("key", sa.String(length=100), nullable=False),
            sa.Column("value", sa.Text(), nullable=True),
            sa.Column("value_type", sa.String(length=20), nullable=False, server_default="string"),
            sa.Column("category", sa.String(length=30), nullable=False, server_default="entity_info"),
            sa.Column(
                "xbrl_element", sa.String(length=50), nullable=True,
                comment="Taxonomy element code this setting answers directly",
            ),
            *_timestamps(),
            sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("organization_id", "key", name="uq_setting_org_key"),
            sa.CheckConstraint(
                "value_type IN ('boolean','integer','decimal','string','date','enum')",
                name="ck_setting_value_type",
            ),
            sa.CheckConstraint(
                "category IN ('entity_info','kyc_procedures','compliance_policies',"
                "'training','controls')",
                name="ck_setting_category",
            ),
        )
        op.create_index("ix_settings_organization_id", "settings", ["organization_id"])

    # ── Client ────────────────────────────────────────────────────────────
    if "clients" not in existing:
        op.create_table(
            "clients",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("organization_id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("client_type", sa.String(length=20), nullable=False, server_default="NATURAL_PERSON"),
            sa.Column("nationality", sa.String(length=2), nullable=True),
            sa.Column("second_nationality", sa.String(length=2), nullable=True),
            sa.Column("incorporation_country", sa.String(length=2), nullable=True),
            sa.Column("residence_status", sa.String(length=20), nullable=True),
            sa.Column("residence_country", sa.String(length=2), nullable=True),
            sa.Column("legal_entity_type", sa.String(length=10), nullable=True),
            sa.Column("business_sector", sa.String(length=40), nullable=True),
            sa.Column("risk_level", sa.String(length=10), nullable=True),
            sa.Column("is_pep", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("pep_type", sa.String(length=20), nullable=True),
            sa.Column("is_vasp", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("vasp_type", sa.String(length=20), nullable=True),
            sa.Column("due_diligence_level", sa.String(length=20), nullable=True),
            sa.Column("is_professional_trustee", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("trustee_nationality", sa.String(length=2), nullable=True),
            sa.Column(
                "became_client_at", sa.DateTime(timezone=True), nullable=True,
                comment="Onboarding date; drives 'new client' counts (not created_at)",
            ),
            sa.Column("relationship_ended_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("relationship_end_reason", sa.String(length=30), nullable=True),
            sa.Column(
                "rejection_reason", sa.String(length=20), nullable=True,
                comment="Set when the prospect was refused at onboarding",
            ),
            sa.Column("non_face_to_face", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("introduced_by_third_party", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("introducer_country", sa.String(length=2), nullable=True),
            sa.Column("third_party_cdd", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("third_party_cdd_type", sa.String(length=10), nullable=True),
            sa.Column("third_party_cdd_country", sa.String(length=2), nullable=True),
            sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.CheckConstraint(
                "client_type IN ('NATURAL_PERSON','LEGAL_ENTITY','TRUST')",
                name="ck_client_type",
            ),
            sa.CheckConstraint(
                "risk_level IS NULL OR risk_level IN ('LOW','MEDIUM','HIGH')",
                name="ck_client_risk_level",
            ),
            sa.CheckConstraint(
                "vasp_type IS NULL OR vasp_type IN ('CUSTODIAN','EXCHANGE','ICO','OTHER')",
                name="ck_client_vasp_type",
            ),
            sa.CheckConstraint(
                "due_diligence_level IS NULL OR "
                "due_diligence_level IN ('SIMPLIFIED','STANDARD','REINFORCED')",
                name="ck_client_due_diligence_level",
            ),
        )
        op.create_index("ix_clients_organization_id", "clients", ["organization_id"])
        op.create_index("ix_clients_deleted_at", "clients", ["deleted_at"])

    # ── BeneficialOwner ───────────────────────────────────────────────────
    if "beneficial_owners" not in existing:
        op.create_table(
            "beneficial_owners",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("client_id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("ownership_percentage", sa.Numeric(5, 2), nullable=True),
            sa.Column("control_type", sa.String(length=20), nullable=True),
            sa.Column("is_pep", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("pep_type", sa.String(length=20), nullable=True),
            sa.Column("nationality", sa.String(length=2), nullable=True),
            sa.Column("residence_country", sa.String(length=2), nullable=True),
            sa.Column("net_worth_eur", sa.Numeric(15, 2), nullable=True),
            *_timestamps(with_updated=False),
            sa.ForeignKeyConstraint(["client_id"], ["clients.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.CheckConstraint(
                "ownership_percentage IS NULL OR "
                "(ownership_percentage >= 0 AND ownership_percentage <= 100)",
                name="ck_bo_ownership_percentage",
            ),
            sa.CheckConstraint(
                "control_type IS NULL OR control_type IN ('DIRECT','INDIRECT','REPRESENTATIVE')",
                name="ck_bo_control_type",
            ),
        )
        op.create_index("ix_beneficial_owners_client_id", "beneficial_owners", ["client_id"])

    # ── Transaction ───────────────────────────────────────────────────────
    if "transactions" not in existing:
        op.create_table(
            "transactions",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("organization_id", sa.Integer(), nullable=False),
            sa.Column("client_id", sa.Integer(), nullable=False),
            sa.Column("reference", sa.String(length=50), nullable=True),
            sa.Column("transaction_type", sa.String(length=10), nullable=False),
            sa.Column("direction", sa.String(length=15), nullable=True),
            sa.Column("transaction_date", sa.Date(), nullable=False),
            sa.Column(
                "transaction_value", sa.Numeric(15, 2), nullable=True,
                comment="Price for purchases/sales; monthly rent for rentals",
            ),
            sa.Column("rental_duration_months", sa.Integer(), nullable=True),
            sa.Column("payment_method", sa.String(length=10), nullable=True),
            sa.Column("cash_amount", sa.Numeric(15, 2), nullable=True),
            sa.Column("agency_role", sa.String(length=15), nullable=True),
            sa.Column("purchase_purpose", sa.String(length=15), nullable=True),
            sa.Column("property_country", sa.String(length=2), nullable=True),
            sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["client_id"], ["clients.id"], ondelete="RESTRICT"),
            sa.PrimaryKeyConstraint("id"),
            sa.CheckConstraint(
                "transaction_type IN ('PURCHASE','SALE','RENTAL')",
                name="ck_transaction_type",
            ),
            sa.CheckConstraint(
                "direction IS NULL OR direction IN ('BY_CLIENT','WITH_CLIENT')",
                name="ck_transaction_direction",
            ),
            sa.CheckConstraint(
                "payment_method IS NULL OR payment_method IN ('WIRE','CASH','CHECK','CRYPTO','MIXED')",
                name="ck_transaction_payment_method",
            ),
            sa.CheckConstraint(
                "transaction_value IS NULL OR transaction_value >= 0",
                name="ck_transaction_value_positive",
            ),
        )
        op.create_index("ix_transactions_organization_id", "transactions", ["organization_id"])
        op.create_index("ix_transactions_client_id", "transactions", ["client_id"])
        op.create_index("ix_transactions_transaction_date", "transactions", ["transaction_date"])
        op.create_index("ix_transactions_deleted_at", "transactions", ["deleted_at"])

    # ── ManagedProperty ───────────────────────────────────────────────────
    if "managed_properties" not in existing:
        op.create_table(
            "managed_properties",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("organization_id", sa.Integer(), nullable=False),
            sa.Column("client_id", sa.Integer(), nullable=False, comment="Landlord"),
            sa.Column("property_address", sa.String(length=300), nullable=False),
            sa.Column("property_type", sa.String(length=20), nullable=True),
            sa.Column("management_start_date", sa.Date(), nullable=False),
            sa.Column("management_end_date", sa.Date(), nullable=True),
            sa.Column("monthly_rent", sa.Numeric(15, 2), nullable=True),
            sa.Column("management_fee_percent", sa.Numeric(5, 2), nullable=True),
            sa.Column("management_fee_fixed", sa.Numeric(15, 2), nullable=True),
            sa.Column("tenant_type", sa.String(length=20), nullable=True),
            sa.Column("tenant_country", sa.String(length=2), nullable=True),
            sa.Column("tenant_is_pep", sa.Boolean(), nullable=False, server_default=sa.false()),
            *_timestamps(with_updated=False),
            sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["client_id"], ["clients.id"], ondelete="RESTRICT"),
            sa.PrimaryKeyConstraint("id"),
            sa.CheckConstraint(
                "management_fee_percent IS NULL OR "
                "(management_fee_percent >= 0 AND management_fee_percent <= 100)",
                name="ck_managed_property_fee_percent",
            ),
        )
        op.create_index("ix_managed_properties_organization_id", "managed_properties", ["organization_id"])
        op.create_index("ix_managed_properties_client_id", "managed_properties", ["client_id"])

    # ── StrReport / Training ──────────────────────────────────────────────
    if "str_reports" not in existing:
        op.create_table(
            "str_reports",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("organization_id", sa.Integer(), nullable=False),
            sa.Column("client_id", sa.Integer(), nullable=True),
            sa.Column("transaction_id", sa.Integer(), nullable=True),
            sa.Column("report_date", sa.Date(), nullable=False),
            sa.Column("reason", sa.String(length=20), nullable=False, server_default="OTHER"),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
            *_timestamps(with_updated=False),
            sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["client_id"], ["clients.id"], ondelete="SET NULL"),
            sa.ForeignKeyConstraint(["transaction_id"], ["transactions.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
            sa.CheckConstraint(
                "reason IN ('CASH','PEP','UNUSUAL_PATTERN','OTHER')",
                name="ck_str_report_reason",
            ),
        )
        op.create_index("ix_str_reports_organization_id", "str_reports", ["organization_id"])
        op.create_index("ix_str_reports_report_date", "str_reports", ["report_date"])
        op.create_index("ix_str_reports_deleted_at", "str_reports", ["deleted_at"])

    if "trainings" not in existing:
        op.create_table(
            "trainings",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("organization_id", sa.Integer(), nullable=False),
            sa.Column("training_date", sa.Date(), nullable=False),
            sa.Column("training_type", sa.String(length=20), nullable=False, server_default="REFRESHER"),
            sa.Column("staff_count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("duration_hours", sa.Numeric(5, 1), nullable=True),
            sa.Column("topic", sa.String(length=200), nullable=True),
            *_timestamps(with_updated=False),
            sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.CheckConstraint("staff_count >= 0", name="ck_training_staff_count"),
        )
        op.create_index("ix_trainings_organization_id", "trainings", ["organization_id"])
        op.create_index("ix_trainings_training_date", "trainings", ["training_date"])

    # ── Submission ────────────────────────────────────────────────────────
    if "submissions" not in existing:
        op.create_table(
            "submissions",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("organization_id", sa.Integer(), nullable=False),
            sa.Column("year", sa.Integer(), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="draft"),
            sa.Column("taxonomy_version", sa.String(length=20), nullable=False, server_default="2025"),
            sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("validated_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("generated_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("reopened_count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("locked_by", sa.String(length=100), nullable=True),
            sa.Column("locked_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("signatory_name", sa.String(length=200), nullable=True),
            sa.Column("signatory_title", sa.String(length=200), nullable=True),
            sa.Column("signed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column(
                "downloaded_unvalidated", sa.Boolean(), nullable=False, server_default=sa.false(),
                comment="XBRL downloaded while the remote validator was unavailable",
            ),
            *_timestamps(),
            sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("organization_id", "year", name="uq_submission_org_year"),
            sa.CheckConstraint(
                "status IN ('draft','in_review','validated','completed')",
                name="ck_submission_status",
            ),
            sa.CheckConstraint("year >= 2009 AND year <= 2099", name="ck_submission_year_range"),
        )
        op.create_index("ix_submissions_organization_id", "submissions", ["organization_id"])

    if "submission_values" not in existing:
        op.create_table(
            "submission_values",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("submission_id", sa.Integer(), nullable=False),
            sa.Column("element_name", sa.String(length=50), nullable=False),
            sa.Column("value_kind", sa.String(length=15), nullable=False, server_default="scalar"),
            sa.Column("value_text", sa.Text(), nullable=True),
            sa.Column("value_dimensions", sa.JSON(), nullable=True),
            sa.Column("source", sa.String(length=20), nullable=False, server_default="calculated"),
            sa.Column("overridden", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("previous_year_value", sa.Text(), nullable=True),
            sa.Column("override_reason", sa.Text(), nullable=True),
            sa.Column("override_user_id", sa.String(length=100), nullable=True),
            sa.Column("flagged_for_review", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("notes", sa.Text(), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["submission_id"], ["submissions.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("submission_id", "element_name", name="uq_submission_value_element"),
            sa.CheckConstraint(
                "source IN ('calculated','from_settings','manual')",
                name="ck_submission_value_source",
            ),
            sa.CheckConstraint(
                "value_kind IN ('scalar','dimensional')",
                name="ck_submission_value_kind",
            ),
        )
        op.create_index("ix_submission_values_submission_id", "submission_values", ["submission_id"])

    if "answers" not in existing:
        op.create_table(
            "answers",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("submission_id", sa.Integer(), nullable=False),
            sa.Column("xbrl_id", sa.String(length=50), nullable=False),
            sa.Column("value", sa.Text(), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["submission_id"], ["submissions.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("submission_id", "xbrl_id", name="uq_answer_xbrl_id"),
        )
        op.create_index("ix_answers_submission_id", "answers", ["submission_id"])


def downgrade():
    for table in (
        "answers", "submission_values", "submissions",
        "trainings", "str_reports", "managed_properties",
        "transactions", "beneficial_owners", "clients",
        "settings", "organizations",
    ):
        op.drop_table(table)
