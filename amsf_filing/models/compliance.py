"""
AMSF Survey Filer
Compliance activity records used by the Controls tab.

Models:
    - StrReport:  suspicious transaction report filed with the FIU (SICCFIN)
    - Training:   AML/CFT staff training session
"""

from datetime import datetime, timezone

from amsf_filing.models import db
from amsf_filing.models.soft_delete import SoftDeleteMixin


STR_REASONS = {"CASH", "PEP", "UNUSUAL_PATTERN", "OTHER"}

TRAINING_TYPES = {"INITIAL", "REFRESHER", "SPECIALIZED"}


class StrReport(SoftDeleteMixin, db.Model):
    __tablename__ = "str_reports"

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(
        db.Integer, db.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    client_id = db.Column(
        db.Integer, db.ForeignKey("clients.id", ondelete="SET NULL"), nullable=True,
    )
    transaction_id = db.Column(
        db.Integer, db.ForeignKey("transactions.id", ondelete="SET NULL"), nullable=True,
    )
    report_date = db.Column(db.Date, nullable=False, index=True)
    reason = db.Column(db.String(20), nullable=False, default="OTHER")
    notes = db.Column(db.Text, default="")

    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.CheckConstraint(
            "reason IN ('CASH','PEP','UNUSUAL_PATTERN','OTHER')",
            name="ck_str_report_reason",
        ),
    )

    def __repr__(self):
        return f"<StrReport {self.id}: {self.report_date}>"


class Training(db.Model):
    __tablename__ = "trainings"

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(
        db.Integer, db.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    training_date = db.Column(db.Date, nullable=False, index=True)
    training_type = db.Column(db.String(20), nullable=False, default="REFRESHER")
    staff_count = db.Column(db.Integer, nullable=False, default=0)
    duration_hours = db.Column(db.Numeric(5, 1), nullable=True)
    topic = db.Column(db.String(200), default="")

    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.CheckConstraint("staff_count >= 0", name="ck_training_staff_count"),
    )

    def __repr__(self):
        return f"<Training {self.id}: {self.training_date}>"
