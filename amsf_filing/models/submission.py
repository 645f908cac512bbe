"""
AMSF Survey Filer
Annual survey submission models.

Models:
    - Submission:       one organization's survey for one calendar year
    - SubmissionValue:  computed / settings-backed / manual value per element
    - Answer:           free-text manual answer; always wins at merge time

Architecture:
    Organization ──1:N──▶ Submission ──1:N──▶ SubmissionValue
                                     ──1:N──▶ Answer

Status lifecycle (see services.submission_lifecycle):
    draft → in_review → validated → completed
    in_review → draft (reject), completed → draft (reopen)
"""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation

from amsf_filing.core.values import Dimensional, Scalar
from amsf_filing.models import db
from amsf_filing.taxonomy.manifest import DEFAULT_VERSION as DEFAULT_TAXONOMY_VERSION


# ── Constants ────────────────────────────────────────────────────────────────

SUBMISSION_STATUSES = ("draft", "in_review", "validated", "completed")

EDITABLE_STATUSES = {"draft", "in_review"}

FROZEN_STATUSES = {"validated", "completed"}

VALUE_SOURCES = {"calculated", "from_settings", "manual"}

VALUE_KINDS = {"scalar", "dimensional"}

MIN_YEAR = 2009
MAX_YEAR = 2099


# ═════════════════════════════════════════════════════════════════════════════
# 1. Submission
# ═════════════════════════════════════════════════════════════════════════════


class Submission(db.Model):
    """
    Annual AMSF survey for one organization.

    ``status`` must only be changed through
    ``services.submission_lifecycle.transition_submission``.
    """

    __tablename__ = "submissions"

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(
        db.Integer, db.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    year = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(20), nullable=False, default="draft")
    taxonomy_version = db.Column(
        db.String(20), nullable=False, default=DEFAULT_TAXONOMY_VERSION,
    )

    started_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    validated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    generated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    reopened_count = db.Column(db.Integer, nullable=False, default=0)

    # Advisory single-editor lock
    locked_by = db.Column(db.String(100), nullable=True)
    locked_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Signatory (aS1 / aS2)
    signatory_name = db.Column(db.String(200), nullable=True)
    signatory_title = db.Column(db.String(200), nullable=True)
    signed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    downloaded_unvalidated = db.Column(
        db.Boolean, nullable=False, default=False,
        comment="XBRL downloaded while the remote validator was unavailable",
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
        db.UniqueConstraint("organization_id", "year", name="uq_submission_org_year"),
        db.CheckConstraint(
            "status IN ('draft','in_review','validated','completed')",
            name="ck_submission_status",
        ),
        db.CheckConstraint(
            f"year >= {MIN_YEAR} AND year <= {MAX_YEAR}",
            name="ck_submission_year_range",
        ),
    )

    organization = db.relationship("Organization", backref=db.backref("submissions", lazy="dynamic"))
    values = db.relationship(
        "SubmissionValue", backref="submission", lazy="dynamic",
        cascade="all, delete-orphan",
    )
    answers = db.relationship(
        "Answer", backref="submission", lazy="dynamic",
        cascade="all, delete-orphan",
    )

    @property
    def editable(self):
        return self.status in EDITABLE_STATUSES

    @property
    def frozen(self):
        return self.status in FROZEN_STATUSES

    def value_for(self, element_name):
        return self.values.filter_by(element_name=element_name).first()

    def to_dict(self, include_values=False):
        d = {
            "id": self.id,
            "organization_id": self.organization_id,
            "year": self.year,
            "status": self.status,
            "taxonomy_version": self.taxonomy_version,
            "editable": self.editable,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "validated_at": self.validated_at.isoformat() if self.validated_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "generated_at": self.generated_at.isoformat() if self.generated_at else None,
            "reopened_count": self.reopened_count,
            "locked_by": self.locked_by,
            "locked_at": self.locked_at.isoformat() if self.locked_at else None,
            "signatory_name": self.signatory_name,
            "signatory_title": self.signatory_title,
            "downloaded_unvalidated": self.downloaded_unvalidated,
        }
        if include_values:
            d["values"] = [v.to_dict() for v in self.values.order_by(SubmissionValue.element_name)]
            d["answers"] = [a.to_dict() for a in self.answers.order_by(Answer.xbrl_id)]
        return d

    def __repr__(self):
        return f"<Submission {self.id}: {self.year} [{self.status}]>"


# ═════════════════════════════════════════════════════════════════════════════
# 2. SubmissionValue
# ═════════════════════════════════════════════════════════════════════════════


class SubmissionValue(db.Model):
    """Persisted value of one taxonomy element."""

    __tablename__ = "submission_values"

    id = db.Column(db.Integer, primary_key=True)
    submission_id = db.Column(
        db.Integer, db.ForeignKey("submissions.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    element_name = db.Column(db.String(50), nullable=False)
    value_kind = db.Column(db.String(15), nullable=False, default="scalar")
    value_text = db.Column(db.Text, nullable=True)
    value_dimensions = db.Column(db.JSON, nullable=True)
    source = db.Column(db.String(20), nullable=False, default="calculated")
    overridden = db.Column(db.Boolean, nullable=False, default=False)
    confirmed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Review metadata
    previous_year_value = db.Column(db.Text, nullable=True)
    override_reason = db.Column(db.Text, nullable=True)
    override_user_id = db.Column(db.String(100), nullable=True)
    flagged_for_review = db.Column(db.Boolean, nullable=False, default=False)
    notes = db.Column(db.Text, nullable=True)

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
        db.UniqueConstraint("submission_id", "element_name", name="uq_submission_value_element"),
        db.CheckConstraint(
            "source IN ('calculated','from_settings','manual')",
            name="ck_submission_value_source",
        ),
        db.CheckConstraint(
            "value_kind IN ('scalar','dimensional')",
            name="ck_submission_value_kind",
        ),
    )

    # ── Value union ──────────────────────────────────────────────────────

    @property
    def value(self):
        if self.value_kind == "dimensional":
            return Dimensional(dict(self.value_dimensions or {}))
        return Scalar(self.value_text)

    @value.setter
    def value(self, new_value):
        if isinstance(new_value, Dimensional):
            self.value_kind = "dimensional"
            self.value_dimensions = dict(new_value.entries)
            self.value_text = None
        else:
            self.value_kind = "scalar"
            self.value_text = new_value.text if isinstance(new_value, Scalar) else new_value
            self.value_dimensions = None

    # ── Review helpers ───────────────────────────────────────────────────

    @property
    def confirmed(self):
        return self.confirmed_at is not None

    def confirm(self):
        self.confirmed_at = datetime.now(timezone.utc)

    def mark_overridden(self, user_id=None, reason=None):
        self.overridden = True
        self.override_user_id = user_id
        self.override_reason = reason

    def update_value(self, new_value, user_id=None, reason=None):
        """Manual edit. A changed calculated value becomes overridden."""
        changed = self.value != new_value
        self.value = new_value
        if changed and self.source == "calculated":
            self.mark_overridden(user_id=user_id, reason=reason)
        return changed

    # ── Typed accessors ──────────────────────────────────────────────────

    def to_decimal(self):
        if self.value_kind != "scalar" or self.value_text in (None, ""):
            return None
        try:
            return Decimal(self.value_text)
        except InvalidOperation:
            return None

    def to_integer(self):
        d = self.to_decimal()
        return int(d) if d is not None else None

    def to_boolean(self):
        if self.value_kind != "scalar" or self.value_text is None:
            return None
        return self.value_text.strip().lower() in ("oui", "true", "1", "yes")

    def to_dict(self):
        return {
            "id": self.id,
            "element_name": self.element_name,
            "value": self.value.to_json(),
            "value_kind": self.value_kind,
            "source": self.source,
            "overridden": self.overridden,
            "confirmed_at": self.confirmed_at.isoformat() if self.confirmed_at else None,
            "previous_year_value": self.previous_year_value,
            "flagged_for_review": self.flagged_for_review,
            "notes": self.notes,
        }

    def __repr__(self):
        return f"<SubmissionValue {self.element_name} [{self.source}]>"


# ═════════════════════════════════════════════════════════════════════════════
# 3. Answer
# ═════════════════════════════════════════════════════════════════════════════


class Answer(db.Model):
    """Manually entered answer keyed by taxonomy element code."""

    __tablename__ = "answers"

    id = db.Column(db.Integer, primary_key=True)
    submission_id = db.Column(
        db.Integer, db.ForeignKey("submissions.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    xbrl_id = db.Column(db.String(50), nullable=False)
    value = db.Column(db.Text, nullable=True)

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
        db.UniqueConstraint("submission_id", "xbrl_id", name="uq_answer_xbrl_id"),
    )

    def to_dict(self):
        return {"id": self.id, "xbrl_id": self.xbrl_id, "value": self.value}

    def __repr__(self):
        return f"<Answer {self.xbrl_id}={self.value!r}>"
