"""
Submission Lifecycle Service.

Manages submission status transitions, the advisory editor lock and signing.

5 valid transitions:
  start_review, validate, complete, reject, reopen

Side effects:
  validate → validated_at
  complete → completed_at
  reopen   → reopened_count + 1, generated_at cleared

Status is never assigned anywhere else: every move goes through
``attempt_transition`` so an illegal move always raises
InvalidTransitionError.

Usage:
    from amsf_filing.services.submission_lifecycle import (
        transition_submission, acquire_lock,
    )

    acquire_lock(submission, "alice")
    result = transition_submission(submission, "start_review", user_id="alice")
"""

import logging
from datetime import datetime, timedelta, timezone

from flask import current_app
from sqlalchemy import or_, update

from amsf_filing.core.exceptions import (
    InvalidTransitionError,
    LockConflictError,
    SubmissionFrozenError,
    ValidationError,
)
from amsf_filing.middleware.logging_config import submission_logger
from amsf_filing.models import db
from amsf_filing.models.submission import Answer, Submission

logger = logging.getLogger(__name__)

SUBMISSION_TRANSITIONS = {
    "start_review": {"from": ["draft"], "to": "in_review"},
    "validate": {"from": ["in_review"], "to": "validated"},
    "complete": {"from": ["validated"], "to": "completed"},
    "reject": {"from": ["in_review"], "to": "draft"},
    "reopen": {"from": ["completed"], "to": "draft"},
}

DEFAULT_LOCK_TTL_MINUTES = 30


# ═════════════════════════════════════════════════════════════════════════════
# Transitions
# ═════════════════════════════════════════════════════════════════════════════


def attempt_transition(state: str, event: str, submission_id: int | None = None) -> str:
    """Return the status ``event`` leads to from ``state``.

    Raises:
        InvalidTransitionError: unknown event or not allowed from ``state``.
    """
    rule = SUBMISSION_TRANSITIONS.get(event)
    if not rule or state not in rule["from"]:
        raise InvalidTransitionError(event, state, submission_id)
    return rule["to"]


def validate_transition(submission: Submission, event: str) -> dict:
    """Non-raising variant for UIs: {"valid", "from", "to", "reason"}."""
    rule = SUBMISSION_TRANSITIONS.get(event)
    if not rule:
        return {"valid": False, "from": submission.status, "to": None,
                "reason": f"Unknown event: {event}"}
    if submission.status not in rule["from"]:
        return {"valid": False, "from": submission.status, "to": rule["to"],
                "reason": f"Cannot '{event}' from status '{submission.status}'"}
    return {"valid": True, "from": submission.status, "to": rule["to"], "reason": None}


def available_events(submission: Submission) -> list[str]:
    return [e for e, rule in SUBMISSION_TRANSITIONS.items() if submission.status in rule["from"]]


def transition_submission(submission: Submission, event: str, user_id: str | None = None) -> dict:
    """Apply ``event`` to ``submission`` and commit.

    Returns:
        {"submission_id", "event", "previous_status", "new_status"}
    """
    previous = submission.status
    new_status = attempt_transition(previous, event, submission.id)
    now = datetime.now(timezone.utc)

    submission.status = new_status
    if event == "validate":
        submission.validated_at = now
    elif event == "complete":
        submission.completed_at = now
    elif event == "reopen":
        submission.reopened_count = (submission.reopened_count or 0) + 1
        submission.generated_at = None

    db.session.commit()
    submission_logger(logger, submission).info(
        "Transitioned %s -> %s via %s (user=%s)", previous, new_status, event, user_id,
    )
    return {
        "submission_id": submission.id,
        "event": event,
        "previous_status": previous,
        "new_status": new_status,
    }


# ═════════════════════════════════════════════════════════════════════════════
# Advisory lock
# ═════════════════════════════════════════════════════════════════════════════


def _lock_ttl() -> timedelta:
    minutes = current_app.config.get("SUBMISSION_LOCK_TTL_MINUTES", DEFAULT_LOCK_TTL_MINUTES)
    return timedelta(minutes=int(minutes))


def _as_utc(value):
    if value is None:
        return None
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def lock_expired(submission: Submission, now: datetime | None = None) -> bool:
    if not submission.locked_by or submission.locked_at is None:
        return True
    now = now or datetime.now(timezone.utc)
    return _as_utc(submission.locked_at) < now - _lock_ttl()


def locked_by(submission: Submission, user: str) -> bool:
    """True if ``user`` currently holds a live lock on ``submission``."""
    return submission.locked_by == user and not lock_expired(submission)


def acquire_lock(submission: Submission, user: str) -> Submission:
    """Take the editor lock with a single conditional UPDATE.

    Succeeds when the submission is unlocked, already held by ``user`` or the
    previous lock is older than SUBMISSION_LOCK_TTL_MINUTES.

    Raises:
        LockConflictError: another user holds a live lock.
    """
    if not user:
        raise ValidationError("A user is required to lock a submission", details={"user": "required"})

    now = datetime.now(timezone.utc)
    stale_before = now - _lock_ttl()
    result = db.session.execute(
        update(Submission)
        .where(
            Submission.id == submission.id,
            or_(
                Submission.locked_by.is_(None),
                Submission.locked_by == user,
                Submission.locked_at < stale_before,
            ),
        )
        .values(locked_by=user, locked_at=now)
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    db.session.refresh(submission)

    if result.rowcount == 0:
        logger.info("Lock refused on submission %s for %s (held by %s)",
                    submission.id, user, submission.locked_by)
        raise LockConflictError(submission.id, submission.locked_by)

    logger.info("Submission %s locked by %s", submission.id, user)
    return submission


def release_lock(submission: Submission, user: str) -> bool:
    """Release the lock held by ``user``. Returns False if nothing was held.

    Raises:
        LockConflictError: the lock belongs to someone else and is still live.
    """
    if not submission.locked_by:
        return False
    if submission.locked_by != user and not lock_expired(submission):
        raise LockConflictError(submission.id, submission.locked_by)

    submission.locked_by = None
    submission.locked_at = None
    db.session.commit()
    logger.info("Submission %s unlocked by %s", submission.id, user)
    return True


# ═════════════════════════════════════════════════════════════════════════════
# Signing
# ═════════════════════════════════════════════════════════════════════════════


def set_answer(submission: Submission, xbrl_id: str, value) -> Answer:
    """Upsert a manual Answer (no commit)."""
    answer = submission.answers.filter_by(xbrl_id=xbrl_id).first()
    if answer is None:
        answer = Answer(submission_id=submission.id, xbrl_id=xbrl_id, value=value)
        db.session.add(answer)
    else:
        answer.value = value
    return answer


def sign(submission: Submission, name: str, title: str) -> Submission:
    """Record the signatory and the matching aS1 / aS2 answers."""
    if not submission.editable:
        raise SubmissionFrozenError(submission.id, submission.status)

    errors = {}
    if not (name or "").strip():
        errors["name"] = "required"
    if not (title or "").strip():
        errors["title"] = "required"
    if errors:
        raise ValidationError("Signatory name and title are required", details=errors)

    submission.signatory_name = name.strip()
    submission.signatory_title = title.strip()
    submission.signed_at = datetime.now(timezone.utc)
    set_answer(submission, "aS1", submission.signatory_name)
    set_answer(submission, "aS2", submission.signatory_title)
    db.session.commit()

    logger.info("Submission %s signed by %s", submission.id, submission.signatory_name)
    return submission
