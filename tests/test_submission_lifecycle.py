"""
Submission lifecycle tests.

Covers:
  - Transition table (valid / invalid from every status)
  - Side effects: validated_at, completed_at, reopen counter + generated_at reset
  - validate_transition (non-raising) and available_events
  - Advisory lock: acquire, re-acquire, conflict, stale takeover, release
  - Signing (aS1 / aS2 answers, frozen guard, blank fields)
"""

from datetime import datetime, timedelta, timezone

import pytest

from amsf_filing.core.exceptions import (
    InvalidTransitionError,
    LockConflictError,
    SubmissionFrozenError,
    ValidationError,
)
from amsf_filing.models import db
from amsf_filing.models.submission import Answer
from amsf_filing.services.submission_lifecycle import (
    SUBMISSION_TRANSITIONS,
    acquire_lock,
    attempt_transition,
    available_events,
    lock_expired,
    locked_by,
    release_lock,
    sign,
    transition_submission,
    validate_transition,
)


def _walk(submission, *events):
    for event in events:
        transition_submission(submission, event, user_id="tester")
    return submission


# ═════════════════════════════════════════════════════════════════════════════
# Transition table
# ═════════════════════════════════════════════════════════════════════════════


class TestTransitionTable:
    @pytest.mark.parametrize("state,event,expected", [
        ("draft", "start_review", "in_review"),
        ("in_review", "validate", "validated"),
        ("in_review", "reject", "draft"),
        ("validated", "complete", "completed"),
        ("completed", "reopen", "draft"),
    ])
    def test_valid_moves(self, state, event, expected):
        assert attempt_transition(state, event) == expected

    @pytest.mark.parametrize("state,event", [
        ("draft", "validate"),
        ("draft", "complete"),
        ("draft", "reopen"),
        ("in_review", "complete"),
        ("validated", "reject"),
        ("validated", "reopen"),
        ("completed", "validate"),
        ("draft", "archive"),
    ])
    def test_invalid_moves_raise(self, state, event):
        with pytest.raises(InvalidTransitionError) as exc:
            attempt_transition(state, event, submission_id=9)
        assert exc.value.current_status == state
        assert exc.value.event == event

    def test_only_start_review_leaves_draft(self):
        from_draft = [e for e, rule in SUBMISSION_TRANSITIONS.items() if "draft" in rule["from"]]
        assert from_draft == ["start_review"]


class TestValidateTransition:
    def test_valid(self, submission):
        result = validate_transition(submission, "start_review")
        assert result == {"valid": True, "from": "draft", "to": "in_review", "reason": None}

    def test_wrong_status(self, submission):
        result = validate_transition(submission, "complete")
        assert result["valid"] is False
        assert "draft" in result["reason"]

    def test_unknown_event(self, submission):
        result = validate_transition(submission, "explode")
        assert result["valid"] is False
        assert result["to"] is None

    def test_available_events(self, submission):
        assert available_events(submission) == ["start_review"]
        _walk(submission, "start_review")
        assert sorted(available_events(submission)) == ["reject", "validate"]


# ═════════════════════════════════════════════════════════════════════════════
# Side effects
# ═════════════════════════════════════════════════════════════════════════════


class TestSideEffects:
    def test_full_path(self, submission):
        result = transition_submission(submission, "start_review")
        assert result == {"submission_id": submission.id, "event": "start_review",
                          "previous_status": "draft", "new_status": "in_review"}

        _walk(submission, "validate")
        assert submission.status == "validated"
        assert submission.validated_at is not None

        _walk(submission, "complete")
        assert submission.status == "completed"
        assert submission.completed_at is not None

    def test_reopen_increments_counter_and_clears_generated_at(self, submission):
        _walk(submission, "start_review", "validate", "complete")
        submission.generated_at = datetime.now(timezone.utc)
        db.session.commit()

        _walk(submission, "reopen")
        assert submission.status == "draft"
        assert submission.reopened_count == 1
        assert submission.generated_at is None

        _walk(submission, "start_review", "validate", "complete", "reopen")
        assert submission.reopened_count == 2

    def test_invalid_transition_leaves_status(self, submission):
        with pytest.raises(InvalidTransitionError):
            transition_submission(submission, "complete")
        db.session.refresh(submission)
        assert submission.status == "draft"


# ═════════════════════════════════════════════════════════════════════════════
# Advisory lock
# ═════════════════════════════════════════════════════════════════════════════


class TestLock:
    def test_acquire_free_lock(self, submission):
        acquire_lock(submission, "alice")
        assert submission.locked_by == "alice"
        assert locked_by(submission, "alice")
        assert not lock_expired(submission)

    def test_reacquire_by_holder_refreshes(self, submission):
        acquire_lock(submission, "alice")
        first = submission.locked_at
        acquire_lock(submission, "alice")
        assert submission.locked_by == "alice"
        assert submission.locked_at >= first

    def test_conflict_for_other_user(self, submission):
        acquire_lock(submission, "alice")
        with pytest.raises(LockConflictError) as exc:
            acquire_lock(submission, "bob")
        assert exc.value.locked_by == "alice"
        assert submission.locked_by == "alice"

    def test_stale_lock_can_be_taken(self, submission):
        submission.locked_by = "alice"
        submission.locked_at = datetime.now(timezone.utc) - timedelta(minutes=31)
        db.session.commit()

        assert lock_expired(submission)
        acquire_lock(submission, "bob")
        assert submission.locked_by == "bob"

    def test_blank_user_rejected(self, submission):
        with pytest.raises(ValidationError):
            acquire_lock(submission, "")

    def test_release_by_holder(self, submission):
        acquire_lock(submission, "alice")
        assert release_lock(submission, "alice") is True
        assert submission.locked_by is None
        assert submission.locked_at is None

    def test_release_when_unlocked(self, submission):
        assert release_lock(submission, "alice") is False

    def test_release_by_other_user_conflicts(self, submission):
        acquire_lock(submission, "alice")
        with pytest.raises(LockConflictError):
            release_lock(submission, "bob")

    def test_release_expired_lock_by_other_user(self, submission):
        submission.locked_by = "alice"
        submission.locked_at = datetime.now(timezone.utc) - timedelta(hours=2)
        db.session.commit()
        assert release_lock(submission, "bob") is True


# ═════════════════════════════════════════════════════════════════════════════
# Signing
# ═════════════════════════════════════════════════════════════════════════════


class TestSign:
    def test_sign_sets_signatory_answers(self, submission):
        sign(submission, "  Marie Curie ", "Gérante")
        assert submission.signatory_name == "Marie Curie"
        assert submission.signed_at is not None

        answers = {a.xbrl_id: a.value for a in Answer.query.filter_by(submission_id=submission.id)}
        assert answers == {"aS1": "Marie Curie", "aS2": "Gérante"}

    def test_resign_updates_answers(self, submission):
        sign(submission, "Marie Curie", "Gérante")
        sign(submission, "Pierre Curie", "Directeur")
        assert Answer.query.filter_by(submission_id=submission.id).count() == 2
        assert submission.answers.filter_by(xbrl_id="aS1").one().value == "Pierre Curie"

    def test_blank_fields_rejected(self, submission):
        with pytest.raises(ValidationError) as exc:
            sign(submission, "", "  ")
        assert exc.value.details == {"name": "required", "title": "required"}

    def test_frozen_submission_rejected(self, submission):
        _walk(submission, "start_review", "validate")
        with pytest.raises(SubmissionFrozenError):
            sign(submission, "Marie Curie", "Gérante")
