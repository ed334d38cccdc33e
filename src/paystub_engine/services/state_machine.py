"""Payroll run and pay stub state machines with transition validation."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Sequence

from paystub_engine.errors import InvalidTransitionError

if TYPE_CHECKING:
    from paystub_engine.models import PayrollRun, PayStub


class PayrollRunStatus(str, Enum):
    """Payroll run status values."""

    DRAFT = "DRAFT"
    APPROVED = "APPROVED"


class PayStubStatus(str, Enum):
    """Pay stub status values."""

    DRAFT = "DRAFT"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class PayrollRunStateMachine:
    """State machine for payroll run status transitions.

    Allowed transitions:
    - DRAFT → APPROVED

    APPROVED is terminal: an approved run never re-opens and no stub may be
    added to it. Corrections go under a new run key. Rejection happens per
    stub; the run stays DRAFT.
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        PayrollRunStatus.DRAFT: [PayrollRunStatus.APPROVED],
        PayrollRunStatus.APPROVED: [],
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)

    @classmethod
    def accepts_stubs(cls, status: str) -> bool:
        """Check if stubs can still be created or changed under the run."""
        return status == PayrollRunStatus.DRAFT

    @classmethod
    def validate_run_for_approval(
        cls, run: PayrollRun, stubs: Sequence[PayStub]
    ) -> list[str]:
        """Validate a run for approval, returning any errors.

        Returns list of error messages (empty if valid).
        """
        errors: list[str] = []

        if not cls.can_transition(run.status, PayrollRunStatus.APPROVED):
            errors.append(f"Cannot transition from '{run.status}' to 'APPROVED'")
            return errors

        if not stubs:
            errors.append("Payroll run has no pay stubs")

        pending = [s for s in stubs if s.status == PayStubStatus.DRAFT]
        if pending:
            errors.append(f"{len(pending)} pay stub(s) are still pending review")

        return errors


class PayStubStateMachine:
    """State machine for pay stub status transitions.

    Allowed transitions:
    - DRAFT → APPROVED
    - DRAFT → REJECTED

    Both outcomes are terminal.
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        PayStubStatus.DRAFT: [PayStubStatus.APPROVED, PayStubStatus.REJECTED],
        PayStubStatus.APPROVED: [],
        PayStubStatus.REJECTED: [],
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(current_status, [])
