"""
Status Workflow Engine - remediation state machine.

DESIGN PRINCIPLES:
- Reports only move forward out of "new"
- Re-applying the current status is an idempotent no-op transition
- Invalid transitions rejected before any write reaches the store
"""

from enum import Enum
from typing import Dict, List

from app.services.errors import ValidationFailure


class ReportStatus(str, Enum):
    """
    Lifecycle of a report:
    NEW → CLEANED
    NEW → RESOLVED
    """
    NEW = "new"              # Initial state, submitted by a citizen
    CLEANED = "cleaned"      # Remediated on site
    RESOLVED = "resolved"    # Closed by an admin


# Statuses a remediation request may target
REMEDIATION_TARGETS = [ReportStatus.CLEANED, ReportStatus.RESOLVED]


class StatusWorkflowEngine:
    """
    State machine for report status transitions.

    Rules:
    - new may become cleaned or resolved
    - cleaned and resolved are terminal
    - same status is always valid
    """

    # Allowed transitions map: {from_status: [to_status, ...]}
    ALLOWED_TRANSITIONS: Dict[ReportStatus, List[ReportStatus]] = {
        ReportStatus.NEW: [ReportStatus.CLEANED, ReportStatus.RESOLVED],
        ReportStatus.CLEANED: [],
        ReportStatus.RESOLVED: [],
    }

    @classmethod
    def is_valid_transition(cls, from_status: str, to_status: str) -> bool:
        """
        Check if a status transition is valid.

        Args:
            from_status: Current status
            to_status: Desired new status

        Returns:
            True if transition is allowed, False otherwise
        """
        try:
            from_enum = ReportStatus(from_status)
            to_enum = ReportStatus(to_status)
        except ValueError:
            return False

        if from_enum == to_enum:
            return True

        return to_enum in cls.ALLOWED_TRANSITIONS.get(from_enum, [])

    @classmethod
    def get_allowed_transitions(cls, current_status: str) -> List[str]:
        try:
            current_enum = ReportStatus(current_status)
        except ValueError:
            return []
        return [status.value for status in cls.ALLOWED_TRANSITIONS.get(current_enum, [])]

    @classmethod
    def validate_target(cls, new_status: str) -> ReportStatus:
        """
        Validate that a status can be requested by a remediation action.

        Raises:
            ValidationFailure: If the status is unknown or not a remediation target
        """
        try:
            target = ReportStatus(new_status)
        except ValueError:
            raise ValidationFailure(f"Unknown status '{new_status}'")
        if target not in REMEDIATION_TARGETS:
            raise ValidationFailure(
                f"Status '{new_status}' cannot be requested. "
                f"Allowed: {[status.value for status in REMEDIATION_TARGETS]}"
            )
        return target

    @classmethod
    def validate_transition(cls, current_status: str, new_status: str) -> None:
        """
        Raises:
            ValidationFailure: If the transition is invalid
        """
        if not cls.is_valid_transition(current_status, new_status):
            allowed = cls.get_allowed_transitions(current_status)
            raise ValidationFailure(
                f"Invalid status transition: {current_status} → {new_status}. "
                f"Allowed transitions from {current_status}: {allowed}"
            )
