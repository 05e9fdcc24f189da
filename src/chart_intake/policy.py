"""
Caller-facing duplicate actions and their translation into core policies.

'ask' exists only at the boundary (a human is prompted before anything is
written). The core only ever receives a DuplicatePolicy.
"""

from __future__ import annotations

from enum import StrEnum

from chart_intake.errors import ChartIntakeError
from chart_intake.models import DuplicatePolicy

# Automation with no human present resolves 'ask' to this policy.
UNATTENDED_ASK_POLICY = DuplicatePolicy.REPLACE


class UploadAction(StrEnum):
    """Duplicate action as chosen by a caller or stored in settings."""

    SKIP = "skip"
    UPDATE = "update"
    REPLACE = "replace"
    ASK = "ask"


class DecisionRequired(ChartIntakeError):
    """Raised when 'ask' reaches a point where a human must choose a policy."""


def to_duplicate_policy(action: UploadAction | str, unattended: bool = False) -> DuplicatePolicy:
    """
    Translate a caller-facing action into a concrete policy.

    Args:
        action: skip/update/replace/ask
        unattended: True when no human can be asked (scheduled jobs)

    Returns:
        DuplicatePolicy to hand to the core

    Raises:
        DecisionRequired: If action is 'ask' and a human is present
    """
    action = UploadAction(action)
    if action is UploadAction.ASK:
        if unattended:
            return UNATTENDED_ASK_POLICY
        raise DecisionRequired("A duplicate policy must be chosen (skip/update/replace)")
    return DuplicatePolicy(action.value)
