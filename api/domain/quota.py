# SPDX-License-Identifier: Apache-2.0

"""
Quota policy deciding whether a citizen may file another issue.
"""

from dataclasses import dataclass
from typing import Optional

from models.entities import User
from domain.results import ErrorCode

FREE_ISSUE_LIMIT = 3


@dataclass(frozen=True)
class QuotaDecision:
    """Outcome of a quota check."""
    allowed: bool
    reason: Optional[ErrorCode] = None
    message: Optional[str] = None


def can_file(
    user: Optional[User],
    existing_issue_count: int,
    free_limit: int = FREE_ISSUE_LIMIT
) -> QuotaDecision:
    """
    Decide whether a user may file a new issue.

    A user with no record yet counts as a fresh citizen: not premium, not
    blocked. The caller performs the insert only after an allow.

    Args:
        user: Current user record, or None if the user was never seen
        existing_issue_count: Issues already filed by the user
        free_limit: Cap for non-premium users

    Returns:
        QuotaDecision with the deny reason when not allowed
    """
    if user is not None and user.is_blocked:
        return QuotaDecision(False, ErrorCode.BLOCKED, "You are blocked. Contact support.")

    is_premium = user is not None and user.is_premium
    if not is_premium and existing_issue_count >= free_limit:
        return QuotaDecision(
            False,
            ErrorCode.QUOTA_EXCEEDED,
            f"Free limit of {free_limit} issues reached. Subscribe to submit more issues."
        )

    return QuotaDecision(True)
