# SPDX-License-Identifier: Apache-2.0

"""
Upvote eligibility rules.
"""

from typing import Optional

from models.entities import Issue
from domain.results import ErrorCode, WorkflowResult


def validate_upvote(
    issue: Optional[Issue],
    voter_email: str,
    already_voted: bool
) -> WorkflowResult:
    """
    Check whether voter_email may upvote issue.

    Args:
        issue: Issue as currently stored, None when missing
        voter_email: Verified voter identity
        already_voted: Whether a vote record for the pair exists

    Returns:
        Successful WorkflowResult when the vote may be recorded
    """
    if issue is None:
        return WorkflowResult.fail(ErrorCode.NOT_FOUND, "Issue not found")
    if issue.is_owned_by(voter_email):
        return WorkflowResult.fail(ErrorCode.SELF_VOTE, "Cannot upvote own issue")
    if already_voted:
        return WorkflowResult.fail(ErrorCode.ALREADY_VOTED, "Already upvoted")
    return WorkflowResult.ok(issue)
