# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for upvote deduplication.
"""

from unittest.mock import patch

from domain.results import ErrorCode
from services.mongodb import ISSUES, VOTES


class TestVoteLedger:

    def test_upvote_records_vote_and_count(self, vote_ledger, create_issue, voter, store):
        issue = create_issue()

        result = vote_ledger.upvote(issue.id, voter.email)

        assert result.success
        assert result.value == {"upvote_count": 1}
        assert store.find_by_id(ISSUES, issue.id)["upvoteCount"] == 1
        assert vote_ledger.has_voted(issue.id, "Voter@Example.com")

    def test_second_vote_rejected(self, vote_ledger, create_issue, voter, store):
        issue = create_issue()
        vote_ledger.upvote(issue.id, voter.email)

        result = vote_ledger.upvote(issue.id, voter.email)

        assert result.error_code == ErrorCode.ALREADY_VOTED
        assert store.find_by_id(ISSUES, issue.id)["upvoteCount"] == 1
        assert store.count(VOTES, {"issueId": issue.id}) == 1

    def test_reporter_cannot_upvote(self, vote_ledger, create_issue, citizen, store):
        issue = create_issue()

        result = vote_ledger.upvote(issue.id, citizen.email)

        assert result.error_code == ErrorCode.SELF_VOTE
        assert store.count(VOTES) == 0

    def test_missing_issue(self, vote_ledger, voter):
        result = vote_ledger.upvote("507f1f77bcf86cd799439011", voter.email)
        assert result.error_code == ErrorCode.NOT_FOUND

    def test_racing_duplicate_hits_unique_index(self, vote_ledger, create_issue, voter, store):
        issue = create_issue()
        vote_ledger.upvote(issue.id, voter.email)

        # Both requests passed the pre-check; the unique index decides
        with patch.object(vote_ledger, "has_voted", return_value=False):
            result = vote_ledger.upvote(issue.id, voter.email)

        assert result.error_code == ErrorCode.ALREADY_VOTED
        assert store.find_by_id(ISSUES, issue.id)["upvoteCount"] == 1

    def test_count_matches_vote_records(self, vote_ledger, create_issue, store):
        issue = create_issue()
        for index in range(4):
            vote_ledger.upvote(issue.id, f"neighbour{index}@example.com")

        assert store.find_by_id(ISSUES, issue.id)["upvoteCount"] == vote_ledger.count_votes(issue.id) == 4

    def test_reconcile_count(self, vote_ledger, create_issue, voter, store):
        issue = create_issue()
        vote_ledger.upvote(issue.id, voter.email)
        store.update_fields(ISSUES, {"id": issue.id}, {"upvoteCount": 7})

        result = vote_ledger.reconcile_count(issue.id)

        assert result.value == {"upvote_count": 1}
        assert store.find_by_id(ISSUES, issue.id)["upvoteCount"] == 1
