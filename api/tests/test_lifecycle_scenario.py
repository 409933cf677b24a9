# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
End-to-end walk through the issue lifecycle over HTTP.
"""

import json

from models.enums import PaymentKind, UserRole
from services.mongodb import ISSUES, VOTES, PAYMENTS
from services.payments import PaymentConfirmation

REPORTER = "reporter@example.com"
NEIGHBOUR = "neighbour@example.com"
ADMIN = "admin@example.com"
STAFF = "staff@example.com"
OTHER_STAFF = "other.staff@example.com"


def test_issue_lifecycle(client, auth_headers, seed_user, payment_processor, store):
    seed_user(ADMIN, UserRole.ADMIN)
    seed_user(STAFF, UserRole.STAFF)
    seed_user(OTHER_STAFF, UserRole.STAFF)

    # A free citizen files three issues; the fourth is refused
    issue_ids = []
    for index in range(3):
        response = client.post('/api/issues', data=json.dumps({
            "title": f"Broken lamp {index}",
            "description": "Street lamp not working",
            "category": "Streetlight"
        }), headers=auth_headers(REPORTER))
        assert response.status_code == 201
        issue_ids.append(response.get_json()["id"])

    refused = client.post('/api/issues', data=json.dumps({
        "title": "One too many",
        "description": "Over the free limit",
        "category": "Streetlight"
    }), headers=auth_headers(REPORTER))
    assert refused.get_json()["title"] == "QuotaExceeded"

    issue_id = issue_ids[0]

    # Admin assigns once
    assigned = client.patch(f'/api/admin/issues/{issue_id}/assign', data=json.dumps({"staff_email": STAFF}),
                            headers=auth_headers(ADMIN))
    assert assigned.status_code == 200
    reassigned = client.patch(f'/api/admin/issues/{issue_id}/assign',
                              data=json.dumps({"staff_email": OTHER_STAFF}), headers=auth_headers(ADMIN))
    assert reassigned.get_json()["title"] == "AlreadyAssigned"

    # Assigned staff moves it forward; skipping a step is refused
    for status in ("In Progress", "Working"):
        response = client.patch(f'/api/staff/issues/{issue_id}/status', data=json.dumps({"status": status}),
                                headers=auth_headers(STAFF))
        assert response.status_code == 200
    skipped = client.patch(f'/api/staff/issues/{issue_id}/status', data=json.dumps({"status": "Closed"}),
                           headers=auth_headers(STAFF))
    assert skipped.get_json()["title"] == "InvalidTransition"

    # A neighbour upvotes once
    assert client.post(f'/api/issues/{issue_id}/upvote', headers=auth_headers(NEIGHBOUR)).status_code == 200
    again = client.post(f'/api/issues/{issue_id}/upvote', headers=auth_headers(NEIGHBOUR))
    assert again.get_json()["title"] == "AlreadyVoted"

    # The reporter pays for a boost
    checkout = client.post('/api/payments/boost', data=json.dumps({"issue_id": issue_id}),
                           headers=auth_headers(REPORTER))
    assert checkout.get_json()["url"]
    payment_processor.confirm_session.return_value = PaymentConfirmation(
        session_id="cs_boost_1",
        kind=PaymentKind.BOOST,
        payer_email=REPORTER,
        amount=10000,
        issue_id=issue_id
    )
    boosted = client.post('/api/payments/boost/confirm', data=json.dumps({"session_id": "cs_boost_1"}),
                          headers=auth_headers(REPORTER))
    assert boosted.status_code == 200

    issue = client.get(f'/api/issues/{issue_id}').get_json()
    assert issue["priority"] == "High"
    assert issue["status"] == "Working"
    assert issue["upvote_count"] == 1
    assert [entry["action"] for entry in issue["timeline"]] == [
        "Issue boosted to High priority",
        "Status changed to Working",
        "Status changed to In Progress",
        f"Assigned to staff: {STAFF}",
        "Issue reported by citizen"
    ]
    assert store.count(PAYMENTS, {"issueId": issue_id}) == 1
    assert store.count(VOTES, {"issueId": issue_id}) == store.find_by_id(ISSUES, issue_id)["upvoteCount"]

    # Boosted issue leads the admin triage list
    triage = client.get('/api/admin/issues', headers=auth_headers(ADMIN)).get_json()
    assert triage["_embedded"]["issues"][0]["id"] == issue_id
