# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Endpoint tests for admin moderation and the staff workflow.
"""

import json
import pytest

from models.enums import UserRole
from services.mongodb import PAYMENTS

ADMIN = "admin@example.com"
STAFF = "staff@example.com"
OTHER_STAFF = "other.staff@example.com"
CITIZEN = "citizen@example.com"


@pytest.fixture
def roles(seed_user):
    seed_user(ADMIN, UserRole.ADMIN)
    seed_user(STAFF, UserRole.STAFF)
    seed_user(OTHER_STAFF, UserRole.STAFF)


@pytest.fixture
def issue_id(client, auth_headers, roles):
    body = {
        "title": "Graffiti on bridge",
        "description": "Fresh graffiti on the pedestrian bridge",
        "category": "Vandalism"
    }
    response = client.post('/api/issues', data=json.dumps(body), headers=auth_headers(CITIZEN))
    return response.get_json()["id"]


def assign(client, auth_headers, issue_id, staff_email=STAFF):
    return client.patch(
        f'/api/admin/issues/{issue_id}/assign',
        data=json.dumps({"staff_email": staff_email}),
        headers=auth_headers(ADMIN)
    )


def change_status(client, auth_headers, issue_id, status, email=STAFF):
    return client.patch(
        f'/api/staff/issues/{issue_id}/status',
        data=json.dumps({"status": status}),
        headers=auth_headers(email)
    )


class TestAdminIssueModeration:

    def test_assign(self, client, auth_headers, issue_id):
        response = assign(client, auth_headers, issue_id)

        assert response.status_code == 200
        data = response.get_json()
        assert data["assigned_to"] == STAFF
        assert data["timeline"][0]["action"] == f"Assigned to staff: {STAFF}"

    def test_assign_twice(self, client, auth_headers, issue_id):
        assign(client, auth_headers, issue_id)

        response = assign(client, auth_headers, issue_id, OTHER_STAFF)

        assert response.status_code == 409
        assert response.get_json()["title"] == "AlreadyAssigned"

    def test_citizen_cannot_use_admin_routes(self, client, auth_headers, issue_id):
        response = client.patch(
            f'/api/admin/issues/{issue_id}/assign',
            data=json.dumps({"staff_email": STAFF}),
            headers=auth_headers(CITIZEN)
        )

        assert response.status_code == 403
        assert response.get_json()["type"].endswith("/forbidden")

    def test_reject(self, client, auth_headers, issue_id):
        response = client.patch(f'/api/admin/issues/{issue_id}/reject', headers=auth_headers(ADMIN))

        assert response.status_code == 200
        assert response.get_json()["status"] == "Rejected"

    def test_list_all_issues_priority_first(self, client, auth_headers, issue_id, escalation_handler):
        second = client.post('/api/issues', data=json.dumps({
            "title": "Broken bench",
            "description": "Bench slats broken",
            "category": "Parks"
        }), headers=auth_headers(CITIZEN)).get_json()["id"]
        escalation_handler.apply_boost(issue_id, CITIZEN, 10000)

        data = client.get('/api/admin/issues', headers=auth_headers(ADMIN)).get_json()

        assert [issue["id"] for issue in data["_embedded"]["issues"]] == [issue_id, second]
        assert data["_embedded"]["issues"][0]["priority"] == "High"


class TestStaffWorkflow:

    def test_staff_walks_issue_to_closed(self, client, auth_headers, issue_id):
        assign(client, auth_headers, issue_id)

        for status in ("In Progress", "Working", "Resolved", "Closed"):
            response = change_status(client, auth_headers, issue_id, status)
            assert response.status_code == 200, response.get_json()
            assert response.get_json()["status"] == status

    def test_invalid_transition(self, client, auth_headers, issue_id):
        assign(client, auth_headers, issue_id)
        change_status(client, auth_headers, issue_id, "In Progress")

        response = change_status(client, auth_headers, issue_id, "Closed")

        assert response.status_code == 400
        data = response.get_json()
        assert data["title"] == "InvalidTransition"
        assert data["errors"] == ["Invalid status transition from In Progress to Closed"]

    def test_not_assignee(self, client, auth_headers, issue_id):
        assign(client, auth_headers, issue_id)

        response = change_status(client, auth_headers, issue_id, "In Progress", OTHER_STAFF)

        assert response.status_code == 403
        assert response.get_json()["title"] == "NotAssignee"

    def test_unknown_status_value(self, client, auth_headers, issue_id):
        response = change_status(client, auth_headers, issue_id, "Done")
        assert response.status_code == 400
        assert response.get_json()["title"] == "ValidationFailed"

    def test_citizen_cannot_change_status(self, client, auth_headers, issue_id):
        response = change_status(client, auth_headers, issue_id, "In Progress", CITIZEN)
        assert response.status_code == 403

    def test_assigned_list_and_stats(self, client, auth_headers, issue_id):
        assign(client, auth_headers, issue_id)
        change_status(client, auth_headers, issue_id, "In Progress")

        issues = client.get('/api/staff/issues', headers=auth_headers(STAFF)).get_json()
        stats = client.get('/api/staff/stats', headers=auth_headers(STAFF)).get_json()

        assert issues["total"] == 1
        assert issues["_embedded"]["issues"][0]["_links"]["status"]["allowed"] == ["Working"]
        assert stats["assigned"] == 1
        assert stats["by_status"]["In Progress"] == 1
        assert client.get('/api/staff/issues', headers=auth_headers(OTHER_STAFF)).get_json()["total"] == 0


class TestAdminUsersAndStaff:

    def test_block_stops_new_issues(self, client, auth_headers, issue_id):
        response = client.patch(f'/api/admin/users/{CITIZEN}/block', headers=auth_headers(ADMIN))
        assert response.status_code == 200
        assert response.get_json()["is_blocked"] is True

        blocked = client.post('/api/issues', data=json.dumps({
            "title": "Another",
            "description": "Another issue",
            "category": "Road"
        }), headers=auth_headers(CITIZEN))
        assert blocked.status_code == 403
        assert blocked.get_json()["title"] == "Blocked"

        unblocked = client.patch(f'/api/admin/users/{CITIZEN}/unblock', headers=auth_headers(ADMIN))
        assert unblocked.get_json()["is_blocked"] is False

    def test_block_unknown_user(self, client, auth_headers, roles):
        response = client.patch('/api/admin/users/ghost@example.com/block', headers=auth_headers(ADMIN))
        assert response.status_code == 404

    def test_list_citizens(self, client, auth_headers, issue_id):
        data = client.get('/api/admin/users', headers=auth_headers(ADMIN)).get_json()

        assert [user["email"] for user in data["users"]] == [CITIZEN]
        assert "password_hash" not in data["users"][0]

    def test_staff_crud(self, client, auth_headers, roles, auth_service, user_service):
        created = client.post('/api/admin/staff', data=json.dumps({
            "email": "crew@example.com",
            "name": "Road Crew",
            "password": "Secur3Pass",
            "phone": "555-0101"
        }), headers=auth_headers(ADMIN))

        assert created.status_code == 201
        assert created.get_json()["role"] == "staff"
        stored = user_service.get_user("crew@example.com")
        assert auth_service.verify_password("Secur3Pass", stored.password_hash)

        duplicate = client.post('/api/admin/staff', data=json.dumps({
            "email": "crew@example.com",
            "name": "Road Crew",
            "password": "Secur3Pass"
        }), headers=auth_headers(ADMIN))
        assert duplicate.status_code == 400

        listing = client.get('/api/admin/staff', headers=auth_headers(ADMIN)).get_json()
        assert listing["total"] == 3

        updated = client.patch('/api/admin/staff/crew@example.com', data=json.dumps({"name": "Night Crew"}),
                               headers=auth_headers(ADMIN))
        assert updated.get_json()["name"] == "Night Crew"

        deleted = client.delete('/api/admin/staff/crew@example.com', headers=auth_headers(ADMIN))
        assert deleted.get_json() == {"deleted": True, "email": "crew@example.com"}
        assert client.delete('/api/admin/staff/crew@example.com', headers=auth_headers(ADMIN)).status_code == 404

    def test_weak_staff_password_rejected(self, client, auth_headers, roles):
        response = client.post('/api/admin/staff', data=json.dumps({
            "email": "crew@example.com",
            "name": "Road Crew",
            "password": "password"
        }), headers=auth_headers(ADMIN))
        assert response.status_code == 400

    def test_dashboard_and_payments(self, client, auth_headers, issue_id, escalation_handler, store):
        escalation_handler.apply_boost(issue_id, CITIZEN, 10000, session_id="cs_1")

        stats = client.get('/api/admin/stats', headers=auth_headers(ADMIN)).get_json()
        payments = client.get('/api/admin/payments', headers=auth_headers(ADMIN)).get_json()

        assert stats["total"] == 1
        assert stats["total_payments"] == 10000
        assert payments["total"] == store.count(PAYMENTS) == 1
        assert payments["payments"][0]["issue_id"] == issue_id
