# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Endpoint tests for citizen issue routes.
"""

import json
import pytest

from models.enums import UserRole

CITIZEN = "citizen@example.com"
NEIGHBOUR = "neighbour@example.com"

ISSUE_BODY = {
    "title": "Water main leak",
    "description": "Water has been running down Oak Street since this morning",
    "category": "Water",
    "location": "Oak Street 12"
}


@pytest.fixture
def post_issue(client, auth_headers):
    def _post(email=CITIZEN, **overrides):
        body = {**ISSUE_BODY, **overrides}
        return client.post('/api/issues', data=json.dumps(body), headers=auth_headers(email))
    return _post


class TestCreateIssueEndpoint:

    def test_create_issue(self, post_issue):
        response = post_issue()

        assert response.status_code == 201
        data = response.get_json()
        assert data["status"] == "Pending"
        assert data["priority"] == "Normal"
        assert data["reporter_email"] == CITIZEN
        assert data["timeline"][0]["action"] == "Issue reported by citizen"
        assert data["_links"]["self"]["href"] == f"http://testserver/api/issues/{data['id']}"
        assert "edit" in data["_links"]

    def test_requires_token(self, client):
        response = client.post('/api/issues', data=json.dumps(ISSUE_BODY), content_type='application/json')

        assert response.status_code == 401
        data = response.get_json()
        assert data["title"] == "Unauthenticated"
        assert data["type"].endswith("/authentication-required")

    def test_invalid_token(self, client):
        response = client.post(
            '/api/issues',
            data=json.dumps(ISSUE_BODY),
            headers={'Authorization': 'Bearer not-a-jwt', 'Content-Type': 'application/json'}
        )

        assert response.status_code == 401
        assert response.get_json()["type"].endswith("/invalid-token")

    def test_missing_fields_fail_validation(self, client, auth_headers):
        response = client.post('/api/issues', data=json.dumps({"title": "Only title"}), headers=auth_headers(CITIZEN))

        assert response.status_code == 400
        data = response.get_json()
        assert data["title"] == "ValidationFailed"
        assert data["errors"]

    def test_quota_exceeded(self, post_issue):
        for _ in range(3):
            assert post_issue().status_code == 201

        response = post_issue()

        assert response.status_code == 403
        assert response.get_json()["title"] == "QuotaExceeded"

    def test_blocked_user(self, post_issue, seed_user):
        seed_user(CITIZEN, is_blocked=True)

        response = post_issue()

        assert response.status_code == 403
        assert response.get_json()["title"] == "Blocked"


class TestReadIssues:

    def test_list_is_public(self, client, post_issue):
        post_issue(title="Water main leak")
        post_issue(email=NEIGHBOUR, title="Pothole on Pine", category="Road")

        response = client.get('/api/issues')

        assert response.status_code == 200
        data = response.get_json()
        assert data["total"] == 2
        assert [issue["title"] for issue in data["_embedded"]["issues"]] == ["Pothole on Pine", "Water main leak"]
        assert set(data["_embedded"]["issues"][0]["_links"]) == {"self", "collection"}

    def test_list_filters(self, client, post_issue):
        post_issue()
        post_issue(email=NEIGHBOUR, title="Pothole on Pine", category="Road",
                   description="Deep pothole near the school crossing", location="Pine Avenue 3")

        by_category = client.get('/api/issues?category=Road').get_json()
        by_search = client.get('/api/issues?search=oak').get_json()

        assert [issue["title"] for issue in by_category["_embedded"]["issues"]] == ["Pothole on Pine"]
        assert [issue["title"] for issue in by_search["_embedded"]["issues"]] == ["Water main leak"]

    def test_invalid_status_filter(self, client):
        response = client.get('/api/issues?status=Done')
        assert response.status_code == 400

    def test_get_issue(self, client, post_issue, auth_headers):
        issue_id = post_issue().get_json()["id"]

        response = client.get(f'/api/issues/{issue_id}', headers=auth_headers(NEIGHBOUR))

        assert response.status_code == 200
        assert "upvote" in response.get_json()["_links"]

    def test_get_missing_issue(self, client):
        response = client.get('/api/issues/507f1f77bcf86cd799439011')

        assert response.status_code == 404
        assert response.get_json()["title"] == "NotFound"


class TestEditAndDeleteEndpoints:

    def test_owner_edit(self, client, post_issue, auth_headers):
        issue_id = post_issue().get_json()["id"]

        response = client.patch(
            f'/api/issues/{issue_id}',
            data=json.dumps({"description": "The leak is getting worse"}),
            headers=auth_headers(CITIZEN)
        )

        assert response.status_code == 200
        data = response.get_json()
        assert data["description"] == "The leak is getting worse"
        assert data["timeline"][0]["action"] == "Issue edited by user"

    def test_other_user_cannot_edit(self, client, post_issue, auth_headers):
        issue_id = post_issue().get_json()["id"]

        response = client.patch(
            f'/api/issues/{issue_id}',
            data=json.dumps({"title": "Hijacked"}),
            headers=auth_headers(NEIGHBOUR)
        )

        assert response.status_code == 400
        assert response.get_json()["title"] == "NotEditable"

    def test_empty_edit(self, client, post_issue, auth_headers):
        issue_id = post_issue().get_json()["id"]

        response = client.patch(f'/api/issues/{issue_id}', data=json.dumps({}), headers=auth_headers(CITIZEN))

        assert response.status_code == 400
        assert response.get_json()["title"] == "ValidationFailed"

    def test_owner_delete(self, client, post_issue, auth_headers):
        issue_id = post_issue().get_json()["id"]
        client.post(f'/api/issues/{issue_id}/upvote', headers=auth_headers(NEIGHBOUR))

        response = client.delete(f'/api/issues/{issue_id}', headers=auth_headers(CITIZEN))

        assert response.status_code == 200
        assert response.get_json() == {"deleted": True, "id": issue_id, "removed_votes": 1}
        assert client.get(f'/api/issues/{issue_id}').status_code == 404

    def test_admin_cannot_delete_others_issue(self, client, post_issue, auth_headers, seed_user):
        seed_user("admin@example.com", UserRole.ADMIN)
        issue_id = post_issue().get_json()["id"]

        response = client.delete(f'/api/issues/{issue_id}', headers=auth_headers("admin@example.com"))

        assert response.status_code == 403
        assert response.get_json()["title"] == "NotOwner"


class TestUpvoteEndpoint:

    def test_upvote_once(self, client, post_issue, auth_headers):
        issue_id = post_issue().get_json()["id"]

        first = client.post(f'/api/issues/{issue_id}/upvote', headers=auth_headers(NEIGHBOUR))
        second = client.post(f'/api/issues/{issue_id}/upvote', headers=auth_headers(NEIGHBOUR))

        assert first.status_code == 200
        assert first.get_json() == {"id": issue_id, "upvote_count": 1}
        assert second.status_code == 409
        assert second.get_json()["title"] == "AlreadyVoted"
        assert client.get(f'/api/issues/{issue_id}').get_json()["upvote_count"] == 1

    def test_self_vote(self, client, post_issue, auth_headers):
        issue_id = post_issue().get_json()["id"]

        response = client.post(f'/api/issues/{issue_id}/upvote', headers=auth_headers(CITIZEN))

        assert response.status_code == 400
        assert response.get_json()["title"] == "SelfVote"

    def test_upvote_missing_issue(self, client, auth_headers):
        response = client.post('/api/issues/507f1f77bcf86cd799439011/upvote', headers=auth_headers(NEIGHBOUR))
        assert response.status_code == 404
