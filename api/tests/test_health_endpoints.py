# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for the health endpoint and application-wide error handling.
"""

import json
from unittest.mock import patch

from services.mongodb import PersistenceError


class TestHealthEndpoint:

    def test_healthy(self, client):
        response = client.get('/api/healthz')

        assert response.status_code == 200
        data = response.get_json()
        assert data["status"] == "healthy"
        assert data["service"] == "cityfix-api"
        assert data["dependencies"]["mongodb"]["status"] == "healthy"
        assert data["_links"]["self"]["href"] == "http://testserver/api/healthz"

    def test_unhealthy_store(self, client, store):
        with patch.object(store, "health_check", return_value={"status": "unhealthy", "error": "timeout"}):
            response = client.get('/api/healthz')

        assert response.status_code == 503
        assert response.get_json()["status"] == "unhealthy"


class TestErrorHandling:

    def test_unknown_route_is_problem(self, client):
        response = client.get('/api/nothing-here')

        assert response.status_code == 404
        assert response.get_json()["type"].endswith("/resource-not-found")

    def test_store_failure_maps_to_503(self, client, store):
        with patch.object(store, "find", side_effect=PersistenceError("Failed to find documents in issues")):
            response = client.get('/api/issues')

        assert response.status_code == 503
        data = response.get_json()
        assert data["type"].endswith("/persistence-failure")

    def test_store_failure_during_write(self, client, store, auth_headers):
        headers = auth_headers("citizen@example.com")
        with patch.object(store, "insert", side_effect=PersistenceError("Failed to create document in issues")):
            response = client.post('/api/issues', data=json.dumps({
                "title": "Leak",
                "description": "Leak",
                "category": "Water"
            }), headers=headers)

        assert response.status_code == 503

    def test_cors_headers_for_frontend(self, client):
        response = client.get('/api/healthz', headers={'Origin': 'http://localhost:5173'})

        assert response.headers.get('Access-Control-Allow-Origin') == 'http://localhost:5173'
