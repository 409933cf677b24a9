# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
CORS middleware for the citizen and dashboard frontend.
"""

from flask import Flask, request, make_response
from typing import List, Optional
import os
import logging

logger = logging.getLogger(__name__)

ALLOWED_METHODS = ['GET', 'POST', 'PATCH', 'DELETE', 'OPTIONS']
ALLOWED_HEADERS = ['Accept', 'Authorization', 'Content-Type', 'X-Request-ID', 'X-Trace-ID']
EXPOSE_HEADERS = ['Content-Type', 'X-Request-ID', 'X-Trace-ID']


class CORSMiddleware:
    """Answers preflights and adds CORS headers for allowed origins."""

    def __init__(self, app: Flask, allowed_origins: Optional[List[str]] = None, max_age: int = 86400):
        self.app = app
        self.allowed_origins = allowed_origins or self._get_default_origins(app)
        self.max_age = max_age
        self.register_cors_handlers()

    def _get_default_origins(self, app: Flask) -> List[str]:
        """Frontend URL plus any CORS_ALLOWED_ORIGINS entries."""
        origins = [app.config.get('FRONTEND_URL', 'http://localhost:5173')]

        if app.config.get('ENVIRONMENT') == 'development':
            origins.extend(['http://localhost:5173', 'http://127.0.0.1:5173'])

        custom_origins = os.getenv('CORS_ALLOWED_ORIGINS')
        if custom_origins:
            origins.extend(origin.strip() for origin in custom_origins.split(','))

        return [origin.rstrip('/') for origin in origins if origin]

    def is_origin_allowed(self, origin: Optional[str]) -> bool:
        if not origin:
            return False
        return '*' in self.allowed_origins or origin.rstrip('/') in self.allowed_origins

    def add_cors_headers(self, response, origin: str):
        response.headers['Access-Control-Allow-Origin'] = origin
        response.headers['Access-Control-Allow-Credentials'] = 'true'
        response.headers['Access-Control-Allow-Methods'] = ', '.join(ALLOWED_METHODS)
        response.headers['Access-Control-Allow-Headers'] = ', '.join(ALLOWED_HEADERS)
        response.headers['Access-Control-Expose-Headers'] = ', '.join(EXPOSE_HEADERS)
        response.headers['Access-Control-Max-Age'] = str(self.max_age)
        return response

    def register_cors_handlers(self):
        """Register CORS handlers with Flask application."""

        @self.app.before_request
        def handle_preflight():
            if request.method != 'OPTIONS':
                return None

            origin = request.headers.get('Origin')
            if not self.is_origin_allowed(origin):
                logger.warning(f"CORS preflight rejected for origin: {origin}")
                return make_response('', 403)

            return self.add_cors_headers(make_response('', 200), origin)

        @self.app.after_request
        def add_cors_headers_to_response(response):
            origin = request.headers.get('Origin')
            if request.method != 'OPTIONS' and self.is_origin_allowed(origin):
                self.add_cors_headers(response, origin)
            return response


def configure_cors(app: Flask, **kwargs) -> CORSMiddleware:
    """Configure CORS for the Flask application."""
    return CORSMiddleware(app, **kwargs)
