# SPDX-License-Identifier: Apache-2.0

"""
HTTP routes - thin flask-openapi3 blueprints over the lifecycle engine.
"""
