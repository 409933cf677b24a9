# SPDX-License-Identifier: Apache-2.0

"""
Domain logic package for the CityFix platform.

This package contains the pure rules of the issue lifecycle engine: quota
policy, state machine, timeline entries and upvote eligibility. Domain
functions have no side effects and are testable without external dependencies.
"""
