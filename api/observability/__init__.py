# SPDX-License-Identifier: Apache-2.0

"""
Observability package - tracing and request logging.
"""
