# SPDX-License-Identifier: Apache-2.0

"""
Timeline recorder: durable, newest-first audit appends on issues.
"""

import logging
from typing import Dict, Any, Optional
from opentelemetry import trace

from domain import timeline as timeline_domain
from domain.results import ErrorCode, WorkflowResult
from models.entities import TimelineEntry
from .mongodb import MongoDBService, ISSUES

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class TimelineRecorder:
    """Appends audit entries to the front of an issue timeline."""

    def __init__(self, mongo_service: MongoDBService):
        self.mongo_service = mongo_service

    def record(self, issue_id: str, action: str, actor: Optional[str] = None) -> WorkflowResult:
        """
        Insert a timeline entry at position 0 of the issue's timeline.

        Each call is one independent atomic write. PersistenceError from the
        store propagates to the caller.

        Args:
            issue_id: Issue to annotate
            action: What happened
            actor: Who did it, defaults to System

        Returns:
            WorkflowResult carrying the recorded entry, or NotFound
        """
        entry = timeline_domain.build_entry(action, actor)
        return self.record_entry(issue_id, entry)

    def record_entry(self, issue_id: str, entry: TimelineEntry,
                     fields: Dict[str, Any] = None, guard: Dict[str, Any] = None) -> WorkflowResult:
        """
        Prepend a prepared entry, optionally setting fields in the same write.

        Args:
            issue_id: Issue to annotate
            entry: Timeline entry to prepend
            fields: Document fields to set atomically with the append
            guard: Extra filter values that must still hold for the write to apply
        """
        with tracer.start_as_current_span("timeline.record") as span:
            span.set_attributes({
                "issue.id": issue_id,
                "timeline.action": entry.action,
                "timeline.actor": entry.actor
            })

            filters = {"id": issue_id}
            if guard:
                filters.update(guard)

            matched = self.mongo_service.prepend(ISSUES, filters, "timeline", entry.to_document(), fields)
            if not matched:
                span.set_attribute("timeline.result", "not_found")
                return WorkflowResult.fail(ErrorCode.NOT_FOUND, "Issue not found")

            logger.info(
                "Timeline entry recorded",
                extra={
                    "issue_id": issue_id,
                    "action": entry.action,
                    "actor": entry.actor
                }
            )
            return WorkflowResult.ok(value=entry)
