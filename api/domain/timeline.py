# SPDX-License-Identifier: Apache-2.0

"""
Timeline entry construction. Timelines are newest-first and append-only.
"""

from typing import List, Optional

from models.entities import TimelineEntry, SYSTEM_ACTOR

ISSUE_REPORTED = "Issue reported by citizen"
ISSUE_EDITED = "Issue edited by user"
ISSUE_REJECTED = "Issue rejected by admin"
ISSUE_BOOSTED = "Issue boosted to High priority"


def status_changed(status: str) -> str:
    return f"Status changed to {status}"


def assigned_to_staff(staff_email: str) -> str:
    return f"Assigned to staff: {staff_email}"


def build_entry(action: str, actor: Optional[str] = None) -> TimelineEntry:
    """Create a timeline entry, attributing it to System when no actor is given."""
    return TimelineEntry(action=action, actor=actor or SYSTEM_ACTOR)


def prepend_entry(timeline: List[TimelineEntry], entry: TimelineEntry) -> List[TimelineEntry]:
    """Return a new timeline with entry at index 0 and prior entries in order."""
    return [entry] + list(timeline)
