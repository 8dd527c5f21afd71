"""Domain event constants and publisher.

Mutations publish a named event after their transaction commits. The
publisher only logs; there is no in-process buffer or subscriber registry.
"""

from __future__ import annotations

from typing import Any, Dict
import logging

logger = logging.getLogger(__name__)

RESOURCE_CREATED = "resource.created"
RESOURCE_UPDATED = "resource.updated"
RESOURCE_DELETED = "resource.deleted"
SECTION_CREATED = "section.created"
SECTION_RENAMED = "section.renamed"
SECTION_DELETED = "section.deleted"
MARKER_CREATED = "marker.created"
MARKER_UPDATED = "marker.updated"
MARKER_DELETED = "marker.deleted"
COMMENT_CREATED = "comment.created"
COMMENT_UPDATED = "comment.updated"
COMMENT_DELETED = "comment.deleted"


def publish(event_type: str, payload: Dict[str, Any]) -> None:
    logger.info("event_publish type=%s payload=%s", event_type, payload)


__all__ = [
    "RESOURCE_CREATED",
    "RESOURCE_UPDATED",
    "RESOURCE_DELETED",
    "SECTION_CREATED",
    "SECTION_RENAMED",
    "SECTION_DELETED",
    "MARKER_CREATED",
    "MARKER_UPDATED",
    "MARKER_DELETED",
    "COMMENT_CREATED",
    "COMMENT_UPDATED",
    "COMMENT_DELETED",
    "publish",
]
