"""Visibility and ownership gate for shared resources.

Private resources are readable and writable by their owner only. Public
resources are readable by anyone, including anonymous requesters, and
writable by their owner only. An inaccessible resource yields 403 for reads
and writes alike; 404 is reserved for rows that do not exist.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Protocol

from marginalia.logic.errors import ForbiddenError, UnauthenticatedError
from marginalia.models.entities import Resource

logger = logging.getLogger(__name__)


class VisibleResourceSource(Protocol):
    def list_public_resources(self) -> List[Resource]: ...

    def list_owned_resources(self, owner_id: str) -> List[Resource]: ...

    def get_resource(self, resource_id: str, include_markers: bool = True) -> Resource: ...


def can_read(requester_id: Optional[str], resource: Resource) -> bool:
    if resource.is_public:
        return True
    return requester_id is not None and requester_id == resource.owner_id


def can_write(requester_id: Optional[str], resource: Resource) -> bool:
    return requester_id is not None and requester_id == resource.owner_id


def require_read(requester_id: Optional[str], resource: Resource) -> None:
    if not can_read(requester_id, resource):
        logger.info("visibility.read_denied resource_id=%s requester=%s", resource.id, requester_id)
        raise ForbiddenError("You do not have access to this resource")


def require_write(requester_id: Optional[str], resource: Resource) -> None:
    if requester_id is None:
        raise UnauthenticatedError()
    if not can_write(requester_id, resource):
        logger.info("visibility.write_denied resource_id=%s requester=%s", resource.id, requester_id)
        raise ForbiddenError("Only the owner can modify this resource")


def list_visible(source: VisibleResourceSource, requester_id: Optional[str]) -> List[Resource]:
    """Public resources plus, for an authenticated requester, their own.

    A set union keyed by id, newest first; the requester's public resources
    appear once.
    """
    merged: Dict[str, Resource] = {r.id: r for r in source.list_public_resources()}
    if requester_id is not None:
        for resource in source.list_owned_resources(requester_id):
            merged.setdefault(resource.id, resource)
    return sorted(merged.values(), key=lambda r: (-r.created_at, r.id))


def readable_resource(
    source: VisibleResourceSource, resource_id: str, requester_id: Optional[str], include_markers: bool = True
) -> Resource:
    resource = source.get_resource(resource_id, include_markers=include_markers)
    require_read(requester_id, resource)
    return resource


def writable_resource(source: VisibleResourceSource, resource_id: str, requester_id: Optional[str]) -> Resource:
    """Resolve the resource for a mutation; anonymous callers get 401 before any lookup."""
    if requester_id is None:
        raise UnauthenticatedError()
    resource = source.get_resource(resource_id, include_markers=False)
    require_write(requester_id, resource)
    return resource


__all__ = [
    "VisibleResourceSource",
    "can_read",
    "can_write",
    "require_read",
    "require_write",
    "list_visible",
    "readable_resource",
    "writable_resource",
]
