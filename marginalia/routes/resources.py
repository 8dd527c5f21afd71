"""Resource endpoints: listing, reading, creation, metadata and visibility."""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends

from marginalia.http.dependencies import get_resource_repository
from marginalia.http.envelope import success
from marginalia.http.identity import get_requester_id, require_requester_id
from marginalia.logic.repository_resources import ResourceRepository
from marginalia.logic.validation import parse_payload
from marginalia.logic.visibility import list_visible, readable_resource, writable_resource
from marginalia.logic.wire import resource_to_wire
from marginalia.models.payloads import ResourceCreate, ResourceUpdate, VisibilityUpdate

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get(
    "/resources",
    summary="List resources visible to the requester",
    operation_id="listResources",
    tags=["Resources"],
)
def list_resources(
    requester_id: Optional[str] = Depends(get_requester_id),
    repo: ResourceRepository = Depends(get_resource_repository),
):
    resources = list_visible(repo, requester_id)
    return success([resource_to_wire(r, include_markers=False) for r in resources])


@router.get(
    "/resources/public",
    summary="List public resources",
    operation_id="listPublicResources",
    tags=["Resources"],
)
def list_public_resources(repo: ResourceRepository = Depends(get_resource_repository)):
    return success([resource_to_wire(r, include_markers=False) for r in repo.list_public_resources()])


@router.get(
    "/resources/{resource_id}",
    summary="Get a resource with its sections and markers",
    operation_id="getResource",
    tags=["Resources"],
)
def get_resource(
    resource_id: str,
    requester_id: Optional[str] = Depends(get_requester_id),
    repo: ResourceRepository = Depends(get_resource_repository),
):
    resource = readable_resource(repo, resource_id, requester_id)
    return success(resource_to_wire(resource))


@router.post(
    "/resources",
    summary="Create a resource with its initial sections",
    operation_id="createResource",
    tags=["Resources"],
)
def create_resource(
    payload: Any = Body(None),
    requester_id: str = Depends(require_requester_id),
    repo: ResourceRepository = Depends(get_resource_repository),
):
    data = parse_payload(ResourceCreate, payload)
    resource = repo.create_resource(requester_id, data)
    return success(resource_to_wire(resource), status_code=201)


@router.put(
    "/resources/{resource_id}",
    summary="Update resource metadata",
    operation_id="updateResource",
    tags=["Resources"],
)
def update_resource(
    resource_id: str,
    payload: Any = Body(None),
    requester_id: Optional[str] = Depends(get_requester_id),
    repo: ResourceRepository = Depends(get_resource_repository),
):
    writable_resource(repo, resource_id, requester_id)
    patch = parse_payload(ResourceUpdate, payload)
    return success(resource_to_wire(repo.update_resource(resource_id, patch)))


@router.patch(
    "/resources/{resource_id}/visibility",
    summary="Toggle public visibility",
    operation_id="setResourceVisibility",
    tags=["Resources", "Visibility"],
)
def set_visibility(
    resource_id: str,
    payload: Any = Body(None),
    requester_id: Optional[str] = Depends(get_requester_id),
    repo: ResourceRepository = Depends(get_resource_repository),
):
    writable_resource(repo, resource_id, requester_id)
    data = parse_payload(VisibilityUpdate, payload)
    resource = repo.set_visibility(resource_id, data.is_public)
    return success({"id": resource.id, "isPublic": resource.is_public})


@router.delete(
    "/resources/{resource_id}",
    summary="Delete a resource and everything beneath it",
    operation_id="deleteResource",
    tags=["Resources"],
)
def delete_resource(
    resource_id: str,
    requester_id: Optional[str] = Depends(get_requester_id),
    repo: ResourceRepository = Depends(get_resource_repository),
):
    writable_resource(repo, resource_id, requester_id)
    repo.delete_resource(resource_id)
    return success(None)


__all__ = ["router"]
