"""Marker endpoints.

Responses carry the touched marker plus the section's full marker list in
display order for the resource type.
"""

from __future__ import annotations

from typing import Any, List, Optional

from fastapi import APIRouter, Body, Depends

from marginalia.http.dependencies import get_resource_repository
from marginalia.http.envelope import success
from marginalia.http.identity import get_requester_id
from marginalia.logic.repository_resources import ResourceRepository
from marginalia.logic.validation import parse_payload
from marginalia.logic.visibility import writable_resource
from marginalia.logic.wire import marker_to_wire
from marginalia.models.entities import Marker
from marginalia.models.payloads import MarkerInput, MarkerPatch

router = APIRouter()


def _markers_wire(markers: List[Marker]) -> list:
    return [marker_to_wire(m) for m in markers]


@router.post(
    "/resources/{resource_id}/sections/{section_id}/markers",
    summary="Add a marker to a section",
    operation_id="addMarker",
    tags=["Markers"],
)
def add_marker(
    resource_id: str,
    section_id: str,
    payload: Any = Body(None),
    requester_id: Optional[str] = Depends(get_requester_id),
    repo: ResourceRepository = Depends(get_resource_repository),
):
    writable_resource(repo, resource_id, requester_id)
    data = parse_payload(MarkerInput, payload)
    marker, markers = repo.add_marker(resource_id, section_id, requester_id, data)
    body = {"marker": marker_to_wire(marker), "markers": _markers_wire(markers)}
    return success(body, status_code=201)


@router.put(
    "/resources/{resource_id}/sections/{section_id}/markers/{marker_id}",
    summary="Update a marker",
    operation_id="updateMarker",
    tags=["Markers"],
)
def update_marker(
    resource_id: str,
    section_id: str,
    marker_id: str,
    payload: Any = Body(None),
    requester_id: Optional[str] = Depends(get_requester_id),
    repo: ResourceRepository = Depends(get_resource_repository),
):
    writable_resource(repo, resource_id, requester_id)
    patch = parse_payload(MarkerPatch, payload)
    marker, markers = repo.update_marker(resource_id, section_id, marker_id, patch)
    return success({"marker": marker_to_wire(marker), "markers": _markers_wire(markers)})


@router.delete(
    "/resources/{resource_id}/sections/{section_id}/markers/{marker_id}",
    summary="Delete a marker",
    operation_id="deleteMarker",
    tags=["Markers"],
)
def delete_marker(
    resource_id: str,
    section_id: str,
    marker_id: str,
    requester_id: Optional[str] = Depends(get_requester_id),
    repo: ResourceRepository = Depends(get_resource_repository),
):
    writable_resource(repo, resource_id, requester_id)
    markers = repo.delete_marker(resource_id, section_id, marker_id)
    return success({"deletedMarkerId": marker_id, "markers": _markers_wire(markers)})


__all__ = ["router"]
