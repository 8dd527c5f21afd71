"""Section endpoints.

Every mutation that changes numbering answers with the resource's full
ordered section list so clients can replace their copy wholesale.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends

from marginalia.http.dependencies import get_resource_repository
from marginalia.http.envelope import success
from marginalia.http.identity import get_requester_id
from marginalia.logic.repository_resources import ResourceRepository
from marginalia.logic.validation import parse_payload
from marginalia.logic.visibility import writable_resource
from marginalia.logic.wire import section_to_wire
from marginalia.models.payloads import SectionInput, SectionRename

router = APIRouter()


@router.post(
    "/resources/{resource_id}/sections",
    summary="Append a section",
    operation_id="addSection",
    tags=["Sections"],
)
def add_section(
    resource_id: str,
    payload: Any = Body(None),
    requester_id: Optional[str] = Depends(get_requester_id),
    repo: ResourceRepository = Depends(get_resource_repository),
):
    resource = writable_resource(repo, resource_id, requester_id)
    # An empty body appends a section with the default title
    data = parse_payload(SectionInput, {} if payload is None else payload)
    section, sections = repo.add_section(resource_id, data, author_id=requester_id)
    body = {
        "section": section_to_wire(section, resource.type),
        "sections": [section_to_wire(s, resource.type) for s in sections],
    }
    return success(body, status_code=201)


@router.put(
    "/resources/{resource_id}/sections/{section_id}",
    summary="Rename a section",
    operation_id="renameSection",
    tags=["Sections"],
)
def rename_section(
    resource_id: str,
    section_id: str,
    payload: Any = Body(None),
    requester_id: Optional[str] = Depends(get_requester_id),
    repo: ResourceRepository = Depends(get_resource_repository),
):
    resource = writable_resource(repo, resource_id, requester_id)
    data = parse_payload(SectionRename, payload)
    section = repo.rename_section(resource_id, section_id, data.title)
    return success(section_to_wire(section, resource.type))


@router.delete(
    "/resources/{resource_id}/sections/{section_id}",
    summary="Delete a section and renumber the ones after it",
    operation_id="deleteSection",
    tags=["Sections"],
)
def delete_section(
    resource_id: str,
    section_id: str,
    requester_id: Optional[str] = Depends(get_requester_id),
    repo: ResourceRepository = Depends(get_resource_repository),
):
    resource = writable_resource(repo, resource_id, requester_id)
    remaining = repo.delete_section(resource_id, section_id)
    return success(
        {
            "deletedSectionId": section_id,
            "sections": [section_to_wire(s, resource.type) for s in remaining],
        }
    )


__all__ = ["router"]
