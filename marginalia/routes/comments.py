"""Marker discussion endpoints.

Reading and posting follow the visibility of the marker's resource; edits and
deletes are limited to the comment's author.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends

from marginalia.http.dependencies import get_comment_repository, get_resource_repository
from marginalia.http.envelope import success
from marginalia.http.identity import get_requester_id, require_requester_id
from marginalia.logic.errors import ForbiddenError
from marginalia.logic.repository_comments import CommentRepository
from marginalia.logic.repository_resources import ResourceRepository
from marginalia.logic.validation import parse_payload
from marginalia.logic.visibility import require_read
from marginalia.logic.wire import comment_to_wire
from marginalia.models.payloads import CommentCreate, CommentUpdate

router = APIRouter()
logger = logging.getLogger(__name__)


def _require_author(comments: CommentRepository, comment_id: str, requester_id: str) -> None:
    comment = comments.get_comment(comment_id)
    if comment.author_id != requester_id:
        logger.info("comment.write_denied comment_id=%s requester=%s", comment_id, requester_id)
        raise ForbiddenError("Only the author can modify this comment")


@router.get(
    "/comments/marker/{marker_id}",
    summary="List comments on a marker, oldest first",
    operation_id="listMarkerComments",
    tags=["Comments"],
)
def list_marker_comments(
    marker_id: str,
    requester_id: Optional[str] = Depends(get_requester_id),
    resources: ResourceRepository = Depends(get_resource_repository),
    comments: CommentRepository = Depends(get_comment_repository),
):
    require_read(requester_id, resources.resource_for_marker(marker_id))
    return success([comment_to_wire(c) for c in comments.list_for_marker(marker_id)])


@router.post(
    "/comments",
    summary="Comment on a marker",
    operation_id="createComment",
    tags=["Comments"],
)
def create_comment(
    payload: Any = Body(None),
    requester_id: str = Depends(require_requester_id),
    resources: ResourceRepository = Depends(get_resource_repository),
    comments: CommentRepository = Depends(get_comment_repository),
):
    data = parse_payload(CommentCreate, payload)
    require_read(requester_id, resources.resource_for_marker(data.marker_id))
    comment = comments.create_comment(data.marker_id, requester_id, data.content)
    return success(comment_to_wire(comment), status_code=201)


@router.put(
    "/comments/{comment_id}",
    summary="Edit a comment",
    operation_id="updateComment",
    tags=["Comments"],
)
def update_comment(
    comment_id: str,
    payload: Any = Body(None),
    requester_id: str = Depends(require_requester_id),
    comments: CommentRepository = Depends(get_comment_repository),
):
    _require_author(comments, comment_id, requester_id)
    data = parse_payload(CommentUpdate, payload)
    return success(comment_to_wire(comments.update_comment(comment_id, data.content)))


@router.delete(
    "/comments/{comment_id}",
    summary="Delete a comment",
    operation_id="deleteComment",
    tags=["Comments"],
)
def delete_comment(
    comment_id: str,
    requester_id: str = Depends(require_requester_id),
    comments: CommentRepository = Depends(get_comment_repository),
):
    _require_author(comments, comment_id, requester_id)
    comments.delete_comment(comment_id)
    return success(None)


__all__ = ["router"]
