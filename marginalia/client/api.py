"""HTTP client for the resource API that keeps a ``ResourceStore`` current.

Each method performs exactly one request. On success the response is mapped
through ``marginalia.logic.wire`` and applied to the store; on failure the
error message is recorded with ``set_error`` and ``ApiError`` is raised. There
is no automatic retry.

Any ``httpx.Client`` works, including FastAPI's ``TestClient``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from marginalia.client.store import ResourceStore
from marginalia.logic.wire import comment_from_wire, marker_from_wire, resource_from_wire, section_from_wire
from marginalia.models.entities import Comment, Marker, Resource, Section

logger = logging.getLogger(__name__)


class ApiError(Exception):
    def __init__(self, status: int, message: str) -> None:
        super().__init__(message)
        self.status = status
        self.message = message


class ResourceApiClient:
    def __init__(
        self,
        http: httpx.Client,
        store: Optional[ResourceStore] = None,
        *,
        user_id: Optional[str] = None,
        identity_header: str = "X-User-Id",
        prefix: str = "/api",
    ) -> None:
        self.http = http
        self.store = store or ResourceStore()
        self.user_id = user_id
        self.identity_header = identity_header
        self.prefix = prefix.rstrip("/")

    def _headers(self) -> Dict[str, str]:
        return {self.identity_header: self.user_id} if self.user_id else {}

    def _request(self, method: str, path: str, json: Any = None) -> Any:
        self.store.set_loading(True)
        url = f"{self.prefix}{path}"
        try:
            response = self.http.request(method, url, json=json, headers=self._headers())
        except httpx.HTTPError as exc:
            logger.error("api_client.transport_error method=%s url=%s", method, url, exc_info=True)
            self.store.set_error(str(exc) or "Network error")
            raise ApiError(0, str(exc) or "Network error") from exc

        try:
            body = response.json()
        except ValueError:
            body = None
        if response.status_code >= 400 or not isinstance(body, dict) or not body.get("success"):
            message = body.get("error") if isinstance(body, dict) else None
            message = str(message or response.reason_phrase or f"HTTP {response.status_code}")
            logger.info("api_client.error method=%s url=%s status=%s", method, url, response.status_code)
            self.store.set_error(message)
            raise ApiError(response.status_code, message)

        self.store.set_loading(False)
        return body.get("data")

    # Resources

    def list_resources(self) -> List[Resource]:
        resources = [resource_from_wire(r) for r in self._request("GET", "/resources")]
        self.store.set_resource_list(resources)
        return resources

    def list_public_resources(self) -> List[Resource]:
        return [resource_from_wire(r) for r in self._request("GET", "/resources/public")]

    def load_resource(self, resource_id: str) -> Resource:
        resource = resource_from_wire(self._request("GET", f"/resources/{resource_id}"))
        self.store.set_resource(resource)
        return resource

    def create_resource(self, payload: Dict[str, Any]) -> Resource:
        resource = resource_from_wire(self._request("POST", "/resources", payload))
        self.store.create_resource(resource)
        return resource

    def update_resource(self, resource_id: str, patch: Dict[str, Any]) -> Resource:
        resource = resource_from_wire(self._request("PUT", f"/resources/{resource_id}", patch))
        self.store.update_resource(resource)
        return resource

    def set_visibility(self, resource_id: str, is_public: bool) -> bool:
        data = self._request("PATCH", f"/resources/{resource_id}/visibility", {"isPublic": bool(is_public)})
        self.store.set_visibility(resource_id, bool(data["isPublic"]))
        return bool(data["isPublic"])

    def delete_resource(self, resource_id: str) -> None:
        self._request("DELETE", f"/resources/{resource_id}")
        self.store.delete_resource(resource_id)

    # Sections

    def add_section(self, resource_id: str, title: Optional[str] = None, markers: Optional[List[Dict[str, Any]]] = None) -> Section:
        payload: Dict[str, Any] = {"markers": list(markers or [])}
        if title is not None:
            payload["title"] = title
        data = self._request("POST", f"/resources/{resource_id}/sections", payload)
        section = section_from_wire(data["section"])
        self.store.add_section(resource_id, section)
        self.store.reconcile_sections(resource_id, [section_from_wire(s) for s in data["sections"]])
        return section

    def rename_section(self, resource_id: str, section_id: str, title: str) -> Section:
        section = section_from_wire(
            self._request("PUT", f"/resources/{resource_id}/sections/{section_id}", {"title": title})
        )
        self.store.rename_section(resource_id, section_id, section.title)
        return section

    def delete_section(self, resource_id: str, section_id: str) -> List[Section]:
        """Delete on the server, renumber locally, then adopt the server's list."""
        data = self._request("DELETE", f"/resources/{resource_id}/sections/{section_id}")
        self.store.delete_section(resource_id, section_id)
        sections = [section_from_wire(s) for s in data["sections"]]
        self.store.reconcile_sections(resource_id, sections)
        return sections

    # Markers

    def add_marker(self, resource_id: str, section_id: str, payload: Dict[str, Any]) -> Marker:
        data = self._request("POST", f"/resources/{resource_id}/sections/{section_id}/markers", payload)
        marker = marker_from_wire(data["marker"])
        self.store.add_marker(resource_id, section_id, marker)
        self.store.reconcile_markers(resource_id, section_id, [marker_from_wire(m) for m in data["markers"]])
        return marker

    def update_marker(self, resource_id: str, section_id: str, marker_id: str, patch: Dict[str, Any]) -> Marker:
        data = self._request(
            "PUT", f"/resources/{resource_id}/sections/{section_id}/markers/{marker_id}", patch
        )
        marker = marker_from_wire(data["marker"])
        self.store.update_marker(resource_id, section_id, marker)
        self.store.reconcile_markers(resource_id, section_id, [marker_from_wire(m) for m in data["markers"]])
        return marker

    def delete_marker(self, resource_id: str, section_id: str, marker_id: str) -> None:
        data = self._request("DELETE", f"/resources/{resource_id}/sections/{section_id}/markers/{marker_id}")
        self.store.delete_marker(resource_id, section_id, marker_id)
        self.store.reconcile_markers(resource_id, section_id, [marker_from_wire(m) for m in data["markers"]])

    # Comments (not cached)

    def list_comments(self, marker_id: str) -> List[Comment]:
        return [comment_from_wire(c) for c in self._request("GET", f"/comments/marker/{marker_id}")]

    def add_comment(self, marker_id: str, content: str) -> Comment:
        return comment_from_wire(self._request("POST", "/comments", {"markerId": marker_id, "content": content}))

    def update_comment(self, comment_id: str, content: str) -> Comment:
        return comment_from_wire(self._request("PUT", f"/comments/{comment_id}", {"content": content}))

    def delete_comment(self, comment_id: str) -> None:
        self._request("DELETE", f"/comments/{comment_id}")


__all__ = ["ApiError", "ResourceApiClient"]
