"""Client-side cache of resources, mirroring server ordering rules.

``ResourceStore`` holds an immutable ``StoreState`` and replaces it on every
action. Section renumbering and marker ordering go through
``marginalia.logic.ordering`` so that the cached tree matches what the server
would return after the same mutation. Subscribers are called synchronously
with the new state after each action.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Callable, Iterable, List, Optional, Tuple

from marginalia.logic.ordering import apply_section_delete, sort_markers, sort_sections
from marginalia.models.entities import Marker, Resource, Section

logger = logging.getLogger(__name__)

Listener = Callable[["StoreState"], None]


@dataclass(frozen=True)
class StoreState:
    resources: Tuple[Resource, ...] = field(default_factory=tuple)
    active_resource: Optional[Resource] = None
    is_loading: bool = False
    error: Optional[str] = None


def _replace_section(resource: Resource, section_id: str, fn: Callable[[Section], Section]) -> Resource:
    sections = tuple(fn(s) if s.id == section_id else s for s in resource.sections)
    return replace(resource, sections=sections)


def _with_markers(section: Section, markers: Iterable[Marker], resource_type: str) -> Section:
    return replace(section, markers=tuple(sort_markers(markers, resource_type)))


class ResourceStore:
    def __init__(self, state: Optional[StoreState] = None) -> None:
        self._state = state or StoreState()
        self._listeners: List[Listener] = []

    @property
    def state(self) -> StoreState:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(self, action: str, state: StoreState) -> StoreState:
        self._state = state
        logger.debug("store.%s resources=%s active=%s", action, len(state.resources), bool(state.active_resource))
        for listener in list(self._listeners):
            listener(state)
        return state

    def _update_resource(self, action: str, resource_id: str, fn: Callable[[Resource], Resource]) -> StoreState:
        """Apply ``fn`` to the active resource and to its list entry, if present."""
        active = self._state.active_resource
        new_active = fn(active) if active is not None and active.id == resource_id else None
        resources = tuple(
            (new_active if new_active is not None else fn(r)) if r.id == resource_id else r
            for r in self._state.resources
        )
        return self._commit(
            action,
            replace(
                self._state,
                resources=resources,
                active_resource=new_active if new_active is not None else active,
                error=None,
            ),
        )

    # Resources

    def set_resource_list(self, resources: Iterable[Resource]) -> StoreState:
        return self._commit("set_resource_list", replace(self._state, resources=tuple(resources), error=None))

    def set_resource(self, resource: Optional[Resource]) -> StoreState:
        return self._commit("set_resource", replace(self._state, active_resource=resource, error=None))

    def create_resource(self, resource: Resource) -> StoreState:
        others = tuple(r for r in self._state.resources if r.id != resource.id)
        return self._commit(
            "create_resource",
            replace(self._state, resources=(resource,) + others, active_resource=resource, error=None),
        )

    def update_resource(self, resource: Resource) -> StoreState:
        return self._update_resource("update_resource", resource.id, lambda _current: resource)

    def delete_resource(self, resource_id: str) -> StoreState:
        active = self._state.active_resource
        return self._commit(
            "delete_resource",
            replace(
                self._state,
                resources=tuple(r for r in self._state.resources if r.id != resource_id),
                active_resource=None if active is not None and active.id == resource_id else active,
                error=None,
            ),
        )

    def set_visibility(self, resource_id: str, is_public: bool) -> StoreState:
        return self._update_resource(
            "set_visibility", resource_id, lambda r: replace(r, is_public=bool(is_public))
        )

    # Sections

    def add_section(self, resource_id: str, section: Section) -> StoreState:
        def add(resource: Resource) -> Resource:
            others = [s for s in resource.sections if s.id != section.id]
            return replace(resource, sections=tuple(sort_sections(others + [section])))

        return self._update_resource("add_section", resource_id, add)

    def rename_section(self, resource_id: str, section_id: str, title: str) -> StoreState:
        return self._update_resource(
            "rename_section",
            resource_id,
            lambda r: _replace_section(r, section_id, lambda s: replace(s, title=title)),
        )

    def delete_section(self, resource_id: str, section_id: str) -> StoreState:
        """Drop the section and shift every later sibling down by one."""
        return self._update_resource(
            "delete_section",
            resource_id,
            lambda r: replace(r, sections=tuple(apply_section_delete(r.sections, section_id))),
        )

    def reconcile_sections(self, resource_id: str, sections: Iterable[Section]) -> StoreState:
        """Replace the cached sections with the server's authoritative list."""
        authoritative = tuple(sort_sections(sections))
        return self._update_resource(
            "reconcile_sections", resource_id, lambda r: replace(r, sections=authoritative)
        )

    # Markers

    def add_marker(self, resource_id: str, section_id: str, marker: Marker) -> StoreState:
        def add(resource: Resource) -> Resource:
            return _replace_section(
                resource,
                section_id,
                lambda s: _with_markers(s, [m for m in s.markers if m.id != marker.id] + [marker], resource.type),
            )

        return self._update_resource("add_marker", resource_id, add)

    def update_marker(self, resource_id: str, section_id: str, marker: Marker) -> StoreState:
        def update(resource: Resource) -> Resource:
            return _replace_section(
                resource,
                section_id,
                lambda s: _with_markers(
                    s, [marker if m.id == marker.id else m for m in s.markers], resource.type
                ),
            )

        return self._update_resource("update_marker", resource_id, update)

    def delete_marker(self, resource_id: str, section_id: str, marker_id: str) -> StoreState:
        return self._update_resource(
            "delete_marker",
            resource_id,
            lambda r: _replace_section(
                r, section_id, lambda s: replace(s, markers=tuple(m for m in s.markers if m.id != marker_id))
            ),
        )

    def reconcile_markers(self, resource_id: str, section_id: str, markers: Iterable[Marker]) -> StoreState:
        items = list(markers)
        return self._update_resource(
            "reconcile_markers",
            resource_id,
            lambda r: _replace_section(r, section_id, lambda s: _with_markers(s, items, r.type)),
        )

    # Status

    def set_loading(self, is_loading: bool) -> StoreState:
        return self._commit("set_loading", replace(self._state, is_loading=bool(is_loading)))

    def set_error(self, message: Optional[str]) -> StoreState:
        return self._commit("set_error", replace(self._state, error=message, is_loading=False))

    def clear(self) -> StoreState:
        return self._commit("clear", StoreState())


__all__ = ["ResourceStore", "StoreState", "Listener"]
