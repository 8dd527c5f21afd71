"""Client-side cache mirror and API client for the resource service."""

from marginalia.client.api import ApiError, ResourceApiClient
from marginalia.client.store import ResourceStore, StoreState

__all__ = ["ApiError", "ResourceApiClient", "ResourceStore", "StoreState"]
