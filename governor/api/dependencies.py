"""Composition of the process-wide store and the per-client governors.

This is the only place governors are wired into the application. Every
identified caller gets its own :class:`RequestGovernor` from the registry, so
quotas, cached reads and sign-out stay scoped to that caller. Callers without
an identity share the process default governor.

Tests replace these providers through ``app.dependency_overrides`` or reset
them with :func:`reset_dependencies`.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends

from governor.adapters.store.base import AbstractDocumentStore
from governor.adapters.store.factory import create_document_store
from governor.core.auth import ANONYMOUS_USER_ID, caller_id
from governor.services.game_service import GameService
from governor.services.governor import (
    RequestGovernor,
    get_governor,
    get_governor_registry,
    reset_governor,
)
from governor.services.profile_service import ProfileService

_store: AbstractDocumentStore | None = None


def get_store() -> AbstractDocumentStore:
    global _store
    if _store is None:
        _store = create_document_store()
    return _store


def governor_for(client_id: str) -> RequestGovernor:
    if client_id == ANONYMOUS_USER_ID:
        return get_governor()
    return get_governor_registry().get(client_id)


def get_request_governor(client_id: Annotated[str, Depends(caller_id)]) -> RequestGovernor:
    return governor_for(client_id)


def get_game_service(
    governor: Annotated[RequestGovernor, Depends(get_request_governor)],
) -> GameService:
    return GameService(store=get_store(), governor=governor)


def get_profile_service(
    governor: Annotated[RequestGovernor, Depends(get_request_governor)],
) -> ProfileService:
    return ProfileService(store=get_store(), governor=governor)


def profile_service_for(client_id: str) -> ProfileService:
    """Profile service bound to ``client_id``'s governor (used by sign-in)."""
    return ProfileService(store=get_store(), governor=governor_for(client_id))


def reset_dependencies() -> None:
    """Drop the process-wide store and governors (tests only)."""
    global _store
    _store = None
    reset_governor()
