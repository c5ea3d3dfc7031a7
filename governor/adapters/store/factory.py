"""Factory for creating document store instances."""

from governor.adapters.store.base import AbstractDocumentStore
from governor.adapters.store.in_memory import InMemoryDocumentStore
from governor.core.config import settings
from governor.core.errors import ValidationAppError


def create_document_store() -> AbstractDocumentStore:
    """Instantiate the document store selected by ``APP_STORE_BACKEND``.

    Returns:
        AbstractDocumentStore: Configured store instance.

    Raises:
        ValidationAppError: If the backend name is unknown.
    """
    backend = settings.app.store_backend.lower()

    if backend == "memory":
        return InMemoryDocumentStore()

    raise ValidationAppError(
        code="store_unknown_backend",
        message=f"Unknown document store backend: '{backend}'. Supported backends: memory",
    )
