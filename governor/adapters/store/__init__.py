"""Document store adapter layer - abstracts over the hosted database."""

from governor.adapters.store.base import AbstractDocumentStore, Document, DocumentNotFoundError
from governor.adapters.store.factory import create_document_store
from governor.adapters.store.in_memory import InMemoryDocumentStore

__all__ = [
    "AbstractDocumentStore",
    "Document",
    "DocumentNotFoundError",
    "InMemoryDocumentStore",
    "create_document_store",
]
