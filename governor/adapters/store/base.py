from abc import ABC, abstractmethod
from typing import Any

Document = dict[str, Any]


class DocumentNotFoundError(LookupError):
	"""Raised when a write targets a document that does not exist."""

	def __init__(self, collection: str, doc_id: str) -> None:
		super().__init__(f"{collection}/{doc_id}")
		self.collection = collection
		self.doc_id = doc_id


class AbstractDocumentStore(ABC):
	"""Interface for the remote document store (collections of JSON-like documents).

	Every call is a metered remote operation. Returned documents always carry
	their id under the ``"id"`` key.
	"""

	@abstractmethod
	async def get(self, collection: str, doc_id: str) -> Document | None:
		"""Fetch one document, or None when it does not exist."""
		...

	@abstractmethod
	async def add(self, collection: str, data: Document) -> str:
		"""Insert a document with a generated id and return that id."""
		...

	@abstractmethod
	async def set(self, collection: str, doc_id: str, data: Document) -> None:
		"""Create or replace the document ``doc_id``."""
		...

	@abstractmethod
	async def update(self, collection: str, doc_id: str, fields: Document) -> None:
		"""Merge ``fields`` into an existing document.

		Raises:
			DocumentNotFoundError: If the document does not exist.
		"""
		...

	@abstractmethod
	async def delete(self, collection: str, doc_id: str) -> None:
		"""Delete a document; deleting a missing document is a no-op."""
		...

	@abstractmethod
	async def query(self, collection: str, field: str, value: Any) -> list[Document]:
		"""Return every document whose ``field`` equals ``value``."""
		...

	@abstractmethod
	async def list_all(self, collection: str, *, order_by: str | None = None) -> list[Document]:
		"""Return every document, optionally sorted ascending by ``order_by``."""
		...
