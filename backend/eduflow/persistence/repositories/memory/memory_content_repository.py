"""In-process implementation of ContentRepository, used by tests and embedded setups."""
from __future__ import annotations
import copy
import threading
from typing import Any, Dict, List, Optional

from eduflow.domain.common.errors import ConcurrentModificationError, ConflictError, NotFoundError
from eduflow.domain.content.models import ContentItem, from_document, to_document
from eduflow.persistence.interfaces.content_repository import ContentRepository
from eduflow.persistence.query import matches, resolve_ordering


class MemoryContentRepository(ContentRepository):
    """Stores one document per item; every read hands out a fresh copy."""

    def __init__(self):
        self._docs: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def _name_taken(self, name: str, exclude_id: Optional[str]) -> bool:
        return any(d["name"] == name and d["id"] != exclude_id for d in self._docs.values())

    def get(self, item_id: str) -> Optional[ContentItem]:
        with self._lock:
            doc = self._docs.get(item_id)
            return from_document(copy.deepcopy(doc)) if doc else None

    def save(self, item: ContentItem, expected_version: Optional[int] = None) -> None:
        doc = to_document(item)
        with self._lock:
            if expected_version is None:
                if item.id in self._docs:
                    raise ConflictError(f"Content '{item.id}' already exists.")
                if self._name_taken(item.name, None):
                    raise ConflictError(f"Content name '{item.name}' already exists.")
            else:
                current = self._docs.get(item.id)
                if current is None:
                    raise NotFoundError(f"Content '{item.id}' not found.")
                if current["version"] != expected_version:
                    raise ConcurrentModificationError(item.id, expected_version)
                if self._name_taken(item.name, item.id):
                    raise ConflictError(f"Content name '{item.name}' already exists.")
            self._docs[item.id] = doc

    def find_matching(self, predicate: Dict[str, Any], order_by: str = "created_at_desc") -> List[ContentItem]:
        field, descending = resolve_ordering(order_by)
        with self._lock:
            # Insertion index breaks ties the way rowid does in the SQLite store
            ranked = [
                (copy.deepcopy(d), position)
                for position, d in enumerate(self._docs.values())
                if matches(d, predicate)
            ]
        ranked.sort(key=lambda pair: (pair[0].get(field) or "", pair[1]), reverse=descending)
        return [from_document(d) for d, _ in ranked]

    def count_matching(self, predicate: Dict[str, Any]) -> int:
        with self._lock:
            return sum(1 for d in self._docs.values() if matches(d, predicate))

    def exists_by_name(self, name: str, exclude_id: Optional[str] = None) -> bool:
        with self._lock:
            return self._name_taken(name, exclude_id)

    def get_by_name(self, name: str) -> Optional[ContentItem]:
        with self._lock:
            for d in self._docs.values():
                if d["name"] == name:
                    return from_document(copy.deepcopy(d))
        return None
