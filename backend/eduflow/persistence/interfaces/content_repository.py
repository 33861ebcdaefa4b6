"""Abstract repository interface for the ContentItem aggregate."""
from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from eduflow.domain.content.models import ContentItem


class ContentRepository(ABC):

    @abstractmethod
    def get(self, item_id: str) -> Optional[ContentItem]:
        """Return the item (deleted or not), or None."""
        ...

    @abstractmethod
    def save(self, item: ContentItem, expected_version: Optional[int] = None) -> None:
        """
        Persist ``item``.

        With ``expected_version=None`` the item is inserted; a clashing id or
        name raises ConflictError. Otherwise the write only happens if the
        stored version still equals ``expected_version``, else
        ConcurrentModificationError (NotFoundError if the item vanished).
        A rename onto a taken name raises ConflictError.
        """
        ...

    @abstractmethod
    def find_matching(self, predicate: Dict[str, Any], order_by: str = "created_at_desc") -> List[ContentItem]:
        """Return every item satisfying ``predicate``."""
        ...

    @abstractmethod
    def count_matching(self, predicate: Dict[str, Any]) -> int:
        ...

    @abstractmethod
    def exists_by_name(self, name: str, exclude_id: Optional[str] = None) -> bool:
        """True if another item already uses ``name``."""
        ...

    @abstractmethod
    def get_by_name(self, name: str) -> Optional[ContentItem]:
        ...
