"""Content domain models: pure Python, no DB or HTTP dependencies."""
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple


class ContentStatus(str, Enum):
    DRAFT = "draft"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"
    EDITING = "editing"
    ARCHIVED = "archived"


class Visibility(str, Enum):
    PUBLIC = "public"
    ORGANIZATION = "organization"
    PRIVATE = "private"


class ContentKind(str, Enum):
    TOPIC = "topic"
    QUIZ = "quiz"
    QUIZ_SET = "quiz_set"


# Pseudo-state reported for soft-deleted items
DELETED = "deleted"


@dataclass(frozen=True)
class HistoryEntry:
    date: str
    actor_id: str
    action: str
    note: Optional[str] = None


class AuditLog:
    """Append-only sequence of history entries. Appending returns a new log."""

    __slots__ = ("_entries",)

    def __init__(self, entries: Tuple[HistoryEntry, ...] = ()):
        self._entries = tuple(entries)

    def append(self, entry: HistoryEntry) -> "AuditLog":
        return AuditLog(self._entries + (entry,))

    @property
    def entries(self) -> Tuple[HistoryEntry, ...]:
        return self._entries

    @property
    def last(self) -> Optional[HistoryEntry]:
        return self._entries[-1] if self._entries else None

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[HistoryEntry]:
        return iter(self._entries)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, AuditLog) and self._entries == other._entries

    def __repr__(self) -> str:
        return f"AuditLog({len(self._entries)} entries)"


@dataclass
class ContentItem:
    id: str
    name: str
    owner_id: str
    created_at: str
    updated_at: str
    description: str = ""
    body: List[Any] = field(default_factory=list)
    kind: ContentKind = ContentKind.TOPIC
    collaborator_ids: List[str] = field(default_factory=list)
    organization_id: Optional[str] = None
    visibility: Visibility = Visibility.PUBLIC
    status: ContentStatus = ContentStatus.DRAFT
    edit_request_pending: bool = False
    edit_requested_by: Optional[str] = None
    edit_requested_at: Optional[str] = None
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[str] = None
    review_comments: Optional[str] = None
    published_at: Optional[str] = None
    is_deleted: bool = False
    deleted_by: Optional[str] = None
    deleted_at: Optional[str] = None
    history: AuditLog = field(default_factory=AuditLog)
    version: int = 1

    @property
    def state(self) -> str:
        """Status as seen by the state machine, with soft delete taking precedence."""
        return DELETED if self.is_deleted else self.status.value


# ------------------------------------------------------------------
# Document mapping (shared by every store)
# ------------------------------------------------------------------
def to_document(item: ContentItem) -> Dict[str, Any]:
    return {
        "id": item.id,
        "name": item.name,
        "description": item.description,
        "body": list(item.body),
        "kind": item.kind.value,
        "owner_id": item.owner_id,
        "collaborator_ids": list(item.collaborator_ids),
        "organization_id": item.organization_id,
        "visibility": item.visibility.value,
        "status": item.status.value,
        "edit_request_pending": item.edit_request_pending,
        "edit_requested_by": item.edit_requested_by,
        "edit_requested_at": item.edit_requested_at,
        "reviewed_by": item.reviewed_by,
        "reviewed_at": item.reviewed_at,
        "review_comments": item.review_comments,
        "published_at": item.published_at,
        "is_deleted": item.is_deleted,
        "deleted_by": item.deleted_by,
        "deleted_at": item.deleted_at,
        "history": [
            {"date": h.date, "actor_id": h.actor_id, "action": h.action, "note": h.note}
            for h in item.history
        ],
        "version": item.version,
        "created_at": item.created_at,
        "updated_at": item.updated_at,
    }


def from_document(doc: Dict[str, Any]) -> ContentItem:
    return ContentItem(
        id=doc["id"],
        name=doc["name"],
        description=doc.get("description") or "",
        body=list(doc.get("body") or []),
        kind=ContentKind(doc.get("kind") or ContentKind.TOPIC.value),
        owner_id=doc["owner_id"],
        collaborator_ids=list(doc.get("collaborator_ids") or []),
        organization_id=doc.get("organization_id"),
        visibility=Visibility(doc.get("visibility") or Visibility.PUBLIC.value),
        status=ContentStatus(doc["status"]),
        edit_request_pending=bool(doc.get("edit_request_pending")),
        edit_requested_by=doc.get("edit_requested_by"),
        edit_requested_at=doc.get("edit_requested_at"),
        reviewed_by=doc.get("reviewed_by"),
        reviewed_at=doc.get("reviewed_at"),
        review_comments=doc.get("review_comments"),
        published_at=doc.get("published_at"),
        is_deleted=bool(doc.get("is_deleted")),
        deleted_by=doc.get("deleted_by"),
        deleted_at=doc.get("deleted_at"),
        history=AuditLog(tuple(
            HistoryEntry(
                date=h["date"],
                actor_id=h["actor_id"],
                action=h["action"],
                note=h.get("note"),
            )
            for h in doc.get("history") or []
        )),
        version=int(doc.get("version") or 1),
        created_at=doc["created_at"],
        updated_at=doc["updated_at"],
    )
