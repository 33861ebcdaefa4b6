"""
Lifecycle state machine for content items.

    draft ──submit──▶ pending_approval ──approve──▶ approved ──request_edit──▶ (edit request pending)
      ▲                 │        │                                                   │
      │         request_changes  reject                                   approve_edit_request
      │                 ▼        ▼                                                   ▼
      └──── restore   draft    rejected ──submit──▶ pending_approval ◀──submit── editing

Any non-deleted item can be archived by an admin; any item can be soft-deleted,
and restoring a deleted item puts it back in draft.

Every function here is pure: it takes an item and returns ``Result[ContentItem]``
holding a new item (history appended, version bumped) or a typed error. The
input item is never mutated.
"""
from __future__ import annotations
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from eduflow.domain.common.errors import ConflictError, InvalidStateTransition, ValidationError
from eduflow.domain.common.result import Result
from eduflow.domain.content.models import (
    DELETED,
    AuditLog,
    ContentItem,
    ContentKind,
    ContentStatus,
    HistoryEntry,
    Visibility,
)

_ALL_STATUSES = frozenset(s.value for s in ContentStatus)
_EDITABLE = frozenset({ContentStatus.DRAFT.value, ContentStatus.EDITING.value, ContentStatus.REJECTED.value})

# Source states from which each operation may run. ``deleted`` only ever appears for restore.
ALLOWED_FROM: Dict[str, frozenset] = {
    "submit_for_review": _EDITABLE,
    "approve": frozenset({ContentStatus.PENDING_APPROVAL.value}),
    "reject": frozenset({ContentStatus.PENDING_APPROVAL.value}),
    "request_changes": frozenset({ContentStatus.PENDING_APPROVAL.value}),
    "request_edit": frozenset({ContentStatus.APPROVED.value}),
    "approve_edit_request": _ALL_STATUSES,
    "reject_edit_request": _ALL_STATUSES,
    "archive": _ALL_STATUSES - {ContentStatus.ARCHIVED.value},
    "soft_delete": _ALL_STATUSES,
    "restore": frozenset({DELETED}),
    "update_content": _EDITABLE,
}

# What the operation is asking for, reported back in InvalidStateTransition.
REQUESTED: Dict[str, str] = {
    "submit_for_review": ContentStatus.PENDING_APPROVAL.value,
    "approve": ContentStatus.APPROVED.value,
    "reject": ContentStatus.REJECTED.value,
    "request_changes": "changes_requested",
    "request_edit": "edit_request_pending",
    "approve_edit_request": ContentStatus.EDITING.value,
    "reject_edit_request": "edit_request_rejected",
    "archive": ContentStatus.ARCHIVED.value,
    "soft_delete": DELETED,
    "restore": ContentStatus.DRAFT.value,
    "update_content": "updated",
}

UPDATABLE_FIELDS = ("name", "description", "body", "visibility")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return str(uuid.uuid4())


def record(item: ContentItem, actor_id: str, action: str, note: Optional[str] = None) -> ContentItem:
    """Append one history entry, bump the version and touch ``updated_at``."""
    now = _now_iso()
    entry = HistoryEntry(date=now, actor_id=actor_id, action=action, note=note)
    return replace(item, history=item.history.append(entry), version=item.version + 1, updated_at=now)


def check_transition(
    item: ContentItem, operation: str, requested: Optional[str] = None
) -> Optional[InvalidStateTransition]:
    """Return the error for an illegal source state, or None when the operation may run."""
    allowed = ALLOWED_FROM[operation]
    if item.state not in allowed:
        return InvalidStateTransition(
            item.state,
            requested or REQUESTED[operation],
            f"Cannot {operation.replace('_', ' ')}: current state is '{item.state}'.",
        )
    return None


def _require_reason(reason: Optional[str], operation: str) -> Optional[ValidationError]:
    if not (reason or "").strip():
        return ValidationError(f"A reason is required to {operation.replace('_', ' ')}.")
    return None


def _validate_name(name: Optional[str]) -> Result[str]:
    name = (name or "").strip()
    if not name:
        return Result.fail(ValidationError("Content 'name' is required and cannot be empty."))
    return Result.ok(name)


# ------------------------------------------------------------------
# CREATE
# ------------------------------------------------------------------
def create_item(
    owner_id: str,
    name: str,
    body: Optional[List[Any]] = None,
    organization_id: Optional[str] = None,
    visibility: Visibility = Visibility.PUBLIC,
    description: str = "",
    kind: ContentKind = ContentKind.TOPIC,
) -> Result[ContentItem]:
    """Build a brand-new item in draft, version 1, with a single ``created`` history entry."""
    validation = _validate_name(name)
    if not validation.is_success:
        return Result.fail(validation.error)

    now = _now_iso()
    item = ContentItem(
        id=_new_id(),
        name=validation.value,
        description=description or "",
        body=list(body or []),
        kind=kind,
        owner_id=owner_id,
        organization_id=organization_id,
        visibility=visibility,
        status=ContentStatus.DRAFT,
        created_at=now,
        updated_at=now,
        history=AuditLog((HistoryEntry(date=now, actor_id=owner_id, action="created"),)),
        version=1,
    )
    return Result.ok(item)


# ------------------------------------------------------------------
# REVIEW CYCLE
# ------------------------------------------------------------------
def submit_for_review(item: ContentItem, actor_id: str) -> Result[ContentItem]:
    error = check_transition(item, "submit_for_review")
    if error:
        return Result.fail(error)

    updated = replace(
        item,
        status=ContentStatus.PENDING_APPROVAL,
        edit_request_pending=False,
        edit_requested_by=None,
        edit_requested_at=None,
    )
    return Result.ok(record(updated, actor_id, "submitted_for_review"))


def approve(item: ContentItem, reviewer_id: str) -> Result[ContentItem]:
    error = check_transition(item, "approve")
    if error:
        return Result.fail(error)

    now = _now_iso()
    updated = replace(
        item,
        status=ContentStatus.APPROVED,
        reviewed_by=reviewer_id,
        reviewed_at=now,
        review_comments=None,
        published_at=item.published_at or now,
    )
    return Result.ok(record(updated, reviewer_id, "approved"))


def reject(item: ContentItem, reviewer_id: str, reason: Optional[str]) -> Result[ContentItem]:
    error = _require_reason(reason, "reject") or check_transition(item, "reject")
    if error:
        return Result.fail(error)

    reason = reason.strip()
    updated = replace(
        item,
        status=ContentStatus.REJECTED,
        reviewed_by=reviewer_id,
        reviewed_at=_now_iso(),
        review_comments=reason,
    )
    return Result.ok(record(updated, reviewer_id, "rejected", note=reason))


def request_changes(item: ContentItem, reviewer_id: str, reason: Optional[str]) -> Result[ContentItem]:
    """Send a submission back to its authors. Previously published items go back to editing."""
    target = ContentStatus.EDITING if item.published_at else ContentStatus.DRAFT
    error = _require_reason(reason, "request_changes") or check_transition(
        item, "request_changes", requested=target.value
    )
    if error:
        return Result.fail(error)

    reason = reason.strip()
    updated = replace(
        item,
        status=target,
        reviewed_by=reviewer_id,
        reviewed_at=_now_iso(),
        review_comments=reason,
    )
    return Result.ok(record(updated, reviewer_id, "changes_requested", note=reason))


# ------------------------------------------------------------------
# EDIT-REQUEST SUB-PROTOCOL
# ------------------------------------------------------------------
def request_edit(item: ContentItem, actor_id: str) -> Result[ContentItem]:
    error = check_transition(item, "request_edit")
    if error:
        return Result.fail(error)
    if item.edit_request_pending:
        return Result.fail(ConflictError("There is already a pending edit request for this content."))

    updated = replace(
        item,
        edit_request_pending=True,
        edit_requested_by=actor_id,
        edit_requested_at=_now_iso(),
    )
    return Result.ok(record(updated, actor_id, "requested_edit_permission"))


def _check_pending_edit_request(item: ContentItem, operation: str) -> Optional[InvalidStateTransition]:
    error = check_transition(item, operation)
    if error:
        return error
    if not item.edit_request_pending:
        return InvalidStateTransition(
            item.state, REQUESTED[operation], "No pending edit request for this content."
        )
    return None


def approve_edit_request(item: ContentItem, admin_id: str) -> Result[ContentItem]:
    error = _check_pending_edit_request(item, "approve_edit_request")
    if error:
        return Result.fail(error)

    updated = replace(
        item,
        status=ContentStatus.EDITING,
        edit_request_pending=False,
        edit_requested_by=None,
        edit_requested_at=None,
    )
    return Result.ok(record(updated, admin_id, "approved_edit_request"))


def reject_edit_request(item: ContentItem, admin_id: str) -> Result[ContentItem]:
    error = _check_pending_edit_request(item, "reject_edit_request")
    if error:
        return Result.fail(error)

    updated = replace(
        item,
        edit_request_pending=False,
        edit_requested_by=None,
        edit_requested_at=None,
    )
    return Result.ok(record(updated, admin_id, "rejected_edit_request"))


# ------------------------------------------------------------------
# ARCHIVE / DELETE / RESTORE
# ------------------------------------------------------------------
def archive(item: ContentItem, admin_id: str) -> Result[ContentItem]:
    error = check_transition(item, "archive")
    if error:
        return Result.fail(error)
    # Edit requests only stay pending on approved items
    updated = replace(
        item,
        status=ContentStatus.ARCHIVED,
        edit_request_pending=False,
        edit_requested_by=None,
        edit_requested_at=None,
    )
    return Result.ok(record(updated, admin_id, "archived"))


def soft_delete(item: ContentItem, actor_id: str) -> Result[ContentItem]:
    error = check_transition(item, "soft_delete")
    if error:
        return Result.fail(error)

    updated = replace(item, is_deleted=True, deleted_by=actor_id, deleted_at=_now_iso())
    return Result.ok(record(updated, actor_id, "deleted"))


def restore(item: ContentItem, admin_id: str) -> Result[ContentItem]:
    error = check_transition(item, "restore")
    if error:
        return Result.fail(error)

    updated = replace(
        item,
        status=ContentStatus.DRAFT,
        is_deleted=False,
        deleted_by=None,
        deleted_at=None,
        edit_request_pending=False,
        edit_requested_by=None,
        edit_requested_at=None,
    )
    return Result.ok(record(updated, admin_id, "restored"))


# ------------------------------------------------------------------
# CONTENT EDITS
# ------------------------------------------------------------------
def update_content(item: ContentItem, editor_id: str, changes: Dict[str, Any]) -> Result[ContentItem]:
    """Apply editable field changes. Only draft, editing and rejected items accept edits."""
    error = check_transition(item, "update_content")
    if error:
        return Result.fail(error)

    unknown = set(changes) - set(UPDATABLE_FIELDS)
    if unknown:
        return Result.fail(ValidationError(f"Fields cannot be updated: {sorted(unknown)}."))

    fields: Dict[str, Any] = {}
    if "name" in changes:
        validation = _validate_name(changes["name"])
        if not validation.is_success:
            return Result.fail(validation.error)
        fields["name"] = validation.value
    if "description" in changes:
        fields["description"] = changes["description"] or ""
    if "body" in changes:
        fields["body"] = list(changes["body"] or [])
    if "visibility" in changes:
        try:
            fields["visibility"] = Visibility(changes["visibility"])
        except ValueError:
            return Result.fail(ValidationError(f"'{changes['visibility']}' is not a valid visibility."))

    if not fields:
        return Result.fail(ValidationError("No changes supplied."))

    return Result.ok(record(replace(item, **fields), editor_id, "updated"))
