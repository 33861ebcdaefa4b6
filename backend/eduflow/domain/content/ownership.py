"""Ownership & collaboration rules for content items."""
from __future__ import annotations
from dataclasses import replace
from enum import Enum

from eduflow.domain.common.errors import ConflictError, ForbiddenError, InvalidStateTransition, ValidationError
from eduflow.domain.common.result import Result
from eduflow.domain.content.lifecycle import record
from eduflow.domain.content.models import DELETED, ContentItem


class Relation(str, Enum):
    OWNER = "owner"
    COLLABORATOR = "collaborator"
    UNRELATED = "unrelated"


def resolve(item: ContentItem, caller_id: str) -> Relation:
    if item.owner_id == caller_id:
        return Relation.OWNER
    if caller_id in item.collaborator_ids:
        return Relation.COLLABORATOR
    return Relation.UNRELATED


def can_edit(item: ContentItem, caller_id: str) -> bool:
    return resolve(item, caller_id) in (Relation.OWNER, Relation.COLLABORATOR)


def add_collaborator(
    item: ContentItem,
    new_collaborator_id: str,
    caller_id: str,
    owner_override: bool = False,
) -> Result[ContentItem]:
    """
    Grant edit rights to ``new_collaborator_id``. Only the owner may do this;
    ``owner_override`` lets the façade extend the right to admins when configured.
    """
    if not owner_override and resolve(item, caller_id) != Relation.OWNER:
        return Result.fail(ForbiddenError("Only the owner can manage collaborators."))
    if item.is_deleted:
        return Result.fail(InvalidStateTransition(DELETED, "collaborator_added"))

    new_collaborator_id = (new_collaborator_id or "").strip()
    if not new_collaborator_id:
        return Result.fail(ValidationError("Collaborator id is required."))
    if new_collaborator_id == item.owner_id:
        return Result.fail(ConflictError("The owner cannot be added as a collaborator."))
    if new_collaborator_id in item.collaborator_ids:
        return Result.fail(ConflictError(f"User '{new_collaborator_id}' is already a collaborator."))

    updated = replace(item, collaborator_ids=item.collaborator_ids + [new_collaborator_id])
    return Result.ok(record(updated, caller_id, "added_collaborator", note=new_collaborator_id))


def remove_collaborator(
    item: ContentItem,
    collaborator_id: str,
    caller_id: str,
    owner_override: bool = False,
) -> Result[ContentItem]:
    """Revoke edit rights. Removing a non-member returns the item untouched."""
    if not owner_override and resolve(item, caller_id) != Relation.OWNER:
        return Result.fail(ForbiddenError("Only the owner can manage collaborators."))
    if item.is_deleted:
        return Result.fail(InvalidStateTransition(DELETED, "collaborator_removed"))

    if collaborator_id not in item.collaborator_ids:
        return Result.ok(item)

    remaining = [uid for uid in item.collaborator_ids if uid != collaborator_id]
    updated = replace(item, collaborator_ids=remaining)
    return Result.ok(record(updated, caller_id, "removed_collaborator", note=collaborator_id))
