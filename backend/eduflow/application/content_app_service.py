"""Application service: orchestrates load → authorize → state machine → conditional persist."""
from __future__ import annotations
from typing import Any, Callable, Dict, List, Optional

from eduflow.core.logging_config import get_logger
from eduflow.domain.common.errors import (
    ConflictError,
    DomainError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from eduflow.domain.common.result import Result
from eduflow.domain.content import lifecycle, ownership
from eduflow.domain.content.models import (
    ContentItem,
    ContentKind,
    ContentStatus,
    HistoryEntry,
    Visibility,
    to_document,
)
from eduflow.domain.content.ownership import Relation
from eduflow.domain.content.visibility import all_of, build_visibility_filter, tenant_scope
from eduflow.domain.identity import AUTHOR_ROLES, Caller
from eduflow.persistence.interfaces.content_repository import ContentRepository
from eduflow.persistence.query import matches

logger = get_logger(__name__)

OWNER = "owner"
COLLABORATOR = "collaborator"
REVIEWER = "reviewer"
ADMIN = "admin"

# Who may run each operation. Role grants (reviewer, admin) are tenant-scoped;
# relation grants (owner, collaborator) are not.
POLICY: Dict[str, frozenset] = {
    "submit_for_review": frozenset({OWNER, COLLABORATOR, ADMIN}),
    "request_edit": frozenset({OWNER, COLLABORATOR, ADMIN}),
    "update_content": frozenset({OWNER, COLLABORATOR, ADMIN}),
    "approve": frozenset({REVIEWER, ADMIN}),
    "reject": frozenset({REVIEWER, ADMIN}),
    "request_changes": frozenset({REVIEWER, ADMIN}),
    "approve_edit_request": frozenset({ADMIN}),
    "reject_edit_request": frozenset({ADMIN}),
    "archive": frozenset({ADMIN}),
    "restore": frozenset({ADMIN}),
    "soft_delete": frozenset({OWNER, ADMIN}),
}


def _coerce(enum_cls, value, label: str) -> Result:
    try:
        return Result.ok(enum_cls(value))
    except ValueError:
        return Result.fail(ValidationError(f"'{value}' is not a valid {label}."))


class ContentAppService:
    def __init__(self, repo: ContentRepository, admin_manages_collaborators: bool = False):
        self._repo = repo
        self._admin_manages_collaborators = admin_manages_collaborators

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _load(self, item_id: str) -> Result[ContentItem]:
        item = self._repo.get(item_id)
        if not item:
            return Result.fail(NotFoundError(f"Content '{item_id}' not found."))
        return Result.ok(item)

    @staticmethod
    def _out_of_tenant(caller: Caller, item: ContentItem) -> bool:
        return bool(caller.organization_id) and item.organization_id != caller.organization_id

    def _authorize(self, caller: Optional[Caller], item: ContentItem, operation: str) -> Optional[ForbiddenError]:
        if caller is None:
            return ForbiddenError("Authentication required.")

        allowed = POLICY[operation]
        relation = ownership.resolve(item, caller.id)
        if relation == Relation.OWNER and OWNER in allowed:
            return None
        if relation == Relation.COLLABORATOR and COLLABORATOR in allowed:
            return None

        role_granted = (ADMIN in allowed and caller.is_admin) or (REVIEWER in allowed and caller.is_reviewer)
        if role_granted:
            if self._out_of_tenant(caller, item):
                return ForbiddenError("Content belongs to another organization.")
            return None

        return ForbiddenError(
            f"Role '{caller.role.value}' cannot {operation.replace('_', ' ')} this content."
        )

    def _require_role(self, caller: Optional[Caller], reviewer: bool = False) -> Optional[ForbiddenError]:
        if caller is None:
            return ForbiddenError("Authentication required.")
        if reviewer and not caller.is_reviewer:
            return ForbiddenError("Only reviewers and admins can access this listing.")
        if not reviewer and not caller.is_admin:
            return ForbiddenError("Only admins can access this listing.")
        return None

    def _persist(self, caller: Caller, item: ContentItem, operation: str,
                 expected_version: Optional[int]) -> Result[ContentItem]:
        try:
            self._repo.save(item, expected_version=expected_version)
        except DomainError as e:
            logger.warning(
                "content_write_failed",
                content_id=item.id,
                action=operation,
                actor_id=caller.id,
                error=e.code,
            )
            return Result.fail(e)

        logger.info(
            "content_transitioned",
            content_id=item.id,
            action=operation,
            actor_id=caller.id,
            status=item.status.value,
            version=item.version,
        )
        return Result.ok(item)

    def _transition(
        self,
        caller: Optional[Caller],
        item_id: str,
        operation: str,
        apply: Callable[[ContentItem], Result[ContentItem]],
    ) -> Result[ContentItem]:
        loaded = self._load(item_id)
        if not loaded.is_success:
            return loaded
        item = loaded.value

        error = self._authorize(caller, item, operation)
        if error:
            return Result.fail(error)

        result = apply(item)
        if not result.is_success:
            return result

        return self._persist(caller, result.value, operation, expected_version=item.version)

    def _readable(self, caller: Optional[Caller], item: ContentItem, include_deleted: bool = False) -> bool:
        if caller is not None and ownership.can_edit(item, caller.id) and not item.is_deleted:
            return True
        doc = to_document(item)
        if include_deleted:
            # Evaluate the visibility rules as though the item were live
            doc["is_deleted"] = False
        return matches(doc, build_visibility_filter(caller))

    def _list(self, predicate: Dict[str, Any], order_by: str = "created_at_desc") -> Result[List[ContentItem]]:
        try:
            return Result.ok(self._repo.find_matching(predicate, order_by=order_by))
        except DomainError as e:
            return Result.fail(e)

    # ------------------------------------------------------------------
    # CREATE
    # ------------------------------------------------------------------
    def create(
        self,
        caller: Optional[Caller],
        name: str,
        body: Optional[List[Any]] = None,
        organization_id: Optional[str] = None,
        visibility: Any = Visibility.PUBLIC,
        description: str = "",
        kind: Any = ContentKind.TOPIC,
    ) -> Result[ContentItem]:
        if caller is None:
            return Result.fail(ForbiddenError("Authentication required."))
        if caller.role not in AUTHOR_ROLES:
            return Result.fail(ForbiddenError(f"Role '{caller.role.value}' cannot create content."))

        organization_id = organization_id or caller.organization_id
        if caller.organization_id and organization_id != caller.organization_id:
            return Result.fail(ForbiddenError("Cannot create content for another organization."))

        parsed_visibility = _coerce(Visibility, visibility, "visibility")
        if not parsed_visibility.is_success:
            return parsed_visibility
        parsed_kind = _coerce(ContentKind, kind, "content kind")
        if not parsed_kind.is_success:
            return parsed_kind

        result = lifecycle.create_item(
            owner_id=caller.id,
            name=name,
            body=body,
            organization_id=organization_id,
            visibility=parsed_visibility.value,
            description=description,
            kind=parsed_kind.value,
        )
        if not result.is_success:
            return result

        if self._repo.exists_by_name(result.value.name):
            return Result.fail(ConflictError(f"Content name '{result.value.name}' already exists."))

        return self._persist(caller, result.value, "create", expected_version=None)

    # ------------------------------------------------------------------
    # READ
    # ------------------------------------------------------------------
    def find_by_id(self, caller: Optional[Caller], item_id: str, include_deleted: bool = False) -> Result[ContentItem]:
        include_deleted = include_deleted and caller is not None and caller.is_admin
        item = self._repo.get(item_id)
        if not item or (item.is_deleted and not include_deleted):
            return Result.fail(NotFoundError(f"Content '{item_id}' not found."))
        try:
            readable = self._readable(caller, item, include_deleted=include_deleted)
        except DomainError as e:
            return Result.fail(e)
        if not readable:
            return Result.fail(NotFoundError(f"Content '{item_id}' not found."))
        return Result.ok(item)

    def find_by_name(self, caller: Optional[Caller], name: str) -> Result[ContentItem]:
        item = self._repo.get_by_name(name)
        if not item or item.is_deleted:
            return Result.fail(NotFoundError(f"Content named '{name}' not found."))
        return self.find_by_id(caller, item.id)

    def list_for_caller(self, caller: Optional[Caller], kind: Optional[str] = None) -> Result[List[ContentItem]]:
        try:
            predicate = build_visibility_filter(caller)
        except DomainError as e:
            return Result.fail(e)
        if kind:
            parsed = _coerce(ContentKind, kind, "content kind")
            if not parsed.is_success:
                return Result.fail(parsed.error)
            predicate = all_of(predicate, {"kind": parsed.value.value})
        return self._list(predicate)

    def list_mine(self, caller: Optional[Caller]) -> Result[List[ContentItem]]:
        if caller is None:
            return Result.fail(ForbiddenError("Authentication required."))
        return self._list({"owner_id": caller.id, "is_deleted": False})

    def list_pending(self, caller: Optional[Caller]) -> Result[List[ContentItem]]:
        error = self._require_role(caller, reviewer=True)
        if error:
            return Result.fail(error)
        predicate = all_of(
            {"status": ContentStatus.PENDING_APPROVAL.value, "is_deleted": False},
            tenant_scope(caller),
        )
        return self._list(predicate)

    def list_edit_requests(self, caller: Optional[Caller]) -> Result[List[ContentItem]]:
        error = self._require_role(caller)
        if error:
            return Result.fail(error)
        predicate = all_of({"edit_request_pending": True, "is_deleted": False}, tenant_scope(caller))
        return self._list(predicate, order_by="edit_requested_at_desc")

    def list_deleted(self, caller: Optional[Caller]) -> Result[List[ContentItem]]:
        error = self._require_role(caller)
        if error:
            return Result.fail(error)
        return self._list(all_of({"is_deleted": True}, tenant_scope(caller)), order_by="deleted_at_desc")

    def list_by_status(self, caller: Optional[Caller], status: str) -> Result[List[ContentItem]]:
        error = self._require_role(caller)
        if error:
            return Result.fail(error)
        parsed = _coerce(ContentStatus, status, "status")
        if not parsed.is_success:
            return Result.fail(parsed.error)
        predicate = all_of({"status": parsed.value.value, "is_deleted": False}, tenant_scope(caller))
        return self._list(predicate)

    def get_history(self, caller: Optional[Caller], item_id: str) -> Result[List[HistoryEntry]]:
        found = self.find_by_id(caller, item_id, include_deleted=True)
        if not found.is_success:
            return Result.fail(found.error)
        return Result.ok(list(found.value.history))

    def approval_stats(self, caller: Optional[Caller]) -> Result[Dict[str, int]]:
        error = self._require_role(caller, reviewer=True)
        if error:
            return Result.fail(error)
        scope = tenant_scope(caller)
        stats: Dict[str, int] = {}
        for status in ContentStatus:
            stats[status.value] = self._repo.count_matching(
                all_of({"status": status.value, "is_deleted": False}, scope)
            )
        stats["deleted"] = self._repo.count_matching(all_of({"is_deleted": True}, scope))
        stats["edit_requests"] = self._repo.count_matching(
            all_of({"edit_request_pending": True, "is_deleted": False}, scope)
        )
        stats["total"] = sum(stats[s.value] for s in ContentStatus)
        return Result.ok(stats)

    # ------------------------------------------------------------------
    # UPDATE
    # ------------------------------------------------------------------
    def update_content(self, caller: Optional[Caller], item_id: str, changes: Dict[str, Any]) -> Result[ContentItem]:
        name = (changes.get("name") or "").strip()
        if name and self._repo.exists_by_name(name, exclude_id=item_id):
            return Result.fail(ConflictError(f"Content name '{name}' already exists."))
        return self._transition(
            caller, item_id, "update_content",
            lambda item: lifecycle.update_content(item, caller.id, changes),
        )

    # ------------------------------------------------------------------
    # REVIEW CYCLE
    # ------------------------------------------------------------------
    def submit_for_review(self, caller: Optional[Caller], item_id: str) -> Result[ContentItem]:
        return self._transition(
            caller, item_id, "submit_for_review",
            lambda item: lifecycle.submit_for_review(item, caller.id),
        )

    def approve(self, caller: Optional[Caller], item_id: str) -> Result[ContentItem]:
        return self._transition(
            caller, item_id, "approve",
            lambda item: lifecycle.approve(item, caller.id),
        )

    def reject(self, caller: Optional[Caller], item_id: str, reason: Optional[str]) -> Result[ContentItem]:
        # A missing reason is reported before anything else
        if not (reason or "").strip():
            return Result.fail(ValidationError("A reason is required to reject."))
        return self._transition(
            caller, item_id, "reject",
            lambda item: lifecycle.reject(item, caller.id, reason),
        )

    def request_changes(self, caller: Optional[Caller], item_id: str, reason: Optional[str]) -> Result[ContentItem]:
        if not (reason or "").strip():
            return Result.fail(ValidationError("A reason is required to request changes."))
        return self._transition(
            caller, item_id, "request_changes",
            lambda item: lifecycle.request_changes(item, caller.id, reason),
        )

    # ------------------------------------------------------------------
    # EDIT REQUESTS
    # ------------------------------------------------------------------
    def request_edit(self, caller: Optional[Caller], item_id: str) -> Result[ContentItem]:
        return self._transition(
            caller, item_id, "request_edit",
            lambda item: lifecycle.request_edit(item, caller.id),
        )

    def approve_edit_request(self, caller: Optional[Caller], item_id: str) -> Result[ContentItem]:
        return self._transition(
            caller, item_id, "approve_edit_request",
            lambda item: lifecycle.approve_edit_request(item, caller.id),
        )

    def reject_edit_request(self, caller: Optional[Caller], item_id: str) -> Result[ContentItem]:
        return self._transition(
            caller, item_id, "reject_edit_request",
            lambda item: lifecycle.reject_edit_request(item, caller.id),
        )

    # ------------------------------------------------------------------
    # ARCHIVE / DELETE / RESTORE
    # ------------------------------------------------------------------
    def archive(self, caller: Optional[Caller], item_id: str) -> Result[ContentItem]:
        return self._transition(
            caller, item_id, "archive",
            lambda item: lifecycle.archive(item, caller.id),
        )

    def soft_delete(self, caller: Optional[Caller], item_id: str) -> Result[ContentItem]:
        return self._transition(
            caller, item_id, "soft_delete",
            lambda item: lifecycle.soft_delete(item, caller.id),
        )

    def restore(self, caller: Optional[Caller], item_id: str) -> Result[ContentItem]:
        return self._transition(
            caller, item_id, "restore",
            lambda item: lifecycle.restore(item, caller.id),
        )

    # ------------------------------------------------------------------
    # COLLABORATORS
    # ------------------------------------------------------------------
    def _owner_override(self, caller: Caller, item: ContentItem) -> bool:
        return (
            self._admin_manages_collaborators
            and caller.is_admin
            and not self._out_of_tenant(caller, item)
        )

    def add_collaborator(self, caller: Optional[Caller], item_id: str, collaborator_id: str) -> Result[ContentItem]:
        if caller is None:
            return Result.fail(ForbiddenError("Authentication required."))
        loaded = self._load(item_id)
        if not loaded.is_success:
            return loaded
        item = loaded.value

        result = ownership.add_collaborator(
            item, collaborator_id, caller.id, owner_override=self._owner_override(caller, item)
        )
        if not result.is_success:
            return result
        return self._persist(caller, result.value, "add_collaborator", expected_version=item.version)

    def remove_collaborator(self, caller: Optional[Caller], item_id: str, collaborator_id: str) -> Result[ContentItem]:
        if caller is None:
            return Result.fail(ForbiddenError("Authentication required."))
        loaded = self._load(item_id)
        if not loaded.is_success:
            return loaded
        item = loaded.value

        result = ownership.remove_collaborator(
            item, collaborator_id, caller.id, owner_override=self._owner_override(caller, item)
        )
        if not result.is_success:
            return result
        if result.value.version == item.version:
            # Not a member: nothing to write
            return result
        return self._persist(caller, result.value, "remove_collaborator", expected_version=item.version)
