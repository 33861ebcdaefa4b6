"""Approval workflow façade: authorization, persistence and end-to-end scenarios."""
import threading

import pytest

from eduflow.application.content_app_service import ContentAppService
from eduflow.domain.common.errors import (
    ConcurrentModificationError,
    ConflictError,
    ForbiddenError,
    InvalidStateTransition,
    NotFoundError,
    ValidationError,
)
from eduflow.domain.content.models import ContentStatus
from eduflow.domain.identity import Caller, Role
from eduflow.persistence.repositories.memory.memory_content_repository import MemoryContentRepository


def _create(svc, caller, name="algebra-101", **kwargs):
    result = svc.create(caller, name=name, body=[{"type": "text", "value": "x"}], **kwargs)
    assert result.is_success, result
    return result.value


def _pending(svc, teacher, name="algebra-101"):
    item = _create(svc, teacher, name=name)
    return svc.submit_for_review(teacher, item.id).unwrap()


# ------------------------------------------------------------------
# Create / read
# ------------------------------------------------------------------
def test_create_persists_draft(svc, repo, teacher):
    item = _create(svc, teacher)
    stored = repo.get(item.id)
    assert stored.status == ContentStatus.DRAFT
    assert stored.owner_id == "t1"
    assert stored.version == 1
    assert [h.action for h in stored.history] == ["created"]


def test_create_duplicate_name_conflicts(svc, teacher, other_teacher):
    _create(svc, teacher)
    result = svc.create(other_teacher, name="algebra-101")
    assert isinstance(result.error, ConflictError)


def test_students_and_reviewers_cannot_create(svc, student, reviewer):
    assert isinstance(svc.create(student, name="x").error, ForbiddenError)
    assert isinstance(svc.create(reviewer, name="x").error, ForbiddenError)
    assert isinstance(svc.create(None, name="x").error, ForbiddenError)


def test_create_inherits_caller_organization(svc, org_teacher):
    item = _create(svc, org_teacher)
    assert item.organization_id == "org-a"
    result = svc.create(org_teacher, name="other", organization_id="org-b")
    assert isinstance(result.error, ForbiddenError)


def test_create_rejects_bad_visibility(svc, teacher):
    assert isinstance(svc.create(teacher, name="x", visibility="hidden").error, ValidationError)


def test_find_by_id(svc, teacher, student):
    item = _create(svc, teacher)
    assert svc.find_by_id(teacher, item.id).value.id == item.id
    # Drafts are hidden from students
    assert isinstance(svc.find_by_id(student, item.id).error, NotFoundError)
    assert isinstance(svc.find_by_id(teacher, "missing").error, NotFoundError)


def test_find_deleted_only_for_admin_with_flag(svc, teacher, admin):
    item = _create(svc, teacher)
    svc.soft_delete(teacher, item.id).unwrap()
    assert isinstance(svc.find_by_id(admin, item.id).error, NotFoundError)
    assert isinstance(svc.find_by_id(teacher, item.id, include_deleted=True).error, NotFoundError)
    assert svc.find_by_id(admin, item.id, include_deleted=True).value.is_deleted is True


def test_find_by_name(svc, teacher):
    item = _create(svc, teacher)
    assert svc.find_by_name(teacher, "algebra-101").value.id == item.id
    assert isinstance(svc.find_by_name(teacher, "nope").error, NotFoundError)


# ------------------------------------------------------------------
# Scenarios
# ------------------------------------------------------------------
def test_publish_path_makes_item_visible_to_public_student(svc, teacher, admin, student):
    item = _create(svc, teacher)
    svc.submit_for_review(teacher, item.id).unwrap()
    approved = svc.approve(admin, item.id).unwrap()
    assert approved.status == ContentStatus.APPROVED
    assert approved.reviewed_by == "a1"

    visible = svc.list_for_caller(student).unwrap()
    assert [i.id for i in visible] == [item.id]
    assert svc.list_for_caller(None).unwrap()[0].id == item.id


def test_reject_path_hides_item_from_students(svc, teacher, admin, student, org_student):
    item = _pending(svc, teacher)
    rejected = svc.reject(admin, item.id, "needs sources").unwrap()
    assert rejected.status == ContentStatus.REJECTED
    assert rejected.review_comments == "needs sources"
    assert svc.list_for_caller(student).unwrap() == []
    assert svc.list_for_caller(org_student).unwrap() == []


def test_collaborator_may_submit_but_not_manage_collaborators(svc, teacher, other_teacher):
    item = _create(svc, teacher)
    svc.add_collaborator(teacher, item.id, "t2").unwrap()

    submitted = svc.submit_for_review(other_teacher, item.id)
    assert submitted.is_success
    assert submitted.value.history.last.actor_id == "t2"

    assert isinstance(svc.add_collaborator(other_teacher, item.id, "t3").error, ForbiddenError)
    assert isinstance(svc.remove_collaborator(other_teacher, item.id, "t2").error, ForbiddenError)


def test_unrelated_teacher_cannot_submit(svc, teacher, other_teacher):
    item = _create(svc, teacher)
    assert isinstance(svc.submit_for_review(other_teacher, item.id).error, ForbiddenError)


def test_admin_bypasses_ownership_for_transitions(svc, teacher, admin):
    item = _create(svc, teacher)
    assert svc.submit_for_review(admin, item.id).is_success


def test_admin_does_not_manage_collaborators_by_default(svc, teacher, admin):
    item = _create(svc, teacher)
    assert isinstance(svc.add_collaborator(admin, item.id, "t2").error, ForbiddenError)


def test_admin_collaborator_override_when_enabled(repo, teacher, admin):
    svc = ContentAppService(repo=repo, admin_manages_collaborators=True)
    item = _create(svc, teacher)
    assert svc.add_collaborator(admin, item.id, "t2").value.collaborator_ids == ["t2"]


def test_reviewer_decisions_require_reviewer_role(svc, teacher, reviewer):
    item = _pending(svc, teacher)
    assert isinstance(svc.approve(teacher, item.id).error, ForbiddenError)
    assert svc.request_changes(reviewer, item.id, "add a summary").value.status == ContentStatus.DRAFT


def test_reason_checked_before_anything_else(svc, teacher, student):
    item = _create(svc, teacher)
    assert isinstance(svc.reject(student, item.id, "").error, ValidationError)
    assert isinstance(svc.request_changes(student, "missing", None).error, ValidationError)


def test_tenant_reviewer_cannot_review_other_org(svc, org_teacher, teacher):
    outsider = Caller(id="r8", role=Role.REVISOR, organization_id="org-b")
    item = _pending(svc, org_teacher)
    assert isinstance(svc.approve(outsider, item.id).error, ForbiddenError)
    unscoped = _pending(svc, teacher, name="unscoped")
    assert isinstance(svc.approve(outsider, unscoped.id).error, ForbiddenError)


def test_edit_request_flow(svc, teacher, admin):
    item = _pending(svc, teacher)
    svc.approve(admin, item.id).unwrap()
    svc.request_edit(teacher, item.id).unwrap()
    assert isinstance(svc.request_edit(teacher, item.id).error, ConflictError)
    assert isinstance(svc.approve_edit_request(teacher, item.id).error, ForbiddenError)

    queue = svc.list_edit_requests(admin).unwrap()
    assert [i.id for i in queue] == [item.id]

    editing = svc.approve_edit_request(admin, item.id).unwrap()
    assert editing.status == ContentStatus.EDITING
    assert editing.edit_request_pending is False

    updated = svc.update_content(teacher, item.id, {"description": "revised"}).unwrap()
    assert updated.description == "revised"
    assert svc.submit_for_review(teacher, item.id).value.status == ContentStatus.PENDING_APPROVAL


def _archive(svc, admin, item_id):
    return svc.archive(admin, item_id)


def _delete_and_restore(svc, admin, item_id):
    svc.soft_delete(admin, item_id).unwrap()
    return svc.restore(admin, item_id)


@pytest.mark.parametrize("leave_approved, expected_status", [
    (_archive, ContentStatus.ARCHIVED),
    (_delete_and_restore, ContentStatus.DRAFT),
])
def test_leaving_approved_drops_pending_edit_request(svc, repo, teacher, admin, leave_approved, expected_status):
    item = _pending(svc, teacher)
    svc.approve(admin, item.id).unwrap()
    svc.request_edit(teacher, item.id).unwrap()
    assert [i.id for i in svc.list_edit_requests(admin).unwrap()] == [item.id]

    moved = leave_approved(svc, admin, item.id).unwrap()
    assert moved.status == expected_status
    assert moved.edit_request_pending is False
    assert repo.get(item.id).edit_request_pending is False
    assert svc.list_edit_requests(admin).unwrap() == []
    assert svc.approval_stats(admin).unwrap()["edit_requests"] == 0

    refused = svc.approve_edit_request(admin, item.id)
    assert isinstance(refused.error, InvalidStateTransition)
    assert repo.get(item.id).status == expected_status


def test_update_content_rename_conflict(svc, teacher):
    _create(svc, teacher, name="first")
    second = _create(svc, teacher, name="second")
    result = svc.update_content(teacher, second.id, {"name": "first"})
    assert isinstance(result.error, ConflictError)
    assert svc.update_content(teacher, second.id, {"name": "second"}).is_success


def test_soft_delete_and_restore(svc, teacher, other_teacher, admin):
    item = _create(svc, teacher)
    svc.add_collaborator(teacher, item.id, "t2").unwrap()
    assert isinstance(svc.soft_delete(other_teacher, item.id).error, ForbiddenError)

    deleted = svc.soft_delete(teacher, item.id).unwrap()
    assert deleted.is_deleted
    assert svc.list_for_caller(admin).unwrap() == []
    assert [i.id for i in svc.list_deleted(admin).unwrap()] == [item.id]
    assert isinstance(svc.restore(teacher, item.id).error, ForbiddenError)

    restored = svc.restore(admin, item.id).unwrap()
    assert restored.status == ContentStatus.DRAFT
    assert not restored.is_deleted
    assert isinstance(svc.restore(admin, item.id).error, InvalidStateTransition)


def test_archive_admin_only(svc, teacher, admin, reviewer):
    item = _create(svc, teacher)
    assert isinstance(svc.archive(reviewer, item.id).error, ForbiddenError)
    assert svc.archive(admin, item.id).value.status == ContentStatus.ARCHIVED


def test_missing_item_is_not_found(svc, admin):
    assert isinstance(svc.approve(admin, "nope").error, NotFoundError)
    assert isinstance(svc.add_collaborator(admin, "nope", "t2").error, NotFoundError)


# ------------------------------------------------------------------
# History
# ------------------------------------------------------------------
def test_history_grows_by_one_per_success_and_not_on_failure(svc, repo, teacher, admin):
    item = _create(svc, teacher)
    steps = [
        lambda: svc.add_collaborator(teacher, item.id, "t2"),
        lambda: svc.submit_for_review(teacher, item.id),
        lambda: svc.approve(admin, item.id),
        lambda: svc.request_edit(teacher, item.id),
        lambda: svc.reject_edit_request(admin, item.id),
        lambda: svc.archive(admin, item.id),
        lambda: svc.soft_delete(admin, item.id),
        lambda: svc.restore(admin, item.id),
    ]
    for step in steps:
        before = repo.get(item.id)
        result = step()
        assert result.is_success, result
        after = repo.get(item.id)
        assert len(after.history) == len(before.history) + 1
        assert after.version == before.version + 1

    before = repo.get(item.id)
    assert not svc.approve(admin, item.id).is_success
    assert not svc.reject(admin, item.id, "").is_success
    after = repo.get(item.id)
    assert after.history == before.history
    assert after.version == before.version

    history = svc.get_history(teacher, item.id).unwrap()
    assert [h.action for h in history] == [
        "created",
        "added_collaborator",
        "submitted_for_review",
        "approved",
        "requested_edit_permission",
        "rejected_edit_request",
        "archived",
        "deleted",
        "restored",
    ]


def test_remove_absent_collaborator_writes_nothing(svc, repo, teacher):
    item = _create(svc, teacher)
    result = svc.remove_collaborator(teacher, item.id, "ghost")
    assert result.is_success
    assert repo.get(item.id).version == 1


# ------------------------------------------------------------------
# Listings
# ------------------------------------------------------------------
def test_pending_queue_is_tenant_scoped(svc, teacher, org_teacher, org_reviewer, reviewer):
    local = _pending(svc, org_teacher, name="local")
    _pending(svc, teacher, name="global")
    assert [i.id for i in svc.list_pending(org_reviewer).unwrap()] == [local.id]
    assert len(svc.list_pending(reviewer).unwrap()) == 2
    assert isinstance(svc.list_pending(teacher).error, ForbiddenError)


def test_list_by_status_and_stats(svc, teacher, admin):
    _create(svc, teacher, name="a")
    b = _pending(svc, teacher, name="b")
    c = _create(svc, teacher, name="c")
    svc.soft_delete(teacher, c.id).unwrap()

    assert [i.id for i in svc.list_by_status(admin, "pending_approval").unwrap()] == [b.id]
    assert isinstance(svc.list_by_status(admin, "bogus").error, ValidationError)

    stats = svc.approval_stats(admin).unwrap()
    assert stats["draft"] == 1
    assert stats["pending_approval"] == 1
    assert stats["deleted"] == 1
    assert stats["total"] == 2


def test_list_mine(svc, teacher, other_teacher):
    mine = _create(svc, teacher, name="mine")
    _create(svc, other_teacher, name="theirs")
    assert [i.id for i in svc.list_mine(teacher).unwrap()] == [mine.id]


def test_caller_from_claims():
    caller = Caller.from_claims({"sub": "t9", "role": "docente", "organization_id": "org-a"})
    assert caller.role == Role.DOCENTE
    assert caller.organization_id == "org-a"
    with pytest.raises(ForbiddenError):
        Caller.from_claims({"sub": "x", "role": "superuser"})


# ------------------------------------------------------------------
# Optimistic concurrency
# ------------------------------------------------------------------
class _BarrierRepo(MemoryContentRepository):
    """Holds every reader until ``parties`` readers have loaded the item."""

    def __init__(self, parties):
        super().__init__()
        self.barrier = None
        self._parties = parties

    def arm(self):
        self.barrier = threading.Barrier(self._parties, timeout=5)

    def get(self, item_id):
        item = super().get(item_id)
        if self.barrier is not None:
            self.barrier.wait()
        return item


def test_concurrent_approvals_exactly_one_wins(teacher, admin, reviewer):
    repo = _BarrierRepo(parties=2)
    svc = ContentAppService(repo=repo)
    item = _pending(svc, teacher)
    repo.arm()

    results = {}

    def run(caller):
        results[caller.id] = svc.approve(caller, item.id)

    threads = [threading.Thread(target=run, args=(c,)) for c in (admin, reviewer)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    outcomes = list(results.values())
    assert sum(r.is_success for r in outcomes) == 1
    failures = [r.error for r in outcomes if not r.is_success]
    assert len(failures) == 1
    assert isinstance(failures[0], ConcurrentModificationError)

    repo.barrier = None
    stored = repo.get(item.id)
    assert stored.status == ContentStatus.APPROVED
    assert [h.action for h in stored.history].count("approved") == 1


def test_stale_write_is_refused(repo, svc, teacher):
    item = _create(svc, teacher)
    stale = repo.get(item.id)
    svc.submit_for_review(teacher, item.id).unwrap()
    with pytest.raises(ConcurrentModificationError):
        repo.save(stale, expected_version=stale.version)
