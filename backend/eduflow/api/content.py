"""Content lifecycle API endpoints."""
from __future__ import annotations
from typing import Any, Callable, List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from eduflow.api.identity import get_current_caller, optional_current_caller
from eduflow.application.content_app_service import ContentAppService
from eduflow.container import get_content_app_service
from eduflow.core import config
from eduflow.domain.common.errors import ConcurrentModificationError
from eduflow.domain.common.result import Result
from eduflow.domain.content.models import ContentItem, HistoryEntry
from eduflow.domain.identity import Caller

router = APIRouter(tags=["content"])


# ------------------------------------------------------------------
# Pydantic schemas
# ------------------------------------------------------------------
class CreateContentBody(BaseModel):
    name: str
    description: str = ""
    body: List[Any] = []
    organization_id: Optional[str] = None
    visibility: str = "public"
    kind: str = "topic"


class UpdateContentBody(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    body: Optional[List[Any]] = None
    visibility: Optional[str] = None


class ReasonBody(BaseModel):
    reason: Optional[str] = None


class CollaboratorBody(BaseModel):
    user_id: str


# ------------------------------------------------------------------
# Serializers
# ------------------------------------------------------------------
def _serialize_entry(h: HistoryEntry) -> dict:
    return {"date": h.date, "actor_id": h.actor_id, "action": h.action, "note": h.note}


def _serialize_item(c: ContentItem) -> dict:
    return {
        "id": c.id,
        "name": c.name,
        "description": c.description,
        "body": c.body,
        "kind": c.kind.value,
        "owner_id": c.owner_id,
        "collaborator_ids": c.collaborator_ids,
        "organization_id": c.organization_id,
        "visibility": c.visibility.value,
        "status": c.status.value,
        "edit_request_pending": c.edit_request_pending,
        "edit_requested_by": c.edit_requested_by,
        "edit_requested_at": c.edit_requested_at,
        "reviewed_by": c.reviewed_by,
        "reviewed_at": c.reviewed_at,
        "review_comments": c.review_comments,
        "published_at": c.published_at,
        "is_deleted": c.is_deleted,
        "deleted_by": c.deleted_by,
        "deleted_at": c.deleted_at,
        "history": [_serialize_entry(h) for h in c.history],
        "version": c.version,
        "created_at": c.created_at,
        "updated_at": c.updated_at,
    }


# ------------------------------------------------------------------
# Writes: retry a bounded number of times when another request won the race
# ------------------------------------------------------------------
def _write(operation: Callable[[], Result[ContentItem]]) -> dict:
    retrying = Retrying(
        stop=stop_after_attempt(max(config.WRITE_RETRIES, 1)),
        wait=wait_exponential(multiplier=0.05, max=0.5),
        retry=retry_if_exception_type(ConcurrentModificationError),
        reraise=True,
    )
    return _serialize_item(retrying(lambda: operation().unwrap()))


# ------------------------------------------------------------------
# Health check
# ------------------------------------------------------------------
@router.get("/health")
def health():
    return {"status": "ok"}


# ------------------------------------------------------------------
# Listings
# ------------------------------------------------------------------
@router.get("/topics/")
def list_topics(
    kind: Optional[str] = Query(None),
    svc: ContentAppService = Depends(get_content_app_service),
    caller: Optional[Caller] = Depends(optional_current_caller),
):
    return [_serialize_item(c) for c in svc.list_for_caller(caller, kind=kind).unwrap()]


@router.get("/topics/mine")
def list_my_topics(
    svc: ContentAppService = Depends(get_content_app_service),
    caller: Caller = Depends(get_current_caller),
):
    return [_serialize_item(c) for c in svc.list_mine(caller).unwrap()]


@router.get("/topics/pending")
def list_pending_topics(
    svc: ContentAppService = Depends(get_content_app_service),
    caller: Caller = Depends(get_current_caller),
):
    return [_serialize_item(c) for c in svc.list_pending(caller).unwrap()]


@router.get("/topics/edit-requests")
def list_edit_requests(
    svc: ContentAppService = Depends(get_content_app_service),
    caller: Caller = Depends(get_current_caller),
):
    return [_serialize_item(c) for c in svc.list_edit_requests(caller).unwrap()]


@router.get("/topics/trash")
def list_deleted_topics(
    svc: ContentAppService = Depends(get_content_app_service),
    caller: Caller = Depends(get_current_caller),
):
    return [_serialize_item(c) for c in svc.list_deleted(caller).unwrap()]


@router.get("/topics/stats")
def approval_stats(
    svc: ContentAppService = Depends(get_content_app_service),
    caller: Caller = Depends(get_current_caller),
):
    return svc.approval_stats(caller).unwrap()


@router.get("/topics/status/{content_status}")
def list_topics_by_status(
    content_status: str,
    svc: ContentAppService = Depends(get_content_app_service),
    caller: Caller = Depends(get_current_caller),
):
    return [_serialize_item(c) for c in svc.list_by_status(caller, content_status).unwrap()]


@router.get("/topics/name/{name}")
def get_topic_by_name(
    name: str,
    svc: ContentAppService = Depends(get_content_app_service),
    caller: Optional[Caller] = Depends(optional_current_caller),
):
    return _serialize_item(svc.find_by_name(caller, name).unwrap())


# ------------------------------------------------------------------
# Single item
# ------------------------------------------------------------------
@router.post("/topics/", status_code=status.HTTP_201_CREATED)
def create_topic(
    body: CreateContentBody,
    svc: ContentAppService = Depends(get_content_app_service),
    caller: Caller = Depends(get_current_caller),
):
    result = svc.create(
        caller,
        name=body.name,
        body=body.body,
        organization_id=body.organization_id,
        visibility=body.visibility,
        description=body.description,
        kind=body.kind,
    )
    return _serialize_item(result.unwrap())


@router.get("/topics/{item_id}")
def get_topic(
    item_id: str,
    include_deleted: bool = Query(False),
    svc: ContentAppService = Depends(get_content_app_service),
    caller: Optional[Caller] = Depends(optional_current_caller),
):
    return _serialize_item(svc.find_by_id(caller, item_id, include_deleted=include_deleted).unwrap())


@router.get("/topics/{item_id}/history")
def get_topic_history(
    item_id: str,
    svc: ContentAppService = Depends(get_content_app_service),
    caller: Optional[Caller] = Depends(optional_current_caller),
):
    return [_serialize_entry(h) for h in svc.get_history(caller, item_id).unwrap()]


@router.patch("/topics/{item_id}")
def update_topic(
    item_id: str,
    body: UpdateContentBody,
    svc: ContentAppService = Depends(get_content_app_service),
    caller: Caller = Depends(get_current_caller),
):
    changes = body.model_dump(exclude_unset=True)
    return _write(lambda: svc.update_content(caller, item_id, changes))


@router.delete("/topics/{item_id}")
def delete_topic(
    item_id: str,
    svc: ContentAppService = Depends(get_content_app_service),
    caller: Caller = Depends(get_current_caller),
):
    return _write(lambda: svc.soft_delete(caller, item_id))


# ------------------------------------------------------------------
# Lifecycle transitions
# ------------------------------------------------------------------
@router.post("/topics/{item_id}/submit")
def submit_topic(
    item_id: str,
    svc: ContentAppService = Depends(get_content_app_service),
    caller: Caller = Depends(get_current_caller),
):
    return _write(lambda: svc.submit_for_review(caller, item_id))


@router.post("/topics/{item_id}/approve")
def approve_topic(
    item_id: str,
    svc: ContentAppService = Depends(get_content_app_service),
    caller: Caller = Depends(get_current_caller),
):
    return _write(lambda: svc.approve(caller, item_id))


@router.post("/topics/{item_id}/reject")
def reject_topic(
    item_id: str,
    body: ReasonBody,
    svc: ContentAppService = Depends(get_content_app_service),
    caller: Caller = Depends(get_current_caller),
):
    return _write(lambda: svc.reject(caller, item_id, body.reason))


@router.post("/topics/{item_id}/request-changes")
def request_changes(
    item_id: str,
    body: ReasonBody,
    svc: ContentAppService = Depends(get_content_app_service),
    caller: Caller = Depends(get_current_caller),
):
    return _write(lambda: svc.request_changes(caller, item_id, body.reason))


@router.post("/topics/{item_id}/request-edit")
def request_edit(
    item_id: str,
    svc: ContentAppService = Depends(get_content_app_service),
    caller: Caller = Depends(get_current_caller),
):
    return _write(lambda: svc.request_edit(caller, item_id))


@router.post("/topics/{item_id}/approve-edit-request")
def approve_edit_request(
    item_id: str,
    svc: ContentAppService = Depends(get_content_app_service),
    caller: Caller = Depends(get_current_caller),
):
    return _write(lambda: svc.approve_edit_request(caller, item_id))


@router.post("/topics/{item_id}/reject-edit-request")
def reject_edit_request(
    item_id: str,
    svc: ContentAppService = Depends(get_content_app_service),
    caller: Caller = Depends(get_current_caller),
):
    return _write(lambda: svc.reject_edit_request(caller, item_id))


@router.post("/topics/{item_id}/archive")
def archive_topic(
    item_id: str,
    svc: ContentAppService = Depends(get_content_app_service),
    caller: Caller = Depends(get_current_caller),
):
    return _write(lambda: svc.archive(caller, item_id))


@router.post("/topics/{item_id}/restore")
def restore_topic(
    item_id: str,
    svc: ContentAppService = Depends(get_content_app_service),
    caller: Caller = Depends(get_current_caller),
):
    return _write(lambda: svc.restore(caller, item_id))


# ------------------------------------------------------------------
# Collaborators
# ------------------------------------------------------------------
@router.post("/topics/{item_id}/collaborators")
def add_collaborator(
    item_id: str,
    body: CollaboratorBody,
    svc: ContentAppService = Depends(get_content_app_service),
    caller: Caller = Depends(get_current_caller),
):
    return _write(lambda: svc.add_collaborator(caller, item_id, body.user_id))


@router.delete("/topics/{item_id}/collaborators/{collaborator_id}")
def remove_collaborator(
    item_id: str,
    collaborator_id: str,
    svc: ContentAppService = Depends(get_content_app_service),
    caller: Caller = Depends(get_current_caller),
):
    return _write(lambda: svc.remove_collaborator(caller, item_id, collaborator_id))
