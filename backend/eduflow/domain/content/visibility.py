"""
Visibility filter: turns a caller identity into a read predicate.

Predicates are plain Mongo-style dicts: top-level keys are equality terms that
must all hold, ``$or`` / ``$and`` take lists of sub-predicates and
``{"field": {"$in": [...]}}`` matches any listed value. The persistence layer
evaluates them; nothing here touches storage.
"""
from __future__ import annotations
from typing import Any, Dict, Optional

from eduflow.domain.common.errors import ForbiddenError
from eduflow.domain.content.models import ContentStatus, Visibility
from eduflow.domain.identity import Caller, Role

Predicate = Dict[str, Any]

_APPROVED = ContentStatus.APPROVED.value
_PUBLIC = Visibility.PUBLIC.value


def not_deleted() -> Predicate:
    return {"is_deleted": False}


def all_of(*predicates: Predicate) -> Predicate:
    """Conjunction of predicates, dropping empty ones."""
    parts = [p for p in predicates if p]
    if not parts:
        return {}
    if len(parts) == 1:
        return parts[0]
    return {"$and": parts}


def build_visibility_filter(caller: Optional[Caller]) -> Predicate:
    """Predicate restricting list results to what ``caller`` may see. ``None`` is an anonymous caller."""
    if caller is None:
        return {"status": _APPROVED, "visibility": _PUBLIC, "is_deleted": False}

    org = caller.organization_id

    if caller.role == Role.ESTUDIANTE:
        if not org:
            return {"status": _APPROVED, "visibility": _PUBLIC, "is_deleted": False}
        return {
            "status": _APPROVED,
            "is_deleted": False,
            "$or": [{"organization_id": org}, {"visibility": _PUBLIC}],
        }

    if caller.role == Role.DOCENTE:
        if not org:
            return {
                "is_deleted": False,
                "$or": [
                    {"owner_id": caller.id},
                    {"visibility": _PUBLIC, "status": _APPROVED},
                ],
            }
        return {
            "is_deleted": False,
            "$or": [
                {"owner_id": caller.id},
                {"organization_id": org, "status": _APPROVED},
            ],
        }

    if caller.role in (Role.REVISOR, Role.ADMIN):
        if org:
            return {"is_deleted": False, "organization_id": org}
        # No tenant: global view
        return not_deleted()

    raise ForbiddenError(f"Unrecognized role '{caller.role}'.")


def tenant_scope(caller: Caller) -> Predicate:
    """Restriction applied to reviewer queues: tenant-bound callers only see their organization."""
    if caller.organization_id and caller.role in (Role.REVISOR, Role.ADMIN):
        return {"organization_id": caller.organization_id}
    return {}
