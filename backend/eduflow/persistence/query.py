"""Evaluation of visibility predicates against stored documents."""
from __future__ import annotations
from typing import Any, Dict, List, Tuple

from eduflow.domain.common.errors import ValidationError

# Only these document fields may appear in a predicate.
QUERYABLE_FIELDS = {
    "id",
    "name",
    "kind",
    "owner_id",
    "organization_id",
    "visibility",
    "status",
    "edit_request_pending",
    "is_deleted",
}


def _check_field(name: str) -> None:
    if name not in QUERYABLE_FIELDS:
        raise ValidationError(f"Field '{name}' cannot be queried.")


def matches(doc: Dict[str, Any], predicate: Dict[str, Any]) -> bool:
    for key, expected in predicate.items():
        if key == "$or":
            if not any(matches(doc, sub) for sub in expected):
                return False
        elif key == "$and":
            if not all(matches(doc, sub) for sub in expected):
                return False
        else:
            _check_field(key)
            actual = doc.get(key)
            if isinstance(expected, dict) and "$in" in expected:
                if actual not in expected["$in"]:
                    return False
            elif actual != expected:
                return False
    return True


def compile_sql(predicate: Dict[str, Any], params: List[Any] = None) -> Tuple[str, List[Any]]:
    """
    Compile a predicate to a SQL WHERE fragment with positional parameters.
    Column names come from the allow-list only; values are always bound.
    """
    params = [] if params is None else params
    clauses: List[str] = []

    for key, expected in predicate.items():
        if key in ("$or", "$and"):
            subs = ["(" + compile_sql(sub, params)[0] + ")" for sub in expected]
            joiner = " OR " if key == "$or" else " AND "
            clauses.append("(" + joiner.join(subs) + ")" if subs else ("0" if key == "$or" else "1"))
            continue

        _check_field(key)
        if isinstance(expected, dict) and "$in" in expected:
            values = list(expected["$in"])
            if not values:
                clauses.append("0")
                continue
            clauses.append(f"{key} IN ({', '.join('?' for _ in values)})")
            params.extend(_to_sql_value(v) for v in values)
        elif expected is None:
            clauses.append(f"{key} IS NULL")
        else:
            clauses.append(f"{key} = ?")
            params.append(_to_sql_value(expected))

    return (" AND ".join(clauses) if clauses else "1"), params


def _to_sql_value(value: Any) -> Any:
    if isinstance(value, bool):
        return 1 if value else 0
    return value


# Allowed sort values (explicit allow-list; unknown values fall back to newest first)
_ORDERINGS = {
    "created_at_desc": ("created_at", True),
    "created_at_asc": ("created_at", False),
    "updated_at_desc": ("updated_at", True),
    "deleted_at_desc": ("deleted_at", True),
    "edit_requested_at_desc": ("edit_requested_at", True),
}


def resolve_ordering(order_by: str) -> Tuple[str, bool]:
    """Return ``(field, descending)`` for an order_by value."""
    return _ORDERINGS.get((order_by or "").strip().lower(), _ORDERINGS["created_at_desc"])
