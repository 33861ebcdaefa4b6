"""SQLite implementation of ContentRepository."""
from __future__ import annotations
import json
import sqlite3
from typing import Any, Dict, List, Optional

from eduflow.domain.common.errors import ConcurrentModificationError, ConflictError, NotFoundError
from eduflow.domain.content.models import ContentItem, from_document, to_document
from eduflow.persistence.db import get_connection
from eduflow.persistence.interfaces.content_repository import ContentRepository
from eduflow.persistence.query import compile_sql, resolve_ordering


def _row_to_item(row) -> ContentItem:
    return from_document(json.loads(row["document"]))


def _params(item: ContentItem) -> Dict[str, Any]:
    doc = to_document(item)
    return {
        "id": item.id,
        "name": item.name,
        "kind": item.kind.value,
        "owner_id": item.owner_id,
        "organization_id": item.organization_id,
        "visibility": item.visibility.value,
        "status": item.status.value,
        "edit_request_pending": 1 if item.edit_request_pending else 0,
        "edit_requested_at": item.edit_requested_at,
        "is_deleted": 1 if item.is_deleted else 0,
        "deleted_at": item.deleted_at,
        "version": item.version,
        "created_at": item.created_at,
        "updated_at": item.updated_at,
        "document": json.dumps(doc),
    }


class SqliteContentRepository(ContentRepository):

    def __init__(self, database_path: Optional[str] = None):
        self._database_path = database_path

    def _connect(self) -> sqlite3.Connection:
        return get_connection(self._database_path)

    def get(self, item_id: str) -> Optional[ContentItem]:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT document FROM content_items WHERE id = ?", (item_id,)
            ).fetchone()
        finally:
            conn.close()
        return _row_to_item(row) if row else None

    def save(self, item: ContentItem, expected_version: Optional[int] = None) -> None:
        params = _params(item)
        conn = self._connect()
        try:
            with conn:
                if expected_version is None:
                    conn.execute(
                        """
                        INSERT INTO content_items (
                            id, name, kind, owner_id, organization_id, visibility, status,
                            edit_request_pending, edit_requested_at, is_deleted, deleted_at,
                            version, created_at, updated_at, document
                        ) VALUES (
                            :id, :name, :kind, :owner_id, :organization_id, :visibility, :status,
                            :edit_request_pending, :edit_requested_at, :is_deleted, :deleted_at,
                            :version, :created_at, :updated_at, :document
                        )
                        """,
                        params,
                    )
                    return

                cur = conn.execute(
                    """
                    UPDATE content_items SET
                        name                 = :name,
                        visibility           = :visibility,
                        status               = :status,
                        edit_request_pending = :edit_request_pending,
                        edit_requested_at    = :edit_requested_at,
                        is_deleted           = :is_deleted,
                        deleted_at           = :deleted_at,
                        version              = :version,
                        updated_at           = :updated_at,
                        document             = :document
                    WHERE id = :id AND version = :expected_version
                    """,
                    {**params, "expected_version": expected_version},
                )
                if cur.rowcount == 0:
                    exists = conn.execute(
                        "SELECT 1 FROM content_items WHERE id = ?", (item.id,)
                    ).fetchone()
                    if not exists:
                        raise NotFoundError(f"Content '{item.id}' not found.")
                    raise ConcurrentModificationError(item.id, expected_version)
        except sqlite3.IntegrityError as e:
            if "name" in str(e):
                raise ConflictError(f"Content name '{item.name}' already exists.") from e
            raise ConflictError(f"Content '{item.id}' already exists.") from e
        finally:
            conn.close()

    def find_matching(self, predicate: Dict[str, Any], order_by: str = "created_at_desc") -> List[ContentItem]:
        where_sql, params = compile_sql(predicate)
        field, descending = resolve_ordering(order_by)
        conn = self._connect()
        try:
            rows = conn.execute(
                f"SELECT document FROM content_items WHERE {where_sql} "
                f"ORDER BY {field} {'DESC' if descending else 'ASC'}, rowid {'DESC' if descending else 'ASC'}",
                params,
            ).fetchall()
        finally:
            conn.close()
        return [_row_to_item(r) for r in rows]

    def count_matching(self, predicate: Dict[str, Any]) -> int:
        where_sql, params = compile_sql(predicate)
        conn = self._connect()
        try:
            row = conn.execute(
                f"SELECT COUNT(*) FROM content_items WHERE {where_sql}", params
            ).fetchone()
        finally:
            conn.close()
        return int(row[0])

    def exists_by_name(self, name: str, exclude_id: Optional[str] = None) -> bool:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT 1 FROM content_items WHERE name = ? AND id != ?",
                (name, exclude_id or ""),
            ).fetchone()
        finally:
            conn.close()
        return row is not None

    def get_by_name(self, name: str) -> Optional[ContentItem]:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT document FROM content_items WHERE name = ?", (name,)
            ).fetchone()
        finally:
            conn.close()
        return _row_to_item(row) if row else None
