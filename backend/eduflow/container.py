"""Dependency injection container: wires implementations to interfaces."""
from __future__ import annotations
from functools import lru_cache

from eduflow.core import config
from eduflow.application.content_app_service import ContentAppService
from eduflow.persistence.interfaces.content_repository import ContentRepository
from eduflow.persistence.repositories.memory.memory_content_repository import MemoryContentRepository
from eduflow.persistence.repositories.sqlite.sqlite_content_repository import SqliteContentRepository


@lru_cache(maxsize=1)
def get_content_repo() -> ContentRepository:
    if config.STORE == "memory":
        return MemoryContentRepository()
    return SqliteContentRepository()


@lru_cache(maxsize=1)
def get_content_app_service() -> ContentAppService:
    return ContentAppService(
        repo=get_content_repo(),
        admin_manages_collaborators=config.ADMIN_MANAGES_COLLABORATORS,
    )
