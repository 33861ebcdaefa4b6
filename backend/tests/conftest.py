"""Shared fixtures: an in-memory store, a service over it, and a cast of callers."""
import pytest

from eduflow.application.content_app_service import ContentAppService
from eduflow.domain.identity import Caller, Role
from eduflow.persistence.repositories.memory.memory_content_repository import MemoryContentRepository


@pytest.fixture
def repo():
    return MemoryContentRepository()


@pytest.fixture
def svc(repo):
    return ContentAppService(repo=repo)


# ------------------------------------------------------------------
# Callers
# ------------------------------------------------------------------
@pytest.fixture
def teacher():
    return Caller(id="t1", role=Role.DOCENTE)


@pytest.fixture
def other_teacher():
    return Caller(id="t2", role=Role.DOCENTE)


@pytest.fixture
def admin():
    return Caller(id="a1", role=Role.ADMIN)


@pytest.fixture
def reviewer():
    return Caller(id="r1", role=Role.REVISOR)


@pytest.fixture
def student():
    return Caller(id="s1", role=Role.ESTUDIANTE)


@pytest.fixture
def org_teacher():
    return Caller(id="t9", role=Role.DOCENTE, organization_id="org-a")


@pytest.fixture
def org_reviewer():
    return Caller(id="r9", role=Role.REVISOR, organization_id="org-a")


@pytest.fixture
def org_student():
    return Caller(id="s9", role=Role.ESTUDIANTE, organization_id="org-a")
