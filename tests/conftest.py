"""Shared fixtures: an orchestrator over the in-memory history ledger."""

from typing import Dict, Optional

import pytest

from import_export_orchestrator import (
    ImportExportOrchestrator, EngineSettings, TenantContext, FileStore,
    InMemoryHistoryLedger, CacheInvalidator, InMemoryCacheBackend,
    DuplicateHandlingStrategy, RowProcessorResult
)


class UserRepository:
    """Minimal unit of work standing in for an application's user repository."""

    def __init__(self):
        self.users: Dict[str, Dict[str, str]] = {}
        self.organizations_seen = []

    def find(self, email: str) -> Optional[Dict[str, str]]:
        return self.users.get(email.lower())

    def add(self, row: Dict[str, str]) -> None:
        self.users[row["Email"].lower()] = dict(row)


async def process_user_row(scope, row, strategy):
    """Row processor for tests: Email is the key, Name is required."""
    repo: UserRepository = scope.unit_of_work
    repo.organizations_seen.append(scope.tenant.get_current_organization_id())

    if not row.get("Name"):
        return RowProcessorResult(False, "Name is required")

    existing = repo.find(row["Email"])
    if existing is not None:
        if strategy is DuplicateHandlingStrategy.SKIP:
            return RowProcessorResult(False, None, is_skip=True)
        existing.update(row)
        return RowProcessorResult(True, is_update=True)

    repo.add(row)
    return RowProcessorResult(True)


@pytest.fixture
def tenant():
    return TenantContext(organization_id="org-1", user_id="user-1", user_name="Jane Admin")


@pytest.fixture
def other_tenant():
    return TenantContext(organization_id="org-2", user_id="user-9", user_name="Omar Admin")


@pytest.fixture
def ledger():
    return InMemoryHistoryLedger()


@pytest.fixture
def repository():
    return UserRepository()


@pytest.fixture
def file_store(tmp_path):
    return FileStore(tmp_path / "files")


@pytest.fixture
def cache_backend():
    return InMemoryCacheBackend()


@pytest.fixture
def settings(tmp_path):
    return EngineSettings(
        storage_path=str(tmp_path / "files"),
        max_concurrent_jobs=2,
        history_flush_interval=2,
    )


@pytest.fixture
async def orchestrator(ledger, repository, file_store, cache_backend, settings):
    orchestrator = ImportExportOrchestrator(
        ledger.scope_factory(lambda: repository),
        file_store=file_store,
        settings=settings,
        cache_invalidator=CacheInvalidator(cache_backend),
        enable_cleanup=False,
    )
    await orchestrator.start()
    yield orchestrator
    await orchestrator.stop()


@pytest.fixture
def user_processor():
    return process_user_row
