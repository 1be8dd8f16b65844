"""
Background execution context

Background jobs run detached from the request that started them, so the
tenant identity that was in effect at start time is captured as a plain
``TenantContext`` value and installed into the job's own execution scope
before any repository access happens.
"""

from dataclasses import dataclass
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, AsyncContextManager, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from ..services.history_ledger import HistoryLedger


SYSTEM_USER_NAME = "System"


@dataclass(frozen=True)
class TenantContext:
    """Identity captured when a job starts."""

    organization_id: str
    user_id: Optional[str] = None
    user_name: str = SYSTEM_USER_NAME


class TenantContextService:
    """
    Tenant state owned by one execution scope.

    Each scope gets a fresh instance; nothing here is shared between jobs or
    stored in thread/task-local globals.
    """

    def __init__(self):
        self._context: Optional[TenantContext] = None

    def set_background_context(self, organization_id: str, user_id: Optional[str] = None,
                               user_name: Optional[str] = None) -> None:
        self._context = TenantContext(
            organization_id=organization_id,
            user_id=user_id,
            user_name=user_name or SYSTEM_USER_NAME,
        )

    def clear(self) -> None:
        self._context = None

    @property
    def is_set(self) -> bool:
        return self._context is not None

    @property
    def current(self) -> Optional[TenantContext]:
        return self._context

    def get_current_organization_id(self) -> Optional[str]:
        return self._context.organization_id if self._context else None

    def get_current_user_id(self) -> Optional[str]:
        return self._context.user_id if self._context else None

    def get_current_user_name(self) -> str:
        return self._context.user_name if self._context else SYSTEM_USER_NAME


@dataclass
class ExecutionScope:
    """
    Dependencies owned by one unit of work.

    ``unit_of_work`` is whatever repository abstraction the row processors
    and row fetchers expect (for the PostgreSQL backend it is the scope's own
    connection).
    """

    history: "HistoryLedger"
    tenant: TenantContextService
    unit_of_work: Any = None


ScopeFactory = Callable[[], AsyncContextManager[ExecutionScope]]


@asynccontextmanager
async def background_scope(scope_factory: ScopeFactory, context: TenantContext) -> AsyncIterator[ExecutionScope]:
    """
    Open a fresh execution scope with ``context`` installed.

    Every background entry point goes through here so the tenant is set
    before the job touches any repository.
    """
    async with scope_factory() as scope:
        scope.tenant.set_background_context(context.organization_id, context.user_id, context.user_name)
        try:
            yield scope
        finally:
            scope.tenant.clear()
