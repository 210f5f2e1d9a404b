"""
Membership store factory.
Configures which backend holds membership records.
"""

from typing import Optional

from fastapi import Depends

from app.core.config import get_settings
from app.services.admission_controller import AdmissionController
from app.services.interfaces.membership_store import MembershipStore
from app.services.interfaces.memory_store import InMemoryMembershipStore


def build_membership_store(backend: str) -> MembershipStore:
    """
    Build a store for the given backend name.

    - sql:    PostgreSQL conditional UPDATE (default, production)
    - redis:  Lua scripts on Redis
    - memory: single process only, development
    """
    if backend == 'sql':
        from app.db.session import AsyncSessionLocal
        from app.services.sql_membership_store import SqlMembershipStore
        return SqlMembershipStore(AsyncSessionLocal)
    if backend == 'redis':
        from app.services.redis_membership_store import RedisMembershipStore
        return RedisMembershipStore()
    if backend == 'memory':
        return InMemoryMembershipStore()
    raise ValueError(f"Unknown MEMBERSHIP_BACKEND: {backend!r}")


# Singleton instance
_store: Optional[MembershipStore] = None

def get_membership_store() -> MembershipStore:
    """Get membership store singleton (FastAPI dependency)."""
    global _store
    if _store is None:
        _store = build_membership_store(get_settings().MEMBERSHIP_BACKEND)
    return _store


def get_admission_controller(
    store: MembershipStore = Depends(get_membership_store),
) -> AdmissionController:
    """Controller over the configured store (FastAPI dependency)."""
    settings = get_settings()
    return AdmissionController(store, timeout=settings.STORE_TIMEOUT_SECONDS)
