"""
Service interfaces for dependency inversion.
Allows swapping membership store backends without changing admission logic.
"""

from .membership_store import (
    ADMISSION_PREDICATE,
    JoinPredicate,
    MembershipRecord,
    MembershipStore,
)
from .memory_store import InMemoryMembershipStore

__all__ = [
    'ADMISSION_PREDICATE',
    'JoinPredicate',
    'MembershipRecord',
    'MembershipStore',
    'InMemoryMembershipStore',
]
