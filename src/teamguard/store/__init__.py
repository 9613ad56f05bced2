"""Identity store implementations behind the IdentityStore interface."""

from teamguard.store.base import IdentityStore
from teamguard.store.memory import InMemoryIdentityStore
from teamguard.store.sql import SqlIdentityStore

__all__ = ["IdentityStore", "InMemoryIdentityStore", "SqlIdentityStore"]
