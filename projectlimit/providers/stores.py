"""Read-only lookup stores consumed by the admission engine.

The engine only ever reads; every store is a snapshot refreshed elsewhere (a snapshot file,
or the Kubernetes cache in `k8s_provider`). Tests substitute `SnapshotStore` directly.
"""

from __future__ import annotations

import threading
from typing import Dict, Iterable, List, Optional, Protocol, runtime_checkable

from projectlimit.core.models import NamespaceRecord, ProjectRequestLimit


class NotFoundError(LookupError):
    """The requested object does not exist in the store."""

    def __init__(self, kind: str, name: str) -> None:
        super().__init__(f'{kind} "{name}" not found')
        self.kind = kind
        self.name = name


class StoreError(RuntimeError):
    """The store could not answer (backend unreachable, not synced, ...)."""


@runtime_checkable
class PolicyStore(Protocol):
    def get_policy(self, name: str) -> ProjectRequestLimit: ...


@runtime_checkable
class IdentityStore(Protocol):
    def get_user_labels(self, name: str) -> Dict[str, str]: ...


@runtime_checkable
class NamespaceStore(Protocol):
    def list_namespaces(self) -> List[NamespaceRecord]: ...


class SnapshotStore:
    """
    In-memory implementation of all three stores.

    The whole snapshot is swapped under a lock by `replace()`, so concurrent readers see
    either the old or the new state, never a mix.
    """

    def __init__(
        self,
        *,
        policies: Optional[Iterable[ProjectRequestLimit]] = None,
        users: Optional[Dict[str, Dict[str, str]]] = None,
        namespaces: Optional[Iterable[NamespaceRecord]] = None,
        invalid_policies: Optional[Dict[str, str]] = None,
    ) -> None:
        self._lock = threading.Lock()
        self._policies: Dict[str, ProjectRequestLimit] = {}
        self._invalid_policies: Dict[str, str] = {}
        self._users: Dict[str, Dict[str, str]] = {}
        self._namespaces: List[NamespaceRecord] = []
        self.replace(policies=policies, users=users, namespaces=namespaces, invalid_policies=invalid_policies)

    def replace(
        self,
        *,
        policies: Optional[Iterable[ProjectRequestLimit]] = None,
        users: Optional[Dict[str, Dict[str, str]]] = None,
        namespaces: Optional[Iterable[NamespaceRecord]] = None,
        invalid_policies: Optional[Dict[str, str]] = None,
    ) -> None:
        new_policies = {p.name: p for p in (policies or [])}
        new_users = {name: dict(labels or {}) for name, labels in (users or {}).items()}
        new_namespaces = list(namespaces or [])
        new_invalid = dict(invalid_policies or {})
        with self._lock:
            self._policies = new_policies
            self._users = new_users
            self._namespaces = new_namespaces
            self._invalid_policies = new_invalid

    def get_policy(self, name: str) -> ProjectRequestLimit:
        with self._lock:
            policy = self._policies.get(name)
            invalid = self._invalid_policies.get(name)
        if invalid is not None:
            # The object exists but cannot be read; that is not the same as "no policy".
            raise StoreError(f'projectrequestlimit "{name}" is invalid: {invalid}')
        if policy is None:
            raise NotFoundError("projectrequestlimit", name)
        return policy

    def get_user_labels(self, name: str) -> Dict[str, str]:
        with self._lock:
            labels = self._users.get(name)
        if labels is None:
            raise NotFoundError("user", name)
        return dict(labels)

    def list_namespaces(self) -> List[NamespaceRecord]:
        with self._lock:
            return list(self._namespaces)

    def counts(self) -> Dict[str, int]:
        with self._lock:
            return {
                "policies": len(self._policies),
                "invalid_policies": len(self._invalid_policies),
                "users": len(self._users),
                "namespaces": len(self._namespaces),
            }
