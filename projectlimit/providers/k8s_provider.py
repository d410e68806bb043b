"""
Kubernetes-backed read-only stores.

A background thread periodically lists namespaces, users and ProjectRequestLimits and swaps
the in-memory snapshot, so admission decisions never issue a live list-and-count query.
Decisions may therefore see a slightly stale view of the cluster.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Optional, Tuple

from projectlimit.core.models import POLICY_NAME, REQUESTER_ANNOTATION, NamespaceRecord, ProjectRequestLimit
from projectlimit.providers.stores import SnapshotStore, StoreError

logger = logging.getLogger(__name__)

PROJECT_API_GROUP = "project.openshift.io"
PROJECT_API_VERSION = "v1"
PROJECT_REQUEST_LIMITS_PLURAL = "projectrequestlimits"

USER_API_GROUP = "user.openshift.io"
USER_API_VERSION = "v1"
USERS_PLURAL = "users"

_core_v1_api = None
_custom_objects_api = None
_config_loaded = False
_init_lock = threading.Lock()


def _load_config_once() -> None:
    global _config_loaded
    if _config_loaded:
        return
    from kubernetes import config

    # Load kubeconfig (works for both in-cluster and local)
    try:
        config.load_incluster_config()
    except config.ConfigException:
        config.load_kube_config()
    _config_loaded = True


def _get_core_v1():
    """Return a cached CoreV1Api client (thread-safe lazy init)."""
    global _core_v1_api
    if _core_v1_api is not None:
        return _core_v1_api

    with _init_lock:
        if _core_v1_api is not None:
            return _core_v1_api
        from kubernetes import client

        _load_config_once()
        _core_v1_api = client.CoreV1Api()
        return _core_v1_api


def _get_custom_objects():
    """Return a cached CustomObjectsApi client (thread-safe lazy init)."""
    global _custom_objects_api
    if _custom_objects_api is not None:
        return _custom_objects_api

    with _init_lock:
        if _custom_objects_api is not None:
            return _custom_objects_api
        from kubernetes import client

        _load_config_once()
        _custom_objects_api = client.CustomObjectsApi()
        return _custom_objects_api


def _namespace_record(ns: Any) -> NamespaceRecord:
    metadata = getattr(ns, "metadata", None)
    annotations = getattr(metadata, "annotations", None) or {}
    return NamespaceRecord(
        name=getattr(metadata, "name", None) or "",
        requester=annotations.get(REQUESTER_ANNOTATION),
        phase=getattr(getattr(ns, "status", None), "phase", None) or "Active",
    )


def list_namespace_records(core_v1: Any = None) -> List[NamespaceRecord]:
    v1 = core_v1 or _get_core_v1()
    try:
        ns_list = v1.list_namespace()
    except Exception as e:
        raise StoreError(f"Failed to list namespaces: {str(e)}")
    return [_namespace_record(ns) for ns in (getattr(ns_list, "items", None) or [])]


def _list_cluster_custom_objects(custom_objects: Any, *, group: str, version: str, plural: str) -> List[Dict[str, Any]]:
    from kubernetes.client.exceptions import ApiException

    try:
        resp = custom_objects.list_cluster_custom_object(group=group, version=version, plural=plural)
    except ApiException as e:
        if e.status == 404:
            # API not served by this cluster: nothing to cache.
            logger.warning("%s.%s/%s is not served by the API server; treating as empty", plural, group, version)
            return []
        raise StoreError(f"Failed to list {plural}.{group}: {str(e)}")
    except Exception as e:
        raise StoreError(f"Failed to list {plural}.{group}: {str(e)}")
    return [x for x in (resp or {}).get("items") or [] if isinstance(x, dict)]


def list_user_labels(custom_objects: Any = None) -> Dict[str, Dict[str, str]]:
    api = custom_objects or _get_custom_objects()
    users: Dict[str, Dict[str, str]] = {}
    for obj in _list_cluster_custom_objects(api, group=USER_API_GROUP, version=USER_API_VERSION, plural=USERS_PLURAL):
        metadata = obj.get("metadata") or {}
        name = metadata.get("name")
        if name:
            users[str(name)] = {str(k): str(v) for k, v in (metadata.get("labels") or {}).items()}
    return users


def list_project_request_limits(custom_objects: Any = None) -> Tuple[List[ProjectRequestLimit], Dict[str, str]]:
    """
    Parsed policies, plus the parse error for every object that failed validation (by name).

    Invalid objects are kept apart so the store can fail lookups of that name instead of
    reporting the policy as missing.
    """
    api = custom_objects or _get_custom_objects()
    policies: List[ProjectRequestLimit] = []
    invalid: Dict[str, str] = {}
    for obj in _list_cluster_custom_objects(
        api, group=PROJECT_API_GROUP, version=PROJECT_API_VERSION, plural=PROJECT_REQUEST_LIMITS_PLURAL
    ):
        try:
            policies.append(ProjectRequestLimit.from_k8s(obj))
        except Exception as e:
            name = str((obj.get("metadata") or {}).get("name") or POLICY_NAME)
            logger.warning("Invalid ProjectRequestLimit %s: %s", name, str(e))
            invalid[name] = str(e)
    return policies, invalid


class KubernetesSnapshotCache:
    """
    Periodically refreshed snapshot of the three stores.

    Reads before the first successful refresh raise StoreError, which the engine turns into
    an InternalError decision.
    """

    def __init__(self, *, refresh_seconds: int = 30, core_v1: Any = None, custom_objects: Any = None) -> None:
        self.refresh_seconds = refresh_seconds
        self._core_v1 = core_v1
        self._custom_objects = custom_objects
        self._store = SnapshotStore()
        self._synced = threading.Event()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.last_error: Optional[str] = None

    @property
    def synced(self) -> bool:
        return self._synced.is_set()

    def refresh(self) -> None:
        """List everything once and swap the snapshot. Raises StoreError on failure."""
        namespaces = list_namespace_records(self._core_v1)
        users = list_user_labels(self._custom_objects)
        policies, invalid_policies = list_project_request_limits(self._custom_objects)
        self._store.replace(policies=policies, users=users, namespaces=namespaces, invalid_policies=invalid_policies)
        self.last_error = None
        if not self._synced.is_set():
            logger.info("Kubernetes cache synced: %s", self._store.counts())
        self._synced.set()

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                self.refresh()
            except Exception as e:
                # Keep serving the previous snapshot.
                self.last_error = str(e)
                logger.warning("Kubernetes cache refresh failed: %s", str(e))
            self._stop.wait(self.refresh_seconds)

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name="prl-cache-refresh", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None

    def wait_for_sync(self, timeout: float) -> bool:
        return self._synced.wait(timeout)

    def _require_synced(self) -> SnapshotStore:
        if not self._synced.is_set():
            raise StoreError("Kubernetes cache has not synced yet")
        return self._store

    def get_policy(self, name: str) -> ProjectRequestLimit:
        return self._require_synced().get_policy(name)

    def get_user_labels(self, name: str) -> Dict[str, str]:
        return self._require_synced().get_user_labels(name)

    def list_namespaces(self) -> List[NamespaceRecord]:
        return self._require_synced().list_namespaces()
