from __future__ import annotations

from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest
from fakes import project_request
from kubernetes.client.exceptions import ApiException

from projectlimit.admission.validator import ProjectRequestLimitValidator
from projectlimit.providers import k8s_provider as kp
from projectlimit.providers.stores import NotFoundError, StoreError


def _ns(name: str, requester: Optional[str], phase: Optional[str]) -> SimpleNamespace:
    annotations = {"openshift.io/requester": requester} if requester else None
    return SimpleNamespace(
        metadata=SimpleNamespace(name=name, annotations=annotations),
        status=SimpleNamespace(phase=phase),
    )


class _FakeCoreV1:
    def __init__(self, items: List[Any], *, error: Optional[Exception] = None) -> None:
        self.items = items
        self.error = error
        self.calls = 0

    def list_namespace(self):  # type: ignore[no-untyped-def]
        self.calls += 1
        if self.error is not None:
            raise self.error
        return SimpleNamespace(items=self.items)


class _FakeCustomObjects:
    def __init__(self, by_plural: Dict[str, Any]) -> None:
        self.by_plural = by_plural

    def list_cluster_custom_object(self, *, group: str, version: str, plural: str) -> Dict[str, Any]:
        v = self.by_plural.get(plural)
        if isinstance(v, Exception):
            raise v
        return {"items": v or []}


_POLICY = {
    "apiVersion": "project.openshift.io/v1",
    "kind": "ProjectRequestLimit",
    "metadata": {"name": "cluster"},
    "limits": [{"selector": {}, "maxProjects": 1}],
}


def _cache(core: Any, custom: Any) -> kp.KubernetesSnapshotCache:
    return kp.KubernetesSnapshotCache(refresh_seconds=5, core_v1=core, custom_objects=custom)


def test_list_namespace_records_reads_annotation_and_phase() -> None:
    core = _FakeCoreV1([_ns("a", "alice", "Active"), _ns("b", "alice", "Terminating"), _ns("c", None, None)])
    records = kp.list_namespace_records(core)
    assert [(r.name, r.requester, r.phase) for r in records] == [
        ("a", "alice", "Active"),
        ("b", "alice", "Terminating"),
        ("c", None, "Active"),
    ]


def test_list_namespace_records_wraps_errors() -> None:
    with pytest.raises(StoreError):
        kp.list_namespace_records(_FakeCoreV1([], error=RuntimeError("connection refused")))


def test_custom_resource_not_served_is_empty() -> None:
    custom = _FakeCustomObjects({"users": ApiException(status=404, reason="Not Found")})
    assert kp.list_user_labels(custom) == {}


def test_custom_resource_forbidden_is_store_error() -> None:
    custom = _FakeCustomObjects({"projectrequestlimits": ApiException(status=403, reason="Forbidden")})
    with pytest.raises(StoreError):
        kp.list_project_request_limits(custom)


def test_invalid_policy_objects_are_reported_by_name() -> None:
    bad = {"metadata": {"name": "broken"}, "limits": [{"selector": {}, "maxProjects": -1}]}
    custom = _FakeCustomObjects({"projectrequestlimits": [bad, _POLICY]})
    policies, invalid = kp.list_project_request_limits(custom)
    assert [p.name for p in policies] == ["cluster"]
    assert list(invalid) == ["broken"]


def test_invalid_cluster_policy_fails_closed() -> None:
    bad = {"metadata": {"name": "cluster"}, "limits": [{"selector": {}, "maxProjects": -1}]}
    core = _FakeCoreV1([_ns(f"alice-{i}", "alice", "Active") for i in range(50)])
    custom = _FakeCustomObjects({"users": [{"metadata": {"name": "alice"}}], "projectrequestlimits": [bad]})
    cache = _cache(core, custom)
    cache.refresh()

    with pytest.raises(StoreError):
        cache.get_policy("cluster")
    validator = ProjectRequestLimitValidator(policy_store=cache, identity_store=cache, namespace_store=cache)
    decision = validator.evaluate(project_request("alice"))
    assert decision.allowed is False
    assert decision.error_kind == "InternalError"
    assert decision.code == 500


def test_cache_refuses_reads_before_sync() -> None:
    cache = _cache(_FakeCoreV1([]), _FakeCustomObjects({}))
    assert cache.synced is False
    with pytest.raises(StoreError):
        cache.get_policy("cluster")
    with pytest.raises(StoreError):
        cache.list_namespaces()


def test_cache_refresh_populates_all_stores() -> None:
    core = _FakeCoreV1([_ns("p1", "alice", "Active")])
    custom = _FakeCustomObjects(
        {
            "users": [{"metadata": {"name": "alice", "labels": {"tier": "gold"}}}],
            "projectrequestlimits": [_POLICY],
        }
    )
    cache = _cache(core, custom)
    cache.refresh()

    assert cache.synced is True
    assert cache.wait_for_sync(0) is True
    assert cache.get_policy("cluster").limits[0].max_projects == 1
    assert cache.get_user_labels("alice") == {"tier": "gold"}
    assert [n.requester for n in cache.list_namespaces()] == ["alice"]
    with pytest.raises(NotFoundError):
        cache.get_user_labels("bob")


def test_failed_refresh_keeps_previous_snapshot() -> None:
    core = _FakeCoreV1([_ns("p1", "alice", "Active")])
    cache = _cache(core, _FakeCustomObjects({"projectrequestlimits": [_POLICY]}))
    cache.refresh()

    core.error = RuntimeError("apiserver down")
    with pytest.raises(StoreError):
        cache.refresh()
    assert [n.name for n in cache.list_namespaces()] == ["p1"]
    assert cache.get_policy("cluster").name == "cluster"


def test_background_thread_syncs_and_stops() -> None:
    core = _FakeCoreV1([])
    cache = _cache(core, _FakeCustomObjects({}))
    cache.start()
    try:
        assert cache.wait_for_sync(5) is True
    finally:
        cache.stop()
    assert core.calls >= 1


def test_background_thread_records_last_error() -> None:
    cache = _cache(_FakeCoreV1([], error=RuntimeError("unauthorized")), _FakeCustomObjects({}))
    cache.start()
    try:
        assert cache.wait_for_sync(0.2) is False
    finally:
        cache.stop()
    assert "unauthorized" in (cache.last_error or "")
