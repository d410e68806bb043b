"""Static snapshot stores for local development (fallback when no cluster is available)."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List

import yaml

from projectlimit.core.models import NamespaceRecord, ProjectRequestLimit
from projectlimit.providers.stores import SnapshotStore

logger = logging.getLogger(__name__)


def _iter_objects(docs: Iterable[Any]) -> Iterable[Dict[str, Any]]:
    for doc in docs:
        if not isinstance(doc, dict):
            continue
        # `kubectl get -o yaml` output wraps objects in a List.
        if str(doc.get("kind") or "").endswith("List"):
            for item in doc.get("items") or []:
                if isinstance(item, dict):
                    yield item
            continue
        yield doc


def snapshot_from_objects(objects: Iterable[Dict[str, Any]]) -> SnapshotStore:
    """
    Build a SnapshotStore from Kubernetes-style object dicts.

    Recognized kinds: Namespace, User, ProjectRequestLimit. Anything else is ignored.
    """
    policies: List[ProjectRequestLimit] = []
    users: Dict[str, Dict[str, str]] = {}
    namespaces: List[NamespaceRecord] = []

    for obj in objects:
        kind = obj.get("kind")
        if kind == "Namespace":
            namespaces.append(NamespaceRecord.from_k8s(obj))
        elif kind == "User":
            metadata = obj.get("metadata") or {}
            name = metadata.get("name")
            if name:
                users[str(name)] = {str(k): str(v) for k, v in (metadata.get("labels") or {}).items()}
        elif kind == "ProjectRequestLimit":
            policies.append(ProjectRequestLimit.from_k8s(obj))
        else:
            logger.debug("Ignoring snapshot object kind=%s", kind)

    return SnapshotStore(policies=policies, users=users, namespaces=namespaces)


def load_snapshot_file(path: str) -> SnapshotStore:
    """
    Load a snapshot from a YAML (or JSON) file.

    The file may hold a single List, or a multi-document YAML stream of objects.
    Label and selector values are compared as strings; an unquoted YAML `yes` becomes "True"
    on both sides.
    """
    text = Path(path).read_text(encoding="utf-8")
    store = snapshot_from_objects(_iter_objects(yaml.safe_load_all(text)))
    logger.info("Loaded snapshot file %s: %s", path, store.counts())
    return store
