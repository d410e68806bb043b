from __future__ import annotations

from projectlimit.providers.stores import NamespaceStore

# Projects owned by a user that are still terminating and do not count towards the user's
# limit, so recently deleted projects can finish tearing down without blocking new ones.
ALLOWED_TERMINATING_PROJECTS = 2


def project_count_by_requester(username: str, namespace_store: NamespaceStore) -> int:
    """
    Number of projects charged against `username`.

    Iterates the whole (cached) namespace snapshot; clusters have at most a few thousand
    namespaces and project requests are infrequent.
    """
    owned = [ns for ns in namespace_store.list_namespaces() if ns.requester == username]
    terminating = sum(1 for ns in owned if ns.terminating)

    count = len(owned)
    if terminating > ALLOWED_TERMINATING_PROJECTS:
        count -= ALLOWED_TERMINATING_PROJECTS
    else:
        count -= terminating
    return count
