"""Classify the requesting username into service account / system user / regular user."""

from __future__ import annotations

import re
from typing import Dict, Optional, Tuple

from projectlimit.core.models import IdentityKind
from projectlimit.providers.stores import IdentityStore

SERVICE_ACCOUNT_USERNAME_PREFIX = "system:serviceaccount:"
SERVICE_ACCOUNT_USERNAME_SEPARATOR = ":"

_DNS1123_LABEL_MAX_LEN = 63
_DNS1123_SUBDOMAIN_MAX_LEN = 253
_DNS1123_LABEL_RE = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")
_DNS1123_SUBDOMAIN_RE = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*$")


def _is_dns1123_label(value: str) -> bool:
    return len(value) <= _DNS1123_LABEL_MAX_LEN and bool(_DNS1123_LABEL_RE.match(value))


def _is_dns1123_subdomain(value: str) -> bool:
    return len(value) <= _DNS1123_SUBDOMAIN_MAX_LEN and bool(_DNS1123_SUBDOMAIN_RE.match(value))


def split_service_account_username(username: str) -> Optional[Tuple[str, str]]:
    """
    Return (namespace, name) for `system:serviceaccount:<namespace>:<name>`, else None.

    The namespace must be a DNS-1123 label and the name a DNS-1123 subdomain.
    """
    if not username.startswith(SERVICE_ACCOUNT_USERNAME_PREFIX):
        return None
    parts = username[len(SERVICE_ACCOUNT_USERNAME_PREFIX) :].split(SERVICE_ACCOUNT_USERNAME_SEPARATOR)
    if len(parts) != 2:
        return None
    namespace, name = parts
    if not _is_dns1123_label(namespace) or not _is_dns1123_subdomain(name):
        return None
    return namespace, name


def validate_user_name(username: str) -> list[str]:
    """
    Reasons why `username` is not a valid User object name (empty list when valid).

    Certificate and system identities (e.g. `system:admin`) always fail here.
    """
    reasons: list[str] = []
    if username in (".", ".."):
        reasons.append(f'may not be "{username}"')
    for bad in ("/", "%"):
        if bad in username:
            reasons.append(f'may not contain "{bad}"')
    if reasons:
        return reasons
    if ":" in username:
        return ['may not contain ":"']
    if username == "~":
        return ['may not equal "~"']
    return []


def classify_username(username: str) -> IdentityKind:
    # Order matters: a service account username would also fail user-name validation.
    if split_service_account_username(username) is not None:
        return IdentityKind.SERVICE_ACCOUNT
    if validate_user_name(username):
        return IdentityKind.SYSTEM_USER
    return IdentityKind.REGULAR_USER


def user_labels(username: str, identity_store: IdentityStore) -> Dict[str, str]:
    """Labels of a regular user. Raises `NotFoundError` if the user is unknown."""
    return identity_store.get_user_labels(username)
