"""Resolve the maximum number of projects a requester may own."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Literal, Mapping, Optional

from projectlimit.admission.identity import classify_username, user_labels
from projectlimit.core.models import IdentityKind, ProjectRequestLimit
from projectlimit.providers.stores import IdentityStore

LimitSource = Literal["service_account_cap", "system_user_cap", "selector", "no_match"]


@dataclass(frozen=True)
class LimitResolution:
    # Only meaningful when has_limit is True.
    max_projects: int
    has_limit: bool
    kind: IdentityKind
    source: LimitSource
    # Index of the matching rule in `limits` (selector source only).
    rule_index: Optional[int] = None


def selector_matches(selector: Mapping[str, str], labels: Mapping[str, str]) -> bool:
    """Equality-based label selector: every selector key must be present with the same value."""
    for key, value in selector.items():
        if key not in labels or labels[key] != value:
            return False
    return True


def _cap(value: Optional[int], kind: IdentityKind, source: LimitSource) -> LimitResolution:
    if value is None:
        return LimitResolution(max_projects=0, has_limit=False, kind=kind, source=source)
    return LimitResolution(max_projects=value, has_limit=True, kind=kind, source=source)


def match_limit_rule(policy: ProjectRequestLimit, labels: Dict[str, str]) -> LimitResolution:
    """
    First rule whose selector matches wins, in declared order.

    A matching rule with no maxProjects means explicitly unlimited; no matching rule means
    there is no applicable cap. Neither imposes a limit.
    """
    for i, rule in enumerate(policy.limits):
        if selector_matches(rule.selector, labels):
            if rule.max_projects is None:
                return LimitResolution(
                    max_projects=0, has_limit=False, kind=IdentityKind.REGULAR_USER, source="selector", rule_index=i
                )
            return LimitResolution(
                max_projects=rule.max_projects,
                has_limit=True,
                kind=IdentityKind.REGULAR_USER,
                source="selector",
                rule_index=i,
            )
    return LimitResolution(max_projects=0, has_limit=False, kind=IdentityKind.REGULAR_USER, source="no_match")


def max_projects_for(
    username: str,
    policy: ProjectRequestLimit,
    identity_store: IdentityStore,
) -> LimitResolution:
    """
    Maximum projects allowed for `username` under `policy`.

    Service accounts and system/certificate users use the policy-wide caps; regular users
    are matched against the ordered selector rules using their labels from `identity_store`.
    Lookup errors (including an unknown regular user) propagate.
    """
    kind = classify_username(username)
    if kind is IdentityKind.SERVICE_ACCOUNT:
        return _cap(policy.max_projects_for_service_accounts, kind, "service_account_cap")
    if kind is IdentityKind.SYSTEM_USER:
        return _cap(policy.max_projects_for_system_users, kind, "system_user_cap")
    return match_limit_rule(policy, user_labels(username, identity_store))
