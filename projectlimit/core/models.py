"""Canonical domain models (single source of truth).

This file is the one place where we define models used across:
- the read-only stores (policy / users / namespaces)
- the admission decision engine
- the webhook transport (AdmissionReview in/out)

Design note:
- Kubernetes payloads are parsed permissively (`extra="allow"`) because the API server
  sends more fields than we read; our own decision types are strict.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Well-known name of the singleton policy object.
POLICY_NAME = "cluster"

# Annotation stamped on every namespace created through a project request.
REQUESTER_ANNOTATION = "openshift.io/requester"

NamespacePhase = Literal["Active", "Terminating"]


class BaseModelAllowExtra(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class BaseModelStrict(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class IdentityKind(str, Enum):
    SERVICE_ACCOUNT = "service_account"
    SYSTEM_USER = "system_user"
    REGULAR_USER = "regular_user"


class NamespaceRecord(BaseModelStrict):
    name: str = ""
    requester: Optional[str] = None
    phase: NamespacePhase = "Active"

    @field_validator("phase", mode="before")
    @classmethod
    def _default_phase(cls, v: Any) -> Any:
        # Namespaces freshly created may not have a status yet.
        return v or "Active"

    @property
    def terminating(self) -> bool:
        return self.phase == "Terminating"

    @classmethod
    def from_k8s(cls, obj: Dict[str, Any]) -> "NamespaceRecord":
        """Build a record from a Namespace object dict (camelCase, as served by the API)."""
        metadata = obj.get("metadata") or {}
        annotations = metadata.get("annotations") or {}
        status = obj.get("status") or {}
        return cls(
            name=str(metadata.get("name") or ""),
            requester=annotations.get(REQUESTER_ANNOTATION),
            phase=status.get("phase") or "Active",
        )


class ProjectLimitBySelector(BaseModelStrict):
    """One tier of the policy: users whose labels match `selector` get `max_projects`."""

    selector: Dict[str, str] = Field(default_factory=dict)
    max_projects: Optional[int] = Field(default=None, ge=0, alias="maxProjects")

    @field_validator("selector", mode="before")
    @classmethod
    def _string_selector(cls, v: Any) -> Any:
        # Same coercion as user labels, so an unquoted YAML `yes` still matches.
        if isinstance(v, dict):
            return {str(k): str(val) for k, val in v.items()}
        return v or {}


class ProjectRequestLimit(BaseModelStrict):
    name: str = POLICY_NAME
    limits: List[ProjectLimitBySelector] = Field(default_factory=list)
    max_projects_for_service_accounts: Optional[int] = Field(
        default=None, ge=0, alias="maxProjectsForServiceAccounts"
    )
    max_projects_for_system_users: Optional[int] = Field(default=None, ge=0, alias="maxProjectsForSystemUsers")

    @field_validator("limits", mode="before")
    @classmethod
    def _none_limits(cls, v: Any) -> Any:
        return v or []

    def is_exempt(self) -> bool:
        """
        A policy without rules and without (non-zero) caps limits nobody.

        Treated exactly like "no policy at all".
        """
        return (
            len(self.limits) == 0
            and not self.max_projects_for_service_accounts
            and not self.max_projects_for_system_users
        )

    @classmethod
    def from_k8s(cls, obj: Dict[str, Any]) -> "ProjectRequestLimit":
        """
        Build a policy from a ProjectRequestLimit object dict.

        Fields are read from the top level of the object; objects that nest them under
        `spec` are accepted as well.
        """
        metadata = obj.get("metadata") or {}
        body = obj.get("spec") if isinstance(obj.get("spec"), dict) else obj
        return cls(
            name=str(metadata.get("name") or POLICY_NAME),
            limits=body.get("limits") or [],
            maxProjectsForServiceAccounts=body.get("maxProjectsForServiceAccounts"),
            maxProjectsForSystemUsers=body.get("maxProjectsForSystemUsers"),
        )


class GroupVersionResource(BaseModelAllowExtra):
    group: str = ""
    version: str = ""
    resource: str = ""


class UserInfo(BaseModelAllowExtra):
    username: str = ""
    uid: Optional[str] = None
    groups: List[str] = Field(default_factory=list)


class AdmissionRequest(BaseModelAllowExtra):
    """The subset of `admission.k8s.io/v1` AdmissionRequest the engine reads."""

    uid: str = ""
    operation: str = ""
    resource: GroupVersionResource = Field(default_factory=GroupVersionResource)
    sub_resource: str = Field(default="", alias="subResource")
    user_info: UserInfo = Field(default_factory=UserInfo, alias="userInfo")
    name: Optional[str] = None
    namespace: Optional[str] = None

    @field_validator("sub_resource", mode="before")
    @classmethod
    def _none_subresource(cls, v: Any) -> Any:
        return v or ""

    @property
    def username(self) -> str:
        return self.user_info.username


class Decision(BaseModelStrict):
    allowed: bool
    reason: Optional[str] = None
    error_kind: Optional[Literal["Forbidden", "InternalError"]] = None
    code: Optional[int] = None

    @classmethod
    def allow(cls) -> "Decision":
        return cls(allowed=True)

    @classmethod
    def forbidden(cls, message: str) -> "Decision":
        return cls(allowed=False, reason=message, error_kind="Forbidden", code=403)

    @classmethod
    def internal_error(cls, message: str) -> "Decision":
        return cls(allowed=False, reason=message, error_kind="InternalError", code=500)
