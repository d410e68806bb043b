"""
Project request admission decision engine.

One call per inbound admission request; every call is a single read-only pass over the
injected stores and never raises. Lookup failures fail closed (InternalError), because
silently allowing on error would defeat the limit.
"""

from __future__ import annotations

import logging
from typing import Optional

from projectlimit.admission.limits import max_projects_for
from projectlimit.admission.quota import project_count_by_requester
from projectlimit.core.models import POLICY_NAME, AdmissionRequest, Decision, ProjectRequestLimit
from projectlimit.providers.stores import IdentityStore, NamespaceStore, NotFoundError, PolicyStore

logger = logging.getLogger(__name__)

PROJECT_GROUP = "project.openshift.io"
PROJECT_REQUESTS_RESOURCE = "projectrequests"
CREATE_OPERATION = "CREATE"


class ProjectRequestLimitValidator:
    def __init__(
        self,
        *,
        policy_store: PolicyStore,
        identity_store: IdentityStore,
        namespace_store: NamespaceStore,
    ) -> None:
        self.policy_store = policy_store
        self.identity_store = identity_store
        self.namespace_store = namespace_store

    def evaluate(self, request: Optional[AdmissionRequest]) -> Decision:
        if request is None or not self.is_applicable(request):
            # Should not reach us with a correct ValidatingWebhookConfiguration.
            return Decision.allow()

        try:
            policy = self.policy_store.get_policy(POLICY_NAME)
        except NotFoundError:
            # no limits defined
            return Decision.allow()
        except Exception as e:
            logger.warning("Failed to load %s policy: %s", POLICY_NAME, str(e))
            return Decision.internal_error(str(e))

        if self.is_exempt(policy):
            return Decision.allow()

        username = request.username
        try:
            resolution = max_projects_for(username, policy, self.identity_store)
        except Exception as e:
            logger.warning("Failed to resolve project limit for user=%s: %s", username, str(e))
            return Decision.internal_error(str(e))

        if not resolution.has_limit:
            logger.debug(
                "No project limit for user=%s (kind=%s source=%s)", username, resolution.kind.value, resolution.source
            )
            return Decision.allow()

        try:
            project_count = project_count_by_requester(username, self.namespace_store)
        except Exception as e:
            logger.warning("Failed to count projects for user=%s: %s", username, str(e))
            return Decision.internal_error(str(e))

        if project_count >= resolution.max_projects:
            logger.info(
                "Denying project request: user=%s count=%d max=%d source=%s",
                username,
                project_count,
                resolution.max_projects,
                resolution.source,
            )
            return Decision.forbidden(f"user {username} cannot create more than {resolution.max_projects} project(s)")

        logger.debug(
            "Allowing project request: user=%s count=%d max=%d", username, project_count, resolution.max_projects
        )
        return Decision.allow()

    @staticmethod
    def is_applicable(request: Optional[AdmissionRequest]) -> bool:
        if request is None:
            return False
        if request.operation.upper() != CREATE_OPERATION:
            return False
        if request.resource.group != PROJECT_GROUP:
            return False
        if request.resource.resource != PROJECT_REQUESTS_RESOURCE:
            return False
        if request.sub_resource != "":
            return False
        return True

    @staticmethod
    def is_exempt(policy: ProjectRequestLimit) -> bool:
        return policy.is_exempt()
