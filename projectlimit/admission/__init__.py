"""
Project request admission: decide whether a user may create another project.

The decision is a pure read over three injected stores (policy, users, namespaces).
"""

from projectlimit.admission.identity import classify_username
from projectlimit.admission.limits import LimitResolution, max_projects_for
from projectlimit.admission.quota import ALLOWED_TERMINATING_PROJECTS, project_count_by_requester
from projectlimit.admission.validator import ProjectRequestLimitValidator

__all__ = [
    "ALLOWED_TERMINATING_PROJECTS",
    "LimitResolution",
    "ProjectRequestLimitValidator",
    "classify_username",
    "max_projects_for",
    "project_count_by_requester",
]
