"""Serialize decisions into `admission.k8s.io/v1` AdmissionReview payloads."""

from __future__ import annotations

from typing import Any, Dict

from projectlimit.core.models import AdmissionRequest, Decision

ADMISSION_API_VERSION = "admission.k8s.io/v1"
ADMISSION_REVIEW_KIND = "AdmissionReview"


def parse_admission_review(review: Dict[str, Any]) -> AdmissionRequest:
    """
    Extract the AdmissionRequest from an AdmissionReview body.

    Raises ValueError when the body has no request object.
    """
    if not isinstance(review, dict):
        raise ValueError("AdmissionReview must be a JSON object")
    request = review.get("request")
    if not isinstance(request, dict):
        raise ValueError("AdmissionReview.request is missing")
    return AdmissionRequest.model_validate(request)


def admission_response(uid: str, decision: Decision) -> Dict[str, Any]:
    response: Dict[str, Any] = {"uid": uid, "allowed": decision.allowed}
    if not decision.allowed:
        response["status"] = {
            "status": "Failure",
            "code": decision.code,
            "reason": decision.error_kind,
            "message": decision.reason or "",
        }
    return response


def admission_review(uid: str, decision: Decision, *, api_version: str = ADMISSION_API_VERSION) -> Dict[str, Any]:
    return {
        "apiVersion": api_version,
        "kind": ADMISSION_REVIEW_KIND,
        "response": admission_response(uid, decision),
    }
