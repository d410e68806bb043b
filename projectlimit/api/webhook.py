"""
Project request limit validating webhook server.

Receives `admission.k8s.io/v1` AdmissionReview requests for project creation and answers
with the decision of `ProjectRequestLimitValidator`.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from projectlimit.admission.response import ADMISSION_API_VERSION, admission_review, parse_admission_review
from projectlimit.admission.validator import ProjectRequestLimitValidator
from projectlimit.core.config import WebhookConfig, load_webhook_config
from projectlimit.core.models import Decision

logger = logging.getLogger(__name__)

_validator: Optional[ProjectRequestLimitValidator] = None
_cache: Any = None
_validator_lock = threading.Lock()


def set_validator(validator: Optional[ProjectRequestLimitValidator], *, cache: Any = None) -> None:
    """Install (or clear) the validator used by the webhook. Seam for startup and tests."""
    global _validator, _cache
    with _validator_lock:
        _validator = validator
        _cache = cache


def get_validator() -> Optional[ProjectRequestLimitValidator]:
    with _validator_lock:
        return _validator


def build_validator(cfg: WebhookConfig) -> tuple[ProjectRequestLimitValidator, Any]:
    """
    Build a validator backed by the configured stores.

    Returns (validator, cache) where cache is the Kubernetes cache (None in snapshot mode).
    Raises RuntimeError if the Kubernetes cache does not sync in time.
    """
    if cfg.snapshot_file:
        from projectlimit.providers.snapshot_file import load_snapshot_file

        store = load_snapshot_file(cfg.snapshot_file)
        validator = ProjectRequestLimitValidator(policy_store=store, identity_store=store, namespace_store=store)
        return validator, None

    from projectlimit.providers.k8s_provider import KubernetesSnapshotCache

    cache = KubernetesSnapshotCache(refresh_seconds=cfg.refresh_seconds)
    cache.start()
    if not cache.wait_for_sync(cfg.sync_timeout_seconds):
        cache.stop()
        raise RuntimeError(f"failed to wait for Kubernetes caches to sync: {cache.last_error or 'timeout'}")
    validator = ProjectRequestLimitValidator(policy_store=cache, identity_store=cache, namespace_store=cache)
    return validator, cache


def evaluate_review(review: Dict[str, Any]) -> Dict[str, Any]:
    """Decide one AdmissionReview. Raises ValueError for a malformed review."""
    request = parse_admission_review(review)
    validator = get_validator()
    if validator is None:
        decision = Decision.internal_error("not initialized")
    else:
        decision = validator.evaluate(request)
    if not decision.allowed:
        logger.info(
            "Project request uid=%s user=%s rejected (%s): %s",
            request.uid,
            request.username,
            decision.error_kind,
            decision.reason,
        )
    return admission_review(request.uid, decision, api_version=str(review.get("apiVersion") or ADMISSION_API_VERSION))


app = FastAPI(title="Project request limit webhook")


@app.on_event("startup")
def _startup_initialize_validator() -> None:
    """
    Build the validator unless one was installed already (tests, embedding).

    Fails fast when the stores cannot be loaded: serving without them would deny everything.
    """
    if get_validator() is not None:
        return
    cfg = load_webhook_config()
    validator, cache = build_validator(cfg)
    set_validator(validator, cache=cache)
    logger.info("Validator initialized (backend=%s)", "kubernetes" if cfg.use_kubernetes else "snapshot")


@app.on_event("shutdown")
def _shutdown_stop_cache() -> None:
    cache = _cache
    if cache is not None:
        cache.stop()


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all incoming HTTP requests."""
    start_time = time.time()
    logger.debug("%s %s", request.method, request.url.path)
    try:
        response = await call_next(request)
        process_time = time.time() - start_time
        logger.debug("%s %s - %d (%.3fs)", request.method, request.url.path, response.status_code, process_time)
        return response
    except Exception as e:
        process_time = time.time() - start_time
        logger.exception("%s %s - ERROR after %.3fs: %s", request.method, request.url.path, process_time, str(e))
        raise


@app.get("/healthz")
def healthz() -> Dict[str, Any]:
    return {"ok": True}


@app.get("/readyz")
def readyz() -> JSONResponse:
    validator = get_validator()
    cache = _cache
    synced = cache.synced if cache is not None else validator is not None
    if validator is None or not synced:
        return JSONResponse(status_code=503, content={"ok": False, "initialized": validator is not None})
    return JSONResponse(status_code=200, content={"ok": True, "initialized": True})


@app.post("/validate")
async def validate(request: Request) -> JSONResponse:
    try:
        review = await request.json()
    except Exception:
        raise HTTPException(status_code=400, detail="Request body must be a JSON AdmissionReview")
    try:
        return JSONResponse(status_code=200, content=evaluate_review(review))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


def run(host: str = "0.0.0.0", port: int = 8080) -> None:
    import uvicorn

    # Configure logging for the application
    log_level = load_webhook_config().log_level.upper()
    # force: main.py already configured the root logger at import time.
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        force=True,
    )

    # Map Python logging levels to uvicorn log levels
    uvicorn_log_level = (
        log_level.lower() if log_level.lower() in ["critical", "error", "warning", "info", "debug", "trace"] else "info"
    )

    logger.info("Starting webhook server on %s:%d (log_level=%s)", host, port, log_level)
    uvicorn.run(app, host=host, port=port, log_level=uvicorn_log_level)
