"""
Namespace deletion guard admission webhook server.

Receives AdmissionReview requests from the Kubernetes API server for namespace
operations and answers with an allow/deny verdict. Every review gets a well-formed
AdmissionReview response (HTTP 200), including malformed ones.
"""

from __future__ import annotations

import asyncio
import json
import logging
import ssl
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import ValidationError

from nsguard.core.config import GuardConfig, load_guard_config
from nsguard.core.models import ADMISSION_API_VERSION, AdmissionRequest, AdmissionReview, ReviewVerdict
from nsguard.pipeline.census import default_kind_queries
from nsguard.pipeline.decision import decide
from nsguard.providers import k8s_provider
from nsguard.providers.k8s_provider import get_k8s_provider

logger = logging.getLogger(__name__)

app = FastAPI(title="k8s namespace guard admission webhook")


class MalformedReviewError(ValueError):
    """
    The body could not be decoded into an AdmissionReview with a request.

    Carries the raw `request.uid` and `apiVersion` when they could be read, for the denial envelope.
    """

    def __init__(self, message: str, *, uid: str = "", api_version: str = "") -> None:
        super().__init__(message)
        self.uid = uid
        self.api_version = api_version

    def fallback_review(self) -> AdmissionReview:
        return AdmissionReview(
            api_version=self.api_version or ADMISSION_API_VERSION,
            request=AdmissionRequest(uid=self.uid),
        )


def malformed_review_verdict(err: Exception) -> ReviewVerdict:
    return ReviewVerdict.deny(
        "malformed_request",
        f"Failed to decode the request body json into an AdmissionReview resource: {err}",
    )


def _get_config(request: Request) -> GuardConfig:
    cfg = getattr(request.app.state, "config", None)
    return cfg if isinstance(cfg, GuardConfig) else load_guard_config()


def parse_review(body: bytes) -> AdmissionReview:
    """Decode a request body into an AdmissionReview that carries a request."""
    try:
        payload = json.loads(body or b"")
    except ValueError as e:
        raise MalformedReviewError(str(e)) from e
    if not isinstance(payload, dict):
        raise MalformedReviewError(f"expected a JSON object, got {type(payload).__name__}")
    raw_request = payload.get("request")
    raw_uid = raw_request.get("uid") if isinstance(raw_request, dict) else None
    raw_version = payload.get("apiVersion")
    ids: Dict[str, str] = {
        "uid": raw_uid if isinstance(raw_uid, str) else "",
        "api_version": raw_version if isinstance(raw_version, str) else "",
    }
    try:
        review = AdmissionReview.model_validate(payload)
    except ValidationError as e:
        raise MalformedReviewError(str(e), **ids) from e
    if review.request is None:
        raise MalformedReviewError("AdmissionReview has no request", **ids)
    return review


def build_response(review: AdmissionReview, verdict: ReviewVerdict) -> Dict[str, Any]:
    req = review.request or AdmissionRequest()
    out = AdmissionReview(
        api_version=review.api_version or ADMISSION_API_VERSION,
        kind="AdmissionReview",
        response=verdict.to_response(uid=req.uid),
    )
    return out.to_wire()


def _respond(review: AdmissionReview, verdict: ReviewVerdict) -> JSONResponse:
    req = review.request or AdmissionRequest()
    logger.info(
        "Responding Allowed: %s for %s on Namespace: %s by user: %s (%s)",
        verdict.allowed,
        req.operation,
        req.name,
        req.user_info.username,
        verdict.code,
    )
    if not verdict.allowed:
        logger.error("Rejection reason: %s", verdict.reason)
    elif verdict.code == "bypass_annotation":
        logger.warning(
            "AUDIT: policy bypassed by annotation for %s on Namespace: %s by user: %s",
            req.operation,
            req.name,
            req.user_info.username,
        )
    return JSONResponse(status_code=200, content=build_response(review, verdict))


def evaluate_review(review: AdmissionReview, *, admit_all: bool) -> ReviewVerdict:
    """Run the decision engine against the live cluster provider."""
    req = review.request or AdmissionRequest()
    provider = get_k8s_provider()
    return decide(
        req,
        namespace_lookup=provider.get_namespace,
        kinds=default_kind_queries(provider),
        admit_all=admit_all,
    )


@app.get("/status.html", response_class=PlainTextResponse)
def status() -> str:
    return "OK"


@app.get("/healthz")
def healthz() -> Dict[str, Any]:
    return {"ok": True}


@app.post("/")
async def admission_review(request: Request) -> JSONResponse:
    logger.info(
        "Serving %s %s request for client: %s",
        request.method,
        request.url.path,
        request.client.host if request.client else "unknown",
    )
    body = await request.body()
    try:
        review = parse_review(body)
    except MalformedReviewError as e:
        return _respond(e.fallback_review(), malformed_review_verdict(e))

    req = review.request or AdmissionRequest()
    logger.info(
        "Incoming AdmissionReview for %s on resource: %s, kind: %s",
        req.operation,
        req.resource,
        req.kind.kind,
    )

    cfg = _get_config(request)
    try:
        verdict = await asyncio.to_thread(evaluate_review, review, admit_all=cfg.admit_all)
    except Exception as e:
        logger.exception("Unexpected error evaluating AdmissionReview for namespace %s", req.name)
        verdict = ReviewVerdict.deny(
            "internal_error",
            f"Unexpected error while validating the {req.operation} operation on the namespace {req.name}: {e}",
        )
    return _respond(review, verdict)


def build_ssl_kwargs(cfg: GuardConfig) -> Dict[str, Any]:
    """uvicorn TLS settings: serving cert/key, the cluster CA for client certs, optional mTLS."""
    kwargs: Dict[str, Any] = {
        "ssl_certfile": cfg.cert_file,
        "ssl_keyfile": cfg.key_file,
        "ssl_ca_certs": cfg.client_ca_file,
    }
    if cfg.client_auth:
        kwargs["ssl_cert_reqs"] = ssl.CERT_REQUIRED
    return kwargs


def configure_logging(level_name: Optional[str]) -> str:
    """Apply LOG_LEVEL to the root logger and return the matching uvicorn log level."""
    log_level = (level_name or "INFO").upper()
    level = getattr(logging, log_level, logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # basicConfig is a no-op once the CLI has configured logging.
    logging.getLogger().setLevel(level)

    uvicorn_level = log_level.lower()
    return uvicorn_level if uvicorn_level in ["critical", "error", "warning", "info", "debug", "trace"] else "info"


def run(cfg: Optional[GuardConfig] = None) -> None:
    import uvicorn

    cfg = cfg or load_guard_config()

    uvicorn_log_level = configure_logging(cfg.log_level)

    # Fail fast: a guard that cannot reach the cluster would deny every deletion.
    k8s_provider.configure(kubeconfig=cfg.kubeconfig, request_timeout_seconds=cfg.request_timeout_seconds)
    k8s_provider.warmup()

    app.state.config = cfg
    if cfg.admit_all:
        logger.warning("admitAll is set: every namespace deletion will be admitted without validation")

    logger.info(
        "HTTPS server listening on %s:%d with ClientAuthEnabled: %s (log_level=%s)",
        cfg.host,
        cfg.port,
        cfg.client_auth,
        uvicorn_log_level,
    )
    uvicorn.run(app, host=cfg.host, port=cfg.port, log_level=uvicorn_log_level, **build_ssl_kwargs(cfg))
