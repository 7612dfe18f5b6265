"""AdmissionReview handling for the pod-mutating webhook.

Requests for kinds other than ``Pod`` are allowed untouched. Pod requests
are mutated and answered with a base64-encoded JSONPatch; any mutation
error denies the request instead of silently allowing an unmutated pod.
"""

from __future__ import annotations

import base64
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any

import jsonpatch

from ssm_env_injector.core.exceptions import SsmEnvError
from ssm_env_injector.core.metrics.registry import MeterRegistry
from ssm_env_injector.core.utils import safe_call
from ssm_env_injector.webhook.mutator import PodMutator

logger = logging.getLogger(__name__)

ADMISSION_API_VERSION = "admission.k8s.io/v1"
REVIEWS_METRIC = "ssm_webhook_admission_reviews_total"
DURATION_METRIC = "ssm_webhook_admission_review_duration_ms"


class InvalidAdmissionReview(ValueError):
    """The request body is not a usable AdmissionReview."""

    pass


@dataclass(frozen=True)
class AdmissionRequest:
    """The fields of ``AdmissionReview.request`` the webhook uses."""

    uid: str
    kind: str
    namespace: str
    operation: str
    object: dict[str, Any]
    dry_run: bool = False
    api_version: str = ADMISSION_API_VERSION

    @classmethod
    def from_review(cls, review: Any) -> AdmissionRequest:
        """Parse an AdmissionReview body.

        Raises:
            InvalidAdmissionReview: If the body has no request or uid.
        """
        if not isinstance(review, dict):
            raise InvalidAdmissionReview("AdmissionReview must be a JSON object")
        request = review.get("request")
        if not isinstance(request, dict):
            raise InvalidAdmissionReview("AdmissionReview has no request")
        uid = request.get("uid")
        if not uid:
            raise InvalidAdmissionReview("AdmissionReview request has no uid")

        kind = request.get("kind") or {}
        if not isinstance(kind, dict):
            raise InvalidAdmissionReview("AdmissionReview request kind must be an object")

        obj = request.get("object")
        namespace = request.get("namespace") or ""
        if not namespace and isinstance(obj, dict):
            namespace = (obj.get("metadata") or {}).get("namespace") or ""

        return cls(
            uid=uid,
            kind=kind.get("kind", ""),
            namespace=namespace,
            operation=request.get("operation", ""),
            object=obj if isinstance(obj, dict) else {},
            dry_run=bool(request.get("dryRun", False)),
            api_version=review.get("apiVersion") or ADMISSION_API_VERSION,
        )


@dataclass
class AdmissionResponse:
    """An ``AdmissionReview.response``."""

    uid: str
    allowed: bool = True
    patch: list[dict[str, Any]] = field(default_factory=list)
    message: str | None = None
    code: int | None = None

    def to_review(self, api_version: str = ADMISSION_API_VERSION) -> dict[str, Any]:
        response: dict[str, Any] = {"uid": self.uid, "allowed": self.allowed}
        if self.patch:
            response["patchType"] = "JSONPatch"
            response["patch"] = base64.b64encode(json.dumps(self.patch).encode("utf-8")).decode("ascii")
        if self.message is not None or self.code is not None:
            status: dict[str, Any] = {}
            if self.code is not None:
                status["code"] = self.code
            if self.message is not None:
                status["message"] = self.message
            response["status"] = status
        return {"apiVersion": api_version, "kind": "AdmissionReview", "response": response}


class PodAdmissionHandler:
    """Answer AdmissionReviews by mutating pods.

    Args:
        pod_mutator: Pod rewrite logic.
        meter_registry: Optional metrics sink.
    """

    def __init__(self, pod_mutator: PodMutator, meter_registry: MeterRegistry | None = None) -> None:
        self._pod_mutator = pod_mutator
        self._meter_registry = meter_registry

    def review(self, body: Any) -> dict[str, Any]:
        """Handle a raw AdmissionReview body and return the response review.

        Raises:
            InvalidAdmissionReview: If *body* is malformed.
        """
        request = AdmissionRequest.from_review(body)
        return self.handle(request).to_review(request.api_version)

    def handle(self, request: AdmissionRequest) -> AdmissionResponse:
        start = time.monotonic()
        response, result = self._handle(request)
        duration_ms = (time.monotonic() - start) * 1000
        self._record(request.kind, result, duration_ms)
        return response

    def _handle(self, request: AdmissionRequest) -> tuple[AdmissionResponse, str]:
        if request.kind != "Pod":
            return AdmissionResponse(uid=request.uid), "skipped"

        metadata = request.object.get("metadata") or {}
        pod_name = metadata.get("name") or metadata.get("generateName", "")
        try:
            mutated = self._pod_mutator.mutate(request.object, request.namespace)
        except SsmEnvError as exc:
            logger.error("Failed to mutate pod %s/%s: %s", request.namespace, pod_name, exc)
            return AdmissionResponse(uid=request.uid, allowed=False, message=str(exc), code=500), "error"
        except Exception as exc:
            logger.exception("Unexpected error mutating pod %s/%s", request.namespace, pod_name)
            return AdmissionResponse(uid=request.uid, allowed=False, message=str(exc), code=500), "error"

        patch = jsonpatch.make_patch(request.object, mutated).patch
        if not patch:
            return AdmissionResponse(uid=request.uid), "unchanged"

        logger.info(
            "Mutated pod %s/%s (%s%s)",
            request.namespace,
            pod_name,
            request.operation,
            ", dry run" if request.dry_run else "",
        )
        return AdmissionResponse(uid=request.uid, patch=patch), "mutated"

    def _record(self, kind: str, result: str, duration_ms: float) -> None:
        registry = self._meter_registry
        if registry is None:
            return
        safe_call(
            lambda: registry.counter(REVIEWS_METRIC, tags={"kind": kind or "unknown", "result": result}),
            logger,
            "Failed to record metric %s",
            REVIEWS_METRIC,
        )
        safe_call(
            lambda: registry.timer(DURATION_METRIC, duration_ms, tags={"kind": kind or "unknown"}),
            logger,
            "Failed to record metric %s",
            DURATION_METRIC,
        )
