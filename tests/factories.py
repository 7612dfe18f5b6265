"""Shared test factories for building configs, Kubernetes objects and fakes.

Import them directly::

    from tests.factories import make_container, make_pod
"""

from __future__ import annotations

from typing import Any

from ssm_env_injector.core.config.webhook import WebhookConfig
from ssm_env_injector.core.exceptions import MappingNotFoundError
from ssm_env_injector.core.secrets.base import (
    SecretResolutionResult,
    SecretResolutionStatus,
    SecretsProvider,
)
from ssm_env_injector.webhook.mappings import MappingKind
from ssm_env_injector.webhook.mutator import ContainerMutator, PodMutator
from ssm_env_injector.webhook.registry import ImageConfig


def make_container(
    name: str = "app",
    image: str = "myimage",
    *,
    command: list[str] | None = None,
    args: list[str] | None = None,
    env: list[dict[str, Any]] | None = None,
    env_from: list[dict[str, Any]] | None = None,
    volume_mounts: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    """Build a container JSON object, omitting unset fields."""
    container: dict[str, Any] = {"name": name, "image": image}
    if command is not None:
        container["command"] = command
    if args is not None:
        container["args"] = args
    if env is not None:
        container["env"] = env
    if env_from is not None:
        container["envFrom"] = env_from
    if volume_mounts is not None:
        container["volumeMounts"] = volume_mounts
    return container


def make_pod(
    containers: list[dict[str, Any]] | None = None,
    init_containers: list[dict[str, Any]] | None = None,
    *,
    name: str = "test-pod",
    namespace: str = "default",
    volumes: list[dict[str, Any]] | None = None,
    security_context: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build a pod JSON object."""
    spec: dict[str, Any] = {"containers": containers if containers is not None else [make_container()]}
    if init_containers is not None:
        spec["initContainers"] = init_containers
    if volumes is not None:
        spec["volumes"] = volumes
    if security_context is not None:
        spec["securityContext"] = security_context
    return {
        "apiVersion": "v1",
        "kind": "Pod",
        "metadata": {"name": name, "namespace": namespace},
        "spec": spec,
    }


def make_review(obj: dict[str, Any], *, kind: str = "Pod", namespace: str = "default", uid: str = "uid-1") -> dict[str, Any]:
    """Wrap *obj* in an ``admission.k8s.io/v1`` AdmissionReview request."""
    return {
        "apiVersion": "admission.k8s.io/v1",
        "kind": "AdmissionReview",
        "request": {
            "uid": uid,
            "kind": {"group": "", "version": "v1", "kind": kind},
            "namespace": namespace,
            "operation": "CREATE",
            "object": obj,
        },
    }


class FakeMappingFetcher:
    """Dict-backed :class:`MappingFetcher` recording every call."""

    def __init__(
        self,
        config_maps: dict[str, dict[str, str]] | None = None,
        secrets: dict[str, dict[str, str]] | None = None,
        errors: dict[str, Exception] | None = None,
    ) -> None:
        self.config_maps = config_maps or {}
        self.secrets = secrets or {}
        self.errors = errors or {}
        self.calls: list[tuple[MappingKind, str, str]] = []

    def get_data(self, kind: MappingKind, name: str, namespace: str) -> dict[str, str]:
        self.calls.append((kind, name, namespace))
        if name in self.errors:
            raise self.errors[name]
        store = self.config_maps if kind is MappingKind.CONFIG_MAP else self.secrets
        if name not in store:
            raise MappingNotFoundError(kind.value, namespace, name)
        return dict(store[name])


class FakeImageRegistry:
    """:class:`ImageRegistry` returning a fixed config."""

    def __init__(self, entrypoint: list[str] | None = None, cmd: list[str] | None = None) -> None:
        self.image_config = ImageConfig(entrypoint=entrypoint or [], cmd=cmd or [])
        self.calls: list[str] = []

    def get_image_config(self, container: dict[str, Any], pod_spec: dict[str, Any], namespace: str) -> ImageConfig:
        self.calls.append(container.get("image", ""))
        return self.image_config


class FakeProvider(SecretsProvider):
    """Dict-backed provider counting lookups per key."""

    def __init__(self, values: dict[str, str] | None = None, errors: dict[str, str] | None = None) -> None:
        self.values = values or {}
        self.errors = errors or {}
        self.calls: list[str] = []

    @property
    def provider_name(self) -> str:
        return "fake"

    def resolve(self, key: str) -> SecretResolutionResult:
        self.calls.append(key)
        if key in self.errors:
            return SecretResolutionResult(key=key, status=SecretResolutionStatus.ERROR, error=self.errors[key])
        if key not in self.values:
            return SecretResolutionResult(key=key, status=SecretResolutionStatus.NOT_FOUND, error="not found")
        return SecretResolutionResult(key=key, status=SecretResolutionStatus.SUCCESS, value=self.values[key])


def make_mutators(
    config: WebhookConfig | None = None,
    fetcher: FakeMappingFetcher | None = None,
    registry: FakeImageRegistry | None = None,
) -> tuple[ContainerMutator, PodMutator]:
    """Build a container mutator and the pod mutator wrapping it."""
    config = config or WebhookConfig()
    container_mutator = ContainerMutator(
        config,
        fetcher if fetcher is not None else FakeMappingFetcher(),
        registry if registry is not None else FakeImageRegistry(),
    )
    return container_mutator, PodMutator(config, container_mutator)
