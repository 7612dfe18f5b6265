"""Pod mutation: defer ``ssm:`` resolution into the container.

A container whose environment (directly, through ``valueFrom`` or through
``envFrom``) carries at least one ``ssm:`` reference is rewritten to start
``/mutate/ssm-env`` with its original command relocated into ``args``. The
pod then gets a staging init-container that copies the launcher binary into
a shared in-memory volume.

Containers and pods are handled as Kubernetes JSON dictionaries. Inputs are
never modified; mutated objects are deep copies.
"""

from __future__ import annotations

import copy
import logging
from typing import Any

from ssm_env_injector.core.config.webhook import WebhookConfig
from ssm_env_injector.core.exceptions import MappingNotFoundError
from ssm_env_injector.core.secrets.reference import is_reference
from ssm_env_injector.core.utils import bool_str
from ssm_env_injector.webhook.mappings import CachingMappingFetcher, MappingFetcher, MappingKind
from ssm_env_injector.webhook.registry import ImageRegistry

logger = logging.getLogger(__name__)

Container = dict[str, Any]

LAUNCHER_PATH = "/mutate/ssm-env"
VOLUME_NAME = "ssm-env"
MOUNT_PATH = "/mutate/"
INIT_CONTAINER_NAME = "copy-ssm-env"
INIT_CONTAINER_COMMAND = ["sh", "-c", f"cp /usr/local/bin/ssm-env {MOUNT_PATH}"]
INIT_CONTAINER_RESOURCES = {"cpu": "50m", "memory": "64Mi"}
IGNORE_MISSING_ENV = "SSM_IGNORE_MISSING_SECRETS"
JSON_LOG_ENV = "SSM_JSON_LOG"

_ENV_FROM_SOURCES = (("configMapRef", MappingKind.CONFIG_MAP), ("secretRef", MappingKind.SECRET))
_VALUE_FROM_SOURCES = (("configMapKeyRef", MappingKind.CONFIG_MAP), ("secretKeyRef", MappingKind.SECRET))


def launcher_volume_mount() -> dict[str, str]:
    return {"name": VOLUME_NAME, "mountPath": MOUNT_PATH}


def launcher_volume() -> dict[str, Any]:
    """The shared memory-backed volume holding the launcher binary."""
    return {"name": VOLUME_NAME, "emptyDir": {"medium": "Memory"}}


def is_mutated(container: Container) -> bool:
    """Whether *container* was already rewritten to start the launcher."""
    if container.get("command") != [LAUNCHER_PATH]:
        return False
    return any(
        mount.get("name") == VOLUME_NAME and mount.get("mountPath") == MOUNT_PATH
        for mount in container.get("volumeMounts") or []
    )


class ContainerMutator:
    """Decide whether a container needs the launcher and rewrite it.

    Args:
        config: Webhook configuration (policy values handed to the launcher).
        mapping_fetcher: Reads ConfigMaps and Secrets referenced by the
            container environment.
        image_registry: Looks up the image entrypoint of containers
            without an explicit ``command``.
    """

    def __init__(
        self,
        config: WebhookConfig,
        mapping_fetcher: MappingFetcher,
        image_registry: ImageRegistry,
    ) -> None:
        self._config = config
        self._mapping_fetcher = mapping_fetcher
        self._image_registry = image_registry

    def mapping_lookup(self) -> CachingMappingFetcher:
        """A fetcher memoizing reads for the duration of one pod."""
        return CachingMappingFetcher(self._mapping_fetcher)

    def mutate(
        self,
        container: Container,
        pod_spec: dict[str, Any],
        namespace: str,
        mappings: MappingFetcher | None = None,
    ) -> tuple[bool, Container]:
        """Rewrite *container* if its environment references a parameter.

        Args:
            container: Container JSON object.
            pod_spec: The enclosing pod spec (pull secrets for image lookups).
            namespace: Namespace of the pod.
            mappings: Fetcher to read referenced objects through. Defaults
                to a fresh :meth:`mapping_lookup`.

        Returns:
            ``(mutated, container)``; the input object itself when not
            mutated.

        Raises:
            MappingFetchError: A required ConfigMap/Secret is missing or
                any read failed.
            ImageConfigError: The image entrypoint lookup failed.
        """
        if is_mutated(container):
            return False, container

        mappings = mappings or self.mapping_lookup()
        references = self.collect_references(container, namespace, mappings)
        if not references:
            return False, container

        logger.debug(
            "Container %s references parameters through %s",
            container.get("name"),
            ", ".join(sorted({name for name, _ in references})),
        )

        mutated = copy.deepcopy(container)
        mutated["args"] = self.relocated_args(container, pod_spec, namespace)
        mutated["command"] = [LAUNCHER_PATH]
        mutated["volumeMounts"] = [*(mutated.get("volumeMounts") or []), launcher_volume_mount()]
        mutated["env"] = [
            *(mutated.get("env") or []),
            {"name": IGNORE_MISSING_ENV, "value": bool_str(self._config.ssm_ignore_missing_secrets)},
            {"name": JSON_LOG_ENV, "value": bool_str(self._config.enable_json_log)},
        ]
        return True, mutated

    def collect_references(
        self,
        container: Container,
        namespace: str,
        mappings: MappingFetcher,
    ) -> list[tuple[str, str]]:
        """Return ``(name, value)`` for every environment entry that is a reference.

        Entries are collected from ``envFrom`` first, then ``env``.
        """
        found: list[tuple[str, str]] = []

        for source in container.get("envFrom") or []:
            prefix = source.get("prefix") or ""
            for key, value in self._env_from_data(source, namespace, mappings).items():
                if is_reference(value):
                    found.append((f"{prefix}{key}", value))

        for env in container.get("env") or []:
            name = env.get("name", "")
            if is_reference(env.get("value")):
                found.append((name, env["value"]))
            elif env.get("valueFrom"):
                value = self._value_from(env["valueFrom"], namespace, mappings)
                if is_reference(value):
                    found.append((name, value))

        return found

    def relocated_args(
        self,
        container: Container,
        pod_spec: dict[str, Any],
        namespace: str,
    ) -> list[str]:
        """Compute the launcher ``args``: effective command, then declared args.

        With an explicit ``command`` that command is used as-is. Without
        one the image entrypoint is used, followed by the image cmd only
        when the container declares no ``args`` of its own.
        """
        declared_args = list(container.get("args") or [])
        command = list(container.get("command") or [])
        if not command:
            image_config = self._image_registry.get_image_config(container, pod_spec, namespace)
            command.extend(image_config.entrypoint)
            if not declared_args:
                command.extend(image_config.cmd)
        return command + declared_args

    def _env_from_data(
        self,
        source: dict[str, Any],
        namespace: str,
        mappings: MappingFetcher,
    ) -> dict[str, str]:
        data: dict[str, str] = {}
        for field_name, kind in _ENV_FROM_SOURCES:
            ref = source.get(field_name)
            if not ref:
                continue
            fetched = self._fetch(kind, ref, namespace, mappings)
            if fetched is not None:
                data.update(fetched)
        return data

    def _value_from(
        self,
        value_from: dict[str, Any],
        namespace: str,
        mappings: MappingFetcher,
    ) -> str | None:
        for field_name, kind in _VALUE_FROM_SOURCES:
            ref = value_from.get(field_name)
            if not ref:
                continue
            data = self._fetch(kind, ref, namespace, mappings)
            if data is not None:
                return data.get(ref.get("key", ""))
        return None

    def _fetch(
        self,
        kind: MappingKind,
        ref: dict[str, Any],
        namespace: str,
        mappings: MappingFetcher,
    ) -> dict[str, str] | None:
        """Read a referenced object; ``None`` for a missing optional one."""
        name = ref.get("name", "")
        try:
            return mappings.get_data(kind, name, namespace)
        except MappingNotFoundError:
            if ref.get("optional"):
                logger.debug("Optional %s %s/%s not found, skipping", kind.value, namespace, name)
                return None
            raise


class PodMutator:
    """Rewrite the containers of a pod and add the launcher staging.

    Args:
        config: Webhook configuration (staging image and pull policy).
        container_mutator: Per-container rewrite logic.
    """

    def __init__(self, config: WebhookConfig, container_mutator: ContainerMutator) -> None:
        self._config = config
        self._container_mutator = container_mutator

    def mutate(self, pod: dict[str, Any], namespace: str) -> dict[str, Any]:
        """Return the mutated pod, or *pod* itself when nothing references a parameter.

        Raises:
            MappingFetchError: See :meth:`ContainerMutator.mutate`.
            ImageConfigError: See :meth:`ContainerMutator.mutate`.
        """
        spec = pod.get("spec") or {}
        mappings = self._container_mutator.mapping_lookup()

        init_mutated, init_containers = self._mutate_containers(
            spec.get("initContainers") or [], spec, namespace, mappings
        )
        if init_mutated:
            logger.debug("Successfully mutated pod init containers")
        else:
            logger.debug("No pod init containers were mutated")

        containers_mutated, containers = self._mutate_containers(
            spec.get("containers") or [], spec, namespace, mappings
        )
        if containers_mutated:
            logger.debug("Successfully mutated pod containers")
        else:
            logger.debug("No pod containers were mutated")

        if not (init_mutated or containers_mutated):
            return pod

        mutated = copy.deepcopy(pod)
        mutated_spec = mutated.setdefault("spec", {})
        mutated_spec["containers"] = containers

        # A pod admitted before keeps its staging; only new containers are rewritten.
        if any(c.get("name") == INIT_CONTAINER_NAME for c in init_containers):
            mutated_spec["initContainers"] = init_containers
        else:
            staging = self.staging_init_container(spec.get("securityContext"))
            mutated_spec["initContainers"] = [staging, *init_containers]
            logger.debug("Added %s init container", INIT_CONTAINER_NAME)

        volumes = list(spec.get("volumes") or [])
        if not any(v.get("name") == VOLUME_NAME for v in volumes):
            volumes.append(launcher_volume())
            logger.debug("Added %s volume", VOLUME_NAME)
        mutated_spec["volumes"] = volumes
        return mutated

    def staging_init_container(self, pod_security_context: dict[str, Any] | None) -> Container:
        """Build the init-container copying the launcher into the shared volume."""
        security_context: dict[str, Any] = {"allowPrivilegeEscalation": False}
        run_as_user = (pod_security_context or {}).get("runAsUser")
        if run_as_user is not None:
            security_context["runAsUser"] = run_as_user

        return {
            "name": INIT_CONTAINER_NAME,
            "image": self._config.ssm_env_image,
            "imagePullPolicy": self._config.ssm_env_image_pull_policy.value,
            "command": list(INIT_CONTAINER_COMMAND),
            "volumeMounts": [launcher_volume_mount()],
            "securityContext": security_context,
            "resources": {
                "requests": dict(INIT_CONTAINER_RESOURCES),
                "limits": dict(INIT_CONTAINER_RESOURCES),
            },
        }

    def _mutate_containers(
        self,
        containers: list[Container],
        pod_spec: dict[str, Any],
        namespace: str,
        mappings: MappingFetcher,
    ) -> tuple[bool, list[Container]]:
        any_mutated = False
        result: list[Container] = []
        for container in containers:
            mutated, container = self._container_mutator.mutate(container, pod_spec, namespace, mappings)
            any_mutated = any_mutated or mutated
            result.append(container)
        return any_mutated, result
