"""Read ConfigMap and Secret data from the Kubernetes API."""

from __future__ import annotations

import base64
import binascii
import logging
from enum import Enum
from typing import Any, Protocol

from kubernetes import client as k8s_client
from kubernetes import config as k8s_config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException

from ssm_env_injector.core.exceptions import MappingFetchError, MappingNotFoundError

logger = logging.getLogger(__name__)


class MappingKind(str, Enum):
    """Kinds of key/value objects an environment can be sourced from."""

    CONFIG_MAP = "ConfigMap"
    SECRET = "Secret"


class MappingFetcher(Protocol):
    """Read the data of a ConfigMap or Secret.

    Implementations raise :class:`MappingNotFoundError` when the object
    does not exist and :class:`MappingFetchError` on any other failure.
    Secret values are returned decoded.
    """

    def get_data(self, kind: MappingKind, name: str, namespace: str) -> dict[str, str]:
        ...


def _decode_secret_data(data: dict[str, str] | None) -> dict[str, str]:
    decoded: dict[str, str] = {}
    for key, value in (data or {}).items():
        try:
            decoded[key] = base64.b64decode(value).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            # Binary payloads can never carry an ssm: reference.
            logger.debug("Skipping non-text secret key %s", key)
    return decoded


def load_kube_config() -> None:
    """Load in-cluster credentials, falling back to the local kubeconfig."""
    try:
        k8s_config.load_incluster_config()
    except ConfigException:
        k8s_config.load_kube_config()


class KubernetesMappingFetcher:
    """:class:`MappingFetcher` backed by the official Kubernetes client.

    Args:
        core_api: A ``CoreV1Api`` instance. Defaults to one built from the
            in-cluster (or local kubeconfig) credentials on first use.
    """

    def __init__(self, core_api: Any = None) -> None:
        self._core_api = core_api

    @classmethod
    def from_cluster(cls) -> KubernetesMappingFetcher:
        """Build a fetcher from in-cluster or kubeconfig credentials, failing fast."""
        load_kube_config()
        return cls(k8s_client.CoreV1Api())

    def _api(self) -> Any:
        if self._core_api is None:
            load_kube_config()
            self._core_api = k8s_client.CoreV1Api()
        return self._core_api

    def get_data(self, kind: MappingKind, name: str, namespace: str) -> dict[str, str]:
        try:
            if kind is MappingKind.CONFIG_MAP:
                obj = self._api().read_namespaced_config_map(name, namespace)
            else:
                obj = self._api().read_namespaced_secret(name, namespace)
        except ApiException as exc:
            if exc.status == 404:
                raise MappingNotFoundError(kind.value, namespace, name) from exc
            raise MappingFetchError(kind.value, namespace, name, f"{exc.status} {exc.reason}") from exc

        if kind is MappingKind.SECRET:
            return _decode_secret_data(obj.data)
        return dict(obj.data or {})


class CachingMappingFetcher:
    """Memoize successful reads for the lifetime of one pod mutation.

    Args:
        fetcher: The underlying fetcher.
    """

    def __init__(self, fetcher: MappingFetcher) -> None:
        self._fetcher = fetcher
        self._cache: dict[tuple[MappingKind, str, str], dict[str, str]] = {}

    def get_data(self, kind: MappingKind, name: str, namespace: str) -> dict[str, str]:
        cache_key = (kind, namespace, name)
        if cache_key not in self._cache:
            self._cache[cache_key] = self._fetcher.get_data(kind, name, namespace)
        return self._cache[cache_key]
