"""Image entrypoint/cmd lookup through the OCI distribution (registry v2) API.

Containers without an explicit ``command`` keep running the image's own
entrypoint after mutation, so the webhook has to know what that entrypoint
is. :class:`RegistryClient` reads it from the image config blob, using the
pod's ``imagePullSecrets`` for private registries.
"""

from __future__ import annotations

import base64
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Protocol

import requests

from ssm_env_injector.core.exceptions import ImageConfigError, MappingFetchError
from ssm_env_injector.webhook.mappings import MappingFetcher, MappingKind

logger = logging.getLogger(__name__)

DOCKER_HUB = "docker.io"
DOCKER_HUB_API = "registry-1.docker.io"

MANIFEST_MEDIA_TYPES = (
    "application/vnd.oci.image.index.v1+json",
    "application/vnd.docker.distribution.manifest.list.v2+json",
    "application/vnd.oci.image.manifest.v1+json",
    "application/vnd.docker.distribution.manifest.v2+json",
)
_INDEX_MEDIA_TYPES = frozenset(MANIFEST_MEDIA_TYPES[:2])

_CHALLENGE_PARAM = re.compile(r'(\w+)="([^"]*)"')


@dataclass(frozen=True)
class ImageConfig:
    """The parts of an image config the webhook cares about."""

    entrypoint: list[str] = field(default_factory=list)
    cmd: list[str] = field(default_factory=list)


class ImageRegistry(Protocol):
    """Look up the default entrypoint and cmd of a container's image."""

    def get_image_config(
        self,
        container: dict[str, Any],
        pod_spec: dict[str, Any],
        namespace: str,
    ) -> ImageConfig:
        ...


@dataclass(frozen=True)
class ImageReference:
    """A parsed image name, normalized the way the Docker CLI does it.

    Args:
        registry: Registry host (``docker.io`` for Docker Hub).
        repository: Repository path (``library/nginx``).
        reference: Tag or digest.
    """

    registry: str
    repository: str
    reference: str

    @classmethod
    def parse(cls, image: str) -> ImageReference:
        if not image:
            raise ValueError("image must not be empty")

        name, _, digest = image.partition("@")
        first, sep, rest = name.partition("/")
        if sep and ("." in first or ":" in first or first == "localhost"):
            registry, remainder = first, rest
        else:
            registry, remainder = DOCKER_HUB, name

        repository, tag = remainder, "latest"
        last_slash = remainder.rfind("/")
        colon = remainder.rfind(":")
        if colon > last_slash:
            repository, tag = remainder[:colon], remainder[colon + 1:]

        if registry == DOCKER_HUB and "/" not in repository:
            repository = f"library/{repository}"
        return cls(registry=registry, repository=repository, reference=digest or tag)

    @property
    def api_host(self) -> str:
        return DOCKER_HUB_API if self.registry == DOCKER_HUB else self.registry


@dataclass
class _Lookup:
    """Authentication state of a single image config lookup."""

    ref: ImageReference
    auth: tuple[str, str] | None = None
    token: str | None = None
    basic: bool = False


def _registry_aliases(registry: str) -> tuple[str, ...]:
    if registry == DOCKER_HUB:
        return (DOCKER_HUB, DOCKER_HUB_API, "index.docker.io", "https://index.docker.io/v1/")
    return (registry, f"https://{registry}")


class RegistryClient:
    """:class:`ImageRegistry` that talks to the registry HTTP API.

    Anonymous access is tried first; bearer-token challenges are answered
    with credentials from the pod's ``imagePullSecrets`` when available.

    Args:
        mapping_fetcher: Reads pull secrets. Anonymous access only when
            ``None``.
        session: ``requests``-compatible session.
        timeout: Per-request timeout in seconds.
        platform: ``(os, architecture)`` picked from multi-arch indexes.
    """

    def __init__(
        self,
        mapping_fetcher: MappingFetcher | None = None,
        session: Any = None,
        timeout: float = 10.0,
        platform: tuple[str, str] = ("linux", "amd64"),
    ) -> None:
        self._mapping_fetcher = mapping_fetcher
        self._session = session or requests.Session()
        self._timeout = timeout
        self._platform = platform

    def get_image_config(
        self,
        container: dict[str, Any],
        pod_spec: dict[str, Any],
        namespace: str,
    ) -> ImageConfig:
        image = container.get("image") or ""
        try:
            ref = ImageReference.parse(image)
        except ValueError as exc:
            raise ImageConfigError(image, str(exc)) from exc

        lookup = _Lookup(ref=ref, auth=self._pull_credentials(ref, pod_spec, namespace))
        try:
            return self._fetch(lookup)
        except requests.RequestException as exc:
            raise ImageConfigError(image, str(exc)) from exc
        except (KeyError, TypeError, ValueError) as exc:
            raise ImageConfigError(image, f"malformed registry response: {exc}") from exc

    def _fetch(self, lookup: _Lookup) -> ImageConfig:
        ref = lookup.ref
        manifest = self._get_json(lookup, f"manifests/{ref.reference}", accept=MANIFEST_MEDIA_TYPES)
        if manifest.get("mediaType") in _INDEX_MEDIA_TYPES or "manifests" in manifest:
            digest = self._select_platform(manifest)
            manifest = self._get_json(lookup, f"manifests/{digest}", accept=MANIFEST_MEDIA_TYPES)

        blob = self._get_json(lookup, f"blobs/{manifest['config']['digest']}")
        config = blob.get("config") or {}
        logger.debug("Read image config for %s/%s:%s", ref.registry, ref.repository, ref.reference)
        return ImageConfig(
            entrypoint=list(config.get("Entrypoint") or []),
            cmd=list(config.get("Cmd") or []),
        )

    def _select_platform(self, index: dict[str, Any]) -> str:
        wanted_os, wanted_arch = self._platform
        for entry in index.get("manifests", []):
            platform = entry.get("platform") or {}
            if platform.get("os") == wanted_os and platform.get("architecture") == wanted_arch:
                return str(entry["digest"])
        raise ValueError(f"no manifest for platform {wanted_os}/{wanted_arch}")

    def _get_json(self, lookup: _Lookup, path: str, accept: tuple[str, ...] = ()) -> dict[str, Any]:
        url = f"https://{lookup.ref.api_host}/v2/{lookup.ref.repository}/{path}"
        headers = {"Accept": ", ".join(accept)} if accept else {}

        response = self._request(lookup, url, headers)
        if response.status_code == 401 and lookup.token is None and not lookup.basic:
            challenge = response.headers.get("WWW-Authenticate", "")
            lookup.token = self._bearer_token(challenge, lookup.ref, lookup.auth)
            if lookup.token is None:
                if lookup.auth is None:
                    response.raise_for_status()
                # No bearer realm: the registry wants basic auth on every request.
                lookup.basic = True
            response = self._request(lookup, url, headers)
        response.raise_for_status()
        return json.loads(response.content)

    def _request(self, lookup: _Lookup, url: str, headers: dict[str, str]) -> Any:
        headers = dict(headers)
        if lookup.token:
            headers["Authorization"] = f"Bearer {lookup.token}"
        auth = lookup.auth if lookup.basic else None
        return self._session.get(url, headers=headers, auth=auth, timeout=self._timeout)

    def _bearer_token(
        self,
        challenge: str,
        ref: ImageReference,
        auth: tuple[str, str] | None,
    ) -> str | None:
        scheme, _, params_str = challenge.partition(" ")
        if scheme.lower() != "bearer":
            return None
        params = dict(_CHALLENGE_PARAM.findall(params_str))
        realm = params.pop("realm", None)
        if not realm:
            return None
        params.setdefault("scope", f"repository:{ref.repository}:pull")

        response = self._session.get(realm, params=params, auth=auth, timeout=self._timeout)
        response.raise_for_status()
        body = response.json()
        return body.get("token") or body.get("access_token")

    def _pull_credentials(
        self,
        ref: ImageReference,
        pod_spec: dict[str, Any],
        namespace: str,
    ) -> tuple[str, str] | None:
        if self._mapping_fetcher is None:
            return None
        for secret_ref in pod_spec.get("imagePullSecrets") or []:
            name = secret_ref.get("name")
            if not name:
                continue
            try:
                data = self._mapping_fetcher.get_data(MappingKind.SECRET, name, namespace)
            except MappingFetchError as exc:
                logger.warning("Cannot read image pull secret %s/%s: %s", namespace, name, exc)
                continue
            credentials = _credentials_from_docker_config(data, ref.registry)
            if credentials:
                return credentials
        return None


def _credentials_from_docker_config(data: dict[str, str], registry: str) -> tuple[str, str] | None:
    raw = data.get(".dockerconfigjson") or data.get(".dockercfg")
    if not raw:
        return None
    try:
        parsed = json.loads(raw)
    except ValueError:
        return None
    auths = parsed.get("auths", parsed) if isinstance(parsed, dict) else {}

    for alias in _registry_aliases(registry):
        entry = auths.get(alias)
        if not isinstance(entry, dict):
            continue
        if entry.get("username") and entry.get("password"):
            return entry["username"], entry["password"]
        if entry.get("auth"):
            try:
                user, _, password = base64.b64decode(entry["auth"]).decode("utf-8").partition(":")
            except (ValueError, UnicodeDecodeError):
                continue
            return user, password
    return None
