"""The ``ssm-secrets-webhook`` pod-mutating admission controller."""

from ssm_env_injector.webhook.admission import (
    AdmissionRequest,
    AdmissionResponse,
    InvalidAdmissionReview,
    PodAdmissionHandler,
)
from ssm_env_injector.webhook.mappings import (
    CachingMappingFetcher,
    KubernetesMappingFetcher,
    MappingFetcher,
    MappingKind,
)
from ssm_env_injector.webhook.mutator import ContainerMutator, PodMutator
from ssm_env_injector.webhook.registry import ImageConfig, ImageReference, ImageRegistry, RegistryClient

__all__ = [
    "AdmissionRequest",
    "AdmissionResponse",
    "CachingMappingFetcher",
    "ContainerMutator",
    "ImageConfig",
    "ImageReference",
    "ImageRegistry",
    "InvalidAdmissionReview",
    "KubernetesMappingFetcher",
    "MappingFetcher",
    "MappingKind",
    "PodAdmissionHandler",
    "PodMutator",
    "RegistryClient",
]
