"""Fully-defaulted, immutable configuration consumed by the compiler."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

PREVIEW_STAGE = "preview"


class BuildStrategy(str, Enum):
    """How the load-balancing layer is assembled."""

    # ALB, listener, target group and health check as one declarative unit
    MANAGED = "managed"
    # independently wired nodes, TLS on 443, image pushed to a private registry
    EXPLICIT = "explicit"


def frozen_mapping(values: Optional[Mapping[str, str]] = None) -> Mapping[str, str]:
    """Return a read-only copy of ``values`` with stable key order."""
    return MappingProxyType(dict(values or {}))


@dataclass(frozen=True)
class AwsTarget:
    account_name: str
    account: Optional[str]
    region: str


@dataclass(frozen=True)
class NetworkRef:
    """Existing VPC reference; ``vpc_id`` takes priority over ``vpc_name``."""

    vpc_id: Optional[str] = None
    vpc_name: Optional[str] = None

    @property
    def lookup_key(self) -> str:
        if self.vpc_id:
            return f"id={self.vpc_id}"
        return f"name={self.vpc_name}"


@dataclass(frozen=True)
class DnsSpec:
    enabled: bool
    domain: str
    hostname: str


@dataclass(frozen=True)
class CertificateSpec:
    create: bool
    arn: str


@dataclass(frozen=True)
class SecretReference:
    """Secrets Manager secret and its secret-key -> env-var mapping."""

    arn: str
    variables: Mapping[str, str] = field(default_factory=frozen_mapping)


@dataclass(frozen=True)
class ContainerSpec:
    port: int
    image_uri: str
    image_version: Optional[str]
    build_context: str
    build_args: Mapping[str, str] = field(default_factory=frozen_mapping)
    environment: Mapping[str, str] = field(default_factory=frozen_mapping)


@dataclass(frozen=True)
class TaskSpec:
    desired_count: int
    cpu: int
    memory_limit_mib: int
    spot: bool


@dataclass(frozen=True)
class AutoscalingSpec:
    min_capacity: int
    max_capacity: int
    cpu_target_utilization_percent: int


@dataclass(frozen=True)
class AlarmSpec:
    threshold: float
    evaluation_periods: int
    datapoints_to_alarm: Optional[int] = None


@dataclass(frozen=True)
class AlarmsSpec:
    cpu: AlarmSpec
    memory: AlarmSpec
    task_count: AlarmSpec


@dataclass(frozen=True)
class PolicyStatementSpec:
    resources: Tuple[str, ...]
    actions: Tuple[str, ...]


@dataclass(frozen=True)
class CustomTag:
    key: str
    value: str


@dataclass(frozen=True)
class ClusterRef:
    """Existing ECS cluster to deploy into."""

    cluster_arn: Optional[str] = None
    cluster_name: Optional[str] = None
    security_group_id: Optional[str] = None


@dataclass(frozen=True)
class NormalizedConfig:
    """Single normalized record produced by the config resolver."""

    stage: str
    revision: Optional[str]
    is_preview: bool
    app_name: str
    stack_name: str
    build_strategy: BuildStrategy
    aws: AwsTarget
    network: NetworkRef
    dns: DnsSpec
    full_domain: str
    certificate: CertificateSpec
    secrets: Tuple[SecretReference, ...]
    container: ContainerSpec
    image_ref: str
    task: TaskSpec
    autoscaling: AutoscalingSpec
    alarms: AlarmsSpec
    healthcheck_path: str
    extra_policies: Tuple[PolicyStatementSpec, ...] = ()
    custom_tag: Optional[CustomTag] = None
    cluster: Optional[ClusterRef] = None
