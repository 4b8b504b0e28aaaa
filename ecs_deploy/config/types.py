"""Typed configuration contracts for stage-specific settings."""

from __future__ import annotations

from typing import Dict, List, NotRequired, Required, TypedDict


class AwsConfig(TypedDict, total=False):
    """Target account and region for a stage."""

    account_name: str
    account: Required[str | None]
    region: Required[str]


class VpcConfig(TypedDict, total=False):
    """Existing VPC reference. At least one of ``id``/``name`` must be set."""

    id: str
    name: str


class Route53Config(TypedDict, total=False):
    enable: bool
    domain: str
    hostname: str


class AcmConfig(TypedDict, total=False):
    create: bool
    arn: str


class SecretsManagerConfig(TypedDict):
    """Secret to inject; ``variables`` maps secret key -> container env var."""

    arn: str
    variables: Dict[str, str]


class ImageConfig(TypedDict, total=False):
    uri: str
    version: str


class ContainerConfig(TypedDict, total=False):
    port: int
    image: ImageConfig
    build_args: Dict[str, str]
    build_context: str
    environment: Dict[str, str]


class TaskConfig(TypedDict, total=False):
    desired_count: int
    cpu: int
    memory_limit_mib: int
    spot: bool


class AutoscalingConfig(TypedDict, total=False):
    min_capacity: int
    max_capacity: int
    cpu_target_utilization_percent: int


class LoadBalancerConfig(TypedDict, total=False):
    healthcheck_path: str


class CloudWatchAlarmConfig(TypedDict, total=False):
    alarm_threshold: float
    evaluation_periods: int
    datapoints_to_alarm: int


class CloudWatchAlarmsConfig(TypedDict, total=False):
    cpu: CloudWatchAlarmConfig
    memory: CloudWatchAlarmConfig
    task_count: CloudWatchAlarmConfig


class PolicyConfig(TypedDict):
    resources: List[str]
    actions: List[str]


class CustomTagConfig(TypedDict):
    key: str
    value: str


class EcsClusterConfig(TypedDict, total=False):
    """Import an existing ECS cluster instead of creating one."""

    cluster_arn: str
    cluster_name: str
    security_group_id: str


class StageConfig(TypedDict, total=False):
    """Strongly-typed stage configuration contract."""

    aws: Required[AwsConfig]
    vpc: NotRequired[VpcConfig]
    route53: NotRequired[Route53Config]
    acm: NotRequired[AcmConfig]
    secrets_manager: NotRequired[List[SecretsManagerConfig]]
    container: NotRequired[ContainerConfig]
    task: NotRequired[TaskConfig]
    autoscaling: NotRequired[AutoscalingConfig]
    load_balancer: NotRequired[LoadBalancerConfig]
    cloudwatch_alarm: NotRequired[CloudWatchAlarmsConfig]
    extra_policies: NotRequired[List[PolicyConfig]]
    custom_tags: NotRequired[CustomTagConfig]
    ecs: NotRequired[EcsClusterConfig]
    # managed | explicit
    build_strategy: NotRequired[str]


class AppConfig(TypedDict):
    """Global section plus every stage keyed by stage name."""

    name: str
    container: ContainerConfig
    stages: Dict[str, StageConfig]
