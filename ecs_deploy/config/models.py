"""Pydantic v2 models validating raw stage configuration.

These models only check shapes and coerce primitive types. Defaults and
cross-field invariants are applied later by :mod:`ecs_deploy.config.resolver`
so that every default lives in exactly one place.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


def _strip(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip()
    return value


class AwsModel(BaseModel):
    account_name: str = ""
    account: Optional[str] = None
    region: str

    @field_validator("account", mode="before")
    @classmethod
    def _coerce_account(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        text = str(v).strip()
        return text or None


class VpcModel(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None

    @field_validator("id", "name", mode="before")
    @classmethod
    def _strip_names(cls, v: Any) -> Any:
        return _strip(v) or None


class Route53Model(BaseModel):
    enable: bool = False
    domain: str = ""
    hostname: str = ""

    @field_validator("domain", "hostname", mode="before")
    @classmethod
    def _strip_names(cls, v: Any) -> str:
        return str(_strip(v) or "")


class AcmModel(BaseModel):
    create: bool = False
    arn: str = ""

    @field_validator("arn", mode="before")
    @classmethod
    def _coerce_arn(cls, v: Any) -> str:
        return str(v or "").strip()


class SecretsManagerModel(BaseModel):
    arn: str
    variables: Dict[str, str] = Field(default_factory=dict)


class ImageModel(BaseModel):
    uri: Optional[str] = None
    version: Optional[str] = None


class ContainerModel(BaseModel):
    port: Optional[int] = None
    image: Optional[ImageModel] = None
    build_args: Dict[str, str] = Field(default_factory=dict)
    build_context: Optional[str] = None
    environment: Dict[str, str] = Field(default_factory=dict)


class TaskModel(BaseModel):
    desired_count: Optional[int] = None
    cpu: Optional[int] = None
    memory_limit_mib: Optional[int] = None
    spot: bool = False


class AutoscalingModel(BaseModel):
    min_capacity: Optional[int] = None
    max_capacity: Optional[int] = None
    cpu_target_utilization_percent: Optional[int] = None


class LoadBalancerModel(BaseModel):
    healthcheck_path: Optional[str] = None


class CloudWatchAlarmModel(BaseModel):
    alarm_threshold: Optional[float] = None
    evaluation_periods: Optional[int] = None
    datapoints_to_alarm: Optional[int] = None


class CloudWatchAlarmsModel(BaseModel):
    cpu: CloudWatchAlarmModel = Field(default_factory=CloudWatchAlarmModel)
    memory: CloudWatchAlarmModel = Field(default_factory=CloudWatchAlarmModel)
    task_count: CloudWatchAlarmModel = Field(default_factory=CloudWatchAlarmModel)


class PolicyModel(BaseModel):
    resources: List[str]
    actions: List[str]


class CustomTagModel(BaseModel):
    key: str
    value: str


class EcsClusterModel(BaseModel):
    cluster_arn: Optional[str] = None
    cluster_name: Optional[str] = None
    security_group_id: Optional[str] = None


class StageModel(BaseModel):
    aws: AwsModel
    vpc: VpcModel = Field(default_factory=VpcModel)
    route53: Route53Model = Field(default_factory=Route53Model)
    acm: AcmModel = Field(default_factory=AcmModel)
    secrets_manager: List[SecretsManagerModel] = Field(default_factory=list)
    container: ContainerModel = Field(default_factory=ContainerModel)
    task: TaskModel = Field(default_factory=TaskModel)
    autoscaling: Optional[AutoscalingModel] = None
    load_balancer: Optional[LoadBalancerModel] = None
    cloudwatch_alarm: Optional[CloudWatchAlarmsModel] = None
    extra_policies: List[PolicyModel] = Field(default_factory=list)
    custom_tags: Optional[CustomTagModel] = None
    ecs: Optional[EcsClusterModel] = None
    build_strategy: Optional[str] = None

    @field_validator("secrets_manager", "extra_policies", mode="before")
    @classmethod
    def _coerce_lists(cls, v: Any) -> List[Any]:
        if v is None:
            return []
        return v


class AppModel(BaseModel):
    name: str
    container: ContainerModel = Field(default_factory=ContainerModel)
