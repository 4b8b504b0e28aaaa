"""Merge global and stage configuration into one :class:`NormalizedConfig`.

This is the only place defaults are applied. Everything downstream of
:func:`resolve_config` works on fully-defaulted, immutable values.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping, Optional

from pydantic import ValidationError

from ecs_deploy.config.models import AppModel, ContainerModel, StageModel
from ecs_deploy.config.naming import capitalize_first_letter, to_camel
from ecs_deploy.config.normalized import (
    PREVIEW_STAGE,
    AwsTarget,
    BuildStrategy,
    CertificateSpec,
    ClusterRef,
    ContainerSpec,
    CustomTag,
    DnsSpec,
    NetworkRef,
    NormalizedConfig,
    SecretReference,
    TaskSpec,
    frozen_mapping,
)
from ecs_deploy.core.autoscaling import resolve_autoscaling
from ecs_deploy.core.errors import ConfigValidationError
from ecs_deploy.core.policies import normalize_statement
from ecs_deploy.monitoring.alarms import resolve_alarms
from ecs_deploy.utils.logger import get_logger

DEFAULT_DESIRED_COUNT = 1
DEFAULT_TASK_CPU = 256
DEFAULT_TASK_MEMORY_MIB = 512
DEFAULT_CONTAINER_PORT = 80
DEFAULT_HEALTHCHECK_PATH = "/"
DEFAULT_IMAGE_VERSION = "latest"
DEFAULT_BUILD_CONTEXT = "."

logger = get_logger(__name__)


def derive_app_name(name: str) -> str:
    """``my-service`` -> ``MyService``."""
    return capitalize_first_letter(to_camel(name))


def derive_stack_name(app_name: str, stage: str, revision: Optional[str] = None) -> str:
    """``Ecs-App-<App><Stage>[<revision>]-Stack`` in camel form; revision only for preview."""
    suffix = revision if stage == PREVIEW_STAGE and revision else ""
    return to_camel(f"Ecs-App-{app_name}{capitalize_first_letter(stage)}{suffix}-Stack")


def derive_full_domain(hostname: str, domain: str, stage: str, revision: Optional[str] = None) -> str:
    """Join hostname and domain; preview hostnames get a ``-<revision>`` suffix."""
    if not domain:
        return ""
    if not hostname:
        return domain
    if stage == PREVIEW_STAGE and revision:
        hostname = f"{hostname}-{revision}"
    return f"{hostname}.{domain}"


def derive_image_ref(uri: str, version: Optional[str]) -> str:
    return f"{uri}:{version or DEFAULT_IMAGE_VERSION}"


def _positive(value: Optional[int], default: int, field_name: str) -> int:
    if value is None:
        return default
    if value <= 0:
        raise ConfigValidationError(f"{field_name} must be positive when set (got {value})")
    return value


def resolve_build_context(path: Optional[str]) -> str:
    """Absolute Docker build directory; relative paths resolve against the current directory."""
    return str(Path(path or DEFAULT_BUILD_CONTEXT).expanduser().resolve())


def _merge_container(base: ContainerModel, override: ContainerModel) -> ContainerModel:
    image = base.image.model_copy() if base.image else None
    if override.image is not None:
        updates = override.image.model_dump(exclude_none=True)
        image = image.model_copy(update=updates) if image else override.image
    return ContainerModel(
        port=override.port if override.port is not None else base.port,
        image=image,
        build_args={**base.build_args, **override.build_args},
        build_context=override.build_context or base.build_context,
        environment={**base.environment, **override.environment},
    )


def _build_strategy(raw: Optional[str]) -> BuildStrategy:
    if raw is None or not str(raw).strip():
        return BuildStrategy.MANAGED
    try:
        return BuildStrategy(str(raw).strip().lower())
    except ValueError:
        allowed = ", ".join(strategy.value for strategy in BuildStrategy)
        raise ConfigValidationError(f"Unknown build_strategy '{raw}' (expected one of: {allowed})") from None


def resolve_config(app_config: Mapping[str, Any], stage: str, revision: Optional[str] = None) -> NormalizedConfig:
    """Resolve ``stage`` of ``app_config`` into a :class:`NormalizedConfig`.

    Raises:
        ConfigValidationError: unknown stage, malformed values, missing VPC
            reference, incomplete DNS settings, non-positive task sizing,
            missing image URI or unknown build strategy.
        AutoscalingBoundsError: autoscaling min capacity above max capacity.
    """
    stage = str(stage or "").strip()
    revision = str(revision).strip() if revision is not None and str(revision).strip() else None

    stages = app_config.get("stages") or {}
    if stage not in stages:
        known = ", ".join(sorted(stages)) or "<none>"
        raise ConfigValidationError(f"Unknown stage '{stage}' (configured stages: {known})")

    try:
        app = AppModel.model_validate(app_config)
        raw = StageModel.model_validate(stages[stage])
    except ValidationError as exc:
        raise ConfigValidationError(f"Invalid configuration for stage '{stage}': {exc}") from exc

    is_preview = stage == PREVIEW_STAGE
    if is_preview and not revision:
        raise ConfigValidationError("A revision is required for the preview stage")

    if not raw.vpc.id and not raw.vpc.name:
        raise ConfigValidationError("Either Vpc Id or Vpc Name should be set.")

    route53 = raw.route53
    if route53.enable and (not route53.hostname or not route53.domain):
        raise ConfigValidationError("route53.hostname and route53.domain are required when route53.enable is true")

    container = _merge_container(app.container, raw.container)
    image_uri = (container.image.uri if container.image else None) or ""
    if not image_uri.strip():
        raise ConfigValidationError("container.image.uri must be set")
    image_version = revision or (container.image.version if container.image else None) or None

    strategy = _build_strategy(raw.build_strategy)
    app_name = derive_app_name(app.name)
    autoscaling = resolve_autoscaling(raw.autoscaling, strategy)

    config = NormalizedConfig(
        stage=stage,
        revision=revision,
        is_preview=is_preview,
        app_name=app_name,
        stack_name=derive_stack_name(app_name, stage, revision),
        build_strategy=strategy,
        aws=AwsTarget(account_name=raw.aws.account_name, account=raw.aws.account, region=raw.aws.region),
        network=NetworkRef(vpc_id=raw.vpc.id, vpc_name=None if raw.vpc.id else raw.vpc.name),
        dns=DnsSpec(enabled=route53.enable, domain=route53.domain, hostname=route53.hostname),
        full_domain=derive_full_domain(route53.hostname, route53.domain, stage, revision),
        certificate=CertificateSpec(create=raw.acm.create, arn=raw.acm.arn),
        secrets=tuple(
            SecretReference(arn=secret.arn, variables=frozen_mapping(secret.variables))
            for secret in raw.secrets_manager
        ),
        container=ContainerSpec(
            port=_positive(container.port, DEFAULT_CONTAINER_PORT, "container.port"),
            image_uri=image_uri.strip(),
            image_version=image_version,
            build_context=resolve_build_context(container.build_context),
            build_args=frozen_mapping(container.build_args),
            environment=frozen_mapping(container.environment),
        ),
        image_ref=derive_image_ref(image_uri.strip(), image_version),
        task=TaskSpec(
            desired_count=_positive(raw.task.desired_count, DEFAULT_DESIRED_COUNT, "task.desired_count"),
            cpu=_positive(raw.task.cpu, DEFAULT_TASK_CPU, "task.cpu"),
            memory_limit_mib=_positive(raw.task.memory_limit_mib, DEFAULT_TASK_MEMORY_MIB, "task.memory_limit_mib"),
            spot=raw.task.spot,
        ),
        autoscaling=autoscaling,
        alarms=resolve_alarms(raw.cloudwatch_alarm, autoscaling.min_capacity),
        healthcheck_path=(raw.load_balancer.healthcheck_path if raw.load_balancer else None)
        or DEFAULT_HEALTHCHECK_PATH,
        extra_policies=tuple(normalize_statement(policy.resources, policy.actions) for policy in raw.extra_policies),
        custom_tag=CustomTag(key=raw.custom_tags.key, value=raw.custom_tags.value) if raw.custom_tags else None,
        cluster=(
            ClusterRef(
                cluster_arn=raw.ecs.cluster_arn,
                cluster_name=raw.ecs.cluster_name,
                security_group_id=raw.ecs.security_group_id,
            )
            if raw.ecs and (raw.ecs.cluster_arn or raw.ecs.cluster_name)
            else None
        ),
    )
    logger.info(
        "Resolved stage configuration",
        extra={"stage": stage, "stack_name": config.stack_name},
    )
    return config
