"""Autoscaling bounds and the CPU scaling rule for the service."""

from __future__ import annotations

from typing import Mapping, Optional, Tuple

from ecs_deploy.config.models import AutoscalingModel
from ecs_deploy.config.normalized import AutoscalingSpec, BuildStrategy, NormalizedConfig
from ecs_deploy.core.errors import AutoscalingBoundsError, ConfigValidationError
from ecs_deploy.core.plan import NodeKind, PlanGraph

DEFAULT_MIN_CAPACITY = 1
DEFAULT_CPU_TARGET_UTILIZATION_PERCENT = 80

# Default ceiling differs per build strategy.
MANAGED_DEFAULT_MAX_CAPACITY = 8
EXPLICIT_DEFAULT_MAX_CAPACITY = 4

DEFAULT_MAX_CAPACITY: Mapping[BuildStrategy, int] = {
    BuildStrategy.MANAGED: MANAGED_DEFAULT_MAX_CAPACITY,
    BuildStrategy.EXPLICIT: EXPLICIT_DEFAULT_MAX_CAPACITY,
}

SCALABLE_TARGET_ID = "ScalableTarget"
CPU_SCALING_ID = "CpuScaling"


def resolve_autoscaling(raw: Optional[AutoscalingModel], strategy: BuildStrategy) -> AutoscalingSpec:
    """Apply strategy-specific defaults and check the bounds."""
    raw = raw or AutoscalingModel()
    min_capacity = DEFAULT_MIN_CAPACITY if raw.min_capacity is None else raw.min_capacity
    max_capacity = DEFAULT_MAX_CAPACITY[strategy] if raw.max_capacity is None else raw.max_capacity
    cpu_target = (
        DEFAULT_CPU_TARGET_UTILIZATION_PERCENT
        if raw.cpu_target_utilization_percent is None
        else raw.cpu_target_utilization_percent
    )

    if min_capacity < 0 or max_capacity < 1:
        raise ConfigValidationError(
            f"Autoscaling capacities must be non-negative with max >= 1 (got {min_capacity}..{max_capacity})"
        )
    if min_capacity > max_capacity:
        raise AutoscalingBoundsError(min_capacity, max_capacity)
    if not 0 < cpu_target <= 100:
        raise ConfigValidationError(f"cpu_target_utilization_percent must be within 1..100 (got {cpu_target})")

    return AutoscalingSpec(
        min_capacity=min_capacity,
        max_capacity=max_capacity,
        cpu_target_utilization_percent=cpu_target,
    )


def attach_autoscaling(graph: PlanGraph, config: NormalizedConfig, service_id: str) -> Tuple[str, str]:
    """Add the scalable target and CPU target-tracking rule for the service."""
    spec = config.autoscaling
    target_id = graph.add(
        SCALABLE_TARGET_ID,
        NodeKind.SCALING_TARGET,
        depends_on=(service_id,),
        service=service_id,
        scalable_dimension="ecs:service:DesiredCount",
        min_capacity=spec.min_capacity,
        max_capacity=spec.max_capacity,
    )
    policy_id = graph.add(
        CPU_SCALING_ID,
        NodeKind.SCALING_POLICY,
        depends_on=(target_id,),
        scalable_target=target_id,
        metric="CPUUtilization",
        target_utilization_percent=spec.cpu_target_utilization_percent,
    )
    return target_id, policy_id
