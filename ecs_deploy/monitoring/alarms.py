"""CloudWatch alarms and dashboard for the deployed service."""

from __future__ import annotations

from typing import List, Optional

from ecs_deploy.config.models import CloudWatchAlarmModel, CloudWatchAlarmsModel
from ecs_deploy.config.naming import slice_word
from ecs_deploy.config.normalized import AlarmSpec, AlarmsSpec, NormalizedConfig
from ecs_deploy.core.errors import ConfigValidationError
from ecs_deploy.core.plan import MetricSpec, NodeKind, PlanGraph

DEFAULT_CPU_ALARM_THRESHOLD = 60.0
DEFAULT_MEMORY_ALARM_THRESHOLD = 75.0
DEFAULT_EVALUATION_PERIODS = 1

GREATER_THAN_OR_EQUAL_TO_THRESHOLD = "GreaterThanOrEqualToThreshold"
LESS_THAN_THRESHOLD = "LessThanThreshold"

DASHBOARD_ID = "Dashboard"

_LOAD_BALANCER_MARKDOWN = (
    "# Load Balancer\nmetrics to monitor load balancer metrics:\n"
    "* Amount of incoming requests\n"
    "* Latency with an alarm if max accepted latency exceeded."
)
_SERVICE_MARKDOWN = "# ECS Service\nmetrics to monitor service metrics:\n* CPU Utilization\n* Memory Utilization"


def _resolve_alarm(raw: Optional[CloudWatchAlarmModel], default_threshold: float) -> AlarmSpec:
    raw = raw or CloudWatchAlarmModel()
    threshold = default_threshold if raw.alarm_threshold is None else float(raw.alarm_threshold)
    periods = DEFAULT_EVALUATION_PERIODS if raw.evaluation_periods is None else raw.evaluation_periods
    if periods < 1:
        raise ConfigValidationError(f"evaluation_periods must be positive (got {periods})")
    if raw.datapoints_to_alarm is not None and not 1 <= raw.datapoints_to_alarm <= periods:
        raise ConfigValidationError(
            f"datapoints_to_alarm must be within 1..{periods} (got {raw.datapoints_to_alarm})"
        )
    return AlarmSpec(threshold=threshold, evaluation_periods=periods, datapoints_to_alarm=raw.datapoints_to_alarm)


def resolve_alarms(raw: Optional[CloudWatchAlarmsModel], min_capacity: int) -> AlarmsSpec:
    """Apply alarm defaults; the task-count floor follows autoscaling min capacity."""
    raw = raw or CloudWatchAlarmsModel()
    return AlarmsSpec(
        cpu=_resolve_alarm(raw.cpu, DEFAULT_CPU_ALARM_THRESHOLD),
        memory=_resolve_alarm(raw.memory, DEFAULT_MEMORY_ALARM_THRESHOLD),
        task_count=_resolve_alarm(raw.task_count, float(min_capacity)),
    )


def alarm_name(stack_name: str, metric: str) -> str:
    return f"Alarm{stack_name}{metric}"


def _format_threshold(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def attach_alarms(graph: PlanGraph, config: NormalizedConfig, service_id: str) -> List[str]:
    """Add CPU, memory and running-task-count alarms on the service."""
    alarms = config.alarms
    service_label = slice_word(config.app_name, 64)
    definitions = [
        (
            "CpuUtilization",
            MetricSpec("AWS/ECS", "CPUUtilization", "Average", service_id),
            alarms.cpu,
            GREATER_THAN_OR_EQUAL_TO_THRESHOLD,
            f"Alarming CPU Utilization higher than {_format_threshold(alarms.cpu.threshold)} "
            f"for service {service_label}",
        ),
        (
            "MemoryUtilization",
            MetricSpec("AWS/ECS", "MemoryUtilization", "Average", service_id),
            alarms.memory,
            GREATER_THAN_OR_EQUAL_TO_THRESHOLD,
            f"Alarming Memory Utilization higher than {_format_threshold(alarms.memory.threshold)} "
            f"for service {service_label}",
        ),
        (
            "RunningTaskCount",
            MetricSpec("ECS/ContainerInsights", "RunningTaskCount", "Average", service_id),
            alarms.task_count,
            LESS_THAN_THRESHOLD,
            f"Alarming Tasks running below {_format_threshold(alarms.task_count.threshold)} "
            f"for service {service_label}",
        ),
    ]

    node_ids: List[str] = []
    for metric_label, metric, spec, comparison, description in definitions:
        name = alarm_name(config.stack_name, metric_label)
        node_ids.append(
            graph.add(
                f"Alarm{metric_label}",
                NodeKind.ALARM,
                depends_on=(service_id,),
                alarm_name=name,
                alarm_description=description,
                metric=metric,
                threshold=spec.threshold,
                evaluation_periods=spec.evaluation_periods,
                datapoints_to_alarm=spec.datapoints_to_alarm,
                comparison_operator=comparison,
            )
        )
    return node_ids


def attach_dashboard(graph: PlanGraph, config: NormalizedConfig, service_id: str, load_balancer_id: str) -> str:
    """Add the two-row dashboard: load balancer traffic, then service usage."""
    rows = [
        [
            dict(type="text", markdown=_LOAD_BALANCER_MARKDOWN, width=6, height=6, source=load_balancer_id),
            dict(
                type="graph",
                title="Requests",
                width=9,
                metric=MetricSpec("AWS/ApplicationELB", "RequestCount", "Sum", load_balancer_id),
                source=load_balancer_id,
            ),
            dict(
                type="graph",
                title="Latency",
                width=9,
                metric=MetricSpec("AWS/ApplicationELB", "TargetResponseTime", "Average", load_balancer_id),
                source=load_balancer_id,
            ),
        ],
        [
            dict(type="text", markdown=_SERVICE_MARKDOWN, width=6, height=6, source=service_id),
            dict(
                type="graph",
                title="Cpu Utilization",
                width=9,
                metric=MetricSpec("AWS/ECS", "CPUUtilization", "Average", service_id),
                source=service_id,
            ),
            dict(
                type="graph",
                title="Memory Utilization",
                width=9,
                metric=MetricSpec("AWS/ECS", "MemoryUtilization", "Average", service_id),
                source=service_id,
            ),
        ],
    ]

    widget_rows: List[List[str]] = []
    index = 0
    for row in rows:
        widget_ids: List[str] = []
        for widget in row:
            source = widget.pop("source")
            widget_id = graph.add(
                f"DashboardWidget{index}",
                NodeKind.DASHBOARD_WIDGET,
                depends_on=(source,),
                **widget,
            )
            widget_ids.append(widget_id)
            index += 1
        widget_rows.append(widget_ids)

    return graph.add(
        DASHBOARD_ID,
        NodeKind.DASHBOARD,
        depends_on=tuple(widget_id for row in widget_rows for widget_id in row),
        dashboard_name=f"{config.stack_name}-dashboard",
        rows=widget_rows,
    )
