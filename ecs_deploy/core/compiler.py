"""Entry point of the configuration-to-topology compiler."""

from __future__ import annotations

from typing import Any, Mapping, Optional

from ecs_deploy.config.normalized import NormalizedConfig
from ecs_deploy.config.resolver import resolve_config
from ecs_deploy.core.autoscaling import attach_autoscaling
from ecs_deploy.core.certificate import decide_certificate
from ecs_deploy.core.lookups import DeferredLookupResolver, LookupResolver
from ecs_deploy.core.plan import DeploymentPlan
from ecs_deploy.core.secrets import map_secrets
from ecs_deploy.core.tagging import resolve_tags
from ecs_deploy.core.topology import TopologyBuilder
from ecs_deploy.monitoring.alarms import attach_alarms, attach_dashboard
from ecs_deploy.utils.logger import get_logger


def compile_plan(config: NormalizedConfig, lookups: LookupResolver) -> DeploymentPlan:
    """Compile a normalized configuration into a complete deployment plan.

    Nothing is returned unless every step succeeds; any error propagates to
    the caller and the partially built graph is discarded.
    """
    logger = get_logger(__name__, stage=config.stage, stack_name=config.stack_name)

    certificate = decide_certificate(config, lookups)
    secrets = map_secrets(config.secrets)
    logger.info(
        "Certificate strategy %s, %d secret variable(s) from %d secret(s)",
        certificate.to_dict()["type"],
        len(secrets),
        len(secrets.arns()),
    )

    topology = TopologyBuilder(config, certificate, secrets, lookups).build()
    graph = topology.graph
    attach_autoscaling(graph, config, topology.service)
    attach_alarms(graph, config, topology.service)
    attach_dashboard(graph, config, topology.service, topology.load_balancing.load_balancer)

    tags = resolve_tags(config)
    plan = DeploymentPlan(
        config=config,
        certificate=certificate,
        secrets=secrets,
        tags=tags,
        nodes=graph.freeze(tags),
    )
    logger.info("Compiled deployment plan with %d nodes", len(plan.nodes))
    return plan


def build_deployment_plan(
    app_config: Mapping[str, Any],
    stage: str,
    revision: Optional[str] = None,
    lookups: Optional[LookupResolver] = None,
) -> DeploymentPlan:
    """Resolve ``stage`` of ``app_config`` and compile it in one call."""
    config = resolve_config(app_config, stage, revision)
    return compile_plan(config, lookups or DeferredLookupResolver())
