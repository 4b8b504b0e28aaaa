"""Assemble the ordered resource graph for the containerized service.

Both build strategies go through the same steps and emit the same node kinds;
they only differ in node properties (how the load-balancing layer is
materialized, which listener protocol is used, and whether the image is pushed
to a private registry before the service is created).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from ecs_deploy.config.normalized import BuildStrategy, NormalizedConfig
from ecs_deploy.core.certificate import CertificateDecision, CreatedCertificate, ImportedCertificate
from ecs_deploy.core.errors import ConfigValidationError, MissingHostedZone
from ecs_deploy.core.lookups import LookupRef, LookupResolver
from ecs_deploy.core.plan import NodeKind, PlanGraph
from ecs_deploy.core.policies import ECR_PULL_STATEMENT, statement_to_dict
from ecs_deploy.core.secrets import SecretBinding
from ecs_deploy.utils.logger import get_logger

NETWORK_ID = "Vpc"
HOSTED_ZONE_ID = "HostedZone"
CERTIFICATE_ID = "Certificate"
LOAD_BALANCER_ID = "LoadBalancer"
TARGET_GROUP_ID = "TargetGroup"
LISTENER_ID = "Listener"
IMAGE_ID = "ImageAsset"
TASK_DEFINITION_ID = "TaskDefinition"
CLUSTER_ID = "Cluster"
SERVICE_ID = "Service"
DNS_RECORD_ID = "AliasRecord"

CONTAINER_NAME = "web"
DEREGISTRATION_DELAY_SECONDS = 60
FARGATE_SPOT_WEIGHT = 4
FARGATE_WEIGHT = 1

logger = get_logger(__name__)


@dataclass(frozen=True)
class LoadBalancingLayer:
    load_balancer: str
    target_group: str
    listener: str


@dataclass(frozen=True)
class Topology:
    """Result of :meth:`TopologyBuilder.build`: the graph plus anchor node ids."""

    graph: PlanGraph
    network: str
    load_balancing: LoadBalancingLayer
    cluster: str
    service: str
    hosted_zone: Optional[str] = None
    dns_record: Optional[str] = None


class TopologyBuilder:
    """Build network -> load balancing -> compute -> DNS for one stage."""

    def __init__(
        self,
        config: NormalizedConfig,
        certificate: CertificateDecision,
        secrets: SecretBinding,
        lookups: LookupResolver,
    ) -> None:
        self.config = config
        self.certificate = certificate
        self.secrets = secrets
        self.lookups = lookups
        self.logger = get_logger(__name__, stage=config.stage, stack_name=config.stack_name)

    @property
    def strategy(self) -> BuildStrategy:
        return self.config.build_strategy

    def build(self) -> Topology:
        graph = PlanGraph()

        network_id = self._add_network(graph)
        zone_id = self._add_hosted_zone(graph)
        certificate_id = self._add_certificate(graph, zone_id)
        layer = self._add_load_balancing(graph, network_id, certificate_id)
        task_definition_id = self._add_task_definition(graph)
        cluster_id, service_id = self._add_service(graph, network_id, task_definition_id)
        self._apply_capacity_strategy(graph, service_id)
        self._attach_to_load_balancer(graph, service_id, layer)
        dns_record_id = self._add_dns_record(graph, zone_id, layer)

        self.logger.info(
            "Assembled %s topology with %d nodes",
            self.strategy.value,
            len(graph),
        )
        return Topology(
            graph=graph,
            network=network_id,
            load_balancing=layer,
            cluster=cluster_id,
            service=service_id,
            hosted_zone=zone_id,
            dns_record=dns_record_id,
        )

    # 1. network
    def _add_network(self, graph: PlanGraph) -> str:
        ref = self.lookups.resolve_network(self.config.network)
        return graph.add(
            NETWORK_ID,
            NodeKind.NETWORK,
            lookup=_lookup_properties(ref),
            vpc_id=self.config.network.vpc_id,
            vpc_name=self.config.network.vpc_name,
        )

    # 2. hosted zone
    def _add_hosted_zone(self, graph: PlanGraph) -> Optional[str]:
        if isinstance(self.certificate, CreatedCertificate):
            zone: Optional[LookupRef] = self.certificate.zone
        elif self.config.dns.enabled:
            zone = self.lookups.resolve_hosted_zone(self.config.dns.domain)
        else:
            return None

        if zone is None:
            raise MissingHostedZone(self.config.dns.domain)
        return graph.add(
            HOSTED_ZONE_ID,
            NodeKind.HOSTED_ZONE,
            lookup=_lookup_properties(zone),
            zone_name=zone.get("zone_name") or self.config.dns.domain,
            hosted_zone_id=zone.get("hosted_zone_id"),
        )

    # 3. certificate
    def _add_certificate(self, graph: PlanGraph, zone_id: Optional[str]) -> Optional[str]:
        decision = self.certificate
        if isinstance(decision, ImportedCertificate):
            return graph.add(CERTIFICATE_ID, NodeKind.CERTIFICATE, mode="imported", certificate_arn=decision.arn)
        if isinstance(decision, CreatedCertificate):
            assert zone_id is not None
            return graph.add(
                CERTIFICATE_ID,
                NodeKind.CERTIFICATE,
                depends_on=(zone_id,),
                mode="created",
                domain_name=decision.domain,
                hosted_zone=zone_id,
                validation="DNS",
            )
        return None

    # 4. load balancing
    def _add_load_balancing(
        self, graph: PlanGraph, network_id: str, certificate_id: Optional[str]
    ) -> LoadBalancingLayer:
        managed = self.strategy is BuildStrategy.MANAGED
        if not managed and certificate_id is None:
            raise ConfigValidationError(
                "The explicit build strategy always terminates TLS on port 443; "
                "set acm.arn or acm.create for this stage"
            )

        load_balancer_id = graph.add(
            LOAD_BALANCER_ID,
            NodeKind.LOAD_BALANCER,
            depends_on=(network_id,),
            managed=managed,
            internet_facing=True,
            subnets="public",
            vpc=network_id,
        )
        target_group_id = graph.add(
            TARGET_GROUP_ID,
            NodeKind.TARGET_GROUP,
            depends_on=(network_id,),
            managed=managed,
            vpc=network_id,
            port=self.config.container.port,
            protocol="HTTP",
            target_type="ip",
            health_check_path=self.config.healthcheck_path,
            deregistration_delay_seconds=DEREGISTRATION_DELAY_SECONDS,
        )

        if managed:
            protocol, port = self.certificate.protocol, self.certificate.listener_port
        else:
            protocol, port = "HTTPS", 443
        listener_dependencies: Tuple[str, ...] = (load_balancer_id, target_group_id)
        if certificate_id is not None:
            listener_dependencies += (certificate_id,)
        listener_id = graph.add(
            LISTENER_ID,
            NodeKind.LISTENER,
            depends_on=listener_dependencies,
            managed=managed,
            load_balancer=load_balancer_id,
            default_target_group=target_group_id,
            protocol=protocol,
            port=port,
            certificate=certificate_id if protocol == "HTTPS" else None,
        )
        self.logger.info("Listener serves %s on port %d", protocol, port)
        return LoadBalancingLayer(load_balancer=load_balancer_id, target_group=target_group_id, listener=listener_id)

    # 5. task definition
    def _add_task_definition(self, graph: PlanGraph) -> str:
        config = self.config
        dependencies: Tuple[str, ...] = ()

        secret_node_by_arn: Dict[str, str] = {}
        for index, arn in enumerate(self.secrets.arns()):
            ref = self.lookups.resolve_secret(arn)
            secret_node_by_arn[arn] = graph.add(
                f"Secret{index}",
                NodeKind.SECRET,
                lookup=_lookup_properties(ref),
                secret_arn=arn,
            )
            dependencies += (secret_node_by_arn[arn],)

        image: Dict[str, Any] = {"source": "registry", "image_ref": config.image_ref}
        if self.strategy is BuildStrategy.EXPLICIT:
            image_id = graph.add(
                IMAGE_ID,
                NodeKind.IMAGE,
                build_context=config.container.build_context,
                build_args=dict(config.container.build_args),
                destination_repository=_repository_name(config.container.image_uri),
                destination_uri=config.container.image_uri,
                tag=config.container.image_version or "latest",
            )
            dependencies += (image_id,)
            image = {"source": "pushed", "image": image_id, "image_ref": config.image_ref}

        container_secrets = {
            variable: {"secret": secret_node_by_arn[ref.arn], "arn": ref.arn, "key": ref.key}
            for variable, ref in self.secrets.items()
        }
        return graph.add(
            TASK_DEFINITION_ID,
            NodeKind.TASK_DEFINITION,
            depends_on=dependencies,
            cpu=config.task.cpu,
            memory_limit_mib=config.task.memory_limit_mib,
            container=dict(
                name=CONTAINER_NAME,
                image=image,
                port=config.container.port,
                environment=dict(config.container.environment),
                secrets=container_secrets,
                log_stream_prefix=config.app_name,
            ),
            execution_role_statements=[statement_to_dict(ECR_PULL_STATEMENT)],
            task_role_statements=[statement_to_dict(statement) for statement in config.extra_policies],
        )

    # 6. cluster and service
    def _add_service(self, graph: PlanGraph, network_id: str, task_definition_id: str) -> Tuple[str, str]:
        config = self.config
        if config.cluster is not None:
            cluster_id = graph.add(
                CLUSTER_ID,
                NodeKind.CLUSTER,
                depends_on=(network_id,),
                mode="imported",
                vpc=network_id,
                cluster_arn=config.cluster.cluster_arn,
                cluster_name=config.cluster.cluster_name,
                security_group_id=config.cluster.security_group_id,
            )
        else:
            cluster_id = graph.add(
                CLUSTER_ID,
                NodeKind.CLUSTER,
                depends_on=(network_id,),
                mode="created",
                vpc=network_id,
                container_insights=True,
                enable_fargate_capacity_providers=config.task.spot,
            )

        service_id = graph.add(
            SERVICE_ID,
            NodeKind.SERVICE,
            depends_on=(cluster_id, task_definition_id, network_id),
            managed=self.strategy is BuildStrategy.MANAGED,
            cluster=cluster_id,
            task_definition=task_definition_id,
            desired_count=config.task.desired_count,
            launch_type="FARGATE",
            capacity_provider_strategy=None,
            circuit_breaker={"rollback": True},
            enable_ecs_managed_tags=True,
            enable_execute_command=True,
            assign_public_ip=False,
            task_subnets="private",
        )
        return cluster_id, service_id

    # 7. spot capacity
    def _apply_capacity_strategy(self, graph: PlanGraph, service_id: str) -> None:
        if not self.config.task.spot:
            return
        graph.update(
            service_id,
            launch_type=None,
            capacity_provider_strategy=[
                {"capacity_provider": "FARGATE_SPOT", "weight": FARGATE_SPOT_WEIGHT},
                {"capacity_provider": "FARGATE", "weight": FARGATE_WEIGHT},
            ],
        )

    # 8. service -> target group
    def _attach_to_load_balancer(self, graph: PlanGraph, service_id: str, layer: LoadBalancingLayer) -> None:
        graph.link(
            service_id,
            layer.target_group,
            target_group=layer.target_group,
            load_balancer=layer.load_balancer,
            listener=layer.listener,
            container_name=CONTAINER_NAME,
            container_port=self.config.container.port,
        )
        graph.link(service_id, layer.listener)

    # 9. DNS
    def _add_dns_record(self, graph: PlanGraph, zone_id: Optional[str], layer: LoadBalancingLayer) -> Optional[str]:
        if not self.config.dns.enabled:
            return None
        assert zone_id is not None
        return graph.add(
            DNS_RECORD_ID,
            NodeKind.DNS_RECORD,
            depends_on=(zone_id, layer.load_balancer),
            zone=zone_id,
            record_name=self.config.full_domain,
            record_type="A",
            alias_target=layer.load_balancer,
        )


def _lookup_properties(ref: LookupRef) -> Dict[str, Any]:
    return {"kind": ref.kind, "key": ref.key, "deferred": ref.deferred, "attributes": dict(ref.attributes)}


def _repository_name(image_uri: str) -> str:
    """``123.dkr.ecr.us-east-1.amazonaws.com/team/app`` -> ``team/app``."""
    _, _, path = image_uri.partition("/")
    return path or image_uri
