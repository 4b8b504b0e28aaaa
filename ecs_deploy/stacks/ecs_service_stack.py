"""ECS Fargate service stack rendered from a compiled deployment plan."""

from typing import Any, Callable, Dict, Mapping, Optional

import aws_cdk as cdk
from aws_cdk import (
    Stack,
    Duration,
    CfnOutput,
    Tags,
    aws_certificatemanager as acm,
    aws_cloudwatch as cloudwatch,
    aws_ec2 as ec2,
    aws_ecr_assets as ecr_assets,
    aws_ecs as ecs,
    aws_ecs_patterns as ecs_patterns,
    aws_elasticloadbalancingv2 as elbv2,
    aws_iam as iam,
    aws_route53 as route53,
    aws_route53_targets as route53_targets,
    aws_secretsmanager as secretsmanager,
)
from constructs import Construct

from ecs_deploy.core.plan import DeploymentPlan, MetricSpec, NodeKind, ResourceNode
from ecs_deploy.utils.logger import get_logger

_COMPARISON_OPERATORS = {
    "GreaterThanOrEqualToThreshold": cloudwatch.ComparisonOperator.GREATER_THAN_OR_EQUAL_TO_THRESHOLD,
    "LessThanThreshold": cloudwatch.ComparisonOperator.LESS_THAN_THRESHOLD,
}


def stack_synthesizer(plan: DeploymentPlan) -> Optional[cdk.IStackSynthesizer]:
    """Point image assets at the configured registry for the explicit strategy."""
    image = plan.first_of_kind(NodeKind.IMAGE)
    if image is None:
        return None
    return cdk.DefaultStackSynthesizer(
        image_assets_repository_name=image.get("destination_repository"),
        docker_tag_prefix=f"{image.get('tag')}-",
    )


class EcsServiceStack(Stack):
    """Materialize every node of a :class:`DeploymentPlan`, in plan order."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        plan: DeploymentPlan,
        **kwargs,
    ) -> None:
        if "synthesizer" not in kwargs:
            synthesizer = stack_synthesizer(plan)
            if synthesizer is not None:
                kwargs["synthesizer"] = synthesizer
        super().__init__(scope, construct_id, **kwargs)

        self.plan = plan
        self.env_name = plan.stage
        self.resources: Dict[str, Any] = {}
        self.pattern: Optional[ecs_patterns.ApplicationLoadBalancedFargateService] = None
        self.logger = get_logger(__name__, stage=plan.stage, stack_name=plan.stack_name)

        renderers: Dict[NodeKind, Callable[[ResourceNode], Any]] = {
            NodeKind.NETWORK: self._render_network,
            NodeKind.HOSTED_ZONE: self._render_hosted_zone,
            NodeKind.CERTIFICATE: self._render_certificate,
            NodeKind.SECRET: self._render_secret,
            NodeKind.LOAD_BALANCER: self._render_load_balancer,
            NodeKind.TARGET_GROUP: self._render_target_group,
            NodeKind.LISTENER: self._render_listener,
            NodeKind.IMAGE: self._render_image,
            NodeKind.TASK_DEFINITION: self._render_task_definition,
            NodeKind.CLUSTER: self._render_cluster,
            NodeKind.SERVICE: self._render_service,
            NodeKind.DNS_RECORD: self._render_dns_record,
            NodeKind.SCALING_TARGET: self._render_scaling_target,
            NodeKind.SCALING_POLICY: self._render_scaling_policy,
            NodeKind.ALARM: self._render_alarm,
            NodeKind.DASHBOARD_WIDGET: self._render_dashboard_widget,
            NodeKind.DASHBOARD: self._render_dashboard,
        }
        for node in plan.nodes:
            resource = renderers[node.kind](node)
            if resource is not None:
                self.resources[node.node_id] = resource
            self.logger.debug("Rendered %s", node.node_id, extra={"node_id": node.node_id, "kind": node.kind.value})

        for key, value in plan.tags.items():
            Tags.of(self).add(key, value)

        self._create_outputs()
        self.logger.info("Rendered %d plan nodes", len(plan.nodes))

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _render_network(self, node: ResourceNode) -> ec2.IVpc:
        attributes = node.get("lookup")["attributes"]
        vpc_id = attributes.get("vpc_id") or node.get("vpc_id")
        if vpc_id:
            return ec2.Vpc.from_lookup(self, node.node_id, vpc_id=vpc_id)
        return ec2.Vpc.from_lookup(self, node.node_id, vpc_name=node.get("vpc_name"))

    def _render_hosted_zone(self, node: ResourceNode) -> route53.IHostedZone:
        if node.get("hosted_zone_id"):
            return route53.HostedZone.from_hosted_zone_attributes(
                self,
                node.node_id,
                hosted_zone_id=node.get("hosted_zone_id"),
                zone_name=node.get("zone_name"),
            )
        return route53.HostedZone.from_lookup(self, node.node_id, domain_name=node.get("zone_name"))

    def _render_certificate(self, node: ResourceNode) -> acm.ICertificate:
        if node.get("mode") == "imported":
            return acm.Certificate.from_certificate_arn(self, node.node_id, node.get("certificate_arn"))
        return acm.Certificate(
            self,
            node.node_id,
            domain_name=node.get("domain_name"),
            validation=acm.CertificateValidation.from_dns(self.resources[node.get("hosted_zone")]),
        )

    def _render_secret(self, node: ResourceNode) -> secretsmanager.ISecret:
        return secretsmanager.Secret.from_secret_complete_arn(self, node.node_id, node.get("secret_arn"))

    # ------------------------------------------------------------------
    # Load balancing (managed nodes are rendered together with the service)
    # ------------------------------------------------------------------

    def _render_load_balancer(self, node: ResourceNode) -> Optional[elbv2.ApplicationLoadBalancer]:
        if node.get("managed"):
            return None
        return elbv2.ApplicationLoadBalancer(
            self,
            node.node_id,
            vpc=self.resources[node.get("vpc")],
            internet_facing=node.get("internet_facing"),
            vpc_subnets=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PUBLIC),
        )

    def _render_target_group(self, node: ResourceNode) -> Optional[elbv2.ApplicationTargetGroup]:
        if node.get("managed"):
            return None
        return elbv2.ApplicationTargetGroup(
            self,
            node.node_id,
            vpc=self.resources[node.get("vpc")],
            port=node.get("port"),
            protocol=elbv2.ApplicationProtocol[node.get("protocol")],
            target_type=elbv2.TargetType.IP,
            health_check=elbv2.HealthCheck(path=node.get("health_check_path")),
            deregistration_delay=Duration.seconds(node.get("deregistration_delay_seconds")),
        )

    def _render_listener(self, node: ResourceNode) -> Optional[elbv2.ApplicationListener]:
        if node.get("managed"):
            return None
        certificates = []
        if node.get("certificate"):
            certificates.append(
                elbv2.ListenerCertificate.from_certificate_manager(self.resources[node.get("certificate")])
            )
        return elbv2.ApplicationListener(
            self,
            node.node_id,
            load_balancer=self.resources[node.get("load_balancer")],
            port=node.get("port"),
            protocol=elbv2.ApplicationProtocol[node.get("protocol")],
            certificates=certificates or None,
            default_target_groups=[self.resources[node.get("default_target_group")]],
        )

    # ------------------------------------------------------------------
    # Compute
    # ------------------------------------------------------------------

    def _render_image(self, node: ResourceNode) -> ecr_assets.DockerImageAsset:
        return ecr_assets.DockerImageAsset(
            self,
            node.node_id,
            directory=node.get("build_context"),
            build_args=dict(node.get("build_args")) or None,
        )

    def _render_task_definition(self, node: ResourceNode) -> ecs.FargateTaskDefinition:
        task_definition = ecs.FargateTaskDefinition(
            self,
            node.node_id,
            cpu=node.get("cpu"),
            memory_limit_mib=node.get("memory_limit_mib"),
        )

        container = node.get("container")
        image = container["image"]
        if image["source"] == "pushed":
            container_image = ecs.ContainerImage.from_docker_image_asset(self.resources[image["image"]])
        else:
            container_image = ecs.ContainerImage.from_registry(image["image_ref"])

        task_definition.add_container(
            container["name"],
            image=container_image,
            port_mappings=[ecs.PortMapping(container_port=container["port"])],
            environment=dict(container["environment"]) or None,
            secrets={
                variable: ecs.Secret.from_secrets_manager(self.resources[binding["secret"]], binding["key"])
                for variable, binding in container["secrets"].items()
            }
            or None,
            logging=ecs.LogDrivers.aws_logs(stream_prefix=container["log_stream_prefix"]),
        )

        for statement in node.get("execution_role_statements"):
            task_definition.add_to_execution_role_policy(_policy_statement(statement))
        for statement in node.get("task_role_statements"):
            task_definition.add_to_task_role_policy(_policy_statement(statement))
        return task_definition

    def _render_cluster(self, node: ResourceNode) -> ecs.ICluster:
        vpc = self.resources[node.get("vpc")]
        if node.get("mode") == "imported":
            security_groups = []
            if node.get("security_group_id"):
                security_groups.append(
                    ec2.SecurityGroup.from_security_group_id(
                        self, "ClusterSecurityGroup", node.get("security_group_id")
                    )
                )
            cluster_name = node.get("cluster_name") or cdk.Arn.extract_resource_name(
                node.get("cluster_arn"), "cluster"
            )
            return ecs.Cluster.from_cluster_attributes(
                self,
                node.node_id,
                cluster_name=cluster_name,
                cluster_arn=node.get("cluster_arn"),
                vpc=vpc,
                security_groups=security_groups,
            )
        return ecs.Cluster(
            self,
            node.node_id,
            vpc=vpc,
            container_insights=node.get("container_insights"),
            enable_fargate_capacity_providers=node.get("enable_fargate_capacity_providers"),
        )

    def _render_service(self, node: ResourceNode) -> ecs.FargateService:
        if node.get("managed"):
            return self._render_managed_service(node)

        vpc = self.resources[self.plan.first_of_kind(NodeKind.NETWORK).node_id]
        service = ecs.FargateService(
            self,
            node.node_id,
            cluster=self.resources[node.get("cluster")],
            task_definition=self.resources[node.get("task_definition")],
            desired_count=node.get("desired_count"),
            capacity_provider_strategies=_capacity_provider_strategies(node),
            circuit_breaker=ecs.DeploymentCircuitBreaker(rollback=node.get("circuit_breaker")["rollback"]),
            enable_ecs_managed_tags=node.get("enable_ecs_managed_tags"),
            enable_execute_command=node.get("enable_execute_command"),
            assign_public_ip=node.get("assign_public_ip"),
            vpc_subnets=ec2.SubnetSelection(subnets=vpc.private_subnets),
        )
        target_group = self.resources[node.get("target_group")]
        target_group.add_target(
            service.load_balancer_target(
                container_name=node.get("container_name"),
                container_port=node.get("container_port"),
            )
        )
        return service

    def _render_managed_service(self, node: ResourceNode) -> ecs.FargateService:
        listener = self.plan.node(node.get("listener"))
        target_group = self.plan.node(node.get("target_group"))
        vpc = self.resources[self.plan.first_of_kind(NodeKind.NETWORK).node_id]

        certificate = None
        if listener.get("certificate"):
            certificate = self.resources[listener.get("certificate")]

        pattern = ecs_patterns.ApplicationLoadBalancedFargateService(
            self,
            node.node_id,
            cluster=self.resources[node.get("cluster")],
            task_definition=self.resources[node.get("task_definition")],
            desired_count=node.get("desired_count"),
            protocol=elbv2.ApplicationProtocol[listener.get("protocol")],
            listener_port=listener.get("port"),
            certificate=certificate,
            public_load_balancer=self.plan.node(node.get("load_balancer")).get("internet_facing"),
            capacity_provider_strategies=_capacity_provider_strategies(node),
            circuit_breaker=ecs.DeploymentCircuitBreaker(rollback=node.get("circuit_breaker")["rollback"]),
            enable_ecs_managed_tags=node.get("enable_ecs_managed_tags"),
            enable_execute_command=node.get("enable_execute_command"),
            assign_public_ip=node.get("assign_public_ip"),
            task_subnets=ec2.SubnetSelection(subnets=vpc.private_subnets),
        )
        pattern.target_group.configure_health_check(path=target_group.get("health_check_path"))
        pattern.target_group.set_attribute(
            "deregistration_delay.timeout_seconds",
            str(target_group.get("deregistration_delay_seconds")),
        )

        self.pattern = pattern
        self.resources[node.get("load_balancer")] = pattern.load_balancer
        self.resources[node.get("target_group")] = pattern.target_group
        self.resources[node.get("listener")] = pattern.listener
        return pattern.service

    def _render_dns_record(self, node: ResourceNode) -> route53.ARecord:
        return route53.ARecord(
            self,
            node.node_id,
            zone=self.resources[node.get("zone")],
            record_name=node.get("record_name"),
            target=route53.RecordTarget.from_alias(
                route53_targets.LoadBalancerTarget(self.resources[node.get("alias_target")])
            ),
        )

    # ------------------------------------------------------------------
    # Scaling and monitoring
    # ------------------------------------------------------------------

    def _render_scaling_target(self, node: ResourceNode) -> ecs.ScalableTaskCount:
        return self.resources[node.get("service")].auto_scale_task_count(
            min_capacity=node.get("min_capacity"),
            max_capacity=node.get("max_capacity"),
        )

    def _render_scaling_policy(self, node: ResourceNode) -> None:
        self.resources[node.get("scalable_target")].scale_on_cpu_utilization(
            node.node_id,
            target_utilization_percent=node.get("target_utilization_percent"),
        )

    def _metric(self, spec: MetricSpec) -> cloudwatch.Metric:
        source = self.plan.node(spec.source)
        resource = self.resources[spec.source]
        if source.kind is NodeKind.LOAD_BALANCER:
            dimensions = {"LoadBalancer": resource.load_balancer_full_name}
        else:
            dimensions = {"ClusterName": resource.cluster.cluster_name, "ServiceName": resource.service_name}
        return cloudwatch.Metric(
            namespace=spec.namespace,
            metric_name=spec.metric_name,
            statistic=spec.statistic,
            period=Duration.minutes(spec.period_minutes),
            dimensions_map=dimensions,
        )

    def _render_alarm(self, node: ResourceNode) -> cloudwatch.Alarm:
        return cloudwatch.Alarm(
            self,
            node.node_id,
            alarm_name=node.get("alarm_name"),
            alarm_description=node.get("alarm_description"),
            metric=self._metric(node.get("metric")),
            threshold=node.get("threshold"),
            evaluation_periods=node.get("evaluation_periods"),
            datapoints_to_alarm=node.get("datapoints_to_alarm"),
            comparison_operator=_COMPARISON_OPERATORS[node.get("comparison_operator")],
        )

    def _render_dashboard_widget(self, node: ResourceNode) -> cloudwatch.IWidget:
        if node.get("type") == "text":
            return cloudwatch.TextWidget(
                markdown=node.get("markdown"),
                width=node.get("width"),
                height=node.get("height"),
            )
        return cloudwatch.GraphWidget(
            title=node.get("title"),
            width=node.get("width"),
            left=[self._metric(node.get("metric"))],
        )

    def _render_dashboard(self, node: ResourceNode) -> cloudwatch.Dashboard:
        dashboard = cloudwatch.Dashboard(self, node.node_id, dashboard_name=node.get("dashboard_name"))
        for row in node.get("rows"):
            dashboard.add_widgets(*[self.resources[widget_id] for widget_id in row])
        return dashboard

    # ------------------------------------------------------------------
    # Outputs
    # ------------------------------------------------------------------

    def _create_outputs(self) -> None:
        load_balancer_node = self.plan.first_of_kind(NodeKind.LOAD_BALANCER)
        listener_node = self.plan.first_of_kind(NodeKind.LISTENER)
        load_balancer = self.resources[load_balancer_node.node_id]

        CfnOutput(
            self,
            "LoadBalancerDnsName",
            value=load_balancer.load_balancer_dns_name,
            description="Public DNS name of the application load balancer",
        )

        host = self.plan.config.full_domain if self.plan.config.dns.enabled else load_balancer.load_balancer_dns_name
        CfnOutput(
            self,
            "ServiceUrl",
            value=f"{listener_node.get('protocol').lower()}://{host}",
            description="URL the service is reachable at",
        )

        dashboard_node = self.plan.first_of_kind(NodeKind.DASHBOARD)
        if dashboard_node is not None:
            url = (
                f"https://{self.region}.console.aws.amazon.com/cloudwatch/home"
                f"?region={self.region}#dashboards:name={dashboard_node.get('dashboard_name')}"
            )
            CfnOutput(
                self,
                "DashboardUrl",
                value=url,
                description="CloudWatch dashboard for the service",
            )

        CfnOutput(
            self,
            "BuildStrategy",
            value=self.plan.build_strategy.value,
            description="Strategy used to materialize the load balancing layer",
        )


def _policy_statement(statement: Mapping[str, Any]) -> iam.PolicyStatement:
    return iam.PolicyStatement(
        effect=iam.Effect.ALLOW if statement["effect"] == "Allow" else iam.Effect.DENY,
        resources=list(statement["resources"]),
        actions=list(statement["actions"]),
    )


def _capacity_provider_strategies(node: ResourceNode) -> Optional[list]:
    strategy = node.get("capacity_provider_strategy")
    if not strategy:
        return None
    return [
        ecs.CapacityProviderStrategy(capacity_provider=entry["capacity_provider"], weight=entry["weight"])
        for entry in strategy
    ]
