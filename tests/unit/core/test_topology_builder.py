"""Node-graph contract shared by both build strategies."""

from __future__ import annotations

from typing import Optional

import pytest

from ecs_deploy.config.normalized import NormalizedConfig
from ecs_deploy.core.certificate import decide_certificate
from ecs_deploy.core.errors import ConfigValidationError, MissingHostedZone, ResourceLookupError
from ecs_deploy.core.lookups import DeferredLookupResolver, LookupResolver, StaticLookupResolver
from ecs_deploy.core.plan import NodeKind
from ecs_deploy.core.secrets import map_secrets
from ecs_deploy.core.topology import Topology, TopologyBuilder
from tests.fixtures.config_builders import (
    SECRET_ARN_A,
    SECRET_ARN_B,
    build_dns_stage_config,
    build_stage_config,
    resolve_stage,
)

pytestmark = [pytest.mark.unit]

STRATEGIES = ["managed", "explicit"]


def _build(config: NormalizedConfig, lookups: Optional[LookupResolver] = None) -> Topology:
    lookups = lookups or DeferredLookupResolver()
    certificate = decide_certificate(config, lookups)
    return TopologyBuilder(config, certificate, map_secrets(config.secrets), lookups).build()


def _strategy_stage(strategy: str, **overrides) -> dict:
    values = {"build_strategy": strategy}
    values.update(overrides)
    return build_dns_stage_config(overrides=values)


@pytest.mark.parametrize("strategy", STRATEGIES)
def test_dependencies_always_precede_dependents(strategy: str) -> None:
    """
    Given: 두 빌드 전략 각각의 DNS/인증서/시크릿 포함 설정
    When: 토폴로지 생성
    Then: 모든 노드의 의존성이 그래프에서 먼저 등장
    """
    secrets = [{"arn": SECRET_ARN_A, "variables": {"url": "DATABASE_URL"}}]
    topology = _build(resolve_stage(_strategy_stage(strategy, secrets_manager=secrets)))

    nodes = topology.graph.freeze()
    seen = set()
    for node in nodes:
        assert set(node.depends_on) <= seen, f"{node.node_id} depends on {node.depends_on}"
        seen.add(node.node_id)


@pytest.mark.parametrize("strategy", STRATEGIES)
def test_layers_are_built_in_order(strategy: str) -> None:
    topology = _build(resolve_stage(_strategy_stage(strategy)))
    order = list(topology.graph)

    assert order.index("Vpc") < order.index("HostedZone") < order.index("Certificate")
    assert order.index("Certificate") < order.index("LoadBalancer") < order.index("TargetGroup")
    assert order.index("TargetGroup") < order.index("Listener") < order.index("TaskDefinition")
    assert order.index("TaskDefinition") < order.index("Cluster") < order.index("Service")
    assert order.index("Service") < order.index("AliasRecord")
    assert order[-1] == "AliasRecord"


@pytest.mark.parametrize("strategy", STRATEGIES)
def test_both_strategies_emit_same_core_kinds(strategy: str) -> None:
    topology = _build(resolve_stage(_strategy_stage(strategy)))
    kinds = {node.kind for node in topology.graph.freeze()}

    assert {
        NodeKind.NETWORK,
        NodeKind.HOSTED_ZONE,
        NodeKind.CERTIFICATE,
        NodeKind.LOAD_BALANCER,
        NodeKind.TARGET_GROUP,
        NodeKind.LISTENER,
        NodeKind.TASK_DEFINITION,
        NodeKind.CLUSTER,
        NodeKind.SERVICE,
        NodeKind.DNS_RECORD,
    } <= kinds


def test_managed_without_certificate_serves_plain_http() -> None:
    """
    Given: managed 전략, 인증서 없음
    When: 토폴로지 생성
    Then: 리스너는 HTTP/80, TLS 인증서 노드 없음
    """
    topology = _build(resolve_stage())
    graph = topology.graph

    listener = graph.properties(topology.load_balancing.listener)
    assert (listener["protocol"], listener["port"], listener["certificate"]) == ("HTTP", 80, None)
    assert graph.ids_of_kind(NodeKind.CERTIFICATE) == []
    assert graph.ids_of_kind(NodeKind.HOSTED_ZONE) == []
    assert topology.dns_record is None


def test_managed_with_imported_certificate_serves_https() -> None:
    topology = _build(resolve_stage(_strategy_stage("managed")))
    listener = topology.graph.properties("Listener")

    assert (listener["protocol"], listener["port"], listener["certificate"]) == ("HTTPS", 443, "Certificate")
    assert topology.graph.properties("Certificate")["mode"] == "imported"


def test_explicit_always_listens_on_443() -> None:
    topology = _build(resolve_stage(_strategy_stage("explicit")))
    listener = topology.graph.properties("Listener")

    assert (listener["protocol"], listener["port"]) == ("HTTPS", 443)
    assert listener["managed"] is False


def test_explicit_without_certificate_fails() -> None:
    stage = build_stage_config(overrides={"build_strategy": "explicit"})
    with pytest.raises(ConfigValidationError, match="443"):
        _build(resolve_stage(stage))


def test_explicit_pushes_image_before_task_definition() -> None:
    """
    Given: explicit 전략, revision 이 있는 preview 스테이지
    When: 토폴로지 생성
    Then: 이미지 노드가 태스크 정의보다 먼저 오고 레지스트리/태그가 설정됨
    """
    topology = _build(resolve_stage(_strategy_stage("explicit"), stage="preview", revision="42"))
    graph = topology.graph
    order = list(graph)

    image = graph.properties("ImageAsset")
    assert order.index("ImageAsset") < order.index("TaskDefinition")
    assert "ImageAsset" in graph.freeze()[order.index("TaskDefinition")].depends_on
    assert image["destination_repository"] == "team/orders-api"
    assert image["tag"] == "42"
    assert graph.properties("TaskDefinition")["container"]["image"]["source"] == "pushed"


def test_managed_pulls_image_from_registry() -> None:
    topology = _build(resolve_stage())
    image = topology.graph.properties("TaskDefinition")["container"]["image"]

    assert image["source"] == "registry"
    assert image["image_ref"].endswith("/team/orders-api:latest")
    assert topology.graph.ids_of_kind(NodeKind.IMAGE) == []


def test_target_group_health_check_and_deregistration() -> None:
    stage = build_stage_config(overrides={"load_balancer": {"healthcheck_path": "/health"}})
    target_group = _build(resolve_stage(stage)).graph.properties("TargetGroup")

    assert target_group["health_check_path"] == "/health"
    assert target_group["deregistration_delay_seconds"] == 60
    assert target_group["target_type"] == "ip"
    assert target_group["port"] == 8080


def test_secrets_become_nodes_and_container_bindings() -> None:
    secrets = [
        {"arn": SECRET_ARN_A, "variables": {"user": "DB_USER", "password": "DB_PASSWORD"}},
        {"arn": SECRET_ARN_B, "variables": {"key": "API_KEY"}},
    ]
    topology = _build(resolve_stage(build_stage_config(overrides={"secrets_manager": secrets})))
    graph = topology.graph

    assert graph.ids_of_kind(NodeKind.SECRET) == ["Secret0", "Secret1"]
    container = graph.properties("TaskDefinition")["container"]
    assert container["secrets"]["DB_PASSWORD"] == {"secret": "Secret0", "arn": SECRET_ARN_A, "key": "password"}
    assert container["secrets"]["API_KEY"]["secret"] == "Secret1"


def test_spot_replaces_launch_type_with_weighted_capacity() -> None:
    """
    Given: task.spot = true
    When: 토폴로지 생성
    Then: FARGATE_SPOT:4, FARGATE:1 가중치, launch type 제거
    """
    topology = _build(resolve_stage(build_stage_config(overrides={"task": {"spot": True}})))
    service = topology.graph.properties("Service")

    assert service["launch_type"] is None
    assert service["capacity_provider_strategy"] == [
        {"capacity_provider": "FARGATE_SPOT", "weight": 4},
        {"capacity_provider": "FARGATE", "weight": 1},
    ]
    assert topology.graph.properties("Cluster")["enable_fargate_capacity_providers"] is True


def test_on_demand_service_uses_fargate_launch_type() -> None:
    service = _build(resolve_stage()).graph.properties("Service")

    assert service["launch_type"] == "FARGATE"
    assert service["capacity_provider_strategy"] is None
    assert service["circuit_breaker"] == {"rollback": True}


def test_service_attaches_to_target_group_and_listener() -> None:
    topology = _build(resolve_stage())
    service = topology.graph.freeze()[list(topology.graph).index("Service")]

    assert "TargetGroup" in service.depends_on
    assert "Listener" in service.depends_on
    assert service.get("container_name") == "web"
    assert service.get("container_port") == 8080


def test_existing_cluster_is_imported() -> None:
    stage = build_stage_config(overrides={"ecs": {"cluster_arn": "arn:aws:ecs:us-east-1:111122223333:cluster/shared"}})
    cluster = _build(resolve_stage(stage)).graph.properties("Cluster")

    assert cluster["mode"] == "imported"
    assert cluster["cluster_arn"].endswith("cluster/shared")


def test_dns_record_points_at_load_balancer() -> None:
    topology = _build(resolve_stage(build_dns_stage_config()))
    record = topology.graph.properties("AliasRecord")

    assert record["record_name"] == "api.example.com"
    assert record["alias_target"] == "LoadBalancer"
    assert record["zone"] == "HostedZone"


def test_dns_enabled_without_resolvable_zone_fails() -> None:
    lookups = StaticLookupResolver(networks={"Test-VPC": {"vpc_id": "vpc-1"}})
    with pytest.raises(MissingHostedZone):
        _build(resolve_stage(build_dns_stage_config()), lookups)


def test_unresolvable_network_fails() -> None:
    with pytest.raises(ResourceLookupError):
        _build(resolve_stage(), StaticLookupResolver())


def test_extra_policies_go_to_task_role_and_ecr_to_execution_role() -> None:
    stage = build_stage_config(
        overrides={"extra_policies": [{"resources": ["arn:aws:s3:::exports/*"], "actions": ["s3:PutObject"]}]}
    )
    task_definition = _build(resolve_stage(stage)).graph.properties("TaskDefinition")

    assert task_definition["execution_role_statements"] == [
        {"effect": "Allow", "resources": ["*"], "actions": ["ecr:*"]}
    ]
    assert task_definition["task_role_statements"] == [
        {"effect": "Allow", "resources": ["arn:aws:s3:::exports/*"], "actions": ["s3:PutObject"]}
    ]
