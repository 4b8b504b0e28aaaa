import dataclasses
from pathlib import Path

import pytest

from ecs_deploy.config.normalized import BuildStrategy
from ecs_deploy.config.resolver import (
    DEFAULT_HEALTHCHECK_PATH,
    derive_full_domain,
    derive_stack_name,
    resolve_config,
)
from ecs_deploy.core.errors import AutoscalingBoundsError, ConfigValidationError
from tests.fixtures.config_builders import (
    IMAGE_URI,
    build_app_config,
    build_dns_stage_config,
    build_stage_config,
    resolve_stage,
)


def test_full_domain_for_preview_includes_revision() -> None:
    """
    Given: hostname 'api', domain 'example.com', preview 스테이지와 revision '42'
    When: 전체 도메인 계산
    Then: 'api-42.example.com'
    """
    assert derive_full_domain("api", "example.com", "preview", "42") == "api-42.example.com"


def test_full_domain_ignores_revision_outside_preview() -> None:
    assert derive_full_domain("api", "example.com", "prod", "42") == "api.example.com"


def test_full_domain_without_hostname_or_domain() -> None:
    assert derive_full_domain("", "example.com", "prod") == "example.com"
    assert derive_full_domain("api", "", "prod") == ""


def test_stack_name_is_camel_cased() -> None:
    assert derive_stack_name("OrdersApi", "dev") == "EcsAppOrdersApiDevStack"
    assert derive_stack_name("OrdersApi", "preview", "42") == "EcsAppOrdersApiPreview42Stack"
    # revision only matters for the preview stage
    assert derive_stack_name("OrdersApi", "prod", "42") == "EcsAppOrdersApiProdStack"


def test_resolve_applies_defaults() -> None:
    """
    Given: 선택 항목을 생략한 최소 스테이지 설정
    When: resolve_config 호출
    Then: 모든 기본값이 한 번에 채워짐
    """
    config = resolve_stage()

    assert config.app_name == "OrdersApi"
    assert config.stack_name == "EcsAppOrdersApiDevStack"
    assert config.build_strategy is BuildStrategy.MANAGED
    assert config.task.desired_count == 1
    assert config.task.cpu == 256
    assert config.task.memory_limit_mib == 512
    assert config.task.spot is False
    assert config.container.port == 8080
    assert config.healthcheck_path == DEFAULT_HEALTHCHECK_PATH
    assert config.image_ref == f"{IMAGE_URI}:latest"
    assert config.autoscaling.min_capacity == 1
    assert config.autoscaling.max_capacity == 8
    assert config.alarms.task_count.threshold == 1.0
    assert config.secrets == ()
    assert config.extra_policies == ()
    assert config.custom_tag is None
    assert config.cluster is None
    assert config.full_domain == ""


def test_missing_network_reference_fails() -> None:
    stage = build_stage_config(overrides={"vpc": {"id": "", "name": "  "}})
    with pytest.raises(ConfigValidationError, match="Vpc Id or Vpc Name"):
        resolve_stage(stage)


def test_vpc_id_takes_priority_over_name() -> None:
    config = resolve_stage(build_stage_config(overrides={"vpc": {"id": "vpc-123", "name": "Ignored"}}))
    assert config.network.vpc_id == "vpc-123"
    assert config.network.vpc_name is None
    assert config.network.lookup_key == "id=vpc-123"


def test_unknown_stage_fails() -> None:
    with pytest.raises(ConfigValidationError, match="Unknown stage"):
        resolve_config(build_app_config(), "qa")


def test_dns_enabled_requires_hostname_and_domain() -> None:
    stage = build_stage_config(overrides={"route53": {"enable": True, "domain": "example.com", "hostname": ""}})
    with pytest.raises(ConfigValidationError, match="route53"):
        resolve_stage(stage)


def test_preview_requires_revision() -> None:
    with pytest.raises(ConfigValidationError, match="revision"):
        resolve_stage(build_dns_stage_config(), stage="preview")


def test_preview_tags_image_and_domain_with_revision() -> None:
    config = resolve_stage(build_dns_stage_config(), stage="preview", revision="42")

    assert config.is_preview is True
    assert config.full_domain == "api-42.example.com"
    assert config.image_ref == f"{IMAGE_URI}:42"
    assert config.stack_name == "EcsAppOrdersApiPreview42Stack"


def test_configured_image_version_used_without_revision() -> None:
    stage = build_stage_config(overrides={"container": {"image": {"version": "1.2.3"}}})
    config = resolve_stage(stage)
    assert config.image_ref == f"{IMAGE_URI}:1.2.3"
    assert config.container.image_uri == IMAGE_URI


def test_stage_container_merges_over_global() -> None:
    """
    Given: 전역 container 설정과 스테이지 container 설정
    When: 병합
    Then: 스테이지 값이 우선하고 environment/build_args 는 키 단위로 병합
    """
    stage = build_stage_config(
        overrides={"container": {"port": 9000, "environment": {"LOG_LEVEL": "DEBUG", "FEATURE_X": "on"}}}
    )
    config = resolve_stage(
        stage,
        container={
            "port": 8080,
            "image": {"uri": IMAGE_URI},
            "environment": {"LOG_LEVEL": "INFO", "REGION": "us-east-1"},
            "build_args": {"PYTHON_VERSION": "3.12"},
        },
    )

    assert config.container.port == 9000
    assert dict(config.container.environment) == {"LOG_LEVEL": "DEBUG", "REGION": "us-east-1", "FEATURE_X": "on"}
    assert dict(config.container.build_args) == {"PYTHON_VERSION": "3.12"}


def test_missing_image_uri_fails() -> None:
    with pytest.raises(ConfigValidationError, match="image.uri"):
        resolve_stage(container={"port": 80})


@pytest.mark.parametrize("field", ["desired_count", "cpu", "memory_limit_mib"])
def test_non_positive_task_sizing_fails(field: str) -> None:
    stage = build_stage_config(overrides={"task": {field: 0}})
    with pytest.raises(ConfigValidationError, match=field):
        resolve_stage(stage)


@pytest.mark.parametrize("port", [0, -8080])
def test_non_positive_container_port_fails(port: int) -> None:
    """
    Given: 스테이지에서 container.port 를 0 또는 음수로 지정
    When: resolve_config 호출
    Then: 기본 포트로 대체되지 않고 ConfigValidationError
    """
    stage = build_stage_config(overrides={"container": {"port": port}})
    with pytest.raises(ConfigValidationError, match="container.port"):
        resolve_stage(stage)


def test_build_context_is_resolved_to_absolute_path(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """
    Given: 상대 경로 build_context ('.' 기본값 및 'docker/web')
    When: 작업 디렉터리를 바꾼 뒤 resolve_config 호출
    Then: 계획에는 현재 디렉터리 기준의 절대 경로가 기록됨
    """
    monkeypatch.chdir(tmp_path)

    default = resolve_stage()
    nested = resolve_stage(container={"port": 8080, "image": {"uri": IMAGE_URI}, "build_context": "docker/web"})

    assert Path(default.container.build_context).is_absolute()
    assert Path(default.container.build_context) == tmp_path.resolve()
    assert Path(nested.container.build_context) == (tmp_path / "docker" / "web").resolve()


def test_malformed_values_are_wrapped() -> None:
    stage = build_stage_config(overrides={"task": {"cpu": "lots"}})
    with pytest.raises(ConfigValidationError, match="Invalid configuration"):
        resolve_stage(stage)


def test_build_strategy_is_case_insensitive() -> None:
    config = resolve_stage(build_dns_stage_config(overrides={"build_strategy": " Explicit "}))
    assert config.build_strategy is BuildStrategy.EXPLICIT
    assert config.autoscaling.max_capacity == 4


def test_unknown_build_strategy_fails() -> None:
    with pytest.raises(ConfigValidationError, match="build_strategy"):
        resolve_stage(build_stage_config(overrides={"build_strategy": "blue-green"}))


def test_autoscaling_min_above_max_fails() -> None:
    stage = build_stage_config(overrides={"autoscaling": {"min_capacity": 5, "max_capacity": 2}})
    with pytest.raises(AutoscalingBoundsError):
        resolve_stage(stage)


def test_custom_tag_cluster_and_policies_are_normalized() -> None:
    stage = build_stage_config(
        overrides={
            "custom_tags": {"key": "CostCenter", "value": "Commerce"},
            "ecs": {"cluster_name": "shared", "security_group_id": "sg-123"},
            "extra_policies": [
                {"resources": [" arn:aws:s3:::bucket/* ", "arn:aws:s3:::bucket/*"], "actions": ["s3:GetObject"]}
            ],
        }
    )
    config = resolve_stage(stage)

    assert config.custom_tag is not None and config.custom_tag.key == "CostCenter"
    assert config.cluster is not None and config.cluster.cluster_name == "shared"
    assert config.extra_policies[0].resources == ("arn:aws:s3:::bucket/*",)
    assert config.extra_policies[0].actions == ("s3:GetObject",)


def test_empty_extra_policy_fails() -> None:
    stage = build_stage_config(overrides={"extra_policies": [{"resources": [], "actions": ["s3:GetObject"]}]})
    with pytest.raises(ConfigValidationError):
        resolve_stage(stage)


def test_resolved_config_is_immutable() -> None:
    config = resolve_stage()
    with pytest.raises(dataclasses.FrozenInstanceError):
        config.stage = "prod"  # type: ignore[misc]
    with pytest.raises(TypeError):
        config.container.environment["NEW"] = "value"  # type: ignore[index]
