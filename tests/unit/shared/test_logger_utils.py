import json
import logging

from ecs_deploy.utils.logger import _JsonFormatter, get_logger


def test_get_logger_adapter_has_context() -> None:
    """
    Given: 스테이지와 스택 이름이 설정된 로거
    When: extra 포함 로그 기록
    Then: 컨텍스트와 호출별 extra 가 함께 병합됨
    """
    log = get_logger(__name__, stage="dev", stack_name="EcsAppOrdersApiDevStack")
    msg, kwargs = log.process("hello", {"extra": {"node_id": "Service"}})

    assert msg == "hello"
    assert kwargs["extra"] == {"stage": "dev", "stack_name": "EcsAppOrdersApiDevStack", "node_id": "Service"}


def test_json_formatter_includes_context_fields() -> None:
    record = logging.LogRecord("ecs_deploy.test", logging.INFO, __file__, 1, "Rendered %s", ("Vpc",), None)
    record.stage = "prod"
    record.kind = "network"

    payload = json.loads(_JsonFormatter().format(record))

    assert payload["message"] == "Rendered Vpc"
    assert payload["level"] == "INFO"
    assert payload["stage"] == "prod"
    assert payload["kind"] == "network"
    assert "stack_name" not in payload


def test_log_level_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("ECS_DEPLOY_LOG_LEVEL", "debug")
    log = get_logger("ecs_deploy.test.level")
    assert log.logger.level == logging.DEBUG
