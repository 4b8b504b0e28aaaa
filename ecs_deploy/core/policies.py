"""IAM policy statement helpers for task and execution roles."""

from __future__ import annotations

from typing import Any, Dict, Iterable

from ecs_deploy.config.normalized import PolicyStatementSpec
from ecs_deploy.core.errors import ConfigValidationError

# lets the task execution role pull the service image from any ECR registry
ECR_PULL_STATEMENT = PolicyStatementSpec(resources=("*",), actions=("ecr:*",))


def dedupe(values: Iterable[str]) -> list[str]:
    """Return items without duplicates while preserving order."""
    seen: set[str] = set()
    result: list[str] = []
    for value in values:
        text = str(value or "").strip()
        if not text or text in seen:
            continue
        seen.add(text)
        result.append(text)
    return result


def normalize_statement(resources: Iterable[str], actions: Iterable[str]) -> PolicyStatementSpec:
    """Trim and dedupe a statement; both lists must end up non-empty."""
    clean_resources = dedupe(resources)
    clean_actions = dedupe(actions)
    if not clean_resources or not clean_actions:
        raise ConfigValidationError("Extra policy statements need at least one resource and one action")
    return PolicyStatementSpec(resources=tuple(clean_resources), actions=tuple(clean_actions))


def statement_to_dict(statement: PolicyStatementSpec) -> Dict[str, Any]:
    return {
        "effect": "Allow",
        "resources": list(statement.resources),
        "actions": list(statement.actions),
    }
