from copy import deepcopy

from ecs_deploy.config.types import AppConfig, StageConfig

from .base import global_config
from .dev import dev_config
from .staging import staging_config
from .preview import preview_config
from .prod import prod_config

_STAGES = {
    "dev": dev_config,
    "staging": staging_config,
    "preview": preview_config,
    "prod": prod_config,
}


def get_stage_config(stage: str) -> StageConfig:
    """Get configuration for the specified stage."""
    if stage not in _STAGES:
        raise ValueError(f"Unknown stage: {stage}")

    return deepcopy(_STAGES[stage])  # type: ignore[return-value]


def get_app_config() -> AppConfig:
    """Return the global section together with every configured stage."""
    app_config = deepcopy(global_config)
    app_config["stages"] = {stage: deepcopy(config) for stage, config in _STAGES.items()}
    return app_config  # type: ignore[return-value]
