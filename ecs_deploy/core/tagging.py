"""Resource tags applied to every node in the plan."""

from __future__ import annotations

from typing import Dict, Mapping

from ecs_deploy.config.normalized import NormalizedConfig, frozen_mapping


def resolve_tags(config: NormalizedConfig) -> Mapping[str, str]:
    """Return ``Application``/``Environment`` tags plus the optional custom tag."""
    tags: Dict[str, str] = {
        "Application": config.app_name,
        "Environment": config.stage,
    }
    if config.custom_tag is not None:
        tags[config.custom_tag.key] = config.custom_tag.value
    return frozen_mapping(tags)
