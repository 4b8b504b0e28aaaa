from .ecs_service_stack import EcsServiceStack

__all__ = ["EcsServiceStack"]
